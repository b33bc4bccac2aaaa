import json
from unittest.mock import MagicMock, patch

from client_intake.config import Settings
from client_intake.errors import GeocodeError, StoreError
from client_intake.form_mapping import compute_dedup_key, extract, normalize
from client_intake.dispatch_payload import parse_submission
from client_intake.geocode import NullGeocoder, OpenCageGeocoder
from client_intake.handler import IntakePipeline, build_pipeline, handle_event
from client_intake.airtable import AirtableRecordStore
from client_intake.record_store import InMemoryRecordStore

from conftest import fillout_body


class StubGeocoder:
    def __init__(self, county=None, exc=None):
        self.county = county
        self.exc = exc
        self.calls = []

    def lookup(self, street, city, state, zipcode):
        self.calls.append((street, city, state, zipcode))
        if self.exc:
            raise self.exc
        return self.county


def _event(body, headers=None):
    return {"body": json.dumps(body), "headers": headers or {}}


def test_new_client_is_inserted_with_county(body):
    store = InMemoryRecordStore()
    geo = StubGeocoder("Webb County")

    resp = handle_event(IntakePipeline(store, geo), _event(body))

    assert resp == {"statusCode": 200, "body": json.dumps("Client created")}
    assert geo.calls == [("100 Main St", "Laredo", "TX", "78040")]
    assert len(store.rows) == 1
    assert store.rows[0]["County"] == "Webb County"
    assert store.rows[0]["SSN"] == "000001234"


def test_existing_client_matches_on_ssn_suffix(body):
    store = InMemoryRecordStore(
        [{"First Name": "Matt", "Last Name": "Smith", "Birth Date": "1990-04-02", "SSN": "000121234"}]
    )
    geo = StubGeocoder("Webb County")

    resp = handle_event(IntakePipeline(store, geo), _event(body))

    assert resp["statusCode"] == 200
    assert json.loads(resp["body"]) == "Client already exists"
    assert geo.calls == []
    assert len(store.rows) == 1


def test_missing_field_is_400_and_store_untouched(answers):
    del answers["Last Name"]
    store = MagicMock()

    resp = handle_event(IntakePipeline(store, StubGeocoder()), _event(fillout_body(answers)))

    assert resp["statusCode"] == 400
    assert "Last Name" in json.loads(resp["body"])
    store.exists.assert_not_called()
    store.insert.assert_not_called()


def test_geocode_failure_still_inserts_without_county(body):
    store = InMemoryRecordStore()
    resp = handle_event(IntakePipeline(store, StubGeocoder(exc=GeocodeError("boom"))), _event(body))

    assert resp["statusCode"] == 200
    assert "County" not in store.rows[0]


def test_query_failure_aborts_before_insert(body):
    store = MagicMock()
    store.exists.side_effect = StoreError("Airtable query failed with HTTP 500", response_status=500)
    geo = StubGeocoder("Webb County")

    resp = handle_event(IntakePipeline(store, geo), _event(body))

    assert resp["statusCode"] == 502
    store.insert.assert_not_called()
    assert geo.calls == []


def test_insert_timeout_is_504(body):
    store = MagicMock()
    store.exists.return_value = False
    store.insert.side_effect = StoreError("Airtable insert timed out", timeout=True)

    resp = handle_event(IntakePipeline(store, NullGeocoder()), _event(body))
    assert resp["statusCode"] == 504


def test_exists_called_with_dedup_key_before_insert(body):
    calls = []
    store = MagicMock()
    store.exists.side_effect = lambda key: calls.append(("exists", key)) or False
    store.insert.side_effect = lambda record: calls.append(("insert", record.fillout_id))

    outcome = IntakePipeline(store, NullGeocoder()).process(body)

    expected_key = compute_dedup_key(normalize(extract(parse_submission(body))))
    assert calls == [("exists", expected_key), ("insert", "0adb7f88-ea15-49ab-98e0-cf07a6fb2558")]
    assert outcome.created is True


def test_webhook_secret_mismatch_is_401(body, credentials):
    store = MagicMock()
    pipeline = IntakePipeline(store, NullGeocoder(), credentials=credentials, webhook_secret_name="WebhookSecret")

    resp = handle_event(pipeline, _event(body, {"X-Webhook-Secret": "wrong"}))
    assert resp == {"statusCode": 401, "body": json.dumps("Unauthorized")}
    resp = handle_event(pipeline, _event(body))
    assert resp["statusCode"] == 401
    store.exists.assert_not_called()


def test_webhook_secret_match_passes(body, credentials):
    store = InMemoryRecordStore()
    pipeline = IntakePipeline(store, NullGeocoder(), credentials=credentials, webhook_secret_name="WebhookSecret")

    resp = handle_event(pipeline, _event(body, {"x-webhook-secret": "s3cret"}))
    assert resp["statusCode"] == 200
    assert len(store.rows) == 1


def test_missing_credentials_is_500(body, credentials):
    credentials.secrets.pop("AirtableToken")
    store = AirtableRecordStore(credentials, base_id="app", table_id="tbl", session=MagicMock())

    resp = handle_event(IntakePipeline(store, NullGeocoder()), _event(body))
    assert resp["statusCode"] == 500


def test_bad_json_is_400():
    resp = handle_event(IntakePipeline(MagicMock(), NullGeocoder()), {"body": "{"})
    assert resp["statusCode"] == 400


def test_build_pipeline_airtable_with_geocoder(credentials):
    settings = Settings(airtable_base_id="app", airtable_table_id="tbl", webhook_secret_name="WebhookSecret")
    pipeline = build_pipeline(settings, credentials=credentials)
    assert isinstance(pipeline.store, AirtableRecordStore)
    assert isinstance(pipeline.geocoder, OpenCageGeocoder)
    assert pipeline.webhook_secret_name == "WebhookSecret"


def test_build_pipeline_memory_without_geocoder(credentials):
    pipeline = build_pipeline(Settings(store="memory", geocode_enabled=False), credentials=credentials)
    assert isinstance(pipeline.store, InMemoryRecordStore)
    assert isinstance(pipeline.geocoder, NullGeocoder)


def test_build_pipeline_sheets_opens_worksheet(credentials):
    settings = Settings(store="sheets", sheet_id="SHEET", sa_json="sa.json", worksheet="Clients")
    with patch("client_intake.handler.auth_sheets") as auth, patch(
        "client_intake.handler.open_spreadsheet"
    ) as ospr, patch("client_intake.handler.get_or_create_worksheet") as gow:
        gow.return_value = object()
        pipeline = build_pipeline(settings, credentials=credentials)
    auth.assert_called_once_with("sa.json")
    ospr.assert_called_once_with(auth.return_value, "SHEET")
    gow.assert_called_once_with(ospr.return_value, "Clients")
    assert pipeline.store.ws is gow.return_value


def test_lambda_handler_builds_pipeline_once(monkeypatch, body):
    import client_intake.handler as handler

    monkeypatch.setattr(handler, "_pipeline", None)
    pipeline = IntakePipeline(InMemoryRecordStore(), NullGeocoder())
    with patch("client_intake.handler.load_settings") as load, patch(
        "client_intake.handler.build_pipeline", return_value=pipeline
    ) as build:
        assert handler.lambda_handler(_event(body), None)["statusCode"] == 200
        assert handler.lambda_handler(_event(body), None)["statusCode"] == 200
    load.assert_called_once()
    build.assert_called_once()


def test_any_geocoder_exception_still_inserts(body):
    store = InMemoryRecordStore()
    resp = handle_event(IntakePipeline(store, StubGeocoder(exc=RuntimeError("geocoder down"))), _event(body))

    assert resp["statusCode"] == 200
    assert len(store.rows) == 1
    assert "County" not in store.rows[0]


def test_malformed_geocoder_response_still_inserts(body, credentials):
    session = MagicMock()
    session.get.return_value.json.return_value = {"results": [{"components": "x"}]}
    store = InMemoryRecordStore()

    resp = handle_event(IntakePipeline(store, OpenCageGeocoder(credentials, session=session)), _event(body))

    assert resp["statusCode"] == 200
    assert len(store.rows) == 1


def test_resubmission_with_padded_name_is_deduplicated(answers):
    answers["First Name"] = "Matt "
    store = InMemoryRecordStore()
    pipeline = IntakePipeline(store, NullGeocoder())

    first = handle_event(pipeline, _event(fillout_body(answers)))
    second = handle_event(pipeline, _event(fillout_body(answers)))

    assert json.loads(first["body"]) == "Client created"
    assert json.loads(second["body"]) == "Client already exists"
    assert len(store.rows) == 1
