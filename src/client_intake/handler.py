"""Webhook entry point: one Fillout submission in, at most one client record out.

Order within a request is fixed: verify -> parse -> extract -> normalize ->
exists -> geocode -> insert. Every answer is extracted before the first
remote call, so a missing question never reaches the datastore.
"""
from __future__ import annotations

import hmac
import json
import logging
from dataclasses import dataclass
from typing import Any, Dict, Mapping, Optional

from .airtable import AirtableRecordStore
from .config import Settings, load_settings
from .credentials import EnvCredentialStore, SecretsManagerCredentialStore, secret_value
from .dispatch_payload import load_event_body, parse_submission
from .errors import GeocodeError, IntakeError, WebhookAuthError
from .form_mapping import ClientRecord, compute_dedup_key, extract, normalize
from .geocode import NullGeocoder, OpenCageGeocoder
from .record_store import InMemoryRecordStore
from .schema import DEFAULT_FIELD_MAP, FieldMap
from .sheets import SheetRecordStore, auth_sheets, get_or_create_worksheet, open_spreadsheet

log = logging.getLogger("client_intake.handler")

WEBHOOK_SECRET_HEADER = "x-webhook-secret"

MSG_EXISTS = "Client already exists"
MSG_CREATED = "Client created"


@dataclass(frozen=True)
class Outcome:
    submission_id: str
    created: bool
    record: Optional[ClientRecord]
    message: str


class IntakePipeline:
    def __init__(
        self,
        store,
        geocoder,
        field_map: FieldMap = DEFAULT_FIELD_MAP,
        credentials=None,
        webhook_secret_name: Optional[str] = None,
    ):
        self.store = store
        self.geocoder = geocoder
        self.field_map = field_map
        self.credentials = credentials
        self.webhook_secret_name = webhook_secret_name

    def verify(self, headers: Optional[Mapping[str, Any]]) -> None:
        if not self.webhook_secret_name:
            return
        expected = secret_value(self.credentials, self.webhook_secret_name, "WEBHOOK_SECRET")
        given = ""
        for k, v in (headers or {}).items():
            if str(k).lower() == WEBHOOK_SECRET_HEADER:
                given = str(v or "")
                break
        if not hmac.compare_digest(given.encode("utf-8"), expected.encode("utf-8")):
            raise WebhookAuthError("Unauthorized")

    def _county(self, record: ClientRecord) -> Optional[str]:
        try:
            return self.geocoder.lookup(record.street_address, record.city, record.state, record.zipcode)
        except GeocodeError as e:
            log.warning("County lookup failed for submission id=%s: %s", record.fillout_id, e)
            return None
        except Exception:
            # County is best-effort; any geocoder fault leaves it empty.
            log.warning("County lookup raised for submission id=%s", record.fillout_id, exc_info=True)
            return None

    def process(self, body: Dict[str, Any]) -> Outcome:
        sub = parse_submission(body)
        log.info("Loaded submission id=%s", sub.submission_id)

        answers = extract(sub, self.field_map)
        record = normalize(answers, self.field_map)
        key = compute_dedup_key(record)

        if self.store.exists(key):
            log.info("Client already exists, submission id=%s skipped", sub.submission_id)
            return Outcome(submission_id=sub.submission_id, created=False, record=None, message=MSG_EXISTS)

        county = self._county(record)
        if county is None:
            log.info("No county for submission id=%s; inserting without it", sub.submission_id)
        record = record.with_county(county)

        self.store.insert(record)
        log.info("Client created from submission id=%s", sub.submission_id)
        return Outcome(submission_id=sub.submission_id, created=True, record=record, message=MSG_CREATED)


def response(status: int, message: str) -> Dict[str, Any]:
    return {"statusCode": status, "body": json.dumps(message)}


def handle_event(pipeline: IntakePipeline, event: Dict[str, Any]) -> Dict[str, Any]:
    """HTTP-style event -> {"statusCode", "body"}. Typed failures become error responses."""
    try:
        pipeline.verify(event.get("headers"))
        body = load_event_body(event)
        outcome = pipeline.process(body)
    except WebhookAuthError:
        log.warning("Rejected webhook with missing or wrong %s header", WEBHOOK_SECRET_HEADER)
        return response(401, "Unauthorized")
    except IntakeError as e:
        log.error("Request failed status=%s: %s", e.status, e)
        return response(e.status, str(e))
    return response(200, outcome.message)


def build_credentials(settings: Settings):
    if settings.secrets_backend == "env":
        return EnvCredentialStore()
    return SecretsManagerCredentialStore(region=settings.aws_region, timeout=settings.http_timeout)


def build_pipeline(settings: Settings, credentials=None) -> IntakePipeline:
    credentials = credentials or build_credentials(settings)
    field_map = FieldMap.load(settings.field_map_path)

    if settings.store == "airtable":
        store = AirtableRecordStore(
            credentials,
            base_id=settings.airtable_base_id,
            table_id=settings.airtable_table_id,
            field_map=field_map,
            secret_name=settings.airtable_secret_name,
            timeout=settings.http_timeout,
        )
    elif settings.store == "sheets":
        gc = auth_sheets(settings.sa_json)
        ws = get_or_create_worksheet(open_spreadsheet(gc, settings.sheet_id), settings.worksheet)
        store = SheetRecordStore(ws, field_map)
    else:
        store = InMemoryRecordStore(field_map=field_map)

    if settings.geocode_enabled:
        geocoder = OpenCageGeocoder(
            credentials, secret_name=settings.opencage_secret_name, timeout=settings.http_timeout
        )
    else:
        geocoder = NullGeocoder()

    return IntakePipeline(
        store,
        geocoder,
        field_map=field_map,
        credentials=credentials,
        webhook_secret_name=settings.webhook_secret_name,
    )


_pipeline: Optional[IntakePipeline] = None


def lambda_handler(event, context=None):
    global _pipeline
    if _pipeline is None:
        _pipeline = build_pipeline(load_settings())
    return handle_event(_pipeline, event)
