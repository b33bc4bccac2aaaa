import pytest

from client_intake.config import load_settings

ENV_VARS = (
    "INTAKE_STORE",
    "SECRETS_BACKEND",
    "AIRTABLE_BASE_ID",
    "AIRTABLE_TABLE_ID",
    "GSHEET_ID",
    "GOOGLE_APPLICATION_CREDENTIALS",
    "GEOCODE_ENABLED",
    "HTTP_TIMEOUT",
    "WEBHOOK_SECRET_NAME",
)


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    for name in ENV_VARS:
        monkeypatch.delenv(name, raising=False)


def test_airtable_is_default_and_needs_ids(monkeypatch):
    with pytest.raises(SystemExit):
        load_settings()
    monkeypatch.setenv("AIRTABLE_BASE_ID", "app")
    monkeypatch.setenv("AIRTABLE_TABLE_ID", "tbl")
    s = load_settings()
    assert s.store == "airtable"
    assert s.secrets_backend == "aws"
    assert s.geocode_enabled is True
    assert s.webhook_secret_name is None


def test_sheets_store_needs_sheet_and_credentials(monkeypatch):
    monkeypatch.setenv("INTAKE_STORE", "sheets")
    monkeypatch.setenv("GSHEET_ID", "SHEET")
    with pytest.raises(SystemExit):
        load_settings()
    monkeypatch.setenv("GOOGLE_APPLICATION_CREDENTIALS", "sa.json")
    assert load_settings().sheet_id == "SHEET"


def test_flags_and_timeout(monkeypatch):
    monkeypatch.setenv("INTAKE_STORE", "memory")
    monkeypatch.setenv("GEOCODE_ENABLED", "no")
    monkeypatch.setenv("HTTP_TIMEOUT", "7.5")
    s = load_settings()
    assert s.geocode_enabled is False
    assert s.http_timeout == 7.5


@pytest.mark.parametrize("name,value", [("INTAKE_STORE", "postgres"), ("SECRETS_BACKEND", "vault")])
def test_unknown_choices_rejected(monkeypatch, name, value):
    monkeypatch.setenv("INTAKE_STORE", "memory")
    monkeypatch.setenv(name, value)
    with pytest.raises(SystemExit):
        load_settings()
