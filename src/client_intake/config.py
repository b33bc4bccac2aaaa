from __future__ import annotations

import os
from dataclasses import dataclass
from typing import Optional

from .http import DEFAULT_TIMEOUT
from .sheets import DEFAULT_WORKSHEET

STORE_KINDS = ("airtable", "sheets", "memory")
SECRETS_BACKENDS = ("aws", "env")


def require(name: str, value: Optional[str]) -> str:
    if not value:
        raise SystemExit(f"Missing required value: {name}")
    return value


def env_flag(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    return raw.strip().lower() in {"1", "true", "yes", "y", "on"}


@dataclass(frozen=True)
class Settings:
    store: str = "airtable"
    secrets_backend: str = "aws"
    aws_region: str = "us-east-1"
    airtable_secret_name: str = "AirtableToken"
    airtable_base_id: Optional[str] = None
    airtable_table_id: Optional[str] = None
    opencage_secret_name: str = "OpenCageKey"
    geocode_enabled: bool = True
    sheet_id: Optional[str] = None
    worksheet: str = DEFAULT_WORKSHEET
    sa_json: Optional[str] = None
    webhook_secret_name: Optional[str] = None
    field_map_path: Optional[str] = None
    http_timeout: float = DEFAULT_TIMEOUT
    log_level: str = "INFO"


def load_settings() -> Settings:
    store = os.getenv("INTAKE_STORE", "airtable").strip().lower()
    if store not in STORE_KINDS:
        raise SystemExit(f"INTAKE_STORE must be one of {STORE_KINDS}, got {store!r}")
    secrets_backend = os.getenv("SECRETS_BACKEND", "aws").strip().lower()
    if secrets_backend not in SECRETS_BACKENDS:
        raise SystemExit(f"SECRETS_BACKEND must be one of {SECRETS_BACKENDS}, got {secrets_backend!r}")

    try:
        http_timeout = float(os.getenv("HTTP_TIMEOUT") or DEFAULT_TIMEOUT)
    except ValueError:
        raise SystemExit("HTTP_TIMEOUT must be a number of seconds")

    settings = Settings(
        store=store,
        secrets_backend=secrets_backend,
        aws_region=os.getenv("AWS_REGION", "us-east-1"),
        airtable_secret_name=os.getenv("AIRTABLE_SECRET_NAME", "AirtableToken"),
        airtable_base_id=os.getenv("AIRTABLE_BASE_ID"),
        airtable_table_id=os.getenv("AIRTABLE_TABLE_ID"),
        opencage_secret_name=os.getenv("OPENCAGE_SECRET_NAME", "OpenCageKey"),
        geocode_enabled=env_flag("GEOCODE_ENABLED", True),
        sheet_id=os.getenv("GSHEET_ID"),
        worksheet=os.getenv("GSHEET_WORKSHEET", DEFAULT_WORKSHEET),
        sa_json=os.getenv("GOOGLE_APPLICATION_CREDENTIALS"),
        webhook_secret_name=os.getenv("WEBHOOK_SECRET_NAME") or None,
        field_map_path=os.getenv("FIELD_MAP_PATH") or None,
        http_timeout=http_timeout,
        log_level=os.getenv("LOG_LEVEL", "INFO"),
    )

    if settings.store == "airtable":
        require("AIRTABLE_BASE_ID", settings.airtable_base_id)
        require("AIRTABLE_TABLE_ID", settings.airtable_table_id)
    elif settings.store == "sheets":
        require("GSHEET_ID", settings.sheet_id)
        require("GOOGLE_APPLICATION_CREDENTIALS", settings.sa_json)
    return settings
