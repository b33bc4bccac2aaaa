from __future__ import annotations

import json
import logging
from typing import Any, Dict, Optional
from urllib.parse import quote

import requests

from .credentials import secret_value
from .errors import StoreError
from .form_mapping import ClientRecord, DedupKey, to_storage_fields
from .http import DEFAULT_TIMEOUT, session_without_retries
from .schema import DEFAULT_FIELD_MAP, FieldMap

log = logging.getLogger("client_intake.airtable")

AIRTABLE_API = "https://api.airtable.com/v0"


def formula_literal(value: Any) -> str:
    s = str(value).replace("\\", "\\\\").replace("'", "\\'")
    return f"'{s}'"


def build_exists_formula(key: DedupKey, field_map: FieldMap = DEFAULT_FIELD_MAP) -> str:
    return (
        "AND("
        f"{{{field_map.column('first_name')}}}={formula_literal(key.first_name)}, "
        f"{{{field_map.column('last_name')}}}={formula_literal(key.last_name)}, "
        f"{{{field_map.column('date_of_birth')}}}=DATETIME_PARSE({formula_literal(key.date_of_birth)}, 'YYYY-MM-DD'), "
        f"RIGHT({{{field_map.column('ssn')}}}, 4)={formula_literal(key.ssn_last_four)}"
        ")"
    )


class AirtableRecordStore:
    def __init__(
        self,
        credentials,
        base_id: str,
        table_id: str,
        field_map: FieldMap = DEFAULT_FIELD_MAP,
        secret_name: str = "AirtableToken",
        secret_key: str = "AIRTABLE_TOKEN",
        session: Optional[requests.Session] = None,
        timeout: float = DEFAULT_TIMEOUT,
    ):
        self.credentials = credentials
        self.base_id = base_id
        self.table_id = table_id
        self.field_map = field_map
        self.secret_name = secret_name
        self.secret_key = secret_key
        self.session = session or session_without_retries()
        self.timeout = timeout

    @property
    def table_url(self) -> str:
        return f"{AIRTABLE_API}/{quote(self.base_id, safe='')}/{quote(self.table_id, safe='')}"

    def _headers(self) -> Dict[str, str]:
        token = secret_value(self.credentials, self.secret_name, self.secret_key)
        return {"Authorization": f"Bearer {token}"}

    def _send(self, method: str, what: str, **kwargs) -> Dict[str, Any]:
        try:
            r = self.session.request(method, self.table_url, timeout=self.timeout, **kwargs)
        except requests.Timeout as e:
            raise StoreError(f"Airtable {what} timed out after {self.timeout}s", timeout=True) from e
        except requests.RequestException as e:
            raise StoreError(f"Airtable {what} failed: {e}") from e

        if r.status_code >= 400:
            log.error("Airtable %s failed status=%s body=%s", what, r.status_code, r.text[:2000])
            raise StoreError(f"Airtable {what} failed with HTTP {r.status_code}", response_status=r.status_code)
        try:
            return r.json()
        except ValueError as e:
            raise StoreError(f"Airtable {what} returned invalid JSON") from e

    def exists(self, key: DedupKey) -> bool:
        headers = self._headers()
        formula = build_exists_formula(key, self.field_map)
        data = self._send(
            "GET",
            "query",
            headers=headers,
            params={"filterByFormula": formula, "maxRecords": 1},
        )
        records = data.get("records")
        if not isinstance(records, list):
            raise StoreError("Airtable query response has no records list")
        return len(records) > 0

    def insert(self, record: ClientRecord) -> None:
        headers = self._headers()
        headers["Content-Type"] = "application/json"
        fields = to_storage_fields(record, self.field_map)
        data = self._send("POST", "insert", headers=headers, data=json.dumps({"fields": fields}))
        log.info("Client inserted into Airtable id=%s", data.get("id"))
