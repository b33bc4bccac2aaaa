from __future__ import annotations

import logging
from typing import Dict, List

import requests

from .errors import StoreError
from .form_mapping import ClientRecord, DedupKey, to_storage_fields
from .record_store import row_matches
from .schema import DEFAULT_FIELD_MAP, FieldMap

log = logging.getLogger("client_intake.sheets")

DEFAULT_WORKSHEET = "Clients"


def _cell(value):
    # Multi-select answers arrive as lists.
    if isinstance(value, (list, tuple)):
        return ", ".join(str(v) for v in value)
    return value


def auth_sheets(service_account_json_path: str):
    import gspread
    from google.oauth2.service_account import Credentials

    scopes = ["https://www.googleapis.com/auth/spreadsheets"]
    creds = Credentials.from_service_account_file(service_account_json_path, scopes=scopes)
    return gspread.authorize(creds)


def open_spreadsheet(gc, sheet_id: str):
    return gc.open_by_key(sheet_id)


def get_or_create_worksheet(sh, worksheet_name: str = DEFAULT_WORKSHEET, columns: int = 40):
    from gspread.exceptions import WorksheetNotFound

    try:
        return sh.worksheet(worksheet_name)
    except WorksheetNotFound:
        return sh.add_worksheet(title=worksheet_name, rows=2000, cols=columns)


def ensure_header(ws, expected: List[str], *, strict: bool = True) -> None:
    """Ensure the header row exists and matches the column order.

    - If empty sheet: writes the columns as header.
    - If non-empty:
        - strict=True: raise if mismatch
        - strict=False: do nothing (best-effort)
    """
    header = ws.row_values(1)

    if not header or all(not str(x).strip() for x in header):
        ws.update(values=[expected], range_name="A1")
        return

    got = [str(x).strip() for x in header[: len(expected)]]
    if got != expected and strict:
        raise StoreError(
            "Worksheet header does not match the client columns. "
            f"Expected first {len(expected)} columns: {expected}. Got: {got}."
        )


class SheetRecordStore:
    """Client records kept as rows of a Google Sheets worksheet."""

    def __init__(self, ws, field_map: FieldMap = DEFAULT_FIELD_MAP, *, strict_header: bool = True):
        self.ws = ws
        self.field_map = field_map
        self.strict_header = strict_header

    def _call(self, what: str, fn, *args, **kwargs):
        from gspread.exceptions import GSpreadException

        try:
            return fn(*args, **kwargs)
        except requests.Timeout as e:
            raise StoreError(f"Sheet {what} timed out", timeout=True) from e
        except (GSpreadException, requests.RequestException) as e:
            raise StoreError(f"Sheet {what} failed: {e}") from e

    def read_all(self) -> List[Dict]:
        columns = self.field_map.column_order()
        self._call("header check", ensure_header, self.ws, columns, strict=self.strict_header)
        # Keep SSNs like "000001234" as text.
        return self._call(
            "query",
            self.ws.get_all_records,
            expected_headers=columns,
            numericise_ignore=["all"],
        )

    def exists(self, key: DedupKey) -> bool:
        return any(row_matches(r, key, self.field_map) for r in self.read_all())

    def insert(self, record: ClientRecord) -> None:
        columns = self.field_map.column_order()
        fields = to_storage_fields(record, self.field_map)
        row = [_cell(fields.get(c, "")) for c in columns]
        self._call("insert", self.ws.append_row, row, value_input_option="RAW")
        log.info("Client appended to worksheet %s", getattr(self.ws, "title", "?"))
