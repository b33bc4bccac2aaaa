"""Record store contract and the in-memory store.

A record store exposes ``exists(key: DedupKey) -> bool`` and
``insert(record: ClientRecord) -> None``. ``exists`` matches first name, last
name and birth date exactly and the SSN column by its last four characters.
Nothing in a store enforces uniqueness: two concurrent requests for the same
client can both see ``exists() == False`` and both insert.
"""
from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional

from .form_mapping import ClientRecord, DedupKey, to_storage_fields
from .schema import DEFAULT_FIELD_MAP, FieldMap

log = logging.getLogger("client_intake.record_store")


def row_matches(row: Dict[str, Any], key: DedupKey, field_map: FieldMap = DEFAULT_FIELD_MAP) -> bool:
    def cell(attr: str) -> str:
        return str(row.get(field_map.column(attr), "")).strip()

    return (
        cell("first_name") == str(key.first_name).strip()
        and cell("last_name") == str(key.last_name).strip()
        and cell("date_of_birth") == key.date_of_birth
        and cell("ssn")[-4:] == key.ssn_last_four
    )


class InMemoryRecordStore:
    def __init__(self, rows: Optional[List[Dict[str, Any]]] = None, field_map: FieldMap = DEFAULT_FIELD_MAP):
        self.rows: List[Dict[str, Any]] = list(rows or [])
        self.field_map = field_map

    def exists(self, key: DedupKey) -> bool:
        return any(row_matches(r, key, self.field_map) for r in self.rows)

    def insert(self, record: ClientRecord) -> None:
        self.rows.append(to_storage_fields(record, self.field_map))
        log.info("Stored record in memory (rows=%s)", len(self.rows))
