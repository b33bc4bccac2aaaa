from __future__ import annotations

import argparse
import json
import logging
import os
from dataclasses import asdict
from pathlib import Path
from typing import Any, Dict, Optional

from .config import load_settings, require
from .dispatch_payload import load_event_body, parse_submission
from .errors import IntakeError
from .form_mapping import compute_dedup_key, extract, normalize, to_storage_fields
from .geocode import NullGeocoder
from .handler import IntakePipeline, build_pipeline, handle_event
from .record_store import InMemoryRecordStore
from .schema import FieldMap
from .util import utc_ts


def setup_logging(log_file: Optional[Path], level: str = "INFO") -> None:
    lvl = getattr(logging, level.upper(), logging.INFO)
    handlers: list[logging.Handler] = [logging.StreamHandler()]
    if log_file:
        log_file.parent.mkdir(parents=True, exist_ok=True)
        handlers.append(logging.FileHandler(log_file, encoding="utf-8"))
    logging.basicConfig(
        level=lvl,
        format="%(asctime)sZ %(levelname)s %(name)s: %(message)s",
        handlers=handlers,
    )


def parse_args() -> argparse.Namespace:
    p = argparse.ArgumentParser(prog="client_intake")
    sub = p.add_subparsers(dest="cmd", required=True)

    def add_common(x):
        x.add_argument("--event-path", default=os.getenv("INTAKE_EVENT_PATH", ""), help="Path to webhook event JSON.")
        x.add_argument("--log-level", default=os.getenv("LOG_LEVEL", "INFO"))
        x.add_argument("--log-dir", default=os.getenv("LOG_DIR", ""), help="Also write the run log here.")

    pd = sub.add_parser("dispatch", help="Process one webhook event -> dedup -> geocode -> insert client.")
    add_common(pd)
    pd.add_argument("--dry-run", action="store_true", help="Use an in-memory store and skip the county lookup.")

    pn = sub.add_parser("normalize", help="Print the normalized record and dedup key; no remote calls.")
    add_common(pn)
    pn.add_argument("--field-map", default=os.getenv("FIELD_MAP_PATH", ""), help="JSON field map override.")

    return p.parse_args()


def read_event(path: str) -> Dict[str, Any]:
    event = json.loads(Path(path).read_text(encoding="utf-8"))
    if not isinstance(event, dict):
        raise SystemExit(f"Event file {path} must hold a JSON object")
    return event


def as_http_event(event: Dict[str, Any]) -> Dict[str, Any]:
    # A bare webhook body is wrapped so both file shapes go through handle_event.
    if "body" in event:
        return event
    return {"body": event, "headers": {}}


def _log_path(args: argparse.Namespace) -> Optional[Path]:
    if not args.log_dir:
        return None
    return Path(args.log_dir) / f"run_{args.cmd}_utc_{utc_ts()}.log"


def run_dispatch(args: argparse.Namespace) -> int:
    setup_logging(_log_path(args), args.log_level)
    log = logging.getLogger("client_intake.dispatch")

    event_path = require("INTAKE_EVENT_PATH/--event-path", args.event_path)
    event = as_http_event(read_event(event_path))

    if args.dry_run:
        field_map = FieldMap.load(os.getenv("FIELD_MAP_PATH") or None)
        pipeline = IntakePipeline(InMemoryRecordStore(field_map=field_map), NullGeocoder(), field_map=field_map)
    else:
        pipeline = build_pipeline(load_settings())

    resp = handle_event(pipeline, event)
    log.info("Dispatch finished status=%s body=%s", resp["statusCode"], resp["body"])
    print(json.dumps(resp))
    return 0 if resp["statusCode"] == 200 else 1


def run_normalize(args: argparse.Namespace) -> int:
    setup_logging(_log_path(args), args.log_level)
    log = logging.getLogger("client_intake.normalize")

    event_path = require("INTAKE_EVENT_PATH/--event-path", args.event_path)
    field_map = FieldMap.load(args.field_map or None)
    try:
        body = load_event_body(as_http_event(read_event(event_path)))
        record = normalize(extract(parse_submission(body), field_map), field_map)
    except IntakeError as e:
        log.error("Cannot normalize %s: %s", event_path, e)
        return 1

    key = compute_dedup_key(record)
    print(
        json.dumps(
            {
                "fields": to_storage_fields(record, field_map),
                "dedup_key": asdict(key),
            },
            indent=2,
        )
    )
    return 0


def main() -> int:
    args = parse_args()
    if args.cmd == "dispatch":
        return run_dispatch(args)
    if args.cmd == "normalize":
        return run_normalize(args)
    raise SystemExit("Unknown command")
