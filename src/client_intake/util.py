from __future__ import annotations

import re
from datetime import date, datetime, timezone
from typing import Any

from .schema import SSN_LENGTH

_FRACTION = re.compile(r"(?<=:\d\d)\.(\d+)")
_DATE_FORMATS =("%Y-%m-%d", "%m/%d/%Y", "%Y/%m/%d", "%m-%d-%Y")


def utc_ts() -> str:
    return datetime.now(timezone.utc).strftime("%Y%m%d_%H%M%S")


def _pad_fraction(s: str) -> str:
    # fromisoformat before 3.11 only takes 3- or 6-digit fractions.
    return _FRACTION.sub(lambda m: "." + m.group(1)[:6].ljust(6, "0"), s)


def to_iso_date(value: Any) -> str:
    """Format a date answer as yyyy-MM-dd, keeping the calendar date as written."""
    if isinstance(value, datetime):
        return value.strftime("%Y-%m-%d")
    if isinstance(value, date):
        return value.isoformat()

    s = str(value or "").strip()
    if not s:
        raise ValueError("empty date")
    try:
        return datetime.fromisoformat(_pad_fraction(s.replace("Z", "+00:00"))).strftime("%Y-%m-%d")
    except ValueError:
        pass
    for fmt in _DATE_FORMATS:
        try:
            return datetime.strptime(s, fmt).strftime("%Y-%m-%d")
        except ValueError:
            continue
    raise ValueError(f"unparseable date {s!r}")


def pad_ssn(value: Any, width: int = SSN_LENGTH) -> str:
    return str(value).strip().rjust(width, "0")


def last_four(value: Any) -> str:
    return str(value).strip()[-4:]


def strip_country_code(phone: Any) -> str:
    # Fillout sends "+1XXXXXXXXXX".
    return str(phone)[2:]
