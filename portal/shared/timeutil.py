"""Time helpers. Stored timestamps are Unix epoch seconds (UTC)."""

import re
from datetime import date, datetime, timezone

_DAY_PREFIX = re.compile(r"^(\d{4})-(\d{2})-(\d{2})")
_US_DATE = re.compile(r"^(\d{1,2})/(\d{1,2})/(\d{4})")


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def now_ts() -> int:
    return int(utc_now().timestamp())


def iso_from_ts(ts: int) -> str:
    return datetime.fromtimestamp(ts, tz=timezone.utc).isoformat()


def to_day_key(value: object) -> str:
    """
    Normalize a date-ish value to YYYY-MM-DD.

    Returns an empty string when the value cannot be read as a calendar day.
    """
    raw = str(value or "").strip()
    if not raw:
        return ""
    match = _DAY_PREFIX.match(raw)
    if not match:
        return ""
    try:
        return date(int(match[1]), int(match[2]), int(match[3])).isoformat()
    except ValueError:
        return ""


def parse_calendar_date(value: object) -> date | None:
    """Parse the ISO and US (M/D/YYYY) date formats found in Caspio exports."""
    raw = str(value or "").strip()
    if not raw:
        return None
    try:
        match = _DAY_PREFIX.match(raw)
        if match:
            return date(int(match[1]), int(match[2]), int(match[3]))
        match = _US_DATE.match(raw)
        if match:
            return date(int(match[3]), int(match[1]), int(match[2]))
    except ValueError:
        return None
    return None
