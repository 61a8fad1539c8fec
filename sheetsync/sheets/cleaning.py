from __future__ import annotations

import re
from datetime import date, datetime, time, timedelta
from typing import Any

import pandas as pd

"""Cell cleaning helpers used by the row normalizer.

Sheet cells arrive as strings, numbers, or (for local workbooks) datetime
objects. Each helper turns one raw cell into the value stored in the table:

- strings: trimmed, with placeholder text mapped to None
- numbers: digits/``.``/``-`` only, parsed as float, 0.0 when unparseable
- dates / datetimes: serial numbers, ``D/M/Y`` (``M/D/Y`` fallback) or any
  text pandas can parse; None when nothing fits

None of the date helpers raise for bad input; the number helper never returns
None.
"""

__all__ = [
    "NULL_PLACEHOLDERS",
    "clean_string",
    "clean_number",
    "clean_date",
    "clean_datetime",
    "serial_to_datetime",
]

# Text that means "no value" in the source sheets
NULL_PLACEHOLDERS = frozenset({"", "-", "undefined", "null"})

# Spreadsheet serial numbers count days from 1900-01-01 = 1 and include the
# nonexistent 1900-02-29, hence the two-day correction.
SERIAL_EPOCH = datetime(1900, 1, 1)
SERIAL_LEAP_CORRECTION = 2
# Numbers above this are treated as serial dates (40000 = 2009-07-06)
SERIAL_MIN = 40000

_NUMBER_STRIP_RE = re.compile(r"[^0-9.\-]")
_SLASH_DATE_RE = re.compile(
    r"^(\d{1,2})/(\d{1,2})/(\d{2,4})(?:[ T](\d{1,2}):(\d{2})(?::(\d{2}))?)?$"
)


def clean_string(value: Any) -> str | None:
    if value is None:
        return None
    if isinstance(value, float):
        if pd.isna(value):
            return None
        if value.is_integer():
            value = int(value)
    cleaned = str(value).strip()
    if cleaned in NULL_PLACEHOLDERS:
        return None
    return cleaned


def clean_number(value: Any) -> float:
    if isinstance(value, bool):
        return float(value)
    if isinstance(value, (int, float)):
        return 0.0 if pd.isna(value) else float(value)
    if value is None:
        return 0.0
    stripped = _NUMBER_STRIP_RE.sub("", str(value))
    if not stripped:
        return 0.0
    try:
        return float(stripped)
    except ValueError:
        return 0.0


def serial_to_datetime(serial: float) -> datetime:
    """Convert a spreadsheet serial day number (fraction = time of day)."""
    dt = SERIAL_EPOCH + timedelta(days=serial - SERIAL_LEAP_CORRECTION)
    return _round_seconds(dt)


def _round_seconds(dt: datetime) -> datetime:
    if dt.microsecond >= 500_000:
        dt += timedelta(seconds=1)
    return dt.replace(microsecond=0)


def _as_serial(value: Any) -> float | None:
    if isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        number = float(value)
    elif isinstance(value, str):
        try:
            number = float(value.strip())
        except ValueError:
            return None
    else:
        return None
    if pd.isna(number) or number <= SERIAL_MIN:
        return None
    return number


def _parse_slash(text: str) -> datetime | None:
    m = _SLASH_DATE_RE.match(text)
    if m is None:
        return None
    first, second, year = int(m.group(1)), int(m.group(2)), int(m.group(3))
    if year < 100:
        year += 2000
    hour, minute, second_ = (int(m.group(i) or 0) for i in (4, 5, 6))
    # Day-month-year first, month-day-year when that is not a real date
    for day, month in ((first, second), (second, first)):
        try:
            return datetime(year, month, day, hour, minute, second_)
        except ValueError:
            continue
    return None


def _parse_generic(text: str) -> datetime | None:
    try:
        parsed = pd.to_datetime(text, errors="coerce")
    except (ValueError, TypeError, OverflowError):
        return None
    if parsed is None or pd.isna(parsed):
        return None
    if parsed.tzinfo is not None:
        parsed = parsed.tz_convert(None)
    return _round_seconds(parsed.to_pydatetime())


def _to_datetime(value: Any) -> datetime | None:
    # NaT is a datetime subclass; catch it before the isinstance checks
    if value is None or value is pd.NaT:
        return None
    if isinstance(value, pd.Timestamp):
        return None if pd.isna(value) else _round_seconds(value.to_pydatetime())
    if isinstance(value, datetime):
        return _round_seconds(value)
    if isinstance(value, date):
        return datetime.combine(value, time())

    serial = _as_serial(value)
    if serial is not None:
        try:
            return serial_to_datetime(serial)
        except OverflowError:
            return None

    text = clean_string(value)
    if text is None:
        return None
    if "/" in text:
        parsed = _parse_slash(text)
        if parsed is not None:
            return parsed
    return _parse_generic(text)


def clean_date(value: Any) -> date | None:
    """Clean a date cell; the time of day, if any, is dropped."""
    dt = _to_datetime(value)
    return dt.date() if dt is not None else None


def clean_datetime(value: Any) -> datetime | None:
    """Clean a timestamp cell, keeping the time of day."""
    return _to_datetime(value)
