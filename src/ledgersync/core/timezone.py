"""Clock and date coercion utilities."""

from datetime import date, datetime
from typing import Any, Callable, Optional

import pytz
from dateutil import parser as date_parser

UTC = pytz.UTC

Clock = Callable[[], datetime]


def now_utc() -> datetime:
    """Return current time as an aware UTC datetime."""
    return datetime.now(UTC)


def to_utc(dt: datetime) -> datetime:
    """Convert a datetime to UTC, treating naive values as already UTC."""
    if dt.tzinfo is None:
        return UTC.localize(dt)
    return dt.astimezone(UTC)


def is_blank(value: Any) -> bool:
    """True for None, empty/whitespace strings and the literal string "null"."""
    if value is None:
        return True
    if isinstance(value, str):
        stripped = value.strip()
        return not stripped or stripped.lower() == "null"
    return False


def parse_datetime(value: Any) -> Optional[datetime]:
    """
    Parse a server timestamp into an aware UTC datetime.

    Accepts datetimes, dates (midnight), ISO strings and epoch milliseconds.
    Returns None for blank or unparseable input.
    """
    if is_blank(value):
        return None
    if isinstance(value, datetime):
        return to_utc(value)
    if isinstance(value, date):
        return UTC.localize(datetime(value.year, value.month, value.day))
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return datetime.fromtimestamp(value / 1000, UTC)
    try:
        return to_utc(date_parser.isoparse(str(value).strip()))
    except (ValueError, OverflowError):
        try:
            return to_utc(date_parser.parse(str(value).strip()))
        except (ValueError, OverflowError):
            return None


def to_date(value: Any) -> Optional[date]:
    """
    Reduce a date, datetime or date/datetime string to a date.

    "2024-03-01" and "2024-03-01T10:15:00Z" both yield date(2024, 3, 1).
    """
    if is_blank(value):
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    text = str(value).strip()
    if len(text) >= 10 and text[4] == "-" and text[7] == "-":
        try:
            return date.fromisoformat(text[:10])
        except ValueError:
            pass
    parsed = parse_datetime(text)
    return parsed.date() if parsed else None
