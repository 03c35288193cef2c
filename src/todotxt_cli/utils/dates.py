"""Date utilities for todo.txt dates.

todo.txt stores calendar dates only (``YYYY-MM-DD``), so everything here works
with ``datetime.date``. "Today" is resolved against an optional IANA timezone
so that date stamps follow the user's configured locale rather than UTC.
"""

import re
from datetime import date, datetime, timezone
from typing import Optional
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

DATE_FORMAT = "%Y-%m-%d"
DATE_RE = re.compile(r"^\d{4}-\d{2}-\d{2}$")


def now_local(tz_name: Optional[str] = None) -> datetime:
    """Return the current datetime in ``tz_name`` (system local time if None).

    Raises:
        ValueError: If ``tz_name`` is not a known timezone.
    """
    if tz_name is None:
        return datetime.now(timezone.utc).astimezone()
    try:
        return datetime.now(ZoneInfo(tz_name))
    except ZoneInfoNotFoundError as e:
        raise ValueError(f"Unknown timezone: {tz_name}") from e


def today(tz_name: Optional[str] = None) -> date:
    """Return today's date in ``tz_name`` (system local time if None)."""
    return now_local(tz_name).date()


def looks_like_date(token: str) -> bool:
    """Check whether a token has the ``YYYY-MM-DD`` shape, valid or not."""
    return bool(DATE_RE.match(token))


def parse_date(token: Optional[str]) -> Optional[date]:
    """Parse a ``YYYY-MM-DD`` token, returning None when it is not a real date."""
    if not token or not looks_like_date(token):
        return None
    try:
        return datetime.strptime(token, DATE_FORMAT).date()
    except ValueError:
        return None


def format_date(value: Optional[date]) -> Optional[str]:
    """Format a date as ``YYYY-MM-DD``."""
    if value is None:
        return None
    return value.strftime(DATE_FORMAT)
