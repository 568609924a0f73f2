"""Timestamp helpers and the temporal validity filter."""

from __future__ import annotations

import re
from datetime import date, datetime, time, timezone
from typing import Iterable, List, Union

from searchevals.models import SearchQuery

TimestampLike = Union[str, datetime, date]

_FRACTION = re.compile(r"(?<=\d\d:\d\d:\d\d)\.(\d+)")


def _as_utc(dt: datetime) -> datetime:
    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


def parse_timestamp(value: TimestampLike) -> datetime:
    """Parse an ISO-8601 timestamp into an aware UTC datetime.

    Accepts strings with a ``Z`` suffix or an explicit offset, date-only
    strings, and ``datetime``/``date`` objects (YAML loads unquoted
    timestamps as those). Naive values are taken to be UTC.

    Raises:
        ValueError: If the value is not a parseable timestamp.
    """
    if isinstance(value, datetime):
        return _as_utc(value)
    if isinstance(value, date):
        return datetime.combine(value, time.min, tzinfo=timezone.utc)
    if not isinstance(value, str):
        raise ValueError(f"Expected a timestamp string, got {type(value).__name__}")

    text = value.strip()
    if not text:
        raise ValueError("Empty timestamp")
    if text[-1] in "Zz":
        text = text[:-1] + "+00:00"
    # fromisoformat only takes 3 or 6 fractional digits before 3.11
    text = _FRACTION.sub(lambda m: "." + m.group(1)[:6].ljust(6, "0"), text, count=1)
    try:
        parsed = datetime.fromisoformat(text)
    except ValueError as e:
        raise ValueError(f"Invalid timestamp {value!r}") from e
    return _as_utc(parsed)


def format_timestamp(dt: datetime) -> str:
    """Render as ``YYYY-MM-DDTHH:MM:SS.mmmZ`` in UTC."""
    dt = _as_utc(dt)
    return f"{dt:%Y-%m-%dT%H:%M:%S}.{dt.microsecond // 1000:03d}Z"


def make_run_id(dt: datetime) -> str:
    """Filesystem-safe run id; sorts lexicographically in time order."""
    return format_timestamp(dt).replace(":", "-")


def is_runnable(query: SearchQuery, now: datetime) -> bool:
    """Return True if the query's ground truth holds at ``now``.

    Both bounds are inclusive. An explicit null ``valid_until`` never
    excludes a query by its upper bound.
    """
    if not query.is_temporal:
        return True

    now = _as_utc(now)
    if query.valid_from and now < parse_timestamp(query.valid_from):
        return False
    if query.valid_until and now > parse_timestamp(query.valid_until):
        return False
    return True


def filter_runnable(queries: Iterable[SearchQuery], now: datetime) -> List[SearchQuery]:
    """Keep the queries in window at a single shared ``now``."""
    return [q for q in queries if is_runnable(q, now)]
