"""
Value coercion for filter conditions.

Nothing in here raises on bad input: numbers fall back to 0, dates and ranges
fall back to None and the caller decides what a missing value means.
"""
from __future__ import annotations
import math
import re
import datetime as dt
from decimal import Decimal
from typing import Any, Optional, Tuple, Union

Number = Union[int, float]

# Leading numeric prefix, the way a permissive float parse reads "12.5kg".
_FLOAT_PREFIX_RE = re.compile(r"^\s*([+-]?(?:\d+\.?\d*|\.\d+)(?:[eE][+-]?\d+)?)")
_INFINITY_RE = re.compile(r"^\s*([+-]?)Infinity")


def parse_number(value: Any) -> Number:
    if isinstance(value, bool):
        return int(value)
    if isinstance(value, (int, Decimal)):
        return value if isinstance(value, int) else float(value)
    if isinstance(value, float):
        return 0 if math.isnan(value) else value
    if isinstance(value, str):
        m = _FLOAT_PREFIX_RE.match(value)
        if m:
            return float(m.group(1))
        inf = _INFINITY_RE.match(value)
        if inf:
            return -math.inf if inf.group(1) == "-" else math.inf
    return 0


def _naive(value: dt.datetime) -> dt.datetime:
    # Stored timestamps are naive UTC.
    if value.tzinfo is not None:
        return value.astimezone(dt.timezone.utc).replace(tzinfo=None)
    return value


def parse_date(value: Any) -> Optional[dt.datetime]:
    """
    Accepts datetime/date objects, ISO-8601 strings (a trailing 'Z' is UTC) and
    epoch milliseconds. Returns None when the value cannot be read as a date.
    """
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, dt.datetime):
        return _naive(value)
    if isinstance(value, dt.date):
        return dt.datetime.combine(value, dt.time.min)
    if isinstance(value, (int, float)):
        if isinstance(value, float) and not math.isfinite(value):
            return None
        try:
            return dt.datetime.fromtimestamp(value / 1000, tz=dt.timezone.utc).replace(tzinfo=None)
        except (OverflowError, OSError, ValueError):
            return None
    if isinstance(value, str):
        s = value.strip()
        if not s:
            return None
        if s.endswith(("Z", "z")):
            s = s[:-1] + "+00:00"
        try:
            return _naive(dt.datetime.fromisoformat(s))
        except ValueError:
            return None
    return None


def range_pair(value: Any) -> Optional[Tuple[Any, Any]]:
    """Two-element list/tuple → (lo, hi); anything else → None."""
    if isinstance(value, (list, tuple)) and len(value) == 2:
        return value[0], value[1]
    return None


def today_window(today: Optional[dt.date] = None) -> Tuple[dt.datetime, dt.datetime]:
    """
    [start of day, start of next day) of the server-local calendar day,
    returned as naive UTC to compare against stored timestamps.
    """
    day = today or dt.date.today()
    start = dt.datetime.combine(day, dt.time.min).astimezone()
    end = dt.datetime.combine(day + dt.timedelta(days=1), dt.time.min).astimezone()
    return _naive(start), _naive(end)


__all__ = [
    "parse_number",
    "parse_date",
    "range_pair",
    "today_window",
]
