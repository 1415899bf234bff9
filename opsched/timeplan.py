"""Time helpers shared by the services: parsing, timezone handling, week math.

Every timestamp that enters a service is normalised to a tz-aware
``pd.Timestamp`` in the run's canonical timezone. Naive timestamps are
rejected, since there is no way to tell which zone they came from.
"""

from __future__ import annotations

from datetime import date, datetime, time, timedelta
from typing import Tuple, Union

import pandas as pd

from opsched.errors import ContractViolation

TimestampLike = Union[str, datetime, pd.Timestamp]

# 0 = Sunday, matching the days_of_week encoding used by recurrence rules
DAY_KEYS = ["sun", "mon", "tue", "wed", "thu", "fri", "sat"]


def parse_time_string(value: str, end_of_day: bool = False) -> time:
    """Parse ``HH:MM`` (or ``HH:MM:SS``) into a time.

    ``24:00`` is only accepted with ``end_of_day`` and maps to the last instant of the day.
    """
    parts = str(value).strip().split(":")
    if len(parts) not in (2, 3):
        raise ValueError(f"Invalid time of day '{value}', expected HH:MM")
    try:
        numbers = [int(p) for p in parts]
    except ValueError:
        raise ValueError(f"Invalid time of day '{value}', expected HH:MM") from None
    hour, minute = numbers[0], numbers[1]
    second = numbers[2] if len(numbers) == 3 else 0
    if end_of_day and hour == 24 and minute == 0 and second == 0:
        return time(23, 59, 59, 999999)
    if not (0 <= hour < 24 and 0 <= minute < 60 and 0 <= second < 60):
        raise ValueError(f"Time of day out of range: '{value}'")
    return time(hour, minute, second)


def ensure_timezone(tz: str) -> str:
    """Return ``tz`` unchanged if pandas knows it, else raise ContractViolation."""
    try:
        pd.Timestamp("2000-01-01").tz_localize(tz)
    except (KeyError, ValueError, TypeError, AttributeError):
        raise ContractViolation(f"Unknown timezone '{tz}'") from None
    return tz


def as_timestamp(value: TimestampLike, tz: str | None = None) -> pd.Timestamp:
    """
    Coerce a string/datetime into a tz-aware Timestamp.

    Args:
        value: ISO string, datetime or Timestamp. Must carry an offset.
        tz: Optional canonical timezone to convert into.

    Raises:
        ContractViolation: If the value is naive
    """
    ts = pd.Timestamp(value)
    if ts.tzinfo is None:
        raise ContractViolation(f"Timestamp '{value}' has no timezone")
    if tz is not None:
        ts = ts.tz_convert(tz)
    return ts


def localize(day: date, tod: time, tz: str) -> pd.Timestamp:
    """Wall-clock ``day`` + ``tod`` in ``tz``. DST gaps shift forward, folds take the first."""
    naive = pd.Timestamp(datetime.combine(day, tod))
    return naive.tz_localize(tz, ambiguous=True, nonexistent="shift_forward")


def local_date(value: TimestampLike | date, tz: str) -> date:
    """Calendar date of ``value`` in ``tz``; plain dates pass through."""
    if isinstance(value, date) and not isinstance(value, datetime):
        return value
    return as_timestamp(value, tz).date()


def to_utc_naive(value: TimestampLike) -> datetime:
    """Storage representation: naive datetime in UTC."""
    return as_timestamp(value, "UTC").tz_localize(None).to_pydatetime()


def from_utc_naive(value: datetime, tz: str = "UTC") -> pd.Timestamp:
    """Inverse of to_utc_naive."""
    ts = pd.Timestamp(value)
    if ts.tzinfo is None:
        ts = ts.tz_localize("UTC")
    return ts.tz_convert(tz)


def hours_between(start: TimestampLike, end: TimestampLike) -> float:
    return (as_timestamp(end) - as_timestamp(start)).total_seconds() / 3600.0


def weekday_index(d: date) -> int:
    """Day of week with Sunday = 0."""
    return (d.weekday() + 1) % 7


def day_key(ts: pd.Timestamp) -> str:
    return DAY_KEYS[weekday_index(ts.date())]


def iso_week_key(ts: pd.Timestamp) -> Tuple[int, int]:
    iso = ts.isocalendar()
    return iso[0], iso[1]


def week_bounds(ts: pd.Timestamp) -> Tuple[pd.Timestamp, pd.Timestamp]:
    """Monday 00:00 (inclusive) to next Monday 00:00 (exclusive) around ``ts``, in ts's zone."""
    monday = ts.date() - timedelta(days=ts.weekday())
    start = localize(monday, time(0, 0), str(ts.tz))
    end = localize(monday + timedelta(days=7), time(0, 0), str(ts.tz))
    return start, end


def minutes_of_day(ts: pd.Timestamp) -> int:
    return ts.hour * 60 + ts.minute
