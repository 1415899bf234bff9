"""Recurrence expansion: turn a rule plus a window into concrete due timestamps.

All functions here are pure. Output order is day-major, then the order of
``time_slots`` in the rule, so the same inputs always give the same sequence.
"""

from __future__ import annotations

from datetime import date, time, timedelta
from typing import Any, Callable, Dict, List, Mapping, Tuple, Union

import pandas as pd

from opsched.domain.entities import RecurrenceRule, RecurrenceType, ShiftTemplateSpec
from opsched.errors import ContractViolation
from opsched.timeplan import (
    TimestampLike,
    ensure_timezone,
    local_date,
    localize,
    parse_time_string,
    weekday_index,
)

RuleLike = Union[RecurrenceRule, Mapping[str, Any]]


def _always(rule: RecurrenceRule, day: date, reference: date) -> bool:
    return True


def _on_weekday(rule: RecurrenceRule, day: date, reference: date) -> bool:
    return weekday_index(day) in rule.days_of_week


def _on_week_interval(rule: RecurrenceRule, day: date, reference: date) -> bool:
    # floor division keeps days before the reference on the same grid
    weeks = (day - reference).days // 7
    return _on_weekday(rule, day, reference) and weeks % rule.interval_weeks == 0


def _on_day_of_month(rule: RecurrenceRule, day: date, reference: date) -> bool:
    # day_of_month=31 never matches in shorter months; callers rely on the skip
    return day.day == rule.day_of_month


_PREDICATES: Dict[RecurrenceType, Callable[[RecurrenceRule, date, date], bool]] = {
    RecurrenceType.DAILY: _always,
    RecurrenceType.WEEKLY: _on_weekday,
    RecurrenceType.CUSTOM_WEEKS: _on_week_interval,
    RecurrenceType.MONTHLY: _on_day_of_month,
}


def _coerce_rule(rule: RuleLike) -> RecurrenceRule:
    if isinstance(rule, RecurrenceRule):
        return rule
    return RecurrenceRule.from_dict(rule)


def _window_days(window_start, window_end, timezone: str) -> Tuple[date, date]:
    start_day = local_date(window_start, timezone)
    end_day = local_date(window_end, timezone)
    if end_day < start_day:
        raise ContractViolation(f"Window end {end_day} is before window start {start_day}")
    return start_day, end_day


def expand_timestamps(
    rule: RuleLike,
    window_start: TimestampLike | date,
    window_end: TimestampLike | date,
    timezone: str = "UTC",
) -> List[pd.Timestamp]:
    """
    Expand a recurrence rule into tz-aware due timestamps.

    Every day ``d`` in ``[window_start, window_end)`` (calendar days in ``timezone``)
    is tested against the rule; each matching day yields one timestamp per time slot.

    Args:
        rule: RecurrenceRule or its raw dict form
        window_start: First day of the window (date or tz-aware timestamp)
        window_end: Day after the last day of the window
        timezone: Canonical timezone for the run

    Returns:
        Due timestamps in ``timezone``

    Raises:
        InvalidRecurrenceRule: If a raw rule fails validation
        ContractViolation: For an unknown type, unknown timezone or inverted window
    """
    rule = _coerce_rule(rule)
    ensure_timezone(timezone)
    start_day, end_day = _window_days(window_start, window_end, timezone)
    slots = [parse_time_string(s) for s in rule.time_slots]

    if rule.type is RecurrenceType.ONEOFF:
        return [localize(start_day, slots[0], timezone)]

    predicate = _PREDICATES[rule.type]
    reference = rule.start_date or start_day

    due: List[pd.Timestamp] = []
    for stamp in pd.date_range(start_day, end_day, freq="D", inclusive="left"):
        day = stamp.date()
        if rule.end_date is not None and day > rule.end_date:
            break  # every later day is past the end as well
        if rule.start_date is not None and day < rule.start_date:
            continue
        if not predicate(rule, day, reference):
            continue
        for tod in slots:
            due.append(localize(day, tod, timezone))
    return due


def expand(
    rule: RuleLike,
    window_start: TimestampLike | date,
    window_end: TimestampLike | date,
    timezone: str = "UTC",
) -> List[str]:
    """Same as expand_timestamps but returns ISO-8601 strings with offsets."""
    return [ts.isoformat() for ts in expand_timestamps(rule, window_start, window_end, timezone)]


def expand_shift_template(
    template: ShiftTemplateSpec,
    window_start: TimestampLike | date,
    window_end: TimestampLike | date,
    timezone: str = "UTC",
) -> List[Tuple[pd.Timestamp, pd.Timestamp]]:
    """
    Generate (start_at, end_at) pairs for a weekly shift template.

    An end time at or before the start time means the shift runs past midnight.
    """
    ensure_timezone(timezone)
    start_day, end_day = _window_days(window_start, window_end, timezone)
    start_tod: time = parse_time_string(template.start_time)
    end_tod: time = parse_time_string(template.end_time)
    overnight = end_tod <= start_tod

    shifts: List[Tuple[pd.Timestamp, pd.Timestamp]] = []
    for stamp in pd.date_range(start_day, end_day, freq="D", inclusive="left"):
        day = stamp.date()
        if weekday_index(day) not in template.days_of_week:
            continue
        end_day_of_shift = day + timedelta(days=1) if overnight else day
        shifts.append((localize(day, start_tod, timezone), localize(end_day_of_shift, end_tod, timezone)))
    return shifts
