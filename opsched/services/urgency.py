"""Urgency scoring for pending work items."""

from __future__ import annotations

import math
from typing import Optional

from opsched.config import UrgencyWeights
from opsched.errors import ContractViolation
from opsched.timeplan import TimestampLike, as_timestamp

LEVEL_THRESHOLDS = (
    (0.8, "critical"),
    (0.6, "high"),
    (0.4, "medium"),
)


def time_decay(minutes_until_due: float) -> float:
    """Logistic ramp towards due time; ~0.97 at the due instant, flat once overdue."""
    minutes = max(0.0, minutes_until_due)
    return 1.0 / (1.0 + math.exp(0.02 * (minutes - 180.0)))


def criticality_factor(criticality: int) -> float:
    """Map criticality 1-5 onto 0.2-1.0."""
    if isinstance(criticality, bool) or not isinstance(criticality, (int, float)):
        raise ContractViolation(f"criticality must be a number, got {criticality!r}")
    if criticality < 1 or criticality > 5:
        raise ContractViolation(f"criticality must be within 1-5, got {criticality}")
    return criticality * 0.2


def window_pressure(now, window_start=None, window_end=None) -> float:
    """How far ``now`` has progressed through the item's window, in [0, 1]."""
    if window_end is None:
        return 0.0
    if window_start is not None and window_end > window_start:
        elapsed = (now - window_start).total_seconds() / (window_end - window_start).total_seconds()
        return min(1.0, max(0.0, elapsed))
    # only an end: last half hour counts as full pressure
    minutes_left = (window_end - now).total_seconds() / 60.0
    return 1.0 if minutes_left <= 30.0 else 0.0


def score(
    criticality: int,
    due_at: TimestampLike,
    now: TimestampLike,
    window_start: Optional[TimestampLike] = None,
    window_end: Optional[TimestampLike] = None,
    weights: Optional[UrgencyWeights] = None,
) -> float:
    """
    Compute a normalised urgency score in [0, 1].

    The score blends time proximity, criticality and window pressure. Once an
    item is past due it is lifted to at least ``overdue_floor`` and then closes
    the remaining gap to 1.0 exponentially, so it approaches but never exceeds 1.

    Raises:
        ContractViolation: For criticality outside 1-5 or naive timestamps
    """
    w = weights or UrgencyWeights()
    crit = criticality_factor(criticality)
    due = as_timestamp(due_at)
    now_ts = as_timestamp(now)
    start = as_timestamp(window_start) if window_start is not None else None
    end = as_timestamp(window_end) if window_end is not None else None

    minutes_until_due = (due - now_ts).total_seconds() / 60.0
    base = (
        w.time * time_decay(minutes_until_due)
        + w.criticality * crit
        + w.window * window_pressure(now_ts, start, end)
    )

    if minutes_until_due < 0:
        floor = max(w.overdue_floor, base)
        overdue_minutes = -minutes_until_due
        closed = 1.0 - math.pow(0.5, overdue_minutes / w.overdue_halflife_minutes)
        base = floor + (1.0 - floor) * closed

    return min(1.0, max(0.0, base))


def urgency_level(value: float) -> str:
    for threshold, level in LEVEL_THRESHOLDS:
        if value >= threshold:
            return level
    return "low"
