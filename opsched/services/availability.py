"""Availability parsing and matching, shared by conflict detection and scoring."""

from __future__ import annotations

from typing import Any, Dict, List, Mapping, Optional, Tuple

import pandas as pd

from opsched.timeplan import DAY_KEYS, day_key, minutes_of_day, parse_time_string

Windows = List[Tuple[int, int]]

_DAY_ALIASES = {
    "sunday": "sun", "monday": "mon", "tuesday": "tue", "wednesday": "wed",
    "thursday": "thu", "friday": "fri", "saturday": "sat",
}


def _to_minutes(value: Any) -> int:
    t = parse_time_string(value, end_of_day=True)
    if t.hour == 23 and t.minute == 59 and t.second == 59:
        return 24 * 60
    return t.hour * 60 + t.minute


def parse_availability(raw: Any) -> Dict[str, Windows]:
    """
    Parse ``{"mon": [["09:00", "17:00"], ...], ...}`` into minute windows per day.

    A window whose end is at or before its start wraps past midnight.

    Raises:
        ValueError: If the structure or any time string is malformed
    """
    if raw is None:
        return {}
    if not isinstance(raw, Mapping):
        raise ValueError(f"availability rules must be a mapping, got {type(raw).__name__}")

    parsed: Dict[str, Windows] = {}
    for key, slots in raw.items():
        day = _DAY_ALIASES.get(str(key).strip().lower(), str(key).strip().lower())
        if day not in DAY_KEYS:
            raise ValueError(f"Unknown day key in availability: {key!r}")
        if slots is None:
            continue
        if not isinstance(slots, (list, tuple)):
            raise ValueError(f"availability for {key!r} must be a list of [start, end] pairs")
        windows: Windows = []
        for slot in slots:
            if not isinstance(slot, (list, tuple)) or len(slot) != 2:
                raise ValueError(f"availability slot must be [start, end], got {slot!r}")
            start, end = _to_minutes(slot[0]), _to_minutes(slot[1])
            if end <= start:
                end += 24 * 60
            windows.append((start, end))
        parsed[day] = windows
    return parsed


def covers(windows: Windows, start_minute: int, end_minute: int) -> bool:
    """True if one window fully contains [start_minute, end_minute]."""
    return any(ws <= start_minute and end_minute <= we for ws, we in windows)


def shift_fits(rules: Mapping[str, Windows], start_at: pd.Timestamp, end_at: pd.Timestamp) -> Optional[bool]:
    """
    Check a shift against parsed availability for its start weekday.

    Returns:
        None when no windows are declared for that weekday (no preference),
        otherwise whether a window contains the whole shift
    """
    windows = rules.get(day_key(start_at)) or []
    if not windows:
        return None
    start_minute = minutes_of_day(start_at)
    duration = int((end_at - start_at).total_seconds() // 60)
    return covers(windows, start_minute, start_minute + duration)
