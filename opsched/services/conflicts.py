"""Conflict detection across a set of assigned shifts."""

from __future__ import annotations

import logging
from collections import defaultdict
from typing import Any, Dict, Iterable, List, Mapping, Optional, Tuple

from opsched.config import LaborRules
from opsched.domain.entities import Conflict, ConflictType, Severity, ShiftInstance
from opsched.services.availability import parse_availability, shift_fits
from opsched.timeplan import iso_week_key

logger = logging.getLogger(__name__)

SEVERITY_BY_TYPE: Dict[ConflictType, Severity] = {
    ConflictType.OVERLAP: Severity.CRITICAL,
    ConflictType.REST_VIOLATION: Severity.CRITICAL,
    ConflictType.OVERTIME: Severity.WARNING,
    ConflictType.AVAILABILITY: Severity.WARNING,
}

def classify_severity(conflict_type: ConflictType | str) -> Severity:
    """Critical for overlap/rest_violation, warning for overtime/availability."""
    return SEVERITY_BY_TYPE[ConflictType(conflict_type)]


def group_by_severity(conflicts: Iterable[Conflict]) -> Dict[Severity, List[Conflict]]:
    grouped: Dict[Severity, List[Conflict]] = {Severity.CRITICAL: [], Severity.WARNING: []}
    for conflict in conflicts:
        grouped[classify_severity(conflict.type)].append(conflict)
    return grouped


def is_blocking(conflict: Conflict) -> bool:
    return classify_severity(conflict.type) is Severity.CRITICAL


def _label(shift: ShiftInstance) -> str:
    return shift.employee_name or "employee"


def _overlap(first: ShiftInstance, second: ShiftInstance) -> Conflict:
    return Conflict(
        type=ConflictType.OVERLAP,
        message=f"Shift overlap detected for {_label(first)}",
        shift_ids=(first.id, second.id),
    )


def _rest_violation(earlier: ShiftInstance, later: ShiftInstance, gap_hours: float, min_rest_hours: float) -> Conflict:
    return Conflict(
        type=ConflictType.REST_VIOLATION,
        message=(
            f"Less than {min_rest_hours:g} hours rest between shifts for {_label(earlier)} "
            f"({gap_hours:.1f}h)"
        ),
        shift_ids=(earlier.id, later.id),
    )


def find_overlaps(shifts: List[ShiftInstance]) -> List[Conflict]:
    """Every pair of shifts whose [start, end) intervals intersect. ``shifts`` must be sorted by start."""
    found: List[Conflict] = []
    for i, current in enumerate(shifts):
        for other in shifts[i + 1:]:
            if other.start_at >= current.end_at:
                break
            found.append(_overlap(current, other))
    return found


def find_rest_violations(shifts: List[ShiftInstance], min_rest_hours: float) -> List[Conflict]:
    """Consecutive shifts (sorted by start) separated by a positive gap shorter than the minimum rest."""
    found: List[Conflict] = []
    for current, following in zip(shifts, shifts[1:]):
        gap_hours = (following.start_at - current.end_at).total_seconds() / 3600.0
        if 0 < gap_hours < min_rest_hours:
            found.append(_rest_violation(current, following, gap_hours, min_rest_hours))
    return found


def find_conflicts_with(
    target: ShiftInstance,
    others: Iterable[ShiftInstance],
    min_rest_hours: float,
) -> List[Conflict]:
    """
    Overlap and rest conflicts between one shift and each of the others.

    Every other shift is compared with the target directly, so a short shift
    nested inside a long one cannot hide the long one's end.
    """
    found: List[Conflict] = []
    for other in sorted(others, key=lambda s: (s.start_at, s.end_at)):
        if other.start_at < target.end_at and target.start_at < other.end_at:
            first, second = (other, target) if other.start_at <= target.start_at else (target, other)
            found.append(_overlap(first, second))
            continue
        if other.end_at <= target.start_at:
            earlier, later = other, target
        else:
            earlier, later = target, other
        gap_hours = (later.start_at - earlier.end_at).total_seconds() / 3600.0
        if 0 < gap_hours < min_rest_hours:
            found.append(_rest_violation(earlier, later, gap_hours, min_rest_hours))
    return found


def find_overtime(shifts: List[ShiftInstance], max_hours_week: float) -> List[Conflict]:
    """One conflict per ISO week (of shift start) whose total hours exceed the weekly limit."""
    by_week: Dict[Tuple[int, int], List[ShiftInstance]] = defaultdict(list)
    for shift in shifts:
        by_week[iso_week_key(shift.start_at)].append(shift)

    found: List[Conflict] = []
    for (year, week), week_shifts in sorted(by_week.items()):
        total = sum(s.hours for s in week_shifts)
        if total > max_hours_week:
            found.append(Conflict(
                type=ConflictType.OVERTIME,
                message=(
                    f"Employee scheduled for {total:.1f} hours in {year}-W{week:02d} "
                    f"(exceeds {max_hours_week:g} hours)"
                ),
                shift_ids=tuple(s.id for s in week_shifts),
            ))
    return found


def find_availability_mismatches(shifts: List[ShiftInstance], raw_rules: Any) -> List[Conflict]:
    """Shifts outside the declared windows for their weekday. Days without windows are not checked."""
    try:
        rules = parse_availability(raw_rules)
    except ValueError as e:
        logger.warning("Ignoring malformed availability rules: %s", e)
        return []

    found: List[Conflict] = []
    for shift in shifts:
        if shift_fits(rules, shift.start_at, shift.end_at) is False:
            found.append(Conflict(
                type=ConflictType.AVAILABILITY,
                message=f"Shift outside employee availability on {shift.start_at.date().isoformat()}",
                shift_ids=(shift.id,),
            ))
    return found


def detect(
    shifts: Iterable[ShiftInstance],
    availability: Optional[Mapping[Any, Any]] = None,
    timezone: Optional[str] = None,
    labor_rules: Optional[LaborRules] = None,
) -> Dict[Any, List[Conflict]]:
    """
    Detect conflicts per employee.

    Args:
        shifts: Shift instances; those without an employee_id are ignored
        availability: Optional employee_id -> raw availability rules. Employees
            missing from the map are not checked for availability.
        timezone: Canonical timezone for weekday/week computations. Defaults to
            the timezone the timestamps already carry.
        labor_rules: Rest and weekly-hours limits (defaults: 8h rest, 40h/week)

    Returns:
        employee_id -> list of conflicts, ordered overlap, rest_violation,
        overtime, availability. Every employee with shifts has an entry.
    """
    rules = labor_rules or LaborRules()

    by_employee: Dict[Any, List[ShiftInstance]] = defaultdict(list)
    for shift in shifts:
        if shift.employee_id is None:
            continue
        if timezone is not None:
            shift = ShiftInstance(
                id=shift.id,
                start_at=shift.start_at.tz_convert(timezone),
                end_at=shift.end_at.tz_convert(timezone),
                employee_id=shift.employee_id,
                employee_name=shift.employee_name,
            )
        by_employee[shift.employee_id].append(shift)

    detected: Dict[Any, List[Conflict]] = {}
    for employee_id, emp_shifts in by_employee.items():
        ordered = sorted(emp_shifts, key=lambda s: (s.start_at, s.end_at))
        conflicts: List[Conflict] = []
        conflicts.extend(find_overlaps(ordered))
        conflicts.extend(find_rest_violations(ordered, rules.min_rest_hours))
        conflicts.extend(find_overtime(ordered, rules.max_hours_week))
        if availability is not None and availability.get(employee_id) is not None:
            conflicts.extend(find_availability_mismatches(ordered, availability[employee_id]))
        detected[employee_id] = conflicts

    return detected
