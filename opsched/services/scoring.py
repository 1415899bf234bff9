"""Weighted candidate scoring for filling an open shift.

Each component is bounded on its own; the total is their rounded sum (0-100
with the default weights). A candidate with an overlap or rest conflict
against the target shift is blocked and scores 0.
"""

from __future__ import annotations

import logging
import math
from typing import Any, Iterable, List, Optional, Tuple

from opsched.config import LaborRules, ScoringWeights
from opsched.domain.entities import (
    ComponentScores,
    Conflict,
    EmployeeProfile,
    ExistingAssignment,
    ScoreResult,
    ShiftCandidate,
    ShiftInstance,
)
from opsched.services.availability import parse_availability, shift_fits
from opsched.services.conflicts import find_conflicts_with
from opsched.timeplan import iso_week_key

logger = logging.getLogger(__name__)


def round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def score_availability(
    employee: EmployeeProfile,
    shift: ShiftCandidate,
    weights: ScoringWeights,
) -> Tuple[float, Optional[str]]:
    """
    Availability component.

    Returns full points when a declared window for the shift's weekday contains
    the whole shift, the "outside" value when windows exist for that day but none
    fits, and the "unknown" value when nothing is declared or the data is malformed.
    """
    try:
        rules = parse_availability(employee.availability_rules)
    except ValueError as e:
        logger.warning("Employee %s has malformed availability, treating as none: %s", employee.id, e)
        return weights.availability_unknown, None

    fits = shift_fits(rules, shift.start_at, shift.end_at)
    if fits is None:
        return weights.availability_unknown, None
    if fits:
        return weights.availability, None
    return weights.availability_outside, "Outside preferred availability"


def score_skills(
    employee: EmployeeProfile,
    shift: ShiftCandidate,
    weights: ScoringWeights,
) -> Tuple[float, Optional[str]]:
    required = list(shift.required_skills or ())
    if not required:
        return weights.skills, None
    have = set(employee.skills or ())
    matched = sum(1 for skill in required if skill in have)
    value = weights.skills * matched / len(required)
    if matched < len(required):
        return value, f"Missing {len(required) - matched} required skills"
    return value, None


def weekly_hours(
    employee_id: Any,
    shift: ShiftCandidate,
    assignments: Iterable[ExistingAssignment],
) -> float:
    """Hours already assigned to the employee in the shift's ISO week, not counting this shift."""
    week = iso_week_key(shift.start_at)
    total = 0.0
    for a in assignments:
        if a.employee_id != employee_id or a.shift_id == shift.id:
            continue
        if iso_week_key(a.start_at.tz_convert(shift.start_at.tz)) != week:
            continue
        total += (a.end_at - a.start_at).total_seconds() / 3600.0
    return total


def score_hours(
    projected_hours: float,
    labor_rules: LaborRules,
    weights: ScoringWeights,
) -> Tuple[float, Optional[str]]:
    if projected_hours > labor_rules.max_hours_week:
        return weights.hours_overtime, (
            f"Would exceed {labor_rules.max_hours_week:g}h/week ({projected_hours:.1f}h)"
        )
    if projected_hours > labor_rules.soft_hours_week:
        return weights.hours_near_cap, None
    return weights.hours, None


def score_seniority(seniority_rank: Optional[float], weights: ScoringWeights) -> float:
    rank = seniority_rank or 0.0
    if isinstance(rank, float) and math.isnan(rank):
        rank = 0.0
    return max(0.0, min(rank / weights.seniority_rank_scale * weights.seniority, weights.seniority))


def score_department(
    employee: EmployeeProfile,
    shift: ShiftCandidate,
    weights: ScoringWeights,
) -> Tuple[float, Optional[str]]:
    if shift.department_id is None:
        return weights.department, None
    if shift.department_id in (employee.department_ids or ()):
        return weights.department, None
    return 0.0, "Not in shift department"


def blocking_conflicts(
    employee: EmployeeProfile,
    shift: ShiftCandidate,
    assignments: Iterable[ExistingAssignment],
    labor_rules: LaborRules,
) -> List[Conflict]:
    """Overlap and rest conflicts between the target shift and the employee's other assignments."""
    placed = [
        ShiftInstance(
            id=a.shift_id,
            start_at=a.start_at,
            end_at=a.end_at,
            employee_id=employee.id,
            employee_name=employee.name or None,
        )
        for a in assignments
        if a.employee_id == employee.id and a.shift_id != shift.id
    ]
    target = ShiftInstance(
        id=shift.id,
        start_at=shift.start_at,
        end_at=shift.end_at,
        employee_id=employee.id,
        employee_name=employee.name or None,
    )
    return find_conflicts_with(target, placed, labor_rules.min_rest_hours)


def score_employee(
    employee: EmployeeProfile,
    shift: ShiftCandidate,
    week_assignments: Iterable[ExistingAssignment],
    weights: Optional[ScoringWeights] = None,
    labor_rules: Optional[LaborRules] = None,
    timezone: Optional[str] = None,
) -> ScoreResult:
    """
    Score one employee against one open shift.

    Args:
        employee: Candidate snapshot
        shift: Shift being filled
        week_assignments: Existing assignments (any employee; filtered here)
        weights: Component maxima and fallbacks
        labor_rules: Rest/overtime limits
        timezone: Canonical timezone for weekday and week boundaries

    Returns:
        ScoreResult; ``score`` is 0 when a blocking conflict exists
    """
    weights = weights or ScoringWeights()
    labor_rules = labor_rules or LaborRules()
    assignments = list(week_assignments)
    if timezone is not None:
        shift = ShiftCandidate(
            id=shift.id,
            start_at=shift.start_at.tz_convert(timezone),
            end_at=shift.end_at.tz_convert(timezone),
            department_id=shift.department_id,
            required_skills=shift.required_skills,
            name=shift.name,
        )

    warnings: List[str] = []
    components = ComponentScores()

    # 1. Availability
    components.availability, warning = score_availability(employee, shift, weights)
    if warning:
        warnings.append(warning)

    # 2. Skills
    components.skills, warning = score_skills(employee, shift, weights)
    if warning:
        warnings.append(warning)

    # 3. Hours balance
    projected = weekly_hours(employee.id, shift, assignments) + shift.hours
    components.hours, warning = score_hours(projected, labor_rules, weights)
    if warning:
        warnings.append(warning)

    # 4. Seniority
    components.seniority = score_seniority(employee.seniority_rank, weights)

    # 5. Department
    components.department, warning = score_department(employee, shift, weights)
    if warning:
        warnings.append(warning)

    conflicts = blocking_conflicts(employee, shift, assignments, labor_rules)

    return ScoreResult(
        employee_id=employee.id,
        employee_name=employee.name,
        score=0 if conflicts else round_half_up(components.total),
        component_scores=components,
        warnings=warnings,
        conflicts=[c.message for c in conflicts],
    )


def rank_candidates(results: Iterable[ScoreResult]) -> List[ScoreResult]:
    """Highest score first; blocked candidates after unblocked ones; ties by employee id."""
    return sorted(results, key=lambda r: (-r.score, r.blocked, r.employee_id))
