"""Labor-rule evaluation of a single proposed assignment.

Unlike candidate scoring this produces no number: it answers whether the
assignment is allowed (``blocks``) and what a scheduler should be told about
it (``warnings``), using codes that a UI can translate.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Iterable, List, Optional

from opsched.config import LaborRules
from opsched.domain.entities import (
    Conflict,
    ConflictType,
    EmployeeProfile,
    ExistingAssignment,
    ShiftCandidate,
)
from opsched.services.availability import parse_availability, shift_fits
from opsched.services.scoring import blocking_conflicts, weekly_hours

logger = logging.getLogger(__name__)


@dataclass
class RuleResult:
    eligible: bool = True
    warnings: List[str] = field(default_factory=list)
    blocks: List[str] = field(default_factory=list)
    conflicts: List[Conflict] = field(default_factory=list)
    projected_weekly_hours: float = 0.0
    projected_overtime_hours: float = 0.0

    def block(self, code: str) -> None:
        if code not in self.blocks:
            self.blocks.append(code)
        self.eligible = False


def _daily_hours(employee_id, shift: ShiftCandidate, assignments: List[ExistingAssignment]) -> float:
    day = shift.start_at.date()
    total = shift.hours
    for a in assignments:
        if a.employee_id != employee_id or a.shift_id == shift.id:
            continue
        if a.start_at.tz_convert(shift.start_at.tz).date() == day:
            total += (a.end_at - a.start_at).total_seconds() / 3600.0
    return total


def evaluate_assignment(
    employee: EmployeeProfile,
    shift: ShiftCandidate,
    existing: Iterable[ExistingAssignment],
    labor_rules: Optional[LaborRules] = None,
) -> RuleResult:
    """
    Check a proposed employee-to-shift assignment against labor rules.

    Blocks: missing required skills, overlap, insufficient rest.
    Warnings: outside declared availability, weekly overtime, daily maximum.

    Args:
        employee: Employee being assigned
        shift: Target shift
        existing: The employee's current assignments (others are ignored)
        labor_rules: Limits; defaults apply when omitted

    Returns:
        RuleResult with projected weekly and overtime hours filled in
    """
    rules = labor_rules or LaborRules()
    assignments = list(existing)
    result = RuleResult()

    # 1. Skills
    have = set(employee.skills or ())
    missing = [s for s in shift.required_skills if s not in have]
    if missing:
        result.block(f"LACK_SKILL_{'_'.join(missing)}")

    # 2. Overlap and rest
    for conflict in blocking_conflicts(employee, shift, assignments, rules):
        result.conflicts.append(conflict)
        if conflict.type is ConflictType.OVERLAP:
            result.block("OVERLAP_EXISTING_SHIFT")
        else:
            result.block(f"REST_VIOLATION_{rules.min_rest_hours:g}H")

    # 3. Availability
    try:
        fits = shift_fits(parse_availability(employee.availability_rules), shift.start_at, shift.end_at)
    except ValueError as e:
        logger.warning("Employee %s has malformed availability: %s", employee.id, e)
        fits = None
    if fits is False:
        result.warnings.append("OUTSIDE_AVAILABILITY_WINDOW")
        result.conflicts.append(Conflict(
            type=ConflictType.AVAILABILITY,
            message="Outside employee's preferred availability",
            shift_ids=(shift.id,),
        ))

    # 4. Weekly hours and overtime forecast
    projected = weekly_hours(employee.id, shift, assignments) + shift.hours
    result.projected_weekly_hours = projected
    if projected > rules.max_hours_week:
        overtime = projected - rules.max_hours_week
        result.projected_overtime_hours = overtime
        result.warnings.append(f"OVERTIME_FORECAST_{overtime:g}H")
        result.conflicts.append(Conflict(
            type=ConflictType.OVERTIME,
            message=f"Will exceed {rules.max_hours_week:g}h limit ({projected:g}h total)",
            shift_ids=(shift.id,),
        ))

    # 5. Daily maximum
    daily = _daily_hours(employee.id, shift, assignments)
    if daily > rules.max_hours_day:
        result.warnings.append(f"DAILY_MAX_EXCEEDED_{daily - rules.max_hours_day:g}H")

    return result
