"""Tests for labor-rule evaluation of a single assignment."""

import pytest

from opsched.config import LaborRules
from opsched.domain.entities import ConflictType, EmployeeProfile, ExistingAssignment, ShiftCandidate
from opsched.services.rules import evaluate_assignment


def _shift(start, end, skills=()):
    return ShiftCandidate(
        id=100,
        start_at=f"2025-03-{start}:00+00:00",
        end_at=f"2025-03-{end}:00+00:00",
        required_skills=skills,
    )


def _existing(shift_id, start, end):
    return ExistingAssignment(
        employee_id=1,
        shift_id=shift_id,
        start_at=f"2025-03-{start}:00+00:00",
        end_at=f"2025-03-{end}:00+00:00",
    )


def test_clean_assignment_is_eligible():
    """Test an assignment without issues has no blocks or warnings."""
    employee = EmployeeProfile(id=1, skills=("espresso",))
    result = evaluate_assignment(employee, _shift("03T09:00", "03T17:00", ("espresso",)), [])

    assert result.eligible
    assert result.blocks == []
    assert result.warnings == []
    assert result.projected_weekly_hours == 8.0
    assert result.projected_overtime_hours == 0.0


def test_missing_skill_blocks():
    """Test missing skills block with a code naming them."""
    employee = EmployeeProfile(id=1, skills=("espresso",))
    result = evaluate_assignment(employee, _shift("03T09:00", "03T17:00", ("espresso", "latte", "grill")), [])

    assert not result.eligible
    assert result.blocks == ["LACK_SKILL_latte_grill"]


def test_overlap_blocks():
    """Test an overlapping existing shift blocks."""
    result = evaluate_assignment(
        EmployeeProfile(id=1), _shift("03T09:00", "03T17:00"), [_existing(1, "03T16:00", "03T20:00")],
    )
    assert not result.eligible
    assert result.blocks == ["OVERLAP_EXISTING_SHIFT"]
    assert result.conflicts[0].type is ConflictType.OVERLAP


def test_rest_violation_blocks():
    """Test insufficient rest blocks, with the limit in the code."""
    shift = _shift("03T09:00", "03T17:00")
    existing = [_existing(1, "03T00:00", "03T05:00")]

    assert evaluate_assignment(EmployeeProfile(id=1), shift, existing).blocks == ["REST_VIOLATION_8H"]
    strict = evaluate_assignment(
        EmployeeProfile(id=1), shift, [_existing(1, "02T20:00", "02T23:00")], LaborRules(min_rest_hours=11),
    )
    assert strict.blocks == ["REST_VIOLATION_11H"]


def test_rest_violation_behind_nested_shift_blocks():
    """Test rest is measured from the latest end, not the latest start."""
    result = evaluate_assignment(
        EmployeeProfile(id=1),
        _shift("03T23:00", "04T05:00"),
        [_existing(1, "03T08:00", "03T20:00"), _existing(2, "03T09:00", "03T10:00")],
    )
    assert not result.eligible
    assert result.blocks == ["REST_VIOLATION_8H"]
    assert [c.shift_ids for c in result.conflicts] == [(1, 100)]


def test_outside_availability_warns():
    """Test availability is a warning, not a block."""
    employee = EmployeeProfile(id=1, availability_rules={"mon": [["12:00", "20:00"]]})
    result = evaluate_assignment(employee, _shift("03T09:00", "03T17:00"), [])

    assert result.eligible
    assert result.warnings == ["OUTSIDE_AVAILABILITY_WINDOW"]
    assert result.conflicts[0].type is ConflictType.AVAILABILITY


def test_malformed_availability_ignored():
    """Test unreadable availability produces neither warning nor error."""
    employee = EmployeeProfile(id=1, availability_rules=["09:00-17:00"])
    result = evaluate_assignment(employee, _shift("03T09:00", "03T17:00"), [])
    assert result.warnings == []


def test_overtime_forecast():
    """Test projected weekly hours above the limit warn with the overtime amount."""
    existing = [
        _existing(1, "04T08:00", "04T18:00"),
        _existing(2, "05T08:00", "05T18:00"),
        _existing(3, "06T08:00", "06T18:00"),
        _existing(4, "07T08:00", "07T13:00"),
    ]
    result = evaluate_assignment(EmployeeProfile(id=1), _shift("08T09:00", "08T17:00"), existing)

    assert result.eligible
    assert result.projected_weekly_hours == pytest.approx(43.0)
    assert result.projected_overtime_hours == pytest.approx(3.0)
    assert "OVERTIME_FORECAST_3H" in result.warnings


def test_daily_maximum():
    """Test more than the daily maximum on one day warns."""
    result = evaluate_assignment(
        EmployeeProfile(id=1), _shift("03T06:00", "03T18:00"), [_existing(1, "03T18:00", "03T20:00")],
    )
    assert result.eligible
    assert result.warnings == ["DAILY_MAX_EXCEEDED_2H"]


def test_other_employees_ignored():
    """Test assignments of other employees do not affect the result."""
    other = ExistingAssignment(
        employee_id=2, shift_id=9, start_at="2025-03-03T10:00:00+00:00", end_at="2025-03-03T12:00:00+00:00",
    )
    result = evaluate_assignment(EmployeeProfile(id=1), _shift("03T09:00", "03T17:00"), [other])
    assert result.eligible
    assert result.projected_weekly_hours == 8.0
