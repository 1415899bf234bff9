"""Tests for candidate scoring and ranking."""

import pytest

from opsched.config import LaborRules, ScoringWeights
from opsched.domain.entities import (
    ComponentScores,
    EmployeeProfile,
    ExistingAssignment,
    ScoreResult,
    ShiftCandidate,
)
from opsched.services.scoring import (
    rank_candidates,
    round_half_up,
    score_employee,
    score_seniority,
    weekly_hours,
)

# Monday 2025-03-03, 09:00-17:00 UTC
SHIFT = ShiftCandidate(id=100, start_at="2025-03-03T09:00:00+00:00", end_at="2025-03-03T17:00:00+00:00")


def _assignment(shift_id, start, end, employee_id=1):
    return ExistingAssignment(
        employee_id=employee_id,
        shift_id=shift_id,
        start_at=f"2025-03-{start}:00+00:00",
        end_at=f"2025-03-{end}:00+00:00",
    )


def test_baseline_score():
    """Test no availability, no skill or department requirement gives 20+25+20+seniority+10."""
    employee = EmployeeProfile(id=1, name="Ana", seniority_rank=4)
    result = score_employee(employee, SHIFT, [])

    components = result.component_scores
    assert components.availability == 20
    assert components.skills == 25
    assert components.hours == 20
    assert components.seniority == pytest.approx(6.0)
    assert components.department == 10
    assert result.score == 81
    assert result.warnings == []
    assert result.conflicts == []
    assert not result.blocked


def test_total_rounds_half_up():
    """Test the component sum is rounded half up."""
    employee = EmployeeProfile(id=1, seniority_rank=3)  # seniority 4.5
    assert score_employee(employee, SHIFT, []).score == 80
    assert round_half_up(79.5) == 80
    assert round_half_up(79.49) == 79


def test_rest_violation_blocks():
    """Test a shift ending 4 hours before the candidate forces score 0."""
    employee = EmployeeProfile(id=1, name="Ana", seniority_rank=10)
    existing = [_assignment(7, "03T00:00", "03T05:00")]
    result = score_employee(employee, SHIFT, existing)

    assert result.score == 0
    assert result.blocked
    assert len(result.conflicts) == 1
    assert "rest" in result.conflicts[0]
    # components are still reported
    assert result.component_scores.seniority == 15


def test_overlap_blocks():
    """Test an overlapping assignment blocks the candidate."""
    employee = EmployeeProfile(id=1, seniority_rank=10)
    result = score_employee(employee, SHIFT, [_assignment(7, "03T15:00", "03T20:00")])
    assert result.score == 0
    assert "overlap" in result.conflicts[0]


def test_rest_checked_against_every_assignment():
    """Test a short shift nested in a long one does not hide the long shift's end."""
    employee = EmployeeProfile(id=1, name="Ana", seniority_rank=10)
    shift = ShiftCandidate(id=100, start_at="2025-03-03T23:00:00+00:00", end_at="2025-03-04T05:00:00+00:00")
    existing = [_assignment(7, "03T08:00", "03T20:00"), _assignment(8, "03T09:00", "03T10:00")]
    result = score_employee(employee, shift, existing)

    assert result.score == 0
    assert result.blocked
    assert len(result.conflicts) == 1
    assert "(3.0h)" in result.conflicts[0]


def test_unrelated_assignments_do_not_block():
    """Test other employees' shifts and the same shift id are ignored."""
    employee = EmployeeProfile(id=1, seniority_rank=4)
    existing = [
        _assignment(7, "03T10:00", "03T12:00", employee_id=2),
        _assignment(100, "03T09:00", "03T17:00"),
        _assignment(8, "04T09:00", "04T17:00"),
    ]
    result = score_employee(employee, SHIFT, existing)
    assert result.score == 81
    assert not result.blocked


@pytest.mark.parametrize("rules,points,warned", [
    ({"mon": [["08:00", "18:00"]]}, 30, False),
    ({"mon": [["12:00", "18:00"]]}, 10, True),
    ({"tue": [["08:00", "18:00"]]}, 20, False),
    ({"mon": [["06:00", "08:00"], ["09:00", "24:00"]]}, 30, False),
    ({"mon": "whenever"}, 20, False),
    ("not a mapping", 20, False),
    ({"funday": [["08:00", "18:00"]]}, 20, False),
    (None, 20, False),
])
def test_availability_component(rules, points, warned):
    """Test availability points for containment, mismatch, no rules and malformed rules."""
    employee = EmployeeProfile(id=1, availability_rules=rules)
    result = score_employee(employee, SHIFT, [])

    assert result.component_scores.availability == points
    assert ("Outside preferred availability" in result.warnings) is warned


def test_overnight_availability_window():
    """Test a window ending past midnight covers a night shift."""
    night = ShiftCandidate(id=5, start_at="2025-03-07T23:00:00+00:00", end_at="2025-03-08T05:00:00+00:00")
    employee = EmployeeProfile(id=1, availability_rules={"fri": [["22:00", "06:00"]]})
    assert score_employee(employee, night, []).component_scores.availability == 30


def test_availability_in_canonical_timezone():
    """Test the weekday and time of day are taken in the run timezone."""
    employee = EmployeeProfile(id=1, availability_rules={"mon": [["10:00", "18:00"]]})
    assert score_employee(employee, SHIFT, []).component_scores.availability == 10
    assert score_employee(employee, SHIFT, [], timezone="Europe/Berlin").component_scores.availability == 30


def test_partial_skills():
    """Test partial skill coverage scales the component and warns."""
    shift = ShiftCandidate(
        id=100,
        start_at=SHIFT.start_at,
        end_at=SHIFT.end_at,
        required_skills=("espresso", "latte_art"),
    )
    employee = EmployeeProfile(id=1, skills=("espresso", "cashier"))
    result = score_employee(employee, shift, [])

    assert result.component_scores.skills == pytest.approx(12.5)
    assert "Missing 1 required skills" in result.warnings


def test_full_skills_no_warning():
    """Test full coverage gives full points."""
    shift = ShiftCandidate(id=100, start_at=SHIFT.start_at, end_at=SHIFT.end_at, required_skills=("espresso",))
    result = score_employee(EmployeeProfile(id=1, skills=("espresso",)), shift, [])
    assert result.component_scores.skills == 25
    assert result.warnings == []


def test_hours_near_cap():
    """Test projected hours above 35 drop the hours component to 15."""
    existing = [
        _assignment(1, "05T08:00", "05T18:00"),
        _assignment(2, "06T08:00", "06T18:00"),
        _assignment(3, "07T08:00", "07T18:00"),
    ]
    result = score_employee(EmployeeProfile(id=1), SHIFT, existing)
    assert result.component_scores.hours == 15
    assert result.warnings == []


def test_hours_overtime():
    """Test projected hours above 40 drop the hours component to 5 with a warning."""
    existing = [
        _assignment(1, "05T08:00", "05T18:00"),
        _assignment(2, "06T08:00", "06T18:00"),
        _assignment(3, "07T08:00", "07T18:00"),
        _assignment(4, "08T08:00", "08T13:00"),
    ]
    result = score_employee(EmployeeProfile(id=1), SHIFT, existing)
    assert result.component_scores.hours == 5
    assert "Would exceed 40h/week (43.0h)" in result.warnings


def test_weekly_hours_only_counts_same_iso_week():
    """Test assignments in the previous week are not counted."""
    existing = [
        _assignment(1, "02T08:00", "02T18:00"),  # Sunday, previous ISO week
        _assignment(2, "04T08:00", "04T12:00"),
    ]
    assert weekly_hours(1, SHIFT, existing) == 4.0


def test_department_mismatch():
    """Test an employee outside the shift department loses those points."""
    shift = ShiftCandidate(id=100, start_at=SHIFT.start_at, end_at=SHIFT.end_at, department_id=7)
    outsider = score_employee(EmployeeProfile(id=1, department_ids=(3,)), shift, [])
    member = score_employee(EmployeeProfile(id=2, department_ids=(3, 7)), shift, [])

    assert outsider.component_scores.department == 0
    assert "Not in shift department" in outsider.warnings
    assert member.component_scores.department == 10


def test_seniority_capped():
    """Test seniority is capped at the component maximum."""
    weights = ScoringWeights()
    assert score_seniority(25, weights) == 15
    assert score_seniority(None, weights) == 0
    assert score_seniority(float("nan"), weights) == 0


def test_custom_labor_rules():
    """Test a longer minimum rest blocks a gap the default allows."""
    employee = EmployeeProfile(id=1)
    existing = [_assignment(7, "02T20:00", "02T23:30")]  # 9.5h before the shift
    assert not score_employee(employee, SHIFT, existing).blocked
    assert score_employee(employee, SHIFT, existing, labor_rules=LaborRules(min_rest_hours=11)).blocked


def test_score_is_deterministic():
    """Test identical inputs give identical results."""
    employee = EmployeeProfile(id=1, skills=("a",), seniority_rank=7, availability_rules={"mon": [["08:00", "12:00"]]})
    existing = [_assignment(1, "05T08:00", "05T18:00")]
    assert score_employee(employee, SHIFT, existing) == score_employee(employee, SHIFT, existing)


def _result(employee_id, score, blocked=False):
    return ScoreResult(
        employee_id=employee_id,
        score=score,
        component_scores=ComponentScores(),
        conflicts=["conflict"] if blocked else [],
    )


def test_ranking_sorted_with_id_tie_break():
    """Test descending score with ties broken by employee id."""
    ranked = rank_candidates([_result(3, 70), _result(2, 81), _result(1, 81), _result(4, 90)])
    assert [r.employee_id for r in ranked] == [4, 1, 2, 3]


def test_blocked_never_outranks_unblocked():
    """Test blocked candidates sort after every candidate with a positive score."""
    ranked = rank_candidates([_result(1, 0, blocked=True), _result(2, 35), _result(3, 0, blocked=True)])
    assert [r.employee_id for r in ranked] == [2, 1, 3]
    assert all(r.score == 0 for r in ranked if r.blocked)
