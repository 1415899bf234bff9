"""Tests for conflict detection and severity classification."""

from opsched.config import LaborRules
from opsched.domain.entities import Conflict, ConflictType, Severity, ShiftInstance
from opsched.services.conflicts import classify_severity, detect, group_by_severity, is_blocking


def _shift(shift_id, start, end, employee_id=1, name="Ana"):
    return ShiftInstance(
        id=shift_id,
        start_at=f"2025-03-{start}:00+00:00",
        end_at=f"2025-03-{end}:00+00:00",
        employee_id=employee_id,
        employee_name=name,
    )


def _types(conflicts):
    return [c.type for c in conflicts]


def test_overlap_detected():
    """Test two intersecting shifts produce an overlap conflict."""
    shifts = [_shift(1, "03T09:00", "03T17:00"), _shift(2, "03T16:00", "03T20:00")]
    result = detect(shifts)

    assert _types(result[1]) == [ConflictType.OVERLAP]
    assert result[1][0].shift_ids == (1, 2)
    assert "Ana" in result[1][0].message


def test_overlap_found_for_non_adjacent_pairs():
    """Test a long shift overlapping several later shifts reports each pair."""
    shifts = [
        _shift(1, "03T08:00", "03T20:00"),
        _shift(2, "03T09:00", "03T10:00"),
        _shift(3, "03T12:00", "03T13:00"),
    ]
    overlaps = [c for c in detect(shifts)[1] if c.type is ConflictType.OVERLAP]
    assert {c.shift_ids for c in overlaps} == {(1, 2), (1, 3)}


def test_rest_violation_detected():
    """Test a 4 hour gap between shifts is a rest violation."""
    shifts = [_shift(1, "03T06:00", "03T14:00"), _shift(2, "03T18:00", "03T22:00")]
    result = detect(shifts)
    assert _types(result[1]) == [ConflictType.REST_VIOLATION]


def test_back_to_back_shifts_are_not_conflicts():
    """Test a zero gap is neither overlap nor rest violation."""
    shifts = [_shift(1, "03T09:00", "03T13:00"), _shift(2, "03T13:00", "03T17:00")]
    assert detect(shifts)[1] == []


def test_rest_limit_configurable():
    """Test the minimum rest follows labor rules."""
    shifts = [_shift(1, "03T06:00", "03T14:00"), _shift(2, "03T23:00", "04T06:00")]
    assert detect(shifts)[1] == []
    strict = detect(shifts, labor_rules=LaborRules(min_rest_hours=11))
    assert _types(strict[1]) == [ConflictType.REST_VIOLATION]


def test_overtime_weekly():
    """Test more than 40 hours in one ISO week yields one overtime conflict."""
    shifts = [_shift(i, f"0{d}T08:00", f"0{d}T17:00") for i, d in enumerate(range(3, 8), start=1)]
    result = detect(shifts)

    assert _types(result[1]) == [ConflictType.OVERTIME]
    assert "45.0 hours" in result[1][0].message
    assert result[1][0].shift_ids == (1, 2, 3, 4, 5)


def test_overtime_split_by_iso_week():
    """Test hours in different ISO weeks are not summed together."""
    # Fri 7th to Mon 10th crosses the week boundary
    shifts = [
        _shift(1, "06T08:00", "06T20:00"),
        _shift(2, "07T08:00", "07T20:00"),
        _shift(3, "08T08:00", "08T20:00"),
        _shift(4, "10T08:00", "10T20:00"),
    ]
    assert detect(shifts)[1] == []


def test_availability_mismatch():
    """Test a shift outside the declared window for its weekday."""
    shifts = [_shift(1, "03T08:00", "03T12:00"), _shift(2, "04T08:00", "04T12:00")]
    availability = {1: {"mon": [["09:00", "17:00"]]}}
    result = detect(shifts, availability)

    # Tuesday has no windows declared, so only Monday is flagged
    assert _types(result[1]) == [ConflictType.AVAILABILITY]
    assert result[1][0].shift_ids == (1,)


def test_availability_skipped_without_rules():
    """Test missing or malformed availability never raises a conflict."""
    shifts = [_shift(1, "03T02:00", "03T04:00")]
    assert detect(shifts)[1] == []
    assert detect(shifts, {1: None})[1] == []
    assert detect(shifts, {1: {"mon": "all day"}})[1] == []
    assert detect(shifts, {2: {"mon": [["09:00", "17:00"]]}})[1] == []


def test_availability_uses_canonical_timezone():
    """Test weekday windows are read in the run timezone."""
    # 14:00-22:00 UTC is 09:00-17:00 in New York before DST starts
    shifts = [_shift(1, "03T14:00", "03T22:00")]
    availability = {1: {"monday": [["09:00", "17:00"]]}}

    assert detect(shifts, availability, timezone="America/New_York")[1] == []
    assert _types(detect(shifts, availability)[1]) == [ConflictType.AVAILABILITY]


def test_conflict_order_and_per_employee_split():
    """Test conflicts are listed overlap first, then rest, per employee."""
    shifts = [
        _shift(3, "03T22:00", "03T23:00"),
        _shift(1, "03T09:00", "03T17:00"),
        _shift(2, "03T16:00", "03T18:00"),
        _shift(4, "03T09:00", "03T17:00", employee_id=2, name="Ben"),
        ShiftInstance(id=5, start_at="2025-03-03T09:00:00+00:00", end_at="2025-03-03T17:00:00+00:00"),
    ]
    result = detect(shifts)

    assert set(result) == {1, 2}
    assert _types(result[1]) == [ConflictType.OVERLAP, ConflictType.REST_VIOLATION]
    assert result[2] == []


def test_severity_classification():
    """Test the fixed critical/warning split."""
    assert classify_severity(ConflictType.OVERLAP) is Severity.CRITICAL
    assert classify_severity("rest_violation") is Severity.CRITICAL
    assert classify_severity(ConflictType.OVERTIME) is Severity.WARNING
    assert classify_severity("availability") is Severity.WARNING


def test_group_by_severity():
    """Test grouping keeps both tiers and preserves order."""
    conflicts = [
        Conflict(ConflictType.OVERTIME, "too many hours", (1,)),
        Conflict(ConflictType.OVERLAP, "overlap", (1, 2)),
        Conflict(ConflictType.AVAILABILITY, "outside", (2,)),
    ]
    grouped = group_by_severity(conflicts)

    assert [c.message for c in grouped[Severity.CRITICAL]] == ["overlap"]
    assert [c.message for c in grouped[Severity.WARNING]] == ["too many hours", "outside"]
    assert is_blocking(conflicts[1])
    assert not is_blocking(conflicts[0])
    assert group_by_severity([]) == {Severity.CRITICAL: [], Severity.WARNING: []}
