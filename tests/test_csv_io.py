"""Tests for CSV import/export functionality."""

from datetime import datetime

import pandas as pd
import pytest

from opsched.domain.entities import ComponentScores, RecommendationResult, ScoreResult
from opsched.domain.models import Assignment, Department, Shift, TaskInstance
from opsched.domain.repositories import EmployeeRepository
from opsched.io.export_csv import export_suggestions_csv, export_work_items_csv
from opsched.io.import_csv import import_assignments_csv, import_employees_csv


def test_import_employees_csv(db_session, tmp_path):
    """Test importing employees from CSV."""
    csv_content = '''employee_id,display_name,skills,seniority_rank,departments,availability,active
1001,Max Hayes,espresso;latte,7,1;2,"{""mon"": [[""09:00"", ""17:00""]]}",true
1002,Mia Stone,,3,2,,true
1003,Ben Park,grill,,,not json,false
'''
    csv_file = tmp_path / "employees.csv"
    csv_file.write_text(csv_content)

    count = import_employees_csv(db_session, csv_file)
    assert count == 3

    max_ = EmployeeRepository.get_by_id(db_session, 1001)
    assert max_.display_name == "Max Hayes"
    assert max_.skills == ["espresso", "latte"]
    assert max_.seniority_rank == 7.0
    assert sorted(m.department_id for m in max_.departments) == [1, 2]
    assert max_.availability_rules == {"mon": [["09:00", "17:00"]]}

    mia = EmployeeRepository.get_by_id(db_session, 1002)
    assert mia.skills == []
    assert mia.availability_rules is None

    ben = EmployeeRepository.get_by_id(db_session, 1003)
    assert ben.seniority_rank is None
    assert ben.availability_rules is None
    assert ben.active is False

    # departments are created on demand, once each
    assert db_session.query(Department).count() == 2
    assert [e.employee_id for e in EmployeeRepository.get_active(db_session, 2)] == [1001, 1002]


def test_import_employees_requires_columns(db_session, tmp_path):
    """Test a CSV without display_name is rejected."""
    csv_file = tmp_path / "employees.csv"
    csv_file.write_text("employee_id,skills\n1,espresso\n")
    with pytest.raises(ValueError):
        import_employees_csv(db_session, csv_file)


def test_import_assignments_csv(db_session, tmp_path):
    """Test assignments create missing shifts with UTC storage times."""
    db_session.add(Shift(id=5, start_at=datetime(2025, 3, 4, 9), end_at=datetime(2025, 3, 4, 17)))
    db_session.commit()

    csv_content = """employee_id,shift_id,start_at,end_at,name,department_id
1,5,2025-03-04T09:00:00+00:00,2025-03-04T17:00:00+00:00,,
1,6,2025-03-05T10:00:00+01:00,2025-03-05T18:00:00+01:00,Late,3
"""
    csv_file = tmp_path / "assignments.csv"
    csv_file.write_text(csv_content)

    count = import_assignments_csv(db_session, csv_file)
    assert count == 2
    assert db_session.query(Assignment).count() == 2

    created = db_session.get(Shift, 6)
    assert created.name == "Late"
    assert created.department_id == 3
    assert created.start_at == datetime(2025, 3, 5, 9, 0)


def test_export_suggestions_csv(tmp_path):
    """Test suggestions are written ranked with component columns."""
    result = RecommendationResult(
        shift_details={"id": 1},
        suggestions=[
            ScoreResult(2, 87, ComponentScores(20, 25, 20, 12, 10), employee_name="Ben"),
            ScoreResult(3, 0, ComponentScores(20, 25, 20, 15, 10), conflicts=["rest"], employee_name="Cy"),
        ],
    )
    out = tmp_path / "suggestions.csv"
    assert export_suggestions_csv(result, out) == 2

    df = pd.read_csv(out)
    assert list(df["rank"]) == [1, 2]
    assert list(df["employee_id"]) == [2, 3]
    assert list(df["score"]) == [87, 0]
    assert df.loc[1, "conflicts"] == "rest"


def test_export_work_items_csv(db_session, tmp_path):
    """Test pending work items are exported most urgent first."""
    db_session.add_all([
        TaskInstance(routine_id=1, area_id=1, due_at=datetime(2025, 3, 3, 8), criticality=3, urgency_score=0.3),
        TaskInstance(routine_id=1, area_id=2, due_at=datetime(2025, 3, 3, 9), criticality=5, urgency_score=0.9),
        TaskInstance(routine_id=1, area_id=3, due_at=datetime(2025, 3, 3, 7), criticality=1, status="done"),
    ])
    db_session.commit()

    out = tmp_path / "work_items.csv"
    assert export_work_items_csv(db_session, out, "Europe/Berlin") == 2

    df = pd.read_csv(out)
    assert list(df["area_id"]) == [2, 1]
    assert list(df["urgency_level"]) == ["critical", "low"]
    assert df.loc[0, "due_at"] == "2025-03-03T10:00:00+01:00"
