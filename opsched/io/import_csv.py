"""CSV import utilities to load staff and existing assignments into the database."""

from __future__ import annotations

import json
import logging
import re
from pathlib import Path
from typing import Any, List, Optional

import pandas as pd
from sqlalchemy.orm import Session

from opsched.domain.models import Assignment, Employee, EmployeeDepartment, Shift
from opsched.domain.repositories import AssignmentRepository, DepartmentRepository, EmployeeRepository
from opsched.timeplan import as_timestamp, to_utc_naive

logger = logging.getLogger(__name__)


def _split_list(raw: Any) -> List[str]:
    """Split a ``;`` or ``,`` separated cell into stripped, non-empty values."""
    if raw is None or (isinstance(raw, float) and pd.isna(raw)):
        return []
    return [part.strip() for part in re.split(r"[;,]", str(raw)) if part.strip()]


def _parse_availability(raw: Any, record: str) -> Optional[Any]:
    if raw is None or (isinstance(raw, float) and pd.isna(raw)) or str(raw).strip() == "":
        return None
    try:
        return json.loads(raw)
    except json.JSONDecodeError:
        # keep the employee; the scorer treats unreadable availability as none declared
        logger.warning("Unreadable availability JSON for employee %s, storing none", record)
        return None


def import_employees_csv(session: Session, csv_path: str | Path) -> int:
    """
    Import employees from CSV into database.

    Expected columns: employee_id, display_name, skills, seniority_rank,
    departments, availability (JSON), active. Only employee_id and
    display_name are required.

    Args:
        session: Database session
        csv_path: Path to employees CSV

    Returns:
        Number of employees imported
    """
    df = pd.read_csv(csv_path, dtype={"skills": str, "departments": str, "availability": str})

    # Normalize column names
    df.columns = df.columns.str.lower().str.strip()
    for required in ("employee_id", "display_name"):
        if required not in df.columns:
            raise ValueError(f"Required column '{required}' not found in {csv_path}")

    employees = []
    for _, row in df.iterrows():
        emp_id = int(row["employee_id"])
        rank = row.get("seniority_rank")
        active = row.get("active")
        emp = Employee(
            employee_id=emp_id,
            display_name=str(row["display_name"]),
            skills=_split_list(row.get("skills")),
            seniority_rank=float(rank) if pd.notna(rank) else None,
            availability_rules=_parse_availability(row.get("availability"), str(emp_id)),
            active=str(active).strip().upper() not in ("FALSE", "F", "0", "NO") if pd.notna(active) else True,
        )
        for dept in _split_list(row.get("departments")):
            department = DepartmentRepository.get_or_create(session, int(dept))
            emp.departments.append(EmployeeDepartment(department_id=department.id))
        employees.append(emp)

    # Bulk insert
    EmployeeRepository.bulk_create(session, employees)

    logger.info("Imported %d employees from %s", len(employees), csv_path)
    return len(employees)


def import_assignments_csv(session: Session, csv_path: str | Path) -> int:
    """
    Import existing assignments. Shifts referenced by ``shift_id`` are created if missing.

    Expected columns: employee_id, shift_id, start_at, end_at (ISO-8601 with
    offset), optional name and department_id.

    Returns:
        Number of assignments imported
    """
    df = pd.read_csv(csv_path)
    df.columns = df.columns.str.lower().str.strip()

    assignments = []
    for _, row in df.iterrows():
        shift_id = int(row["shift_id"])
        shift = session.get(Shift, shift_id)
        if shift is None:
            dept = row.get("department_id")
            shift = Shift(
                id=shift_id,
                name=str(row["name"]) if pd.notna(row.get("name")) else None,
                department_id=int(dept) if pd.notna(dept) else None,
                start_at=to_utc_naive(as_timestamp(row["start_at"])),
                end_at=to_utc_naive(as_timestamp(row["end_at"])),
            )
            session.add(shift)
            session.flush()
        assignments.append(Assignment(shift_id=shift_id, employee_id=int(row["employee_id"]), status="assigned"))

    AssignmentRepository.bulk_create(session, assignments)
    logger.info("Imported %d assignments from %s", len(assignments), csv_path)
    return len(assignments)
