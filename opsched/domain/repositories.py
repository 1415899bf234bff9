"""Repository classes for data access."""

from __future__ import annotations

from datetime import datetime
from typing import Dict, Iterable, List, Optional, Tuple

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from .models import (
    Assignment,
    Department,
    Employee,
    EmployeeDepartment,
    Routine,
    Shift,
    ShiftTemplate,
    TaskInstance,
)


class EmployeeRepository:
    """Repository for employee data access."""

    @staticmethod
    def get_all(session: Session) -> List[Employee]:
        """Get all employees."""
        return session.query(Employee).order_by(Employee.employee_id).all()

    @staticmethod
    def get_by_id(session: Session, employee_id: int) -> Optional[Employee]:
        """Get employee by ID."""
        return session.query(Employee).filter(Employee.employee_id == employee_id).first()

    @staticmethod
    def get_active(session: Session, department_id: Optional[int] = None) -> List[Employee]:
        """Get active employees, optionally only members of one department."""
        query = session.query(Employee).filter(Employee.active.is_(True))
        if department_id is not None:
            query = query.join(EmployeeDepartment).filter(EmployeeDepartment.department_id == department_id)
        return query.order_by(Employee.employee_id).all()

    @staticmethod
    def bulk_create(session: Session, employees: List[Employee]) -> None:
        """Create multiple employees."""
        session.add_all(employees)
        session.commit()


class DepartmentRepository:
    """Repository for department data access."""

    @staticmethod
    def get_or_create(session: Session, department_id: int, name: Optional[str] = None) -> Department:
        department = session.get(Department, department_id)
        if department is None:
            department = Department(id=department_id, name=name or f"Department {department_id}")
            session.add(department)
            session.flush()
        return department


class RoutineRepository:
    """Repository for routine data access."""

    @staticmethod
    def get_active(session: Session) -> List[Routine]:
        """Active, non-deprecated routines that carry a recurrence rule."""
        return (
            session.query(Routine)
            .filter(Routine.active.is_(True))
            .filter(Routine.is_deprecated.is_(False))
            .filter(Routine.recurrence.isnot(None))
            .order_by(Routine.id)
            .all()
        )


class TaskInstanceRepository:
    """Repository for task instance data access."""

    @staticmethod
    def find_by_key(session: Session, routine_id: int, area_id: int, due_at: datetime) -> Optional[TaskInstance]:
        return (
            session.query(TaskInstance)
            .filter(TaskInstance.routine_id == routine_id)
            .filter(TaskInstance.area_id == area_id)
            .filter(TaskInstance.due_at == due_at)
            .first()
        )

    @staticmethod
    def insert_if_absent(session: Session, instance: TaskInstance) -> bool:
        """
        Insert unless the (routine_id, area_id, due_at) key already exists.

        Returns:
            True if a row was created, False for a duplicate
        """
        existing = TaskInstanceRepository.find_by_key(
            session, instance.routine_id, instance.area_id, instance.due_at
        )
        if existing is not None:
            return False
        session.add(instance)
        try:
            session.commit()
        except IntegrityError:
            # lost a race with a concurrent run
            session.rollback()
            return False
        return True

    @staticmethod
    def get_pending(session: Session) -> List[TaskInstance]:
        return (
            session.query(TaskInstance)
            .filter(TaskInstance.status == "pending")
            .order_by(TaskInstance.due_at, TaskInstance.id)
            .all()
        )

    @staticmethod
    def get_by_routine(session: Session, routine_id: int) -> List[TaskInstance]:
        return (
            session.query(TaskInstance)
            .filter(TaskInstance.routine_id == routine_id)
            .order_by(TaskInstance.due_at, TaskInstance.area_id)
            .all()
        )

    @staticmethod
    def update_urgency(session: Session, scores: Dict[int, float]) -> int:
        """Set urgency_score for the given instance ids. Returns number of rows touched."""
        if not scores:
            return 0
        instances = session.query(TaskInstance).filter(TaskInstance.id.in_(list(scores))).all()
        for instance in instances:
            instance.urgency_score = scores[instance.id]
        session.commit()
        return len(instances)


class ShiftTemplateRepository:
    """Repository for shift template data access."""

    @staticmethod
    def get_active(session: Session) -> List[ShiftTemplate]:
        return (
            session.query(ShiftTemplate)
            .filter(ShiftTemplate.active.is_(True))
            .order_by(ShiftTemplate.id)
            .all()
        )


class ShiftRepository:
    """Repository for shift data access."""

    @staticmethod
    def get_by_id(session: Session, shift_id: int) -> Optional[Shift]:
        """Get shift by ID."""
        return session.get(Shift, shift_id)

    @staticmethod
    def get_by_template(session: Session, template_id: int) -> List[Shift]:
        return (
            session.query(Shift)
            .filter(Shift.template_id == template_id)
            .order_by(Shift.start_at)
            .all()
        )

    @staticmethod
    def insert_if_absent(session: Session, shift: Shift) -> bool:
        """Insert unless a shift from the same template already starts at the same time."""
        existing = (
            session.query(Shift.id)
            .filter(Shift.template_id == shift.template_id)
            .filter(Shift.start_at == shift.start_at)
            .first()
        )
        if existing is not None:
            return False
        session.add(shift)
        try:
            session.commit()
        except IntegrityError:
            session.rollback()
            return False
        return True


class AssignmentRepository:
    """Repository for assignment data access."""

    @staticmethod
    def get_in_range(
        session: Session,
        employee_ids: Iterable[int],
        start: datetime,
        end: datetime,
    ) -> List[Tuple[Assignment, Shift]]:
        """Active assignments of the given employees whose shift intersects [start, end)."""
        ids = list(employee_ids)
        if not ids:
            return []
        return (
            session.query(Assignment, Shift)
            .join(Shift, Assignment.shift_id == Shift.id)
            .filter(Assignment.employee_id.in_(ids))
            .filter(Assignment.status == "assigned")
            .filter(Shift.end_at > start)
            .filter(Shift.start_at < end)
            .order_by(Shift.start_at, Assignment.id)
            .all()
        )

    @staticmethod
    def bulk_create(session: Session, assignments: List[Assignment]) -> None:
        """Create multiple assignments."""
        session.add_all(assignments)
        session.commit()
