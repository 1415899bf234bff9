"""Storage contracts used by the orchestration services, and a SQLAlchemy implementation.

The services only talk to the ``*Store`` protocols, so tests (or another
backend) can plug in anything with the same methods.
"""

from __future__ import annotations

import logging
from typing import Any, Iterable, List, Mapping, Optional, Protocol, Tuple

import pandas as pd
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from opsched.domain.entities import (
    EmployeeProfile,
    ExistingAssignment,
    InsertOutcome,
    RoutineSpec,
    ShiftCandidate,
    ShiftTemplateSpec,
    WorkItem,
    WorkItemStatus,
)
from opsched.domain.models import Employee, Routine, Shift, ShiftTemplate, TaskInstance
from opsched.domain.repositories import (
    AssignmentRepository,
    EmployeeRepository,
    RoutineRepository,
    ShiftRepository,
    ShiftTemplateRepository,
    TaskInstanceRepository,
)
from opsched.errors import ShiftNotFound, StorageError
from opsched.timeplan import from_utc_naive, to_utc_naive

logger = logging.getLogger(__name__)

WorkItemKey = Tuple[int, int, pd.Timestamp]


class MaterializationStore(Protocol):
    def list_active_routines(self) -> List[RoutineSpec]: ...

    def insert_work_item_if_absent(
        self, key: WorkItemKey, item: WorkItem, snapshot: Optional[Mapping[str, Any]] = None
    ) -> InsertOutcome: ...

    def list_active_shift_templates(self) -> List[ShiftTemplateSpec]: ...

    def insert_shift_if_absent(
        self, template: ShiftTemplateSpec, start_at: pd.Timestamp, end_at: pd.Timestamp
    ) -> InsertOutcome: ...

    def list_pending_work_items(self) -> List[WorkItem]: ...

    def update_urgency_scores(self, scores: Mapping[int, float]) -> int: ...


class RecommendationStore(Protocol):
    def get_shift(self, shift_id: Any) -> ShiftCandidate: ...

    def list_eligible_employees(self, department_id: Optional[Any]) -> List[EmployeeProfile]: ...

    def list_week_assignments(
        self, employee_ids: Iterable[Any], week_range: Tuple[pd.Timestamp, pd.Timestamp]
    ) -> List[ExistingAssignment]: ...


def routine_to_spec(routine: Routine) -> RoutineSpec:
    return RoutineSpec(
        id=routine.id,
        title=routine.title,
        criticality=routine.criticality,
        recurrence=routine.recurrence,
        area_ids=tuple(routine.area_ids or ()),
        department_id=routine.department_id,
        shift_id=routine.shift_id,
        location_id=routine.location_id,
        description=routine.description,
        est_minutes=routine.est_minutes,
    )


def template_to_spec(template: ShiftTemplate) -> ShiftTemplateSpec:
    return ShiftTemplateSpec(
        id=template.id,
        name=template.name,
        days_of_week=tuple(int(d) for d in template.days_of_week or ()),
        start_time=template.start_time,
        end_time=template.end_time,
        department_id=template.department_id,
        required_skills=tuple(template.required_skills or ()),
    )


def employee_to_profile(employee: Employee) -> EmployeeProfile:
    return EmployeeProfile(
        id=employee.employee_id,
        name=employee.display_name or "",
        skills=tuple(employee.skills or ()),
        seniority_rank=employee.seniority_rank or 0.0,
        department_ids=tuple(m.department_id for m in employee.departments),
        availability_rules=employee.availability_rules,
    )


def shift_to_candidate(shift: Shift, tz: str = "UTC") -> ShiftCandidate:
    return ShiftCandidate(
        id=shift.id,
        start_at=from_utc_naive(shift.start_at, tz),
        end_at=from_utc_naive(shift.end_at, tz),
        department_id=shift.department_id,
        required_skills=tuple(shift.required_skills or ()),
        name=shift.name or "",
    )


def instance_to_work_item(instance: TaskInstance, tz: str = "UTC") -> WorkItem:
    return WorkItem(
        id=instance.id,
        template_id=instance.routine_id,
        area_id=instance.area_id,
        due_at=from_utc_naive(instance.due_at, tz),
        window_start=from_utc_naive(instance.window_start, tz) if instance.window_start else None,
        window_end=from_utc_naive(instance.window_end, tz) if instance.window_end else None,
        criticality=instance.criticality,
        status=WorkItemStatus(instance.status),
        urgency_score=instance.urgency_score or 0.0,
    )


class SqlStore:
    """
    SQLAlchemy-backed store implementing both storage contracts.

    Every failure other than a duplicate key is re-raised as StorageError so
    the services can tell upstream problems from programming errors.
    """

    def __init__(self, session: Session, timezone: str = "UTC"):
        self.session = session
        self.timezone = timezone

    def _fail(self, action: str, exc: SQLAlchemyError) -> StorageError:
        self.session.rollback()
        return StorageError(f"{action} failed: {exc}")

    # -- materialization -------------------------------------------------

    def list_active_routines(self) -> List[RoutineSpec]:
        try:
            return [routine_to_spec(r) for r in RoutineRepository.get_active(self.session)]
        except SQLAlchemyError as e:
            raise self._fail("Fetching routines", e) from e

    def insert_work_item_if_absent(
        self,
        key: WorkItemKey,
        item: WorkItem,
        snapshot: Optional[Mapping[str, Any]] = None,
    ) -> InsertOutcome:
        routine_id, area_id, due_at = key
        instance = TaskInstance(
            routine_id=routine_id,
            area_id=area_id,
            due_at=to_utc_naive(due_at),
            window_start=to_utc_naive(item.window_start) if item.window_start is not None else None,
            window_end=to_utc_naive(item.window_end) if item.window_end is not None else None,
            criticality=item.criticality,
            status=item.status.value,
            urgency_score=item.urgency_score,
            created_from="routine",
            denormalized_data=dict(snapshot) if snapshot else None,
        )
        try:
            created = TaskInstanceRepository.insert_if_absent(self.session, instance)
        except SQLAlchemyError as e:
            self.session.rollback()
            logger.error("Insert of task instance %s failed: %s", key, e)
            return InsertOutcome.ERROR
        return InsertOutcome.CREATED if created else InsertOutcome.DUPLICATE

    def list_active_shift_templates(self) -> List[ShiftTemplateSpec]:
        try:
            return [template_to_spec(t) for t in ShiftTemplateRepository.get_active(self.session)]
        except SQLAlchemyError as e:
            raise self._fail("Fetching shift templates", e) from e

    def insert_shift_if_absent(
        self,
        template: ShiftTemplateSpec,
        start_at: pd.Timestamp,
        end_at: pd.Timestamp,
    ) -> InsertOutcome:
        shift = Shift(
            name=template.name,
            template_id=template.id,
            department_id=template.department_id,
            start_at=to_utc_naive(start_at),
            end_at=to_utc_naive(end_at),
            required_skills=list(template.required_skills) or None,
            status="scheduled",
        )
        try:
            created = ShiftRepository.insert_if_absent(self.session, shift)
        except SQLAlchemyError as e:
            self.session.rollback()
            logger.error("Insert of shift for template %s at %s failed: %s", template.id, start_at, e)
            return InsertOutcome.ERROR
        return InsertOutcome.CREATED if created else InsertOutcome.DUPLICATE

    def list_pending_work_items(self) -> List[WorkItem]:
        try:
            rows = TaskInstanceRepository.get_pending(self.session)
        except SQLAlchemyError as e:
            raise self._fail("Fetching pending task instances", e) from e
        return [instance_to_work_item(r, self.timezone) for r in rows]

    def update_urgency_scores(self, scores: Mapping[int, float]) -> int:
        try:
            return TaskInstanceRepository.update_urgency(self.session, dict(scores))
        except SQLAlchemyError as e:
            raise self._fail("Updating urgency scores", e) from e

    # -- recommendation --------------------------------------------------

    def get_shift(self, shift_id: Any) -> ShiftCandidate:
        try:
            shift = ShiftRepository.get_by_id(self.session, shift_id)
        except SQLAlchemyError as e:
            raise self._fail(f"Fetching shift {shift_id}", e) from e
        if shift is None:
            raise ShiftNotFound(f"Shift {shift_id} not found")
        return shift_to_candidate(shift, self.timezone)

    def list_eligible_employees(self, department_id: Optional[Any]) -> List[EmployeeProfile]:
        """Active employees of the department, or every active employee when it is None."""
        try:
            employees = EmployeeRepository.get_active(self.session, department_id)
            return [employee_to_profile(e) for e in employees]
        except SQLAlchemyError as e:
            raise self._fail("Fetching employees", e) from e

    def list_week_assignments(
        self,
        employee_ids: Iterable[Any],
        week_range: Tuple[pd.Timestamp, pd.Timestamp],
    ) -> List[ExistingAssignment]:
        start, end = week_range
        try:
            rows = AssignmentRepository.get_in_range(
                self.session, employee_ids, to_utc_naive(start), to_utc_naive(end)
            )
        except SQLAlchemyError as e:
            raise self._fail("Fetching assignments", e) from e
        return [
            ExistingAssignment(
                employee_id=assignment.employee_id,
                shift_id=shift.id,
                start_at=from_utc_naive(shift.start_at, self.timezone),
                end_at=from_utc_naive(shift.end_at, self.timezone),
            )
            for assignment, shift in rows
        ]
