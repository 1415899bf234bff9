"""SQLAlchemy models for routines, task instances, shifts and staff.

Timestamps are stored as naive UTC datetimes; services convert them into the
run's canonical timezone on the way out.
"""

from __future__ import annotations

from datetime import datetime

from sqlalchemy import (
    JSON,
    Boolean,
    Column,
    DateTime,
    Float,
    ForeignKey,
    Integer,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import DeclarativeBase, relationship


class Base(DeclarativeBase):
    """Base class for all models."""
    pass


class Department(Base):
    __tablename__ = "departments"

    id = Column(Integer, primary_key=True)
    name = Column(String(100), nullable=False)

    members = relationship("EmployeeDepartment", back_populates="department")

    def __repr__(self) -> str:
        return f"<Department(id={self.id}, name='{self.name}')>"


class Employee(Base):
    """Employee with skills, seniority and weekly availability windows."""

    __tablename__ = "employees"

    employee_id = Column(Integer, primary_key=True)
    display_name = Column(String(200), nullable=False)
    skills = Column(JSON(none_as_null=True), nullable=True)  # list of skill names
    seniority_rank = Column(Float, nullable=True)
    availability_rules = Column(JSON(none_as_null=True), nullable=True)  # {"mon": [["09:00", "17:00"]], ...}
    active = Column(Boolean, nullable=False, default=True)

    departments = relationship("EmployeeDepartment", back_populates="employee", cascade="all, delete-orphan")
    assignments = relationship("Assignment", back_populates="employee")

    def __repr__(self) -> str:
        return f"<Employee(id={self.employee_id}, name='{self.display_name}')>"


class EmployeeDepartment(Base):
    __tablename__ = "employee_departments"

    employee_id = Column(Integer, ForeignKey("employees.employee_id"), primary_key=True)
    department_id = Column(Integer, ForeignKey("departments.id"), primary_key=True)
    is_primary = Column(Boolean, nullable=False, default=False)

    employee = relationship("Employee", back_populates="departments")
    department = relationship("Department", back_populates="members")


class Routine(Base):
    """Template for recurring work. ``recurrence`` holds the rule's JSON form."""

    __tablename__ = "routines"

    id = Column(Integer, primary_key=True)
    title = Column(String(200), nullable=False)
    description = Column(Text, nullable=True)
    criticality = Column(Integer, nullable=False, default=3)  # 1-5
    est_minutes = Column(Integer, nullable=True)
    recurrence = Column(JSON(none_as_null=True), nullable=True)
    area_ids = Column(JSON(none_as_null=True), nullable=True)  # target sub-locations
    department_id = Column(Integer, ForeignKey("departments.id"), nullable=True)
    shift_id = Column(Integer, nullable=True)
    location_id = Column(Integer, nullable=True)
    active = Column(Boolean, nullable=False, default=True)
    is_deprecated = Column(Boolean, nullable=False, default=False)

    instances = relationship("TaskInstance", back_populates="routine")

    def __repr__(self) -> str:
        return f"<Routine(id={self.id}, title='{self.title}')>"


class TaskInstance(Base):
    """Materialized work item. One row per (routine, area, due time)."""

    __tablename__ = "task_instances"
    __table_args__ = (
        UniqueConstraint("routine_id", "area_id", "due_at", name="uq_task_instance_key"),
    )

    id = Column(Integer, primary_key=True, autoincrement=True)
    routine_id = Column(Integer, ForeignKey("routines.id"), nullable=False)
    area_id = Column(Integer, nullable=False)
    due_at = Column(DateTime, nullable=False)
    window_start = Column(DateTime, nullable=True)
    window_end = Column(DateTime, nullable=True)
    criticality = Column(Integer, nullable=False)
    status = Column(String(20), nullable=False, default="pending")  # pending, done, skipped, missed
    urgency_score = Column(Float, nullable=False, default=0.0)
    created_from = Column(String(20), nullable=False, default="routine")
    denormalized_data = Column(JSON(none_as_null=True), nullable=True)  # routine snapshot at creation
    created_at = Column(DateTime, nullable=False, default=datetime.utcnow)

    routine = relationship("Routine", back_populates="instances")

    def __repr__(self) -> str:
        return f"<TaskInstance(id={self.id}, routine={self.routine_id}, area={self.area_id}, due={self.due_at})>"


class ShiftTemplate(Base):
    """Weekly shift pattern used to materialize concrete shifts."""

    __tablename__ = "shift_templates"

    id = Column(Integer, primary_key=True)
    name = Column(String(100), nullable=False)
    days_of_week = Column(JSON, nullable=False)  # 0 = Sunday
    start_time = Column(String(5), nullable=False)  # HH:MM
    end_time = Column(String(5), nullable=False)
    department_id = Column(Integer, ForeignKey("departments.id"), nullable=True)
    required_skills = Column(JSON(none_as_null=True), nullable=True)
    active = Column(Boolean, nullable=False, default=True)

    shifts = relationship("Shift", back_populates="template")

    def __repr__(self) -> str:
        return f"<ShiftTemplate(id={self.id}, name='{self.name}')>"


class Shift(Base):
    """Concrete shift instance."""

    __tablename__ = "shifts"
    __table_args__ = (
        UniqueConstraint("template_id", "start_at", name="uq_shift_template_start"),
    )

    id = Column(Integer, primary_key=True, autoincrement=True)
    name = Column(String(100), nullable=True)
    template_id = Column(Integer, ForeignKey("shift_templates.id"), nullable=True)
    department_id = Column(Integer, ForeignKey("departments.id"), nullable=True)
    start_at = Column(DateTime, nullable=False)
    end_at = Column(DateTime, nullable=False)
    required_skills = Column(JSON(none_as_null=True), nullable=True)
    status = Column(String(20), nullable=False, default="scheduled")

    template = relationship("ShiftTemplate", back_populates="shifts")
    assignments = relationship("Assignment", back_populates="shift")

    def __repr__(self) -> str:
        return f"<Shift(id={self.id}, start={self.start_at}, end={self.end_at})>"


class Assignment(Base):
    """Employee assigned to a shift."""

    __tablename__ = "assignments"

    id = Column(Integer, primary_key=True, autoincrement=True)
    shift_id = Column(Integer, ForeignKey("shifts.id"), nullable=False)
    employee_id = Column(Integer, ForeignKey("employees.employee_id"), nullable=False)
    status = Column(String(20), nullable=False, default="assigned")

    shift = relationship("Shift", back_populates="assignments")
    employee = relationship("Employee", back_populates="assignments")

    def __repr__(self) -> str:
        return f"<Assignment(id={self.id}, shift={self.shift_id}, emp={self.employee_id})>"
