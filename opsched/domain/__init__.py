"""Domain models, value types and data access layer."""

from .models import (
    Assignment,
    Base,
    Department,
    Employee,
    EmployeeDepartment,
    Routine,
    Shift,
    ShiftTemplate,
    TaskInstance,
)
from .repositories import (
    AssignmentRepository,
    DepartmentRepository,
    EmployeeRepository,
    RoutineRepository,
    ShiftRepository,
    ShiftTemplateRepository,
    TaskInstanceRepository,
)

__all__ = [
    "Assignment",
    "Base",
    "Department",
    "Employee",
    "EmployeeDepartment",
    "Routine",
    "Shift",
    "ShiftTemplate",
    "TaskInstance",
    "AssignmentRepository",
    "DepartmentRepository",
    "EmployeeRepository",
    "RoutineRepository",
    "ShiftRepository",
    "ShiftTemplateRepository",
    "TaskInstanceRepository",
]
