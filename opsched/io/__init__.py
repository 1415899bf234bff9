"""I/O utilities for CSV import/export."""

from .export_csv import export_suggestions_csv, export_work_items_csv
from .import_csv import import_assignments_csv, import_employees_csv

__all__ = [
    "import_employees_csv",
    "import_assignments_csv",
    "export_suggestions_csv",
    "export_work_items_csv",
]
