"""Operations scheduling package: recurring work items and shift staffing suggestions.

Modules:
- config: load and validate engine configuration (YAML or JSON)
- errors: exception taxonomy shared by services and storage
- timeplan: timezone-aware timestamp helpers
- domain: value types, SQLAlchemy models and repositories
- services: recurrence expansion, urgency, conflict detection, assignment scoring
- engine: materialization and recommendation services over a storage contract
- io: CSV import/export helpers
- cli: command-line interface entrypoints
"""

__all__ = [
    "config",
    "errors",
    "timeplan",
    "domain",
    "services",
    "engine",
    "io",
    "cli",
]
