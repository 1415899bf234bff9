"""Exception hierarchy for the scheduling engine."""

from __future__ import annotations


class SchedulingError(Exception):
    """Base class for all engine errors."""
    pass


class InvalidRecurrenceRule(SchedulingError, ValueError):
    """A recurrence rule is missing a field required by its type or holds a bad value.

    Raised per routine; the materialization run logs it and moves on.
    """
    pass


class ContractViolation(SchedulingError, ValueError):
    """Caller passed something the engine must never silently accept."""
    pass


class UnknownRecurrenceType(ContractViolation):
    """Recurrence type is not one of daily, weekly, custom_weeks, monthly, oneoff."""
    pass


class ConfigError(SchedulingError, ValueError):
    """Configuration file holds invalid values."""
    pass


class StorageError(SchedulingError):
    """Storage read or write failed for a reason other than a duplicate key."""
    pass


class ShiftNotFound(StorageError, LookupError):
    """Requested shift does not exist."""
    pass
