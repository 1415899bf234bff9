"""Value types passed into and returned from the scheduling services.

These are plain snapshots. The ORM models in ``models.py`` are converted into
them by the store so the services never touch a Session.
"""

from __future__ import annotations

from dataclasses import asdict, dataclass, field
from datetime import date
from enum import Enum
from typing import Any, Dict, List, Mapping, Optional, Tuple

import pandas as pd

from opsched.errors import InvalidRecurrenceRule, UnknownRecurrenceType
from opsched.timeplan import as_timestamp, parse_time_string


class RecurrenceType(str, Enum):
    DAILY = "daily"
    WEEKLY = "weekly"
    CUSTOM_WEEKS = "custom_weeks"
    MONTHLY = "monthly"
    ONEOFF = "oneoff"


class WorkItemStatus(str, Enum):
    PENDING = "pending"
    DONE = "done"
    SKIPPED = "skipped"
    MISSED = "missed"


class ConflictType(str, Enum):
    OVERLAP = "overlap"
    REST_VIOLATION = "rest_violation"
    OVERTIME = "overtime"
    AVAILABILITY = "availability"


class Severity(str, Enum):
    CRITICAL = "critical"
    WARNING = "warning"


class InsertOutcome(str, Enum):
    CREATED = "created"
    DUPLICATE = "duplicate"
    ERROR = "error"


def _parse_date(value: Any, name: str) -> Optional[date]:
    if value is None or value == "":
        return None
    try:
        return pd.Timestamp(value).date()
    except (TypeError, ValueError):
        raise InvalidRecurrenceRule(f"Invalid {name} '{value}'") from None


@dataclass(frozen=True)
class RecurrenceRule:
    """Recurrence attached to a routine version. Build with ``from_dict`` to get validation."""

    type: RecurrenceType
    time_slots: Tuple[str, ...]
    days_of_week: Optional[Tuple[int, ...]] = None
    interval_weeks: Optional[int] = None
    day_of_month: Optional[int] = None
    start_date: Optional[date] = None
    end_date: Optional[date] = None

    @classmethod
    def from_dict(cls, raw: Mapping[str, Any]) -> "RecurrenceRule":
        """
        Validate and build a rule from its stored JSON shape.

        Accepts the legacy single ``time_of_day`` field in place of ``time_slots``.

        Raises:
            UnknownRecurrenceType: If ``type`` is not a known recurrence type
            InvalidRecurrenceRule: If a field required by the type is missing or malformed
        """
        if not isinstance(raw, Mapping):
            raise InvalidRecurrenceRule(f"Recurrence must be a mapping, got {type(raw).__name__}")
        if not raw.get("type"):
            raise InvalidRecurrenceRule("Recurrence is missing 'type'")
        try:
            rtype = RecurrenceType(raw["type"])
        except ValueError:
            raise UnknownRecurrenceType(f"Unknown recurrence type: {raw['type']!r}") from None

        slots = raw.get("time_slots")
        if not slots and raw.get("time_of_day"):
            slots = [raw["time_of_day"]]
        if not slots or isinstance(slots, str):
            raise InvalidRecurrenceRule("Recurrence needs a non-empty list of time_slots")
        for slot in slots:
            try:
                parse_time_string(slot)
            except ValueError as e:
                raise InvalidRecurrenceRule(str(e)) from None

        days = raw.get("days_of_week")
        if days is not None:
            try:
                days = tuple(int(d) for d in days)
            except (TypeError, ValueError):
                raise InvalidRecurrenceRule(f"Invalid days_of_week: {days!r}") from None
            if any(d < 0 or d > 6 for d in days):
                raise InvalidRecurrenceRule(f"days_of_week values must be 0-6: {days!r}")
        if rtype in (RecurrenceType.WEEKLY, RecurrenceType.CUSTOM_WEEKS) and not days:
            raise InvalidRecurrenceRule(f"{rtype.value} recurrence requires days_of_week")

        interval = raw.get("interval_weeks")
        if rtype is RecurrenceType.CUSTOM_WEEKS:
            interval = 2 if interval is None else interval
        if interval is not None:
            try:
                interval = int(interval)
            except (TypeError, ValueError):
                raise InvalidRecurrenceRule(f"Invalid interval_weeks: {interval!r}") from None
            if interval < 1:
                raise InvalidRecurrenceRule(f"interval_weeks must be >= 1, got {interval}")

        dom = raw.get("day_of_month")
        if dom is not None:
            try:
                dom = int(dom)
            except (TypeError, ValueError):
                raise InvalidRecurrenceRule(f"Invalid day_of_month: {dom!r}") from None
        if rtype is RecurrenceType.MONTHLY and (dom is None or not 1 <= dom <= 31):
            raise InvalidRecurrenceRule(f"monthly recurrence requires day_of_month in 1-31, got {dom!r}")

        start = _parse_date(raw.get("start_date"), "start_date")
        end = _parse_date(raw.get("end_date"), "end_date")
        if start and end and end < start:
            raise InvalidRecurrenceRule(f"end_date {end} is before start_date {start}")

        return cls(
            type=rtype,
            time_slots=tuple(str(s) for s in slots),
            days_of_week=days,
            interval_weeks=interval,
            day_of_month=dom,
            start_date=start,
            end_date=end,
        )

    def to_dict(self) -> Dict[str, Any]:
        out: Dict[str, Any] = {"type": self.type.value, "time_slots": list(self.time_slots)}
        if self.days_of_week is not None:
            out["days_of_week"] = list(self.days_of_week)
        if self.interval_weeks is not None:
            out["interval_weeks"] = self.interval_weeks
        if self.day_of_month is not None:
            out["day_of_month"] = self.day_of_month
        if self.start_date is not None:
            out["start_date"] = self.start_date.isoformat()
        if self.end_date is not None:
            out["end_date"] = self.end_date.isoformat()
        return out


@dataclass(frozen=True)
class RoutineSpec:
    """A routine as read from storage. ``recurrence`` stays raw until materialization validates it."""

    id: int
    title: str
    criticality: int
    recurrence: Optional[Mapping[str, Any]]
    area_ids: Tuple[int, ...] = ()
    department_id: Optional[int] = None
    shift_id: Optional[int] = None
    location_id: Optional[int] = None
    description: Optional[str] = None
    est_minutes: Optional[int] = None


@dataclass(frozen=True)
class ShiftTemplateSpec:
    id: int
    name: str
    days_of_week: Tuple[int, ...]
    start_time: str
    end_time: str
    department_id: Optional[int] = None
    required_skills: Tuple[str, ...] = ()


@dataclass(frozen=True)
class WorkItem:
    """A materialized task instance. (template_id, area_id, due_at) is its natural key."""

    template_id: int
    area_id: Optional[int]
    due_at: pd.Timestamp
    criticality: int
    id: Optional[int] = None
    window_start: Optional[pd.Timestamp] = None
    window_end: Optional[pd.Timestamp] = None
    status: WorkItemStatus = WorkItemStatus.PENDING
    urgency_score: float = 0.0

    def __post_init__(self):
        object.__setattr__(self, "due_at", as_timestamp(self.due_at))
        if self.window_start is not None:
            object.__setattr__(self, "window_start", as_timestamp(self.window_start))
        if self.window_end is not None:
            object.__setattr__(self, "window_end", as_timestamp(self.window_end))

    @property
    def key(self) -> Tuple[int, Optional[int], pd.Timestamp]:
        return (self.template_id, self.area_id, self.due_at.tz_convert("UTC"))


@dataclass(frozen=True)
class EmployeeProfile:
    """Read-only employee snapshot. ``availability_rules`` is kept raw; it may be malformed."""

    id: Any
    name: str = ""
    skills: Tuple[str, ...] = ()
    seniority_rank: float = 0.0
    department_ids: Tuple[Any, ...] = ()
    availability_rules: Optional[Any] = None


@dataclass(frozen=True)
class ShiftCandidate:
    id: Any
    start_at: pd.Timestamp
    end_at: pd.Timestamp
    department_id: Optional[Any] = None
    required_skills: Tuple[str, ...] = ()
    name: str = ""

    def __post_init__(self):
        object.__setattr__(self, "start_at", as_timestamp(self.start_at))
        object.__setattr__(self, "end_at", as_timestamp(self.end_at))

    @property
    def hours(self) -> float:
        return (self.end_at - self.start_at).total_seconds() / 3600.0


@dataclass(frozen=True)
class ExistingAssignment:
    employee_id: Any
    shift_id: Any
    start_at: pd.Timestamp
    end_at: pd.Timestamp

    def __post_init__(self):
        object.__setattr__(self, "start_at", as_timestamp(self.start_at))
        object.__setattr__(self, "end_at", as_timestamp(self.end_at))


@dataclass(frozen=True)
class ShiftInstance:
    """A shift placed on an employee, as fed to the conflict detector."""

    id: Any
    start_at: pd.Timestamp
    end_at: pd.Timestamp
    employee_id: Optional[Any] = None
    employee_name: Optional[str] = None

    def __post_init__(self):
        object.__setattr__(self, "start_at", as_timestamp(self.start_at))
        object.__setattr__(self, "end_at", as_timestamp(self.end_at))

    @property
    def hours(self) -> float:
        return (self.end_at - self.start_at).total_seconds() / 3600.0


@dataclass(frozen=True)
class Conflict:
    type: ConflictType
    message: str
    shift_ids: Tuple[Any, ...]


@dataclass
class ComponentScores:
    availability: float = 0.0
    skills: float = 0.0
    hours: float = 0.0
    seniority: float = 0.0
    department: float = 0.0

    @property
    def total(self) -> float:
        return self.availability + self.skills + self.hours + self.seniority + self.department


@dataclass
class ScoreResult:
    employee_id: Any
    score: int
    component_scores: ComponentScores
    warnings: List[str] = field(default_factory=list)
    conflicts: List[str] = field(default_factory=list)
    employee_name: str = ""

    @property
    def blocked(self) -> bool:
        return bool(self.conflicts)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "employee_id": self.employee_id,
            "employee_name": self.employee_name,
            "score": self.score,
            "component_scores": asdict(self.component_scores),
            "warnings": list(self.warnings),
            "conflicts": list(self.conflicts),
        }


@dataclass
class MaterializationResult:
    created: int = 0
    skipped: int = 0
    routines_processed: int = 0
    failed: int = 0
    timed_out: bool = False
    run_id: str = ""


@dataclass
class RecommendationResult:
    shift_details: Dict[str, Any]
    suggestions: List[ScoreResult] = field(default_factory=list)
    failed: int = 0
    timed_out: bool = False

    def to_dict(self) -> Dict[str, Any]:
        return {
            "shift_details": dict(self.shift_details),
            "suggestions": [s.to_dict() for s in self.suggestions],
            "failed": self.failed,
            "timed_out": self.timed_out,
        }
