"""Pure scheduling services: recurrence, urgency, conflicts, scoring, labor rules."""

from .conflicts import classify_severity, detect, group_by_severity
from .recurrence import expand, expand_shift_template, expand_timestamps
from .rules import RuleResult, evaluate_assignment
from .scoring import rank_candidates, score_employee
from .urgency import score as urgency_score
from .urgency import urgency_level

__all__ = [
    "expand",
    "expand_timestamps",
    "expand_shift_template",
    "urgency_score",
    "urgency_level",
    "detect",
    "classify_severity",
    "group_by_severity",
    "score_employee",
    "rank_candidates",
    "evaluate_assignment",
    "RuleResult",
]
