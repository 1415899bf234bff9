"""AssignmentRecommendationService - ranks employees for one open shift."""

from __future__ import annotations

import logging
import time
from datetime import timedelta
from typing import Any, Dict, List, Optional

from opsched.config import EngineConfig
from opsched.domain.entities import (
    EmployeeProfile,
    ExistingAssignment,
    RecommendationResult,
    ScoreResult,
    ShiftCandidate,
)
from opsched.errors import StorageError
from opsched.services.scoring import rank_candidates, score_employee
from opsched.timeplan import week_bounds

from .store import RecommendationStore

logger = logging.getLogger(__name__)


def shift_details(shift: ShiftCandidate) -> Dict[str, Any]:
    return {
        "id": shift.id,
        "name": shift.name,
        "start_at": shift.start_at.isoformat(),
        "end_at": shift.end_at.isoformat(),
        "department_id": shift.department_id,
        "required_skills": list(shift.required_skills),
    }


class AssignmentRecommendationService:
    """
    Scores every eligible employee against a shift and returns them ranked.

    Assignment lookups are batched; if the batch fails the service falls back
    to one lookup per employee so a single bad record only drops that employee.
    """

    def __init__(self, store: RecommendationStore, cfg: Optional[EngineConfig] = None):
        self.store = store
        self.cfg = cfg or EngineConfig()

    def _assignment_range(self, shift: ShiftCandidate):
        # widen by the rest window so cross-week rest violations are seen
        week_start, week_end = week_bounds(shift.start_at)
        margin = timedelta(hours=self.cfg.labor_rules.min_rest_hours)
        return week_start - margin, week_end + margin

    def _load_assignments(
        self,
        employees: List[EmployeeProfile],
        shift: ShiftCandidate,
        result: RecommendationResult,
    ) -> Dict[Any, List[ExistingAssignment]]:
        week_range = self._assignment_range(shift)
        by_employee: Dict[Any, List[ExistingAssignment]] = {e.id: [] for e in employees}
        try:
            rows = self.store.list_week_assignments([e.id for e in employees], week_range)
        except StorageError as e:
            logger.warning("Batch assignment lookup failed for shift %s, retrying per employee: %s", shift.id, e)
        else:
            for row in rows:
                by_employee.setdefault(row.employee_id, []).append(row)
            return by_employee

        for employee in employees:
            try:
                by_employee[employee.id] = self.store.list_week_assignments([employee.id], week_range)
            except StorageError as e:
                logger.error("Skipping employee %s: assignment lookup failed: %s", employee.id, e)
                by_employee.pop(employee.id, None)
                result.failed += 1
        return by_employee

    def recommend(
        self,
        shift_id: Any,
        timeout: Optional[float] = None,
        limit: Optional[int] = None,
    ) -> RecommendationResult:
        """
        Build the ranked suggestion list for a shift.

        Args:
            shift_id: Shift to fill
            timeout: Seconds; employees not scored before it expires are left out
            limit: Optional cap on the number of suggestions returned

        Returns:
            RecommendationResult with suggestions sorted by score, best first

        Raises:
            ShiftNotFound: If the shift does not exist
            StorageError: If the shift or the employee list cannot be fetched
        """
        expires = None if timeout is None else time.monotonic() + timeout
        tz = self.cfg.timezone

        shift = self.store.get_shift(shift_id)
        shift = ShiftCandidate(
            id=shift.id,
            start_at=shift.start_at.tz_convert(tz),
            end_at=shift.end_at.tz_convert(tz),
            department_id=shift.department_id,
            required_skills=shift.required_skills,
            name=shift.name,
        )
        result = RecommendationResult(shift_details=shift_details(shift))

        employees = self.store.list_eligible_employees(shift.department_id)
        logger.info("Scoring %d employees for shift %s", len(employees), shift.id)
        assignments = self._load_assignments(employees, shift, result)

        scored: List[ScoreResult] = []
        for employee in employees:
            if expires is not None and time.monotonic() >= expires:
                result.timed_out = True
                logger.warning("Timeout reached scoring shift %s after %d employees", shift.id, len(scored))
                break
            if employee.id not in assignments:
                continue
            scored.append(score_employee(
                employee,
                shift,
                assignments[employee.id],
                weights=self.cfg.weights,
                labor_rules=self.cfg.labor_rules,
                timezone=tz,
            ))

        ranked = rank_candidates(scored)
        result.suggestions = ranked[:limit] if limit is not None else ranked
        return result
