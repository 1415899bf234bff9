"""MaterializationService - expands routines and shift templates into stored instances.

Safe to run repeatedly over overlapping windows: every insert carries its
natural key and duplicates are counted as skipped.
"""

from __future__ import annotations

import logging
import time
import uuid
from datetime import timedelta
from typing import Optional

import pandas as pd

from opsched.config import EngineConfig
from opsched.domain.entities import (
    InsertOutcome,
    MaterializationResult,
    RecurrenceRule,
    RoutineSpec,
    WorkItem,
)
from opsched.errors import InvalidRecurrenceRule
from opsched.services.recurrence import expand_shift_template, expand_timestamps
from opsched.services.urgency import score as urgency_score
from opsched.timeplan import TimestampLike, as_timestamp, ensure_timezone

from .store import MaterializationStore

logger = logging.getLogger(__name__)


class _Deadline:
    def __init__(self, timeout: Optional[float]):
        self.expires = None if timeout is None else time.monotonic() + timeout

    def passed(self) -> bool:
        return self.expires is not None and time.monotonic() >= self.expires


class MaterializationService:
    """
    Turns active routines into task instances for a bounded future window.

    Each routine is handled on its own: a malformed rule or a failed insert is
    logged and counted, and the run moves on to the next routine.
    """

    def __init__(self, store: MaterializationStore, cfg: Optional[EngineConfig] = None):
        self.store = store
        self.cfg = cfg or EngineConfig()

    def _window(self, now: pd.Timestamp, horizon_days: int, tz: str):
        start_day = now.tz_convert(tz).date()
        return start_day, start_day + timedelta(days=horizon_days)

    def materialize(
        self,
        horizon_days: Optional[int] = None,
        timezone: Optional[str] = None,
        now: Optional[TimestampLike] = None,
        timeout: Optional[float] = None,
    ) -> MaterializationResult:
        """
        Materialize task instances for every active routine.

        Args:
            horizon_days: Days ahead to generate (default from config)
            timezone: Canonical timezone for the run (default from config)
            now: Reference instant; defaults to the current time
            timeout: Seconds after which remaining routines are left for the next run

        Returns:
            Counters for created, skipped (duplicates), processed and failed

        Raises:
            StorageError: If the routine list itself cannot be fetched
            ContractViolation: For an unknown recurrence type or invalid criticality
        """
        tz = ensure_timezone(timezone or self.cfg.timezone)
        horizon = horizon_days if horizon_days is not None else self.cfg.horizon_days
        now_ts = as_timestamp(now, tz) if now is not None else pd.Timestamp.now(tz=tz)
        window_start, window_end = self._window(now_ts, horizon, tz)
        deadline = _Deadline(timeout)
        result = MaterializationResult(run_id=uuid.uuid4().hex[:12])

        logger.info("[%s] Starting task materialization %s..%s (%s)", result.run_id, window_start, window_end, tz)
        routines = self.store.list_active_routines()
        logger.info("[%s] Found %d active routines", result.run_id, len(routines))

        for routine in routines:
            if deadline.passed():
                result.timed_out = True
                logger.warning("[%s] Timeout reached, %d routines left", result.run_id,
                               len(routines) - result.routines_processed)
                break
            self._materialize_routine(routine, window_start, window_end, tz, now_ts, result)
            result.routines_processed += 1

        logger.info(
            "[%s] Materialization complete: %d created, %d skipped, %d failed",
            result.run_id, result.created, result.skipped, result.failed,
        )
        return result

    def _materialize_routine(
        self,
        routine: RoutineSpec,
        window_start,
        window_end,
        tz: str,
        now: pd.Timestamp,
        result: MaterializationResult,
    ) -> None:
        if not routine.recurrence or not routine.area_ids:
            logger.info("[%s] Skipping routine %s: missing recurrence or areas", result.run_id, routine.id)
            return

        try:
            rule = RecurrenceRule.from_dict(routine.recurrence)
        except InvalidRecurrenceRule as e:
            logger.warning("[%s] Rejecting routine %s: %s", result.run_id, routine.id, e)
            result.failed += 1
            return

        due_slots = expand_timestamps(rule, window_start, window_end, tz)
        logger.debug("[%s] Routine %s: %d due slots x %d areas", result.run_id, routine.id,
                     len(due_slots), len(routine.area_ids))

        snapshot = {
            "title": routine.title,
            "description": routine.description,
            "est_minutes": routine.est_minutes,
            "criticality": routine.criticality,
        }
        for due_at in due_slots:
            urgency = urgency_score(routine.criticality, due_at, now, weights=self.cfg.urgency)
            for area_id in routine.area_ids:
                item = WorkItem(
                    template_id=routine.id,
                    area_id=area_id,
                    due_at=due_at,
                    criticality=routine.criticality,
                    urgency_score=urgency,
                )
                outcome = self.store.insert_work_item_if_absent(item.key, item, snapshot)
                if outcome is InsertOutcome.CREATED:
                    result.created += 1
                elif outcome is InsertOutcome.DUPLICATE:
                    result.skipped += 1
                else:
                    result.failed += 1

    def materialize_shifts(
        self,
        horizon_days: Optional[int] = None,
        timezone: Optional[str] = None,
        now: Optional[TimestampLike] = None,
        timeout: Optional[float] = None,
    ) -> MaterializationResult:
        """Materialize concrete shifts from active weekly shift templates, keyed by (template, start)."""
        tz = ensure_timezone(timezone or self.cfg.timezone)
        horizon = horizon_days if horizon_days is not None else self.cfg.horizon_days
        now_ts = as_timestamp(now, tz) if now is not None else pd.Timestamp.now(tz=tz)
        window_start, window_end = self._window(now_ts, horizon, tz)
        deadline = _Deadline(timeout)
        result = MaterializationResult(run_id=uuid.uuid4().hex[:12])

        templates = self.store.list_active_shift_templates()
        logger.info("[%s] Materializing shifts from %d templates", result.run_id, len(templates))

        for template in templates:
            if deadline.passed():
                result.timed_out = True
                break
            try:
                pairs = expand_shift_template(template, window_start, window_end, tz)
            except ValueError as e:
                logger.warning("[%s] Rejecting shift template %s: %s", result.run_id, template.id, e)
                result.failed += 1
                result.routines_processed += 1
                continue
            for start_at, end_at in pairs:
                outcome = self.store.insert_shift_if_absent(template, start_at, end_at)
                if outcome is InsertOutcome.CREATED:
                    result.created += 1
                elif outcome is InsertOutcome.DUPLICATE:
                    result.skipped += 1
                else:
                    result.failed += 1
            result.routines_processed += 1

        logger.info("[%s] Shift materialization complete: %d created, %d skipped, %d failed",
                    result.run_id, result.created, result.skipped, result.failed)
        return result

    def refresh_urgency(self, now: Optional[TimestampLike] = None) -> int:
        """
        Recompute urgency_score for every pending work item.

        Returns:
            Number of items updated
        """
        tz = self.cfg.timezone
        now_ts = as_timestamp(now, tz) if now is not None else pd.Timestamp.now(tz=tz)
        items = self.store.list_pending_work_items()
        scores = {
            item.id: urgency_score(
                item.criticality,
                item.due_at,
                now_ts,
                window_start=item.window_start,
                window_end=item.window_end,
                weights=self.cfg.urgency,
            )
            for item in items
        }
        updated = self.store.update_urgency_scores(scores)
        logger.info("Refreshed urgency for %d pending items", updated)
        return updated
