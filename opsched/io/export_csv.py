"""CSV export of recommendation results and materialized work items."""

from __future__ import annotations

import logging
from pathlib import Path

import pandas as pd
from sqlalchemy.orm import Session

from opsched.domain.entities import RecommendationResult
from opsched.domain.repositories import TaskInstanceRepository
from opsched.services.urgency import urgency_level
from opsched.timeplan import from_utc_naive

logger = logging.getLogger(__name__)

SUGGESTION_COLUMNS = [
    "rank", "employee_id", "employee_name", "score",
    "availability", "skills", "hours", "seniority", "department",
    "warnings", "conflicts",
]


def suggestions_frame(result: RecommendationResult) -> pd.DataFrame:
    rows = []
    for rank, s in enumerate(result.suggestions, start=1):
        c = s.component_scores
        rows.append({
            "rank": rank,
            "employee_id": s.employee_id,
            "employee_name": s.employee_name,
            "score": s.score,
            "availability": c.availability,
            "skills": c.skills,
            "hours": c.hours,
            "seniority": c.seniority,
            "department": c.department,
            "warnings": "; ".join(s.warnings),
            "conflicts": "; ".join(s.conflicts),
        })
    return pd.DataFrame(rows, columns=SUGGESTION_COLUMNS)


def export_suggestions_csv(result: RecommendationResult, csv_path: str | Path) -> int:
    """Write ranked suggestions to CSV. Returns the number of rows written."""
    df = suggestions_frame(result)
    df.to_csv(csv_path, index=False)
    logger.info("Exported %d suggestions to %s", len(df), csv_path)
    return len(df)


def export_work_items_csv(session: Session, csv_path: str | Path, timezone: str = "UTC") -> int:
    """Write pending task instances, most urgent first, with their urgency level."""
    rows = []
    for inst in TaskInstanceRepository.get_pending(session):
        rows.append({
            "id": inst.id,
            "routine_id": inst.routine_id,
            "area_id": inst.area_id,
            "due_at": from_utc_naive(inst.due_at, timezone).isoformat(),
            "criticality": inst.criticality,
            "status": inst.status,
            "urgency_score": round(inst.urgency_score or 0.0, 4),
            "urgency_level": urgency_level(inst.urgency_score or 0.0),
        })
    df = pd.DataFrame(rows, columns=[
        "id", "routine_id", "area_id", "due_at", "criticality", "status", "urgency_score", "urgency_level",
    ])
    if not df.empty:
        df = df.sort_values(["urgency_score", "due_at", "id"], ascending=[False, True, True])
    df.to_csv(csv_path, index=False)
    logger.info("Exported %d work items to %s", len(df), csv_path)
    return len(df)
