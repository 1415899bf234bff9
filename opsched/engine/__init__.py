"""Orchestration services that read from and write to storage."""

from .materialization import MaterializationService
from .recommendation import AssignmentRecommendationService
from .store import MaterializationStore, RecommendationStore, SqlStore

__all__ = [
    "MaterializationService",
    "AssignmentRecommendationService",
    "MaterializationStore",
    "RecommendationStore",
    "SqlStore",
]
