"""Storage module: result store, gameweek artifacts and their schemas."""

from gameweek_pipeline.storage.database import Database
from gameweek_pipeline.storage.files import ArtifactNotFoundError
from gameweek_pipeline.storage.gameweek_store import GameweekStore, normalize_round_id
from gameweek_pipeline.storage.models import (
    EvaluationMarker,
    EvaluationSummary,
    Fixture,
    MatchResult,
    Outcome,
    Prediction,
    ResultStatus,
    SkillPerformanceEntry,
    SkillPerformanceLog,
    VersionManifest,
)
from gameweek_pipeline.storage.results import load_round_results

__all__ = [
    "ArtifactNotFoundError",
    "Database",
    "EvaluationMarker",
    "EvaluationSummary",
    "Fixture",
    "GameweekStore",
    "MatchResult",
    "Outcome",
    "Prediction",
    "ResultStatus",
    "SkillPerformanceEntry",
    "SkillPerformanceLog",
    "VersionManifest",
    "load_round_results",
    "normalize_round_id",
]
