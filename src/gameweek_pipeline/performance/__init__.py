"""Performance module: skill-version to evaluation-metric correlation."""

from gameweek_pipeline.performance.ledger import (
    LEDGER_FILE,
    LedgerCorruptError,
    SkillPerformanceLedger,
)
from gameweek_pipeline.performance.tracker import (
    EvaluationNotFoundError,
    TrackResult,
    VersionChange,
    diff_versions,
    track_performance,
)
from gameweek_pipeline.performance.versions import VersionKind, read_current_versions

__all__ = [
    "LEDGER_FILE",
    "EvaluationNotFoundError",
    "LedgerCorruptError",
    "SkillPerformanceLedger",
    "TrackResult",
    "VersionChange",
    "VersionKind",
    "diff_versions",
    "read_current_versions",
    "track_performance",
]
