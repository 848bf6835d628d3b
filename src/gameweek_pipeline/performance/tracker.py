"""Correlate a round's evaluation with the skill versions that produced it."""

from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path
from typing import Any

from gameweek_pipeline.common.logging import get_logger
from gameweek_pipeline.common.time_utils import utc_now
from gameweek_pipeline.performance.ledger import SkillPerformanceLedger
from gameweek_pipeline.performance.versions import VersionKind, read_current_versions
from gameweek_pipeline.storage.files import ArtifactNotFoundError
from gameweek_pipeline.storage.gameweek_store import GameweekStore
from gameweek_pipeline.storage.models import SkillPerformanceEntry

logger = get_logger(__name__)


class EvaluationNotFoundError(ArtifactNotFoundError):
    """The round has no evaluation summary to track."""


@dataclass
class VersionChange:
    """A skill or fragment whose version differs from the previous entry."""

    kind: VersionKind
    name: str
    previous: int
    current: int

    def describe(self) -> str:
        label = "skill" if self.kind is VersionKind.SKILL else "fragment"
        return f"{label} {self.name}: v{self.previous} -> v{self.current}"


@dataclass
class TrackResult:
    """Outcome of one tracking run."""

    entry: SkillPerformanceEntry
    appended: bool
    accuracy_delta: float | None = None
    version_changes: list[VersionChange] = field(default_factory=list)

    def summary(self) -> str:
        if not self.appended:
            return f"{self.entry.round_id} ({self.entry.season}) already tracked"
        lines = [
            f"{self.entry.round_id} ({self.entry.season}): "
            f"accuracy {self.entry.outcome_accuracy * 100:.1f}%, "
            f"log loss {self.entry.avg_log_loss:.4f}, "
            f"{self.entry.matches_evaluated} matches"
        ]
        if self.accuracy_delta is not None:
            lines.append(f"vs prev: {self.accuracy_delta * 100:+.1f}% accuracy change")
        lines.extend(f"  {change.describe()}" for change in self.version_changes)
        return "\n".join(lines)

    def to_dict(self) -> dict[str, Any]:
        return {
            "appended": self.appended,
            "entry": self.entry.to_json_dict(),
            "accuracyDelta": self.accuracy_delta,
            "versionChanges": [
                {
                    "kind": c.kind.value,
                    "name": c.name,
                    "previous": c.previous,
                    "current": c.current,
                }
                for c in self.version_changes
            ],
        }


def diff_versions(
    kind: VersionKind,
    previous: dict[str, int],
    current: dict[str, int],
) -> list[VersionChange]:
    """List names whose version changed; a name missing on one side is version 0."""
    changes = []
    for name in sorted(set(previous) | set(current)):
        before = previous.get(name, 0)
        after = current.get(name, 0)
        if before != after:
            changes.append(VersionChange(kind=kind, name=name, previous=before, current=after))
    return changes


def track_performance(
    store: GameweekStore,
    ledger: SkillPerformanceLedger,
    memory_dir: Path,
    round_id: str,
    season: str | None = None,
    now: datetime | None = None,
) -> TrackResult:
    """Record a round's evaluation metrics with the current skill versions.

    Running twice for the same round and season appends once.

    Args:
        store: Gameweek store holding the round's evaluation.
        ledger: Performance ledger.
        memory_dir: Memory root holding the version manifests.
        round_id: Evaluated round.
        season: Season label. Defaults to the store's season.
        now: Entry timestamp. Defaults to now.

    Returns:
        Tracking result.

    Raises:
        EvaluationNotFoundError: If the round has no evaluation summary.
        LedgerCorruptError: If the existing ledger cannot be parsed.
    """
    season = season or store.season
    try:
        summary = store.load_evaluation_summary(round_id)
    except ArtifactNotFoundError as e:
        raise EvaluationNotFoundError(e.path, f"No evaluation for {round_id}: {e}") from e

    entry = SkillPerformanceEntry(
        round_id=round_id,
        season=season,
        timestamp=now or utc_now(),
        outcome_accuracy=summary.outcome_accuracy,
        score_accuracy=summary.score_accuracy,
        avg_log_loss=summary.avg_log_loss,
        avg_brier_score=summary.avg_brier_score,
        matches_evaluated=summary.matched_with_results,
        skill_versions=read_current_versions(memory_dir, VersionKind.SKILL),
        fragment_versions=read_current_versions(memory_dir, VersionKind.FRAGMENT),
    )

    previous = ledger.read_all()
    if not ledger.append_if_absent(entry):
        return TrackResult(entry=entry, appended=False)

    result = TrackResult(entry=entry, appended=True)
    if previous:
        last = previous[-1]
        result.accuracy_delta = round(entry.outcome_accuracy - last.outcome_accuracy, 4)
        result.version_changes = diff_versions(
            VersionKind.SKILL, last.skill_versions, entry.skill_versions
        ) + diff_versions(VersionKind.FRAGMENT, last.fragment_versions, entry.fragment_versions)
        logger.info(
            "performance_delta",
            round_id=round_id,
            accuracy_delta=result.accuracy_delta,
            version_changes=len(result.version_changes),
        )
    return result
