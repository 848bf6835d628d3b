"""Gameweek completeness detection and the one-shot evaluation marker.

Per-round state machine::

    pending -> predicted -> awaiting_evaluation -> evaluated

``awaiting_evaluation`` is the only state in which the marker file exists.
Rounds never regress because a finished result is never reverted.
"""

import sqlite3
from dataclasses import dataclass
from enum import Enum
from typing import Any

from gameweek_pipeline.common.logging import get_logger
from gameweek_pipeline.common.time_utils import utc_now
from gameweek_pipeline.storage.database import Database
from gameweek_pipeline.storage.gameweek_store import GameweekStore
from gameweek_pipeline.storage.models import EvaluationMarker
from gameweek_pipeline.storage.results import load_round_results

logger = get_logger(__name__)

MARKER_REASON = "all-matches-complete"


class RoundState(str, Enum):
    """Lifecycle state of a round."""

    PENDING = "pending"
    PREDICTED = "predicted"
    AWAITING_EVALUATION = "awaiting_evaluation"
    EVALUATED = "evaluated"


@dataclass
class GameweekCompleteness:
    """Resolution status of one round."""

    round_id: str
    total_matches: int
    finished_matches: int
    is_complete: bool
    has_predictions: bool
    has_evaluation: bool
    needs_evaluation: bool
    marker_written: bool = False

    @property
    def state(self) -> RoundState:
        if self.has_evaluation:
            return RoundState.EVALUATED
        if not self.has_predictions:
            return RoundState.PENDING
        if self.is_complete:
            return RoundState.AWAITING_EVALUATION
        return RoundState.PREDICTED

    def to_dict(self) -> dict[str, Any]:
        return {
            "roundId": self.round_id,
            "totalMatches": self.total_matches,
            "finishedMatches": self.finished_matches,
            "isComplete": self.is_complete,
            "hasPredictions": self.has_predictions,
            "hasEvaluation": self.has_evaluation,
            "needsEvaluation": self.needs_evaluation,
            "state": self.state.value,
            "markerWritten": self.marker_written,
        }


def check_round(
    store: GameweekStore, db: Database | None, round_id: str
) -> GameweekCompleteness | None:
    """Determine whether a round is fully resolved.

    Args:
        store: Gameweek store.
        db: Result store, or None when unavailable.
        round_id: Round to check.

    Returns:
        Completeness, or None when the round has no fixtures registered yet.
    """
    fixtures = store.load_fixtures(round_id)
    if not fixtures:
        logger.debug("round_without_fixtures", round_id=round_id)
        return None

    has_predictions = store.has_predictions(round_id)
    has_evaluation = store.has_evaluation(round_id)

    fixture_ids = [f.fixture_id for f in fixtures]
    if db is None:
        # Never force an evaluation on unknown data
        logger.warning("finished_count_unavailable", round_id=round_id, error="no result store")
        finished = 0
    else:
        try:
            results = load_round_results(store, db, round_id, fixture_ids, strict=True)
            finished = sum(1 for fid in fixture_ids if fid in results and results[fid].is_finished)
        except sqlite3.Error as e:
            logger.warning("finished_count_unavailable", round_id=round_id, error=str(e))
            finished = 0

    is_complete = finished == len(fixtures)
    return GameweekCompleteness(
        round_id=round_id,
        total_matches=len(fixtures),
        finished_matches=finished,
        is_complete=is_complete,
        has_predictions=has_predictions,
        has_evaluation=has_evaluation,
        needs_evaluation=is_complete and has_predictions and not has_evaluation,
    )


def round_state(completeness: GameweekCompleteness) -> RoundState:
    return completeness.state


def write_evaluation_marker(
    store: GameweekStore, round_id: str, reason: str = MARKER_REASON
) -> bool:
    """Create the round's evaluation marker; a no-op if one exists.

    Returns:
        True if a new marker was written.
    """
    marker = EvaluationMarker(round_id=round_id, detected_at=utc_now(), reason=reason)
    written = store.write_marker(marker)
    if written:
        logger.info("evaluation_marker_written", round_id=round_id, reason=reason)
    else:
        logger.debug("evaluation_marker_exists", round_id=round_id)
    return written


def has_evaluation_marker(store: GameweekStore, round_id: str) -> bool:
    return store.has_marker(round_id)


def remove_evaluation_marker(store: GameweekStore, round_id: str) -> bool:
    """Remove the round's marker after a successful evaluation."""
    removed = store.remove_marker(round_id)
    if removed:
        logger.info("evaluation_marker_removed", round_id=round_id)
    return removed


def check_gameweek_completeness(
    store: GameweekStore,
    db: Database | None,
    write_markers: bool = True,
) -> list[GameweekCompleteness]:
    """Check every round of the season and flag those ready for evaluation.

    A failure in one round is logged and does not stop the scan.

    Args:
        store: Gameweek store.
        db: Result store, or None when unavailable.
        write_markers: Write markers for rounds that need evaluation.

    Returns:
        Completeness of each round that has fixtures, oldest first.
    """
    report: list[GameweekCompleteness] = []
    for round_id in store.list_rounds():
        try:
            completeness = check_round(store, db, round_id)
            if completeness is None:
                continue
            if completeness.needs_evaluation and write_markers:
                completeness.marker_written = write_evaluation_marker(store, round_id)
        except (OSError, ValueError) as e:
            logger.error("completeness_check_failed", round_id=round_id, error=str(e))
            continue
        report.append(completeness)

    logger.info(
        "completeness_scan_complete",
        rounds=len(report),
        needs_evaluation=[c.round_id for c in report if c.needs_evaluation],
    )
    return report


def list_pending_evaluations(store: GameweekStore) -> list[EvaluationMarker]:
    """Collect the markers of every round awaiting evaluation."""
    markers = []
    for round_id in store.list_rounds():
        marker = store.read_marker(round_id)
        if marker is not None:
            markers.append(marker)
    return markers
