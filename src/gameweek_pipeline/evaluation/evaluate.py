"""Evaluate a round's stored predictions against its results."""

from datetime import datetime
from pathlib import Path
from typing import Any

from gameweek_pipeline.common.logging import get_logger
from gameweek_pipeline.common.time_utils import format_iso, utc_now
from gameweek_pipeline.evaluation.metrics import EvaluationReport, evaluate_predictions
from gameweek_pipeline.storage.database import Database
from gameweek_pipeline.storage.files import ArtifactNotFoundError, read_json
from gameweek_pipeline.storage.gameweek_store import GameweekStore, parse_records
from gameweek_pipeline.storage.models import MatchResult, Prediction
from gameweek_pipeline.storage.results import load_round_results
from gameweek_pipeline.sync.evaluation_trigger import remove_evaluation_marker

logger = get_logger(__name__)


def build_evaluation_document(
    report: EvaluationReport,
    round_id: str,
    season: str,
    evaluated_at: datetime | None = None,
) -> dict[str, Any]:
    """Assemble the evaluation.json document."""
    document: dict[str, Any] = {
        "gameweek": round_id,
        "season": season,
        "evaluatedAt": format_iso(evaluated_at or utc_now()),
    }
    document.update(report.to_dict())
    return document


def evaluate_round(
    store: GameweekStore,
    db: Database | None,
    round_id: str,
    now: datetime | None = None,
) -> EvaluationReport:
    """Evaluate a stored round, write evaluation.json and consume its marker.

    Args:
        store: Gameweek store of the season.
        db: Result store, or None to use results.json alone.
        round_id: Round to evaluate.
        now: Evaluation timestamp. Defaults to now.

    Returns:
        Evaluation report.

    Raises:
        ArtifactNotFoundError: If the round has no readable predictions.
    """
    predictions = store.load_predictions(round_id)
    results = load_round_results(store, db, round_id)

    report = evaluate_predictions(predictions, results.values())
    path = store.save_evaluation(
        round_id, build_evaluation_document(report, round_id, store.season, now)
    )

    remove_evaluation_marker(store, round_id)

    summary = report.summary
    logger.info(
        "round_evaluated",
        round_id=round_id,
        path=str(path),
        matched=summary.matched_with_results,
        outcome_accuracy=summary.outcome_accuracy,
        avg_log_loss=summary.avg_log_loss,
    )
    return report


def evaluate_files(predictions_path: Path, results_path: Path) -> EvaluationReport:
    """Evaluate explicit predictions and results files without writing anything.

    Result records without a status are treated as final scores.

    Raises:
        ArtifactNotFoundError: If either file is missing or not valid JSON.
    """
    predictions_payload = read_json(predictions_path)
    if predictions_payload is None:
        raise ArtifactNotFoundError(predictions_path)
    results_payload = read_json(results_path)
    if results_payload is None:
        raise ArtifactNotFoundError(results_path)

    if isinstance(results_payload, list):
        results_payload = [
            {"status": "finished", **item} if isinstance(item, dict) else item
            for item in results_payload
        ]

    predictions = parse_records(predictions_payload, Prediction, str(predictions_path))
    results = parse_records(results_payload, MatchResult, str(results_path))
    return evaluate_predictions(predictions, results)
