"""Evaluation module: prediction metrics and round evaluation."""

from gameweek_pipeline.evaluation.evaluate import (
    build_evaluation_document,
    evaluate_files,
    evaluate_round,
)
from gameweek_pipeline.evaluation.metrics import (
    CalibrationBucket,
    EvaluationReport,
    LeagueSummary,
    MatchEvaluation,
    brier_score,
    compute_brier_score,
    compute_calibration,
    compute_log_loss,
    evaluate_predictions,
    log_loss,
)

__all__ = [
    "CalibrationBucket",
    "EvaluationReport",
    "LeagueSummary",
    "MatchEvaluation",
    "brier_score",
    "build_evaluation_document",
    "compute_brier_score",
    "compute_calibration",
    "compute_log_loss",
    "evaluate_files",
    "evaluate_predictions",
    "evaluate_round",
    "log_loss",
]
