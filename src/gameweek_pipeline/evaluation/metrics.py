"""Evaluation metrics for 3-way match predictions.

Metrics:
- Outcome accuracy and exact-score accuracy
- Log loss, clamped to [0.001, 0.999] so a zero-probability outcome stays finite
- Multi-class Brier score (range [0, 2], lower is better)
- Calibration table over five confidence buckets
- Per-model-component accuracy and per-league summaries
"""

from collections.abc import Iterable, Sequence
from dataclasses import dataclass, field
from typing import Any

import numpy as np
from numpy.typing import NDArray

from gameweek_pipeline.storage.models import (
    EvaluationSummary,
    MatchResult,
    Outcome,
    OutcomeProbabilities,
    Prediction,
)

LOG_LOSS_EPS = 0.001

OUTCOMES: tuple[Outcome, ...] = (Outcome.HOME, Outcome.DRAW, Outcome.AWAY)

# (label, lower bound inclusive); the last bucket also includes 1.0
CALIBRATION_BUCKETS: tuple[tuple[str, float], ...] = (
    ("0.0-0.2", 0.0),
    ("0.2-0.4", 0.2),
    ("0.4-0.6", 0.4),
    ("0.6-0.8", 0.6),
    ("0.8-1.0", 0.8),
)

MODEL_COMPONENTS = ("elo", "poisson", "odds")

RATE_DECIMALS = 3
LOSS_DECIMALS = 4


@dataclass
class CalibrationBucket:
    """Mean stated confidence vs observed hit rate within one bucket."""

    label: str
    avg_predicted: float = 0.0
    avg_actual: float = 0.0
    count: int = 0

    def to_dict(self) -> dict[str, Any]:
        return {
            "avgPredicted": self.avg_predicted,
            "avgActual": self.avg_actual,
            "count": self.count,
        }


@dataclass
class LeagueSummary:
    """Aggregate figures for one league within a round."""

    accuracy: float
    avg_log_loss: float
    avg_brier: float
    total: int

    def to_dict(self) -> dict[str, Any]:
        return {
            "accuracy": self.accuracy,
            "avgLogLoss": self.avg_log_loss,
            "avgBrier": self.avg_brier,
            "total": self.total,
        }


@dataclass
class MatchEvaluation:
    """Per-fixture evaluation detail."""

    fixture_id: int
    predicted: Outcome
    actual: Outcome
    correct: bool
    predicted_score: str
    actual_score: str
    score_correct: bool
    log_loss: float
    brier_score: float
    confidence: float
    probs: OutcomeProbabilities
    league: str = ""
    home_team: str = ""
    away_team: str = ""
    model_component_accuracy: dict[str, bool | None] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        return {
            "fixtureId": self.fixture_id,
            "league": self.league,
            "homeTeam": self.home_team,
            "awayTeam": self.away_team,
            "predicted": self.predicted.value,
            "actual": self.actual.value,
            "correct": self.correct,
            "predictedScore": self.predicted_score,
            "actualScore": self.actual_score,
            "scoreCorrect": self.score_correct,
            "logLoss": self.log_loss,
            "brierScore": self.brier_score,
            "confidence": self.confidence,
            "probs": self.probs.model_dump(),
            "modelComponentAccuracy": dict(self.model_component_accuracy),
        }


@dataclass
class EvaluationReport:
    """Container for a round's evaluation."""

    summary: EvaluationSummary
    calibration: dict[str, CalibrationBucket]
    matches: list[MatchEvaluation] = field(default_factory=list)
    model_component_accuracy: dict[str, float | None] = field(default_factory=dict)
    league_summaries: dict[str, LeagueSummary] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        """Convert to the evaluation.json document body."""
        return {
            "summary": self.summary.to_json_dict(),
            "modelComponentAccuracy": dict(self.model_component_accuracy),
            "leagueSummaries": {k: v.to_dict() for k, v in self.league_summaries.items()},
            "calibration": {k: v.to_dict() for k, v in self.calibration.items()},
            "matches": [m.to_dict() for m in self.matches],
        }


def outcome_to_label(outcomes: Sequence[Outcome | str]) -> NDArray[np.int64]:
    """Convert outcomes to numeric labels (H=0, D=1, A=2)."""
    mapping = {o.value: i for i, o in enumerate(OUTCOMES)}
    return np.array([mapping[Outcome(o).value] for o in outcomes], dtype=np.int64)


def log_loss(prob: float, eps: float = LOG_LOSS_EPS) -> float:
    """Negative log of the probability given to the actual outcome, clamped."""
    return float(-np.log(np.clip(prob, eps, 1 - eps)))


def brier_score(probs: OutcomeProbabilities, actual: Outcome) -> float:
    """Sum of squared errors between the triple and the one-hot actual outcome."""
    return float(sum((probs.get(o) - (1.0 if o is actual else 0.0)) ** 2 for o in OUTCOMES))


def compute_log_loss(
    y_true: NDArray[np.int64],
    y_proba: NDArray[np.float64],
    eps: float = LOG_LOSS_EPS,
) -> NDArray[np.float64]:
    """Compute per-sample log loss.

    Args:
        y_true: True labels (0=H, 1=D, 2=A).
        y_proba: Predicted probabilities, shape (n_samples, 3).
        eps: Clamp bound; probabilities are clipped to [eps, 1 - eps].

    Returns:
        Log loss of each sample.
    """
    p_actual = y_proba[np.arange(len(y_true)), y_true]
    return -np.log(np.clip(p_actual, eps, 1 - eps))


def compute_brier_score(
    y_true: NDArray[np.int64],
    y_proba: NDArray[np.float64],
) -> NDArray[np.float64]:
    """Compute per-sample multi-class Brier score.

    Args:
        y_true: True labels (0=H, 1=D, 2=A).
        y_proba: Predicted probabilities, shape (n_samples, 3).

    Returns:
        Brier score of each sample.
    """
    y_onehot = np.zeros_like(y_proba)
    y_onehot[np.arange(len(y_true)), y_true] = 1.0
    return np.sum((y_proba - y_onehot) ** 2, axis=1)


def calibration_bucket(confidence: float) -> str:
    """Get the label of the half-open bucket a confidence falls in."""
    label = CALIBRATION_BUCKETS[0][0]
    for bucket_label, lower in CALIBRATION_BUCKETS:
        if confidence >= lower:
            label = bucket_label
    return label


def compute_calibration(
    confidences: Sequence[float],
    correct: Sequence[bool],
) -> dict[str, CalibrationBucket]:
    """Bucket predictions by confidence and compare to their hit rate.

    Args:
        confidences: Stated confidence of each prediction.
        correct: Whether each prediction's outcome was right.

    Returns:
        Every bucket, in order, including empty ones.
    """
    sums: dict[str, list[float]] = {label: [0.0, 0.0, 0] for label, _ in CALIBRATION_BUCKETS}
    for conf, hit in zip(confidences, correct, strict=True):
        acc = sums[calibration_bucket(conf)]
        acc[0] += conf
        acc[1] += 1.0 if hit else 0.0
        acc[2] += 1

    calibration = {}
    for label, (predicted, actual, count) in sums.items():
        n = int(count)
        calibration[label] = CalibrationBucket(
            label=label,
            avg_predicted=round(predicted / n, RATE_DECIMALS) if n else 0.0,
            avg_actual=round(actual / n, RATE_DECIMALS) if n else 0.0,
            count=n,
        )
    return calibration


def _rate(numerator: float, denominator: int, decimals: int) -> float:
    return round(numerator / denominator, decimals) if denominator > 0 else 0.0


def evaluate_predictions(
    predictions: Sequence[Prediction],
    results: Iterable[MatchResult],
) -> EvaluationReport:
    """Score predictions against final results.

    Only finished results count, and only fixtures present in both inputs
    are matched; unmatched predictions do not affect any figure.

    Args:
        predictions: Round predictions.
        results: Round results (any status).

    Returns:
        EvaluationReport; all rates are 0 when nothing matched.
    """
    finished = {r.fixture_id: r for r in results if r.is_finished}
    pairs = [(p, finished[p.fixture_id]) for p in predictions if p.fixture_id in finished]

    n = len(pairs)
    if n == 0:
        return EvaluationReport(
            summary=EvaluationSummary(total_predictions=len(predictions)),
            calibration=compute_calibration([], []),
            model_component_accuracy={name: None for name in MODEL_COMPONENTS},
        )

    actual = [r.outcome for _, r in pairs]
    y_true = outcome_to_label(actual)
    y_proba = np.array(
        [[p.home_win_prob, p.draw_prob, p.away_win_prob] for p, _ in pairs],
        dtype=np.float64,
    )
    losses = compute_log_loss(y_true, y_proba)
    briers = compute_brier_score(y_true, y_proba)

    outcome_hits = [p.predicted_label is a for (p, _), a in zip(pairs, actual, strict=True)]
    # An empty predicted score never equals "<h>-<a>"
    score_hits = [bool(p.predicted_score) and p.predicted_score == r.score for p, r in pairs]

    component_hits: dict[str, list[bool]] = {name: [] for name in MODEL_COMPONENTS}
    league_acc: dict[str, list[float]] = {}
    matches = []

    for i, ((pred, result), outcome) in enumerate(zip(pairs, actual, strict=True)):
        component_flags: dict[str, bool | None] = {}
        for name in MODEL_COMPONENTS:
            triple = getattr(pred.model_components, name, None) if pred.model_components else None
            if triple is None:
                component_flags[name] = None
                continue
            hit = triple.favourite is outcome
            component_flags[name] = hit
            component_hits[name].append(hit)

        stats = league_acc.setdefault(pred.league, [0.0, 0.0, 0.0, 0])
        stats[0] += 1.0 if outcome_hits[i] else 0.0
        stats[1] += float(losses[i])
        stats[2] += float(briers[i])
        stats[3] += 1

        matches.append(
            MatchEvaluation(
                fixture_id=pred.fixture_id,
                league=pred.league,
                home_team=pred.home_team,
                away_team=pred.away_team,
                predicted=pred.predicted_label,
                actual=outcome,
                correct=outcome_hits[i],
                predicted_score=pred.predicted_score,
                actual_score=result.score,
                score_correct=score_hits[i],
                log_loss=round(float(losses[i]), LOSS_DECIMALS),
                brier_score=round(float(briers[i]), LOSS_DECIMALS),
                confidence=pred.confidence,
                probs=pred.probabilities,
                model_component_accuracy=component_flags,
            )
        )

    correct_outcomes = sum(outcome_hits)
    correct_scores = sum(score_hits)

    summary = EvaluationSummary(
        total_predictions=len(predictions),
        matched_with_results=n,
        outcome_accuracy=_rate(correct_outcomes, n, RATE_DECIMALS),
        score_accuracy=_rate(correct_scores, n, RATE_DECIMALS),
        avg_log_loss=round(float(np.mean(losses)), LOSS_DECIMALS),
        avg_brier_score=round(float(np.mean(briers)), LOSS_DECIMALS),
        correct_outcomes=correct_outcomes,
        correct_scores=correct_scores,
    )

    league_summaries = {
        league: LeagueSummary(
            accuracy=_rate(hits, int(total), RATE_DECIMALS),
            avg_log_loss=_rate(loss, int(total), LOSS_DECIMALS),
            avg_brier=_rate(brier, int(total), LOSS_DECIMALS),
            total=int(total),
        )
        for league, (hits, loss, brier, total) in league_acc.items()
    }

    return EvaluationReport(
        summary=summary,
        calibration=compute_calibration([p.confidence for p, _ in pairs], outcome_hits),
        matches=matches,
        model_component_accuracy={
            name: _rate(sum(hits), len(hits), RATE_DECIMALS) if hits else None
            for name, hits in component_hits.items()
        },
        league_summaries=league_summaries,
    )
