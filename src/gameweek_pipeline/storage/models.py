"""Schemas for the JSON artifacts exchanged by the pipeline.

Every artifact read from disk or the result source is validated against one
of these models at the boundary. Keys on disk are camelCase; attributes are
snake_case.
"""

from datetime import datetime
from enum import Enum
from typing import Any

from pydantic import (
    AliasChoices,
    BaseModel,
    ConfigDict,
    Field,
    field_validator,
    model_validator,
)

from gameweek_pipeline.common.time_utils import parse_kickoff

# Allowed deviation of a probability triple from 1.0
PROBABILITY_SUM_TOLERANCE = 0.02


class ArtifactModel(BaseModel):
    """Base model for camelCase JSON artifacts."""

    model_config = ConfigDict(populate_by_name=True)

    def to_json_dict(self) -> dict[str, Any]:
        """Serialize with on-disk (camelCase) keys."""
        return self.model_dump(by_alias=True, mode="json")


class Outcome(str, Enum):
    """Match outcome from the home side's perspective."""

    HOME = "H"
    DRAW = "D"
    AWAY = "A"

    @classmethod
    def from_goals(cls, home_goals: int, away_goals: int) -> "Outcome":
        """Derive the outcome from a final score."""
        if home_goals > away_goals:
            return cls.HOME
        if away_goals > home_goals:
            return cls.AWAY
        return cls.DRAW


class ResultStatus(str, Enum):
    """Lifecycle state of a fixture's result."""

    SCHEDULED = "scheduled"
    LIVE = "live"
    FINISHED = "finished"
    POSTPONED = "postponed"

    @property
    def is_terminal(self) -> bool:
        """Finished results are write-once."""
        return self is ResultStatus.FINISHED


class Fixture(ArtifactModel):
    """A scheduled match, as issued by the fixture store.

    Accepts both the flat shape (``leagueId``, ``homeTeamId``...) and the
    provider's nested shape (``league: {id, name}``, ``homeTeam: {id, name}``).
    """

    model_config = ConfigDict(populate_by_name=True, frozen=True)

    fixture_id: int = Field(alias="fixtureId")
    league_id: int = Field(alias="leagueId")
    home_team_id: int = Field(alias="homeTeamId")
    away_team_id: int = Field(alias="awayTeamId")
    kickoff: datetime
    league_name: str = Field(default="", alias="leagueName")
    home_team_name: str = Field(default="", alias="homeTeamName")
    away_team_name: str = Field(default="", alias="awayTeamName")

    @model_validator(mode="before")
    @classmethod
    def _flatten_nested(cls, data: Any) -> Any:
        if not isinstance(data, dict):
            return data
        data = dict(data)
        for nested_key, id_key, name_key in (
            ("league", "leagueId", "leagueName"),
            ("homeTeam", "homeTeamId", "homeTeamName"),
            ("awayTeam", "awayTeamId", "awayTeamName"),
        ):
            nested = data.pop(nested_key, None)
            if isinstance(nested, dict):
                data.setdefault(id_key, nested.get("id"))
                data.setdefault(name_key, nested.get("name") or "")
        return data

    @field_validator("kickoff", mode="before")
    @classmethod
    def _parse_kickoff(cls, value: Any) -> datetime:
        return parse_kickoff(value)


class MatchResult(ArtifactModel):
    """Current score and state of one fixture."""

    fixture_id: int = Field(alias="fixtureId")
    home_goals: int = Field(default=0, alias="homeGoals", ge=0)
    away_goals: int = Field(default=0, alias="awayGoals", ge=0)
    status: ResultStatus = ResultStatus.SCHEDULED

    @property
    def is_finished(self) -> bool:
        return self.status is ResultStatus.FINISHED

    @property
    def score(self) -> str:
        """Score in "<home>-<away>" form."""
        return f"{self.home_goals}-{self.away_goals}"

    @property
    def outcome(self) -> Outcome:
        return Outcome.from_goals(self.home_goals, self.away_goals)


class OutcomeProbabilities(BaseModel):
    """A home/draw/away probability triple."""

    H: float = Field(ge=0.0, le=1.0)
    D: float = Field(ge=0.0, le=1.0)
    A: float = Field(ge=0.0, le=1.0)

    def get(self, outcome: Outcome) -> float:
        return getattr(self, outcome.value)

    @property
    def favourite(self) -> Outcome:
        """Most likely outcome. Ties resolve to home, then away, then draw."""
        if self.H >= self.D and self.H >= self.A:
            return Outcome.HOME
        if self.A >= self.H and self.A >= self.D:
            return Outcome.AWAY
        return Outcome.DRAW


class ModelComponents(BaseModel):
    """Per-model probability triples that were blended into a prediction."""

    elo: OutcomeProbabilities | None = None
    poisson: OutcomeProbabilities | None = None
    odds: OutcomeProbabilities | None = None


class Prediction(ArtifactModel):
    """Upstream prediction for one fixture. Read-only to the pipeline."""

    fixture_id: int = Field(alias="fixtureId")
    home_win_prob: float = Field(alias="homeWinProb", ge=0.0, le=1.0)
    draw_prob: float = Field(alias="drawProb", ge=0.0, le=1.0)
    away_win_prob: float = Field(alias="awayWinProb", ge=0.0, le=1.0)
    predicted_score: str = Field(default="", alias="predictedScore")
    confidence: float = Field(ge=0.0, le=1.0)
    prediction: Outcome | None = None
    league: str = ""
    home_team: str = Field(default="", alias="homeTeam")
    away_team: str = Field(default="", alias="awayTeam")
    model_components: ModelComponents | None = Field(default=None, alias="modelComponents")

    @field_validator("predicted_score", mode="before")
    @classmethod
    def _empty_score(cls, value: Any) -> Any:
        return "" if value is None else value

    @field_validator("league", "home_team", "away_team", mode="before")
    @classmethod
    def _name_only(cls, value: Any) -> Any:
        if value is None:
            return ""
        if isinstance(value, dict):
            return value.get("name") or ""
        return value

    @model_validator(mode="after")
    def _check_probability_sum(self) -> "Prediction":
        total = self.home_win_prob + self.draw_prob + self.away_win_prob
        if abs(total - 1.0) > PROBABILITY_SUM_TOLERANCE:
            raise ValueError(f"probabilities sum to {total:.4f}, expected 1")
        return self

    @property
    def probabilities(self) -> OutcomeProbabilities:
        return OutcomeProbabilities(H=self.home_win_prob, D=self.draw_prob, A=self.away_win_prob)

    @property
    def predicted_label(self) -> Outcome:
        """Explicit label when given, otherwise the favourite of the triple."""
        if self.prediction is not None:
            return self.prediction
        return self.probabilities.favourite


class EvaluationSummary(ArtifactModel):
    """Round-level evaluation figures."""

    total_predictions: int = Field(default=0, alias="totalPredictions")
    matched_with_results: int = Field(default=0, alias="matchedWithResults")
    outcome_accuracy: float = Field(default=0.0, alias="outcomeAccuracy")
    score_accuracy: float = Field(default=0.0, alias="scoreAccuracy")
    avg_log_loss: float = Field(default=0.0, alias="avgLogLoss")
    avg_brier_score: float = Field(default=0.0, alias="avgBrierScore")
    correct_outcomes: int = Field(default=0, alias="correctOutcomes")
    correct_scores: int = Field(default=0, alias="correctScores")


class EvaluationMarker(ArtifactModel):
    """One-shot flag: round is ready to evaluate but not evaluated yet."""

    round_id: str = Field(
        validation_alias=AliasChoices("roundId", "gameweek"), serialization_alias="roundId"
    )
    detected_at: datetime = Field(alias="detectedAt")
    reason: str = "all-matches-complete"

    @field_validator("round_id", mode="before")
    @classmethod
    def _round_name(cls, value: Any) -> Any:
        # Older markers stored the bare gameweek number
        if isinstance(value, int):
            return f"GW{value}"
        return value


class VersionEntry(BaseModel):
    """One snapshot in a version manifest."""

    version: int
    timestamp: datetime | None = None
    reason: str = ""
    file: str = ""


class VersionManifest(BaseModel):
    """Version history of one skill or prompt fragment."""

    current: int = 0
    versions: list[VersionEntry] = Field(default_factory=list)


class SkillPerformanceEntry(ArtifactModel):
    """Evaluation metrics of one round linked to the versions that produced them."""

    round_id: str = Field(
        validation_alias=AliasChoices("roundId", "gameweek"), serialization_alias="roundId"
    )
    season: str
    timestamp: datetime
    outcome_accuracy: float = Field(alias="outcomeAccuracy")
    score_accuracy: float = Field(alias="scoreAccuracy")
    avg_log_loss: float = Field(alias="avgLogLoss")
    avg_brier_score: float = Field(alias="avgBrierScore")
    matches_evaluated: int = Field(alias="matchesEvaluated")
    skill_versions: dict[str, int] = Field(default_factory=dict, alias="skillVersions")
    fragment_versions: dict[str, int] = Field(default_factory=dict, alias="fragmentVersions")

    @field_validator("round_id", mode="before")
    @classmethod
    def _round_name(cls, value: Any) -> Any:
        if isinstance(value, int):
            return f"GW{value}"
        return value

    @property
    def key(self) -> tuple[str, str]:
        return (self.round_id, self.season)


class SkillPerformanceLog(ArtifactModel):
    """Append-only ledger document."""

    entries: list[SkillPerformanceEntry] = Field(default_factory=list)
    last_updated: datetime | None = Field(default=None, alias="lastUpdated")

    @field_validator("last_updated", mode="before")
    @classmethod
    def _blank_timestamp(cls, value: Any) -> Any:
        return None if value == "" else value
