"""File-backed per-round artifact store.

Layout::

    <root>/<season>/GW<n>/matches.json           fixtures
    <root>/<season>/GW<n>/predictions.json       predictions
    <root>/<season>/GW<n>/results.json           file-cached results
    <root>/<season>/GW<n>/evaluation.json        evaluation summary
    <root>/<season>/GW<n>/_needs-evaluation.json evaluation marker
"""

import re
from pathlib import Path
from typing import Any, TypeVar

from pydantic import BaseModel, ValidationError

from gameweek_pipeline.common.logging import get_logger
from gameweek_pipeline.storage.files import (
    ArtifactNotFoundError,
    create_json_exclusive,
    read_json,
    write_json_atomic,
)
from gameweek_pipeline.storage.models import (
    EvaluationMarker,
    EvaluationSummary,
    Fixture,
    MatchResult,
    Prediction,
)

logger = get_logger(__name__)

MATCHES_FILE = "matches.json"
PREDICTIONS_FILE = "predictions.json"
RESULTS_FILE = "results.json"
EVALUATION_FILE = "evaluation.json"
MARKER_FILE = "_needs-evaluation.json"

_ROUND_PATTERN = re.compile(r"^GW(\d+)$")

ModelT = TypeVar("ModelT", bound=BaseModel)


def round_number(round_id: str) -> int:
    """Get the numeric part of a round name ("GW25" -> 25)."""
    match = _ROUND_PATTERN.match(round_id)
    if not match:
        raise ValueError(f"Invalid round id: {round_id!r} (expected GW<n>)")
    return int(match.group(1))


def normalize_round_id(value: str | int) -> str:
    """Accept "GW25", "gw25" or "25" and return "GW25"."""
    text = str(value).strip().upper()
    if text.isdigit():
        text = f"GW{int(text)}"
    round_number(text)
    return text


def parse_records(payload: Any, model: type[ModelT], source: str) -> list[ModelT]:
    """Validate a JSON array record by record, skipping invalid entries.

    Args:
        payload: Parsed JSON (expected to be a list).
        model: Schema for each record.
        source: Label used in log events.

    Returns:
        Valid records in input order.
    """
    if payload is None:
        return []
    if not isinstance(payload, list):
        logger.warning("artifact_not_a_list", source=source, type=type(payload).__name__)
        return []

    records: list[ModelT] = []
    for index, item in enumerate(payload):
        try:
            records.append(model.model_validate(item))
        except ValidationError as e:
            logger.warning(
                "invalid_record_skipped",
                source=source,
                index=index,
                errors=e.error_count(),
                detail=str(e).splitlines()[0],
            )
    return records


class GameweekStore:
    """Reads and writes the JSON artifacts of each round of one season."""

    def __init__(self, root: str | Path, season: str):
        """Initialize store.

        Args:
            root: Directory holding one sub-directory per season.
            season: Season directory name (e.g. "2025-26").
        """
        self.root = Path(root)
        self.season = season

    @property
    def season_dir(self) -> Path:
        return self.root / self.season

    def round_dir(self, round_id: str) -> Path:
        return self.season_dir / round_id

    def artifact_path(self, round_id: str, filename: str) -> Path:
        return self.round_dir(round_id) / filename

    def list_rounds(self) -> list[str]:
        """List round ids of the season, oldest first."""
        if not self.season_dir.is_dir():
            logger.debug("season_dir_missing", path=str(self.season_dir))
            return []
        rounds = [
            entry.name
            for entry in self.season_dir.iterdir()
            if entry.is_dir() and _ROUND_PATTERN.match(entry.name)
        ]
        return sorted(rounds, key=round_number)

    # --- Fixtures ---

    def load_fixtures(self, round_id: str) -> list[Fixture]:
        """Load a round's fixtures; missing or malformed files yield []."""
        path = self.artifact_path(round_id, MATCHES_FILE)
        return parse_records(read_json(path), Fixture, f"{round_id}/{MATCHES_FILE}")

    def load_all_fixtures(self) -> dict[str, list[Fixture]]:
        """Load fixtures of every round, keyed by round id."""
        return {round_id: self.load_fixtures(round_id) for round_id in self.list_rounds()}

    # --- Predictions ---

    def has_predictions(self, round_id: str) -> bool:
        return self.artifact_path(round_id, PREDICTIONS_FILE).exists()

    def load_predictions(self, round_id: str) -> list[Prediction]:
        """Load a round's predictions.

        Raises:
            ArtifactNotFoundError: If the file is missing or not valid JSON.
        """
        path = self.artifact_path(round_id, PREDICTIONS_FILE)
        payload = read_json(path)
        if payload is None:
            raise ArtifactNotFoundError(path)
        return parse_records(payload, Prediction, f"{round_id}/{PREDICTIONS_FILE}")

    # --- Results (file cache) ---

    def load_cached_results(self, round_id: str) -> list[MatchResult]:
        path = self.artifact_path(round_id, RESULTS_FILE)
        return parse_records(read_json(path), MatchResult, f"{round_id}/{RESULTS_FILE}")

    def merge_results(self, round_id: str, results: list[MatchResult]) -> int:
        """Overwrite cached results by fixture id, never replacing a finished one.

        Returns:
            Number of results written.
        """
        cached = {r.fixture_id: r for r in self.load_cached_results(round_id)}
        written = 0
        for result in results:
            existing = cached.get(result.fixture_id)
            if existing is not None and existing.is_finished:
                continue
            cached[result.fixture_id] = result
            written += 1

        if written:
            write_json_atomic(
                self.artifact_path(round_id, RESULTS_FILE),
                [r.to_json_dict() for r in cached.values()],
            )
        return written

    # --- Evaluation ---

    def has_evaluation(self, round_id: str) -> bool:
        return self.artifact_path(round_id, EVALUATION_FILE).exists()

    def load_evaluation(self, round_id: str) -> dict[str, Any] | None:
        payload = read_json(self.artifact_path(round_id, EVALUATION_FILE))
        return payload if isinstance(payload, dict) else None

    def load_evaluation_summary(self, round_id: str) -> EvaluationSummary:
        """Load the summary block of a round's evaluation.

        Raises:
            ArtifactNotFoundError: If there is no readable evaluation summary.
        """
        path = self.artifact_path(round_id, EVALUATION_FILE)
        document = self.load_evaluation(round_id)
        if document is None or not isinstance(document.get("summary"), dict):
            raise ArtifactNotFoundError(path, f"Evaluation summary not found: {path}")
        try:
            return EvaluationSummary.model_validate(document["summary"])
        except ValidationError as e:
            raise ArtifactNotFoundError(path, f"Invalid evaluation summary in {path}: {e}") from e

    def save_evaluation(self, round_id: str, document: dict[str, Any]) -> Path:
        path = self.artifact_path(round_id, EVALUATION_FILE)
        write_json_atomic(path, document)
        return path

    # --- Evaluation marker ---

    def has_marker(self, round_id: str) -> bool:
        return self.artifact_path(round_id, MARKER_FILE).exists()

    def read_marker(self, round_id: str) -> EvaluationMarker | None:
        payload = read_json(self.artifact_path(round_id, MARKER_FILE))
        if payload is None:
            return None
        try:
            return EvaluationMarker.model_validate(payload)
        except ValidationError as e:
            logger.warning("invalid_marker", round_id=round_id, detail=str(e).splitlines()[0])
            return None

    def write_marker(self, marker: EvaluationMarker) -> bool:
        """Create the round's marker unless one already exists.

        Returns:
            True if a new marker was written.
        """
        path = self.artifact_path(marker.round_id, MARKER_FILE)
        return create_json_exclusive(path, marker.to_json_dict())

    def remove_marker(self, round_id: str) -> bool:
        """Delete the round's marker.

        Returns:
            True if a marker was removed, False if none existed.
        """
        try:
            self.artifact_path(round_id, MARKER_FILE).unlink()
        except FileNotFoundError:
            return False
        return True
