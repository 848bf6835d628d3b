"""Tests for the file-backed gameweek store."""

import json
from datetime import UTC, datetime

import pytest
from conftest import make_fixture, make_prediction, make_result

from gameweek_pipeline.storage.files import (
    ArtifactNotFoundError,
    create_json_exclusive,
    write_json_atomic,
)
from gameweek_pipeline.storage.gameweek_store import (
    EVALUATION_FILE,
    MARKER_FILE,
    MATCHES_FILE,
    PREDICTIONS_FILE,
    RESULTS_FILE,
    GameweekStore,
    normalize_round_id,
    round_number,
)
from gameweek_pipeline.storage.models import EvaluationMarker, MatchResult, ResultStatus


class TestRoundIds:
    """Test round id parsing."""

    def test_round_number(self):
        assert round_number("GW25") == 25

    @pytest.mark.parametrize("value", ["GW7", "gw7", "7", 7, " 7 "])
    def test_normalize(self, value):
        assert normalize_round_id(value) == "GW7"

    def test_invalid_round(self):
        with pytest.raises(ValueError):
            normalize_round_id("week-7")


class TestListRounds:
    """Test round discovery."""

    def test_rounds_sorted_numerically(self, store: GameweekStore, write_artifact):
        for round_id in ("GW10", "GW2", "GW1"):
            write_artifact(round_id, MATCHES_FILE, [])
        (store.season_dir / "notes").mkdir()

        assert store.list_rounds() == ["GW1", "GW2", "GW10"]

    def test_missing_season(self, store: GameweekStore):
        assert store.list_rounds() == []


class TestFixturesAndPredictions:
    """Test artifact loading."""

    def test_load_fixtures_flat_and_nested(self, store: GameweekStore, write_artifact):
        nested = {
            "fixtureId": 2,
            "league": {"id": 564, "name": "La Liga"},
            "homeTeam": {"id": 20, "name": "Home"},
            "awayTeam": {"id": 21, "name": "Away"},
            "kickoff": "2026-02-10 19:30:00",
        }
        write_artifact("GW1", MATCHES_FILE, [make_fixture(1), nested])

        fixtures = store.load_fixtures("GW1")

        assert [f.fixture_id for f in fixtures] == [1, 2]
        assert fixtures[1].league_id == 564
        assert fixtures[1].league_name == "La Liga"
        assert fixtures[1].kickoff == datetime(2026, 2, 10, 19, 30, tzinfo=UTC)

    @pytest.mark.parametrize("kickoff", [None, 1770751800, ["2026-02-10"]])
    def test_fixture_with_invalid_kickoff_skipped(self, store: GameweekStore, write_artifact, kickoff):
        bad = make_fixture(2)
        bad["kickoff"] = kickoff
        write_artifact("GW1", MATCHES_FILE, [make_fixture(1), bad])

        assert [f.fixture_id for f in store.load_fixtures("GW1")] == [1]

    def test_malformed_fixtures_treated_as_absent(self, store: GameweekStore):
        path = store.artifact_path("GW1", MATCHES_FILE)
        path.parent.mkdir(parents=True)
        path.write_text("{not json")

        assert store.load_fixtures("GW1") == []

    def test_invalid_predictions_skipped(self, store: GameweekStore, write_artifact):
        write_artifact(
            "GW1",
            PREDICTIONS_FILE,
            [
                make_prediction(1),
                make_prediction(2, probs=(0.9, 0.9, 0.9)),
                {"fixtureId": 3},
            ],
        )

        predictions = store.load_predictions("GW1")

        assert [p.fixture_id for p in predictions] == [1]

    def test_missing_predictions_raise(self, store: GameweekStore):
        assert store.has_predictions("GW1") is False
        with pytest.raises(ArtifactNotFoundError):
            store.load_predictions("GW1")


class TestResultsCache:
    """Test results.json merging."""

    def test_merge_writes_results(self, store: GameweekStore):
        written = store.merge_results(
            "GW1", [MatchResult(fixture_id=1, home_goals=1, away_goals=0, status=ResultStatus.LIVE)]
        )

        assert written == 1
        assert store.load_cached_results("GW1")[0].status is ResultStatus.LIVE

    def test_merge_never_replaces_finished(self, store: GameweekStore, write_artifact):
        write_artifact("GW1", RESULTS_FILE, [make_result(1, 2, 1)])

        written = store.merge_results(
            "GW1", [MatchResult(fixture_id=1, home_goals=0, away_goals=0, status=ResultStatus.LIVE)]
        )

        assert written == 0
        cached = store.load_cached_results("GW1")
        assert cached[0].score == "2-1"
        assert cached[0].is_finished


class TestEvaluationArtifacts:
    """Test evaluation summary and marker handling."""

    def test_evaluation_summary(self, store: GameweekStore, write_artifact):
        write_artifact(
            "GW1",
            EVALUATION_FILE,
            {"gameweek": "GW1", "summary": {"matchedWithResults": 3, "outcomeAccuracy": 0.667}},
        )

        summary = store.load_evaluation_summary("GW1")

        assert store.has_evaluation("GW1")
        assert summary.matched_with_results == 3
        assert summary.outcome_accuracy == 0.667

    def test_missing_evaluation_summary(self, store: GameweekStore, write_artifact):
        with pytest.raises(ArtifactNotFoundError):
            store.load_evaluation_summary("GW1")

        write_artifact("GW2", EVALUATION_FILE, {"gameweek": "GW2"})
        with pytest.raises(ArtifactNotFoundError):
            store.load_evaluation_summary("GW2")

    def test_marker_is_created_once(self, store: GameweekStore):
        first = EvaluationMarker(round_id="GW1", detected_at=datetime(2026, 2, 10, tzinfo=UTC))
        second = EvaluationMarker(round_id="GW1", detected_at=datetime(2026, 2, 11, tzinfo=UTC))

        assert store.write_marker(first) is True
        assert store.write_marker(second) is False

        marker = store.read_marker("GW1")
        assert marker is not None
        assert marker.detected_at == first.detected_at

    def test_marker_on_disk_shape(self, store: GameweekStore):
        store.write_marker(EvaluationMarker(round_id="GW1", detected_at=datetime(2026, 2, 10, tzinfo=UTC)))

        data = json.loads(store.artifact_path("GW1", MARKER_FILE).read_text())

        assert data["roundId"] == "GW1"
        assert data["reason"] == "all-matches-complete"
        assert "detectedAt" in data

    def test_legacy_marker_with_gameweek_number(self, store: GameweekStore, write_artifact):
        write_artifact("GW4", MARKER_FILE, {"gameweek": 4, "detectedAt": "2026-02-10T00:00:00Z"})

        marker = store.read_marker("GW4")

        assert marker is not None
        assert marker.round_id == "GW4"

    def test_remove_marker(self, store: GameweekStore):
        store.write_marker(EvaluationMarker(round_id="GW1", detected_at=datetime(2026, 2, 10, tzinfo=UTC)))

        assert store.remove_marker("GW1") is True
        assert store.remove_marker("GW1") is False
        assert store.has_marker("GW1") is False


class TestAtomicWrite:
    """Test atomic JSON writes."""

    def test_no_temp_files_left(self, temp_dir):
        path = temp_dir / "nested" / "doc.json"

        write_json_atomic(path, {"a": 1})
        write_json_atomic(path, {"a": 2})

        assert json.loads(path.read_text()) == {"a": 2}
        assert [p.name for p in path.parent.iterdir()] == ["doc.json"]

    def test_exclusive_create_leaves_only_final_file(self, temp_dir):
        path = temp_dir / "round" / "marker.json"

        assert create_json_exclusive(path, {"a": 1}) is True
        assert create_json_exclusive(path, {"a": 2}) is False

        assert json.loads(path.read_text()) == {"a": 1}
        assert [p.name for p in path.parent.iterdir()] == ["marker.json"]

    def test_failed_exclusive_create_leaves_nothing(self, temp_dir):
        path = temp_dir / "round" / "marker.json"

        with pytest.raises(TypeError):
            create_json_exclusive(path, {"detectedAt": object()})

        assert not path.exists()
        assert list(path.parent.iterdir()) == []
