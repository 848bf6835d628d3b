"""Pytest configuration and fixtures."""

import json
import tempfile
from collections.abc import Callable
from pathlib import Path
from typing import Any

import pytest
import yaml

from gameweek_pipeline.common.config import AppConfig, load_config
from gameweek_pipeline.storage.database import Database
from gameweek_pipeline.storage.gameweek_store import GameweekStore

SEASON = "2025-26"


@pytest.fixture
def temp_dir():
    """Create a temporary directory for tests."""
    with tempfile.TemporaryDirectory() as tmpdir:
        yield Path(tmpdir)


@pytest.fixture
def dev_config_path(temp_dir: Path) -> Path:
    """Create a temporary dev config file."""
    config_data = {
        "environment": "test",
        "database": {
            "path": str(temp_dir / "test.db"),
        },
        "result_source": {
            "base_url": "https://api.sportmonks.com/v3/football",
            "api_token": "test_token",
            "timeout_seconds": 10,
            "request_delay_seconds": 0,
        },
        "storage": {
            "data_dir": str(temp_dir / "data"),
            "season": SEASON,
        },
        "logging": {
            "level": "DEBUG",
            "format": "console",
            "log_file": None,
        },
    }
    config_path = temp_dir / "test_config.yaml"
    with open(config_path, "w") as f:
        yaml.dump(config_data, f)
    return config_path


@pytest.fixture
def config(dev_config_path: Path) -> AppConfig:
    """Load test configuration."""
    return load_config(dev_config_path)


@pytest.fixture
def db(temp_dir: Path) -> Database:
    """Create a test database."""
    db_path = temp_dir / "test.db"
    database = Database(db_path)
    database.connect()
    database.migrate()
    yield database
    database.close()


@pytest.fixture
def store(config: AppConfig) -> GameweekStore:
    """Gameweek store rooted in the test data directory."""
    return GameweekStore(config.storage.gameweeks_dir, config.storage.season)


@pytest.fixture
def write_artifact(store: GameweekStore) -> Callable[[str, str, Any], Path]:
    """Write a JSON artifact into a round directory."""

    def _write(round_id: str, filename: str, data: Any) -> Path:
        path = store.artifact_path(round_id, filename)
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(json.dumps(data))
        return path

    return _write


def make_fixture(
    fixture_id: int,
    kickoff: str = "2026-02-10T19:30:00Z",
    league_id: int = 8,
) -> dict[str, Any]:
    """Fixture record in the flat on-disk shape."""
    return {
        "fixtureId": fixture_id,
        "leagueId": league_id,
        "homeTeamId": fixture_id * 10,
        "awayTeamId": fixture_id * 10 + 1,
        "kickoff": kickoff,
    }


def make_prediction(
    fixture_id: int,
    probs: tuple[float, float, float] = (0.5, 0.3, 0.2),
    predicted_score: str = "1-0",
    confidence: float | None = None,
    league: str = "Premier League",
    **extra: Any,
) -> dict[str, Any]:
    """Prediction record in the on-disk shape."""
    record = {
        "fixtureId": fixture_id,
        "homeWinProb": probs[0],
        "drawProb": probs[1],
        "awayWinProb": probs[2],
        "predictedScore": predicted_score,
        "confidence": confidence if confidence is not None else max(probs),
        "league": league,
        "homeTeam": f"Home {fixture_id}",
        "awayTeam": f"Away {fixture_id}",
    }
    record.update(extra)
    return record


def make_result(
    fixture_id: int,
    home_goals: int,
    away_goals: int,
    status: str = "finished",
) -> dict[str, Any]:
    """Result record in the on-disk shape."""
    return {
        "fixtureId": fixture_id,
        "homeGoals": home_goals,
        "awayGoals": away_goals,
        "status": status,
    }
