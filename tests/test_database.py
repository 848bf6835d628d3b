"""Tests for database migrations and result store operations."""

from pathlib import Path

import pytest

from gameweek_pipeline.common.time_utils import utc_now
from gameweek_pipeline.storage.database import Database
from gameweek_pipeline.storage.models import MatchResult, ResultStatus
from gameweek_pipeline.storage.schema import SCHEMA_VERSION


class TestDatabaseMigrations:
    """Test database migrations."""

    def test_migrate_creates_tables(self, temp_dir: Path):
        """Test that migrations create all required tables."""
        db = Database(temp_dir / "test_migrate.db")
        db.connect()
        db.migrate()

        cursor = db.execute("SELECT name FROM sqlite_master WHERE type='table' ORDER BY name")
        tables = {row[0] for row in cursor.fetchall()}

        assert {"schema_version", "match_results", "sync_runs"}.issubset(tables)

        db.close()

    def test_schema_version_tracked(self, temp_dir: Path):
        """Test that schema version is properly tracked."""
        db = Database(temp_dir / "test_version.db")
        db.connect()

        assert db.get_schema_version() == 0

        db.migrate()
        assert db.get_schema_version() == SCHEMA_VERSION

        db.close()

    def test_migrate_is_idempotent(self, temp_dir: Path):
        """Test that running migrations multiple times is safe."""
        db = Database(temp_dir / "test_idempotent.db")
        db.connect()
        db.migrate()
        db.migrate()

        assert db.get_schema_version() == SCHEMA_VERSION

        db.close()

    def test_connection_required(self, temp_dir: Path):
        db = Database(temp_dir / "never_connected.db")

        with pytest.raises(RuntimeError):
            db.get_finished_fixture_ids()


class TestMatchResults:
    """Test result upserts and lookups."""

    def test_upsert_and_get(self, db: Database):
        result = MatchResult(fixture_id=1, home_goals=2, away_goals=1, status=ResultStatus.LIVE)

        assert db.upsert_result(result) is True

        stored = db.get_result(1)
        assert stored == result

    def test_live_result_is_overwritten(self, db: Database):
        db.upsert_result(MatchResult(fixture_id=1, home_goals=0, away_goals=0, status=ResultStatus.LIVE))
        db.upsert_result(
            MatchResult(fixture_id=1, home_goals=2, away_goals=1, status=ResultStatus.FINISHED)
        )

        stored = db.get_result(1)
        assert stored is not None
        assert stored.is_finished
        assert stored.score == "2-1"

    def test_finished_result_is_never_downgraded(self, db: Database):
        db.upsert_result(
            MatchResult(fixture_id=1, home_goals=2, away_goals=1, status=ResultStatus.FINISHED)
        )

        written = db.upsert_result(
            MatchResult(fixture_id=1, home_goals=0, away_goals=0, status=ResultStatus.LIVE)
        )

        assert written is False
        stored = db.get_result(1)
        assert stored is not None
        assert stored.status is ResultStatus.FINISHED
        assert stored.score == "2-1"

    def test_get_missing_result(self, db: Database):
        assert db.get_result(999) is None

    def test_get_results_subset(self, db: Database):
        for fixture_id in (1, 2, 3):
            db.upsert_result(
                MatchResult(fixture_id=fixture_id, home_goals=1, away_goals=0, status=ResultStatus.FINISHED)
            )

        results = db.get_results([2, 3, 4])

        assert set(results) == {2, 3}

    def test_get_results_many_ids(self, db: Database):
        """Lookups larger than one IN-list chunk still return every row."""
        for fixture_id in range(1, 601):
            db.upsert_result(MatchResult(fixture_id=fixture_id, status=ResultStatus.FINISHED))

        results = db.get_results(range(1, 601))

        assert len(results) == 600

    def test_finished_ids(self, db: Database):
        db.upsert_result(MatchResult(fixture_id=1, home_goals=1, away_goals=1, status=ResultStatus.FINISHED))
        db.upsert_result(MatchResult(fixture_id=2, home_goals=0, away_goals=0, status=ResultStatus.LIVE))
        db.upsert_result(MatchResult(fixture_id=3, status=ResultStatus.POSTPONED))

        assert db.get_finished_fixture_ids() == {1}


class TestSyncRuns:
    """Test sync run audit rows."""

    def test_record_sync_run(self, db: Database):
        run_id = db.record_sync_run(started_at=utc_now(), checked=5, synced=3, skipped=1, errors=1)

        row = db.execute("SELECT * FROM sync_runs WHERE id = ?", (run_id,)).fetchone()
        assert row["checked"] == 5
        assert row["synced"] == 3
        assert row["skipped"] == 1
        assert row["errors"] == 1
