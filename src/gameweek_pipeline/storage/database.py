"""Result store: SQLite connection and access layer."""

import sqlite3
from collections.abc import Iterable
from datetime import datetime
from pathlib import Path
from typing import Any

from gameweek_pipeline.common.logging import get_logger
from gameweek_pipeline.common.time_utils import utc_now
from gameweek_pipeline.storage.models import MatchResult, ResultStatus
from gameweek_pipeline.storage.schema import MIGRATIONS, SCHEMA_VERSION

logger = get_logger(__name__)

# Keep IN (...) lists below SQLite's host parameter limit
_MAX_IN_PARAMS = 500


def _chunks(values: list[int], size: int = _MAX_IN_PARAMS) -> Iterable[list[int]]:
    for i in range(0, len(values), size):
        yield values[i : i + size]


class Database:
    """SQLite database connection and operations."""

    def __init__(self, db_path: str | Path):
        """Initialize database connection.

        Args:
            db_path: Path to SQLite database file.
        """
        self.db_path = Path(db_path)
        self._connection: sqlite3.Connection | None = None

    def connect(self) -> None:
        """Open database connection."""
        self.db_path.parent.mkdir(parents=True, exist_ok=True)

        self._connection = sqlite3.connect(str(self.db_path), timeout=10.0)
        self._connection.row_factory = sqlite3.Row
        self._connection.execute("PRAGMA journal_mode = WAL")

        logger.info("database_connected", path=str(self.db_path))

    def close(self) -> None:
        """Close database connection."""
        if self._connection:
            self._connection.close()
            self._connection = None
            logger.info("database_closed", path=str(self.db_path))

    @property
    def connection(self) -> sqlite3.Connection:
        """Get active connection, raising if not connected."""
        if self._connection is None:
            raise RuntimeError("Database not connected. Call connect() first.")
        return self._connection

    def migrate(self) -> None:
        """Apply database migrations."""
        conn = self.connection
        cursor = conn.cursor()

        current_version = self.get_schema_version()

        for version in sorted(MIGRATIONS.keys()):
            if version > current_version:
                logger.info("applying_migration", version=version)
                cursor.executescript(MIGRATIONS[version])
                cursor.execute(
                    "INSERT INTO schema_version (version) VALUES (?)",
                    (version,),
                )
                conn.commit()
                logger.info("migration_applied", version=version)

        logger.debug(
            "migrations_complete",
            from_version=current_version,
            to_version=SCHEMA_VERSION,
        )

    def get_schema_version(self) -> int:
        """Get current schema version."""
        cursor = self.connection.cursor()
        cursor.execute(
            "SELECT name FROM sqlite_master WHERE type='table' AND name='schema_version'"
        )
        if cursor.fetchone() is None:
            return 0
        cursor.execute("SELECT MAX(version) FROM schema_version")
        row = cursor.fetchone()
        return row[0] if row[0] is not None else 0

    # --- Match result operations ---

    def upsert_result(self, result: MatchResult) -> bool:
        """Insert or overwrite a fixture's result.

        A stored ``finished`` result is terminal: later writes for the same
        fixture are ignored.

        Args:
            result: Result to store.

        Returns:
            True if the row was written, False if a finished result was kept.
        """
        cursor = self.connection.cursor()
        cursor.execute(
            """
            INSERT INTO match_results (fixture_id, home_goals, away_goals, status, updated_at)
            VALUES (?, ?, ?, ?, ?)
            ON CONFLICT(fixture_id) DO UPDATE SET
                home_goals = excluded.home_goals,
                away_goals = excluded.away_goals,
                status = excluded.status,
                updated_at = excluded.updated_at
            WHERE match_results.status != 'finished'
            """,
            (
                result.fixture_id,
                result.home_goals,
                result.away_goals,
                result.status.value,
                utc_now().isoformat(),
            ),
        )
        self.connection.commit()
        written = cursor.rowcount > 0
        if not written:
            logger.debug("finished_result_kept", fixture_id=result.fixture_id)
        return written

    def get_result(self, fixture_id: int) -> MatchResult | None:
        """Get the stored result for one fixture."""
        cursor = self.connection.cursor()
        cursor.execute("SELECT * FROM match_results WHERE fixture_id = ?", (fixture_id,))
        row = cursor.fetchone()
        return self._row_to_result(row) if row else None

    def get_results(self, fixture_ids: Iterable[int]) -> dict[int, MatchResult]:
        """Get stored results for a set of fixtures.

        Args:
            fixture_ids: Fixture IDs to look up.

        Returns:
            Mapping of fixture ID to result for the fixtures that have one.
        """
        ids = sorted(set(fixture_ids))
        results: dict[int, MatchResult] = {}
        cursor = self.connection.cursor()
        for chunk in _chunks(ids):
            placeholders = ",".join("?" for _ in chunk)
            cursor.execute(
                f"SELECT * FROM match_results WHERE fixture_id IN ({placeholders})",
                tuple(chunk),
            )
            for row in cursor.fetchall():
                results[row["fixture_id"]] = self._row_to_result(row)
        return results

    def get_finished_fixture_ids(self) -> set[int]:
        """Get IDs of every fixture with a finished result."""
        cursor = self.connection.cursor()
        cursor.execute(
            "SELECT fixture_id FROM match_results WHERE status = ?",
            (ResultStatus.FINISHED.value,),
        )
        return {row["fixture_id"] for row in cursor.fetchall()}

    def _row_to_result(self, row: sqlite3.Row) -> MatchResult:
        """Convert database row to MatchResult."""
        return MatchResult(
            fixture_id=row["fixture_id"],
            home_goals=row["home_goals"],
            away_goals=row["away_goals"],
            status=ResultStatus(row["status"]),
        )

    # --- Sync run audit ---

    def record_sync_run(
        self,
        started_at: datetime,
        checked: int,
        synced: int,
        skipped: int,
        errors: int,
    ) -> int:
        """Record a completed result sync run.

        Returns:
            ID of the created row.
        """
        cursor = self.connection.cursor()
        cursor.execute(
            """
            INSERT INTO sync_runs (started_at, completed_at, checked, synced, skipped, errors)
            VALUES (?, ?, ?, ?, ?, ?)
            """,
            (started_at.isoformat(), utc_now().isoformat(), checked, synced, skipped, errors),
        )
        self.connection.commit()
        run_id = cursor.lastrowid
        assert run_id is not None
        return run_id

    # --- Utility ---

    def execute(self, sql: str, params: tuple[Any, ...] = ()) -> sqlite3.Cursor:
        """Execute raw SQL.

        Args:
            sql: SQL statement.
            params: Query parameters.

        Returns:
            Cursor with results.
        """
        return self.connection.execute(sql, params)
