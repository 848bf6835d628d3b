"""Poll due fixtures from the result source and record their results."""

import asyncio
import sqlite3
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any

from gameweek_pipeline.common.logging import get_logger
from gameweek_pipeline.common.time_utils import utc_now
from gameweek_pipeline.sportmonks.client import ResultSourceError
from gameweek_pipeline.sportmonks.interfaces import IResultSource
from gameweek_pipeline.storage.database import Database
from gameweek_pipeline.storage.gameweek_store import GameweekStore
from gameweek_pipeline.storage.models import MatchResult
from gameweek_pipeline.sync.scheduler import SyncPlan

logger = get_logger(__name__)


@dataclass
class SyncReport:
    """Outcome of one polling pass."""

    checked: int = 0
    synced: int = 0
    skipped: int = 0
    errors: list[str] = field(default_factory=list)
    results: list[MatchResult] = field(default_factory=list)

    def add_error(self, fixture_id: int, error: str) -> None:
        self.errors.append(f"{fixture_id}: {error}")

    def to_dict(self) -> dict[str, Any]:
        return {
            "checked": self.checked,
            "synced": self.synced,
            "skipped": self.skipped,
            "errors": list(self.errors),
        }

    def summary(self) -> str:
        return (
            f"checked {self.checked}, synced {self.synced}, "
            f"skipped {self.skipped}, errors {len(self.errors)}"
        )


class ResultSyncer:
    """Polls pending fixtures one at a time and writes the result store.

    A failure on one fixture skips that fixture only; the batch always runs
    to completion.
    """

    def __init__(
        self,
        source: IResultSource,
        store: GameweekStore,
        db: Database | None,
        request_delay_seconds: float = 0.2,
    ):
        """Initialize syncer.

        Args:
            source: Result source to poll.
            store: Gameweek store (results.json is kept in step with the DB).
            db: Result store, or None to only update the file cache.
            request_delay_seconds: Pause between consecutive source calls.
        """
        self.source = source
        self.store = store
        self.db = db
        self.request_delay_seconds = request_delay_seconds

    async def sync(self, plan: SyncPlan) -> SyncReport:
        """Poll every pending fixture of a plan."""
        return await self.sync_fixtures(plan.pending_fixture_ids)

    async def sync_fixtures(self, fixture_ids: list[int]) -> SyncReport:
        """Poll the given fixtures sequentially.

        Args:
            fixture_ids: Fixtures to poll.

        Returns:
            Report of the pass.
        """
        started_at = utc_now()
        report = SyncReport()
        fixture_rounds = self._fixture_rounds()
        fetched: dict[str, list[MatchResult]] = {}

        for index, fixture_id in enumerate(fixture_ids):
            if index > 0 and self.request_delay_seconds > 0:
                await asyncio.sleep(self.request_delay_seconds)

            report.checked += 1
            try:
                result = await self.source.get_result(fixture_id)
            except (ResultSourceError, ValueError) as e:
                logger.warning("result_fetch_failed", fixture_id=fixture_id, error=str(e))
                report.add_error(fixture_id, str(e))
                continue

            if result is None:
                report.skipped += 1
                continue

            if not self._record(result):
                report.skipped += 1
                continue

            report.synced += 1
            report.results.append(result)
            logger.info(
                "result_synced",
                fixture_id=fixture_id,
                score=result.score,
                status=result.status.value,
            )

            round_id = fixture_rounds.get(fixture_id)
            if round_id is not None:
                fetched.setdefault(round_id, []).append(result)

        for round_id, results in fetched.items():
            try:
                self.store.merge_results(round_id, results)
            except OSError as e:
                logger.error("results_cache_write_failed", round_id=round_id, error=str(e))

        self._audit(started_at, report)
        logger.info("result_sync_complete", **report.to_dict())
        return report

    def _record(self, result: MatchResult) -> bool:
        """Write a result to the result store; False if nothing changed or it failed."""
        if self.db is None:
            return True
        try:
            return self.db.upsert_result(result)
        except sqlite3.Error as e:
            logger.error("result_store_write_failed", fixture_id=result.fixture_id, error=str(e))
            return False

    def _fixture_rounds(self) -> dict[int, str]:
        return {
            fixture.fixture_id: round_id
            for round_id, fixtures in self.store.load_all_fixtures().items()
            for fixture in fixtures
        }

    def _audit(self, started_at: datetime, report: SyncReport) -> None:
        if self.db is None:
            return
        try:
            self.db.record_sync_run(
                started_at=started_at,
                checked=report.checked,
                synced=report.synced,
                skipped=report.skipped,
                errors=len(report.errors),
            )
        except sqlite3.Error as e:
            logger.warning("sync_run_audit_failed", error=str(e))
