"""End-to-end pipeline run: sync, detect, evaluate, track.

Each step is recorded as an action in ``pipeline-status.json``. A failing
round does not stop the remaining rounds; the run as a whole is reported as
failed if any action failed.
"""

import sqlite3
import time
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path
from typing import Any

from gameweek_pipeline.common.config import AppConfig
from gameweek_pipeline.common.logging import bind_run_context, clear_run_context, get_logger
from gameweek_pipeline.common.time_utils import format_iso, utc_now
from gameweek_pipeline.evaluation.evaluate import evaluate_round
from gameweek_pipeline.performance.ledger import LEDGER_FILE, SkillPerformanceLedger
from gameweek_pipeline.performance.tracker import track_performance
from gameweek_pipeline.sportmonks.client import ResultSourceError, SportMonksClient
from gameweek_pipeline.sportmonks.interfaces import IResultSource
from gameweek_pipeline.storage.database import Database
from gameweek_pipeline.storage.files import ArtifactNotFoundError, write_json_atomic
from gameweek_pipeline.storage.gameweek_store import GameweekStore, round_number
from gameweek_pipeline.sync.evaluation_trigger import (
    check_gameweek_completeness,
    list_pending_evaluations,
)
from gameweek_pipeline.sync.result_sync import ResultSyncer
from gameweek_pipeline.sync.scheduler import compute_sync_plan

logger = get_logger(__name__)

STATUS_SUCCESS = "success"
STATUS_SKIPPED = "skipped"
STATUS_FAILED = "failed"


@dataclass
class PipelineAction:
    """One step of a pipeline run."""

    action: str
    status: str
    gameweek: str | None = None
    reason: str = ""
    duration_ms: int = 0

    def to_dict(self) -> dict[str, Any]:
        return {
            "action": self.action,
            "gameweek": self.gameweek,
            "status": self.status,
            "reason": self.reason,
            "duration": self.duration_ms,
        }


@dataclass
class PipelineStatus:
    """Record of a whole pipeline run."""

    timestamp: datetime
    season: str
    dry_run: bool
    actions: list[PipelineAction] = field(default_factory=list)

    @property
    def failed(self) -> bool:
        return any(a.status == STATUS_FAILED for a in self.actions)

    def summary(self) -> str:
        counts = {s: 0 for s in (STATUS_SUCCESS, STATUS_SKIPPED, STATUS_FAILED)}
        for a in self.actions:
            counts[a.status] = counts.get(a.status, 0) + 1
        return (
            f"{len(self.actions)} action(s): {counts[STATUS_SUCCESS]} succeeded, "
            f"{counts[STATUS_SKIPPED]} skipped, {counts[STATUS_FAILED]} failed"
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "timestamp": format_iso(self.timestamp),
            "season": self.season,
            "dryRun": self.dry_run,
            "actions": [a.to_dict() for a in self.actions],
            "summary": self.summary(),
        }


class PipelineRunner:
    """Chains the result syncer, completeness detector, evaluator and tracker."""

    def __init__(
        self,
        config: AppConfig,
        store: GameweekStore,
        db: Database | None,
        source: IResultSource | None = None,
    ):
        """Initialize runner.

        Args:
            config: Application configuration.
            store: Gameweek store of the configured season.
            db: Result store, or None when unavailable.
            source: Result source. A SportMonks client is opened when None.
        """
        self.config = config
        self.store = store
        self.db = db
        self.source = source
        self.memory_dir = config.storage.memory_dir
        self.ledger = SkillPerformanceLedger(self.memory_dir / LEDGER_FILE)

    async def run(
        self,
        dry_run: bool = False,
        skip_sync: bool = False,
        now: datetime | None = None,
    ) -> PipelineStatus:
        """Run the pipeline once.

        Args:
            dry_run: Report what would happen without polling, writing markers,
                evaluating or tracking.
            skip_sync: Skip polling the result source.
            now: Reference time. Defaults to now.

        Returns:
            Status of the run (also written to the status file).
        """
        now = now or utc_now()
        status = PipelineStatus(timestamp=now, season=self.store.season, dry_run=dry_run)
        bind_run_context(run_at=format_iso(now), season=self.store.season, dry_run=dry_run)
        try:
            if not skip_sync:
                status.actions.append(await self._sync(dry_run, now))

            completeness = check_gameweek_completeness(
                self.store, self.db, write_markers=not dry_run
            )
            ready = {c.round_id for c in completeness if c.needs_evaluation}
            for round_id in self._rounds_to_evaluate(ready):
                evaluated = self._evaluate(round_id, dry_run)
                status.actions.append(evaluated)
                if evaluated.status == STATUS_SUCCESS:
                    status.actions.append(self._track(round_id))

            self.write_status(status)
            logger.info("pipeline_complete", summary=status.summary(), failed=status.failed)
        finally:
            clear_run_context()
        return status

    def write_status(self, status: PipelineStatus) -> Path:
        path = self.config.storage.status_file
        write_json_atomic(path, status.to_dict())
        return path

    def _rounds_to_evaluate(self, ready: set[str]) -> list[str]:
        """Marked rounds plus newly complete ones, oldest first."""
        rounds = ready | {marker.round_id for marker in list_pending_evaluations(self.store)}
        return sorted(rounds, key=round_number)

    async def _sync(self, dry_run: bool, now: datetime) -> PipelineAction:
        started = time.monotonic()
        plan = compute_sync_plan(self.store, self.db, self.config.sync, now=now)
        due = len(plan.pending_fixture_ids)

        if due == 0:
            return _action("sync", STATUS_SKIPPED, started, reason="no fixtures due")
        if dry_run:
            return _action("sync", STATUS_SKIPPED, started, reason=f"dry run: {due} fixture(s) due")

        delay = self.config.result_source.request_delay_seconds
        try:
            if self.source is not None:
                report = await ResultSyncer(self.source, self.store, self.db, delay).sync(plan)
            else:
                async with SportMonksClient(self.config.result_source) as client:
                    report = await ResultSyncer(client, self.store, self.db, delay).sync(plan)
        except ResultSourceError as e:
            logger.error("pipeline_sync_failed", error=str(e))
            return _action("sync", STATUS_FAILED, started, reason=str(e))

        return _action("sync", STATUS_SUCCESS, started, reason=report.summary())

    def _evaluate(self, round_id: str, dry_run: bool) -> PipelineAction:
        started = time.monotonic()
        if dry_run:
            return _action("evaluate", STATUS_SKIPPED, started, round_id, "dry run")
        try:
            report = evaluate_round(self.store, self.db, round_id)
        except (ArtifactNotFoundError, OSError, ValueError, sqlite3.Error) as e:
            logger.error("pipeline_evaluate_failed", round_id=round_id, error=str(e))
            return _action("evaluate", STATUS_FAILED, started, round_id, str(e))

        summary = report.summary
        reason = (
            f"{summary.matched_with_results} matches, "
            f"accuracy {summary.outcome_accuracy * 100:.1f}%"
        )
        return _action("evaluate", STATUS_SUCCESS, started, round_id, reason)

    def _track(self, round_id: str) -> PipelineAction:
        started = time.monotonic()
        try:
            result = track_performance(self.store, self.ledger, self.memory_dir, round_id)
        except (ArtifactNotFoundError, OSError, ValueError) as e:
            logger.error("pipeline_track_failed", round_id=round_id, error=str(e))
            return _action("track", STATUS_FAILED, started, round_id, str(e))

        if not result.appended:
            return _action("track", STATUS_SKIPPED, started, round_id, "already tracked")
        return _action("track", STATUS_SUCCESS, started, round_id, result.summary().splitlines()[0])


def _action(
    action: str,
    status: str,
    started: float,
    gameweek: str | None = None,
    reason: str = "",
) -> PipelineAction:
    return PipelineAction(
        action=action,
        status=status,
        gameweek=gameweek,
        reason=reason,
        duration_ms=int((time.monotonic() - started) * 1000),
    )
