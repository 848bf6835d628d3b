"""Command line entry point: ``gameweek-pipeline``."""

import asyncio
import json
import sqlite3
import sys
from collections.abc import Iterator
from contextlib import contextmanager
from pathlib import Path
from typing import Any

import click

from gameweek_pipeline.common.config import AppConfig, load_config
from gameweek_pipeline.common.logging import get_logger, setup_logging
from gameweek_pipeline.evaluation.evaluate import evaluate_files, evaluate_round
from gameweek_pipeline.evaluation.metrics import EvaluationReport
from gameweek_pipeline.performance.ledger import (
    LEDGER_FILE,
    LedgerCorruptError,
    SkillPerformanceLedger,
)
from gameweek_pipeline.performance.tracker import EvaluationNotFoundError, track_performance
from gameweek_pipeline.pipeline.orchestrator import PipelineRunner
from gameweek_pipeline.sportmonks.client import ResultSourceError, SportMonksClient
from gameweek_pipeline.storage.database import Database
from gameweek_pipeline.storage.files import ArtifactNotFoundError
from gameweek_pipeline.storage.gameweek_store import GameweekStore, normalize_round_id
from gameweek_pipeline.sync.evaluation_trigger import (
    check_gameweek_completeness,
    list_pending_evaluations,
)
from gameweek_pipeline.sync.result_sync import ResultSyncer, SyncReport
from gameweek_pipeline.sync.scheduler import SyncPlan, compute_sync_plan

logger = get_logger(__name__)


def _echo_json(data: Any) -> None:
    click.echo(json.dumps(data, indent=2, ensure_ascii=False))


def _store(config: AppConfig, season: str | None = None) -> GameweekStore:
    return GameweekStore(config.storage.gameweeks_dir, season or config.storage.season)


@contextmanager
def open_result_store(config: AppConfig) -> Iterator[Database | None]:
    """Open and migrate the result store, yielding None if it is unavailable."""
    db = Database(config.database.path)
    try:
        db.connect()
        db.migrate()
    except (sqlite3.Error, OSError) as e:
        logger.warning("result_store_unavailable", path=config.database.path, error=str(e))
        db.close()
        yield None
        return

    try:
        yield db
    finally:
        db.close()


def _round_arg(value: str) -> str:
    try:
        return normalize_round_id(value)
    except ValueError as e:
        raise click.BadParameter(str(e), param_hint="ROUND") from e


def _format_report(report: EvaluationReport) -> str:
    s = report.summary
    return (
        f"{s.matched_with_results}/{s.total_predictions} predictions matched; "
        f"outcome accuracy {s.outcome_accuracy * 100:.1f}% ({s.correct_outcomes}), "
        f"score accuracy {s.score_accuracy * 100:.1f}% ({s.correct_scores}), "
        f"log loss {s.avg_log_loss:.4f}, Brier {s.avg_brier_score:.4f}"
    )


@click.group()
@click.option(
    "--config",
    "-c",
    "config_path",
    default=None,
    type=click.Path(exists=True, dir_okay=False),
    help="Path to configuration file",
)
@click.pass_context
def main(ctx: click.Context, config_path: str | None) -> None:
    """Sync results, detect complete gameweeks, evaluate and track performance."""
    try:
        config = load_config(config_path)
    except Exception as e:
        click.echo(f"Error loading config: {e}", err=True)
        sys.exit(1)

    setup_logging(config.logging)
    ctx.obj = config


@main.command("plan-sync")
@click.pass_obj
def plan_sync_command(config: AppConfig) -> None:
    """Show which fixtures are due for a result poll."""
    with open_result_store(config) as db:
        plan = compute_sync_plan(_store(config), db, config.sync)
    click.echo(plan.summary())
    _echo_json(plan.to_dict())


async def _poll(
    config: AppConfig,
    store: GameweekStore,
    db: Database | None,
    plan: SyncPlan,
) -> SyncReport:
    async with SportMonksClient(config.result_source) as client:
        syncer = ResultSyncer(client, store, db, config.result_source.request_delay_seconds)
        return await syncer.sync(plan)


@main.command("sync-results")
@click.option("--dry-run", is_flag=True, help="List due fixtures without polling")
@click.pass_obj
def sync_results_command(config: AppConfig, dry_run: bool) -> None:
    """Poll the result source for every fixture in an active window."""
    store = _store(config)
    with open_result_store(config) as db:
        plan = compute_sync_plan(store, db, config.sync)
        click.echo(plan.summary())

        if not plan.pending_fixture_ids:
            logger.info("no_fixtures_due")
            return
        if dry_run:
            _echo_json({"dryRun": True, "pendingFixtureIds": plan.pending_fixture_ids})
            return

        try:
            report = asyncio.run(_poll(config, store, db, plan))
        except ResultSourceError as e:
            click.echo(f"Error: {e}", err=True)
            sys.exit(1)

    click.echo(report.summary())
    _echo_json(report.to_dict())


@main.command("check-completeness")
@click.option("--no-markers", is_flag=True, help="Report only; do not write evaluation markers")
@click.pass_obj
def check_completeness_command(config: AppConfig, no_markers: bool) -> None:
    """Report per-round completeness and flag rounds ready for evaluation."""
    with open_result_store(config) as db:
        report = check_gameweek_completeness(_store(config), db, write_markers=not no_markers)

    for c in report:
        line = f"{c.round_id}: {c.finished_matches}/{c.total_matches} finished, {c.state.value}"
        if c.marker_written:
            line += " (marker written)"
        click.echo(line)
    _echo_json([c.to_dict() for c in report])


@main.command("pending-evaluations")
@click.pass_obj
def pending_evaluations_command(config: AppConfig) -> None:
    """List rounds awaiting evaluation."""
    markers = list_pending_evaluations(_store(config))
    if not markers:
        click.echo("No rounds awaiting evaluation")
    _echo_json([m.to_json_dict() for m in markers])


@main.command("evaluate")
@click.argument("round_id", required=False)
@click.option("--predictions", "predictions_path", type=click.Path(path_type=Path), default=None)
@click.option("--results", "results_path", type=click.Path(path_type=Path), default=None)
@click.pass_obj
def evaluate_command(
    config: AppConfig,
    round_id: str | None,
    predictions_path: Path | None,
    results_path: Path | None,
) -> None:
    """Evaluate a round's predictions, or an explicit pair of files."""
    if (predictions_path is None) != (results_path is None):
        raise click.UsageError("--predictions and --results must be given together")

    if predictions_path is not None and results_path is not None:
        try:
            report = evaluate_files(predictions_path, results_path)
        except ArtifactNotFoundError as e:
            click.echo(f"Error: {e}", err=True)
            sys.exit(1)
        click.echo(_format_report(report))
        _echo_json(report.summary.to_json_dict())
        return

    if round_id is None:
        raise click.UsageError("ROUND is required unless --predictions and --results are given")
    round_id = _round_arg(round_id)

    store = _store(config)
    with open_result_store(config) as db:
        try:
            report = evaluate_round(store, db, round_id)
        except ArtifactNotFoundError as e:
            click.echo(f"Error: {e}", err=True)
            sys.exit(1)

    click.echo(f"{round_id}: {_format_report(report)}")
    _echo_json(report.summary.to_json_dict())


@main.command("track-performance")
@click.argument("round_id")
@click.argument("season", required=False)
@click.pass_obj
def track_performance_command(config: AppConfig, round_id: str, season: str | None) -> None:
    """Record a round's evaluation against the current skill versions."""
    round_id = _round_arg(round_id)
    store = _store(config, season)
    ledger = SkillPerformanceLedger(config.storage.memory_dir / LEDGER_FILE)
    try:
        result = track_performance(store, ledger, config.storage.memory_dir, round_id, store.season)
    except (EvaluationNotFoundError, LedgerCorruptError) as e:
        click.echo(f"Error: {e}", err=True)
        sys.exit(1)

    click.echo(result.summary())
    _echo_json(result.to_dict())


@main.command("run-pipeline")
@click.option(
    "--dry-run", is_flag=True, help="Report without polling, writing markers or evaluating"
)
@click.option("--skip-sync", is_flag=True, help="Skip polling the result source")
@click.pass_obj
def run_pipeline_command(config: AppConfig, dry_run: bool, skip_sync: bool) -> None:
    """Sync, detect complete rounds, evaluate them oldest first and track each."""
    with open_result_store(config) as db:
        runner = PipelineRunner(config, _store(config), db)
        status = asyncio.run(runner.run(dry_run=dry_run, skip_sync=skip_sync))

    for action in status.actions:
        label = f"{action.action} {action.gameweek}" if action.gameweek else action.action
        click.echo(f"{label}: {action.status} {action.reason}".rstrip())
    click.echo(status.summary())
    _echo_json(status.to_dict())

    if status.failed:
        sys.exit(1)


if __name__ == "__main__":
    main()
