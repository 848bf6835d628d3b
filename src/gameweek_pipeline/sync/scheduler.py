"""Sync window scheduler.

Decides which unfinished fixtures should be polled for results right now and
when the next polling opportunity occurs. The plan is recomputed from the
current fixture and result snapshots on every call and never persisted, so
duplicate or overlapping triggers produce identical plans.
"""

import sqlite3
from collections.abc import Iterable
from dataclasses import dataclass, field
from datetime import datetime, timedelta, tzinfo
from typing import Any

from gameweek_pipeline.common.config import SyncConfig
from gameweek_pipeline.common.logging import get_logger
from gameweek_pipeline.common.time_utils import (
    floor_to_bucket,
    format_iso,
    local_day_bounds,
    utc_now,
)
from gameweek_pipeline.storage.database import Database
from gameweek_pipeline.storage.gameweek_store import GameweekStore
from gameweek_pipeline.storage.models import Fixture

logger = get_logger(__name__)


@dataclass
class SyncWindow:
    """Fixtures sharing one kickoff bucket, with their polling schedule."""

    bucket_key: str
    kickoff_time: datetime
    sync_after: datetime
    backup_sync: datetime
    expiry: datetime
    fixture_ids: list[int] = field(default_factory=list)
    league_ids: list[int] = field(default_factory=list)

    def is_active(self, now: datetime) -> bool:
        """Active from syncAfter (inclusive) until expiry (exclusive)."""
        return self.sync_after <= now < self.expiry

    def to_dict(self) -> dict[str, Any]:
        return {
            "bucketKey": self.bucket_key,
            "kickoffTime": format_iso(self.kickoff_time),
            "syncAfter": format_iso(self.sync_after),
            "backupSync": format_iso(self.backup_sync),
            "expiry": format_iso(self.expiry),
            "fixtureIds": list(self.fixture_ids),
            "leagueIds": list(self.league_ids),
        }


@dataclass
class SyncPlan:
    """What to poll now and when to come back."""

    active_windows: list[SyncWindow] = field(default_factory=list)
    pending_fixture_ids: list[int] = field(default_factory=list)
    next_window_at: datetime | None = None
    is_matchday: bool = False
    recent_league_ids: list[int] = field(default_factory=list)
    total_fixtures: int = 0
    finished_in_db: int = 0

    def to_dict(self) -> dict[str, Any]:
        return {
            "activeWindows": [w.to_dict() for w in self.active_windows],
            "pendingFixtureIds": list(self.pending_fixture_ids),
            "nextWindowAt": format_iso(self.next_window_at) if self.next_window_at else None,
            "isMatchday": self.is_matchday,
            "recentLeagueIds": list(self.recent_league_ids),
            "totalFixtures": self.total_fixtures,
            "finishedInDb": self.finished_in_db,
        }

    def summary(self) -> str:
        """One-line human readable summary."""
        next_at = format_iso(self.next_window_at) if self.next_window_at else "none"
        return (
            f"{len(self.pending_fixture_ids)} fixture(s) due in "
            f"{len(self.active_windows)} active window(s); next window at {next_at}; "
            f"matchday={'yes' if self.is_matchday else 'no'}; "
            f"{self.finished_in_db}/{self.total_fixtures} finished in DB"
        )


def build_windows(fixtures: Iterable[Fixture], settings: SyncConfig) -> list[SyncWindow]:
    """Group fixtures into kickoff buckets and derive each window's schedule.

    Args:
        fixtures: Fixtures to schedule (already filtered to unfinished ones).
        settings: Bucket width and offsets.

    Returns:
        Windows ordered by syncAfter.
    """
    bucket = timedelta(minutes=settings.bucket_minutes)
    grouped: dict[datetime, list[Fixture]] = {}
    for fixture in fixtures:
        grouped.setdefault(floor_to_bucket(fixture.kickoff, bucket), []).append(fixture)

    windows = []
    for bucket_start, members in grouped.items():
        kickoff = min(f.kickoff for f in members)
        league_ids: list[int] = []
        for f in members:
            if f.league_id not in league_ids:
                league_ids.append(f.league_id)
        windows.append(
            SyncWindow(
                bucket_key=format_iso(bucket_start),
                kickoff_time=kickoff,
                sync_after=kickoff + timedelta(hours=settings.sync_after_hours),
                backup_sync=kickoff + timedelta(hours=settings.backup_sync_hours),
                expiry=kickoff + timedelta(hours=settings.expiry_hours),
                fixture_ids=[f.fixture_id for f in members],
                league_ids=league_ids,
            )
        )

    windows.sort(key=lambda w: (w.sync_after, w.bucket_key))
    return windows


def plan_sync(
    now: datetime,
    fixtures: list[Fixture],
    finished_ids: set[int],
    settings: SyncConfig | None = None,
    tz: tzinfo | None = None,
) -> SyncPlan:
    """Compute the sync plan for a point in time.

    Pure function of its inputs.

    Args:
        now: Aware reference time.
        fixtures: Every known fixture across open rounds.
        finished_ids: Fixture IDs already recorded as finished.
        settings: Bucket width and offsets. Defaults to SyncConfig().
        tz: Timezone of the matchday calendar. Server-local when None.

    Returns:
        Sync plan.
    """
    settings = settings or SyncConfig()

    unfinished = [f for f in fixtures if f.fixture_id not in finished_ids]
    windows = build_windows(unfinished, settings)

    active = [w for w in windows if w.is_active(now)]
    pending = [fid for w in active for fid in w.fixture_ids]

    future = [w.sync_after for w in windows if w.sync_after > now]
    next_window_at = min(future) if future else None

    day_start, day_end = local_day_bounds(now, tz)
    is_matchday = any(day_start <= f.kickoff < day_end for f in fixtures)

    recent_cutoff = now - timedelta(hours=settings.recent_window_hours)
    recent_league_ids = sorted(
        {f.league_id for f in fixtures if recent_cutoff <= f.kickoff <= now}
    )

    return SyncPlan(
        active_windows=active,
        pending_fixture_ids=pending,
        next_window_at=next_window_at,
        is_matchday=is_matchday,
        recent_league_ids=recent_league_ids,
        total_fixtures=len(fixtures),
        finished_in_db=len(finished_ids),
    )


def load_finished_ids(db: Database | None) -> set[int]:
    """Read finished fixture IDs, failing open to an empty set.

    Over-polling is safe; under-polling silently misses results.
    """
    if db is None:
        logger.warning("result_store_unavailable", fallback="treat_all_unfinished")
        return set()
    try:
        return db.get_finished_fixture_ids()
    except (sqlite3.Error, RuntimeError) as e:
        logger.warning(
            "result_store_unavailable",
            fallback="treat_all_unfinished",
            error=str(e),
        )
        return set()


def compute_sync_plan(
    store: GameweekStore,
    db: Database | None,
    settings: SyncConfig | None = None,
    now: datetime | None = None,
    tz: tzinfo | None = None,
) -> SyncPlan:
    """Load current state and compute the sync plan.

    Args:
        store: Gameweek store of the season.
        db: Result store, or None when unavailable.
        settings: Scheduling parameters.
        now: Reference time. Defaults to now.
        tz: Matchday calendar timezone. Server-local when None.

    Returns:
        Sync plan.
    """
    now = now or utc_now()
    fixtures = [f for round_fixtures in store.load_all_fixtures().values() for f in round_fixtures]
    finished_ids = load_finished_ids(db)

    plan = plan_sync(now, fixtures, finished_ids, settings, tz)
    logger.info(
        "sync_plan_computed",
        active_windows=len(plan.active_windows),
        pending=len(plan.pending_fixture_ids),
        total_fixtures=plan.total_fixtures,
        finished_in_db=plan.finished_in_db,
    )
    return plan
