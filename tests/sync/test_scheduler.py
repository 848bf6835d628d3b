"""Tests for the sync window scheduler."""

import sqlite3
from datetime import UTC, datetime, timedelta
from unittest.mock import MagicMock

import pytest
from conftest import make_fixture

from gameweek_pipeline.common.config import SyncConfig
from gameweek_pipeline.storage.database import Database
from gameweek_pipeline.storage.gameweek_store import MATCHES_FILE, GameweekStore
from gameweek_pipeline.storage.models import Fixture, MatchResult, ResultStatus
from gameweek_pipeline.sync.scheduler import (
    build_windows,
    compute_sync_plan,
    load_finished_ids,
    plan_sync,
)

KICKOFF = datetime(2026, 2, 10, 15, 0, tzinfo=UTC)


def fixture(fixture_id: int, kickoff: datetime = KICKOFF, league_id: int = 8) -> Fixture:
    return Fixture.model_validate(
        make_fixture(fixture_id, kickoff=kickoff.isoformat(), league_id=league_id)
    )


class TestBuildWindows:
    """Tests for kickoff bucketing."""

    def test_fixtures_within_ten_minutes_share_a_window(self):
        fixtures = [fixture(i, KICKOFF + timedelta(minutes=m)) for i, m in enumerate([0, 2, 7, 10])]

        windows = build_windows(fixtures, SyncConfig())

        assert len(windows) == 1
        assert len(windows[0].fixture_ids) == 4

    def test_window_offsets(self):
        windows = build_windows([fixture(1)], SyncConfig())

        window = windows[0]
        assert window.kickoff_time == KICKOFF
        assert window.sync_after == KICKOFF + timedelta(hours=3)
        assert window.backup_sync == KICKOFF + timedelta(hours=4)
        assert window.expiry == KICKOFF + timedelta(hours=8)
        assert window.kickoff_time < window.sync_after < window.backup_sync < window.expiry

    def test_window_kickoff_is_earliest_in_bucket(self):
        fixtures = [fixture(1, KICKOFF + timedelta(minutes=10)), fixture(2, KICKOFF + timedelta(minutes=3))]

        window = build_windows(fixtures, SyncConfig())[0]

        assert window.kickoff_time == KICKOFF + timedelta(minutes=3)
        assert window.fixture_ids == [1, 2]

    def test_separate_buckets_ordered_by_sync_after(self):
        fixtures = [
            fixture(1, KICKOFF + timedelta(hours=2), league_id=564),
            fixture(2, KICKOFF, league_id=8),
            fixture(3, KICKOFF + timedelta(minutes=20), league_id=8),
        ]

        windows = build_windows(fixtures, SyncConfig())

        assert [w.fixture_ids for w in windows] == [[2], [3], [1]]
        assert windows[0].bucket_key == "2026-02-10T15:00:00.000Z"
        assert windows[1].bucket_key == "2026-02-10T15:15:00.000Z"

    def test_league_ids_deduplicated(self):
        fixtures = [fixture(1, league_id=8), fixture(2, league_id=564), fixture(3, league_id=8)]

        window = build_windows(fixtures, SyncConfig())[0]

        assert window.league_ids == [8, 564]

    def test_custom_bucket_width(self):
        fixtures = [fixture(1, KICKOFF), fixture(2, KICKOFF + timedelta(minutes=10))]

        windows = build_windows(fixtures, SyncConfig(bucket_minutes=5))

        assert len(windows) == 2


class TestPlanSync:
    """Tests for plan computation."""

    def test_window_active_at_sync_after(self):
        plan = plan_sync(KICKOFF + timedelta(hours=3), [fixture(1)], set(), tz=UTC)

        assert plan.pending_fixture_ids == [1]
        assert len(plan.active_windows) == 1

    def test_window_inactive_just_before_sync_after(self):
        now = KICKOFF + timedelta(hours=3) - timedelta(seconds=1)

        plan = plan_sync(now, [fixture(1)], set(), tz=UTC)

        assert plan.pending_fixture_ids == []
        assert plan.next_window_at == KICKOFF + timedelta(hours=3)

    def test_window_inactive_at_expiry(self):
        plan = plan_sync(KICKOFF + timedelta(hours=8), [fixture(1)], set(), tz=UTC)

        assert plan.pending_fixture_ids == []
        assert plan.next_window_at is None

    def test_window_active_just_before_expiry(self):
        now = KICKOFF + timedelta(hours=8) - timedelta(seconds=1)

        plan = plan_sync(now, [fixture(1)], set(), tz=UTC)

        assert plan.pending_fixture_ids == [1]

    def test_finished_fixtures_excluded(self):
        now = KICKOFF + timedelta(hours=3, minutes=30)

        plan = plan_sync(now, [fixture(1), fixture(2)], {1}, tz=UTC)

        assert plan.pending_fixture_ids == [2]
        assert plan.finished_in_db == 1
        assert plan.total_fixtures == 2

    def test_all_finished_window_not_built(self):
        now = KICKOFF + timedelta(hours=3, minutes=30)

        plan = plan_sync(now, [fixture(1)], {1}, tz=UTC)

        assert plan.active_windows == []
        assert plan.pending_fixture_ids == []

    def test_next_window_is_earliest_future_sync_after(self):
        fixtures = [
            fixture(1, KICKOFF),
            fixture(2, KICKOFF + timedelta(hours=2)),
            fixture(3, KICKOFF + timedelta(hours=5)),
        ]
        now = KICKOFF + timedelta(hours=3, minutes=1)

        plan = plan_sync(now, fixtures, set(), tz=UTC)

        assert plan.pending_fixture_ids == [1]
        assert plan.next_window_at == KICKOFF + timedelta(hours=5)

    def test_is_matchday(self):
        now = datetime(2026, 2, 10, 9, 0, tzinfo=UTC)

        assert plan_sync(now, [fixture(1)], set(), tz=UTC).is_matchday is True
        assert plan_sync(now + timedelta(days=1), [fixture(1)], set(), tz=UTC).is_matchday is False

    def test_is_matchday_counts_finished_fixtures(self):
        now = datetime(2026, 2, 10, 23, 0, tzinfo=UTC)

        plan = plan_sync(now, [fixture(1)], {1}, tz=UTC)

        assert plan.is_matchday is True

    def test_recent_league_ids(self):
        fixtures = [
            fixture(1, KICKOFF - timedelta(hours=2), league_id=564),
            fixture(2, KICKOFF - timedelta(hours=30), league_id=82),
            fixture(3, KICKOFF + timedelta(hours=1), league_id=301),
            fixture(4, KICKOFF - timedelta(hours=1), league_id=8),
        ]

        plan = plan_sync(KICKOFF, fixtures, set(), tz=UTC)

        assert plan.recent_league_ids == [8, 564]

    def test_empty_fixtures(self):
        plan = plan_sync(KICKOFF, [], set(), tz=UTC)

        assert plan.pending_fixture_ids == []
        assert plan.next_window_at is None
        assert plan.is_matchday is False

    def test_plan_is_deterministic(self):
        fixtures = [fixture(1), fixture(2, KICKOFF + timedelta(minutes=40))]
        now = KICKOFF + timedelta(hours=3, minutes=50)

        first = plan_sync(now, fixtures, set(), tz=UTC)
        second = plan_sync(now, fixtures, set(), tz=UTC)

        assert first.to_dict() == second.to_dict()
        assert first.pending_fixture_ids == [1, 2]

    def test_plan_to_dict(self):
        plan = plan_sync(KICKOFF + timedelta(hours=3), [fixture(1)], set(), tz=UTC)

        data = plan.to_dict()

        assert data["pendingFixtureIds"] == [1]
        assert data["activeWindows"][0]["syncAfter"] == "2026-02-10T18:00:00.000Z"
        assert data["nextWindowAt"] is None


class TestComputeSyncPlan:
    """Tests for plan computation from stored state."""

    def test_reads_store_and_db(self, store: GameweekStore, write_artifact, db: Database):
        write_artifact("GW1", MATCHES_FILE, [make_fixture(1, KICKOFF.isoformat()), make_fixture(2, KICKOFF.isoformat())])
        db.upsert_result(MatchResult(fixture_id=1, home_goals=1, away_goals=0, status=ResultStatus.FINISHED))

        plan = compute_sync_plan(store, db, now=KICKOFF + timedelta(hours=4), tz=UTC)

        assert plan.pending_fixture_ids == [2]

    def test_no_db_treats_all_unfinished(self, store: GameweekStore, write_artifact):
        write_artifact("GW1", MATCHES_FILE, [make_fixture(1, KICKOFF.isoformat())])

        plan = compute_sync_plan(store, None, now=KICKOFF + timedelta(hours=4), tz=UTC)

        assert plan.pending_fixture_ids == [1]

    def test_db_error_fails_open(self):
        db = MagicMock()
        db.get_finished_fixture_ids.side_effect = sqlite3.OperationalError("database is locked")

        assert load_finished_ids(db) == set()

    @pytest.mark.parametrize("hours", [3, 4, 7.99])
    def test_finished_fixture_never_pending(self, store: GameweekStore, write_artifact, db: Database, hours):
        write_artifact("GW1", MATCHES_FILE, [make_fixture(1, KICKOFF.isoformat())])
        db.upsert_result(MatchResult(fixture_id=1, status=ResultStatus.FINISHED))

        plan = compute_sync_plan(store, db, now=KICKOFF + timedelta(hours=hours), tz=UTC)

        assert 1 not in plan.pending_fixture_ids
