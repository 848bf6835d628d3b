"""Result sync scheduling, polling and completeness detection."""

from gameweek_pipeline.sync.evaluation_trigger import (
    GameweekCompleteness,
    RoundState,
    check_gameweek_completeness,
    check_round,
    has_evaluation_marker,
    list_pending_evaluations,
    remove_evaluation_marker,
    round_state,
    write_evaluation_marker,
)
from gameweek_pipeline.sync.result_sync import ResultSyncer, SyncReport
from gameweek_pipeline.sync.scheduler import (
    SyncPlan,
    SyncWindow,
    build_windows,
    compute_sync_plan,
    plan_sync,
)

__all__ = [
    "GameweekCompleteness",
    "ResultSyncer",
    "RoundState",
    "SyncPlan",
    "SyncReport",
    "SyncWindow",
    "build_windows",
    "check_gameweek_completeness",
    "check_round",
    "compute_sync_plan",
    "has_evaluation_marker",
    "list_pending_evaluations",
    "plan_sync",
    "remove_evaluation_marker",
    "round_state",
    "write_evaluation_marker",
]
