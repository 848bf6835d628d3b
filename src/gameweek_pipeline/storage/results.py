"""Merged view of a round's results: file cache overlaid by the result store."""

import sqlite3

from gameweek_pipeline.common.logging import get_logger
from gameweek_pipeline.storage.database import Database
from gameweek_pipeline.storage.gameweek_store import GameweekStore
from gameweek_pipeline.storage.models import MatchResult

logger = get_logger(__name__)


def load_round_results(
    store: GameweekStore,
    db: Database | None,
    round_id: str,
    fixture_ids: list[int] | None = None,
    strict: bool = False,
) -> dict[int, MatchResult]:
    """Load results for a round, DB values taking precedence over results.json.

    A finished file result is never replaced by an unfinished DB row, since
    finished is terminal wherever it was observed first.

    Args:
        store: Gameweek store.
        db: Result store, or None when unavailable.
        round_id: Round to load.
        fixture_ids: Fixture IDs to query in the DB. Defaults to the round's fixtures.
        strict: Re-raise DB errors instead of falling back to file results.

    Returns:
        Mapping of fixture ID to result.

    Raises:
        sqlite3.Error: On DB failure when strict is True.
    """
    results = {r.fixture_id: r for r in store.load_cached_results(round_id)}

    if fixture_ids is None:
        fixture_ids = [f.fixture_id for f in store.load_fixtures(round_id)]

    if db is None or not fixture_ids:
        return results

    try:
        db_results = db.get_results(fixture_ids)
    except sqlite3.Error as e:
        if strict:
            raise
        logger.warning("result_store_unavailable", round_id=round_id, error=str(e))
        return results

    for fixture_id, result in db_results.items():
        cached = results.get(fixture_id)
        if cached is not None and cached.is_finished and not result.is_finished:
            continue
        results[fixture_id] = result
    return results
