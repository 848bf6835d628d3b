"""SportMonks result source module."""

from gameweek_pipeline.sportmonks.client import (
    ResultSourceError,
    SportMonksClient,
    parse_fixture_result,
)
from gameweek_pipeline.sportmonks.interfaces import FixtureState, IResultSource, map_state

__all__ = [
    "FixtureState",
    "IResultSource",
    "ResultSourceError",
    "SportMonksClient",
    "map_state",
    "parse_fixture_result",
]
