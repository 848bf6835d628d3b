"""Result source interfaces and SportMonks state mapping."""

from abc import ABC, abstractmethod
from enum import Enum

from gameweek_pipeline.storage.models import MatchResult, ResultStatus


class FixtureState(str, Enum):
    """SportMonks fixture state codes (``state.developer_name``) we act on."""

    FULL_TIME = "FT"
    AFTER_EXTRA_TIME = "AET"
    FULL_TIME_PENALTIES = "FT_PEN"
    POSTPONED = "POSTP"
    CANCELLED = "CANC"
    HALFTIME = "HT"
    FIRST_HALF = "1ST_HALF"
    SECOND_HALF = "2ND_HALF"
    UNKNOWN = "UNKNOWN"

    @classmethod
    def from_developer_name(cls, name: str) -> "FixtureState":
        """Get state from a developer name."""
        try:
            return cls(name)
        except ValueError:
            return cls.UNKNOWN


def map_state(developer_name: str) -> ResultStatus | None:
    """Map a SportMonks state to a result status.

    Args:
        developer_name: ``state.developer_name`` from the API.

    Returns:
        Result status, or None for states that carry no usable result
        (not started, TBA, ...).
    """
    state = FixtureState.from_developer_name(developer_name)
    if state in {
        FixtureState.FULL_TIME,
        FixtureState.AFTER_EXTRA_TIME,
        FixtureState.FULL_TIME_PENALTIES,
    }:
        return ResultStatus.FINISHED
    if state in {FixtureState.POSTPONED, FixtureState.CANCELLED}:
        return ResultStatus.POSTPONED
    if "LIVE" in developer_name or state in {
        FixtureState.HALFTIME,
        FixtureState.FIRST_HALF,
        FixtureState.SECOND_HALF,
    }:
        return ResultStatus.LIVE
    return None


class IResultSource(ABC):
    """Interface for a source of current fixture results."""

    @abstractmethod
    async def get_result(self, fixture_id: int) -> MatchResult | None:
        """Get the current result of a fixture.

        Args:
            fixture_id: External fixture ID.

        Returns:
            Current result, or None if the fixture has no result yet.

        Raises:
            ResultSourceError: If the source could not be queried.
        """
        ...
