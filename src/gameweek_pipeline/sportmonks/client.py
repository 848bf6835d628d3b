"""SportMonks v3 result source client."""

from typing import Any

import httpx

from gameweek_pipeline.common.config import ResultSourceConfig
from gameweek_pipeline.common.logging import get_logger
from gameweek_pipeline.sportmonks.interfaces import IResultSource, map_state
from gameweek_pipeline.storage.models import MatchResult, ResultStatus

logger = get_logger(__name__)


class ResultSourceError(Exception):
    """Exception for result source errors."""

    def __init__(
        self,
        message: str,
        status_code: int | None = None,
        response_body: dict[str, Any] | None = None,
    ):
        super().__init__(message)
        self.status_code = status_code
        self.response_body = response_body


class SportMonksClient(IResultSource):
    """SportMonks fixture client.

    Fetches one fixture at a time with its scores and state included. Pacing
    between calls is the caller's job (see ResultSyncer).
    """

    def __init__(self, config: ResultSourceConfig):
        """Initialize client.

        Args:
            config: Result source configuration.
        """
        self.config = config
        self._client: httpx.AsyncClient | None = None

    async def __aenter__(self) -> "SportMonksClient":
        """Async context manager entry."""
        if not self.config.api_token:
            raise ResultSourceError("SportMonks API token not configured (SPORTMONKS_API_TOKEN)")
        self._client = httpx.AsyncClient(
            base_url=self.config.base_url,
            headers={"Accept": "application/json"},
            timeout=self.config.timeout_seconds,
        )
        return self

    async def __aexit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        """Async context manager exit."""
        if self._client:
            await self._client.aclose()
            self._client = None

    @property
    def client(self) -> httpx.AsyncClient:
        """Get HTTP client, raising if not initialized."""
        if self._client is None:
            raise RuntimeError("Client not initialized. Use async context manager.")
        return self._client

    async def _request(self, endpoint: str, params: dict[str, Any] | None = None) -> dict[str, Any]:
        """Make an authenticated API request.

        Raises:
            ResultSourceError: On transport or API errors.
        """
        query = {"api_token": self.config.api_token, **(params or {})}
        try:
            response = await self.client.get(endpoint, params=query)
        except httpx.HTTPError as e:
            logger.error("api_request_failed", endpoint=endpoint, error=str(e))
            raise ResultSourceError(f"HTTP error: {e}") from e

        try:
            data = response.json()
        except ValueError:
            data = {}

        if response.status_code != 200:
            raise ResultSourceError(
                f"API error: {response.status_code}",
                status_code=response.status_code,
                response_body=data if isinstance(data, dict) else None,
            )
        if not isinstance(data, dict):
            raise ResultSourceError("Unexpected response shape")

        return data

    async def get_result(self, fixture_id: int) -> MatchResult | None:
        """Get the current result of a fixture."""
        data = await self._request(f"/fixtures/{fixture_id}", params={"include": "scores;state"})
        fixture = data.get("data")
        if not fixture:
            return None
        try:
            return parse_fixture_result(fixture_id, fixture)
        except (ValueError, TypeError, AttributeError) as e:
            raise ResultSourceError(f"Malformed fixture payload: {e}") from e


def _current_goals(scores: list[dict[str, Any]], participant: str) -> int:
    for entry in scores:
        score = entry.get("score") or {}
        if entry.get("description") == "CURRENT" and score.get("participant") == participant:
            return int(score.get("goals") or 0)
    return 0


def parse_fixture_result(fixture_id: int, fixture: dict[str, Any]) -> MatchResult | None:
    """Build a result from a SportMonks fixture payload.

    Args:
        fixture_id: Fixture ID the payload belongs to.
        fixture: ``data`` object of the fixture response.

    Returns:
        Result, or None when the state carries no result.

    Raises:
        ValueError: If the goals are not non-negative integers.
    """
    state_name = (fixture.get("state") or {}).get("developer_name") or ""
    status = map_state(state_name)
    if status is None:
        logger.debug("fixture_state_ignored", fixture_id=fixture_id, state=state_name)
        return None

    if status is ResultStatus.POSTPONED:
        return MatchResult(fixture_id=fixture_id, status=status)

    scores = fixture.get("scores") or []
    return MatchResult(
        fixture_id=fixture_id,
        home_goals=_current_goals(scores, "home"),
        away_goals=_current_goals(scores, "away"),
        status=status,
    )
