"""Append-only ledger linking evaluation metrics to skill versions."""

from pathlib import Path

from pydantic import ValidationError

from gameweek_pipeline.common.logging import get_logger
from gameweek_pipeline.common.time_utils import utc_now
from gameweek_pipeline.storage.files import read_json, write_json_atomic
from gameweek_pipeline.storage.models import SkillPerformanceEntry, SkillPerformanceLog

logger = get_logger(__name__)

LEDGER_FILE = "skill-performance.json"


class LedgerCorruptError(ValueError):
    """The ledger file exists but cannot be parsed, so it must not be rewritten."""

    def __init__(self, path: Path, detail: str):
        super().__init__(f"Ledger {path} is unreadable: {detail}")
        self.path = path
        self.detail = detail


class SkillPerformanceLedger:
    """File-backed ledger with at most one entry per (round, season)."""

    def __init__(self, path: str | Path):
        self.path = Path(path)

    def load(self) -> SkillPerformanceLog:
        """Load the ledger; a missing or malformed file reads as empty."""
        try:
            return self._load_strict()
        except LedgerCorruptError as e:
            logger.warning("invalid_ledger", path=str(self.path), detail=e.detail)
            return SkillPerformanceLog()

    def _load_strict(self) -> SkillPerformanceLog:
        if not self.path.exists():
            return SkillPerformanceLog()
        payload = read_json(self.path)
        if payload is None:
            raise LedgerCorruptError(self.path, "not valid JSON")
        try:
            return SkillPerformanceLog.model_validate(payload)
        except ValidationError as e:
            raise LedgerCorruptError(self.path, str(e).splitlines()[0]) from e

    def read_all(self) -> list[SkillPerformanceEntry]:
        return self.load().entries

    def contains(self, round_id: str, season: str) -> bool:
        return any(e.key == (round_id, season) for e in self.read_all())

    def append_if_absent(self, entry: SkillPerformanceEntry) -> bool:
        """Append an entry unless one exists for its (round, season).

        The check and the write happen in one call; the file is replaced
        atomically. An unreadable ledger is left untouched.

        Returns:
            True if the entry was appended, False if it was already tracked.

        Raises:
            LedgerCorruptError: If the ledger file exists but cannot be parsed.
        """
        log = self._load_strict()
        if any(existing.key == entry.key for existing in log.entries):
            logger.info("performance_already_tracked", round_id=entry.round_id, season=entry.season)
            return False

        log.entries.append(entry)
        log.last_updated = utc_now()
        write_json_atomic(self.path, log.to_json_dict())
        logger.info(
            "performance_tracked",
            round_id=entry.round_id,
            season=entry.season,
            entries=len(log.entries),
        )
        return True
