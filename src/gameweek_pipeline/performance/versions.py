"""Read the current versions of skills and prompt fragments.

Layout::

    <memory>/versions/skills/<name>/version.json
    <memory>/versions/prompt-fragments/<name>/version.json
"""

from enum import Enum
from pathlib import Path

from pydantic import ValidationError

from gameweek_pipeline.common.logging import get_logger
from gameweek_pipeline.storage.files import read_json
from gameweek_pipeline.storage.models import VersionManifest

logger = get_logger(__name__)

MANIFEST_FILE = "version.json"


class VersionKind(str, Enum):
    """Kind of versioned artifact."""

    SKILL = "skills"
    FRAGMENT = "prompt-fragments"


def read_manifest_version(path: Path) -> int:
    """Read ``current`` from one manifest; missing or unreadable reads as 0."""
    payload = read_json(path)
    if payload is None:
        return 0
    try:
        return VersionManifest.model_validate(payload).current
    except ValidationError as e:
        logger.warning("invalid_version_manifest", path=str(path), detail=str(e).splitlines()[0])
        return 0


def read_current_versions(memory_dir: Path, kind: VersionKind) -> dict[str, int]:
    """Map each artifact name of a kind to its current version.

    Args:
        memory_dir: Memory root directory.
        kind: Skills or prompt fragments.

    Returns:
        Name to version, sorted by name. Empty when the directory is missing.
    """
    kind_dir = memory_dir / "versions" / kind.value
    if not kind_dir.is_dir():
        logger.debug("versions_dir_missing", path=str(kind_dir))
        return {}

    return {
        entry.name: read_manifest_version(entry / MANIFEST_FILE)
        for entry in sorted(kind_dir.iterdir(), key=lambda p: p.name)
        if entry.is_dir()
    }
