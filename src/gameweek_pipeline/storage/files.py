"""JSON file helpers shared by the file-backed stores."""

import json
import os
import tempfile
from pathlib import Path
from typing import Any

from gameweek_pipeline.common.logging import get_logger

logger = get_logger(__name__)


class ArtifactNotFoundError(FileNotFoundError):
    """A required artifact is missing or unreadable."""

    def __init__(self, path: Path, message: str | None = None):
        super().__init__(message or f"Artifact not found: {path}")
        self.path = path


def read_json(path: Path) -> Any | None:
    """Read a JSON file, treating missing and malformed files as absent.

    Args:
        path: File to read.

    Returns:
        Parsed JSON value, or None if the file is missing or invalid.
    """
    if not path.exists():
        return None
    try:
        with path.open("r", encoding="utf-8") as f:
            return json.load(f)
    except json.JSONDecodeError as e:
        logger.warning("malformed_json", path=str(path), error=str(e))
        return None
    except OSError as e:
        logger.warning("json_read_failed", path=str(path), error=str(e))
        return None


def write_json_atomic(path: Path, data: Any, indent: int = 2) -> None:
    """Write JSON via a temp file and rename so readers never see partial output."""
    path.parent.mkdir(parents=True, exist_ok=True)
    tmp_path = path.with_suffix(path.suffix + f".{os.getpid()}.tmp")
    with tmp_path.open("w", encoding="utf-8") as f:
        json.dump(data, f, ensure_ascii=False, indent=indent)
        f.write("\n")
        f.flush()
        os.fsync(f.fileno())
    os.replace(tmp_path, path)


def create_json_exclusive(path: Path, data: Any) -> bool:
    """Create a JSON file only if it does not exist yet.

    The content is written to a temp file first and hard-linked into place,
    so the final path is either absent or complete.

    Returns:
        True if the file was created, False if it already existed.
    """
    path.parent.mkdir(parents=True, exist_ok=True)
    fd, tmp_name = tempfile.mkstemp(dir=path.parent, prefix=path.name, suffix=".tmp")
    tmp_path = Path(tmp_name)
    try:
        with os.fdopen(fd, "w", encoding="utf-8") as f:
            json.dump(data, f, ensure_ascii=False)
            f.flush()
            os.fsync(f.fileno())
        try:
            os.link(tmp_path, path)
        except FileExistsError:
            return False
    finally:
        tmp_path.unlink(missing_ok=True)
    return True
