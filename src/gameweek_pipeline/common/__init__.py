"""Common utilities: config, logging, time."""

from gameweek_pipeline.common.config import AppConfig, load_config
from gameweek_pipeline.common.logging import get_logger, setup_logging
from gameweek_pipeline.common.time_utils import format_iso, parse_kickoff, utc_now

__all__ = [
    "AppConfig",
    "load_config",
    "setup_logging",
    "get_logger",
    "utc_now",
    "format_iso",
    "parse_kickoff",
]
