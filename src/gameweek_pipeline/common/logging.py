"""Structured logging for pipeline commands.

Records go to stderr (and optionally a file) so commands that print JSON on
stdout stay machine-readable. Values bound with ``bind_run_context`` are
attached to every record until ``clear_run_context`` is called, which ties
the sync, evaluate and track events of one pipeline run together.
"""

import logging
import sys

import structlog
from structlog.types import Processor

from gameweek_pipeline.common.config import LoggingConfig

LOGGER_NAME = "gameweek_pipeline"


def _renderer(config: LoggingConfig) -> Processor:
    if config.format == "json":
        return structlog.processors.JSONRenderer()
    return structlog.dev.ConsoleRenderer(colors=sys.stderr.isatty())


def setup_logging(config: LoggingConfig | None = None) -> None:
    """Route structlog and stdlib records through one formatter.

    Args:
        config: Logging configuration. Uses defaults if not provided.
    """
    config = config or LoggingConfig()

    pre_chain: list[Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        structlog.processors.TimeStamper(fmt="iso", utc=True),
    ]
    structlog.configure(
        processors=[
            structlog.stdlib.filter_by_level,
            *pre_chain,
            structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
        ],
        wrapper_class=structlog.stdlib.BoundLogger,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )

    formatter = structlog.stdlib.ProcessorFormatter(
        processor=_renderer(config),
        foreign_pre_chain=pre_chain,
    )
    handlers: list[logging.Handler] = [logging.StreamHandler(sys.stderr)]
    if config.log_file:
        handlers.append(logging.FileHandler(config.log_file))
    for handler in handlers:
        handler.setFormatter(formatter)

    root_logger = logging.getLogger()
    root_logger.handlers = handlers
    root_logger.setLevel(getattr(logging, config.level.upper(), logging.INFO))
    # httpx logs every request at INFO
    logging.getLogger("httpx").setLevel(logging.WARNING)


def bind_run_context(**values: object) -> None:
    """Attach values to every record logged until the context is cleared."""
    structlog.contextvars.bind_contextvars(**values)


def clear_run_context() -> None:
    structlog.contextvars.clear_contextvars()


def get_logger(name: str | None = None) -> structlog.stdlib.BoundLogger:
    """Get a structured logger; defaults to the package logger."""
    return structlog.get_logger(name or LOGGER_NAME)
