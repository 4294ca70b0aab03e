# utils/logging.py

"""Logging setup for batch runs.

Application code logs through structlog; records are rendered into stdlib
``logging`` so the rotating run log and the console share one handler tree.
"""

from __future__ import annotations

import logging
import logging.handlers
import os

import structlog
from config import settings
from rich.logging import RichHandler

logger = structlog.get_logger(__name__)

_NOISY_LOGGERS = ("httpx", "httpcore")
_MAX_LOG_BYTES = 10 * 1024 * 1024
_LOG_BACKUPS = 5

__all__ = ["setup_logging"]


def _run_log_path(log_file: str) -> str:
    if os.path.isabs(log_file):
        return log_file
    return os.path.join(settings.LOG_DIR, log_file)


def _plain_formatter() -> logging.Formatter:
    return logging.Formatter(settings.LOG_FORMAT, datefmt=settings.LOG_DATE_FORMAT)


def _file_handler(log_file: str) -> logging.Handler:
    path = _run_log_path(log_file)
    parent = os.path.dirname(path)
    if parent:
        os.makedirs(parent, exist_ok=True)
    handler = logging.handlers.RotatingFileHandler(
        path,
        maxBytes=_MAX_LOG_BYTES,
        backupCount=_LOG_BACKUPS,
        encoding="utf-8",
    )
    handler.setFormatter(_plain_formatter())
    return handler


def _console_handler(level: str) -> logging.Handler:
    if not settings.ENABLE_RICH_PROGRESS:
        handler = logging.StreamHandler()
        handler.setFormatter(_plain_formatter())
        return handler
    # Clue text may contain brackets; rich markup would eat them.
    return RichHandler(
        level=level,
        rich_tracebacks=True,
        show_path=False,
        markup=False,
    )


def setup_logging(level: str | None = None) -> None:
    """Configure structlog and the stdlib root logger.

    ``level`` overrides ``settings.LOG_LEVEL_STR`` for this run. A run log that
    cannot be opened is reported and skipped; the console handler is always
    installed.
    """
    level = (level or settings.LOG_LEVEL_STR).upper()

    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
            structlog.stdlib.PositionalArgumentsFormatter(),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            structlog.processors.UnicodeDecoder(),
            structlog.stdlib.render_to_log_kwargs,
        ],
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    root = logging.getLogger()
    root.handlers.clear()
    root.setLevel(level)

    if settings.LOG_FILE:
        try:
            root.addHandler(_file_handler(settings.LOG_FILE))
        except OSError as exc:
            logger.error("Error setting up file logger", path=settings.LOG_FILE, error=str(exc))

    root.addHandler(_console_handler(level))

    for name in _NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)

    logger.info("ClueForge logging ready", log_level=level, log_file=settings.LOG_FILE)
