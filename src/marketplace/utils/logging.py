"""Logging setup for the marketplace server.

One stdlib root handler on stdout plus a rotating ``marketplace.log``; every
module logs through structlog, which renders JSON in production and staging
and a console format elsewhere. ``ENVIRONMENT`` picks both the level and the
renderer; ``LOG_LEVEL`` and ``MARKETPLACE_LOG_DIR`` override them.
"""

import logging
import logging.handlers
import os
import sys
from pathlib import Path

import structlog

from marketplace import config

_LEVELS = {
    "production": "INFO",
    "staging": "INFO",
    "development": "DEBUG",
    "test": "WARNING",
}


def _structured() -> bool:
    return config.ENVIRONMENT in ("production", "staging")


def configure_logging(log_dir: str | None = None) -> None:
    level = os.getenv("LOG_LEVEL", _LEVELS.get(config.ENVIRONMENT, "INFO"))
    log_path = Path(log_dir or os.getenv("MARKETPLACE_LOG_DIR", "logs"))
    log_path.mkdir(exist_ok=True)

    file_handler = logging.handlers.RotatingFileHandler(
        filename=log_path / "marketplace.log",
        maxBytes=10 * 1024 * 1024,
        backupCount=5,
        encoding="utf-8",
    )
    root_logger = logging.getLogger()
    root_logger.handlers = [logging.StreamHandler(sys.stdout), file_handler]
    root_logger.setLevel(level)

    # Framework chatter
    logging.getLogger("protean").setLevel(logging.WARNING)
    logging.getLogger("asyncio").setLevel(logging.WARNING)

    renderer = (
        structlog.processors.JSONRenderer()
        if _structured()
        else structlog.dev.ConsoleRenderer(colors=sys.stdout.isatty())
    )
    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.stdlib.filter_by_level,
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.format_exc_info,
            renderer,
        ],
        wrapper_class=structlog.stdlib.BoundLogger,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )


def add_context(**fields) -> None:
    """Bind ``fields`` to every log line of the current request."""
    structlog.contextvars.bind_contextvars(**fields)


def clear_context() -> None:
    structlog.contextvars.clear_contextvars()
