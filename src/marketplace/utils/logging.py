"""structlog setup for the API process and the Engine workers.

Lines go to stdout through the standard library root logger, so Protean's
and uvicorn's own records come out in the same format as ours. Set
``MARKETPLACE_LOG_DIR`` to also keep errors (failed payouts, rejected
checkouts) in a rotating file.
"""

import logging
import logging.handlers
import os
import sys
from pathlib import Path
from typing import Any

import structlog

_QUIET_LOGGERS = ("protean", "asyncio")


def _environment() -> str:
    return (os.getenv("PROTEAN_ENV") or os.getenv("ENV") or "development").lower()


def _level() -> str:
    default = "WARNING" if _environment() == "test" else "INFO"
    return os.getenv("LOG_LEVEL", default).upper()


def _handlers(level: str) -> list[logging.Handler]:
    console = logging.StreamHandler(sys.stdout)
    console.setLevel(level)
    handlers = [console]

    log_dir = os.getenv("MARKETPLACE_LOG_DIR")
    if log_dir:
        Path(log_dir).mkdir(parents=True, exist_ok=True)
        errors = logging.handlers.RotatingFileHandler(
            Path(log_dir) / "marketplace_error.log",
            maxBytes=10 * 1024 * 1024,
            backupCount=5,
            encoding="utf-8",
        )
        errors.setLevel(logging.ERROR)
        handlers.append(errors)
    return handlers


def configure_logging() -> None:
    level = _level()
    root = logging.getLogger()
    root.setLevel(level)
    root.handlers = _handlers(level)
    for name in _QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)

    renderer = (
        structlog.processors.JSONRenderer()
        if _environment() == "production"
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


def add_context(**kwargs: Any) -> None:
    """Bind values (request id, path) onto every following log line."""
    structlog.contextvars.bind_contextvars(**kwargs)


def clear_context() -> None:
    structlog.contextvars.clear_contextvars()
