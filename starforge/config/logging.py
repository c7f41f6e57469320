import logging
import sys
from typing import Any

import structlog

from .settings import Settings, settings as default_settings

# Chatty libraries that should only surface problems
QUIET_LOGGERS = ("sqlalchemy.engine", "aiosqlite", "asyncio", "httpx")


def setup_logging(settings: Settings | None = None, **process_context: Any) -> None:
    """Configure stdlib logging and structlog for this process.

    Args:
        settings: Source of log_level/debug (defaults to the global settings)
        **process_context: Fields bound to every event, e.g. service="worker"
    """
    settings = settings or default_settings
    level = getattr(logging, settings.log_level)

    logging.basicConfig(format="%(message)s", stream=sys.stdout, level=level)
    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(max(level, logging.WARNING))

    if settings.debug:
        renderers: list[Any] = [structlog.dev.ConsoleRenderer()]
    else:
        renderers = [
            structlog.processors.format_exc_info,
            structlog.processors.JSONRenderer(),
        ]

    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.add_log_level,
            *renderers,
        ],
        wrapper_class=structlog.make_filtering_bound_logger(level),
        # Emit through stdlib handlers, never a captured stream
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )

    if process_context:
        structlog.contextvars.bind_contextvars(**process_context)


def get_logger(name: str = __name__) -> structlog.BoundLogger:
    """Get a structured logger instance."""
    return structlog.get_logger(name)


def add_request_context(request_id: str, **context: Any) -> None:
    """Replace the per-request log context (one request per task)."""
    structlog.contextvars.clear_contextvars()
    structlog.contextvars.bind_contextvars(request_id=request_id, **context)
