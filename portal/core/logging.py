"""
core/logging.py
---------------
Structured logging using structlog.

DEBUG=true  → coloured console output for local work
DEBUG=false → one JSON object per line for the log shipper

Request-scoped fields (request_id, method, path) are bound through
structlog's contextvars so every event emitted while a request is being
served carries them without passing a logger around.
"""

import logging
import sys
import uuid

import structlog

from portal.core.config import settings

_NOISY_LOGGERS = ("uvicorn.access", "sqlalchemy.engine", "httpx", "httpcore")


def configure_logging() -> None:
    log_level = logging.DEBUG if settings.DEBUG else logging.INFO

    logging.basicConfig(format="%(message)s", stream=sys.stdout, level=log_level)
    if not settings.DEBUG:
        for name in _NOISY_LOGGERS:
            logging.getLogger(name).setLevel(logging.WARNING)

    processors = [
        structlog.contextvars.merge_contextvars,
        structlog.processors.add_log_level,
        structlog.processors.TimeStamper(fmt="iso", utc=True),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
    ]
    processors.append(
        structlog.dev.ConsoleRenderer()
        if settings.DEBUG
        else structlog.processors.JSONRenderer()
    )

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.make_filtering_bound_logger(log_level),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(),
        cache_logger_on_first_use=True,
    )


def bind_request_context(method: str, path: str, request_id: str | None = None) -> str:
    """Attach request identifiers to every log line until cleared."""
    request_id = request_id or uuid.uuid4().hex
    structlog.contextvars.clear_contextvars()
    structlog.contextvars.bind_contextvars(
        request_id=request_id, method=method, path=path
    )
    return request_id


def clear_request_context() -> None:
    structlog.contextvars.clear_contextvars()


def get_logger(name: str = __name__):
    return structlog.get_logger(name)
