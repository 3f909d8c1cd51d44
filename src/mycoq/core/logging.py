"""
Structured logging for mycoq.

Manifesto:
    Several services run side by side inside one host process, so every log
    line has to say which service it came from. Worker threads bind
    ``service=<name>`` for the lifetime of the run; everything the runtime
    logs is an event name plus key/value pairs.

Architecture:
    ::

        configure_logging(level="INFO", json_format=None, host="mycoq")
            │
            ▼
        structlog processor chain:
          1. filter_by_level
          2. TimeStamper(iso, utc)
          3. merge_contextvars          (service=..., bound by workers)
          4. add_log_level / add_logger_name
          5. _add_process_metadata      (host, pid, worker thread)
          6. _ecs_fields                (JSON only)
          7. JSONRenderer | ConsoleRenderer
            │
            ▼
        stdlib logging → stderr

Examples:
    >>> from mycoq.core.logging import configure_logging, get_logger
    >>> configure_logging(level="DEBUG")
    >>> logger = get_logger(__name__)
    >>> logger.info("service_starting", service="payment-service")

Tags:
    logging, structlog, observability, mycoq-core

Doc-Types:
    - API Reference
"""

from __future__ import annotations

import logging
import os
import sys
import threading
from typing import Any

import structlog
from structlog.types import EventDict, Processor, WrappedLogger

from mycoq.core.errors import ConfigError

_HOST_NAME = "mycoq"

# structlog key → ECS field name
_ECS_RENAMES = {
    "timestamp": "@timestamp",
    "level": "log.level",
    "logger": "log.logger",
    "service": "service.name",
}


def _add_process_metadata(
    logger: WrappedLogger, method_name: str, event_dict: EventDict
) -> EventDict:
    """Stamp the host name, pid and emitting thread on every event.

    Worker threads are named ``service-<name>``, so the thread name tells
    runtime lines apart from service lines even without a bound context.
    """
    event_dict.setdefault("host.name", _HOST_NAME)
    event_dict.setdefault("process.pid", os.getpid())
    event_dict.setdefault("process.thread.name", threading.current_thread().name)
    return event_dict


def _ecs_fields(
    logger: WrappedLogger, method_name: str, event_dict: EventDict
) -> EventDict:
    for key, ecs_key in _ECS_RENAMES.items():
        if key in event_dict:
            event_dict[ecs_key] = event_dict.pop(key)
    return event_dict


def _parse_level(level: str | int) -> int:
    if isinstance(level, int):
        return level
    levels = logging.getLevelNamesMapping()
    try:
        return levels[level.upper()]
    except KeyError:
        raise ConfigError(
            f"Unknown log level {level!r}; use DEBUG, INFO, WARNING or ERROR"
        ) from None


def configure_logging(
    level: str | int = "INFO",
    json_format: bool | None = None,
    host: str = "mycoq",
) -> None:
    """Configure structured logging for the host process.

    Args:
        level: Log level name (DEBUG, INFO, WARNING, ERROR) or number
        json_format: True for JSON, False for console, None for auto (JSON if stderr is not a tty)
        host: Value of ``host.name`` on every line

    Raises:
        ConfigError: Unknown level name.
    """
    global _HOST_NAME
    numeric_level = _parse_level(level)
    _HOST_NAME = host

    if json_format is None:
        json_format = not sys.stderr.isatty()

    processors: list[Processor] = [
        structlog.stdlib.filter_by_level,
        structlog.processors.TimeStamper(fmt="iso", utc=True),
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        structlog.processors.StackInfoRenderer(),
        structlog.dev.set_exc_info,
        _add_process_metadata,
    ]
    if json_format:
        processors += [structlog.processors.format_exc_info, _ecs_fields, structlog.processors.JSONRenderer()]
    else:
        processors.append(structlog.dev.ConsoleRenderer(colors=sys.stderr.isatty()))

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )

    # stdout stays free for services and command output
    logging.basicConfig(format="%(message)s", stream=sys.stderr, level=numeric_level, force=True)


def get_logger(name: str | None = None) -> Any:
    """Get a structured logger (usually ``get_logger(__name__)``)."""
    return structlog.get_logger(name)


class LogContext:
    """Bind keys for the duration of a ``with`` block.

    Previous values are restored on exit, so nested contexts and keys that
    were already bound survive.

    Example:
        with LogContext(service="payment-service"):
            logger.info("service_running")
    """

    def __init__(self, **kwargs: Any):
        self._context = kwargs
        self._tokens: dict[str, Any] = {}

    def __enter__(self) -> LogContext:
        self._tokens = structlog.contextvars.bind_contextvars(**self._context)
        return self

    def __exit__(self, *args) -> None:
        structlog.contextvars.reset_contextvars(**self._tokens)
        self._tokens = {}


__all__ = [
    "configure_logging",
    "get_logger",
    "LogContext",
]
