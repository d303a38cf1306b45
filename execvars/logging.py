"""execvars — Structured logging configuration.

Every entry carries an ISO-8601 timestamp, the level and the logger name.
While the dispatch loop serves a read request, ``request_id`` and
``variable_id`` are bound to the task's structlog context and show up on
every entry logged on its behalf, executor output included.

Logs go to stderr (and optionally a file); stdout is never written to.
"""

from __future__ import annotations

import logging
import sys
from typing import Any

import structlog


def bind_request_context(
    request_id: int | None = None,
    variable_id: int | None = None,
) -> None:
    """Bind the read request being served to the current task."""
    bound = {"request_id": request_id, "variable_id": variable_id}
    structlog.contextvars.bind_contextvars(
        **{key: value for key, value in bound.items() if value is not None}
    )


def clear_request_context() -> None:
    structlog.contextvars.unbind_contextvars("request_id", "variable_id")


def configure_logging(
    level: str = "info",
    format: str = "console",
    log_file: str | None = None,
) -> None:
    """Route structlog through stdlib logging.

    Args:
        level:    One of debug, info, warning, error, critical.
        format:   ``"console"`` for human-readable output, ``"json"`` for
                  one JSON object per line.
        log_file: Optional path to write logs to in addition to stderr.
    """
    shared_processors: list[Any] = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        structlog.processors.TimeStamper(fmt="iso"),
    ]

    if format == "json":
        renderer: Any = structlog.processors.JSONRenderer()
    else:
        renderer = structlog.dev.ConsoleRenderer(colors=sys.stderr.isatty())

    structlog.configure(
        processors=[
            *shared_processors,
            structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
        ],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    formatter = structlog.stdlib.ProcessorFormatter(
        foreign_pre_chain=shared_processors,
        processors=[
            structlog.stdlib.ProcessorFormatter.remove_processors_meta,
            renderer,
        ],
    )

    handlers: list[logging.Handler] = [logging.StreamHandler(sys.stderr)]
    if log_file:
        handlers.append(logging.FileHandler(log_file))
    for handler in handlers:
        handler.setFormatter(formatter)

    root_logger = logging.getLogger()
    root_logger.handlers = handlers
    root_logger.setLevel(level.upper())

    # Child-watcher chatter for every reaped command.
    logging.getLogger("asyncio").setLevel(logging.WARNING)


def get_logger(name: str) -> structlog.stdlib.BoundLogger:
    return structlog.get_logger(name)
