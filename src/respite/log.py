"""Structured logging configuration.

respite logs through ``structlog`` and never configures logging on import.
Applications that do not configure structlog themselves can call
``setup_logging`` to route respite's events through the standard library
``logging`` module.
"""

import collections.abc
import logging
import sys
import typing

import structlog
from structlog.types import Processor

__all__: collections.abc.Sequence[str] = ("setup_logging", "get_logger")


def setup_logging(level: int | str = logging.INFO, *, json: bool = False) -> None:
    """Configure structlog to render through the standard library.

    Args:
        level: Minimum level for the ``respite`` loggers.
        json: Render events as JSON lines instead of key/value console output.
    """
    if isinstance(level, str):
        level = logging.getLevelName(level.upper())

    logging.basicConfig(stream=sys.stderr, format="%(message)s")
    logging.getLogger("respite").setLevel(level)

    shared_processors: list[Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        structlog.processors.TimeStamper(fmt="iso", utc=True),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.UnicodeDecoder(),
    ]

    if json:
        processors = [
            *shared_processors,
            structlog.processors.format_exc_info,
            structlog.processors.JSONRenderer(),
        ]
    else:
        processors = [*shared_processors, structlog.dev.ConsoleRenderer(colors=False)]

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )


def get_logger(name: str) -> structlog.stdlib.BoundLogger:
    """Get a structured logger that emits through the standard library logger ``name``.

    Until the application configures logging, events below ``WARNING`` are
    dropped by ``logging`` and nothing is written to stdout, whether or not
    structlog itself has been configured.
    """
    return typing.cast(structlog.stdlib.BoundLogger, structlog.wrap_logger(logging.getLogger(name)))
