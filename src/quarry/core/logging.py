# src/quarry/core/logging.py
"""Structured logging for quarry.

quarry modules log through ``structlog.get_logger(__name__)``; SQLAlchemy
logs through plain stdlib loggers. configure_logging() installs one root
handler whose ProcessorFormatter renders both kinds of record with the same
chain, so a statement echoed by the engine and a "Record inserted" event
from the pipeline come out in the same format.

Usage:
    configure_from_settings(load_settings(path).logging)
    log = get_logger(__name__)
    log.info("Import started", table="player")
"""

import logging
import sys
from typing import IO, Any

import structlog
from structlog.stdlib import ProcessorFormatter

from quarry.core.config import LoggingSettings

# SQLAlchemy loggers: engine echo emits every statement and its parameters
SQLALCHEMY_LOGGERS: tuple[str, ...] = (
    "sqlalchemy",
    "sqlalchemy.engine",
    "sqlalchemy.engine.Engine",
    "sqlalchemy.pool",
    "sqlalchemy.dialects",
)


def _pre_chain() -> list[Any]:
    """Processors every record passes, whether it came from structlog or stdlib."""
    return [
        structlog.contextvars.merge_contextvars,
        structlog.processors.add_log_level,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.StackInfoRenderer(),
    ]


def _render_chain(json_output: bool) -> list[Any]:
    """Formatter-side processors ending in the renderer."""
    if json_output:
        return [
            ProcessorFormatter.remove_processors_meta,
            structlog.processors.format_exc_info,
            structlog.processors.JSONRenderer(),
        ]
    return [
        ProcessorFormatter.remove_processors_meta,
        structlog.dev.ConsoleRenderer(colors=True),
    ]


def configure_logging(
    *,
    json_output: bool = False,
    level: str = "INFO",
    quiet_sqlalchemy: bool = True,
    stream: IO[str] | None = None,
) -> None:
    """Route structlog and stdlib logging through one handler.

    Replaces any handler already installed on the root logger.

    Args:
        json_output: Render JSON lines instead of the console format
        level: Root level name (DEBUG, INFO, WARNING, ERROR)
        quiet_sqlalchemy: Hold SQLAlchemy loggers at WARNING (or the root
            level, if stricter)
        stream: Output stream, stdout by default
    """
    log_level = logging.getLevelName(level.upper())
    if not isinstance(log_level, int):
        raise ValueError(f"Unknown log level: {level!r}")

    pre_chain = _pre_chain()
    structlog.configure(
        processors=[*pre_chain, ProcessorFormatter.wrap_for_formatter],
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        # Tests reconfigure logging; cached loggers would keep the old chain
        cache_logger_on_first_use=False,
    )

    handler = logging.StreamHandler(stream if stream is not None else sys.stdout)
    handler.setFormatter(ProcessorFormatter(processors=_render_chain(json_output), foreign_pre_chain=pre_chain))

    root = logging.getLogger()
    root.handlers = [handler]
    root.setLevel(log_level)

    if quiet_sqlalchemy:
        for name in SQLALCHEMY_LOGGERS:
            logging.getLogger(name).setLevel(max(log_level, logging.WARNING))


def configure_from_settings(settings: LoggingSettings) -> None:
    """configure_logging() from validated settings."""
    configure_logging(json_output=settings.json_output, level=settings.level)


def get_logger(name: str) -> structlog.stdlib.BoundLogger:
    """Bound structlog logger for a module (typically ``__name__``)."""
    logger: structlog.stdlib.BoundLogger = structlog.get_logger(name)
    return logger
