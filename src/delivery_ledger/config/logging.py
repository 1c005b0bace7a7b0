"""Structured logging setup for ledger commands and services."""

import logging
import sys
from typing import Any, Literal, TextIO

import structlog

from delivery_ledger.config.settings import get_settings

LogLevel = Literal["DEBUG", "INFO", "WARNING", "ERROR"]
LogFormat = Literal["json", "console"]

# Transport libraries whose request chatter is only wanted at DEBUG
_NOISY_LOGGERS = ("httpx", "httpcore", "websockets")


def _renderer(log_format: LogFormat) -> structlog.types.Processor:
    if log_format == "json":
        return structlog.processors.JSONRenderer(sort_keys=True)
    return structlog.dev.ConsoleRenderer(
        colors=False,
        exception_formatter=structlog.dev.plain_traceback,
    )


def configure_logging(
    level: LogLevel | None = None,
    format: LogFormat | None = None,
    stream: TextIO | None = None,
) -> None:
    """Route structlog through stdlib logging with the configured renderer.

    Args:
        level: Log level. Defaults to ``LOG_LEVEL``.
        format: ``json`` for log shipping, ``console`` for terminals.
            Defaults to ``LOG_FORMAT``.
        stream: Output stream. Defaults to stderr so command output on
            stdout stays machine-readable.
    """
    settings = get_settings()
    log_level = level or settings.log_level
    log_format = format or settings.log_format

    logging.basicConfig(
        format="%(message)s",
        stream=stream or sys.stderr,
        level=getattr(logging, log_level),
        force=True,
    )
    transport_level = logging.DEBUG if log_level == "DEBUG" else logging.WARNING
    for name in _NOISY_LOGGERS:
        logging.getLogger(name).setLevel(transport_level)

    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.stdlib.filter_by_level,
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
            structlog.processors.TimeStamper(fmt="iso", utc=True),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            _renderer(log_format),
        ],
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )


def bind_run_context(**values: Any) -> None:
    """Attach values (command, period) to every log line of this run."""
    structlog.contextvars.clear_contextvars()
    structlog.contextvars.bind_contextvars(**{k: v for k, v in values.items() if v is not None})
