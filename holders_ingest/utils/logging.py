"""
Structured logging configuration using structlog.

Everything goes to stdout: structlog events from this package, and the
stdlib loggers of uvicorn, APScheduler and httpx through basicConfig.
"""
import logging
import sys
from typing import Any

import structlog
from structlog.types import Processor

# Per-request / per-tick INFO chatter from third-party libraries
NOISY_LOGGERS = ("httpx", "httpcore", "apscheduler.executors.default")


def _renderer(format_type: str) -> Processor:
    if format_type == "json":
        return structlog.processors.JSONRenderer()
    return structlog.dev.ConsoleRenderer(colors=sys.stdout.isatty())


def setup_logging(
    level: str = "INFO",
    format_type: str = "console",
) -> None:
    """
    Configure structlog and stdlib logging for the service and the CLI.

    format_type is 'json' for deployments and 'console' for a terminal.
    Below DEBUG, the libraries in NOISY_LOGGERS only log warnings.
    """
    numeric_level = getattr(logging, level.upper())
    logging.basicConfig(format="%(message)s", stream=sys.stdout, level=numeric_level)
    if numeric_level > logging.DEBUG:
        for name in NOISY_LOGGERS:
            logging.getLogger(name).setLevel(logging.WARNING)

    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.processors.add_log_level,
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            _renderer(format_type),
        ],
        wrapper_class=structlog.make_filtering_bound_logger(numeric_level),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(),
        cache_logger_on_first_use=True,
    )


class LogContext:
    """Bind key/values (e.g. run_id) to every log event inside the block."""

    def __init__(self, **kwargs: Any):
        self.context = kwargs

    def __enter__(self) -> "LogContext":
        structlog.contextvars.bind_contextvars(**self.context)
        return self

    def __exit__(self, *args: Any) -> None:
        structlog.contextvars.unbind_contextvars(*self.context.keys())
