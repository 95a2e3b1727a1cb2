"""Logging configuration using structlog."""

import logging
import sys
import time
from typing import Any, Dict, Optional

import structlog

from .config import settings


def _resolve_level(level: Optional[str]) -> int:
    name = (level or settings.LOG_LEVEL or "INFO").upper()
    return getattr(logging, name, logging.INFO)


def configure_logging(level: Optional[str] = None, console: bool = False):
    """Configure structured logging.

    JSON lines are the default; ``console=True`` switches to the human readable
    renderer used by the command line. Logs go to stderr so that command
    output on stdout stays clean for piping.
    """
    logging.basicConfig(
        format="%(message)s",
        stream=sys.stderr,
        level=_resolve_level(level),
        force=True,
    )

    renderer = (
        structlog.dev.ConsoleRenderer(colors=False)
        if console
        else structlog.processors.JSONRenderer()
    )

    structlog.configure(
        processors=[
            structlog.stdlib.filter_by_level,
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
            structlog.stdlib.PositionalArgumentsFormatter(),
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            structlog.processors.UnicodeDecoder(),
            renderer,
        ],
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )


def get_logger(name: Optional[str] = None, **initial_values: Any) -> structlog.BoundLogger:
    """Get a configured logger, optionally pre-bound with context."""
    if not structlog.is_configured():
        configure_logging()

    logger = structlog.get_logger(name)
    if initial_values:
        logger = logger.bind(**initial_values)
    return logger


class LoggerMixin:
    """Gives a class a lazily created ``logger`` named after the class."""

    @property
    def logger(self) -> structlog.BoundLogger:
        if not hasattr(self, "_logger"):
            self._logger = get_logger(self.__class__.__name__)
        return self._logger

    def log_start(self, event: str, **kwargs: Any) -> Dict[str, Any]:
        """Log the start of an operation and return its timing context."""
        context = {"event": event, "start_time": time.time(), **kwargs}
        self.logger.debug(f"{event} started", **kwargs)
        return context

    def log_success(self, context: Dict[str, Any], **kwargs: Any):
        """Log completion of an operation started with ``log_start``."""
        fields = {k: v for k, v in context.items() if k not in ("event", "start_time")}
        if "start_time" in context:
            fields["duration_ms"] = int((time.time() - context["start_time"]) * 1000)
        self.logger.info(f"{context.get('event', 'operation')} completed", **fields, **kwargs)

    def log_error(self, context: Dict[str, Any], error: Exception, **kwargs: Any):
        """Log failure of an operation started with ``log_start``."""
        fields = {k: v for k, v in context.items() if k not in ("event", "start_time")}
        if "start_time" in context:
            fields["duration_ms"] = int((time.time() - context["start_time"]) * 1000)
        self.logger.error(
            f"{context.get('event', 'operation')} failed",
            **fields,
            error=str(error),
            error_type=type(error).__name__,
            **kwargs,
        )
