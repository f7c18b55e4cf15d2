"""
Structured Logging with Correlation IDs

Every log line emitted inside a reconciliation run carries the run's context:
- request_id: one per engine invocation (HTTP request or CLI command)
- operation: which engine operation is running (validate_section, ...)
- section / material_type: the validation scope, when there is one
- mfc_no: the Master Formula Card being examined
- store: which record store backend served the data

Usage:
    from core.observability.logging import get_logger, with_correlation

    logger = get_logger(__name__)

    with with_correlation(request_id="req-1", operation="validate_section", section="RM"):
        logger.info("Indexes built")  # includes request_id, operation and section
"""

import json
import logging
import sys
from contextlib import contextmanager
from contextvars import ContextVar
from dataclasses import asdict, dataclass
from datetime import datetime, timezone
from typing import Any, Dict, Optional


# =============================================================================
# Correlation Context
# =============================================================================

@dataclass
class CorrelationContext:
    """Identifiers tying log lines to one reconciliation run."""
    request_id: Optional[str] = None
    operation: Optional[str] = None
    section: Optional[str] = None
    material_type: Optional[str] = None
    mfc_no: Optional[str] = None
    store: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dict, excluding None values."""
        return {k: v for k, v in asdict(self).items() if v is not None}

    def merge(self, **kwargs) -> "CorrelationContext":
        """Create a new context with merged values."""
        data = self.to_dict()
        data.update({k: v for k, v in kwargs.items() if v is not None})
        return CorrelationContext(**data)


# Per-task under asyncio, per-thread otherwise
_correlation_context: ContextVar[CorrelationContext] = ContextVar(
    "correlation_context",
    default=CorrelationContext(),
)


def get_correlation_context() -> CorrelationContext:
    return _correlation_context.get()


@contextmanager
def with_correlation(**kwargs):
    """
    Context manager adding correlation IDs to every log line inside it.

    Nested uses merge with the outer context; leaving restores it.
    """
    new_ctx = get_correlation_context().merge(**kwargs)
    token = _correlation_context.set(new_ctx)
    try:
        yield new_ctx
    finally:
        _correlation_context.reset(token)


# =============================================================================
# Formatters
# =============================================================================

class StructuredFormatter(logging.Formatter):
    """
    JSON formatter that includes correlation context.

    Output format:
    {
        "timestamp": "2026-01-09T12:00:00.000000Z",
        "level": "INFO",
        "logger": "reconciliation.service",
        "message": "Run completed: validate_section",
        "request_id": "0b6f...",
        "operation": "validate_section",
        "section": "RM",
        "duration_ms": 12.5
    }
    """

    def format(self, record: logging.LogRecord) -> str:
        log_data = {
            "timestamp": datetime.now(timezone.utc).strftime("%Y-%m-%dT%H:%M:%S.%fZ"),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        log_data.update(get_correlation_context().to_dict())

        extra_fields = getattr(record, "extra_fields", None)
        if extra_fields:
            log_data.update(extra_fields)

        if record.exc_info:
            log_data["exception"] = self.formatException(record.exc_info)

        return json.dumps(log_data, default=str)


class HumanReadableFormatter(logging.Formatter):
    """
    Human-readable formatter with a short correlation prefix.

    Output format:
    2026-01-09 12:00:00 [INFO ] reconciliation.service [0b6f1c2d/validate_section/RM]: Run completed
    """

    def format(self, record: logging.LogRecord) -> str:
        ctx = get_correlation_context()

        parts = []
        if ctx.request_id:
            parts.append(ctx.request_id[:8])
        if ctx.operation:
            parts.append(ctx.operation)
        if ctx.section:
            parts.append(ctx.section)
        if ctx.material_type:
            parts.append(f"type:{ctx.material_type}")
        if ctx.mfc_no:
            parts.append(f"mfc:{ctx.mfc_no}")
        correlation = "/".join(parts) if parts else "-"

        timestamp = datetime.now(timezone.utc).strftime("%Y-%m-%d %H:%M:%S")
        msg = f"{timestamp} [{record.levelname:5}] {record.name} [{correlation}]: {record.getMessage()}"

        extra_fields = getattr(record, "extra_fields", None)
        if extra_fields:
            msg += " " + " ".join(f"{k}={v}" for k, v in extra_fields.items())

        if record.exc_info:
            msg += "\n" + self.formatException(record.exc_info)

        return msg


# =============================================================================
# Logger with Correlation Support
# =============================================================================

class CorrelatedLogger:
    """
    Logger wrapper that supports per-call ``extra_fields``.

    Correlation IDs are added by the formatters, so plain stdlib loggers
    configured through ``configure_logging`` carry them too.
    """

    def __init__(self, logger: logging.Logger):
        self._logger = logger

    @property
    def name(self) -> str:
        return self._logger.name

    def _log(self, level: int, msg: str, *args, exc_info=None, extra_fields=None):
        if exc_info is True:
            exc_info = sys.exc_info()
        record = self._logger.makeRecord(
            self._logger.name,
            level,
            "(unknown file)",
            0,
            msg,
            args,
            exc_info or None,
        )
        record.extra_fields = extra_fields or {}
        self._logger.handle(record)

    def debug(self, msg: str, *args, **kwargs):
        if self._logger.isEnabledFor(logging.DEBUG):
            self._log(logging.DEBUG, msg, *args, **kwargs)

    def info(self, msg: str, *args, **kwargs):
        if self._logger.isEnabledFor(logging.INFO):
            self._log(logging.INFO, msg, *args, **kwargs)

    def warning(self, msg: str, *args, **kwargs):
        if self._logger.isEnabledFor(logging.WARNING):
            self._log(logging.WARNING, msg, *args, **kwargs)

    def error(self, msg: str, *args, **kwargs):
        if self._logger.isEnabledFor(logging.ERROR):
            self._log(logging.ERROR, msg, *args, **kwargs)

    def exception(self, msg: str, *args, **kwargs):
        kwargs["exc_info"] = True
        self.error(msg, *args, **kwargs)

    def setLevel(self, level):
        self._logger.setLevel(level)

    def isEnabledFor(self, level):
        return self._logger.isEnabledFor(level)


# =============================================================================
# Logger Factory
# =============================================================================

_loggers: Dict[str, CorrelatedLogger] = {}
_handler: Optional[logging.Handler] = None

APP_LOGGERS = ("reconciliation", "storage", "api", "core", "scripts")


def configure_logging(level="INFO", json_format: bool = False, force: bool = False):
    """
    Install one stdout handler on the root logger.

    Args:
        level: Logging level name or number
        json_format: If True, use JSON lines; otherwise human-readable
        force: Replace a handler installed by an earlier call
    """
    global _handler

    if _handler is not None and not force:
        return

    if isinstance(level, str):
        level = logging.getLevelName(level.upper())
        if not isinstance(level, int):
            level = logging.INFO

    handler = logging.StreamHandler(sys.stdout)
    handler.setLevel(level)
    handler.setFormatter(StructuredFormatter() if json_format else HumanReadableFormatter())

    root = logging.getLogger()
    if _handler is not None:
        root.removeHandler(_handler)
    root.setLevel(level)
    root.addHandler(handler)
    _handler = handler

    for logger_name in APP_LOGGERS:
        logging.getLogger(logger_name).setLevel(level)

    # Reduce noise from third-party libraries
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)


def get_logger(name: str) -> CorrelatedLogger:
    """
    Get a correlated logger for the given name.

    Args:
        name: Logger name (typically __name__)
    """
    if name not in _loggers:
        if _handler is None:
            configure_logging()
        _loggers[name] = CorrelatedLogger(logging.getLogger(name))
    return _loggers[name]


# =============================================================================
# Convenience Functions for Engine Runs
# =============================================================================

def log_run_start(operation: str, **kwargs):
    get_logger("reconciliation.runs").info(f"Run started: {operation}", extra_fields=kwargs)


def log_run_complete(operation: str, duration_ms: Optional[float] = None, **kwargs):
    extra = {"duration_ms": round(duration_ms, 2)} if duration_ms is not None else {}
    extra.update(kwargs)
    get_logger("reconciliation.runs").info(f"Run completed: {operation}", extra_fields=extra)


def log_run_rejected(operation: str, reason: str, **kwargs):
    get_logger("reconciliation.runs").warning(
        f"Run rejected: {operation} - {reason}", extra_fields=kwargs
    )
