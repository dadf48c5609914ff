"""Structured logging with correlation IDs and JSON formatting."""
import json
import logging
import uuid
from contextlib import contextmanager
from contextvars import ContextVar
from datetime import datetime, timezone
from typing import Any, Dict, Iterator, Optional

# Context variables for correlation IDs
correlation_id_var: ContextVar[Optional[str]] = ContextVar("correlation_id", default=None)
agent_id_var: ContextVar[Optional[str]] = ContextVar("agent_id", default=None)
tool_name_var: ContextVar[Optional[str]] = ContextVar("tool_name", default=None)

_CONTEXT_FIELDS = ("correlation_id", "agent_id", "tool_name")

# Attributes every LogRecord has; anything else came in through ``extra=``
_RESERVED_ATTRS = set(vars(logging.LogRecord("", 0, "", 0, "", None, None))) | {
    "message",
    "asctime",
    *_CONTEXT_FIELDS,
}


class CorrelationIdFilter(logging.Filter):
    """Logging filter that adds correlation IDs to log records."""

    def filter(self, record: logging.LogRecord) -> bool:
        """Add correlation IDs to log record."""
        record.correlation_id = correlation_id_var.get() or "-"
        record.agent_id = agent_id_var.get() or "-"
        record.tool_name = getattr(record, "tool_name", None) or tool_name_var.get() or "-"
        return True


class JSONFormatter(logging.Formatter):
    """JSON formatter for structured logging.

    Formats log records as JSON for better machine parsing and log aggregation.
    """

    def format(self, record: logging.LogRecord) -> str:
        """Format log record as JSON."""
        log_data: Dict[str, Any] = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "module": record.module,
            "function": record.funcName,
            "line": record.lineno,
        }

        # Add correlation IDs if present
        for field in _CONTEXT_FIELDS:
            value = getattr(record, field, "-")
            if value and value != "-":
                log_data[field] = value

        # Add exception info if present
        if record.exc_info:
            log_data["exception"] = self.formatException(record.exc_info)

        # Add extra fields if present
        extra = {
            key: value
            for key, value in vars(record).items()
            if key not in _RESERVED_ATTRS
        }
        if extra:
            log_data["extra"] = extra

        return json.dumps(log_data, default=str)


def setup_logging(level: str = "INFO", use_json: bool = False) -> None:
    """Configure structured logging with correlation IDs.

    Args:
        level: Root log level name
        use_json: If True, use JSON formatter for machine parsing.
                  If False, use human-readable formatter.
                  Defaults to False (human-readable).
    """
    root_logger = logging.getLogger()
    root_logger.setLevel(getattr(logging, level.upper(), logging.INFO))

    if not root_logger.handlers:
        root_logger.addHandler(logging.StreamHandler())

    correlation_filter = CorrelationIdFilter()

    # Choose formatter based on configuration
    if use_json:
        # JSON formatter for production/log aggregation
        formatter: logging.Formatter = JSONFormatter()
    else:
        # Human-readable formatter for development
        formatter = logging.Formatter(
            "%(asctime)s - %(name)s - %(levelname)s - "
            "[correlation_id=%(correlation_id)s] "
            "[agent_id=%(agent_id)s] "
            "[tool_name=%(tool_name)s] - "
            "%(message)s"
        )

    for handler in root_logger.handlers:
        if not any(isinstance(f, CorrelationIdFilter) for f in handler.filters):
            handler.addFilter(correlation_filter)
        handler.setFormatter(formatter)


def set_correlation_id(correlation_id: Optional[str] = None) -> str:
    """Set correlation ID for current context."""
    if correlation_id is None:
        correlation_id = str(uuid.uuid4())

    correlation_id_var.set(correlation_id)
    return correlation_id


def get_correlation_id() -> Optional[str]:
    """Get current correlation ID."""
    return correlation_id_var.get()


@contextmanager
def agent_context(agent_id: Optional[str]) -> Iterator[None]:
    """Attach an agent ID to every log record emitted inside the block."""
    token = agent_id_var.set(agent_id)
    try:
        yield
    finally:
        agent_id_var.reset(token)


@contextmanager
def tool_context(tool_name: Optional[str]) -> Iterator[None]:
    """Attach a tool name to every log record emitted inside the block."""
    token = tool_name_var.set(tool_name)
    try:
        yield
    finally:
        tool_name_var.reset(token)
