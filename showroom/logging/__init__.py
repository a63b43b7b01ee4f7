"""Structured logging for the recommendation service.

Provides structured logging for:
- API requests (timing, status, caller)
- Catalog searches (strategy, result counts, failures)
- Language model calls (purpose, model, degradation)
- Thread persistence and errors

Supports:
- Console logging (development: colored, production: JSON)
- Rotating file logging (app.log and error.log)
"""

import logging
import os
import sys
import time
from enum import Enum
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Optional
from contextvars import ContextVar

import structlog

# Request context for correlating logs
_request_id: ContextVar[Optional[str]] = ContextVar("request_id", default=None)
_user_id: ContextVar[Optional[str]] = ContextVar("user_id", default=None)


class EventCategory(str, Enum):
    """Categories of logged events."""
    SEARCH = "search"
    LLM = "llm"
    RECOMMENDATION = "recommendation"
    PERSISTENCE = "persistence"
    SYSTEM = "system"
    ERROR = "error"
    PERFORMANCE = "performance"


class LogConfig:
    """Logging configuration from environment variables."""

    # Environment: development, staging, production
    ENVIRONMENT: str = os.getenv("ENVIRONMENT", "development")

    # Log level: DEBUG, INFO, WARNING, ERROR
    LOG_LEVEL: str = os.getenv("LOG_LEVEL", "INFO")

    # Log format: json or text
    LOG_FORMAT: str = os.getenv("LOG_FORMAT", "json" if ENVIRONMENT == "production" else "text")

    # File logging
    LOG_TO_FILE: bool = os.getenv("LOG_TO_FILE", "false").lower() == "true"
    LOG_DIR: Path = Path(os.getenv("LOG_DIR", "logs"))
    LOG_FILE_MAX_BYTES: int = int(os.getenv("LOG_FILE_MAX_BYTES", 10 * 1024 * 1024))  # 10MB
    LOG_FILE_BACKUP_COUNT: int = int(os.getenv("LOG_FILE_BACKUP_COUNT", 5))


def _rotating_handler(filename: str, level: int) -> logging.Handler:
    LogConfig.LOG_DIR.mkdir(parents=True, exist_ok=True)
    handler = RotatingFileHandler(
        LogConfig.LOG_DIR / filename,
        maxBytes=LogConfig.LOG_FILE_MAX_BYTES,
        backupCount=LogConfig.LOG_FILE_BACKUP_COUNT,
    )
    handler.setFormatter(logging.Formatter('%(message)s'))
    handler.setLevel(level)
    return handler


def setup_file_logging() -> Optional[logging.Handler]:
    """Set up file-based logging with rotation."""
    if not LogConfig.LOG_TO_FILE:
        return None
    return _rotating_handler("app.log", getattr(logging, LogConfig.LOG_LEVEL))


def setup_error_file_logging() -> Optional[logging.Handler]:
    """Set up separate error log file."""
    if not LogConfig.LOG_TO_FILE:
        return None
    return _rotating_handler("error.log", logging.ERROR)


def configure_logging():
    """Configure structured logging for all environments."""
    root_logger = logging.getLogger()
    root_logger.setLevel(getattr(logging, LogConfig.LOG_LEVEL))

    # Clear existing handlers
    root_logger.handlers = []

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setLevel(getattr(logging, LogConfig.LOG_LEVEL))
    root_logger.addHandler(console_handler)

    for handler in (setup_file_logging(), setup_error_file_logging()):
        if handler:
            root_logger.addHandler(handler)

    processors = [
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        add_request_context,
        add_environment_context,
    ]

    # Use JSON renderer for production, colored console for dev
    if LogConfig.LOG_FORMAT == "json":
        processors.append(structlog.processors.JSONRenderer())
    else:
        processors.append(structlog.dev.ConsoleRenderer(colors=True))

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )

    structlog.get_logger(__name__).info(
        "logging_configured",
        environment=LogConfig.ENVIRONMENT,
        log_level=LogConfig.LOG_LEVEL,
        log_format=LogConfig.LOG_FORMAT,
        file_logging=LogConfig.LOG_TO_FILE,
    )


def add_request_context(logger, method_name, event_dict):
    """Add request context to log events."""
    request_id = _request_id.get()
    user_id = _user_id.get()

    if request_id:
        event_dict["request_id"] = request_id
    if user_id:
        event_dict["user_id"] = user_id

    return event_dict


def add_environment_context(logger, method_name, event_dict):
    """Add environment info to log events."""
    event_dict["env"] = LogConfig.ENVIRONMENT
    return event_dict


def set_request_context(
    request_id: Optional[str] = None,
    user_id: Optional[str] = None,
):
    """Set request context for correlation."""
    if request_id:
        _request_id.set(request_id)
    if user_id:
        _user_id.set(user_id)


def clear_request_context():
    """Clear request context."""
    _request_id.set(None)
    _user_id.set(None)


logger = structlog.get_logger(__name__)


def log_api_request(
    method: str,
    path: str,
    status_code: int,
    duration_ms: float,
    user_agent: Optional[str] = None,
    error: Optional[str] = None,
):
    """Log API request.

    Args:
        method: HTTP method
        path: Request path
        status_code: Response status code
        duration_ms: Request duration
        user_agent: Client user agent
        error: Error message if failed
    """
    level = "info" if status_code < 400 else "warning" if status_code < 500 else "error"
    getattr(logger, level)(
        "api_request",
        category=EventCategory.SYSTEM.value,
        method=method,
        path=path,
        status_code=status_code,
        duration_ms=duration_ms,
        user_agent=user_agent[:100] if user_agent else None,
        error=error,
    )


def log_search(
    strategy: str,
    query: Optional[str],
    results_count: int,
    duration_ms: float,
    error: Optional[str] = None,
):
    """Log a catalog search strategy.

    Failed and empty searches both contribute no candidates; they are kept
    apart here so the two cases can be told apart in the logs.

    Args:
        strategy: Matcher strategy name (keywords, category, room_type...)
        query: Search input
        results_count: Number of candidates returned
        duration_ms: Search duration in milliseconds
        error: Error message if the search raised
    """
    if error is not None:
        event, level = "search_failed", "warning"
    elif results_count == 0:
        event, level = "search_empty", "debug"
    else:
        event, level = "search", "debug"

    getattr(logger, level)(
        event,
        category=EventCategory.SEARCH.value,
        strategy=strategy,
        query=query[:100] if query else None,
        results_count=results_count,
        duration_ms=duration_ms,
        success=error is None,
        error=error,
    )


def log_llm_call(
    purpose: str,
    model: str,
    duration_ms: float,
    degraded: bool = False,
    error: Optional[str] = None,
):
    """Log a language model round-trip.

    Args:
        purpose: extraction, generation, tool_followup or summarization
        model: Model name
        duration_ms: Call duration in milliseconds
        degraded: Whether the pipeline fell back because of this call
        error: Error message if failed
    """
    level = "warning" if (degraded or error) else "info"
    getattr(logger, level)(
        "llm_call",
        category=EventCategory.LLM.value,
        purpose=purpose,
        model=model,
        duration_ms=duration_ms,
        degraded=degraded,
        error=error,
    )


def log_error(
    error_type: str,
    message: str,
    context: Optional[dict] = None,
):
    """Log an error.

    Args:
        error_type: Type/class of error
        message: Error message
        context: Additional context
    """
    logger.error(
        "error",
        category=EventCategory.ERROR.value,
        error_type=error_type,
        message=message,
        context=context or {},
    )


class LogTimer:
    """Context manager for timing and logging operations."""

    def __init__(
        self,
        operation: str,
        category: EventCategory = EventCategory.PERFORMANCE,
        **extra_fields,
    ):
        self.operation = operation
        self.category = category
        self.extra_fields = extra_fields
        self.start_time: float = 0
        self.duration_ms: float = 0

    def __enter__(self):
        self.start_time = time.perf_counter()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.duration_ms = (time.perf_counter() - self.start_time) * 1000

        if exc_type is not None:
            logger.error(
                self.operation,
                category=self.category.value,
                duration_ms=self.duration_ms,
                success=False,
                error=str(exc_val),
                **self.extra_fields,
            )
        else:
            logger.info(
                self.operation,
                category=self.category.value,
                duration_ms=self.duration_ms,
                success=True,
                **self.extra_fields,
            )

        return False  # Don't suppress exceptions
