"""
Logging configuration for the MinuteFlow meeting automation core.

Provides structured logging with:
- Console and file handlers
- Separate log files per component (ingestion, automation, dispatch)
- Optional JSON formatting
- Contextual logging with meeting/event ids attached
"""

import json
import logging
import sys
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Optional

ROOT_LOGGER = "minuteflow"

# Component-specific logger names
LOGGER_NAMES = {
    "main": ROOT_LOGGER,
    "ingest": f"{ROOT_LOGGER}.ingest",
    "semantic": f"{ROOT_LOGGER}.semantic",
    "automation": f"{ROOT_LOGGER}.automation",
    "dispatch": f"{ROOT_LOGGER}.dispatch",
    "summary": f"{ROOT_LOGGER}.summary",
    "api": f"{ROOT_LOGGER}.api",
}

# Log file names per component
LOG_FILES = {
    "main": "minuteflow.log",
    "automation": "automation.log",
    "dispatch": "dispatch.log",
    "errors": "errors.log",
}

_RESERVED_ATTRS = frozenset(
    {
        "name",
        "msg",
        "args",
        "created",
        "filename",
        "funcName",
        "levelname",
        "levelno",
        "lineno",
        "module",
        "msecs",
        "pathname",
        "process",
        "processName",
        "relativeCreated",
        "stack_info",
        "exc_info",
        "exc_text",
        "thread",
        "threadName",
        "taskName",
        "message",
    }
)


class JSONFormatter(logging.Formatter):
    """JSON log formatter for structured logging."""

    def format(self, record: logging.LogRecord) -> str:
        """Format log record as JSON."""
        log_data: dict[str, Any] = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "module": record.module,
            "function": record.funcName,
            "line": record.lineno,
        }

        if record.exc_info:
            log_data["exception"] = self.formatException(record.exc_info)

        # Extra fields passed via `extra=` (error_code, meeting_id, ...)
        for key, value in record.__dict__.items():
            if key not in _RESERVED_ATTRS:
                log_data[key] = value

        return json.dumps(log_data, default=str)


class ColoredFormatter(logging.Formatter):
    """Colored console formatter for better readability."""

    COLORS = {
        "DEBUG": "\033[36m",  # Cyan
        "INFO": "\033[32m",  # Green
        "WARNING": "\033[33m",  # Yellow
        "ERROR": "\033[31m",  # Red
        "CRITICAL": "\033[35m",  # Magenta
    }
    RESET = "\033[0m"

    def format(self, record: logging.LogRecord) -> str:
        """Format with colors for terminal output."""
        color = self.COLORS.get(record.levelname, self.RESET)
        record.levelname = f"{color}{record.levelname}{self.RESET}"
        return super().format(record)


def setup_logging(
    level: str = "INFO",
    log_dir: Optional[Path] = None,
    json_format: bool = False,
    console_output: bool = True,
) -> None:
    """
    Configure logging for the application.

    Args:
        level: Log level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        log_dir: Directory for log files. If None, file logging is disabled.
        json_format: Use JSON formatting for logs
        console_output: Enable console output
    """
    numeric_level = getattr(logging, level.upper(), logging.INFO)

    root_logger = logging.getLogger(ROOT_LOGGER)
    root_logger.setLevel(numeric_level)
    root_logger.handlers.clear()

    standard_format = "%(asctime)s | %(levelname)-8s | %(name)s | %(message)s"
    date_format = "%Y-%m-%d %H:%M:%S"

    if console_output:
        console_handler = logging.StreamHandler(sys.stdout)
        console_handler.setLevel(numeric_level)

        if json_format:
            console_handler.setFormatter(JSONFormatter())
        elif sys.stdout.isatty():
            console_handler.setFormatter(
                ColoredFormatter(standard_format, datefmt=date_format)
            )
        else:
            console_handler.setFormatter(
                logging.Formatter(standard_format, datefmt=date_format)
            )

        root_logger.addHandler(console_handler)

    if log_dir:
        log_dir = Path(log_dir)
        log_dir.mkdir(parents=True, exist_ok=True)

        file_formatter = (
            JSONFormatter()
            if json_format
            else logging.Formatter(standard_format, datefmt=date_format)
        )

        main_handler = logging.FileHandler(log_dir / LOG_FILES["main"])
        main_handler.setLevel(numeric_level)
        main_handler.setFormatter(file_formatter)
        root_logger.addHandler(main_handler)

        # Raw, unsanitized errors land here
        error_handler = logging.FileHandler(log_dir / LOG_FILES["errors"])
        error_handler.setLevel(logging.ERROR)
        error_handler.setFormatter(file_formatter)
        root_logger.addHandler(error_handler)

        for component, filename in LOG_FILES.items():
            if component in ("main", "errors"):
                continue

            component_logger = logging.getLogger(LOGGER_NAMES[component])
            component_handler = logging.FileHandler(log_dir / filename)
            component_handler.setLevel(numeric_level)
            component_handler.setFormatter(file_formatter)
            component_logger.addHandler(component_handler)

    root_logger.propagate = False


def get_logger(name: str = "main") -> logging.Logger:
    """
    Get a logger instance for the specified component.

    Args:
        name: Component name (main, ingest, semantic, automation, dispatch,
              summary, api) or a custom name that will be prefixed with
              'minuteflow.'

    Returns:
        Logger instance for the component.
    """
    if name in LOGGER_NAMES:
        return logging.getLogger(LOGGER_NAMES[name])
    if name == ROOT_LOGGER or name.startswith(f"{ROOT_LOGGER}."):
        return logging.getLogger(name)
    return logging.getLogger(f"{ROOT_LOGGER}.{name}")


class LoggerAdapter(logging.LoggerAdapter):
    """
    Logger adapter that adds contextual information to log records.

    Used to tag every line with the meeting or event being handled.
    """

    def process(
        self, msg: str, kwargs: dict[str, Any]
    ) -> tuple[str, dict[str, Any]]:
        """Add extra context to the log message."""
        extra = kwargs.get("extra", {})
        extra.update(self.extra)
        kwargs["extra"] = extra

        if self.extra:
            context_str = " ".join(f"[{k}={v}]" for k, v in self.extra.items())
            msg = f"{context_str} {msg}"

        return msg, kwargs


def get_contextual_logger(
    name: str = "main", **context: Any
) -> LoggerAdapter:
    """
    Get a logger with contextual information attached.

    Args:
        name: Component name
        **context: Key-value pairs to include in all log messages

    Returns:
        LoggerAdapter with context attached.

    Example:
        logger = get_contextual_logger("automation", event_id="evt_123")
        logger.info("Dispatch started")  # Includes event_id in output
    """
    return LoggerAdapter(get_logger(name), context)


def setup_logging_from_settings() -> None:
    """Configure logging from application settings."""
    # config.py is imported lazily; it is heavier and not needed by get_logger
    from minuteflow.utils.config import get_settings

    settings = get_settings()
    setup_logging(
        level=settings.logging.level.value,
        log_dir=settings.logging.dir,
        json_format=settings.logging.json_format,
        console_output=True,
    )
