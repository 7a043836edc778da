"""
Utility modules for the MinuteFlow meeting automation core.

This package contains:
- config: Configuration management with Pydantic Settings
- logger: Structured logging setup
- exceptions: Custom exception classes
- resilience: Retry with exponential backoff
- sanitizer: Public error messages
"""

from minuteflow.utils.config import get_settings, Settings
from minuteflow.utils.logger import get_logger, setup_logging
from minuteflow.utils.exceptions import (
    MinuteFlowError,
    InvalidChunkError,
    UnknownMeetingError,
    UnknownWindowError,
    UnknownEventError,
    InvalidTransitionError,
    AlreadyProcessedError,
    DispatchError,
    SummarizerError,
    StorageError,
    ValidationError,
    ConfigurationError,
)
from minuteflow.utils.resilience import RetryPolicy, is_retryable_error, with_retry
from minuteflow.utils.sanitizer import (
    get_public_error_message,
    handle_error,
    sanitize_error_message,
)

__all__ = [
    "get_settings",
    "Settings",
    "get_logger",
    "setup_logging",
    "MinuteFlowError",
    "InvalidChunkError",
    "UnknownMeetingError",
    "UnknownWindowError",
    "UnknownEventError",
    "InvalidTransitionError",
    "AlreadyProcessedError",
    "DispatchError",
    "SummarizerError",
    "StorageError",
    "ValidationError",
    "ConfigurationError",
    "RetryPolicy",
    "is_retryable_error",
    "with_retry",
    "get_public_error_message",
    "handle_error",
    "sanitize_error_message",
]
