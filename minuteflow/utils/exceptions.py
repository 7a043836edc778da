"""
Custom exception classes for the MinuteFlow meeting automation core.

Provides a hierarchy of exceptions for different error categories:
- Input errors (invalid chunks, unknown meetings/events, bad transitions)
- Dispatch, summarizer and storage errors
- Validation errors
- Configuration errors

Every exception carries a ``code`` that the sanitizer maps to a stable
public message and that the retry layer uses to decide retryability.
"""

from typing import Any, Optional


class MinuteFlowError(Exception):
    """
    Base exception for all MinuteFlow errors.

    All custom exceptions in this project inherit from this class,
    allowing for broad exception catching when needed.
    """

    code: str = "INTERNAL"

    def __init__(
        self,
        message: str,
        *,
        details: Optional[dict[str, Any]] = None,
        cause: Optional[Exception] = None,
        code: Optional[str] = None,
    ) -> None:
        """
        Initialize the exception.

        Args:
            message: Human-readable error message
            details: Additional error details as key-value pairs
            cause: Original exception that caused this error
            code: Override for the class-level error code
        """
        super().__init__(message)
        self.message = message
        self.details = details or {}
        self.cause = cause
        if code is not None:
            self.code = code

    def __str__(self) -> str:
        """Return string representation with details."""
        base = self.message
        if self.details:
            details_str = ", ".join(f"{k}={v}" for k, v in self.details.items())
            base = f"{base} ({details_str})"
        if self.cause:
            base = f"{base} [caused by: {self.cause}]"
        return base


class InvalidChunkError(MinuteFlowError):
    """
    Raised when a transcript chunk cannot be ingested.

    The most common case is text that is empty after trimming.
    """

    code = "INVALID_ARGUMENT"

    def __init__(
        self,
        message: str = "Transcript chunk text is empty",
        *,
        meeting_id: Optional[str] = None,
        **kwargs: Any,
    ) -> None:
        details = kwargs.pop("details", {})
        if meeting_id is not None:
            details["meeting_id"] = meeting_id

        super().__init__(message, details=details, **kwargs)
        self.meeting_id = meeting_id


class UnknownMeetingError(MinuteFlowError):
    """Raised when a meeting id does not resolve."""

    code = "NOT_FOUND"

    def __init__(self, meeting_id: str, **kwargs: Any) -> None:
        details = kwargs.pop("details", {})
        details["meeting_id"] = meeting_id
        super().__init__("Meeting not found", details=details, **kwargs)
        self.meeting_id = meeting_id


class UnknownWindowError(MinuteFlowError):
    """Raised when no window exists for a meeting and index."""

    code = "NOT_FOUND"

    def __init__(self, meeting_id: str, window_index: int, **kwargs: Any) -> None:
        details = kwargs.pop("details", {})
        details["meeting_id"] = meeting_id
        details["window_index"] = window_index
        super().__init__("Window not found", details=details, **kwargs)
        self.meeting_id = meeting_id
        self.window_index = window_index


class UnknownEventError(MinuteFlowError):
    """Raised when an automation event id does not resolve."""

    code = "NOT_FOUND"

    def __init__(self, event_id: str, **kwargs: Any) -> None:
        details = kwargs.pop("details", {})
        details["event_id"] = event_id
        super().__init__("Automation event not found", details=details, **kwargs)
        self.event_id = event_id


class InvalidTransitionError(MinuteFlowError):
    """
    Raised when a lifecycle operation is not allowed from the current status.

    For example rejecting an event that was already approved.
    """

    code = "FAILED_PRECONDITION"

    def __init__(
        self,
        event_id: str,
        *,
        current_status: Optional[str] = None,
        action: Optional[str] = None,
        **kwargs: Any,
    ) -> None:
        details = kwargs.pop("details", {})
        details["event_id"] = event_id
        if current_status is not None:
            details["current_status"] = current_status
        if action is not None:
            details["action"] = action

        super().__init__(
            f"Cannot {action or 'transition'} event in status {current_status}",
            details=details,
            **kwargs,
        )
        self.event_id = event_id
        self.current_status = current_status
        self.action = action


class AlreadyProcessedError(MinuteFlowError):
    """
    Raised when approve is called on an event that has left ``pending``.

    Approval never dispatches twice; the second caller gets this error.
    """

    code = "ALREADY_PROCESSED"

    def __init__(
        self,
        event_id: str,
        *,
        current_status: Optional[str] = None,
        **kwargs: Any,
    ) -> None:
        details = kwargs.pop("details", {})
        details["event_id"] = event_id
        if current_status is not None:
            details["current_status"] = current_status

        super().__init__(
            "Automation event was already processed", details=details, **kwargs
        )
        self.event_id = event_id
        self.current_status = current_status


class DispatchError(MinuteFlowError):
    """
    Exception for outbound automation dispatch failures.

    Raised when the workflow webhook is unreachable or returns an error.
    """

    def __init__(
        self,
        message: str,
        *,
        status_code: Optional[int] = None,
        response_body: Optional[str] = None,
        endpoint: Optional[str] = None,
        **kwargs: Any,
    ) -> None:
        """
        Initialize dispatch error.

        Args:
            message: Error message
            status_code: HTTP status code from the webhook
            response_body: Raw response body
            endpoint: Webhook URL that was called
            **kwargs: Additional arguments passed to parent
        """
        details = kwargs.pop("details", {})
        if status_code is not None:
            details["status_code"] = status_code
        if response_body is not None:
            details["response_body"] = response_body[:500]
        if endpoint is not None:
            details["endpoint"] = endpoint

        if "code" not in kwargs or kwargs["code"] is None:
            kwargs["code"] = _code_for_status(status_code)

        super().__init__(message, details=details, **kwargs)
        self.status_code = status_code
        self.response_body = response_body
        self.endpoint = endpoint


def _code_for_status(status_code: Optional[int]) -> str:
    if status_code is None:
        return "INTERNAL"
    if status_code == 408:
        return "DEADLINE_EXCEEDED"
    if status_code == 429 or status_code >= 500:
        return "UNAVAILABLE"
    if status_code in (401, 403):
        return "PERMISSION_DENIED"
    if status_code == 404:
        return "NOT_FOUND"
    return "INVALID_ARGUMENT"


class SummarizerError(MinuteFlowError):
    """Exception for summarization collaborator failures."""

    def __init__(
        self,
        message: str,
        *,
        status_code: Optional[int] = None,
        model: Optional[str] = None,
        **kwargs: Any,
    ) -> None:
        details = kwargs.pop("details", {})
        if status_code is not None:
            details["status_code"] = status_code
        if model is not None:
            details["model"] = model

        if "code" not in kwargs or kwargs["code"] is None:
            kwargs["code"] = _code_for_status(status_code)

        super().__init__(message, details=details, **kwargs)
        self.status_code = status_code
        self.model = model


class StorageError(MinuteFlowError):
    """
    Exception for storage collaborator failures.

    ``code`` distinguishes transient (UNAVAILABLE) from fatal (DATA_LOSS)
    failures so the retry layer can decide.
    """

    def __init__(
        self,
        message: str,
        *,
        operation: Optional[str] = None,
        **kwargs: Any,
    ) -> None:
        details = kwargs.pop("details", {})
        if operation is not None:
            details["operation"] = operation

        super().__init__(message, details=details, **kwargs)
        self.operation = operation


class ValidationError(MinuteFlowError):
    """
    Exception for data validation errors.

    Raised when input data fails validation checks.
    """

    code = "INVALID_ARGUMENT"

    def __init__(
        self,
        message: str,
        *,
        field: Optional[str] = None,
        value: Optional[Any] = None,
        constraints: Optional[list[str]] = None,
        **kwargs: Any,
    ) -> None:
        """
        Initialize validation error.

        Args:
            message: Error message
            field: Name of the field that failed validation
            value: The invalid value (will be truncated if too long)
            constraints: List of constraints that were violated
            **kwargs: Additional arguments passed to parent
        """
        details = kwargs.pop("details", {})
        if field is not None:
            details["field"] = field
        if value is not None:
            str_value = str(value)
            details["value"] = str_value[:100] if len(str_value) > 100 else str_value
        if constraints is not None:
            details["constraints"] = constraints

        super().__init__(message, details=details, **kwargs)
        self.field = field
        self.value = value
        self.constraints = constraints or []


class ConfigurationError(MinuteFlowError):
    """
    Exception for configuration errors.

    Raised when required configuration is missing or invalid.
    """

    code = "FAILED_PRECONDITION"

    def __init__(
        self,
        message: str,
        *,
        missing_keys: Optional[list[str]] = None,
        invalid_keys: Optional[dict[str, str]] = None,
        **kwargs: Any,
    ) -> None:
        """
        Initialize configuration error.

        Args:
            message: Error message
            missing_keys: List of required configuration keys that are missing
            invalid_keys: Dict of invalid keys and their error messages
            **kwargs: Additional arguments passed to parent
        """
        details = kwargs.pop("details", {})
        if missing_keys:
            details["missing_keys"] = missing_keys
        if invalid_keys:
            details["invalid_keys"] = invalid_keys

        super().__init__(message, details=details, **kwargs)
        self.missing_keys = missing_keys or []
        self.invalid_keys = invalid_keys or {}
