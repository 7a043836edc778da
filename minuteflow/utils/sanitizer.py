"""
Error sanitization for anything that leaves the process.

Internal logs keep the raw error (message, code, stack). Callers outside
the process only ever see the output of ``get_public_error_message``,
which strips stack traces, filesystem paths, key material and internal
service paths.
"""

import re
from typing import Any, Optional

from minuteflow.utils.exceptions import MinuteFlowError
from minuteflow.utils.logger import get_logger

logger = get_logger("main")

GENERIC_MESSAGE = "An error occurred"
MAX_PUBLIC_LENGTH = 200

# Order matters: key blocks, traceback frames and credentialed URLs are
# removed before the generic path patterns so their remnants do not survive
# as fragments.
SENSITIVE_PATTERNS: tuple[re.Pattern[str], ...] = (
    re.compile(r"-----BEGIN[^-]*-----[\s\S]*?-----END[^-]*-----"),
    re.compile(r"-----BEGIN[^-]*-----[\s\S]*"),
    re.compile(r"Traceback \(most recent call last\):"),
    # A frame line and the indented source and caret lines printed under it
    re.compile(r'File "[^"]*", line \d+(?:, in [^\r\n]*)?(?:\r?\n[ \t]+[^\r\n]*)*'),
    re.compile(r"\bat\s+[\w.$<>]+\s+\([^)]*\)"),
    re.compile(r"^\s*at\s+\S.*$", re.MULTILINE),
    re.compile(r"\b[A-Za-z][\w+.-]*://[^\s/@]+:[^\s/@]*@\S*"),
    re.compile(r"\b(?:api[_-]?key|secret|token|password|passwd|pwd)\s*[=:]\s*\S+", re.IGNORECASE),
    re.compile(r"\bBearer\s+[\w.~+/=-]+", re.IGNORECASE),
    re.compile(r"\b(?:sk|pk|xox[abp])-[\w-]{8,}"),
    # Directory parts may contain spaces; the last part may not
    re.compile(r"\b[A-Za-z]:\\(?:[^\\\r\n\"']*\\)*[^\\\s\"']*"),
    re.compile(r"\\\\[\w.$-]+\\(?:[^\\\r\n\"']*\\)*[^\\\s\"']*"),
    re.compile(r"(?<![\w:/.~])~?/[\w.@$+-]+(?:/[\w.@$+-]*)*(?::\d+)*"),
    re.compile(r"\b[\w.-]*site-packages\S*"),
    re.compile(r"\bnode_modules\S*"),
    re.compile(r"\bprojects/[^/\s]+/databases\S*"),
    re.compile(r"\bservice[_ -]?account\S*", re.IGNORECASE),
    re.compile(r"\b[A-Z][A-Z0-9]*_(?:KEY|SECRET|TOKEN|PASSWORD|CREDENTIALS)\b"),
)

# Stable user-facing phrases per internal code.
ERROR_MESSAGES: dict[str, str] = {
    "ECONNREFUSED": "Service temporarily unavailable",
    "ENOTFOUND": "Service temporarily unavailable",
    "ETIMEDOUT": "Request timed out",
    "ECONNRESET": "Connection was reset",
    "EPIPE": "Connection was lost",
    "UNAVAILABLE": "Service temporarily unavailable",
    "DEADLINE_EXCEEDED": "Request timed out",
    "RESOURCE_EXHAUSTED": "Service temporarily unavailable",
    "PERMISSION_DENIED": "Access denied",
    "UNAUTHENTICATED": "Authentication required",
    "NOT_FOUND": "Resource not found",
    "ALREADY_EXISTS": "Resource already exists",
    "ALREADY_PROCESSED": "Automation was already processed",
    "INVALID_ARGUMENT": "Invalid request",
    "FAILED_PRECONDITION": "Operation cannot be performed",
    "ABORTED": "Operation was aborted",
    "OUT_OF_RANGE": "Value out of range",
    "UNIMPLEMENTED": "Operation not supported",
    "DATA_LOSS": "Data integrity error",
    "CANCELLED": "Operation was cancelled",
    "INTERNAL": "An internal error occurred",
    # Python built-ins that surface from transports
    "ConnectionRefusedError": "Service temporarily unavailable",
    "ConnectionResetError": "Connection was reset",
    "BrokenPipeError": "Connection was lost",
    "TimeoutError": "Request timed out",
    "PermissionError": "Access denied",
    "ValidationError": "Validation failed",
}

# Errors whose message was written for the caller and is safe to surface
# once sanitized. Everything else falls back to the code table.
_SPECIFIC_MESSAGE_CODES = frozenset({"NOT_FOUND", "INVALID_ARGUMENT", "FAILED_PRECONDITION"})


def error_code(error: BaseException) -> str:
    """Return the internal code of an error, or its class name."""
    code = getattr(error, "code", None)
    if isinstance(code, str) and code:
        return code
    return type(error).__name__


def sanitize_error_message(message: Optional[str]) -> str:
    """
    Remove sensitive information from an error message.

    Args:
        message: Raw error message, possibly with stack, paths or keys

    Returns:
        A non-empty message of at most 200 characters (plus ellipsis)
    """
    if not message or not isinstance(message, str):
        return GENERIC_MESSAGE

    sanitized = message
    for pattern in SENSITIVE_PATTERNS:
        sanitized = pattern.sub("", sanitized)

    sanitized = re.sub(r"\s+", " ", sanitized).strip()
    # Drop punctuation left dangling by removed fragments
    sanitized = re.sub(r"\s+([,.;:)])", r"\1", sanitized)
    sanitized = re.sub(r"[(:,;\s]+$", "", sanitized)

    if len(re.sub(r"[\W_]+", "", sanitized)) < 3:
        return GENERIC_MESSAGE

    if len(sanitized) > MAX_PUBLIC_LENGTH:
        sanitized = sanitized[:MAX_PUBLIC_LENGTH] + "..."

    return sanitized


def get_public_error_message(error: Optional[BaseException]) -> str:
    """
    Get a user-friendly error message for an error.

    Known codes map to a fixed phrase. Input errors raised by this package
    keep their own (sanitized) message so callers learn which input was
    wrong. Anything else is sanitized.

    Args:
        error: The error object

    Returns:
        User-facing message
    """
    if error is None:
        return GENERIC_MESSAGE

    code = error_code(error)

    if isinstance(error, MinuteFlowError) and code in _SPECIFIC_MESSAGE_CODES:
        return sanitize_error_message(error.message)

    if code in ERROR_MESSAGES:
        return ERROR_MESSAGES[code]

    message = error.message if isinstance(error, MinuteFlowError) else str(error)
    return sanitize_error_message(message)


def handle_error(error: BaseException, context: str) -> dict[str, str]:
    """
    Log an error with full detail and return a sanitized response body.

    Args:
        error: The error object
        context: Context tag for logging (e.g. operation name)

    Returns:
        A dict with exactly one key, ``error``
    """
    extra: dict[str, Any] = {
        "context": context,
        "error_code": error_code(error),
        "error_type": type(error).__name__,
    }
    logger.error(
        "[%s] %s (code=%s)",
        context,
        error,
        extra["error_code"],
        exc_info=(type(error), error, error.__traceback__),
        extra=extra,
    )
    return {"error": get_public_error_message(error)}
