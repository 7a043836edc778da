"""
Retry with exponential backoff for calls to external collaborators.

Only transient infrastructure errors are retried. Input errors and fatal
infrastructure errors propagate on the first attempt.
"""

import time
from typing import Callable, Optional, TypeVar

import httpx
from pydantic import BaseModel, ConfigDict, Field
from tenacity import (
    RetryCallState,
    Retrying,
    retry_if_exception,
    stop_after_attempt,
    wait_exponential,
)

from minuteflow.utils.logger import get_logger
from minuteflow.utils.sanitizer import error_code

logger = get_logger("dispatch")

T = TypeVar("T")

RETRYABLE_CODES = frozenset(
    {
        "ECONNREFUSED",
        "ENOTFOUND",
        "ETIMEDOUT",
        "ECONNRESET",
        "EPIPE",
        "UNAVAILABLE",
        "DEADLINE_EXCEEDED",
        "RESOURCE_EXHAUSTED",
        "ABORTED",
        "INTERNAL",
    }
)

RETRYABLE_EXCEPTION_TYPES: tuple[type[BaseException], ...] = (
    ConnectionRefusedError,
    ConnectionResetError,
    BrokenPipeError,
    TimeoutError,
    httpx.TimeoutException,
    httpx.NetworkError,
)


class RetryPolicy(BaseModel):
    """Backoff parameters; delays are in seconds."""

    model_config = ConfigDict(frozen=True)

    max_retries: int = Field(default=3, ge=1)
    base_delay: float = Field(default=0.1, ge=0.0)
    max_delay: float = Field(default=5.0, ge=0.0)

    @classmethod
    def from_settings(cls) -> "RetryPolicy":
        """Build the policy from the RETRY_* settings."""
        from minuteflow.utils.config import get_settings

        retry = get_settings().retry
        return cls(
            max_retries=retry.max_retries,
            base_delay=retry.base_delay,
            max_delay=retry.max_delay,
        )


def is_retryable_error(error: BaseException) -> bool:
    """
    Check if an error is transient and worth retrying.

    Args:
        error: The error to check

    Returns:
        True for connection refused/reset/timeout class errors and for the
        unavailable/resource-exhausted/aborted/internal service codes
    """
    if isinstance(error, RETRYABLE_EXCEPTION_TYPES):
        return True
    return error_code(error) in RETRYABLE_CODES


def _log_before_sleep(context: str) -> Callable[[RetryCallState], None]:
    def log(retry_state: RetryCallState) -> None:
        error = retry_state.outcome.exception() if retry_state.outcome else None
        delay = retry_state.next_action.sleep if retry_state.next_action else 0.0
        logger.warning(
            "[%s] Attempt %d failed, retrying in %.0fms (code=%s): %s",
            context,
            retry_state.attempt_number,
            delay * 1000,
            error_code(error) if error else None,
            error,
        )

    return log


def with_retry(
    operation: Callable[[], T],
    *,
    max_retries: int = 3,
    base_delay: float = 0.1,
    max_delay: float = 5.0,
    context: str = "operation",
    sleep: Callable[[float], None] = time.sleep,
    policy: Optional[RetryPolicy] = None,
) -> T:
    """
    Execute an operation with retry logic and exponential backoff.

    The operation is attempted at most ``max_retries`` times. After failed
    attempt ``n`` the delay is ``min(2**n * base_delay, max_delay)``. The
    last attempt's error propagates even when it is retryable.

    Args:
        operation: Zero-argument callable to execute
        max_retries: Maximum number of attempts
        base_delay: Base delay in seconds
        max_delay: Maximum delay in seconds
        context: Context tag for logging
        sleep: Sleep function (injected in tests)
        policy: Overrides the three numeric arguments when given

    Returns:
        Result of the operation
    """
    if policy is not None:
        max_retries = policy.max_retries
        base_delay = policy.base_delay
        max_delay = policy.max_delay

    retrying = Retrying(
        retry=retry_if_exception(is_retryable_error),
        stop=stop_after_attempt(max_retries),
        # tenacity computes multiplier * 2**(attempt - 1)
        wait=wait_exponential(multiplier=2 * base_delay, max=max_delay),
        sleep=sleep,
        before_sleep=_log_before_sleep(context),
        reraise=True,
    )

    try:
        return retrying(operation)
    except Exception as e:
        if is_retryable_error(e):
            logger.error("[%s] All %d retry attempts failed", context, max_retries)
        raise
