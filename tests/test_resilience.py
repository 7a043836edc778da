"""
Tests for retry with exponential backoff.
"""

from unittest.mock import MagicMock

import httpx
import pytest

from minuteflow.utils.exceptions import DispatchError, MinuteFlowError
from minuteflow.utils.resilience import RetryPolicy, is_retryable_error, with_retry


class TestWithRetry:
    """Test cases for with_retry."""

    def test_success_first_attempt(self) -> None:
        """Test a successful call is not retried."""
        operation = MagicMock(return_value="ok")
        sleeps: list[float] = []

        assert with_retry(operation, sleep=sleeps.append) == "ok"
        assert operation.call_count == 1
        assert sleeps == []

    def test_exhausts_attempts(self) -> None:
        """Test a persistently failing call is attempted max_retries times."""
        operation = MagicMock(side_effect=ConnectionRefusedError("refused"))
        sleeps: list[float] = []

        with pytest.raises(ConnectionRefusedError):
            with_retry(
                operation, max_retries=3, base_delay=0.1, max_delay=5.0, sleep=sleeps.append
            )

        assert operation.call_count == 3
        assert sleeps == pytest.approx([0.2, 0.4])

    def test_delay_capped(self) -> None:
        """Test delays never exceed max_delay."""
        operation = MagicMock(side_effect=TimeoutError())
        sleeps: list[float] = []

        with pytest.raises(TimeoutError):
            with_retry(
                operation, max_retries=5, base_delay=1.0, max_delay=3.0, sleep=sleeps.append
            )

        assert sleeps == pytest.approx([2.0, 3.0, 3.0, 3.0])

    def test_recovers_after_transient_error(self) -> None:
        """Test a transient failure followed by success."""
        operation = MagicMock(side_effect=[httpx.ConnectError("down"), "ok"])
        sleeps: list[float] = []

        assert with_retry(operation, sleep=sleeps.append) == "ok"
        assert operation.call_count == 2
        assert sleeps == pytest.approx([0.2])

    def test_non_retryable_propagates_immediately(self) -> None:
        """Test input errors are not retried."""
        operation = MagicMock(side_effect=ValueError("bad input"))
        sleeps: list[float] = []

        with pytest.raises(ValueError):
            with_retry(operation, sleep=sleeps.append)

        assert operation.call_count == 1
        assert sleeps == []

    def test_single_attempt_policy(self) -> None:
        """Test max_retries=1 means one attempt and no sleep."""
        operation = MagicMock(side_effect=ConnectionResetError())
        sleeps: list[float] = []

        with pytest.raises(ConnectionResetError):
            with_retry(operation, policy=RetryPolicy(max_retries=1), sleep=sleeps.append)

        assert operation.call_count == 1
        assert sleeps == []

    def test_policy_overrides_arguments(self) -> None:
        """Test a policy replaces the numeric arguments."""
        operation = MagicMock(side_effect=MinuteFlowError("busy", code="UNAVAILABLE"))
        sleeps: list[float] = []

        with pytest.raises(MinuteFlowError):
            with_retry(
                operation,
                max_retries=10,
                policy=RetryPolicy(max_retries=2, base_delay=0.5, max_delay=5.0),
                sleep=sleeps.append,
            )

        assert operation.call_count == 2
        assert sleeps == pytest.approx([1.0])


class TestRetryPolicy:
    """Tests for RetryPolicy."""

    def test_from_settings(self) -> None:
        """Test the policy is read from RETRY_* settings."""
        policy = RetryPolicy.from_settings()

        assert policy == RetryPolicy(max_retries=3, base_delay=0.1, max_delay=5.0)


class TestIsRetryableError:
    """Tests for retryability classification."""

    @pytest.mark.parametrize(
        "error",
        [
            ConnectionRefusedError(),
            ConnectionResetError(),
            TimeoutError(),
            httpx.ConnectError("refused"),
            httpx.ReadTimeout("slow"),
            DispatchError("busy", status_code=503),
            DispatchError("throttled", status_code=429),
            MinuteFlowError("aborted", code="ABORTED"),
        ],
    )
    def test_retryable(self, error: Exception) -> None:
        """Test transient errors are retryable."""
        assert is_retryable_error(error) is True

    @pytest.mark.parametrize(
        "error",
        [
            ValueError("bad"),
            DispatchError("bad request", status_code=400),
            DispatchError("forbidden", status_code=403),
            MinuteFlowError("denied", code="PERMISSION_DENIED"),
            MinuteFlowError("gone", code="DATA_LOSS"),
        ],
    )
    def test_not_retryable(self, error: Exception) -> None:
        """Test input and fatal errors are not retryable."""
        assert is_retryable_error(error) is False
