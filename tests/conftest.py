"""
Pytest configuration and shared fixtures for the test suite.
"""

from datetime import datetime, timedelta, timezone
from typing import Any, Callable, Iterator
from unittest.mock import MagicMock

import pytest

from minuteflow.automation import AutomationLifecycleManager
from minuteflow.models.automation import AutomationEvent, AutomationIntent, DispatchReceipt
from minuteflow.models.meeting import Meeting
from minuteflow.models.transcript import TranscriptChunk
from minuteflow.pipeline import MeetingPipeline
from minuteflow.semantic.classifier import PatternClassifier
from minuteflow.storage import InMemoryStore
from minuteflow.utils.config import get_settings
from minuteflow.utils.resilience import RetryPolicy

MEETING_START = datetime(2026, 1, 6, 10, 0, tzinfo=timezone.utc)


# =============================================================================
# Environment Fixtures
# =============================================================================


@pytest.fixture(autouse=True)
def mock_env_vars(monkeypatch: pytest.MonkeyPatch) -> Iterator[None]:
    """Provide deterministic settings and reset the settings cache."""
    monkeypatch.setenv("DISPATCH_WEBHOOK_URL", "https://hooks.example.test/webhook/automation")
    monkeypatch.setenv("SUMMARIZER_API_KEY", "test-summarizer-key")
    monkeypatch.setenv("SUMMARIZER_BACKEND", "llm")
    monkeypatch.setenv("WINDOW_SECONDS", "60")
    monkeypatch.setenv("RETRY_MAX_RETRIES", "3")
    monkeypatch.setenv("RETRY_BASE_DELAY", "0.1")
    monkeypatch.setenv("RETRY_MAX_DELAY", "5.0")
    monkeypatch.setenv("LOG_LEVEL", "DEBUG")
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


# =============================================================================
# Storage Fixtures
# =============================================================================


@pytest.fixture
def store() -> InMemoryStore:
    """Create an empty in-memory store."""
    return InMemoryStore()


@pytest.fixture
def meeting_start() -> datetime:
    """Start time of the sample meeting."""
    return MEETING_START


@pytest.fixture
def meeting(store: InMemoryStore, meeting_start: datetime) -> Meeting:
    """Create a live meeting in the store."""
    return store.create_meeting(
        Meeting(id="m1", title="Q3 Planning", start_time=meeting_start)
    )


@pytest.fixture
def make_chunk(meeting_start: datetime) -> Callable[..., TranscriptChunk]:
    """Factory for chunks stamped relative to the meeting start."""

    def factory(
        text: str,
        seconds: float = 0,
        speaker: str = "Alice",
        meeting_id: str = "m1",
        **kwargs: Any,
    ) -> TranscriptChunk:
        return TranscriptChunk(
            meeting_id=meeting_id,
            speaker_label=speaker,
            text=text,
            timestamp=meeting_start + timedelta(seconds=seconds),
            **kwargs,
        )

    return factory


# =============================================================================
# Collaborator Fixtures
# =============================================================================


@pytest.fixture
def classifier() -> PatternClassifier:
    """Create a pattern classifier with the built-in rules."""
    return PatternClassifier()


@pytest.fixture
def fake_dispatcher() -> MagicMock:
    """Dispatcher that always succeeds with a fixed execution id."""
    dispatcher = MagicMock()
    dispatcher.dispatch.return_value = DispatchReceipt(external_id="exec_123")
    return dispatcher


@pytest.fixture
def fake_summarizer() -> MagicMock:
    """Summarizer returning a canned response."""
    summarizer = MagicMock()
    summarizer.summarize.return_value = "The team agreed on the Q3 budget."
    return summarizer


@pytest.fixture
def retry_policy() -> RetryPolicy:
    """Default backoff policy."""
    return RetryPolicy(max_retries=3, base_delay=0.1, max_delay=5.0)


@pytest.fixture
def sleeps() -> list[float]:
    """Records backoff delays instead of sleeping."""
    return []


@pytest.fixture
def manager(
    store: InMemoryStore,
    fake_dispatcher: MagicMock,
    retry_policy: RetryPolicy,
    sleeps: list[float],
) -> AutomationLifecycleManager:
    """Create a lifecycle manager with a fake dispatcher."""
    return AutomationLifecycleManager(
        store, fake_dispatcher, retry_policy=retry_policy, sleep=sleeps.append
    )


@pytest.fixture
def pending_event(store: InMemoryStore, meeting: Meeting) -> AutomationEvent:
    """A pending schedule_meeting event."""
    event, _ = store.create_event(
        AutomationEvent(
            meeting_id=meeting.id,
            trigger_text="Hey, schedule a meeting for Friday at 10am",
            intent=AutomationIntent.SCHEDULE_MEETING,
            parameters={
                "intent": "schedule_meeting",
                "title": "Follow-up Meeting",
                "date": "friday",
                "time": "10am",
                "attendees": [],
                "raw_command": "hey schedule a meeting for friday at 10am",
            },
            confidence_score=0.8,
        )
    )
    return event


@pytest.fixture
def pipeline(
    store: InMemoryStore,
    meeting: Meeting,
    fake_dispatcher: MagicMock,
    fake_summarizer: MagicMock,
    retry_policy: RetryPolicy,
    sleeps: list[float],
) -> MeetingPipeline:
    """Create a pipeline around the shared store with injected collaborators."""
    return MeetingPipeline(
        store=store,
        dispatcher=fake_dispatcher,
        summarizer=fake_summarizer,
        window_seconds=60,
        retry_policy=retry_policy,
        sleep=sleeps.append,
    )
