"""
Storage collaborator for meetings, windows, automation events and
derived records.

The pipeline depends only on the ``Store`` protocol. ``InMemoryStore`` is
a thread-safe reference implementation: every mutation happens under one
re-entrant lock, so window upserts and event status transitions are
atomic with respect to each other. Returned models are copies; callers
mutate state only through the store's methods.

Components reach the store through ``RetryingStore``, which retries
transient storage errors with the same backoff as outbound calls.
"""

import threading
import time
from datetime import datetime, timezone
from typing import Any, Callable, Optional, Protocol

from minuteflow.models.automation import AutomationEvent, AutomationStatus
from minuteflow.models.insight import ActionItem, ActionStatus, Decision, Highlight
from minuteflow.models.meeting import Meeting
from minuteflow.models.transcript import MinuteWindow, Segment
from minuteflow.utils.logger import get_logger
from minuteflow.utils.resilience import RetryPolicy, with_retry

logger = get_logger("ingest")


class Store(Protocol):
    """Operations the core requires from persistent storage."""

    def create_meeting(self, meeting: Meeting) -> Meeting: ...

    def get_meeting(self, meeting_id: str) -> Optional[Meeting]: ...

    def delete_meeting(self, meeting_id: str) -> bool: ...

    def create_window(self, window: MinuteWindow) -> tuple[MinuteWindow, bool]: ...

    def append_to_window(
        self, meeting_id: str, window_index: int, segment: Segment
    ) -> Optional[MinuteWindow]: ...

    def get_window(self, meeting_id: str, window_index: int) -> Optional[MinuteWindow]: ...

    def get_windows_by_meeting(self, meeting_id: str) -> list[MinuteWindow]: ...

    def mark_window_processed(
        self,
        meeting_id: str,
        window_index: int,
        highlights: Optional[dict[int, list[Highlight]]] = None,
        expected_segments: Optional[int] = None,
    ) -> bool: ...

    def create_event(
        self, event: AutomationEvent, *, dedupe: bool = True
    ) -> tuple[AutomationEvent, bool]: ...

    def get_event(self, event_id: str) -> Optional[AutomationEvent]: ...

    def update_event_status(
        self,
        event_id: str,
        expected: AutomationStatus,
        patch: dict[str, Any],
    ) -> bool: ...

    def list_events(
        self,
        status: Optional[AutomationStatus] = None,
        meeting_id: Optional[str] = None,
    ) -> list[AutomationEvent]: ...

    def find_open_event(
        self, meeting_id: str, intent: str, trigger_text: str
    ) -> Optional[AutomationEvent]: ...

    def add_action_item(self, item: ActionItem) -> ActionItem: ...

    def add_decision(self, decision: Decision) -> Decision: ...

    def list_action_items(self, meeting_id: str) -> list[ActionItem]: ...

    def list_decisions(self, meeting_id: str) -> list[Decision]: ...

    def update_action_status(
        self, item_id: str, status: ActionStatus
    ) -> Optional[ActionItem]: ...


class InMemoryStore:
    """
    Thread-safe in-process implementation of ``Store``.

    Windows are keyed by ``(meeting_id, window_index)`` so at most one
    window exists per pair.
    """

    def __init__(self) -> None:
        self._lock = threading.RLock()
        self._meetings: dict[str, Meeting] = {}
        self._windows: dict[tuple[str, int], MinuteWindow] = {}
        self._events: dict[str, AutomationEvent] = {}
        self._action_items: dict[str, ActionItem] = {}
        self._decisions: dict[str, Decision] = {}

    # -------------------------------------------------------------------------
    # Meetings
    # -------------------------------------------------------------------------

    def create_meeting(self, meeting: Meeting) -> Meeting:
        with self._lock:
            self._meetings[meeting.id] = meeting.model_copy(deep=True)
        logger.info("Created meeting %s", meeting.id)
        return meeting.model_copy(deep=True)

    def get_meeting(self, meeting_id: str) -> Optional[Meeting]:
        with self._lock:
            meeting = self._meetings.get(meeting_id)
            return meeting.model_copy(deep=True) if meeting else None

    def delete_meeting(self, meeting_id: str) -> bool:
        """Delete a meeting and cascade to its windows, events and records."""
        with self._lock:
            if self._meetings.pop(meeting_id, None) is None:
                return False
            for key in [k for k in self._windows if k[0] == meeting_id]:
                del self._windows[key]
            for store in (self._events, self._action_items, self._decisions):
                for record_id in [i for i, r in store.items() if r.meeting_id == meeting_id]:
                    del store[record_id]
        logger.info("Deleted meeting %s with all derived records", meeting_id)
        return True

    # -------------------------------------------------------------------------
    # Windows
    # -------------------------------------------------------------------------

    def create_window(self, window: MinuteWindow) -> tuple[MinuteWindow, bool]:
        """
        Create a window unless one already exists for its index.

        Returns:
            ``(window, created)``; when ``created`` is False the existing
            window is returned unchanged
        """
        key = (window.meeting_id, window.window_index)
        with self._lock:
            existing = self._windows.get(key)
            if existing is not None:
                return existing.model_copy(deep=True), False
            self._windows[key] = window.model_copy(deep=True)
            return window.model_copy(deep=True), True

    def append_to_window(
        self, meeting_id: str, window_index: int, segment: Segment
    ) -> Optional[MinuteWindow]:
        """
        Atomically append a segment to an existing window.

        Returns:
            The updated window, or None if no window exists for the index
        """
        with self._lock:
            window = self._windows.get((meeting_id, window_index))
            if window is None:
                return None
            window.segments.append(segment.model_copy(deep=True))
            return window.model_copy(deep=True)

    def get_window(self, meeting_id: str, window_index: int) -> Optional[MinuteWindow]:
        with self._lock:
            window = self._windows.get((meeting_id, window_index))
            return window.model_copy(deep=True) if window else None

    def get_windows_by_meeting(self, meeting_id: str) -> list[MinuteWindow]:
        """Windows of a meeting ordered by index."""
        with self._lock:
            windows = [w for (m, _), w in self._windows.items() if m == meeting_id]
            return [w.model_copy(deep=True) for w in sorted(windows, key=lambda w: w.window_index)]

    def mark_window_processed(
        self,
        meeting_id: str,
        window_index: int,
        highlights: Optional[dict[int, list[Highlight]]] = None,
        expected_segments: Optional[int] = None,
    ) -> bool:
        """
        Attach highlights to segments and mark the window processed.

        Args:
            meeting_id: Meeting id
            window_index: Window index
            highlights: Highlights keyed by segment position
            expected_segments: Segment count the highlights were computed
                for; the update is refused if the window has grown since

        Returns:
            False if the window is missing, was already processed or no
            longer has ``expected_segments`` segments
        """
        with self._lock:
            window = self._windows.get((meeting_id, window_index))
            if window is None or window.processed:
                return False
            if expected_segments is not None and window.segment_count != expected_segments:
                return False
            for position, found in (highlights or {}).items():
                if 0 <= position < len(window.segments):
                    window.segments[position].highlights = list(found)
            window.processed = True
            return True

    # -------------------------------------------------------------------------
    # Automation events
    # -------------------------------------------------------------------------

    def _find_open(
        self, meeting_id: str, intent: str, trigger_text: str
    ) -> Optional[AutomationEvent]:
        for event in self._events.values():
            if (
                event.meeting_id == meeting_id
                and event.intent.value == intent
                and event.trigger_text == trigger_text
                and not event.status.is_closed
            ):
                return event
        return None

    def create_event(
        self, event: AutomationEvent, *, dedupe: bool = True
    ) -> tuple[AutomationEvent, bool]:
        """
        Store a new event.

        With ``dedupe`` an open event for the same meeting, intent and
        trigger text is returned instead of creating a second one.

        Returns:
            ``(event, created)``
        """
        with self._lock:
            if dedupe:
                existing = self._find_open(
                    event.meeting_id, event.intent.value, event.trigger_text
                )
                if existing is not None:
                    return existing.model_copy(deep=True), False
            self._events[event.id] = event.model_copy(deep=True)
            return event.model_copy(deep=True), True

    def get_event(self, event_id: str) -> Optional[AutomationEvent]:
        with self._lock:
            event = self._events.get(event_id)
            return event.model_copy(deep=True) if event else None

    def update_event_status(
        self,
        event_id: str,
        expected: AutomationStatus,
        patch: dict[str, Any],
    ) -> bool:
        """
        Conditionally update an event.

        The patch is applied only if the event's current status equals
        ``expected``. ``updated_at`` is always refreshed on success.

        Returns:
            True on success, False on conflict or unknown id
        """
        with self._lock:
            event = self._events.get(event_id)
            if event is None or event.status != expected:
                return False
            values = event.model_dump()
            values.update(patch)
            values["updated_at"] = datetime.now(timezone.utc)
            self._events[event_id] = AutomationEvent.model_validate(values)
            return True

    def list_events(
        self,
        status: Optional[AutomationStatus] = None,
        meeting_id: Optional[str] = None,
    ) -> list[AutomationEvent]:
        """Events filtered by status and meeting, oldest first."""
        with self._lock:
            events = [
                e
                for e in self._events.values()
                if (status is None or e.status == status)
                and (meeting_id is None or e.meeting_id == meeting_id)
            ]
            return [e.model_copy(deep=True) for e in sorted(events, key=lambda e: e.created_at)]

    def find_open_event(
        self, meeting_id: str, intent: str, trigger_text: str
    ) -> Optional[AutomationEvent]:
        with self._lock:
            event = self._find_open(meeting_id, intent, trigger_text)
            return event.model_copy(deep=True) if event else None

    # -------------------------------------------------------------------------
    # Action items and decisions
    # -------------------------------------------------------------------------

    def add_action_item(self, item: ActionItem) -> ActionItem:
        with self._lock:
            self._action_items[item.id] = item.model_copy(deep=True)
        return item

    def add_decision(self, decision: Decision) -> Decision:
        with self._lock:
            self._decisions[decision.id] = decision.model_copy(deep=True)
        return decision

    def list_action_items(self, meeting_id: str) -> list[ActionItem]:
        with self._lock:
            items = [i for i in self._action_items.values() if i.meeting_id == meeting_id]
            return [i.model_copy(deep=True) for i in sorted(items, key=lambda i: i.created_at)]

    def list_decisions(self, meeting_id: str) -> list[Decision]:
        with self._lock:
            decisions = [d for d in self._decisions.values() if d.meeting_id == meeting_id]
            return [
                d.model_copy(deep=True) for d in sorted(decisions, key=lambda d: d.created_at)
            ]

    def update_action_status(
        self, item_id: str, status: ActionStatus
    ) -> Optional[ActionItem]:
        """Change an action item's status; the only mutable field."""
        with self._lock:
            item = self._action_items.get(item_id)
            if item is None:
                return None
            item.status = status
            return item.model_copy(deep=True)


class RetryingStore:
    """
    Wraps a ``Store`` so every operation is retried on transient errors.

    Errors whose code marks them transient (``UNAVAILABLE``, ``ABORTED``,
    connection errors) are retried with exponential backoff; input and
    fatal errors such as ``DATA_LOSS`` propagate on the first attempt.
    """

    def __init__(
        self,
        store: Store,
        retry_policy: Optional[RetryPolicy] = None,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self.inner = store
        self.retry_policy = retry_policy or RetryPolicy.from_settings()
        self._sleep = sleep

    def __getattr__(self, name: str) -> Any:
        attr = getattr(self.inner, name)
        if name.startswith("_") or not callable(attr):
            return attr

        def call(*args: Any, **kwargs: Any) -> Any:
            return with_retry(
                lambda: attr(*args, **kwargs),
                policy=self.retry_policy,
                context=f"store.{name}",
                sleep=self._sleep,
            )

        return call


def retrying(
    store: Store,
    retry_policy: Optional[RetryPolicy] = None,
    sleep: Callable[[float], None] = time.sleep,
) -> Store:
    """Wrap ``store`` in a ``RetryingStore`` unless it already is one."""
    if isinstance(store, RetryingStore):
        return store
    return RetryingStore(store, retry_policy, sleep)
