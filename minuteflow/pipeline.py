"""
Meeting pipeline facade.

Orchestrates windowing, classification, automation lifecycle and
summaries for live meetings:

    chunk -> window (buffered) -> close -> highlights, action items,
    decisions, pending automation events -> approve/reject -> dispatch
"""

import time
from datetime import datetime
from typing import Callable, Iterable, Optional, Union

from pydantic import BaseModel, Field

from minuteflow.automation import AutomationLifecycleManager
from minuteflow.dispatcher import Dispatcher, WebhookDispatcher
from minuteflow.models.automation import AutomationEvent
from minuteflow.models.insight import (
    ActionItem,
    ActionStatus,
    Decision,
    Highlight,
    HighlightType,
    SummaryCommand,
)
from minuteflow.models.meeting import Meeting
from minuteflow.models.transcript import MinuteWindow, TranscriptChunk, WindowRef
from minuteflow.semantic.classifier import PatternClassifier
from minuteflow.semantic.intent import containing_sentence
from minuteflow.storage import InMemoryStore, Store, retrying
from minuteflow.summarizer import Summarizer, SummaryService, create_summarizer
from minuteflow.utils.exceptions import (
    MinuteFlowError,
    UnknownMeetingError,
    UnknownWindowError,
    ValidationError,
)
from minuteflow.utils.logger import get_logger
from minuteflow.utils.resilience import RetryPolicy
from minuteflow.windower import IngestionWindower

logger = get_logger("main")

_SELF_ASSIGNING = ("i'll", "i will")


class WindowClassification(BaseModel):
    """Outcome of closing one window."""

    meeting_id: str
    window_id: str
    window_index: int
    already_processed: bool = Field(
        default=False,
        description="True when the window had been closed before; nothing was created",
    )
    highlights: list[Highlight] = Field(default_factory=list)
    action_items: list[ActionItem] = Field(default_factory=list)
    decisions: list[Decision] = Field(default_factory=list)
    events: list[AutomationEvent] = Field(default_factory=list)


def parse_command(command: Union[SummaryCommand, str]) -> SummaryCommand:
    """
    Parse a summary command such as ``summary`` or ``/actions``.

    Raises:
        ValidationError: If the command is unknown
    """
    if isinstance(command, SummaryCommand):
        return command
    value = command.strip().lstrip("/").lower()
    try:
        return SummaryCommand(value)
    except ValueError:
        raise ValidationError(
            f"Unknown summary command: {value}",
            field="command",
            value=command,
            constraints=[f"one of {', '.join(c.value for c in SummaryCommand)}"],
        )


class MeetingPipeline:
    """
    Entry point for live meeting processing.

    Classification runs only when a window is closed explicitly or when a
    summary is generated, never on ingestion. The dispatcher and the
    summarizer are created lazily from settings unless injected.
    """

    def __init__(
        self,
        store: Optional[Store] = None,
        classifier: Optional[PatternClassifier] = None,
        dispatcher: Optional[Dispatcher] = None,
        summarizer: Optional[Summarizer] = None,
        window_seconds: Optional[int] = None,
        retry_policy: Optional[RetryPolicy] = None,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        """
        Initialize the pipeline.

        Args:
            store: Storage collaborator. Defaults to an in-memory store.
            classifier: Pattern classifier
            dispatcher: Automation dispatcher. Defaults to WebhookDispatcher.
            summarizer: Summary collaborator. Defaults to SUMMARIZER_BACKEND.
            window_seconds: Window length. Defaults to WINDOW_SECONDS.
            retry_policy: Backoff for dispatch and store calls. Defaults to
                RETRY_* settings.
            sleep: Sleep function used between retries
        """
        self.store: Store = retrying(store or InMemoryStore(), retry_policy, sleep)
        self.classifier = classifier or PatternClassifier()
        self.windower = IngestionWindower(self.store, window_seconds)
        self._dispatcher = dispatcher
        self._summarizer = summarizer
        self._retry_policy = retry_policy
        self._sleep = sleep
        self._automation: Optional[AutomationLifecycleManager] = None
        self._summary_service: Optional[SummaryService] = None

    @property
    def automation(self) -> AutomationLifecycleManager:
        """Lazy load the automation lifecycle manager."""
        if self._automation is None:
            self._automation = AutomationLifecycleManager(
                self.store,
                self._dispatcher or WebhookDispatcher(),
                retry_policy=self._retry_policy,
                sleep=self._sleep,
            )
        return self._automation

    @property
    def summary_service(self) -> SummaryService:
        """Lazy load the summary service."""
        if self._summary_service is None:
            self._summary_service = SummaryService(self._summarizer or create_summarizer())
        return self._summary_service

    # -------------------------------------------------------------------------
    # Meetings and ingestion
    # -------------------------------------------------------------------------

    def create_meeting(
        self,
        title: str = "Untitled Meeting",
        start_time: Optional[datetime] = None,
        meeting_id: Optional[str] = None,
    ) -> Meeting:
        """Create a live meeting; window 0 starts at ``start_time`` (default now)."""
        values: dict = {"title": title}
        if start_time is not None:
            values["start_time"] = start_time
        if meeting_id is not None:
            values["id"] = meeting_id
        return self.store.create_meeting(Meeting(**values))

    def get_meeting(self, meeting_id: str) -> Meeting:
        meeting = self.store.get_meeting(meeting_id)
        if meeting is None:
            raise UnknownMeetingError(meeting_id)
        return meeting

    def delete_meeting(self, meeting_id: str) -> None:
        """Delete a meeting with its windows, events and records."""
        if not self.store.delete_meeting(meeting_id):
            raise UnknownMeetingError(meeting_id)

    def ingest(self, chunk: TranscriptChunk) -> WindowRef:
        return self.windower.ingest(chunk)

    def ingest_batch(self, meeting_id: str, chunks: Iterable[TranscriptChunk]) -> list[WindowRef]:
        return self.windower.ingest_batch(meeting_id, chunks)

    def windows(self, meeting_id: str) -> list[MinuteWindow]:
        return self.windower.windows(meeting_id)

    # -------------------------------------------------------------------------
    # Classification
    # -------------------------------------------------------------------------

    def close_window(self, meeting_id: str, window_index: int) -> WindowClassification:
        """
        Classify a window and record what it contains.

        Attaches highlights to the window's segments, records an action
        item per distinct action sentence and a decision per distinct
        decision sentence, and proposes a pending automation event per
        detected intent. A window that was already closed is returned as
        ``already_processed`` without classifying it again.

        Raises:
            UnknownMeetingError: If the meeting does not exist
            UnknownWindowError: If the window does not exist
        """
        self.get_meeting(meeting_id)
        window = self.store.get_window(meeting_id, window_index)
        if window is None:
            raise UnknownWindowError(meeting_id, window_index)

        result = WindowClassification(
            meeting_id=meeting_id,
            window_id=window.id,
            window_index=window_index,
        )
        while True:
            if window.processed:
                result.already_processed = True
                return result

            highlights_by_segment: dict[int, list[Highlight]] = {}
            detections = []
            for position, segment in enumerate(window.segments):
                highlights_by_segment[position] = self.classifier.find_highlights(segment.text)
                detections.extend(self.classifier.detect_intents(segment.text))

            if self.store.mark_window_processed(
                meeting_id,
                window_index,
                highlights_by_segment,
                expected_segments=window.segment_count,
            ):
                break

            # Segments arrived during classification or another close won.
            window = self.store.get_window(meeting_id, window_index)
            if window is None:
                raise UnknownWindowError(meeting_id, window_index)
            logger.info(
                "Window %d of meeting %s changed while closing (processed=%s)",
                window_index,
                meeting_id,
                window.processed,
            )

        seen: set[tuple[HighlightType, str]] = set()
        for position, segment in enumerate(window.segments):
            for highlight in highlights_by_segment[position]:
                result.highlights.append(highlight)
                if highlight.type == HighlightType.METRIC:
                    continue
                sentence = containing_sentence(segment.text, highlight.start_index)
                if (highlight.type, sentence) in seen:
                    continue
                seen.add((highlight.type, sentence))

                if highlight.type == HighlightType.ACTION:
                    assignee = (
                        segment.speaker
                        if highlight.text.lower() in _SELF_ASSIGNING
                        else "Unassigned"
                    )
                    result.action_items.append(
                        self.store.add_action_item(
                            ActionItem(
                                meeting_id=meeting_id,
                                content=sentence,
                                assignee=assignee,
                                source_window_id=window.id,
                            )
                        )
                    )
                else:
                    result.decisions.append(
                        self.store.add_decision(
                            Decision(
                                meeting_id=meeting_id,
                                content=sentence,
                                confidence=highlight.confidence,
                                source_window_id=window.id,
                            )
                        )
                    )

        for detection in detections:
            event, created = self.automation.create_from_detection(
                meeting_id, detection, source_window_id=window.id
            )
            if created:
                result.events.append(event)

        logger.info(
            "Closed window %d of meeting %s: %d highlights, %d action items, "
            "%d decisions, %d automation events",
            window_index,
            meeting_id,
            len(result.highlights),
            len(result.action_items),
            len(result.decisions),
            len(result.events),
        )
        return result

    def close_all(self, meeting_id: str) -> list[WindowClassification]:
        """Close every unprocessed window of a meeting in index order."""
        return [
            self.close_window(meeting_id, window.window_index)
            for window in self.windows(meeting_id)
            if not window.processed
        ]

    def generate_summary(
        self,
        meeting_id: str,
        command: Union[SummaryCommand, str] = SummaryCommand.SUMMARY,
    ) -> str:
        """
        Generate a summary after closing any unprocessed windows.

        Args:
            meeting_id: Meeting id
            command: ``summary``, ``actions``, ``insights`` or ``decisions``
                (a leading ``/`` is accepted)

        Returns:
            Summary text
        """
        parsed = parse_command(command)
        self.close_all(meeting_id)
        return self.summary_service.generate(self.store.get_windows_by_meeting(meeting_id), parsed)

    # -------------------------------------------------------------------------
    # Records and automations
    # -------------------------------------------------------------------------

    def action_items(self, meeting_id: str) -> list[ActionItem]:
        self.get_meeting(meeting_id)
        return self.store.list_action_items(meeting_id)

    def decisions(self, meeting_id: str) -> list[Decision]:
        self.get_meeting(meeting_id)
        return self.store.list_decisions(meeting_id)

    def update_action_status(self, item_id: str, status: ActionStatus) -> ActionItem:
        item = self.store.update_action_status(item_id, status)
        if item is None:
            raise MinuteFlowError(
                "Action item not found", code="NOT_FOUND", details={"item_id": item_id}
            )
        return item

    def pending_events(self, meeting_id: Optional[str] = None) -> list[AutomationEvent]:
        return self.automation.list_pending(meeting_id)

    def approve(self, event_id: str, edited_parameters: Optional[dict] = None) -> AutomationEvent:
        return self.automation.approve(event_id, edited_parameters)

    def reject(self, event_id: str) -> AutomationEvent:
        return self.automation.reject(event_id)

    def dismiss(self, event_id: str) -> AutomationEvent:
        return self.automation.dismiss(event_id)

    def edit_parameters(self, event_id: str, params: dict) -> AutomationEvent:
        return self.automation.edit_parameters(event_id, params)
