"""
Automation lifecycle manager.

Owns the AutomationEvent state machine:

    pending -> approved -> triggered -> completed | failed
    pending -> rejected
    pending -> dismissed

Every transition is a conditional update on the event's current status,
so two concurrent approvals of one event produce exactly one dispatch.
No lock is held while dispatching.
"""

import time
from datetime import datetime, timedelta, timezone
from typing import Any, Callable, Optional

from pydantic import ValidationError as PydanticValidationError

from minuteflow.dispatcher import Dispatcher
from minuteflow.models.automation import (
    AutomationEvent,
    AutomationStatus,
    DetectedIntent,
    build_parameters,
)
from minuteflow.storage import Store, retrying
from minuteflow.utils.exceptions import (
    AlreadyProcessedError,
    InvalidTransitionError,
    UnknownEventError,
    ValidationError,
)
from minuteflow.utils.logger import get_contextual_logger, get_logger
from minuteflow.utils.resilience import RetryPolicy, with_retry
from minuteflow.utils.sanitizer import handle_error

logger = get_logger("automation")


class AutomationLifecycleManager:
    """
    Moves automation events through operator approval to dispatch.

    Approve commits ``approved`` and ``triggered`` before dispatching, then
    commits the terminal state. A failed dispatch is recorded on the event
    with a sanitized message instead of being raised.
    """

    def __init__(
        self,
        store: Store,
        dispatcher: Dispatcher,
        retry_policy: Optional[RetryPolicy] = None,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        """
        Initialize the lifecycle manager.

        Args:
            store: Storage collaborator
            dispatcher: Outbound automation executor
            retry_policy: Backoff for dispatch and store calls. Defaults to
                RETRY_* settings.
            sleep: Sleep function used between retries
        """
        self.retry_policy = retry_policy or RetryPolicy.from_settings()
        self.store = retrying(store, self.retry_policy, sleep)
        self.dispatcher = dispatcher
        self._sleep = sleep

    def create_from_detection(
        self,
        meeting_id: str,
        detection: DetectedIntent,
        source_window_id: Optional[str] = None,
    ) -> tuple[AutomationEvent, bool]:
        """
        Create a pending event for a detected intent.

        An open event with the same meeting, intent and trigger text is
        returned instead of creating a duplicate.

        Returns:
            ``(event, created)``
        """
        event = AutomationEvent(
            meeting_id=meeting_id,
            trigger_text=detection.trigger_text,
            intent=detection.intent,
            parameters=detection.parameters,
            confidence_score=detection.confidence,
            source_window_id=source_window_id,
        )
        stored, created = self.store.create_event(event, dedupe=True)
        if created:
            logger.info(
                "Created pending %s automation %s for meeting %s",
                stored.intent.value,
                stored.id,
                meeting_id,
            )
        else:
            logger.info(
                "Automation %s already open for this trigger, skipping duplicate",
                stored.id,
            )
        return stored, created

    def get(self, event_id: str) -> AutomationEvent:
        """
        Get an event by id.

        Raises:
            UnknownEventError: If the id does not resolve
        """
        event = self.store.get_event(event_id)
        if event is None:
            raise UnknownEventError(event_id)
        return event

    def list_pending(self, meeting_id: Optional[str] = None) -> list[AutomationEvent]:
        """Events awaiting a decision, oldest first."""
        return self.store.list_events(AutomationStatus.PENDING, meeting_id)

    def _validate_edits(
        self, event: AutomationEvent, params: dict[str, Any]
    ) -> dict[str, Any]:
        try:
            return build_parameters(event.intent, params)
        except PydanticValidationError as e:
            first = e.errors()[0] if e.errors() else {}
            field = ".".join(str(p) for p in first.get("loc", ())) or None
            raise ValidationError(
                f"Invalid parameters for {event.intent.value}",
                field=field,
                value=params.get(field) if field else None,
                constraints=[err.get("msg", "") for err in e.errors()],
                cause=e,
            )

    def edit_parameters(self, event_id: str, params: dict[str, Any]) -> AutomationEvent:
        """
        Store operator edits on a pending event. Last write wins.

        Raises:
            UnknownEventError: If the id does not resolve
            InvalidTransitionError: If the event is no longer pending
            ValidationError: If the edits do not fit the intent's parameters
        """
        event = self.get(event_id)
        if event.status != AutomationStatus.PENDING:
            raise InvalidTransitionError(
                event_id, current_status=event.status.value, action="edit"
            )
        edits = self._validate_edits(event, params)
        if not self.store.update_event_status(
            event_id, AutomationStatus.PENDING, {"edited_parameters": edits}
        ):
            current = self.get(event_id)
            raise InvalidTransitionError(
                event_id, current_status=current.status.value, action="edit"
            )
        logger.info("Edited parameters of automation %s", event_id)
        return self.get(event_id)

    def approve(
        self,
        event_id: str,
        edited_parameters: Optional[dict[str, Any]] = None,
    ) -> AutomationEvent:
        """
        Approve a pending event and dispatch it.

        Args:
            event_id: Event id
            edited_parameters: Operator edits replacing any earlier edits

        Returns:
            The event in ``completed`` or ``failed``

        Raises:
            UnknownEventError: If the id does not resolve
            AlreadyProcessedError: If the event is not pending, including
                when a concurrent approval won
            ValidationError: If the edits do not fit the intent's parameters
        """
        event = self.get(event_id)
        if event.status != AutomationStatus.PENDING:
            raise AlreadyProcessedError(event_id, current_status=event.status.value)

        patch: dict[str, Any] = {
            "status": AutomationStatus.APPROVED,
            "approved_at": datetime.now(timezone.utc),
        }
        if edited_parameters is not None:
            patch["edited_parameters"] = self._validate_edits(event, edited_parameters)

        if not self.store.update_event_status(event_id, AutomationStatus.PENDING, patch):
            current = self.get(event_id)
            raise AlreadyProcessedError(event_id, current_status=current.status.value)

        if not self.store.update_event_status(
            event_id, AutomationStatus.APPROVED, {"status": AutomationStatus.TRIGGERED}
        ):
            current = self.get(event_id)
            raise AlreadyProcessedError(event_id, current_status=current.status.value)

        log = get_contextual_logger("automation", event_id=event_id)
        triggered = self.get(event_id)
        parameters = triggered.effective_parameters
        log.info("Approved %s automation, dispatching", triggered.intent.value)

        try:
            receipt = with_retry(
                lambda: self.dispatcher.dispatch(triggered, parameters),
                policy=self.retry_policy,
                context=f"dispatch:{event_id}",
                sleep=self._sleep,
            )
        except Exception as e:
            public = handle_error(e, f"automation.approve:{event_id}")
            self.store.update_event_status(
                event_id,
                AutomationStatus.TRIGGERED,
                {"status": AutomationStatus.FAILED, "error": public["error"]},
            )
            return self.get(event_id)

        self.store.update_event_status(
            event_id,
            AutomationStatus.TRIGGERED,
            {"status": AutomationStatus.COMPLETED, "external_id": receipt.external_id},
        )
        log.info("Automation completed (external_id=%s)", receipt.external_id)
        return self.get(event_id)

    def _close_pending(
        self,
        event_id: str,
        status: AutomationStatus,
        action: str,
        patch: Optional[dict[str, Any]] = None,
    ) -> AutomationEvent:
        event = self.get(event_id)
        if event.status != AutomationStatus.PENDING:
            raise InvalidTransitionError(
                event_id, current_status=event.status.value, action=action
            )
        values = {"status": status, **(patch or {})}
        if not self.store.update_event_status(event_id, AutomationStatus.PENDING, values):
            current = self.get(event_id)
            raise InvalidTransitionError(
                event_id, current_status=current.status.value, action=action
            )
        logger.info("Automation %s %s", event_id, status.value)
        return self.get(event_id)

    def reject(self, event_id: str) -> AutomationEvent:
        """
        Reject a pending event.

        Raises:
            UnknownEventError: If the id does not resolve
            InvalidTransitionError: If the event is no longer pending
        """
        return self._close_pending(
            event_id,
            AutomationStatus.REJECTED,
            "reject",
            {"rejected_at": datetime.now(timezone.utc)},
        )

    def dismiss(self, event_id: str) -> AutomationEvent:
        """Dismiss a pending event without dispatching it."""
        return self._close_pending(event_id, AutomationStatus.DISMISSED, "dismiss")

    def dismiss_stale(
        self,
        max_age: timedelta,
        now: Optional[datetime] = None,
    ) -> list[AutomationEvent]:
        """
        Dismiss pending events older than ``max_age``.

        Events decided concurrently are skipped.

        Returns:
            The events that were dismissed
        """
        cutoff = (now or datetime.now(timezone.utc)) - max_age
        dismissed = []
        for event in self.list_pending():
            if event.created_at >= cutoff:
                continue
            if self.store.update_event_status(
                event.id, AutomationStatus.PENDING, {"status": AutomationStatus.DISMISSED}
            ):
                dismissed.append(self.get(event.id))
        if dismissed:
            logger.info("Dismissed %d stale automations", len(dismissed))
        return dismissed
