"""
Data models for the automation approval workflow.

An AutomationEvent is proposed by the intent pass of the classifier and
only reaches an external system after an operator approves it.
"""

from datetime import datetime, timezone
from enum import Enum
from typing import Any, Literal, Optional
from uuid import uuid4

from pydantic import BaseModel, ConfigDict, Field


class AutomationIntent(str, Enum):
    """External actions the classifier can propose."""

    SCHEDULE_MEETING = "schedule_meeting"
    CREATE_TICKET = "create_ticket"
    SEND_EMAIL = "send_email"
    EMAIL_SUMMARY = "email_summary"
    CREATE_VISUALIZATION = "create_visualization"
    OTHER = "other"


class AutomationStatus(str, Enum):
    """Lifecycle status of an automation event."""

    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"
    TRIGGERED = "triggered"
    COMPLETED = "completed"
    FAILED = "failed"
    DISMISSED = "dismissed"

    @property
    def is_closed(self) -> bool:
        """Closed events no longer block a new proposal of the same trigger."""
        return self in CLOSED_STATUSES


CLOSED_STATUSES = frozenset(
    {AutomationStatus.REJECTED, AutomationStatus.FAILED, AutomationStatus.DISMISSED}
)


class _IntentParams(BaseModel):
    """Common base for per-intent parameters; unknown keys are kept."""

    model_config = ConfigDict(extra="allow")

    raw_command: Optional[str] = Field(
        default=None,
        description="Sentence the parameters were extracted from",
    )


class ScheduleMeetingParams(_IntentParams):
    intent: Literal["schedule_meeting"] = "schedule_meeting"
    title: str = Field(default="Follow-up Meeting")
    date: Optional[str] = None
    time: Optional[str] = None
    attendees: list[str] = Field(default_factory=list)


class CreateTicketParams(_IntentParams):
    intent: Literal["create_ticket"] = "create_ticket"
    title: Optional[str] = None
    priority: Literal["urgent", "critical", "high", "medium", "low"] = "medium"


class SendEmailParams(_IntentParams):
    intent: Literal["send_email"] = "send_email"
    recipients: list[str] = Field(default_factory=list)
    subject: Optional[str] = None


class EmailSummaryParams(_IntentParams):
    intent: Literal["email_summary"] = "email_summary"
    recipients: list[str] = Field(default_factory=list)
    summary: Optional[str] = Field(
        default=None,
        description="Filled by the operator or downstream",
    )


class CreateVisualizationParams(_IntentParams):
    intent: Literal["create_visualization"] = "create_visualization"
    chart_type: Literal["bar", "line", "pie", "timeline"] = "bar"
    subject: Optional[str] = None


class GenericParams(_IntentParams):
    intent: Literal["other"] = "other"


PARAMETER_MODELS: dict[AutomationIntent, type[_IntentParams]] = {
    AutomationIntent.SCHEDULE_MEETING: ScheduleMeetingParams,
    AutomationIntent.CREATE_TICKET: CreateTicketParams,
    AutomationIntent.SEND_EMAIL: SendEmailParams,
    AutomationIntent.EMAIL_SUMMARY: EmailSummaryParams,
    AutomationIntent.CREATE_VISUALIZATION: CreateVisualizationParams,
    AutomationIntent.OTHER: GenericParams,
}


def build_parameters(intent: AutomationIntent, values: dict[str, Any]) -> dict[str, Any]:
    """
    Validate raw parameter values against the intent's model.

    Args:
        intent: Intent whose parameter model applies
        values: Raw key/value parameters

    Returns:
        Plain dict including the ``intent`` discriminator and any extra keys

    Raises:
        pydantic.ValidationError: If a known key has an invalid value
    """
    model = PARAMETER_MODELS[intent]
    payload = {k: v for k, v in values.items() if k != "intent"}
    return model(**payload).model_dump()


class DetectedIntent(BaseModel):
    """One intent found by the classifier's intent pass."""

    intent: AutomationIntent
    text: str = Field(description="The matched trigger phrase")
    start_index: int = Field(ge=0)
    end_index: int = Field(ge=0)
    trigger_text: str = Field(description="Sentence containing the trigger")
    confidence: float = Field(ge=0.0, le=1.0)
    parameters: dict[str, Any] = Field(default_factory=dict)


class AutomationEvent(BaseModel):
    """
    A proposed external action awaiting or past operator approval.

    After creation only the status, edits, outcome and timestamp fields
    change; the trigger, intent and extracted parameters are fixed.
    """

    id: str = Field(default_factory=lambda: uuid4().hex)
    meeting_id: str
    trigger_text: str
    intent: AutomationIntent
    parameters: dict[str, Any] = Field(default_factory=dict)
    edited_parameters: Optional[dict[str, Any]] = Field(default=None)
    confidence_score: float = Field(ge=0.0, le=1.0)
    status: AutomationStatus = Field(default=AutomationStatus.PENDING)
    external_id: Optional[str] = Field(default=None)
    error: Optional[str] = Field(default=None, description="Sanitized failure message")
    source_window_id: Optional[str] = Field(default=None)
    approved_at: Optional[datetime] = Field(default=None)
    rejected_at: Optional[datetime] = Field(default=None)
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    updated_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    @property
    def effective_parameters(self) -> dict[str, Any]:
        """Parameters sent on dispatch: the operator's edits if any."""
        if self.edited_parameters is not None:
            return self.edited_parameters
        return self.parameters


class DispatchReceipt(BaseModel):
    """Acknowledgement from the external automation system."""

    external_id: Optional[str] = None
    status_code: int = 200
    body: dict[str, Any] = Field(default_factory=dict)
