"""
Data models for classification output.

These models represent what the pattern classifier derives from
transcript text: display highlights, generic spans, and the action items
and decisions recorded per meeting.
"""

from datetime import datetime, timezone
from enum import Enum
from typing import Optional
from uuid import uuid4

from pydantic import BaseModel, Field, model_validator


class HighlightType(str, Enum):
    """Families of highlighted transcript text."""

    METRIC = "metric"
    DECISION = "decision"
    ACTION = "action"


class SpanKind(str, Enum):
    """Which classifier pass produced a span."""

    HIGHLIGHT = "highlight"
    INTENT = "intent"


class ActionStatus(str, Enum):
    """Status of an action item."""

    PENDING = "pending"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"


class SummaryCommand(str, Enum):
    """Summary commands and the fixed instruction sent for each."""

    SUMMARY = "summary"
    ACTIONS = "actions"
    INSIGHTS = "insights"
    DECISIONS = "decisions"

    @property
    def instruction(self) -> str:
        """Instruction passed to the summarization collaborator."""
        return _INSTRUCTIONS[self]


_INSTRUCTIONS: dict[SummaryCommand, str] = {
    SummaryCommand.SUMMARY: (
        "Please provide a concise summary of this meeting so far, highlighting "
        "the main topics and overall sentiment."
    ),
    SummaryCommand.ACTIONS: (
        "List all the specific action items or tasks mentioned in this meeting, "
        "along with who is responsible if mentioned."
    ),
    SummaryCommand.INSIGHTS: (
        "What are the key insights, trends, or major takeaways from this "
        "discussion so far?"
    ),
    SummaryCommand.DECISIONS: (
        "List all the final decisions or agreements made during this meeting."
    ),
}


class Highlight(BaseModel):
    """
    A classified span of transcript text used for display emphasis.

    Offsets are character positions into the segment text; ``end_index``
    is exclusive.
    """

    type: HighlightType = Field(description="Highlight family")
    text: str = Field(description="The matched text")
    start_index: int = Field(ge=0, description="Start offset in source text")
    end_index: int = Field(ge=0, description="End offset (exclusive)")
    confidence: float = Field(
        default=1.0,
        ge=0.0,
        le=1.0,
        description="Static weight of the pattern family",
    )

    @model_validator(mode="after")
    def check_bounds(self) -> "Highlight":
        """Reject spans that end before they start."""
        if self.end_index < self.start_index:
            raise ValueError("end_index must not precede start_index")
        return self


class Span(BaseModel):
    """A span produced by either classifier pass."""

    kind: SpanKind
    type: str = Field(description="Highlight type or automation intent value")
    text: str
    start_index: int = Field(ge=0)
    end_index: int = Field(ge=0)
    confidence: float = Field(ge=0.0, le=1.0)


class ActionItem(BaseModel):
    """An action item recorded for a meeting. Only ``status`` may change."""

    id: str = Field(default_factory=lambda: uuid4().hex)
    meeting_id: str
    content: str = Field(min_length=1)
    assignee: str = Field(default="Unassigned")
    status: ActionStatus = Field(default=ActionStatus.PENDING)
    source_window_id: Optional[str] = Field(default=None)
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))


class Decision(BaseModel):
    """A decision recorded for a meeting. Never mutated once created."""

    id: str = Field(default_factory=lambda: uuid4().hex)
    meeting_id: str
    content: str = Field(min_length=1)
    confidence: float = Field(default=0.0, ge=0.0, le=1.0)
    source_window_id: Optional[str] = Field(default=None)
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
