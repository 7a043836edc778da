"""
Data models for the MinuteFlow meeting automation core.

This package contains Pydantic models for:
- meeting: Meetings that anchor window indexing
- transcript: Chunks, segments and minute windows
- insight: Highlights, spans, action items and decisions
- automation: Automation events and per-intent parameters
"""

from minuteflow.models.meeting import Meeting, MeetingStatus
from minuteflow.models.insight import (
    ActionItem,
    ActionStatus,
    Decision,
    Highlight,
    HighlightType,
    Span,
    SpanKind,
    SummaryCommand,
)
from minuteflow.models.transcript import (
    MinuteWindow,
    Segment,
    TranscriptChunk,
    WindowRef,
)
from minuteflow.models.automation import (
    AutomationEvent,
    AutomationIntent,
    AutomationStatus,
    CreateTicketParams,
    CreateVisualizationParams,
    DetectedIntent,
    DispatchReceipt,
    EmailSummaryParams,
    GenericParams,
    ScheduleMeetingParams,
    SendEmailParams,
    build_parameters,
)

__all__ = [
    # Meeting models
    "Meeting",
    "MeetingStatus",
    # Transcript models
    "TranscriptChunk",
    "Segment",
    "MinuteWindow",
    "WindowRef",
    # Insight models
    "Highlight",
    "HighlightType",
    "Span",
    "SpanKind",
    "ActionItem",
    "ActionStatus",
    "Decision",
    "SummaryCommand",
    # Automation models
    "AutomationEvent",
    "AutomationIntent",
    "AutomationStatus",
    "DetectedIntent",
    "DispatchReceipt",
    "ScheduleMeetingParams",
    "CreateTicketParams",
    "SendEmailParams",
    "EmailSummaryParams",
    "CreateVisualizationParams",
    "GenericParams",
    "build_parameters",
]
