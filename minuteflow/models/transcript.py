"""
Data models for live transcript ingestion.

Chunks arrive from capture clients, simulations and webhooks; each one is
appended as a segment to the minute window its timestamp falls in.
"""

from datetime import datetime, timezone
from typing import Optional
from uuid import uuid4

from pydantic import BaseModel, Field, field_validator

from minuteflow.models.insight import Highlight


class TranscriptChunk(BaseModel):
    """
    One increment of live transcript text.

    Transient input to the windower; never persisted on its own.
    """

    meeting_id: str = Field(description="Meeting the chunk belongs to")
    speaker_label: str = Field(default="Unknown", description="Speaker name or id")
    text: str = Field(description="Transcribed text")
    timestamp: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc),
        description="When the text was spoken",
    )
    window_index: Optional[int] = Field(
        default=None,
        ge=0,
        description="Explicit window index for simulated or historical ingestion",
    )

    @field_validator("timestamp")
    @classmethod
    def ensure_timezone(cls, v: datetime) -> datetime:
        """Treat naive timestamps as UTC."""
        if v.tzinfo is None:
            return v.replace(tzinfo=timezone.utc)
        return v


class Segment(BaseModel):
    """
    A single utterance inside a minute window.

    ``highlights`` stays empty until the window is closed and classified.
    """

    speaker: str = Field(description="Speaker identifier or name")
    text: str = Field(description="The spoken text content")
    timestamp: datetime = Field(description="When the text was spoken")
    highlights: list[Highlight] = Field(default_factory=list)

    @field_validator("text")
    @classmethod
    def strip_whitespace(cls, v: str) -> str:
        """Strip leading/trailing whitespace from text."""
        return v.strip()


class MinuteWindow(BaseModel):
    """
    One fixed time slice of a meeting's transcript.

    At most one window exists per ``(meeting_id, window_index)``.
    """

    id: str = Field(default_factory=lambda: uuid4().hex)
    meeting_id: str
    window_index: int = Field(ge=0)
    start_time: datetime
    end_time: datetime
    segments: list[Segment] = Field(default_factory=list)
    processed: bool = Field(default=False)
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    @property
    def segment_count(self) -> int:
        """Count segments in the window."""
        return len(self.segments)

    def to_plain_text(self, include_speakers: bool = True) -> str:
        """
        Convert the window to plain text, one segment per line.

        Args:
            include_speakers: Prefix each line with ``[speaker]:``

        Returns:
            Formatted plain text representation
        """
        if include_speakers:
            return "\n".join(f"[{seg.speaker}]: {seg.text}" for seg in self.segments)
        return "\n".join(seg.text for seg in self.segments)


class WindowRef(BaseModel):
    """Result of ingesting one chunk."""

    window_id: str
    meeting_id: str
    window_index: int
    segment_count: int
    created: bool = Field(description="True when this chunk opened the window")
