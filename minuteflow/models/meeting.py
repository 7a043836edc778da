"""
Data models for meetings.

A meeting anchors window indexing: window 0 starts at ``start_time``.
"""

from datetime import datetime, timezone
from enum import Enum
from typing import Optional
from uuid import uuid4

from pydantic import BaseModel, Field, field_validator


class MeetingStatus(str, Enum):
    """Status of a meeting."""

    LIVE = "live"
    COMPLETED = "completed"


class Meeting(BaseModel):
    """A meeting whose transcript is being ingested."""

    id: str = Field(default_factory=lambda: uuid4().hex)
    title: str = Field(default="Untitled Meeting")
    start_time: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc),
        description="Start of window 0",
    )
    end_time: Optional[datetime] = Field(default=None)
    status: MeetingStatus = Field(default=MeetingStatus.LIVE)

    @field_validator("start_time", "end_time")
    @classmethod
    def ensure_timezone(cls, v: Optional[datetime]) -> Optional[datetime]:
        """Treat naive timestamps as UTC."""
        if v is not None and v.tzinfo is None:
            return v.replace(tzinfo=timezone.utc)
        return v
