"""
Ingestion windower.

Assigns each transcript chunk to a fixed-length window of its meeting and
appends it as a segment. Classification never runs here; windows are
classified when explicitly closed.
"""

import math
import time
from datetime import timedelta
from typing import Callable, Iterable, Optional

from minuteflow.models.meeting import Meeting
from minuteflow.models.transcript import MinuteWindow, Segment, TranscriptChunk, WindowRef
from minuteflow.storage import Store, retrying
from minuteflow.utils.exceptions import InvalidChunkError, StorageError, UnknownMeetingError
from minuteflow.utils.logger import get_logger
from minuteflow.utils.resilience import RetryPolicy

logger = get_logger("ingest")


class IngestionWindower:
    """
    Buffers transcript chunks into minute windows.

    Concurrent producers for the same meeting are safe: the store's atomic
    append and create-if-absent operations guarantee that every chunk
    survives and that at most one window exists per index.
    """

    def __init__(
        self,
        store: Store,
        window_seconds: Optional[int] = None,
        retry_policy: Optional[RetryPolicy] = None,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        """
        Initialize the windower.

        Args:
            store: Storage collaborator
            window_seconds: Window length. Defaults to WINDOW_SECONDS.
            retry_policy: Backoff for store calls. Defaults to RETRY_* settings.
            sleep: Sleep function used between retries
        """
        if window_seconds is None:
            from minuteflow.utils.config import get_settings

            window_seconds = get_settings().window.seconds
        if window_seconds <= 0:
            raise ValueError("window_seconds must be positive")
        self.store = retrying(store, retry_policy, sleep)
        self.window_seconds = window_seconds

    def window_index_for(self, meeting: Meeting, chunk: TranscriptChunk) -> int:
        """
        Compute the window index for a chunk.

        An explicit ``chunk.window_index`` wins. Otherwise the index is the
        number of whole windows between the meeting start and the chunk
        timestamp; chunks stamped before the start land in window 0.
        """
        if chunk.window_index is not None:
            return chunk.window_index
        elapsed = (chunk.timestamp - meeting.start_time).total_seconds()
        return max(0, math.floor(elapsed / self.window_seconds))

    def _new_window(self, meeting: Meeting, index: int, segment: Segment) -> MinuteWindow:
        start = meeting.start_time + timedelta(seconds=index * self.window_seconds)
        return MinuteWindow(
            meeting_id=meeting.id,
            window_index=index,
            start_time=start,
            end_time=start + timedelta(seconds=self.window_seconds),
            segments=[segment],
        )

    def ingest(self, chunk: TranscriptChunk) -> WindowRef:
        """
        Append a chunk to its window, creating the window if needed.

        Args:
            chunk: Transcript chunk

        Returns:
            Reference to the window the chunk landed in

        Raises:
            InvalidChunkError: If the text is empty after trimming
            UnknownMeetingError: If the meeting does not exist
        """
        text = chunk.text.strip() if chunk.text else ""
        if not text:
            raise InvalidChunkError(meeting_id=chunk.meeting_id)

        meeting = self.store.get_meeting(chunk.meeting_id)
        if meeting is None:
            raise UnknownMeetingError(chunk.meeting_id)

        index = self.window_index_for(meeting, chunk)
        segment = Segment(speaker=chunk.speaker_label, text=text, timestamp=chunk.timestamp)

        window = self.store.append_to_window(meeting.id, index, segment)
        created = False
        if window is None:
            window, created = self.store.create_window(self._new_window(meeting, index, segment))
            if not created:
                # Lost the creation race; the window exists now.
                window = self.store.append_to_window(meeting.id, index, segment)
                if window is None:
                    raise StorageError(
                        "Window vanished during ingestion",
                        operation="append_to_window",
                        code="ABORTED",
                    )

        logger.debug(
            "Ingested chunk into meeting %s window %d (%d segments, created=%s)",
            meeting.id,
            index,
            window.segment_count,
            created,
        )
        return WindowRef(
            window_id=window.id,
            meeting_id=meeting.id,
            window_index=index,
            segment_count=window.segment_count,
            created=created,
        )

    def ingest_batch(self, meeting_id: str, chunks: Iterable[TranscriptChunk]) -> list[WindowRef]:
        """
        Ingest a batch of chunks in order.

        Chunks are forced onto ``meeting_id``. Ingestion stops at the first
        invalid chunk and its error propagates; earlier chunks stay
        ingested.
        """
        refs = []
        for chunk in chunks:
            if chunk.meeting_id != meeting_id:
                chunk = chunk.model_copy(update={"meeting_id": meeting_id})
            refs.append(self.ingest(chunk))
        logger.info("Ingested batch of %d chunks for meeting %s", len(refs), meeting_id)
        return refs

    def windows(self, meeting_id: str) -> list[MinuteWindow]:
        """
        List a meeting's windows ordered by index.

        Raises:
            UnknownMeetingError: If the meeting does not exist
        """
        if self.store.get_meeting(meeting_id) is None:
            raise UnknownMeetingError(meeting_id)
        return self.store.get_windows_by_meeting(meeting_id)
