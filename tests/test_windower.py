"""
Tests for the ingestion windower.
"""

from concurrent.futures import ThreadPoolExecutor
from datetime import timedelta
from typing import Callable
from unittest.mock import patch

import pytest

from minuteflow.models.meeting import Meeting
from minuteflow.models.transcript import MinuteWindow, Segment, TranscriptChunk
from minuteflow.storage import InMemoryStore
from minuteflow.utils.exceptions import InvalidChunkError, StorageError, UnknownMeetingError
from minuteflow.utils.resilience import RetryPolicy
from minuteflow.windower import IngestionWindower

ChunkFactory = Callable[..., TranscriptChunk]


class TestIngestionWindower:
    """Test cases for IngestionWindower."""

    @pytest.fixture
    def windower(self, store: InMemoryStore) -> IngestionWindower:
        """Create a windower with one-minute windows."""
        return IngestionWindower(store, window_seconds=60)

    def test_default_window_length_from_settings(self, store: InMemoryStore) -> None:
        """Test WINDOW_SECONDS is used when no length is given."""
        assert IngestionWindower(store).window_seconds == 60

    def test_rejects_non_positive_length(self, store: InMemoryStore) -> None:
        """Test window length must be positive."""
        with pytest.raises(ValueError):
            IngestionWindower(store, window_seconds=0)

    @pytest.mark.parametrize(
        "seconds,expected",
        [(0, 0), (59.9, 0), (60, 1), (61, 1), (150, 2), (-30, 0)],
    )
    def test_window_index(
        self,
        windower: IngestionWindower,
        meeting: Meeting,
        make_chunk: ChunkFactory,
        seconds: float,
        expected: int,
    ) -> None:
        """Test index is whole windows since the start, clamped at zero."""
        assert windower.window_index_for(meeting, make_chunk("hi", seconds)) == expected

    def test_explicit_index_wins(
        self, windower: IngestionWindower, meeting: Meeting, make_chunk: ChunkFactory
    ) -> None:
        """Test an explicit window index overrides the timestamp."""
        ref = windower.ingest(make_chunk("late chunk", 500, window_index=2))

        assert ref.window_index == 2

    def test_same_window_appends(
        self,
        windower: IngestionWindower,
        store: InMemoryStore,
        meeting: Meeting,
        make_chunk: ChunkFactory,
    ) -> None:
        """Test chunks in one window become ordered segments."""
        first = windower.ingest(make_chunk("  Good morning  ", 5, speaker="Alice"))
        second = windower.ingest(make_chunk("Morning!", 30, speaker="Bob"))

        assert first.created is True
        assert second.created is False
        assert first.window_id == second.window_id
        assert second.segment_count == 2

        window = store.get_window(meeting.id, 0)
        assert [(s.speaker, s.text) for s in window.segments] == [
            ("Alice", "Good morning"),
            ("Bob", "Morning!"),
        ]
        assert window.start_time == meeting.start_time
        assert window.end_time == meeting.start_time + timedelta(seconds=60)
        assert window.processed is False

    def test_next_window_created(
        self, windower: IngestionWindower, meeting: Meeting, make_chunk: ChunkFactory
    ) -> None:
        """Test a chunk past the boundary opens the next window."""
        windower.ingest(make_chunk("first", 10))
        ref = windower.ingest(make_chunk("second", 75))

        assert ref.window_index == 1
        assert ref.created is True
        assert [w.window_index for w in windower.windows(meeting.id)] == [0, 1]

    def test_empty_text_rejected_first(
        self, windower: IngestionWindower, make_chunk: ChunkFactory
    ) -> None:
        """Test empty text fails even before the meeting is looked up."""
        with pytest.raises(InvalidChunkError):
            windower.ingest(make_chunk("   ", meeting_id="nope"))

    def test_unknown_meeting(self, windower: IngestionWindower, make_chunk: ChunkFactory) -> None:
        """Test chunks for unknown meetings are rejected."""
        with pytest.raises(UnknownMeetingError):
            windower.ingest(make_chunk("hello", meeting_id="nope"))

        with pytest.raises(UnknownMeetingError):
            windower.windows("nope")

    def test_append_to_processed_window(
        self,
        windower: IngestionWindower,
        store: InMemoryStore,
        meeting: Meeting,
        make_chunk: ChunkFactory,
    ) -> None:
        """Test late chunks are kept without reopening a processed window."""
        windower.ingest(make_chunk("first", 1))
        store.mark_window_processed(meeting.id, 0, {})

        ref = windower.ingest(make_chunk("late", 2))

        window = store.get_window(meeting.id, 0)
        assert ref.segment_count == 2
        assert window.processed is True
        assert window.segments[1].highlights == []

    def test_lost_creation_race(
        self,
        windower: IngestionWindower,
        store: InMemoryStore,
        meeting: Meeting,
        make_chunk: ChunkFactory,
    ) -> None:
        """Test a chunk that loses the creation race is appended instead."""
        store.create_window(
            MinuteWindow(
                meeting_id=meeting.id,
                window_index=0,
                start_time=meeting.start_time,
                end_time=meeting.start_time + timedelta(seconds=60),
                segments=[Segment(speaker="Bob", text="winner", timestamp=meeting.start_time)],
            )
        )
        real_append = store.append_to_window
        calls = []

        def flaky_append(*args):
            calls.append(args)
            if len(calls) == 1:
                return None
            return real_append(*args)

        with patch.object(store, "append_to_window", side_effect=flaky_append):
            ref = windower.ingest(make_chunk("loser", 3))

        assert len(calls) == 2
        assert ref.created is False
        assert [s.text for s in store.get_window(meeting.id, 0).segments] == ["winner", "loser"]

    def test_ingest_batch_stops_at_invalid(
        self,
        windower: IngestionWindower,
        store: InMemoryStore,
        meeting: Meeting,
        make_chunk: ChunkFactory,
    ) -> None:
        """Test a batch is forced onto its meeting and stops at the first bad chunk."""
        chunks = [
            make_chunk("one", 1, meeting_id="other"),
            make_chunk("", 2),
            make_chunk("three", 3),
        ]

        with pytest.raises(InvalidChunkError):
            windower.ingest_batch(meeting.id, chunks)

        assert [s.text for s in store.get_window(meeting.id, 0).segments] == ["one"]

    def test_concurrent_ingest_keeps_every_chunk(
        self,
        windower: IngestionWindower,
        store: InMemoryStore,
        meeting: Meeting,
        make_chunk: ChunkFactory,
    ) -> None:
        """Test parallel producers lose no chunk and create one window."""
        chunks = [make_chunk(f"chunk {i}", i % 60, speaker=f"S{i % 4}") for i in range(200)]

        with ThreadPoolExecutor(max_workers=8) as pool:
            refs = list(pool.map(windower.ingest, chunks))

        windows = store.get_windows_by_meeting(meeting.id)
        assert len(windows) == 1
        assert windows[0].segment_count == 200
        assert sum(1 for r in refs if r.created) == 1
        assert sorted(s.text for s in windows[0].segments) == sorted(c.text for c in chunks)

    def test_transient_storage_error_retried(
        self, store: InMemoryStore, meeting: Meeting, make_chunk: ChunkFactory
    ) -> None:
        """Test an unavailable store is retried before ingestion fails."""
        sleeps: list[float] = []
        windower = IngestionWindower(
            store,
            window_seconds=60,
            retry_policy=RetryPolicy(max_retries=3, base_delay=0.1),
            sleep=sleeps.append,
        )
        unavailable = StorageError("Store unavailable", operation="get_meeting", code="UNAVAILABLE")

        with patch.object(store, "get_meeting", side_effect=[unavailable, meeting]) as mock_get:
            ref = windower.ingest(make_chunk("hello", 1))

        assert mock_get.call_count == 2
        assert ref.segment_count == 1
        assert sleeps == pytest.approx([0.2])

    def test_fatal_storage_error_not_retried(
        self, store: InMemoryStore, meeting: Meeting, make_chunk: ChunkFactory
    ) -> None:
        """Test data loss propagates on the first attempt."""
        windower = IngestionWindower(store, window_seconds=60, sleep=lambda _: None)

        with patch.object(
            store,
            "get_meeting",
            side_effect=StorageError("Window table corrupt", code="DATA_LOSS"),
        ) as mock_get:
            with pytest.raises(StorageError):
                windower.ingest(make_chunk("hello", 1))

        assert mock_get.call_count == 1
