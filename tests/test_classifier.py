"""
Tests for the pattern classifier.
"""

from unittest.mock import MagicMock, patch

import pytest

from minuteflow.models.automation import AutomationIntent
from minuteflow.models.insight import HighlightType, SpanKind
from minuteflow.semantic.classifier import PatternClassifier


class TestPatternClassifier:
    """Test cases for PatternClassifier."""

    def test_classify_merges_passes(self, classifier: PatternClassifier) -> None:
        """Test both passes contribute spans in offset order."""
        text = "Hey, schedule a meeting for Friday at 10am"
        spans = classifier.classify(text)

        kinds = {s.kind for s in spans}
        assert kinds == {SpanKind.HIGHLIGHT, SpanKind.INTENT}
        starts = [s.start_index for s in spans]
        assert starts == sorted(starts)

        intent_spans = [s for s in spans if s.kind == SpanKind.INTENT]
        assert len(intent_spans) == 1
        assert intent_spans[0].type == AutomationIntent.SCHEDULE_MEETING.value
        assert intent_spans[0].text == "schedule a meeting"

    def test_classify_highlights_only(self, classifier: PatternClassifier) -> None:
        """Test text with highlights and no triggers."""
        spans = classifier.classify("We decided to cut costs by 15%")

        assert [(s.kind, s.type, s.text) for s in spans] == [
            (SpanKind.HIGHLIGHT, HighlightType.DECISION.value, "We decided"),
            (SpanKind.HIGHLIGHT, HighlightType.METRIC.value, "15%"),
        ]

    def test_classify_empty(self, classifier: PatternClassifier) -> None:
        """Test text without any match."""
        assert classifier.classify("good morning everyone") == []

    def test_highlight_pass_failure_degrades(self, classifier: PatternClassifier) -> None:
        """Test a failing highlight pass returns no highlights."""
        with patch(
            "minuteflow.semantic.classifier.find_highlights",
            side_effect=RuntimeError("pattern table broken"),
        ):
            assert classifier.find_highlights("We decided") == []
            spans = classifier.classify("Please create a ticket for the outage")

        assert [s.kind for s in spans] == [SpanKind.INTENT]

    def test_intent_pass_failure_degrades(self) -> None:
        """Test a failing intent pass returns no intents."""
        detector = MagicMock()
        detector.detect.side_effect = RuntimeError("detector broken")
        classifier = PatternClassifier(intent_detector=detector)

        assert classifier.detect_intents("schedule a meeting") == []
        spans = classifier.classify("We decided to schedule a meeting")
        assert [s.kind for s in spans] == [SpanKind.HIGHLIGHT]

    @pytest.mark.parametrize(
        "text",
        [
            "",
            "ok",
            "$$$ 100% %%% ...",
        ],
    )
    def test_classify_never_raises(self, classifier: PatternClassifier, text: str) -> None:
        """Test odd input is handled."""
        spans = classifier.classify(text)
        assert isinstance(spans, list)
