"""
Pattern classifier for transcript text.

Runs two independent deterministic passes over the same text:
- highlight pass: metric, decision and action spans for display
- intent pass: automation triggers with extracted parameters

A failure inside one pass degrades that pass to an empty result; it never
aborts ingestion or window closing.
"""

import logging
from typing import Optional

from minuteflow.models.automation import DetectedIntent
from minuteflow.models.insight import Highlight, Span, SpanKind
from minuteflow.semantic.highlighter import find_highlights
from minuteflow.semantic.intent import IntentDetector

logger = logging.getLogger(__name__)


class PatternClassifier:
    """
    Classifies transcript text into highlights and automation intents.

    Stateless apart from its compiled rule tables, so one instance can be
    shared between threads.
    """

    def __init__(self, intent_detector: Optional[IntentDetector] = None) -> None:
        """
        Initialize the classifier.

        Args:
            intent_detector: Intent detector to use. Defaults to the
                built-in rule set.
        """
        self.intent_detector = intent_detector or IntentDetector()

    def find_highlights(self, text: str) -> list[Highlight]:
        """
        Run the highlight pass.

        Args:
            text: Text to classify

        Returns:
            Sorted, non-overlapping highlights; empty on no match or error
        """
        try:
            return find_highlights(text)
        except Exception as e:
            logger.warning("Highlight pass failed, returning no highlights: %s", e)
            return []

    def detect_intents(self, text: str) -> list[DetectedIntent]:
        """
        Run the intent pass.

        Args:
            text: Text to classify

        Returns:
            Sorted, non-overlapping intents; empty on no match or error
        """
        try:
            return self.intent_detector.detect(text)
        except Exception as e:
            logger.warning("Intent pass failed, returning no intents: %s", e)
            return []

    def classify(self, text: str) -> list[Span]:
        """
        Run both passes and merge their spans.

        Spans are stably ordered by ``start_index`` with highlights before
        intents on equal offsets. Each pass is non-overlapping on its own;
        a highlight and an intent may cover the same text.

        Args:
            text: Text to classify

        Returns:
            Merged spans
        """
        spans = [
            Span(
                kind=SpanKind.HIGHLIGHT,
                type=h.type.value,
                text=h.text,
                start_index=h.start_index,
                end_index=h.end_index,
                confidence=h.confidence,
            )
            for h in self.find_highlights(text)
        ]
        spans.extend(
            Span(
                kind=SpanKind.INTENT,
                type=d.intent.value,
                text=d.text,
                start_index=d.start_index,
                end_index=d.end_index,
                confidence=d.confidence,
            )
            for d in self.detect_intents(text)
        )
        spans.sort(key=lambda s: s.start_index)
        return spans
