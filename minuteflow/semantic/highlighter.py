"""
Highlight pass for transcript text.

Finds metric, decision and action spans using three fixed pattern
families. Confidence is a static weight per family, not a measure of how
well a particular match fits.
"""

import logging
import re
from typing import NamedTuple, Sequence, TypeVar

from minuteflow.models.insight import Highlight, HighlightType

logger = logging.getLogger(__name__)

_WEEKDAYS = r"(?:monday|tuesday|wednesday|thursday|friday|saturday|sunday)"


class PatternFamily(NamedTuple):
    """A compiled pattern and the static confidence of its matches."""

    type: HighlightType
    pattern: re.Pattern
    confidence: float


# Detection order doubles as the tie-break order for equal start offsets.
HIGHLIGHT_FAMILIES: tuple[PatternFamily, ...] = (
    PatternFamily(
        HighlightType.METRIC,
        re.compile(
            r"\$[\d,]+(?:\.\d+)?[KMB]?\b"
            r"|\d+(?:\.\d+)?%"
            r"|\d+(?:,\d{3})*(?:\.\d+)?"
            r"(?:\s*(?:hours?|minutes?|days?|weeks?|months?|years?|dollars?|percent)\b)?",
            re.IGNORECASE,
        ),
        0.9,
    ),
    PatternFamily(
        HighlightType.DECISION,
        re.compile(
            r"\b(?:let's move forward|we decided|decision|agreed|approved|confirmed"
            r"|finalized|let's go with|I've decided|we should prioritize)\b",
            re.IGNORECASE,
        ),
        0.8,
    ),
    PatternFamily(
        HighlightType.ACTION,
        re.compile(
            r"\b(?:I'll|I will|action item|by tomorrow|by end of day|by " + _WEEKDAYS +
            r"|will prepare|will reach out|will compile|will start working"
            r"|follow up on)\b",
            re.IGNORECASE,
        ),
        0.75,
    ),
)


L = TypeVar("L")


def sweep_non_overlapping(matches: Sequence[L]) -> list[L]:
    """
    Resolve overlaps with a stable first-match-wins sweep.

    Matches are stably sorted by ``start_index`` so equal starts keep their
    detection order. A match is kept only if it starts at or after the end
    of the previously kept match.

    Args:
        matches: Objects with ``start_index`` and ``end_index`` attributes,
            in detection order

    Returns:
        Sorted, pairwise non-overlapping matches
    """
    ordered = sorted(matches, key=lambda m: m.start_index)
    kept: list[L] = []
    last_end = 0
    for match in ordered:
        if match.start_index >= last_end:
            kept.append(match)
            last_end = match.end_index
    return kept


def find_highlights(text: str) -> list[Highlight]:
    """
    Run the highlight pass over text.

    Args:
        text: Transcript text

    Returns:
        Highlights sorted by ``start_index`` with no overlaps; empty when
        nothing matches
    """
    if not text:
        return []

    pooled: list[Highlight] = []
    for family in HIGHLIGHT_FAMILIES:
        for match in family.pattern.finditer(text):
            if match.start() == match.end():
                continue
            pooled.append(
                Highlight(
                    type=family.type,
                    text=match.group(0),
                    start_index=match.start(),
                    end_index=match.end(),
                    confidence=family.confidence,
                )
            )

    highlights = sweep_non_overlapping(pooled)
    logger.debug("Found %d highlights (%d raw matches)", len(highlights), len(pooled))
    return highlights
