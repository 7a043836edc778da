"""
Deterministic pattern classification for transcript text.

This package provides:
- Highlight detection (metrics, decisions, actions)
- Automation intent detection with parameter extraction
- The combined pattern classifier
"""

from minuteflow.semantic.classifier import PatternClassifier
from minuteflow.semantic.highlighter import find_highlights, sweep_non_overlapping
from minuteflow.semantic.intent import IntentDetector, extract_parameters

__all__ = [
    "PatternClassifier",
    "find_highlights",
    "sweep_non_overlapping",
    "IntentDetector",
    "extract_parameters",
]
