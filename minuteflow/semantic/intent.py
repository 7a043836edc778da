"""
Automation intent detector for transcript analysis.

Detects trigger phrases for external automations (scheduling a meeting,
filing a ticket, sending an email, emailing a summary, generating a chart)
and extracts intent-specific parameters from the sentence containing each
trigger.
"""

import logging
import re
from typing import Any, NamedTuple, Optional

from minuteflow.models.automation import (
    AutomationIntent,
    DetectedIntent,
    build_parameters,
)
from minuteflow.semantic.highlighter import sweep_non_overlapping

logger = logging.getLogger(__name__)

_WEEKDAY = r"(?:monday|tuesday|wednesday|thursday|friday|saturday|sunday)"
_MONTH = r"(?:jan|feb|mar|apr|may|jun|jul|aug|sep|sept|oct|nov|dec)[a-z]*\.?"
_GAP = r"[^.?!\n]{0,40}?"


class IntentRule(NamedTuple):
    """Trigger pattern for one intent and its static confidence."""

    intent: AutomationIntent
    pattern: re.Pattern
    confidence: float


# Rule order is the tie-break order for triggers starting at the same offset.
INTENT_RULES: tuple[IntentRule, ...] = (
    IntentRule(
        AutomationIntent.EMAIL_SUMMARY,
        re.compile(
            rf"\b(?:email|e-mail|mail|send|share|forward)\b{_GAP}"
            r"\b(?:summary|recap|notes|minutes)\b",
            re.IGNORECASE,
        ),
        0.85,
    ),
    IntentRule(
        AutomationIntent.SCHEDULE_MEETING,
        re.compile(
            rf"\b(?:schedule|set up|book|arrange|organi[sz]e|plan)\b{_GAP}"
            r"\b(?:meeting|call|sync|follow-up|catch-up|demo|session|review)\b"
            r"|\blet's meet\b",
            re.IGNORECASE,
        ),
        0.8,
    ),
    IntentRule(
        AutomationIntent.CREATE_TICKET,
        re.compile(
            rf"\b(?:create|open|file|raise|log|make)\b{_GAP}\b(?:ticket|issue|bug)\b",
            re.IGNORECASE,
        ),
        0.8,
    ),
    IntentRule(
        AutomationIntent.CREATE_VISUALIZATION,
        re.compile(
            rf"\b(?:create|make|show|generate|draw|build)\b{_GAP}"
            r"\b(?:chart|graph|visuali[sz]ation|visual|plot)\b"
            r"|\b(?:start|begin) (?:the )?chart\b|\bchart mode\b",
            re.IGNORECASE,
        ),
        0.75,
    ),
    IntentRule(
        AutomationIntent.SEND_EMAIL,
        re.compile(
            rf"\b(?:send|write|draft|shoot)\b{_GAP}\be-?mail\b"
            r"|\bfollow up by e-?mail\b",
            re.IGNORECASE,
        ),
        0.7,
    ),
)

WAKE_PATTERN = re.compile(r"hey[\s,.\-!]*neuro(?:[\s-]*notes)?\b", re.IGNORECASE)
WAKE_CONFIDENCE = 0.4

FILLER_WORDS = frozenset({"please", "can", "you", "actually", "just", "um", "uh", "like"})

_SENTENCE_END = re.compile(r"[.!?]+(?=\s|$)|\n")
_PUNCTUATION = re.compile(r"[.,/#!$%^&*;:{}=\-_`~()?\"]")

DATE_PATTERN = re.compile(
    r"\b(?:today|tomorrow|next week"
    rf"|(?:(?:next|this)\s+)?{_WEEKDAY}"
    r"|\d{4}-\d{2}-\d{2}"
    rf"|{_MONTH}\s+\d{{1,2}}(?:st|nd|rd|th)?)\b",
    re.IGNORECASE,
)
TIME_PATTERN = re.compile(
    r"\b(?:\d{1,2}(?::\d{2})?\s*(?:am|pm)|\d{1,2}:\d{2}|noon|midnight)\b",
    re.IGNORECASE,
)
_NAME_LIST = r"([A-Z][a-z]+(?:\s*(?:,\s*(?:and\s+)?|\s+and\s+)[A-Z][a-z]+)*)"
ATTENDEES_PATTERN = re.compile(r"\bwith\s+" + _NAME_LIST)
RECIPIENTS_PATTERN = re.compile(r"\bto\s+" + _NAME_LIST)
EMAIL_ADDRESS_PATTERN = re.compile(r"[\w.+-]+@[\w-]+(?:\.[\w-]+)+")
TOPIC_PATTERN = re.compile(
    r"\b(?:about|regarding|to discuss|on the topic of)\s+(?:the\s+)?([^,.;!?]+)",
    re.IGNORECASE,
)
FOR_TOPIC_PATTERN = re.compile(
    rf"\bfor\s+(?!(?:today|tomorrow|next|this|{_WEEKDAY}|{_MONTH}\s+\d|\d))"
    r"(?:the\s+|a\s+)?([^,.;!?]+)",
    re.IGNORECASE,
)
TICKET_TITLE_PATTERN = re.compile(
    r"\b(?:ticket|issue|bug)\s+(?:for|to|about|on)\s+(?:the\s+)?([^,.;!?]+)",
    re.IGNORECASE,
)
CHART_SUBJECT_PATTERN = re.compile(
    r"\b(?:chart|graph|visuali[sz]ation|visual|plot)\s+(?:of|for|about|showing)\s+"
    r"(?:the\s+)?([^,.;!?]+)",
    re.IGNORECASE,
)
PRIORITY_PATTERN = re.compile(r"\b(urgent|critical|high|medium|low)\b", re.IGNORECASE)
CHART_TYPE_PATTERN = re.compile(r"\b(bar|line|pie|timeline)\b", re.IGNORECASE)
_TRAILING_CLAUSE = re.compile(
    r"\s+(?:on|at|by|with|next|this|tomorrow|today|over)\b.*$",
    re.IGNORECASE,
)


def sentence_bounds(text: str, index: int) -> tuple[int, int]:
    """
    Find the sentence containing a character offset.

    Args:
        text: Source text
        index: Offset inside the sentence

    Returns:
        ``(start, end)`` offsets of the sentence, end exclusive and
        including its terminating punctuation
    """
    start, end = 0, len(text)
    for match in _SENTENCE_END.finditer(text):
        if match.end() <= index:
            start = match.end()
        elif match.start() >= index:
            end = match.end()
            break
    return start, end


def containing_sentence(text: str, index: int) -> str:
    """Return the trimmed sentence containing ``index``."""
    start, end = sentence_bounds(text, index)
    return text[start:end].strip()


def normalize_command(sentence: str) -> str:
    """
    Normalize a spoken command.

    Lowercases, removes the wake phrase, punctuation and filler words, and
    drops a trailing ``over`` end marker.
    """
    lowered = WAKE_PATTERN.sub(" ", sentence.lower())
    words = [w for w in _PUNCTUATION.sub("", lowered).split() if w not in FILLER_WORDS]
    if words and words[-1] == "over":
        words.pop()
    return " ".join(words)


def _clean_topic(value: str) -> Optional[str]:
    topic = _TRAILING_CLAUSE.sub("", value.strip()).strip()
    return topic or None


def _split_names(value: str) -> list[str]:
    return [n for n in re.split(r"\s*,\s*(?:and\s+)?|\s+and\s+", value) if n]


def _first_topic(sentence: str, *patterns: re.Pattern) -> Optional[str]:
    for pattern in patterns:
        match = pattern.search(sentence)
        if match:
            topic = _clean_topic(match.group(1))
            if topic:
                return topic
    return None


def _recipients(sentence: str) -> list[str]:
    recipients = EMAIL_ADDRESS_PATTERN.findall(sentence)
    without_addresses = EMAIL_ADDRESS_PATTERN.sub(" ", sentence)
    match = RECIPIENTS_PATTERN.search(without_addresses)
    if match:
        recipients.extend(_split_names(match.group(1)))
    return list(dict.fromkeys(recipients))


def extract_parameters(intent: AutomationIntent, sentence: str) -> dict[str, Any]:
    """
    Extract intent-specific parameters from a trigger sentence.

    Args:
        intent: Detected intent
        sentence: Sentence containing the trigger phrase

    Returns:
        Validated parameter dict for the intent, including ``raw_command``
    """
    values: dict[str, Any] = {"raw_command": normalize_command(sentence)}

    if intent == AutomationIntent.SCHEDULE_MEETING:
        date = DATE_PATTERN.search(sentence)
        time = TIME_PATTERN.search(sentence)
        attendees = ATTENDEES_PATTERN.search(sentence)
        values["date"] = date.group(0).lower() if date else None
        values["time"] = time.group(0).lower() if time else None
        values["attendees"] = _split_names(attendees.group(1)) if attendees else []
        title = _first_topic(sentence, TOPIC_PATTERN, FOR_TOPIC_PATTERN)
        if title:
            values["title"] = title

    elif intent == AutomationIntent.CREATE_TICKET:
        priority = PRIORITY_PATTERN.search(sentence)
        if priority:
            values["priority"] = priority.group(1).lower()
        values["title"] = _first_topic(sentence, TICKET_TITLE_PATTERN, TOPIC_PATTERN)

    elif intent == AutomationIntent.SEND_EMAIL:
        values["recipients"] = _recipients(sentence)
        values["subject"] = _first_topic(sentence, TOPIC_PATTERN)

    elif intent == AutomationIntent.EMAIL_SUMMARY:
        values["recipients"] = _recipients(sentence)

    elif intent == AutomationIntent.CREATE_VISUALIZATION:
        chart_type = CHART_TYPE_PATTERN.search(sentence)
        if chart_type:
            values["chart_type"] = chart_type.group(1).lower()
        values["subject"] = _first_topic(sentence, CHART_SUBJECT_PATTERN, TOPIC_PATTERN)

    return build_parameters(intent, values)


class IntentDetector:
    """
    Detects automation triggers in text.

    Trigger matches from every rule are pooled and resolved with the same
    stable first-match-wins sweep as highlights. A wake phrase in a
    sentence with no recognised trigger yields an ``other`` intent carrying
    the normalized command.
    """

    def __init__(self, rules: tuple[IntentRule, ...] = INTENT_RULES) -> None:
        self.rules = rules

    def detect(self, text: str) -> list[DetectedIntent]:
        """
        Detect automation intents in text.

        Args:
            text: Transcript text

        Returns:
            Detected intents sorted by ``start_index``, non-overlapping;
            empty when nothing matches
        """
        if not text or not text.strip():
            return []

        pooled: list[DetectedIntent] = []
        for rule in self.rules:
            for match in rule.pattern.finditer(text):
                sentence = containing_sentence(text, match.start())
                pooled.append(
                    DetectedIntent(
                        intent=rule.intent,
                        text=match.group(0),
                        start_index=match.start(),
                        end_index=match.end(),
                        trigger_text=sentence,
                        confidence=rule.confidence,
                        parameters=extract_parameters(rule.intent, sentence),
                    )
                )

        detected = sweep_non_overlapping(pooled)
        detected.extend(self._wake_commands(text, detected))
        detected.sort(key=lambda d: d.start_index)

        if detected:
            logger.debug(
                "Detected intents: %s",
                ", ".join(d.intent.value for d in detected),
            )
        return detected

    def _wake_commands(
        self,
        text: str,
        detected: list[DetectedIntent],
    ) -> list[DetectedIntent]:
        """Generic commands for wake phrases with no recognised trigger."""
        covered = {sentence_bounds(text, d.start_index) for d in detected}
        commands: list[DetectedIntent] = []
        for match in WAKE_PATTERN.finditer(text):
            bounds = sentence_bounds(text, match.start())
            if bounds in covered:
                continue
            covered.add(bounds)
            sentence = text[bounds[0]:bounds[1]].strip()
            commands.append(
                DetectedIntent(
                    intent=AutomationIntent.OTHER,
                    text=match.group(0),
                    start_index=match.start(),
                    end_index=match.end(),
                    trigger_text=sentence,
                    confidence=WAKE_CONFIDENCE,
                    parameters=build_parameters(
                        AutomationIntent.OTHER,
                        {"raw_command": normalize_command(sentence)},
                    ),
                )
            )
        return commands
