"""
Tests for the intent detector.
"""

import pytest

from minuteflow.models.automation import AutomationIntent
from minuteflow.semantic.intent import (
    IntentDetector,
    containing_sentence,
    extract_parameters,
    normalize_command,
)


class TestIntentDetector:
    """Test cases for IntentDetector."""

    @pytest.fixture
    def detector(self) -> IntentDetector:
        """Create a detector instance."""
        return IntentDetector()

    def test_schedule_meeting(self, detector: IntentDetector) -> None:
        """Test scheduling trigger with date and time extraction."""
        text = "Hey, schedule a meeting for Friday at 10am"
        detected = detector.detect(text)

        assert len(detected) == 1
        intent = detected[0]
        assert intent.intent == AutomationIntent.SCHEDULE_MEETING
        assert intent.text == "schedule a meeting"
        assert text[intent.start_index:intent.end_index] == intent.text
        assert intent.trigger_text == text
        assert intent.confidence == pytest.approx(0.8)
        assert intent.parameters["date"] == "friday"
        assert intent.parameters["time"] == "10am"
        assert intent.parameters["title"] == "Follow-up Meeting"
        assert intent.parameters["attendees"] == []
        assert intent.parameters["raw_command"] == "hey schedule a meeting for friday at 10am"

    def test_create_ticket(self, detector: IntentDetector) -> None:
        """Test ticket trigger with priority and title."""
        detected = detector.detect("Can you create a high priority ticket for the login bug?")

        assert [d.intent for d in detected] == [AutomationIntent.CREATE_TICKET]
        params = detected[0].parameters
        assert params["priority"] == "high"
        assert params["title"] == "login bug"
        assert params["raw_command"] == "create a high priority ticket for the login bug"

    def test_email_summary(self, detector: IntentDetector) -> None:
        """Test summary email trigger with named recipients."""
        detected = detector.detect("Please email the summary to Alice and Bob.")

        assert [d.intent for d in detected] == [AutomationIntent.EMAIL_SUMMARY]
        assert detected[0].parameters["recipients"] == ["Alice", "Bob"]
        assert detected[0].parameters["summary"] is None

    def test_send_email_with_address(self, detector: IntentDetector) -> None:
        """Test email trigger with an address and subject."""
        detected = detector.detect("Send an email to bob@example.com about the budget review.")

        assert [d.intent for d in detected] == [AutomationIntent.SEND_EMAIL]
        assert detected[0].parameters["recipients"] == ["bob@example.com"]
        assert detected[0].parameters["subject"] == "budget review"

    def test_visualization(self, detector: IntentDetector) -> None:
        """Test chart trigger after a wake phrase."""
        detected = detector.detect("Hey NeuroNotes, make a pie chart of quarterly revenue.")

        assert len(detected) == 1
        assert detected[0].intent == AutomationIntent.CREATE_VISUALIZATION
        assert detected[0].parameters["chart_type"] == "pie"
        assert detected[0].parameters["subject"] == "quarterly revenue"
        assert detected[0].parameters["raw_command"] == "make a pie chart of quarterly revenue"

    def test_wake_phrase_without_trigger(self, detector: IntentDetector) -> None:
        """Test a wake phrase alone yields a generic command."""
        detected = detector.detect("Hey neuro, remind everyone about the offsite. Thanks")

        assert len(detected) == 1
        assert detected[0].intent == AutomationIntent.OTHER
        assert detected[0].start_index == 0
        assert detected[0].confidence == pytest.approx(0.4)
        assert detected[0].trigger_text == "Hey neuro, remind everyone about the offsite."
        assert detected[0].parameters["raw_command"] == "remind everyone about the offsite"

    def test_multiple_triggers_sorted(self, detector: IntentDetector) -> None:
        """Test several triggers come back in text order."""
        text = (
            "Schedule a meeting with Alice and Bob tomorrow at 2pm. "
            "Then create a ticket for the API outage."
        )
        detected = detector.detect(text)

        assert [d.intent for d in detected] == [
            AutomationIntent.SCHEDULE_MEETING,
            AutomationIntent.CREATE_TICKET,
        ]
        schedule, ticket = detected
        assert schedule.parameters["attendees"] == ["Alice", "Bob"]
        assert schedule.parameters["date"] == "tomorrow"
        assert schedule.parameters["time"] == "2pm"
        assert ticket.trigger_text == "Then create a ticket for the API outage."
        assert ticket.parameters["title"] == "API outage"
        assert ticket.parameters["priority"] == "medium"

    def test_no_match(self, detector: IntentDetector) -> None:
        """Test text without triggers."""
        assert detector.detect("good morning everyone") == []
        assert detector.detect("   ") == []


class TestExtractParameters:
    """Tests for parameter extraction helpers."""

    def test_schedule_title_from_topic(self) -> None:
        """Test the topic becomes the title without trailing date words."""
        params = extract_parameters(
            AutomationIntent.SCHEDULE_MEETING,
            "Let's set up a sync about the roadmap next Tuesday at 10:30 am",
        )

        assert params["title"] == "roadmap"
        assert params["date"] == "next tuesday"
        assert params["time"] == "10:30 am"

    def test_generic_command(self) -> None:
        """Test generic commands carry only the raw command."""
        params = extract_parameters(AutomationIntent.OTHER, "Hey neuro, order pizza")

        assert params == {"raw_command": "order pizza", "intent": "other"}

    def test_normalize_command(self) -> None:
        """Test filler words and the trailing end marker are dropped."""
        assert normalize_command("hey neuro please just remind me about lunch over") == (
            "remind me about lunch"
        )

    def test_containing_sentence(self) -> None:
        """Test sentence lookup around an offset."""
        text = "First one. Second one! Third"

        assert containing_sentence(text, 0) == "First one."
        assert containing_sentence(text, 13) == "Second one!"
        assert containing_sentence(text, len(text) - 1) == "Third"
