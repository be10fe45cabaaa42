"""Tests for the local intent parser: grammar, reminder sub-parser and pipeline."""

import pytest
from unittest.mock import AsyncMock, MagicMock, patch

from focusvoice.config import settings
from focusvoice.core.clarification import needs_clarification
from focusvoice.core.context import ConversationContext
from focusvoice.core.grammar import parse_command
from focusvoice.core.intents import (
    BlockIntent,
    ClassificationIntent,
    RemindIntent,
    StopIntent,
)
from focusvoice.core.parser import intent_from_remote, parse_intent
from focusvoice.core.reminder_parser import (
    extract_days,
    extract_message,
    has_reminder_keyword,
    parse_reminder,
)


# ---------------------------------------------------------------------------
# Grammar
# ---------------------------------------------------------------------------


class TestParseCommand:
    def test_full_command(self):
        cmd = parse_command("Block Instagram for 30 minutes.")
        assert cmd.action == "block"
        assert cmd.target_text == "instagram"
        assert cmd.duration_text == "30 minutes"
        assert cmd.confidence == 1.0

    def test_dangling_for(self):
        cmd = parse_command("block facebook for")
        assert cmd.target_text == "facebook"
        assert cmd.duration_text == ""
        assert cmd.dangling_for is True

    def test_short_text_penalised(self):
        assert parse_command("block x").confidence == 0.5

    def test_question_penalised(self):
        assert parse_command("can you block tiktok for 10 minutes").confidence == 0.9

    def test_no_match(self):
        assert parse_command("hello there") is None
        assert parse_command("") is None


# ---------------------------------------------------------------------------
# Reminder sub-parser
# ---------------------------------------------------------------------------


class TestReminderParser:
    def test_keyword(self):
        assert has_reminder_keyword("Remind me later")
        assert has_reminder_keyword("set a reminder")
        assert not has_reminder_keyword("block social")

    def test_one_time_digits(self):
        intent = parse_reminder("Remind me to drink water in 10 minutes")
        assert intent.message == "drink water"
        assert intent.reminder_type == "one-time"
        assert intent.duration_minutes == 10
        assert intent.confidence == 0.9

    def test_one_time_number_words(self):
        intent = parse_reminder("remind me to take a break in twenty minutes")
        assert intent.message == "take a break"
        assert intent.duration_minutes == 20
        assert intent.confidence == 0.85

    def test_half_an_hour(self):
        intent = parse_reminder("remind me to stand up in half an hour")
        assert intent.reminder_type == "one-time"
        assert intent.duration_minutes == 30

    def test_daily(self):
        intent = parse_reminder("Remind me to drink water every day at 8am")
        assert intent.reminder_type == "daily"
        assert intent.time == "8am"
        assert intent.days == []

    def test_weekly_single_day(self):
        intent = parse_reminder("Remind me to call mom every Monday at 9 AM")
        assert intent.message == "call mom"
        assert intent.reminder_type == "weekly"
        assert intent.days == ["monday"]
        assert intent.time == "9 AM"

    def test_custom_days(self):
        intent = parse_reminder("Remind me to stretch on Monday and Wednesday at 6pm")
        assert intent.message == "stretch"
        assert intent.reminder_type == "custom"
        assert intent.days == ["monday", "wednesday"]

    def test_clock_time_without_recurrence_is_daily(self):
        intent = parse_reminder("Remind me to exercise tomorrow at 7am")
        assert intent.message == "exercise"
        assert intent.reminder_type == "daily"
        assert intent.time == "7am"

    def test_bare_at_hour(self):
        intent = parse_reminder("remind me to read every day at 9")
        assert intent.time == "9:00"

    def test_missing_schedule(self):
        intent = parse_reminder("remind me to call the dentist")
        assert intent.message == "call the dentist"
        assert intent.reminder_type is None

    def test_extract_helpers(self):
        assert extract_message("reminder to water plants") == "water plants"
        assert extract_days("fridays and mondays") == ["friday", "monday"]


# ---------------------------------------------------------------------------
# parse_intent pipeline
# ---------------------------------------------------------------------------


class TestParseIntent:
    @pytest.mark.asyncio
    async def test_block_with_duration(self):
        intent = await parse_intent("Block Instagram for 30 minutes")
        assert isinstance(intent, BlockIntent)
        assert intent.target == "instagram"
        assert intent.duration_minutes == 30

    @pytest.mark.asyncio
    async def test_dangling_for_needs_duration(self):
        intent = await parse_intent("Block Facebook for")
        assert isinstance(intent, BlockIntent)
        assert intent.target == "facebook"
        assert not intent.duration_minutes
        assert needs_clarification(intent, None).missing == "duration"

    @pytest.mark.asyncio
    async def test_reminder(self):
        intent = await parse_intent("Remind me to drink water in 10 minutes")
        assert isinstance(intent, RemindIntent)
        assert intent.message == "drink water"
        assert intent.duration_minutes == 10
        assert intent.reminder_type == "one-time"

    @pytest.mark.asyncio
    async def test_reminder_keyword_beats_stop(self):
        intent = await parse_intent("Remind me to stop scrolling in 5 minutes")
        assert isinstance(intent, RemindIntent)
        assert intent.message == "stop scrolling"

    @pytest.mark.asyncio
    @pytest.mark.parametrize("text, message", [
        ("Remind me to call my friend in 10 minutes", "call my friend"),
        ("Remind me to send the report in 20 minutes", "send the report"),
    ])
    async def test_reminder_message_with_block_substrings(self, text, message):
        intent = await parse_intent(text)
        assert isinstance(intent, RemindIntent)
        assert intent.message == message

    @pytest.mark.asyncio
    @pytest.mark.parametrize("text", ["", "   ", None])
    async def test_empty_is_none(self, text):
        assert await parse_intent(text) is None

    @pytest.mark.asyncio
    @pytest.mark.parametrize("text", ["Stop", "End session", "stop blocking."])
    async def test_bare_stop(self, text):
        assert isinstance(await parse_intent(text), StopIntent)

    @pytest.mark.asyncio
    async def test_default_duration_backfill(self):
        intent = await parse_intent("Block social apps")
        assert intent.duration_minutes == 30

    @pytest.mark.asyncio
    async def test_voice_does_not_backfill(self):
        intent = await parse_intent("Block social apps", allow_default_duration=False)
        assert intent.duration_minutes == 0

    @pytest.mark.asyncio
    async def test_start_preset(self):
        intent = await parse_intent("start preset deep work for 1h")
        assert isinstance(intent, BlockIntent)
        assert intent.target_type == "preset"
        assert intent.target == "deep work"
        assert intent.duration_minutes == 60

    @pytest.mark.asyncio
    async def test_off_topic_returns_classification(self):
        intent = await parse_intent("what's the weather like")
        assert isinstance(intent, ClassificationIntent)
        assert intent.needs_guidance is True
        assert intent.classification.type == "off-topic"

    @pytest.mark.asyncio
    async def test_relative_followup(self):
        ctx = ConversationContext(last_action="block", last_target="social", last_duration_minutes=30)
        intent = await parse_intent("add 10 minutes", context=ctx)
        assert isinstance(intent, BlockIntent)
        assert intent.target == "social"
        assert intent.duration_minutes == 40

    @pytest.mark.asyncio
    async def test_again_followup(self):
        ctx = ConversationContext(
            last_action="block",
            last_target="social",
            last_duration_minutes=45,
            last_intent={"action": "block", "target": "social", "duration_minutes": 45},
        )
        intent = await parse_intent("block it again", context=ctx)
        assert intent.target == "social"
        assert intent.duration_minutes == 45

    @pytest.mark.asyncio
    async def test_remote_first_when_enabled(self):
        remote = MagicMock()
        remote.is_available.return_value = True
        remote.parse = AsyncMock(return_value={"action": "block", "target": "tiktok", "duration_minutes": 0})

        with patch.object(settings, "AI_INTENTS_ENABLED", True):
            intent = await parse_intent("Block tiktok please", remote=remote)

        assert intent.target == "tiktok"
        assert intent.duration_minutes == 30
        assert intent.confidence == 0.9

    @pytest.mark.asyncio
    async def test_remote_ignored_when_disabled(self):
        remote = MagicMock()
        remote.is_available.return_value = True
        remote.parse = AsyncMock()

        with patch.object(settings, "AI_INTENTS_ENABLED", False):
            await parse_intent("Block tiktok for 5 minutes", remote=remote)

        remote.parse.assert_not_called()


class TestIntentFromRemote:
    def test_stop(self):
        assert isinstance(intent_from_remote({"action": "stop", "target": ""}, True), StopIntent)

    def test_keeps_remote_duration(self):
        intent = intent_from_remote({"action": "block", "target": "news", "duration_minutes": 15}, True)
        assert intent.duration_minutes == 15

    def test_no_backfill_when_disallowed(self):
        intent = intent_from_remote({"action": "block", "target": "news", "duration_minutes": 0}, False)
        assert intent.duration_minutes == 0
