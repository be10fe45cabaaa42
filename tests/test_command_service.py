"""Tests for focusvoice.core.command_service — the end-to-end conversation flow."""

import pytest
from unittest.mock import AsyncMock

from focusvoice.core.command_service import (
    ResponseKind,
    VoiceCommandService,
    fill_slot,
)
from focusvoice.core.context import CONTEXT_KEY
from focusvoice.core.intents import BlockIntent, RemindIntent, UnresolvedIntent


@pytest.fixture
def service(storage, blocking, notifier):
    return VoiceCommandService(storage, blocking, notifier, grace_seconds=0)


class TestHandleUtterance:
    @pytest.mark.asyncio
    async def test_block_confirm_apply(self, service, blocking, storage):
        response = await service.handle_utterance("Block Instagram for 30 minutes")
        assert response.kind == ResponseKind.CONFIRMATION_PROMPT
        assert response.message.startswith("Block instagram for 30 minutes?")
        assert blocking.started == []

        done = await service.confirm(response.pending)
        assert done.kind == ResponseKind.SUCCESS
        assert done.message.startswith("Blocking instagram until")
        assert len(blocking.started) == 1
        assert storage.data[CONTEXT_KEY]["last_target"] == "instagram"
        assert storage.data[CONTEXT_KEY]["last_duration_minutes"] == 30

    @pytest.mark.asyncio
    async def test_voice_asks_for_duration(self, service):
        response = await service.handle_utterance("Block Facebook", from_voice=True)
        assert response.kind == ResponseKind.CLARIFICATION
        assert response.missing == "duration"
        assert response.message == "For how long?"

        followup = await service.answer_clarification(response.intent, response.missing, "20 minutes")
        assert followup.kind == ResponseKind.CONFIRMATION_PROMPT
        assert followup.pending.plan.duration_minutes == 20

    @pytest.mark.asyncio
    async def test_typed_block_gets_default_duration(self, service):
        response = await service.handle_utterance("Block Facebook")
        assert response.kind == ResponseKind.CONFIRMATION_PROMPT
        assert response.pending.plan.duration_minutes == 30

    @pytest.mark.asyncio
    async def test_off_topic_guidance(self, service, blocking):
        response = await service.handle_utterance("what's the weather like")
        assert response.kind == ResponseKind.GUIDANCE
        assert len(response.suggestions) == 3
        assert blocking.started == []

    @pytest.mark.asyncio
    async def test_unknown_target_offers_picker(self, service):
        await service.aliases.upsert_alias("games", {"apps": ["chess"]})
        response = await service.handle_utterance("Block netflix apps for 10 minutes")
        assert response.kind == ResponseKind.RESOURCE_PICKER
        assert response.target == "netflix apps"
        assert response.options == ["games"]

    @pytest.mark.asyncio
    async def test_stop_skips_confirmation(self, service, blocking, storage):
        response = await service.handle_utterance("Stop")
        assert response.kind == ResponseKind.SUCCESS
        assert response.message == "Blocking stopped."
        assert blocking.stopped == 1
        assert storage.data[CONTEXT_KEY]["last_action"] == "stop"

    @pytest.mark.asyncio
    async def test_reminder_permission_required(self, service, notifier):
        notifier.granted = False
        response = await service.handle_utterance("Remind me to drink water in 10 minutes")
        assert response.kind == ResponseKind.PERMISSION_REQUIRED

    @pytest.mark.asyncio
    async def test_reminder_flow(self, service, notifier):
        response = await service.handle_utterance("Remind me to drink water in 10 minutes")
        assert response.kind == ResponseKind.CONFIRMATION_PROMPT
        assert response.message == "Set a reminder to drink water in 10 minutes?"

        done = await service.confirm(response.pending)
        assert done.kind == ResponseKind.SUCCESS
        assert list(notifier.scheduled) == ["n1"]
        assert len(await service.reminders.list_reminders()) == 1

    @pytest.mark.asyncio
    async def test_reminder_missing_time(self, service):
        response = await service.handle_utterance("remind me to call the dentist")
        assert response.kind == ResponseKind.CLARIFICATION
        assert response.missing == "time"

        followup = await service.answer_clarification(response.intent, "time", "in 15 minutes")
        assert followup.kind == ResponseKind.CONFIRMATION_PROMPT
        assert followup.pending.plan.duration_minutes == 15

    @pytest.mark.asyncio
    async def test_every_monday_then_asks_for_clock_time(self, service):
        response = await service.handle_utterance("remind me to call the dentist")
        followup = await service.answer_clarification(response.intent, "time", "Every Monday")
        assert followup.kind == ResponseKind.CLARIFICATION
        assert followup.missing == "time"
        assert followup.message == "What time should I remind you?"

        done = await service.answer_clarification(followup.intent, followup.missing, "9 AM")
        assert done.kind == ResponseKind.CONFIRMATION_PROMPT
        assert done.pending.plan.reminder_type == "weekly"
        assert done.pending.plan.days == ["monday"]
        assert done.pending.plan.time == "9 AM"

    @pytest.mark.asyncio
    async def test_daily_without_time_is_clarified(self, service):
        response = await service.handle_utterance("Remind me to stretch every day")
        assert response.kind == ResponseKind.CLARIFICATION
        assert response.missing == "time"
        assert response.intent.reminder_type == "daily"

    @pytest.mark.asyncio
    async def test_quota_exhausted(self, service):
        service.router.parse = AsyncMock(return_value=UnresolvedIntent(error="limit"))
        response = await service.handle_utterance("something odd")
        assert response.kind == ResponseKind.QUOTA_EXHAUSTED
        assert response.limit == 5

    @pytest.mark.asyncio
    async def test_nothing_parsed(self, service):
        service.router.parse = AsyncMock(return_value=None)
        response = await service.handle_utterance("block block block")
        assert response.kind == ResponseKind.NO_ACTION

    @pytest.mark.asyncio
    async def test_parse_error(self, service):
        service.router.parse = AsyncMock(side_effect=RuntimeError("boom"))
        response = await service.handle_utterance("Block social")
        assert response.kind == ResponseKind.ERROR
        assert response.reason == "parse-error"

    @pytest.mark.asyncio
    async def test_followup_uses_context(self, service):
        first = await service.handle_utterance("Block social for 30 minutes")
        await service.confirm(first.pending)

        response = await service.handle_utterance("add 10 minutes")
        assert response.kind == ResponseKind.CONFIRMATION_PROMPT
        assert response.pending.plan.alias_name == "social"
        assert response.pending.plan.duration_minutes == 40


class TestUndo:
    @pytest.mark.asyncio
    async def test_undo_block_clears_context(self, service, blocking, storage):
        first = await service.handle_utterance("Block social for 30 minutes")
        done = await service.confirm(first.pending)

        assert await service.undo(done.undo) is True
        assert blocking.stopped == 1
        assert CONTEXT_KEY not in storage.data

    @pytest.mark.asyncio
    async def test_undo_inside_grace(self, storage, blocking, notifier):
        service = VoiceCommandService(storage, blocking, notifier, grace_seconds=5)
        first = await service.handle_utterance("Block social for 30 minutes")
        done = await service.confirm(first.pending)
        assert done.kind == ResponseKind.SUCCESS

        assert await service.undo(done.undo) is True
        assert blocking.started == []


class TestDeferredApply:
    @pytest.mark.asyncio
    async def test_context_written_only_after_apply(self, storage, blocking, notifier):
        service = VoiceCommandService(storage, blocking, notifier, grace_seconds=0.01)
        first = await service.handle_utterance("Block social for 30 minutes")
        done = await service.confirm(first.pending)

        assert done.kind == ResponseKind.SUCCESS
        assert CONTEXT_KEY not in storage.data

        result = await done.undo.pending.wait()
        assert result.ok
        assert storage.data[CONTEXT_KEY]["last_target"] == "social"

    @pytest.mark.asyncio
    async def test_failed_apply_is_reported_and_not_remembered(self, storage, blocking, notifier):
        service = VoiceCommandService(storage, blocking, notifier, grace_seconds=0.01)
        blocking.fail_start = True
        report = AsyncMock()

        first = await service.handle_utterance("Block social for 30 minutes")
        done = await service.confirm(first.pending, on_failure=report)
        result = await done.undo.pending.wait()

        assert result.ok is False
        assert result.reason == "blocking-failed"
        assert CONTEXT_KEY not in storage.data
        report.assert_awaited_once()
        failure = report.await_args.args[0]
        assert failure.kind == ResponseKind.ERROR
        assert failure.reason == "blocking-failed"

    @pytest.mark.asyncio
    async def test_undone_apply_never_reports(self, storage, blocking, notifier):
        service = VoiceCommandService(storage, blocking, notifier, grace_seconds=5)
        report = AsyncMock()

        first = await service.handle_utterance("Block social for 30 minutes")
        done = await service.confirm(first.pending, on_failure=report)
        assert await service.undo(done.undo) is True

        report.assert_not_called()
        assert CONTEXT_KEY not in storage.data


class TestFillSlot:
    def test_duration(self):
        intent = fill_slot(BlockIntent(target="social"), "duration", "1 hour")
        assert intent.duration_minutes == 60

    def test_target_strips_verb(self):
        intent = fill_slot(BlockIntent(duration_minutes=30), "target", "Block social apps.")
        assert intent.target == "social apps"

    def test_message(self):
        intent = fill_slot(RemindIntent(), "message", "Stretch!")
        assert intent.message == "Stretch"

    def test_time_weekly(self):
        intent = fill_slot(RemindIntent(message="call mom"), "time", "every Monday at 9am")
        assert intent.reminder_type == "weekly"
        assert intent.days == ["monday"]
        assert intent.time == "9am"

    def test_clock_time_keeps_weekly_schedule(self):
        intent = RemindIntent(message="call mom", reminder_type="weekly", days=["friday"])
        filled = fill_slot(intent, "time", "6 PM")
        assert filled.reminder_type == "weekly"
        assert filled.days == ["friday"]
        assert filled.time == "6 PM"

    def test_days(self):
        intent = RemindIntent(message="run", reminder_type="custom", time="7am")
        assert fill_slot(intent, "days", "Tuesday and Thursday").days == ["tuesday", "thursday"]
