"""Tests for focusvoice.core.reminder_executor and the reminder store."""

from datetime import datetime

import pytest

from focusvoice.core.execution import ReminderPlan
from focusvoice.core.intents import BlockIntent, RemindIntent
from focusvoice.core.reminder_executor import (
    ReminderExecutor,
    confirm_message,
    format_confirmation,
)
from focusvoice.core.reminder_store import REMINDERS_KEY, ReminderStore
from focusvoice.ports.notification_port import NotificationError

NOW = datetime(2026, 3, 2, 15, 0)


def _executor(notifier, storage, grace=0):
    return ReminderExecutor(notifier, ReminderStore(storage), grace_seconds=grace, now=lambda: NOW)


ONE_TIME = RemindIntent(message="drink water", reminder_type="one-time", duration_minutes=10)
WEEKLY = RemindIntent(message="call mom", reminder_type="weekly", time="9 AM", days=["monday"])


class TestMessages:
    def test_confirm_one_time(self):
        plan = ReminderPlan(message="drink water", reminder_type="one-time", duration_minutes=1)
        assert confirm_message(plan) == "Set a reminder to drink water in 1 minute?"

    def test_confirm_custom(self):
        plan = ReminderPlan(
            message="stretch", reminder_type="custom", time="6pm",
            days=["monday", "wednesday", "friday"],
        )
        assert confirm_message(plan) == "Set a reminder to stretch on Monday, Wednesday and Friday at 6pm?"

    def test_format_one_time(self):
        plan = ReminderPlan(message="drink water", reminder_type="one-time", duration_minutes=10)
        assert format_confirmation(plan, NOW) == (
            "I'll remind you to drink water in 10 minutes. Notification set for 3:10 PM."
        )

    def test_format_weekly(self):
        plan = ReminderPlan(message="call mom", reminder_type="weekly", time="9 AM", days=["monday"])
        assert format_confirmation(plan) == "I'll remind you to call mom every Monday at 9 AM."


class TestPlan:
    @pytest.mark.asyncio
    @pytest.mark.parametrize("intent, reason", [
        (BlockIntent(target="x"), "invalid-intent"),
        (RemindIntent(reminder_type="one-time", duration_minutes=5), "missing-message"),
        (RemindIntent(message="m", reminder_type="one-time"), "missing-duration"),
        (RemindIntent(message="m", reminder_type="daily"), "missing-time"),
        (RemindIntent(message="m", reminder_type="daily", time="whenever"), "invalid-time"),
        (RemindIntent(message="m", reminder_type="weekly", time="9am"), "missing-days"),
    ])
    async def test_validation(self, notifier, storage, intent, reason):
        result = await _executor(notifier, storage).plan(intent)
        assert result.ok is False
        assert result.reason == reason

    @pytest.mark.asyncio
    async def test_missing_slot_has_readable_error(self, notifier, storage):
        result = await _executor(notifier, storage).plan(RemindIntent(message="m", reminder_type="daily"))
        assert result.error == "Time is required for scheduled reminders"

    @pytest.mark.asyncio
    async def test_permission_denied(self, storage):
        class DeniedNotifier:
            async def request_permission(self):
                return False

        result = await _executor(DeniedNotifier(), storage).plan(ONE_TIME)
        assert result.ok is False
        assert result.reason == "permissions-denied"
        assert result.needs_permission is True

    @pytest.mark.asyncio
    async def test_valid_plan(self, notifier, storage):
        plan = await _executor(notifier, storage).plan(ONE_TIME)
        assert isinstance(plan, ReminderPlan)
        assert plan.confirm_message == "Set a reminder to drink water in 10 minutes?"
        assert notifier.calls == []


class TestApply:
    @pytest.mark.asyncio
    async def test_one_time(self, notifier, storage):
        result = await _executor(notifier, storage).execute(ONE_TIME, confirm=False)
        assert result.ok is True
        assert result.notification_ids == ["n1"]
        assert notifier.calls == [("once", "drink water", 600)]
        stored = storage.data[REMINDERS_KEY]
        assert stored[0]["message"] == "drink water"
        assert stored[0]["notification_ids"] == ["n1"]

    @pytest.mark.asyncio
    async def test_daily(self, notifier, storage):
        intent = RemindIntent(message="read", reminder_type="daily", time="2:30 pm")
        await _executor(notifier, storage).execute(intent, confirm=False)
        assert notifier.calls == [("daily", "read", 14, 30)]

    @pytest.mark.asyncio
    async def test_custom_days_schedule_one_each(self, notifier, storage):
        intent = RemindIntent(
            message="stretch", reminder_type="custom", time="6pm", days=["monday", "wednesday"],
        )
        result = await _executor(notifier, storage).execute(intent, confirm=False)
        assert result.notification_ids == ["n1", "n2"]
        assert notifier.calls == [
            ("weekly", "stretch", 0, 18, 0),
            ("weekly", "stretch", 2, 18, 0),
        ]

    @pytest.mark.asyncio
    async def test_scheduling_failure(self, storage):
        class BrokenNotifier:
            async def request_permission(self):
                return True

            async def schedule_once(self, message, delay_seconds):
                raise NotificationError("queue down")

        result = await _executor(BrokenNotifier(), storage).execute(ONE_TIME, confirm=False)
        assert result.ok is False
        assert result.reason == "scheduling-failed"
        assert REMINDERS_KEY not in storage.data

    @pytest.mark.asyncio
    async def test_store_failure_still_schedules(self, notifier, failing_storage):
        result = await _executor(notifier, failing_storage).execute(ONE_TIME, confirm=False)
        assert result.ok is True
        assert result.undo.reminder_id is None
        assert "n1" in notifier.scheduled

    @pytest.mark.asyncio
    async def test_unknown_type(self, notifier, storage):
        plan = ReminderPlan(message="m", reminder_type="hourly")
        result = await _executor(notifier, storage).apply(plan)
        assert result.reason == "unknown-type"


class TestUndo:
    @pytest.mark.asyncio
    async def test_undo_inside_grace_schedules_nothing(self, notifier, storage):
        executor = _executor(notifier, storage, grace=5)
        result = await executor.execute(WEEKLY, confirm=False)

        assert await executor.undo(result.undo) is True
        assert await result.undo.pending.wait() is None
        assert notifier.scheduled == {}
        assert notifier.calls == []

    @pytest.mark.asyncio
    async def test_undo_after_grace_cancels_and_deactivates(self, notifier, storage):
        executor = _executor(notifier, storage, grace=0.01)
        result = await executor.execute(WEEKLY, confirm=False)
        await result.undo.pending.wait()
        assert list(notifier.scheduled) == ["n1"]
        assert result.undo.reminder_id is not None

        assert await executor.undo(result.undo) is True
        assert notifier.scheduled == {}
        active = await ReminderStore(storage).list_reminders()
        assert active == []

    @pytest.mark.asyncio
    async def test_undo_without_grace(self, notifier, storage):
        executor = _executor(notifier, storage)
        result = await executor.execute(ONE_TIME, confirm=False)
        assert await executor.undo(result.undo) is True
        assert notifier.scheduled == {}


class TestReminderStore:
    @pytest.mark.asyncio
    async def test_add_list_deactivate(self, storage):
        store = ReminderStore(storage)
        first = await store.add("a", "daily", ["n1"], time="9am")
        await store.add("b", "one-time", ["n2"], duration_minutes=5)

        assert [r.message for r in await store.list_reminders()] == ["a", "b"]
        await store.deactivate(first.id)
        assert [r.message for r in await store.list_reminders()] == ["b"]
        assert len(await store.list_reminders(active_only=False)) == 2

    @pytest.mark.asyncio
    async def test_deactivate_unknown(self, storage):
        assert await ReminderStore(storage).deactivate("missing") is None
