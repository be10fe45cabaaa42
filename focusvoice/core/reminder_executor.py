"""
FocusVoice — Reminder executor.

plan() validates the slots the reminder type needs and asks the
notification backend for permission; apply() schedules the notifications,
stores the reminder and returns the ids needed to cancel it.
"""

from __future__ import annotations

import logging
from datetime import datetime, timedelta
from typing import TYPE_CHECKING, Callable

from focusvoice.core.duration import local_now, parse_clock_time
from focusvoice.core.execution import (
    BaseExecutor,
    ExecutionResult,
    Plan,
    ReminderPlan,
    UndoRecord,
)
from focusvoice.core.intents import RemindIntent
from focusvoice.core.reminder_parser import DAY_NAMES
from focusvoice.ports.notification_port import NotificationError
from focusvoice.ports.storage_port import StorageError

if TYPE_CHECKING:
    from focusvoice.core.reminder_store import ReminderStore
    from focusvoice.ports.notification_port import NotificationPort

logger = logging.getLogger(__name__)


def _minutes_label(n: int) -> str:
    return f"{n} minute" if n == 1 else f"{n} minutes"


def _join_days(days: list[str]) -> str:
    names = [d.capitalize() for d in days]
    if len(names) <= 1:
        return "".join(names)
    return ", ".join(names[:-1]) + " and " + names[-1]


def confirm_message(plan: ReminderPlan) -> str:
    """Question asked before scheduling."""
    if plan.reminder_type == "one-time":
        return f"Set a reminder to {plan.message} in {_minutes_label(plan.duration_minutes)}?"
    if plan.reminder_type == "daily":
        return f"Set a daily reminder to {plan.message} at {plan.time}?"
    if plan.reminder_type == "weekly" and len(plan.days) == 1:
        return f"Set a reminder to {plan.message} every {plan.days[0].capitalize()} at {plan.time}?"
    if plan.reminder_type in ("weekly", "custom"):
        return f"Set a reminder to {plan.message} on {_join_days(plan.days)} at {plan.time}?"
    return f"Set a reminder to {plan.message}?"


def format_confirmation(plan: ReminderPlan, now: datetime | None = None) -> str:
    """Statement shown after scheduling."""
    if plan.reminder_type == "one-time":
        now = now or local_now()
        at = (now + timedelta(minutes=plan.duration_minutes)).strftime("%I:%M %p").lstrip("0")
        return (
            f"I'll remind you to {plan.message} in {_minutes_label(plan.duration_minutes)}. "
            f"Notification set for {at}."
        )
    if plan.reminder_type == "daily":
        return f"I'll remind you to {plan.message} every day at {plan.time}."
    if plan.reminder_type == "weekly" and len(plan.days) == 1:
        return f"I'll remind you to {plan.message} every {plan.days[0].capitalize()} at {plan.time}."
    if plan.reminder_type in ("weekly", "custom"):
        return f"I'll remind you to {plan.message} on {_join_days(plan.days)} at {plan.time}."
    return f"Reminder set to {plan.message}."


class ReminderExecutor(BaseExecutor):
    """Plans and applies remind intents against a NotificationPort."""

    kind = "remind"

    def __init__(
        self,
        notifications: NotificationPort,
        store: ReminderStore,
        grace_seconds: float | None = None,
        now: Callable[[], datetime] = local_now,
    ) -> None:
        super().__init__(grace_seconds)
        self._notifications = notifications
        self._store = store
        self._now = now

    async def plan(self, intent: RemindIntent) -> Plan | ExecutionResult:
        if not isinstance(intent, RemindIntent):
            return ExecutionResult.failure("invalid-intent")
        if not intent.message:
            return ExecutionResult.failure("missing-message", "Reminder message is required")

        rtype = intent.reminder_type
        if rtype == "one-time" and intent.duration_minutes < 1:
            return ExecutionResult.failure("missing-duration", "Duration is required for one-time reminders")
        if rtype in ("daily", "weekly", "custom"):
            if not intent.time:
                return ExecutionResult.failure("missing-time", "Time is required for scheduled reminders")
            if parse_clock_time(intent.time) is None:
                return ExecutionResult.failure("invalid-time", f"Unrecognised time '{intent.time}'")
        if rtype in ("weekly", "custom") and not intent.days:
            return ExecutionResult.failure("missing-days", "Days are required for weekly and custom reminders")

        try:
            granted = await self._notifications.request_permission()
        except NotificationError as exc:
            logger.warning("Permission request failed: %s", exc)
            granted = False
        if not granted:
            return ExecutionResult.failure(
                "permissions-denied",
                "Notifications are turned off. Enable them to get reminders.",
                needs_permission=True,
            )

        plan = ReminderPlan(
            message=intent.message,
            reminder_type=rtype or "",
            time=intent.time,
            duration_minutes=intent.duration_minutes,
            days=list(intent.days),
        )
        plan.confirm_message = confirm_message(plan)
        return plan

    def describe(self, plan: Plan) -> str | None:
        if isinstance(plan, ReminderPlan):
            return format_confirmation(plan, now=self._now())
        return None

    async def _schedule(self, plan: ReminderPlan) -> list[str]:
        if plan.reminder_type == "one-time":
            return await self._notifications.schedule_once(plan.message, plan.duration_minutes * 60)

        hour, minute = parse_clock_time(plan.time)
        if plan.reminder_type == "daily":
            return await self._notifications.schedule_daily(plan.message, hour, minute)

        ids: list[str] = []
        for day in plan.days:
            ids.extend(await self._notifications.schedule_weekly(
                plan.message, DAY_NAMES.index(day.lower()), hour, minute,
            ))
        return ids

    async def apply(self, plan: Plan) -> ExecutionResult:
        if not isinstance(plan, ReminderPlan):
            return ExecutionResult.failure("invalid-plan", plan=plan)
        if plan.reminder_type not in ("one-time", "daily", "weekly", "custom"):
            return ExecutionResult.failure("unknown-type", plan=plan)

        try:
            ids = await self._schedule(plan)
        except NotificationError as exc:
            logger.error("Scheduling reminder '%s' failed: %s", plan.message, exc)
            return ExecutionResult.failure("scheduling-failed", str(exc), plan=plan)

        if not ids:
            return ExecutionResult.failure("scheduling-failed", "No notification was scheduled", plan=plan)

        reminder_id = None
        try:
            stored = await self._store.add(
                message=plan.message,
                reminder_type=plan.reminder_type,
                notification_ids=ids,
                time=plan.time,
                duration_minutes=plan.duration_minutes,
                days=plan.days,
            )
            reminder_id = stored.id
        except StorageError as exc:
            # The notifications are scheduled; only the listing is lost
            logger.error("Failed to store reminder '%s': %s", plan.message, exc)

        return ExecutionResult(
            ok=True,
            plan=plan,
            notification_ids=ids,
            confirmation=format_confirmation(plan, now=self._now()),
            undo=UndoRecord(kind="remind", notification_ids=ids, reminder_id=reminder_id),
        )

    async def _compensate(self, record: UndoRecord) -> None:
        if record.notification_ids:
            await self._notifications.cancel(record.notification_ids)
        if record.reminder_id:
            await self._store.deactivate(record.reminder_id)
