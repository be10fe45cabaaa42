"""FocusVoice — Reminder store (list of StoredReminder under "user_reminders")."""

from __future__ import annotations

import logging
import uuid
from dataclasses import asdict
from typing import TYPE_CHECKING

from focusvoice.data.models import StoredReminder

if TYPE_CHECKING:
    from focusvoice.ports.storage_port import StoragePort

logger = logging.getLogger(__name__)

REMINDERS_KEY = "user_reminders"


class ReminderStore:
    def __init__(self, storage: StoragePort) -> None:
        self._storage = storage

    async def list_reminders(self, active_only: bool = True) -> list[StoredReminder]:
        raw = await self._storage.get(REMINDERS_KEY) or []
        reminders = [StoredReminder(**item) for item in raw]
        if active_only:
            return [r for r in reminders if r.active]
        return reminders

    async def _save(self, reminders: list[StoredReminder]) -> None:
        await self._storage.set(REMINDERS_KEY, [asdict(r) for r in reminders])

    async def add(
        self,
        message: str,
        reminder_type: str,
        notification_ids: list[str],
        time: str | None = None,
        duration_minutes: int = 0,
        days: list[str] | None = None,
    ) -> StoredReminder:
        reminder = StoredReminder(
            id=uuid.uuid4().hex[:12],
            message=message,
            reminder_type=reminder_type,
            time=time,
            duration_minutes=duration_minutes,
            days=list(days or []),
            notification_ids=list(notification_ids),
        )
        reminders = await self.list_reminders(active_only=False)
        reminders.append(reminder)
        await self._save(reminders)
        logger.info("Stored reminder %s: '%s' (%s)", reminder.id, message, reminder_type)
        return reminder

    async def deactivate(self, reminder_id: str) -> StoredReminder | None:
        """Mark a reminder inactive; returns it, or None if unknown."""
        reminders = await self.list_reminders(active_only=False)
        for reminder in reminders:
            if reminder.id == reminder_id:
                reminder.active = False
                await self._save(reminders)
                logger.info("Deactivated reminder %s", reminder_id)
                return reminder
        return None
