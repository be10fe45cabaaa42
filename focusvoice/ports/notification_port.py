"""Notification port — abstract interface for scheduling reminders.

Core modules depend on this protocol, never on a specific messaging provider.
Every schedule call returns the ids needed to cancel it later.
"""

from __future__ import annotations

from typing import Protocol


class NotificationError(Exception):
    """Raised when a notification cannot be scheduled or cancelled."""


class NotificationPort(Protocol):
    """Abstract notification scheduler used by the reminder executor."""

    async def request_permission(self) -> bool: ...

    async def schedule_once(self, message: str, delay_seconds: int) -> list[str]: ...

    async def schedule_daily(self, message: str, hour: int, minute: int) -> list[str]: ...

    async def schedule_weekly(
        self, message: str, weekday: int, hour: int, minute: int
    ) -> list[str]:
        """Schedule a weekly repeat; weekday uses Python numbering (Monday=0)."""
        ...

    async def cancel(self, notification_ids: list[str]) -> None: ...
