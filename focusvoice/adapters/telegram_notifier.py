"""Telegram notification adapter — implements NotificationPort.

Reminders are python-telegram-bot JobQueue jobs that message the user's
chat. The job name doubles as the notification id, so cancelling is a
lookup by name.
"""

from __future__ import annotations

import logging
import uuid
from datetime import time as dt_time
from zoneinfo import ZoneInfo

from telegram.ext import ContextTypes, JobQueue

from focusvoice.ports.notification_port import NotificationError

logger = logging.getLogger(__name__)


async def _send_reminder(context: ContextTypes.DEFAULT_TYPE) -> None:
    job = context.job
    await context.bot.send_message(chat_id=job.chat_id, text=f"⏰ Reminder: {job.data}")


class TelegramNotifier:
    """Telegram JobQueue implementation of NotificationPort."""

    def __init__(self, job_queue: JobQueue, chat_id: int, timezone: str | None = None) -> None:
        if timezone is None:
            from focusvoice.config import settings
            timezone = settings.TIMEZONE

        self._job_queue = job_queue
        self._chat_id = chat_id
        self._tz = ZoneInfo(timezone)

    def _new_id(self, kind: str) -> str:
        return f"reminder:{self._chat_id}:{kind}:{uuid.uuid4().hex[:8]}"

    async def request_permission(self) -> bool:
        # A chat that messaged the bot can always be messaged back
        return self._job_queue is not None

    async def schedule_once(self, message: str, delay_seconds: int) -> list[str]:
        job_id = self._new_id("once")
        try:
            self._job_queue.run_once(
                _send_reminder, when=delay_seconds, data=message,
                chat_id=self._chat_id, name=job_id,
            )
        except (RuntimeError, ValueError) as exc:
            raise NotificationError(f"Could not schedule reminder: {exc}") from exc
        logger.info("Scheduled one-time reminder %s in %ds", job_id, delay_seconds)
        return [job_id]

    async def schedule_daily(self, message: str, hour: int, minute: int) -> list[str]:
        job_id = self._new_id("daily")
        try:
            self._job_queue.run_daily(
                _send_reminder, time=dt_time(hour=hour, minute=minute, tzinfo=self._tz),
                data=message, chat_id=self._chat_id, name=job_id,
            )
        except (RuntimeError, ValueError) as exc:
            raise NotificationError(f"Could not schedule reminder: {exc}") from exc
        logger.info("Scheduled daily reminder %s at %02d:%02d", job_id, hour, minute)
        return [job_id]

    async def schedule_weekly(
        self, message: str, weekday: int, hour: int, minute: int,
    ) -> list[str]:
        job_id = self._new_id(f"weekly{weekday}")
        # JobQueue counts days from Sunday=0
        ptb_day = (weekday + 1) % 7
        try:
            self._job_queue.run_daily(
                _send_reminder, time=dt_time(hour=hour, minute=minute, tzinfo=self._tz),
                days=(ptb_day,), data=message, chat_id=self._chat_id, name=job_id,
            )
        except (RuntimeError, ValueError) as exc:
            raise NotificationError(f"Could not schedule reminder: {exc}") from exc
        logger.info("Scheduled weekly reminder %s (day %d) at %02d:%02d", job_id, weekday, hour, minute)
        return [job_id]

    async def cancel(self, notification_ids: list[str]) -> None:
        for job_id in notification_ids:
            for job in self._job_queue.get_jobs_by_name(job_id):
                job.schedule_removal()
            logger.info("Cancelled reminder %s", job_id)
