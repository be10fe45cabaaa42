"""
FocusVoice — Cloud usage quota.

Counts remote parser calls per calendar day. The stored record is
{"date": "YYYY-MM-DD", "count": N} under one key; a record from an earlier
day reads as zero, so there is no midnight reset job.
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from datetime import date
from typing import TYPE_CHECKING, Any, Callable

from focusvoice.ports.storage_port import StorageError

if TYPE_CHECKING:
    from focusvoice.ports.premium_port import PremiumPort
    from focusvoice.ports.storage_port import StoragePort

logger = logging.getLogger(__name__)

USAGE_KEY = "ai_usage"


@dataclass
class UsageRecord:
    date: str
    count: int = 0


@dataclass
class UsageStatus:
    remaining: float      # math.inf for premium users
    used: int
    limit: int
    can_use: bool
    is_premium: bool = False


class UsageTracker:
    """Daily quota gate for the remote parser."""

    def __init__(
        self,
        storage: StoragePort,
        premium: PremiumPort | None = None,
        daily_limit: int | None = None,
        today: Callable[[], date] = date.today,
    ) -> None:
        if daily_limit is None:
            from focusvoice.config import settings
            daily_limit = settings.FREE_DAILY_CLOUD_LIMIT

        self._storage = storage
        self._premium = premium
        self._limit = daily_limit
        self._today = today

    def _today_str(self) -> str:
        return self._today().isoformat()

    async def get_usage_today(self) -> UsageRecord:
        """Read today's record. Raises StorageError when the read fails."""
        today = self._today_str()
        raw: Any = await self._storage.get(USAGE_KEY)
        if not isinstance(raw, dict) or raw.get("date") != today:
            return UsageRecord(date=today, count=0)
        return UsageRecord(date=today, count=int(raw.get("count") or 0))

    async def _is_premium(self) -> bool:
        if self._premium is None:
            return False
        try:
            return await self._premium.is_premium()
        except Exception as exc:
            # Premium lookup failures fail open
            logger.warning("Premium check failed, assuming premium: %s", exc)
            return True

    async def get_remaining_cloud_calls(self) -> UsageStatus:
        if await self._is_premium():
            return UsageStatus(
                remaining=math.inf, used=0, limit=self._limit, can_use=True, is_premium=True,
            )

        try:
            record = await self.get_usage_today()
        except StorageError as exc:
            # Usage read failures fail closed for free users
            logger.error("Usage read failed, blocking cloud calls: %s", exc)
            return UsageStatus(remaining=0, used=0, limit=self._limit, can_use=False)

        remaining = max(0, self._limit - record.count)
        return UsageStatus(
            remaining=remaining, used=record.count, limit=self._limit, can_use=remaining > 0,
        )

    async def increment_cloud_usage(self) -> UsageRecord:
        try:
            record = await self.get_usage_today()
        except StorageError as exc:
            logger.warning("Usage read failed before increment, counting from 0: %s", exc)
            record = UsageRecord(date=self._today_str(), count=0)

        record.count += 1
        try:
            await self._storage.set(USAGE_KEY, {"date": record.date, "count": record.count})
        except StorageError as exc:
            logger.error("Failed to persist cloud usage: %s", exc)
        logger.info("Cloud usage today: %d/%d", record.count, self._limit)
        return record

    async def reset_usage(self) -> None:
        try:
            await self._storage.delete(USAGE_KEY)
        except StorageError as exc:
            logger.error("Failed to reset cloud usage: %s", exc)

    async def get_usage_stats(self) -> dict[str, Any]:
        """Summary for the /usage command."""
        status = await self.get_remaining_cloud_calls()
        return {
            "date": self._today_str(),
            "used": status.used,
            "limit": status.limit,
            "remaining": None if math.isinf(status.remaining) else int(status.remaining),
            "is_premium": status.is_premium,
            "can_use": status.can_use,
        }
