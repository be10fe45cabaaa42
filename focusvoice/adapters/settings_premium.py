"""Premium adapter — implements PremiumPort from the PREMIUM_USER_IDS setting."""

from __future__ import annotations


class SettingsPremium:
    def __init__(self, user_id: int, premium_ids: list[int] | None = None) -> None:
        if premium_ids is None:
            from focusvoice.config import settings
            premium_ids = settings.PREMIUM_USER_IDS

        self._user_id = user_id
        self._premium_ids = set(premium_ids)

    async def is_premium(self) -> bool:
        return self._user_id in self._premium_ids
