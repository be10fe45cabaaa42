"""Premium port — answers whether the current user has unlimited cloud parsing."""

from __future__ import annotations

from typing import Protocol


class PremiumPort(Protocol):
    """Abstract premium-status lookup."""

    async def is_premium(self) -> bool: ...
