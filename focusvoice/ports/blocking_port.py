"""Blocking port — abstract interface to whatever enforces a block.

Invoked only from the apply phase of the focus executor.
"""

from __future__ import annotations

from typing import Any, Protocol


class BlockingError(Exception):
    """Raised when the blocking backend cannot start or stop a block."""


class BlockingPort(Protocol):
    """Abstract blocking backend used by the focus executor."""

    def is_available(self) -> bool: ...

    async def resolve(self, alias_name: str) -> dict[str, Any] | None:
        """Resolve a spoken target to a resource token bundle, or None."""
        ...

    async def start(self, resource: dict[str, Any], duration_seconds: int) -> str:
        """Start blocking; returns a session reference."""
        ...

    async def stop(self) -> None: ...
