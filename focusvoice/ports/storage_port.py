"""Storage port — abstract key-value persistence.

Conversation context, usage counters, aliases and reminders are all stored
as JSON-serialisable values under string keys. Core modules depend on this
protocol, never on a specific database.
"""

from __future__ import annotations

from typing import Any, Protocol


class StorageError(Exception):
    """Raised when a storage read or write fails."""


class StoragePort(Protocol):
    """Abstract async key-value store used by core modules."""

    async def get(self, key: str) -> Any | None: ...

    async def set(self, key: str, value: Any) -> None: ...

    async def delete(self, key: str) -> None: ...
