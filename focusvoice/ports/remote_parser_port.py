"""Remote parser port — abstract interface to a network NLU provider.

Implementations must bound every call with a timeout and return None
instead of raising when the provider fails.
"""

from __future__ import annotations

from typing import Any, Protocol


class RemoteParserError(Exception):
    """Raised by remote parser internals; never escapes parse()."""


class RemoteParserPort(Protocol):
    """Abstract remote intent parser."""

    def is_available(self) -> bool: ...

    async def parse(self, text: str) -> dict[str, Any] | None:
        """Return {"action", "target", "duration_minutes"} or None."""
        ...
