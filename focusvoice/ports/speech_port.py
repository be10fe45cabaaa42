"""Speech port — abstract source of transcribed utterances.

The source pushes text with a final/interim flag; audio handling is the
source's own business.
"""

from __future__ import annotations

from typing import Awaitable, Callable, Protocol

ResultCallback = Callable[[str, bool], Awaitable[None]]
ErrorCallback = Callable[[Exception], Awaitable[None]]


class SpeechSourcePort(Protocol):
    """Abstract speech-to-text stream."""

    async def start(self, on_result: ResultCallback, on_error: ErrorCallback) -> None: ...

    async def stop(self) -> None: ...
