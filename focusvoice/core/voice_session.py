"""
FocusVoice — Utterance session.

Sits between a speech source and the command pipeline for one listening
session:
  - interim transcripts are never parsed
  - each final transcript restarts a settle timer; only the latest final
    text is delivered when it fires
  - text already delivered in this session is suppressed
  - fragments that look unfinished ("block instagram for") are held until
    more speech arrives or the session ends
  - a watchdog fails the session if the source never reports it started
"""

from __future__ import annotations

import asyncio
import logging
import re
from typing import TYPE_CHECKING, Awaitable, Callable

from focusvoice.core.reminder_parser import has_reminder_keyword

if TYPE_CHECKING:
    from focusvoice.ports.speech_port import SpeechSourcePort

logger = logging.getLogger(__name__)

DEFAULT_START_TIMEOUT = 1.5
DEFAULT_LISTEN_TIMEOUT = 10.0

UtteranceCallback = Callable[[str], Awaitable[None]]
FailureCallback = Callable[[Exception], Awaitable[None]]


class SpeechStartTimeout(Exception):
    """The speech source never confirmed that capture started."""


def normalize_utterance(text: str) -> str:
    return re.sub(r"\s+", " ", text or "").strip().lower().rstrip(".!?,")


def is_incomplete(text: str) -> bool:
    """Heuristic for a transcript cut off mid-command."""
    norm = normalize_utterance(text)
    words = norm.split()
    if len(words) < 3:
        return True
    if words[-1] == "for":
        return True
    if has_reminder_keyword(norm) and len(words) < 5:
        return True
    return False


class UtteranceSession:
    """Debounces one stream of transcripts into at most one delivery per utterance."""

    def __init__(
        self,
        on_utterance: UtteranceCallback,
        settle_seconds: float | None = None,
        start_timeout: float = DEFAULT_START_TIMEOUT,
        listen_timeout: float = DEFAULT_LISTEN_TIMEOUT,
        on_failure: FailureCallback | None = None,
    ) -> None:
        if settle_seconds is None:
            from focusvoice.config import settings
            settle_seconds = settings.UTTERANCE_SETTLE_SECONDS

        self._on_utterance = on_utterance
        self._on_failure = on_failure
        self.settle_seconds = settle_seconds
        self.start_timeout = start_timeout
        self.listen_timeout = listen_timeout

        self._source: SpeechSourcePort | None = None
        self._settle_task: asyncio.Task | None = None
        self._watchdog_task: asyncio.Task | None = None
        self._listen_task: asyncio.Task | None = None

        self.started = False
        self.active = False
        self.error: Exception | None = None
        self.last_interim = ""
        self._pending = ""
        self._held = ""
        self._delivered: set[str] = set()

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def start(self, source: SpeechSourcePort | None = None) -> None:
        """Begin listening; the watchdog runs until mark_started()."""
        self.active = True
        self._source = source
        self._watchdog_task = asyncio.create_task(self._watchdog())
        if source is not None:
            await source.start(self.on_result, self.on_error)

    def mark_started(self) -> None:
        """Called once the source confirms capture is running."""
        self.started = True
        if self._watchdog_task is not None:
            self._watchdog_task.cancel()
            self._watchdog_task = None
        if self._listen_task is None:
            self._listen_task = asyncio.create_task(self._listen_limit())

    async def stop(self) -> None:
        """End the session, delivering a held fragment if nothing else was said."""
        if not self.active:
            return
        self.active = False
        for task in (self._settle_task, self._watchdog_task, self._listen_task):
            if task is not None and task is not asyncio.current_task():
                task.cancel()
        self._settle_task = self._watchdog_task = self._listen_task = None

        if self._source is not None:
            await self._source.stop()

        leftover = self._pending or self._held
        self._pending = self._held = ""
        if leftover and not self.error:
            await self._deliver(leftover, force=True)

    async def _watchdog(self) -> None:
        await asyncio.sleep(self.start_timeout)
        if not self.started:
            self.error = SpeechStartTimeout(
                f"Speech capture did not start within {self.start_timeout:.1f}s"
            )
            logger.warning("%s", self.error)
            self._watchdog_task = None
            await self.stop()
            if self._on_failure is not None:
                await self._on_failure(self.error)

    async def _listen_limit(self) -> None:
        await asyncio.sleep(self.listen_timeout)
        logger.info("Listen limit reached (%.0fs)", self.listen_timeout)
        self._listen_task = None
        await self.stop()

    # ------------------------------------------------------------------
    # Source callbacks
    # ------------------------------------------------------------------

    async def on_result(self, text: str, is_final: bool) -> None:
        if not self.active:
            return
        if not self.started:
            self.mark_started()
        if not is_final:
            self.last_interim = text
            return

        self._pending = text
        if self._settle_task is not None:
            self._settle_task.cancel()
        self._settle_task = asyncio.create_task(self._settle())

    async def on_error(self, exc: Exception) -> None:
        logger.error("Speech source error: %s", exc)
        self.error = exc
        await self.stop()
        if self._on_failure is not None:
            await self._on_failure(exc)

    async def _settle(self) -> None:
        await asyncio.sleep(self.settle_seconds)
        self._settle_task = None
        text, self._pending = self._pending, ""
        if text:
            await self._deliver(text)

    async def _deliver(self, text: str, force: bool = False) -> None:
        norm = normalize_utterance(text)
        if not norm:
            return
        if norm in self._delivered:
            logger.debug("Suppressed duplicate utterance: %s", norm)
            return
        if not force and is_incomplete(text):
            logger.debug("Holding incomplete utterance: %s", norm)
            self._held = text
            return

        self._held = ""
        self._delivered.add(norm)
        logger.info("Utterance settled: %s", norm)
        await self._on_utterance(text.strip())
