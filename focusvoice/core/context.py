"""
FocusVoice — Conversation Context.

Short-lived memory of the last applied action so follow-ups can refer back
to it: "block it for longer", "stop that", "do it again",
"add 10 minutes". The context expires after a TTL and is overwritten by
every applied action (last write wins).
"""

from __future__ import annotations

import logging
import re
import time
from dataclasses import asdict, dataclass, field
from typing import TYPE_CHECKING, Any

from focusvoice.ports.storage_port import StorageError

if TYPE_CHECKING:
    from focusvoice.ports.storage_port import StoragePort

logger = logging.getLogger(__name__)

CONTEXT_KEY = "conversation_context"
DEFAULT_FOLLOWUP_MINUTES = 30


@dataclass
class ConversationContext:
    """Snapshot of the last applied action."""

    last_action: str | None = None
    last_target: str | None = None
    last_duration_minutes: int | None = None
    last_intent: dict[str, Any] | None = None
    last_plan: dict[str, Any] | None = None
    timestamp: float = field(default_factory=time.time)

    def is_expired(self, ttl_seconds: float, now: float | None = None) -> bool:
        now = time.time() if now is None else now
        return now - self.timestamp > ttl_seconds


# ---------------------------------------------------------------------------
# Store
# ---------------------------------------------------------------------------


class ContextStore:
    """Storage-backed holder of the single live ConversationContext.

    Reads hit an in-memory copy while it is fresh; storage is the source of
    truth across restarts. Storage failures degrade to "no context".
    """

    def __init__(self, storage: StoragePort, ttl_seconds: float | None = None) -> None:
        if ttl_seconds is None:
            from focusvoice.config import settings
            ttl_seconds = settings.CONTEXT_TTL_SECONDS

        self._storage = storage
        self._ttl = ttl_seconds
        self._cached: ConversationContext | None = None

    async def get(self) -> ConversationContext | None:
        """Return the live context, or None when absent or expired."""
        if self._cached is not None and not self._cached.is_expired(self._ttl):
            return self._cached

        try:
            raw = await self._storage.get(CONTEXT_KEY)
        except StorageError as exc:
            logger.warning("Context read failed: %s", exc)
            return None

        if not raw:
            self._cached = None
            return None

        try:
            context = ConversationContext(**raw)
        except TypeError as exc:
            logger.warning("Discarding malformed context %r: %s", raw, exc)
            await self.clear()
            return None

        if context.is_expired(self._ttl):
            logger.debug("Context expired (age %.0fs)", time.time() - context.timestamp)
            await self.clear()
            return None

        self._cached = context
        return context

    async def update(
        self,
        action: str,
        target: str | None = None,
        duration_minutes: int | None = None,
        intent: dict[str, Any] | None = None,
        plan: dict[str, Any] | None = None,
    ) -> ConversationContext:
        """Overwrite the context after an applied action."""
        context = ConversationContext(
            last_action=action or None,
            last_target=target or None,
            last_duration_minutes=duration_minutes or None,
            last_intent=intent,
            last_plan=plan,
        )
        self._cached = context
        try:
            await self._storage.set(CONTEXT_KEY, asdict(context))
        except StorageError as exc:
            logger.warning("Context write failed, keeping in memory only: %s", exc)
        logger.info(
            "Context updated: action=%s target=%s duration=%s",
            context.last_action, context.last_target, context.last_duration_minutes,
        )
        return context

    async def clear(self) -> None:
        self._cached = None
        try:
            await self._storage.delete(CONTEXT_KEY)
        except StorageError as exc:
            logger.warning("Context clear failed: %s", exc)
        logger.info("Context cleared")


# ---------------------------------------------------------------------------
# Reference resolution
# ---------------------------------------------------------------------------

_PRONOUN_RE = re.compile(r"\b(it|that|them|those)\b", re.IGNORECASE)
_AGAIN_RE = re.compile(r"\bagain\b", re.IGNORECASE)
_LONGER_RE = re.compile(r"\b(longer|extend|more time|keep going)\b", re.IGNORECASE)
_ADD_RE = re.compile(r"add\s+(\d+)\s*(?:minutes?|mins?|m)\b", re.IGNORECASE)
_MORE_RE = re.compile(r"for\s+(\d+)\s*more\s*(?:minutes?|mins?|m)\b", re.IGNORECASE)


def resolve_pronouns(text: str, context: ConversationContext | None) -> str:
    """Replace it/that/them/those with the last target; expand "again".

    "Block it again" after blocking social for 45 minutes becomes
    "Block social for 45 minutes".
    """
    if context is None or not text:
        return text

    if context.last_target and _PRONOUN_RE.search(text):
        text = _PRONOUN_RE.sub(context.last_target, text)
        logger.debug("Resolved pronoun: %s", text)

    last_intent = context.last_intent or {}
    if _AGAIN_RE.search(text) and last_intent.get("action") == "block":
        target = last_intent.get("target") or context.last_target
        if target:
            duration = (
                last_intent.get("duration_minutes")
                or context.last_duration_minutes
                or DEFAULT_FOLLOWUP_MINUTES
            )
            text = f"Block {target} for {duration} minutes"
            logger.debug("Resolved 'again': %s", text)

    return text


def resolve_relative_duration(
    text: str, context: ConversationContext | None,
) -> dict[str, Any] | None:
    """Resolve "longer", "add N minutes", "for N more minutes".

    Returns {"target", "duration_minutes"} or None when nothing applies, in
    which case the caller continues with normal parsing.
    """
    if context is None or not text or not context.last_target:
        return None

    last = context.last_duration_minutes

    if _LONGER_RE.search(text) and last:
        # half-up rounding: 15 min → 23, not banker's 22
        return {"target": context.last_target, "duration_minutes": int(last * 1.5 + 0.5)}

    add = _ADD_RE.search(text)
    if add and last:
        return {"target": context.last_target, "duration_minutes": last + int(add.group(1))}

    more = _MORE_RE.search(text)
    if more:
        base = last or DEFAULT_FOLLOWUP_MINUTES
        return {"target": context.last_target, "duration_minutes": base + int(more.group(1))}

    return None
