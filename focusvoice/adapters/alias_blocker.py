"""Alias-backed blocking adapter — implements BlockingPort.

Targets resolve through the user's AliasStore. The bot cannot enforce a
block on the user's device, so a session is a persisted record the
companion app polls; when the session ends the user
is told through the optional JobQueue.
"""

from __future__ import annotations

import logging
import time
import uuid
from typing import TYPE_CHECKING, Any

from telegram.ext import ContextTypes, JobQueue

from focusvoice.ports.blocking_port import BlockingError
from focusvoice.ports.storage_port import StorageError

if TYPE_CHECKING:
    from focusvoice.core.aliases import AliasStore
    from focusvoice.ports.storage_port import StoragePort

logger = logging.getLogger(__name__)

SESSION_KEY = "blocking_session"


async def _announce_end(context: ContextTypes.DEFAULT_TYPE) -> None:
    job = context.job
    await context.bot.send_message(chat_id=job.chat_id, text=f"✅ Focus session over: {job.data} unblocked.")


class AliasBlocker:
    """BlockingPort over the alias store and a stored session record."""

    def __init__(
        self,
        aliases: AliasStore,
        storage: StoragePort,
        job_queue: JobQueue | None = None,
        chat_id: int | None = None,
    ) -> None:
        self._aliases = aliases
        self._storage = storage
        self._job_queue = job_queue
        self._chat_id = chat_id

    def is_available(self) -> bool:
        return True

    async def resolve(self, alias_name: str) -> dict[str, Any] | None:
        alias = await self._aliases.resolve_alias(alias_name)
        if alias is None or not alias.has_tokens():
            return None
        return {
            "alias_id": alias.id,
            "nickname": alias.nickname,
            "apps": list(alias.tokens.get("apps", [])),
            "categories": list(alias.tokens.get("categories", [])),
            "domains": list(alias.tokens.get("domains", [])),
        }

    async def active_session(self) -> dict[str, Any] | None:
        session = await self._storage.get(SESSION_KEY)
        if not session or session.get("ends_at", 0) <= time.time():
            return None
        return session

    async def start(self, resource: dict[str, Any], duration_seconds: int) -> str:
        session_id = uuid.uuid4().hex[:12]
        session = {
            "session_id": session_id,
            "nickname": resource.get("nickname", ""),
            "resource": resource,
            "started_at": time.time(),
            "ends_at": time.time() + duration_seconds,
        }
        try:
            await self._storage.set(SESSION_KEY, session)
        except StorageError as exc:
            raise BlockingError(f"Could not record blocking session: {exc}") from exc

        if self._job_queue is not None and self._chat_id is not None:
            self._job_queue.run_once(
                _announce_end, when=duration_seconds, data=session["nickname"],
                chat_id=self._chat_id, name=f"block-end:{session_id}",
            )
        logger.info("Blocking session %s started for %ds", session_id, duration_seconds)
        return session_id

    async def stop(self) -> None:
        try:
            session = await self._storage.get(SESSION_KEY)
            await self._storage.delete(SESSION_KEY)
        except StorageError as exc:
            raise BlockingError(f"Could not stop blocking session: {exc}") from exc

        if session and self._job_queue is not None:
            for job in self._job_queue.get_jobs_by_name(f"block-end:{session['session_id']}"):
                job.schedule_removal()
        logger.info("Blocking session stopped")
