"""
FocusVoice — Alias store.

Named blocking targets the user can say out loud: "social", "games",
"work stuff". Lookup is forgiving: exact nickname, then synonyms, then the
closest nickname by edit distance, since transcription regularly
mangles app names ("instagarm").
"""

from __future__ import annotations

import logging
import uuid
from dataclasses import asdict
from datetime import datetime
from typing import TYPE_CHECKING, Iterable

from focusvoice.data.models import Alias

if TYPE_CHECKING:
    from focusvoice.ports.storage_port import StoragePort

logger = logging.getLogger(__name__)

ALIASES_KEY = "aliases"
MIN_MATCH_SCORE = 0.5


def levenshtein(a: str, b: str) -> int:
    """Classic edit distance (insert, delete, substitute)."""
    if a == b:
        return 0
    if not a:
        return len(b)
    if not b:
        return len(a)

    previous = list(range(len(b) + 1))
    for i, ca in enumerate(a, start=1):
        current = [i]
        for j, cb in enumerate(b, start=1):
            current.append(min(
                previous[j] + 1,
                current[j - 1] + 1,
                previous[j - 1] + (ca != cb),
            ))
        previous = current
    return previous[-1]


def similarity(a: str, b: str) -> float:
    """1.0 for identical strings, 0.0 for nothing in common."""
    a, b = a.lower().strip(), b.lower().strip()
    longest = max(len(a), len(b))
    if longest == 0:
        return 1.0
    return 1.0 - levenshtein(a, b) / longest


def find_closest(
    query: str, candidates: Iterable[str], min_score: float = MIN_MATCH_SCORE,
) -> tuple[str, float] | None:
    """Best (candidate, score) at or above min_score, or None."""
    best: tuple[str, float] | None = None
    for candidate in candidates:
        score = similarity(query, candidate)
        if score >= min_score and (best is None or score > best[1]):
            best = (candidate, score)
    return best


class AliasStore:
    """Aliases persisted as a list under the "aliases" storage key."""

    def __init__(self, storage: StoragePort) -> None:
        self._storage = storage

    async def list_aliases(self) -> list[Alias]:
        raw = await self._storage.get(ALIASES_KEY) or []
        aliases = []
        for item in raw:
            try:
                aliases.append(Alias(**item))
            except TypeError as exc:
                logger.warning("Skipping malformed alias %r: %s", item, exc)
        return aliases

    async def nicknames(self) -> list[str]:
        return [a.nickname for a in await self.list_aliases()]

    async def _save(self, aliases: list[Alias]) -> None:
        await self._storage.set(ALIASES_KEY, [asdict(a) for a in aliases])

    async def upsert_alias(
        self,
        nickname: str,
        tokens: dict[str, list[str]],
        synonyms: list[str] | None = None,
    ) -> Alias:
        """Create the alias, or replace tokens/synonyms of an existing one."""
        nickname = nickname.strip().lower()
        if not nickname:
            raise ValueError("Alias nickname must not be empty")

        aliases = await self.list_aliases()
        for alias in aliases:
            if alias.nickname == nickname:
                alias.tokens = tokens
                alias.synonyms = [s.lower() for s in (synonyms or alias.synonyms)]
                alias.updated_at = datetime.now().isoformat(timespec="seconds")
                await self._save(aliases)
                logger.info("Updated alias '%s'", nickname)
                return alias

        alias = Alias(
            id=uuid.uuid4().hex[:12],
            nickname=nickname,
            tokens=tokens,
            synonyms=[s.lower() for s in (synonyms or [])],
        )
        aliases.append(alias)
        await self._save(aliases)
        logger.info("Created alias '%s'", nickname)
        return alias

    async def remove_alias(self, nickname: str) -> bool:
        nickname = nickname.strip().lower()
        aliases = await self.list_aliases()
        kept = [a for a in aliases if a.nickname != nickname]
        if len(kept) == len(aliases):
            return False
        await self._save(kept)
        logger.info("Removed alias '%s'", nickname)
        return True

    async def resolve_alias(self, name: str) -> Alias | None:
        """Exact nickname, then synonym, then fuzzy nickname match."""
        query = (name or "").strip().lower()
        if not query:
            return None

        aliases = await self.list_aliases()
        for alias in aliases:
            if alias.nickname == query:
                return alias
        for alias in aliases:
            if query in alias.synonyms:
                return alias

        closest = find_closest(query, [a.nickname for a in aliases])
        if closest is None:
            logger.info("No alias matches '%s'", query)
            return None
        logger.info("Fuzzy alias match '%s' → '%s' (%.2f)", query, closest[0], closest[1])
        return next(a for a in aliases if a.nickname == closest[0])

    async def record_use(self, nickname: str) -> None:
        aliases = await self.list_aliases()
        for alias in aliases:
            if alias.nickname == nickname:
                alias.usage_count += 1
                await self._save(aliases)
                return
