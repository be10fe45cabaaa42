"""
FocusVoice — Data Models.

Records that persist through the StoragePort across restarts: the user's
named blocking targets (aliases) and the reminders they scheduled.
Both are stored as lists of plain dicts (dataclasses.asdict).
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime


def _now_iso() -> str:
    return datetime.now().isoformat(timespec="seconds")


@dataclass
class Alias:
    """A named blocking target, e.g. "social" → Instagram, TikTok, twitter.com.

    tokens holds whatever the blocking backend needs:
    {"apps": [...], "categories": [...], "domains": [...]}.
    """

    id: str
    nickname: str
    tokens: dict[str, list[str]] = field(default_factory=dict)
    synonyms: list[str] = field(default_factory=list)
    created_at: str = field(default_factory=_now_iso)
    updated_at: str = field(default_factory=_now_iso)
    usage_count: int = 0

    def has_tokens(self) -> bool:
        return any(self.tokens.get(k) for k in ("apps", "categories", "domains"))


@dataclass
class StoredReminder:
    """A reminder the user scheduled, with the ids needed to cancel it."""

    id: str
    message: str
    reminder_type: str                   # "one-time" | "daily" | "weekly" | "custom"
    time: str | None = None              # clock string as spoken
    duration_minutes: int = 0            # one-time delay
    days: list[str] = field(default_factory=list)
    notification_ids: list[str] = field(default_factory=list)
    created_at: str = field(default_factory=_now_iso)
    active: bool = True
