"""Shared test fixtures and configuration.

Sets up fake environment variables so focusvoice.config doesn't sys.exit(),
and provides in-memory storage plus fake blocking / notification backends.
"""

import os

# Patch env vars BEFORE any focusvoice imports
os.environ.setdefault("TELEGRAM_BOT_TOKEN", "fake-token-for-tests")
os.environ.setdefault("LLM_API_KEY", "fake-llm-key-for-tests")
os.environ.setdefault("LLM_PROVIDER", "openai")
os.environ.setdefault("ALLOWED_USER_IDS", "12345")
os.environ.setdefault("PREMIUM_USER_IDS", "999")
os.environ.setdefault("DATABASE_PATH", ":memory:")
os.environ.setdefault("AI_INTENTS_ENABLED", "false")

import copy

import pytest

from focusvoice.ports.blocking_port import BlockingError
from focusvoice.ports.storage_port import StorageError


class MemoryStorage:
    """Dict-backed StoragePort. Values are deep-copied like a real store."""

    def __init__(self, fail_reads: bool = False, fail_writes: bool = False) -> None:
        self.data: dict = {}
        self.fail_reads = fail_reads
        self.fail_writes = fail_writes

    async def get(self, key):
        if self.fail_reads:
            raise StorageError("read failed")
        return copy.deepcopy(self.data.get(key))

    async def set(self, key, value):
        if self.fail_writes:
            raise StorageError("write failed")
        self.data[key] = copy.deepcopy(value)

    async def delete(self, key):
        if self.fail_writes:
            raise StorageError("delete failed")
        self.data.pop(key, None)


class FakeBlocking:
    """BlockingPort that knows a fixed set of targets and records calls."""

    def __init__(self, known: dict | None = None, available: bool = True) -> None:
        self.known = known if known is not None else {
            "social": {"nickname": "social", "apps": ["instagram", "tiktok"]},
            "instagram": {"nickname": "instagram", "apps": ["instagram"]},
            "facebook": {"nickname": "facebook", "apps": ["facebook"]},
        }
        self.available = available
        self.fail_start = False
        self.started: list = []
        self.stopped = 0

    def is_available(self):
        return self.available

    async def resolve(self, alias_name):
        return self.known.get((alias_name or "").lower())

    async def start(self, resource, duration_seconds):
        if self.fail_start:
            raise BlockingError("backend down")
        self.started.append((resource, duration_seconds))
        return f"session-{len(self.started)}"

    async def stop(self):
        self.stopped += 1


class FakeNotifier:
    """NotificationPort that hands out sequential ids and tracks live ones."""

    def __init__(self, granted: bool = True) -> None:
        self.granted = granted
        self.scheduled: dict = {}
        self.calls: list = []
        self._next = 0

    def _id(self):
        self._next += 1
        return f"n{self._next}"

    async def request_permission(self):
        return self.granted

    async def schedule_once(self, message, delay_seconds):
        nid = self._id()
        self.scheduled[nid] = ("once", message, delay_seconds)
        self.calls.append(("once", message, delay_seconds))
        return [nid]

    async def schedule_daily(self, message, hour, minute):
        nid = self._id()
        self.scheduled[nid] = ("daily", message, hour, minute)
        self.calls.append(("daily", message, hour, minute))
        return [nid]

    async def schedule_weekly(self, message, weekday, hour, minute):
        nid = self._id()
        self.scheduled[nid] = ("weekly", message, weekday, hour, minute)
        self.calls.append(("weekly", message, weekday, hour, minute))
        return [nid]

    async def cancel(self, notification_ids):
        for nid in notification_ids:
            self.scheduled.pop(nid, None)


@pytest.fixture
def storage():
    return MemoryStorage()


@pytest.fixture
def failing_storage():
    return MemoryStorage(fail_reads=True, fail_writes=True)


@pytest.fixture
def blocking():
    return FakeBlocking()


@pytest.fixture
def notifier():
    return FakeNotifier()


@pytest.fixture
def tmp_db_path(tmp_path):
    """Return a temporary SQLite DB path."""
    return str(tmp_path / "test_focusvoice.db")
