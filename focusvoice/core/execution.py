"""
FocusVoice — Execution contract shared by the focus and reminder executors.

plan(intent)  → Plan              no side effects
apply(plan)   → ExecutionResult   performs the side effect, never retried
execute(intent, confirm)          plan, then either stop for confirmation or
                                  apply behind a grace-period timer
undo(record)                      cancel the timer, or compensate afterwards
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Literal, Union

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Plans
# ---------------------------------------------------------------------------


@dataclass
class BlockPlan:
    resource: dict[str, Any]
    duration_minutes: int
    end_label: str
    alias_name: str
    target_type: str = "alias"
    confirm_message: str = ""
    action: Literal["block"] = "block"


@dataclass
class StopPlan:
    confirm_message: str = "Stop the current blocking session?"
    action: Literal["stop"] = "stop"


@dataclass
class NoopPlan:
    reason: str
    target: str = ""
    action: Literal["noop"] = "noop"


@dataclass
class ReminderPlan:
    message: str
    reminder_type: str
    time: str | None = None
    duration_minutes: int = 0
    days: list[str] = field(default_factory=list)
    confirm_message: str = ""
    action: Literal["remind"] = "remind"


Plan = Union[BlockPlan, StopPlan, NoopPlan, ReminderPlan]


# ---------------------------------------------------------------------------
# Results and undo records
# ---------------------------------------------------------------------------


@dataclass
class UndoRecord:
    kind: Literal["block", "stop", "remind"]
    notification_ids: list[str] = field(default_factory=list)
    session_ref: str | None = None
    reminder_id: str | None = None
    pending: PendingApply | None = None
    applied: bool = False
    undone: bool = False


@dataclass
class ExecutionResult:
    ok: bool
    reason: str | None = None
    error: str | None = None
    needs_permission: bool = False
    pending_confirmation: bool = False
    plan: Plan | None = None
    confirmation: str | None = None
    notification_ids: list[str] = field(default_factory=list)
    session_ref: str | None = None
    undo: UndoRecord | None = None

    @classmethod
    def failure(cls, reason: str, error: str | None = None, **kwargs: Any) -> ExecutionResult:
        return cls(ok=False, reason=reason, error=error, **kwargs)

    @property
    def deferred(self) -> bool:
        """True when apply() runs later, behind the grace period."""
        return self.undo is not None and self.undo.pending is not None


AppliedCallback = Callable[[ExecutionResult], Awaitable[None]]


# ---------------------------------------------------------------------------
# Grace period
# ---------------------------------------------------------------------------


class PendingApply:
    """Deferred apply: runs apply_fn after delay_seconds unless cancelled first.

    Must be created inside a running event loop.
    """

    def __init__(
        self,
        apply_fn: Callable[[], Awaitable[ExecutionResult]],
        delay_seconds: float,
    ) -> None:
        self._apply_fn = apply_fn
        self.delay_seconds = delay_seconds
        self._task: asyncio.Task[ExecutionResult] = asyncio.create_task(self._run())

    async def _run(self) -> ExecutionResult:
        await asyncio.sleep(self.delay_seconds)
        return await self._apply_fn()

    @property
    def done(self) -> bool:
        return self._task.done()

    @property
    def cancelled(self) -> bool:
        return self._task.cancelled()

    def cancel(self) -> bool:
        """Cancel before the side effect starts. False once it already ran."""
        if self._task.done():
            return False
        return self._task.cancel()

    async def wait(self) -> ExecutionResult | None:
        """Await the apply; None when it was cancelled."""
        try:
            return await self._task
        except asyncio.CancelledError:
            if self._task.cancelled():
                return None
            raise


# ---------------------------------------------------------------------------
# Shared executor flow
# ---------------------------------------------------------------------------


class BaseExecutor:
    """execute()/undo() on top of the subclass's plan()/apply()/_compensate()."""

    kind: str = ""

    def __init__(self, grace_seconds: float | None = None) -> None:
        if grace_seconds is None:
            from focusvoice.config import settings
            grace_seconds = settings.UNDO_GRACE_SECONDS
        self.grace_seconds = grace_seconds

    async def plan(self, intent: Any) -> Plan | ExecutionResult:
        raise NotImplementedError

    async def apply(self, plan: Plan) -> ExecutionResult:
        raise NotImplementedError

    async def _compensate(self, record: UndoRecord) -> None:
        raise NotImplementedError

    def describe(self, plan: Plan) -> str | None:
        """Statement shown while the plan waits out the grace period."""
        return getattr(plan, "confirm_message", None)

    async def execute(
        self, intent: Any, confirm: bool = True, on_applied: AppliedCallback | None = None,
    ) -> ExecutionResult:
        """Plan, then stop for confirmation or apply behind the grace timer.

        With confirm=True the result carries pending_confirmation and the
        plan; the caller re-invokes with confirm=False (or calls
        apply_with_grace on the plan) once the user agrees.
        """
        planned = await self.plan(intent)
        if isinstance(planned, ExecutionResult):
            return planned
        if isinstance(planned, NoopPlan):
            return ExecutionResult.failure(planned.reason, plan=planned)

        if confirm:
            return ExecutionResult(
                ok=True,
                pending_confirmation=True,
                plan=planned,
                confirmation=getattr(planned, "confirm_message", None),
            )
        return await self.apply_with_grace(planned, on_applied)

    async def apply_with_grace(
        self, plan: Plan, on_applied: AppliedCallback | None = None,
    ) -> ExecutionResult:
        """Schedule apply(plan) after the grace period; undo can still cancel it.

        With a grace period the returned result only says the apply is
        scheduled (result.deferred). on_applied then receives the real
        result once apply() has run; it is never called after an undo.
        """
        record = UndoRecord(kind=plan.action)

        if self.grace_seconds <= 0:
            result = await self.apply(plan)
            self._fill_record(record, result)
            result.undo = record
            return result

        async def _deferred() -> ExecutionResult:
            result = await self.apply(plan)
            self._fill_record(record, result)
            if not result.ok:
                logger.warning("Deferred %s failed: %s", plan.action, result.reason)
            if on_applied is not None:
                try:
                    await on_applied(result)
                except Exception as exc:
                    logger.error("After-apply handler for %s failed: %s", plan.action, exc)
            return result

        record.pending = PendingApply(_deferred, self.grace_seconds)
        logger.info("%s apply scheduled in %.1fs", plan.action, self.grace_seconds)
        return ExecutionResult(
            ok=True,
            plan=plan,
            confirmation=self.describe(plan),
            undo=record,
        )

    @staticmethod
    def _fill_record(record: UndoRecord, result: ExecutionResult) -> None:
        record.applied = result.ok
        record.notification_ids = list(result.notification_ids)
        record.session_ref = result.session_ref
        if result.undo is not None and result.undo.reminder_id:
            record.reminder_id = result.undo.reminder_id

    async def undo(self, record: UndoRecord) -> bool:
        """Cancel a pending apply or compensate an applied one.

        Returns True when the action is guaranteed not to be in effect.
        """
        if record.undone:
            return True

        if record.pending is not None and record.pending.cancel():
            logger.info("Undo inside grace period: %s never applied", record.kind)
            record.undone = True
            return True

        if record.pending is not None:
            await record.pending.wait()

        if not record.applied:
            record.undone = True
            return True

        try:
            await self._compensate(record)
        except Exception as exc:
            logger.error("Undo of %s failed: %s", record.kind, exc)
            return False
        record.undone = True
        logger.info("Undo compensated %s", record.kind)
        return True
