"""
FocusVoice — Focus (blocking) executor.

plan() resolves the spoken target to a blocking resource through the
BlockingPort; an unknown target yields a noop plan with reason
"alias-not-found" so the caller can offer a picker instead of guessing.
apply() is the only place a block is started or stopped.
"""

from __future__ import annotations

import logging
from datetime import datetime
from typing import TYPE_CHECKING, Callable

from focusvoice.core.duration import format_minutes_to_end_time, local_now
from focusvoice.core.execution import (
    BaseExecutor,
    BlockPlan,
    ExecutionResult,
    NoopPlan,
    Plan,
    StopPlan,
    UndoRecord,
)
from focusvoice.core.intents import BlockIntent, StopIntent
from focusvoice.ports.blocking_port import BlockingError

if TYPE_CHECKING:
    from focusvoice.ports.blocking_port import BlockingPort

logger = logging.getLogger(__name__)

DEFAULT_BLOCK_MINUTES = 30
REASON_ALIAS_NOT_FOUND = "alias-not-found"


def _has_tokens(resource: dict | None) -> bool:
    if not resource:
        return False
    if resource.get("opaque_token"):
        return True
    return any(resource.get(k) for k in ("apps", "categories", "domains"))


class FocusExecutor(BaseExecutor):
    """Plans and applies block/stop intents against a BlockingPort."""

    kind = "block"

    def __init__(
        self,
        blocking: BlockingPort,
        grace_seconds: float | None = None,
        now: Callable[[], datetime] = local_now,
    ) -> None:
        super().__init__(grace_seconds)
        self._blocking = blocking
        self._now = now

    async def plan(self, intent: BlockIntent | StopIntent) -> Plan | ExecutionResult:
        if isinstance(intent, StopIntent):
            return StopPlan()
        if not isinstance(intent, BlockIntent):
            return ExecutionResult.failure("invalid-intent")

        resource = None
        try:
            resource = await self._blocking.resolve(intent.target)
        except BlockingError as exc:
            logger.warning("Resolving '%s' failed: %s", intent.target, exc)

        if not _has_tokens(resource):
            logger.info("No blocking resource for '%s'", intent.target)
            return NoopPlan(reason=REASON_ALIAS_NOT_FOUND, target=intent.target)

        minutes = max(1, intent.duration_minutes or DEFAULT_BLOCK_MINUTES)
        end_label = format_minutes_to_end_time(minutes, now=self._now())
        alias_name = resource.get("nickname") or intent.target
        unit = "minute" if minutes == 1 else "minutes"
        return BlockPlan(
            resource=resource,
            duration_minutes=minutes,
            end_label=end_label,
            alias_name=alias_name,
            target_type=intent.target_type,
            confirm_message=f"Block {alias_name} for {minutes} {unit}? It will end at {end_label}.",
        )

    def describe(self, plan: Plan) -> str | None:
        if isinstance(plan, BlockPlan):
            return f"Blocking {plan.alias_name} until {plan.end_label}."
        if isinstance(plan, StopPlan):
            return "Blocking stopped."
        return None

    async def apply(self, plan: Plan) -> ExecutionResult:
        if isinstance(plan, NoopPlan):
            return ExecutionResult.failure(plan.reason, plan=plan)

        if not self._blocking.is_available():
            return ExecutionResult.failure(
                "blocking-unavailable", "Blocking is not available on this device", plan=plan,
            )

        if isinstance(plan, StopPlan):
            try:
                await self._blocking.stop()
            except BlockingError as exc:
                logger.error("Stopping block failed: %s", exc)
                return ExecutionResult.failure("stop-failed", str(exc), plan=plan)
            logger.info("Blocking session stopped")
            return ExecutionResult(ok=True, plan=plan, confirmation="Blocking stopped.")

        if not isinstance(plan, BlockPlan):
            return ExecutionResult.failure("invalid-plan", plan=plan)

        try:
            session_ref = await self._blocking.start(plan.resource, plan.duration_minutes * 60)
        except BlockingError as exc:
            logger.error("Starting block of '%s' failed: %s", plan.alias_name, exc)
            return ExecutionResult.failure("blocking-failed", str(exc), plan=plan)

        logger.info(
            "Blocking '%s' for %d min (session %s)", plan.alias_name, plan.duration_minutes, session_ref,
        )
        return ExecutionResult(
            ok=True,
            plan=plan,
            session_ref=session_ref,
            confirmation=f"Blocking {plan.alias_name} until {plan.end_label}.",
        )

    async def _compensate(self, record: UndoRecord) -> None:
        if record.kind == "block":
            await self._blocking.stop()
        else:
            logger.info("Nothing to compensate for %s", record.kind)
