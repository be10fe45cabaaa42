"""
FocusVoice — UI-Agnostic Command Service.

Orchestrates one user's voice pipeline:
parse (hybrid) → guidance / clarification → plan → confirm → apply
behind the undo grace period → update conversation context.

Returns structured response objects; each front end (Telegram today)
renders them in its own way and never talks to the executors directly.
"""

from __future__ import annotations

import logging
import re
from dataclasses import asdict, dataclass, field
from enum import Enum
from typing import TYPE_CHECKING, Any, Awaitable, Callable

from focusvoice.core.aliases import AliasStore
from focusvoice.core.clarification import get_guidance_prompt, needs_clarification
from focusvoice.core.classifier import classify_intent
from focusvoice.core.context import ContextStore
from focusvoice.core.duration import parse_duration_to_minutes
from focusvoice.core.execution import (
    AppliedCallback,
    BlockPlan,
    ExecutionResult,
    Plan,
    ReminderPlan,
    StopPlan,
    UndoRecord,
)
from focusvoice.core.focus_executor import REASON_ALIAS_NOT_FOUND, FocusExecutor
from focusvoice.core.intents import (
    BlockIntent,
    Classification,
    ClassificationIntent,
    Clarification,
    RemindIntent,
    StopIntent,
    UnresolvedIntent,
)
from focusvoice.core.parser import parse_intent
from focusvoice.core.reminder_executor import ReminderExecutor
from focusvoice.core.reminder_parser import extract_days, has_daily_keyword, parse_reminder
from focusvoice.core.reminder_store import ReminderStore
from focusvoice.core.router import HybridRouter
from focusvoice.core.usage import UsageTracker
from focusvoice.ports.storage_port import StorageError

if TYPE_CHECKING:
    from focusvoice.core.intents import Intent
    from focusvoice.ports.blocking_port import BlockingPort
    from focusvoice.ports.notification_port import NotificationPort
    from focusvoice.ports.premium_port import PremiumPort
    from focusvoice.ports.remote_parser_port import RemoteParserPort
    from focusvoice.ports.storage_port import StoragePort

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Response types
# ---------------------------------------------------------------------------


class ResponseKind(Enum):
    SUCCESS = "success"
    ERROR = "error"
    NO_ACTION = "no_action"
    GUIDANCE = "guidance"
    CLARIFICATION = "clarification"
    CONFIRMATION_PROMPT = "confirmation_prompt"
    RESOURCE_PICKER = "resource_picker"
    PERMISSION_REQUIRED = "permission_required"
    QUOTA_EXHAUSTED = "quota_exhausted"


@dataclass
class PendingCommand:
    """A planned command waiting for the user's yes/no."""
    intent: Any                 # BlockIntent | StopIntent | RemindIntent
    plan: Plan


@dataclass
class ServiceResponse:
    kind: ResponseKind
    message: str


@dataclass
class SuccessResponse(ServiceResponse):
    undo: UndoRecord | None = None


@dataclass
class ErrorResponse(ServiceResponse):
    reason: str = ""


@dataclass
class NoActionResponse(ServiceResponse):
    pass


@dataclass
class GuidanceResponse(ServiceResponse):
    suggestions: list[str] = field(default_factory=list)
    should_speak: bool = True


@dataclass
class ClarificationResponse(ServiceResponse):
    suggestions: list[str] = field(default_factory=list)
    missing: str = ""
    intent: Any = None          # partial intent to complete with the answer


@dataclass
class ConfirmationPromptResponse(ServiceResponse):
    pending: PendingCommand | None = None


@dataclass
class ResourcePickerResponse(ServiceResponse):
    target: str = ""
    options: list[str] = field(default_factory=list)
    intent: Any = None


@dataclass
class PermissionRequiredResponse(ServiceResponse):
    pass


@dataclass
class QuotaExhaustedResponse(ServiceResponse):
    limit: int = 0


FailureReporter = Callable[[ServiceResponse], Awaitable[None]]


# ---------------------------------------------------------------------------
# Slot filling
# ---------------------------------------------------------------------------

_BLOCK_PREFIX_RE = re.compile(r"^(?:block|start)\s+", re.IGNORECASE)

# Scheduled reminders that planned without their time or days get asked again
_RESCHEDULE_SLOTS = {
    "missing-time": ("time", "What time should I remind you?", ["9 AM", "12 PM", "6 PM"]),
    "missing-days": ("days", "Which days should I remind you?", ["Monday", "Wednesday", "Friday"]),
}


def fill_slot(intent: Any, missing: str, reply: str) -> Any:
    """Return a copy of intent with the clarified slot filled from reply."""
    reply = (reply or "").strip()
    if missing == "duration" and isinstance(intent, BlockIntent):
        minutes = parse_duration_to_minutes(reply, allow_words=True)
        return intent.model_copy(update={"duration_minutes": minutes})
    if missing == "target" and isinstance(intent, BlockIntent):
        target = _BLOCK_PREFIX_RE.sub("", reply).strip().lower().rstrip(".!?")
        return intent.model_copy(update={"target": target})
    if missing == "message" and isinstance(intent, RemindIntent):
        return intent.model_copy(update={"message": reply.rstrip(".!?")})
    if missing == "days" and isinstance(intent, RemindIntent):
        return intent.model_copy(update={"days": extract_days(reply)})
    if missing == "time" and isinstance(intent, RemindIntent):
        reparsed = parse_reminder(f"remind me to {intent.message} {reply}")
        if (
            intent.reminder_type in ("daily", "weekly", "custom")
            and reparsed.time
            and reparsed.reminder_type == "daily"
            and not has_daily_keyword(reply)
        ):
            # A bare clock time completes the schedule already chosen
            return intent.model_copy(update={"time": reparsed.time})
        return intent.model_copy(update={
            "reminder_type": reparsed.reminder_type,
            "time": reparsed.time,
            "duration_minutes": reparsed.duration_minutes,
            "days": reparsed.days,
        })
    return intent


# ---------------------------------------------------------------------------
# VoiceCommandService
# ---------------------------------------------------------------------------


class VoiceCommandService:
    """Per-user pipeline over the storage, blocking and notification ports."""

    def __init__(
        self,
        storage: StoragePort,
        blocking: BlockingPort,
        notifications: NotificationPort,
        remote: RemoteParserPort | None = None,
        premium: PremiumPort | None = None,
        grace_seconds: float | None = None,
    ) -> None:
        self._remote = remote
        self.context = ContextStore(storage)
        self.aliases = AliasStore(storage)
        self.reminders = ReminderStore(storage)
        self.usage = UsageTracker(storage, premium)
        self.router = HybridRouter(self.usage, remote)
        self.focus = FocusExecutor(blocking, grace_seconds)
        self.reminder = ReminderExecutor(notifications, self.reminders, grace_seconds)

    # ------------------------------------------------------------------
    # Exposed building blocks
    # ------------------------------------------------------------------

    async def _alias_names(self) -> list[str]:
        try:
            return await self.aliases.nicknames()
        except StorageError as exc:
            logger.warning("Alias list unavailable: %s", exc)
            return []

    async def classify(self, text: str) -> Classification:
        return classify_intent(text, await self._alias_names())

    async def parse_intent(self, text: str, allow_default_duration: bool = True) -> Intent | None:
        """Local parse (remote first only when AI_INTENTS_ENABLED)."""
        return await parse_intent(
            text,
            allow_default_duration=allow_default_duration,
            aliases=await self._alias_names(),
            context=await self.context.get(),
            remote=self._remote,
        )

    async def parse_intent_hybrid(self, text: str, allow_default_duration: bool = True) -> Intent | None:
        """Local parse with confidence-gated remote fallback; tags metadata."""
        return await self.router.parse(
            text,
            allow_default_duration=allow_default_duration,
            aliases=await self._alias_names(),
            context=await self.context.get(),
        )

    async def needs_clarification(self, intent: Any) -> Clarification | None:
        return needs_clarification(intent, await self.context.get())

    def _executor_for(self, intent: Any) -> FocusExecutor | ReminderExecutor:
        return self.reminder if isinstance(intent, RemindIntent) else self.focus

    async def execute(
        self, intent: Any, confirm: bool = True, on_failure: FailureReporter | None = None,
    ) -> ExecutionResult:
        """Plan and, with confirm=False, apply behind the grace period.

        The context is updated once the action has really been applied;
        for a deferred apply that happens when the grace period ends.
        """
        if not isinstance(intent, (BlockIntent, StopIntent, RemindIntent)):
            return ExecutionResult.failure("invalid-intent")
        if isinstance(intent, StopIntent) and not confirm:
            # Nothing to undo: stopping takes effect at once
            result = await self.focus.apply(StopPlan())
        else:
            result = await self._executor_for(intent).execute(
                intent, confirm=confirm, on_applied=self._after_apply(intent, on_failure),
            )
        if result.ok and not result.pending_confirmation and not result.deferred:
            await self._remember(intent, result.plan)
        return result

    def _after_apply(
        self, intent: Any, on_failure: FailureReporter | None,
    ) -> AppliedCallback:
        async def _handle(result: ExecutionResult) -> None:
            if result.ok:
                await self._remember(intent, result.plan)
            elif on_failure is not None:
                await on_failure(await self._render_result(result, intent))
        return _handle

    async def undo(self, record: UndoRecord) -> bool:
        executor = self.reminder if record.kind == "remind" else self.focus
        undone = await executor.undo(record)
        if undone:
            await self.context.clear()
        return undone

    async def usage_stats(self) -> dict[str, Any]:
        return await self.usage.get_usage_stats()

    # ------------------------------------------------------------------
    # Context bookkeeping
    # ------------------------------------------------------------------

    async def _remember(self, intent: Any, plan: Plan | None) -> None:
        plan_dict = asdict(plan) if plan is not None else None
        intent_dict = intent.model_dump(exclude={"metadata"})

        if isinstance(plan, BlockPlan):
            await self.context.update(
                "block", plan.alias_name, plan.duration_minutes, intent_dict, plan_dict,
            )
            try:
                await self.aliases.record_use(plan.alias_name)
            except StorageError as exc:
                logger.warning("Alias usage not recorded: %s", exc)
        elif isinstance(plan, ReminderPlan):
            await self.context.update(
                "remind", plan.message, plan.duration_minutes, intent_dict, plan_dict,
            )
        elif isinstance(plan, StopPlan):
            last = await self.context.get()
            await self.context.update(
                "stop", last.last_target if last else None, None, intent_dict, plan_dict,
            )

    # ------------------------------------------------------------------
    # Conversation flow
    # ------------------------------------------------------------------

    async def handle_utterance(self, text: str, *, from_voice: bool = False) -> ServiceResponse:
        """Full pipeline for one utterance.

        Voice input never back-fills a default duration; a missing duration
        is asked for instead.
        """
        try:
            intent = await self.parse_intent_hybrid(text, allow_default_duration=not from_voice)
        except Exception as exc:
            logger.error("Parsing failed for '%s': %s", (text or "")[:80], exc)
            return ErrorResponse(
                kind=ResponseKind.ERROR,
                message="Sorry, something went wrong while understanding that. Please try again.",
                reason="parse-error",
            )

        if intent is None:
            return NoActionResponse(
                kind=ResponseKind.NO_ACTION,
                message=(
                    "Sorry, I didn't understand that. Try 'Block social for 30 minutes' "
                    "or 'Remind me to stretch in 20 minutes'."
                ),
            )

        if isinstance(intent, UnresolvedIntent):
            stats = await self.usage.get_usage_stats()
            return QuotaExhaustedResponse(
                kind=ResponseKind.QUOTA_EXHAUSTED,
                message=(
                    "You've used today's smart parsing. Try a simpler phrasing like "
                    "'Block social for 30 minutes', or upgrade for unlimited parsing."
                ),
                limit=stats["limit"],
            )

        if isinstance(intent, ClassificationIntent):
            guidance = get_guidance_prompt(intent.classification, intent)
            if guidance is None:
                return NoActionResponse(kind=ResponseKind.NO_ACTION, message="")
            return GuidanceResponse(
                kind=ResponseKind.GUIDANCE,
                message=guidance.message,
                suggestions=guidance.suggestions,
                should_speak=guidance.should_speak,
            )

        return await self.handle_intent(intent)

    async def answer_clarification(self, intent: Any, missing: str, reply: str) -> ServiceResponse:
        """Fill the slot asked about and continue the flow."""
        return await self.handle_intent(fill_slot(intent, missing, reply))

    async def handle_intent(self, intent: Any) -> ServiceResponse:
        """Clarify missing slots, plan, and ask for confirmation.

        Stop commands skip the confirmation step.
        """
        clarification = await self.needs_clarification(intent)
        if clarification is not None:
            return ClarificationResponse(
                kind=ResponseKind.CLARIFICATION,
                message=clarification.question,
                suggestions=clarification.suggestions,
                missing=clarification.missing,
                intent=intent,
            )

        result = await self.execute(intent, confirm=not isinstance(intent, StopIntent))

        slot = _RESCHEDULE_SLOTS.get(result.reason or "")
        if slot is not None and isinstance(intent, RemindIntent):
            missing, question, suggestions = slot
            return ClarificationResponse(
                kind=ResponseKind.CLARIFICATION,
                message=question,
                suggestions=suggestions,
                missing=missing,
                intent=intent,
            )

        if result.pending_confirmation:
            return ConfirmationPromptResponse(
                kind=ResponseKind.CONFIRMATION_PROMPT,
                message=result.confirmation or "Go ahead?",
                pending=PendingCommand(intent=intent, plan=result.plan),
            )
        return await self._render_result(result, intent)

    async def confirm(
        self, pending: PendingCommand, on_failure: FailureReporter | None = None,
    ) -> ServiceResponse:
        """User said yes: apply the plan behind the undo grace period.

        The response only announces the action. When the deferred apply
        fails later, on_failure receives the rendered error instead.
        """
        executor = self._executor_for(pending.intent)
        result = await executor.apply_with_grace(
            pending.plan, self._after_apply(pending.intent, on_failure),
        )
        if result.ok and not result.deferred:
            await self._remember(pending.intent, pending.plan)
        return await self._render_result(result, pending.intent)

    async def _render_result(self, result: ExecutionResult, intent: Any) -> ServiceResponse:
        if result.ok:
            return SuccessResponse(
                kind=ResponseKind.SUCCESS,
                message=result.confirmation or "Done.",
                undo=result.undo,
            )

        if result.reason == REASON_ALIAS_NOT_FOUND:
            target = getattr(intent, "target", "")
            return ResourcePickerResponse(
                kind=ResponseKind.RESOURCE_PICKER,
                message=f"I don't know which apps '{target}' means. Pick a saved group or add one with /addalias.",
                target=target,
                options=await self._alias_names(),
                intent=intent,
            )

        if result.needs_permission:
            return PermissionRequiredResponse(
                kind=ResponseKind.PERMISSION_REQUIRED,
                message=result.error or "Please enable notifications to set reminders.",
            )

        logger.warning("Execution failed: %s (%s)", result.reason, result.error)
        return ErrorResponse(
            kind=ResponseKind.ERROR,
            message=f"Sorry, that didn't work: {result.error or result.reason}.",
            reason=result.reason or "",
        )
