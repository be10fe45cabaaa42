"""
FocusVoice — Clarification Engine.

Two separate dialog gates:
  - get_guidance_prompt(): the utterance never became an action
    (off-topic, unclear action, unclear target); answer with static help.
  - needs_clarification(): the action is known but a slot is missing;
    ask one question for the first missing slot.

Both are pure; nothing is cached between calls.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from focusvoice.core.intents import (
    BlockIntent,
    Classification,
    Clarification,
    GuidancePrompt,
    RemindIntent,
)

if TYPE_CHECKING:
    from focusvoice.core.context import ConversationContext


def needs_clarification(
    intent: object, context: ConversationContext | None = None,
) -> Clarification | None:
    """Return the question for the first missing slot, or None when complete."""
    if isinstance(intent, RemindIntent):
        if not intent.message:
            return Clarification(
                question="What would you like to be reminded about?",
                suggestions=["Exercise", "Drink water", "Take a break"],
                missing="message",
            )
        if not intent.reminder_type and not intent.time and not intent.duration_minutes:
            return Clarification(
                question="When should I remind you?",
                suggestions=["In 30 minutes", "Every day at 9 AM", "Every Monday"],
                missing="time",
            )
        return None

    if isinstance(intent, BlockIntent):
        if not intent.target:
            if context is not None and context.last_target:
                suggestions = [context.last_target, "social apps", "work apps"]
            else:
                suggestions = ["social apps", "work apps", "all apps"]
            return Clarification(
                question="Which apps would you like to block?",
                suggestions=suggestions,
                missing="target",
            )
        if intent.duration_minutes < 1:
            if context is not None and context.last_duration_minutes:
                suggestions = [f"{context.last_duration_minutes} minutes", "30 minutes", "1 hour"]
            else:
                suggestions = ["30 minutes", "1 hour", "2 hours"]
            return Clarification(
                question="For how long?",
                suggestions=suggestions,
                missing="duration",
            )
        return None

    return None


def get_guidance_prompt(
    classification: Classification, intent: object = None,
) -> GuidancePrompt | None:
    """Static help text for a classifier verdict other than "valid"."""
    if classification.type == "off-topic":
        return GuidancePrompt(
            message=(
                "I help you block distracting apps and set focus reminders. "
                "Try saying 'Block social media for 30 minutes' or "
                "'Remind me to check messages in 1 hour'."
            ),
            suggestions=[
                "Block social apps for 30 minutes",
                "Remind me to exercise in 1 hour",
                "Start a focus session",
            ],
        )

    if classification.type == "unclear-action":
        target = (
            classification.detected_target
            or getattr(intent, "target", None)
            or "those apps"
        )
        return GuidancePrompt(
            message=(
                f"Did you want to block {target}? "
                "Say 'yes' to confirm, or tell me what you'd like to do."
            ),
            suggestions=[f"Block {target}", f"Remind me about {target}", "Cancel"],
        )

    if classification.type == "unclear-target":
        if classification.suggested_action == "remind":
            return GuidancePrompt(
                message=(
                    "What would you like to be reminded about? Try "
                    "'Remind me to exercise in 30 minutes' or "
                    "'Remind me to take a break every hour'."
                ),
                suggestions=[
                    "Remind me to exercise",
                    "Remind me to drink water",
                    "Remind me to take a break",
                ],
            )
        return GuidancePrompt(
            message=(
                "Which apps would you like to block? Try saying 'social apps', "
                "an app name like 'Instagram', or 'all apps'."
            ),
            suggestions=["Social apps", "Work apps", "Instagram", "All distracting apps"],
        )

    return None
