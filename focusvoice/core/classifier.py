"""
FocusVoice — Utterance Classifier.

Cheap keyword gate that runs before the grammar parser: decides whether an
utterance is about blocking or reminders at all, and if so whether the
action or the target is missing. Off-topic chatter stops here and never
reaches the parser or burns a remote parser call.
"""

from __future__ import annotations

import logging
import re
from typing import Iterable

from focusvoice.core.intents import Classification

logger = logging.getLogger(__name__)

BLOCK_ACTIONS = (
    "block", "stop", "unblock", "end", "pause", "disable",
    "restrict", "limit", "lock", "shield",
)

REMINDER_ACTIONS = (
    "remind", "reminder", "notify", "notification", "alert",
    "tell", "ping", "nudge",
)

FOCUS_ACTIONS = (
    "start", "begin", "focus", "session", "concentrate",
    "deep work", "distraction free",
)

TARGET_KEYWORDS = (
    "app", "apps", "application", "applications",
    "social", "work", "game", "games", "chat",
    "instagram", "tiktok", "facebook", "twitter", "snapchat",
    "youtube", "reddit", "whatsapp", "messenger",
)

TIME_KEYWORDS = (
    "minute", "minutes", "min", "mins",
    "hour", "hours", "hr", "hrs",
    "day", "days", "daily", "everyday",
    "week", "weekly", "monday", "tuesday", "wednesday",
    "thursday", "friday", "saturday", "sunday",
    "morning", "afternoon", "evening", "night",
    "am", "pm", "o'clock",
)

_DIGIT_RE = re.compile(r"\d+")


def _contains_any(text: str, keywords: Iterable[str]) -> bool:
    return any(kw in text for kw in keywords)


def classify_intent(text: str | None, aliases: Iterable[str] = ()) -> Classification:
    """Classify an utterance as valid, off-topic, unclear-action or unclear-target.

    Args:
        text: Raw utterance.
        aliases: Nicknames of the user's saved blocking targets.

    Keyword checks are substring matches, so "apps" also satisfies "app"
    and "blocking" satisfies "block".
    """
    if not text or not isinstance(text, str) or not text.strip():
        return Classification(type="off-topic", confidence="high")

    lower = text.lower().strip()

    has_block = _contains_any(lower, BLOCK_ACTIONS)
    has_reminder = _contains_any(lower, REMINDER_ACTIONS)
    has_focus = _contains_any(lower, FOCUS_ACTIONS)
    has_action = has_block or has_reminder or has_focus

    has_target = _contains_any(lower, TARGET_KEYWORDS)
    detected_alias = next(
        (a for a in aliases if a and a.lower() in lower), None,
    )
    has_alias = detected_alias is not None

    has_time = _contains_any(lower, TIME_KEYWORDS)
    has_number = bool(_DIGIT_RE.search(lower))

    # 1. Nothing we recognise
    if not has_action and not has_target and not has_alias and not has_time:
        return Classification(type="off-topic", confidence="high")

    # 2. "Instagram 30 minutes": something to act on, but no verb
    if (has_alias or has_target) and not has_action:
        return Classification(
            type="unclear-action",
            confidence="medium",
            suggested_action="block",
            detected_target=detected_alias or "apps",
        )

    # 3. "block stuff", "remind me": verb without an object.
    # A reminder verb outranks block verbs hidden in its message
    # ("call my friend", "send the report", "stop scrolling").
    if has_action and not has_target and not has_alias:
        if has_reminder:
            if not has_time and not has_number:
                return Classification(
                    type="unclear-target", confidence="medium", suggested_action="remind",
                )
        elif has_block or has_focus:
            return Classification(
                type="unclear-target", confidence="medium", suggested_action="block",
            )

    # 4. Verb and object (or a time expression)
    if has_action and (has_target or has_alias or has_time):
        return Classification(
            type="valid", confidence="high", detected_target=detected_alias,
        )

    # 5. Verb only; the parser decides
    if has_action:
        return Classification(type="valid", confidence="medium")

    return Classification(type="off-topic", confidence="low")


_YES_RE = re.compile(r"^(yes|yeah|yep|sure|ok|okay|correct|right|affirm|do it|go ahead)$")
_NO_RE = re.compile(r"^(no|nope|nah|cancel|stop|nevermind|never mind)$")


def is_confirmation(text: str | None) -> bool | None:
    """True for a yes, False for a no, None when the reply is neither."""
    if not text:
        return None
    lower = text.lower().strip().rstrip(".!")
    if _YES_RE.match(lower):
        return True
    if _NO_RE.match(lower):
        return False
    return None
