"""
FocusVoice — Local Intent Parser.

Turns a single utterance into a typed Intent without leaving the process
(unless AI_INTENTS_ENABLED asks for the remote parser to go first).

Pipeline:
  1. bare stop commands ("stop", "end session")          → StopIntent
  2. UtteranceClassifier; anything but "valid"            → ClassificationIntent
  3. relative follow-ups ("longer", "add 10 minutes")     → BlockIntent
  4. pronoun / "again" resolution against the context
  5. remote parser, when enabled and available
  6. reminder keyword → reminder sub-parser (beats the block grammar)
  7. "(block|start|stop) <target>[ for <duration>]" grammar
"""

from __future__ import annotations

import logging
import re
from typing import TYPE_CHECKING, Iterable

from focusvoice.core.classifier import classify_intent
from focusvoice.core.context import resolve_pronouns, resolve_relative_duration
from focusvoice.core.duration import parse_duration_to_minutes
from focusvoice.core.grammar import parse_command
from focusvoice.core.intents import (
    BlockIntent,
    ClassificationIntent,
    Intent,
    StopIntent,
)
from focusvoice.core.reminder_parser import has_reminder_keyword, parse_reminder

if TYPE_CHECKING:
    from focusvoice.core.context import ConversationContext
    from focusvoice.ports.remote_parser_port import RemoteParserPort

logger = logging.getLogger(__name__)

DEFAULT_DURATION_MINUTES = 30
REMOTE_DEFAULT_CONFIDENCE = 0.9

_BARE_STOP_RE = re.compile(
    r"^(?:stop|end|unblock|stop\s+blocking|stop\s+(?:the\s+)?session|end\s+(?:the\s+)?session"
    r"|end\s+(?:the\s+)?block|stop\s+focus(?:ing)?|end\s+focus)$",
    re.IGNORECASE,
)
_PRESET_PREFIX = "preset "


def _is_bare_stop(text: str) -> bool:
    return bool(_BARE_STOP_RE.match(text.strip().rstrip(".!?,").strip()))


def intent_from_remote(data: dict, allow_default_duration: bool) -> Intent | None:
    """Build an Intent from a normalised remote payload.

    Returns None for anything but block and stop.
    """
    action = data.get("action")
    if action not in ("block", "stop"):
        return None
    if action == "stop":
        return StopIntent(target=data.get("target", ""), confidence=REMOTE_DEFAULT_CONFIDENCE)

    duration = data.get("duration_minutes") or 0
    if not duration and allow_default_duration:
        duration = DEFAULT_DURATION_MINUTES
    target = data.get("target", "")
    target_type = "alias"
    if target.startswith(_PRESET_PREFIX):
        target, target_type = target[len(_PRESET_PREFIX):].strip(), "preset"

    return BlockIntent(
        target_type=target_type,
        target=target,
        duration_minutes=duration,
        confidence=REMOTE_DEFAULT_CONFIDENCE,
    )


def parse_grammar(text: str, allow_default_duration: bool = True) -> Intent | None:
    """Parse with the reminder sub-parser or the block/stop grammar only."""
    if has_reminder_keyword(text):
        return parse_reminder(text)

    cmd = parse_command(text)
    if cmd is None:
        logger.info("No grammar match for: %s", text[:80])
        return None

    if cmd.action == "stop":
        return StopIntent(target=cmd.target_text, confidence=cmd.confidence)

    target = cmd.target_text
    target_type = "alias"
    if target.startswith(_PRESET_PREFIX):
        target, target_type = target[len(_PRESET_PREFIX):].strip(), "preset"

    duration = parse_duration_to_minutes(cmd.duration_text) if cmd.duration_text else 0
    if (
        not duration
        and allow_default_duration
        and not cmd.duration_text
        and not cmd.dangling_for
    ):
        duration = DEFAULT_DURATION_MINUTES

    return BlockIntent(
        target_type=target_type,
        target=target,
        duration_minutes=duration,
        confidence=cmd.confidence,
    )


async def parse_intent(
    text: str | None,
    *,
    allow_default_duration: bool = True,
    aliases: Iterable[str] = (),
    context: ConversationContext | None = None,
    remote: RemoteParserPort | None = None,
) -> Intent | None:
    """Parse an utterance into an Intent.

    Args:
        text: The utterance, typed or transcribed.
        allow_default_duration: Back-fill 30 minutes when a block command
            names no duration at all.
        aliases: Nicknames of saved targets, passed to the classifier.
        context: Live conversation context for follow-up resolution.
        remote: Remote parser consulted first when AI_INTENTS_ENABLED is set.

    Returns None for empty text or when nothing in the utterance parses.
    """
    if not text or not isinstance(text, str) or not text.strip():
        return None
    text = text.strip()

    if _is_bare_stop(text):
        logger.info("Bare stop command: %s", text)
        return StopIntent(confidence=1.0)

    # Follow-ups ("block it again", "add 10 minutes") are judged with the
    # context target filled in; the live target counts as a known alias.
    known = list(aliases)
    if context is not None and context.last_target:
        known.append(context.last_target)
    resolved = resolve_pronouns(text, context)
    relative = resolve_relative_duration(text, context)

    classification = classify_intent(resolved, known)
    if classification.type != "valid" and relative is None:
        logger.info("Utterance classified as %s: %s", classification.type, text[:80])
        return ClassificationIntent(classification=classification, text=text)

    if relative is not None:
        logger.info(
            "Relative follow-up: %s for %d min", relative["target"], relative["duration_minutes"],
        )
        return BlockIntent(
            target=relative["target"],
            duration_minutes=relative["duration_minutes"],
            confidence=0.8,
        )

    text = resolved

    from focusvoice.config import settings

    if settings.AI_INTENTS_ENABLED and remote is not None and remote.is_available():
        data = await remote.parse(text)
        if data:
            intent = intent_from_remote(data, allow_default_duration)
            if intent is not None:
                return intent
        logger.info("Remote parser returned nothing, using local grammar")

    return parse_grammar(text, allow_default_duration)
