"""
FocusVoice — Remote (LLM) intent parser.

Cloud fallback for utterances the local grammar is unsure about. Asks the
configured LLM for {action, target, duration_minutes} JSON and normalises
it. Every failure (no key, timeout, bad JSON, API error) becomes None, so
the caller can always fall back to the local parse.
"""

from __future__ import annotations

import asyncio
import json
import logging
from typing import Any

from focusvoice.core.llm import complete, is_configured
from focusvoice.ports.remote_parser_port import RemoteParserError

logger = logging.getLogger(__name__)

_SYSTEM_PROMPT = """\
You are an intent parser for a focus / distraction blocking app.
Parse the user's command into a structured intent.

Actions:
- "block" or "start": block distracting apps or categories
- "stop" or "end": stop the current blocking session

Targets are nicknames the user configured, e.g. "social", "games", "news",
or an app name such as "tiktok". Use the target exactly as spoken, lowercased.

Duration:
- Parse natural time expressions ("2 minutes", "30 min", "1 hour", "half an hour")
- Convert to integer minutes
- If no duration is given for a block command, return 0 (the app will ask)

Examples:
"Block social for 30 minutes" -> {{"action": "block", "target": "social", "duration_minutes": 30}}
"Start test" -> {{"action": "block", "target": "test", "duration_minutes": 0}}
"Block TikTok for 2 hours" -> {{"action": "block", "target": "tiktok", "duration_minutes": 120}}
"Stop blocking" -> {{"action": "stop", "target": "", "duration_minutes": 0}}

Return ONLY a JSON object. If the command cannot be parsed, return exactly: null
{aliases_hint}"""

_ACTION_SYNONYMS = {"block": "block", "start": "block", "stop": "stop", "end": "stop"}


def _clean_llm_response(raw_text: str) -> str:
    """Remove markdown code block delimiters from LLM's raw response."""
    cleaned_text = raw_text.strip()
    if cleaned_text.startswith("```json"):
        cleaned_text = cleaned_text.removeprefix("```json")
    elif cleaned_text.startswith("```"):
        cleaned_text = cleaned_text.removeprefix("```")
    if cleaned_text.endswith("```"):
        cleaned_text = cleaned_text.removesuffix("```")
    return cleaned_text.strip()


def normalize_remote_intent(data: Any) -> dict[str, Any] | None:
    """Validate and normalise a decoded LLM payload.

    Only block/start and stop/end are understood. Any other action
    ("remind", "snooze") is treated as no result so the caller keeps its
    local parse.
    """
    if not isinstance(data, dict) or not data.get("action"):
        return None

    raw_action = str(data["action"]).strip().lower()
    action = _ACTION_SYNONYMS.get(raw_action)
    if action is None:
        logger.info("Remote parser returned unsupported action '%s'", raw_action)
        return None
    raw_duration = data.get("duration_minutes", data.get("durationMinutes", 0))
    try:
        duration = int(raw_duration or 0)
    except (TypeError, ValueError):
        duration = 0

    return {
        "action": action,
        "target": str(data.get("target") or "").strip().lower(),
        "duration_minutes": max(0, duration),
    }


class LLMRemoteParser:
    """RemoteParserPort implementation backed by focusvoice.core.llm."""

    def __init__(self, timeout_seconds: float | None = None, aliases: list[str] | None = None) -> None:
        if timeout_seconds is None:
            from focusvoice.config import settings
            timeout_seconds = settings.REMOTE_PARSER_TIMEOUT_SECONDS

        self._timeout = timeout_seconds
        self.aliases = aliases or []

    def is_available(self) -> bool:
        return is_configured()

    async def parse(self, text: str) -> dict[str, Any] | None:
        if not text or not text.strip() or not self.is_available():
            return None

        aliases_hint = (
            f"\nThe user's configured targets are: {', '.join(self.aliases)}"
            if self.aliases else ""
        )
        raw_text = ""
        try:
            raw_text = await complete(
                system=_SYSTEM_PROMPT.format(aliases_hint=aliases_hint),
                user_message=text.strip(),
                max_tokens=128,
                timeout=self._timeout,
            )
            raw_text = _clean_llm_response(raw_text or "")
            logger.debug("LLM raw response: %s", raw_text)

            if raw_text in ("", "null", "{}"):
                logger.info("Remote parser found no intent in: %s", text[:80])
                return None

            parsed = normalize_remote_intent(json.loads(raw_text))
            if parsed:
                logger.info(
                    "Remote parse: %s %s for %d min",
                    parsed["action"], parsed["target"], parsed["duration_minutes"],
                )
            return parsed

        except asyncio.TimeoutError:
            logger.warning("Remote parser timed out after %.1fs", self._timeout)
            return None
        except json.JSONDecodeError as exc:
            logger.error("Failed to parse LLM response as JSON: %s — raw: '%s'", exc, raw_text)
            return None
        except RemoteParserError as exc:
            logger.warning("Remote parser unavailable: %s", exc)
            return None
        except Exception as exc:
            logger.error("Unexpected error in remote parse: %s", exc)
            return None
