"""
FocusVoice — Reminder sub-parser.

Extracts message, schedule type, clock time, delay and weekdays from
"remind me ..." utterances. Reminder keywords win over the block grammar,
so "remind me to stop scrolling" is a reminder, not a stop command.

The confidence score is a pure function of the text; the HybridRouter
compares it against its threshold regardless of who called the parser.
"""

from __future__ import annotations

import logging
import re

from focusvoice.core.duration import (
    find_clock_time,
    parse_clock_time,
    parse_duration_to_minutes,
)
from focusvoice.core.intents import RemindIntent

logger = logging.getLogger(__name__)

DAY_NAMES = ("monday", "tuesday", "wednesday", "thursday", "friday", "saturday", "sunday")
_DAY_ALT = "|".join(DAY_NAMES)

_REMINDER_KEYWORD_RE = re.compile(r"\bremind(?:er|ers|s)?\b", re.IGNORECASE)

# Where the message ends and the schedule begins
_SCHEDULE_START = (
    r"(?=\s+(?:in\s+(?:\d|an?\b|half\b|a\s+quarter\b|[a-z]+(?:-[a-z]+)?\s+(?:minutes?|hours?|mins?))"
    r"|at\s+\d|every\b|each\b|daily\b|weekly\b|on\s+(?:" + _DAY_ALT + r")"
    r"|tomorrow\b|tonight\b)|[.!?]?$)"
)
_MESSAGE_PATTERNS = (
    re.compile(r"\bremind\s+me\s+to\b\s*(.*?)" + _SCHEDULE_START, re.IGNORECASE),
    re.compile(r"\bremind\s+me\s+(?:about\s+|of\s+)?(.*?)" + _SCHEDULE_START, re.IGNORECASE),
    re.compile(r"\breminder\s+(?:to\s+|about\s+)?(.*?)" + _SCHEDULE_START, re.IGNORECASE),
)

_DAILY_RE = re.compile(r"\b(?:every\s*day|daily|each\s+day)\b", re.IGNORECASE)
_WEEKLY_RE = re.compile(
    r"\b(?:every\s+week|weekly|every\s+(?:" + _DAY_ALT + r")s?)\b", re.IGNORECASE,
)
_CUSTOM_RE = re.compile(r"\b(?:on|every)\s+(?:" + _DAY_ALT + r")s?\b", re.IGNORECASE)
_DAY_RE = re.compile(r"\b(" + _DAY_ALT + r")s?\b", re.IGNORECASE)
_IN_RE = re.compile(r"\bin\s+(.+)$", re.IGNORECASE)
_AT_BARE_HOUR_RE = re.compile(r"\bat\s+(\d{1,2})\b(?!\s*[:ap\d])", re.IGNORECASE)


def has_reminder_keyword(text: str | None) -> bool:
    return bool(text and _REMINDER_KEYWORD_RE.search(text))


def has_daily_keyword(text: str | None) -> bool:
    return bool(text and _DAILY_RE.search(text))


def extract_message(text: str) -> str:
    """Pull the thing to be reminded about out of the utterance."""
    for pattern in _MESSAGE_PATTERNS:
        m = pattern.search(text)
        if m:
            return m.group(1).strip().rstrip(".!?,").strip()
    return ""


def extract_days(text: str) -> list[str]:
    """All weekday names mentioned, lowercased, in order, without repeats."""
    days: list[str] = []
    for m in _DAY_RE.finditer(text):
        day = m.group(1).lower()
        if day not in days:
            days.append(day)
    return days


def extract_time(text: str) -> str | None:
    clock = find_clock_time(text)
    if clock:
        return clock
    bare = _AT_BARE_HOUR_RE.search(text)
    if bare and parse_clock_time(f"{bare.group(1)}:00"):
        return f"{bare.group(1)}:00"
    return None


def parse_reminder(text: str) -> RemindIntent:
    """Parse a reminder utterance. Always returns a RemindIntent; missing slots
    stay empty and are picked up by the clarification engine."""
    message = extract_message(text)
    time_str = extract_time(text)
    days = extract_days(text)

    reminder_type = None
    duration_minutes = 0
    score = 0.4

    if _DAILY_RE.search(text):
        reminder_type = "daily"
        days = []
    elif _WEEKLY_RE.search(text):
        reminder_type = "weekly"
    elif _CUSTOM_RE.search(text):
        reminder_type = "custom"
    else:
        in_match = _IN_RE.search(text)
        if in_match:
            phrase = in_match.group(1)
            duration_minutes = parse_duration_to_minutes(phrase)
            if duration_minutes:
                score += 0.2
            else:
                duration_minutes = parse_duration_to_minutes(phrase, allow_words=True)
                if duration_minutes:
                    score += 0.15
            if duration_minutes:
                reminder_type = "one-time"

    if reminder_type is not None:
        score += 0.2
    elif time_str:
        # "remind me to exercise tomorrow at 7am": a clock time with no
        # recurrence keyword is scheduled as a daily reminder at that time
        reminder_type = "daily"

    if days and reminder_type in ("weekly", "custom"):
        score += 0.1
    if time_str:
        score += 0.15
    if len(message) > 3:
        score += 0.1

    intent = RemindIntent(
        message=message,
        reminder_type=reminder_type,
        time=time_str,
        duration_minutes=duration_minutes,
        days=days if reminder_type in ("weekly", "custom") else [],
        confidence=round(min(score, 1.0), 2),
    )
    logger.info(
        "Parsed reminder: '%s' type=%s time=%s in=%s days=%s (conf %.2f)",
        intent.message, intent.reminder_type, intent.time,
        intent.duration_minutes, intent.days, intent.confidence,
    )
    return intent
