"""
FocusVoice — Duration and clock-time parsing.

Turns spoken or typed time expressions into integer minutes:
"45m", "1h30", "2 hours", "until 6pm", and, on the reminder path,
number words such as "twenty-five minutes" or "half an hour".

Nothing here raises: an unparseable expression yields 0, which callers
treat as "duration unknown" and must clarify instead of guessing.
"""

from __future__ import annotations

import logging
import re
from datetime import datetime, timedelta
from zoneinfo import ZoneInfo

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Number words
# ---------------------------------------------------------------------------

_ONES = {
    "zero": 0, "one": 1, "two": 2, "three": 3, "four": 4, "five": 5,
    "six": 6, "seven": 7, "eight": 8, "nine": 9, "ten": 10,
    "eleven": 11, "twelve": 12, "thirteen": 13, "fourteen": 14,
    "fifteen": 15, "sixteen": 16, "seventeen": 17, "eighteen": 18,
    "nineteen": 19,
}

_TENS = {
    "twenty": 20, "thirty": 30, "forty": 40, "fifty": 50,
    "sixty": 60, "seventy": 70, "eighty": 80, "ninety": 90,
}

_DIGITS = [w for w, n in _ONES.items() if 1 <= n <= 9]

_NUMBER_WORD_RE = re.compile(
    r"\b(?:(?P<tens>" + "|".join(_TENS) + r")(?:[\s-]+(?P<unit>" + "|".join(_DIGITS) + r"))?"
    r"|(?P<ones>" + "|".join(sorted(_ONES, key=len, reverse=True)) + r"))\b",
    re.IGNORECASE,
)

_HALF_HOUR_RE = re.compile(r"\bhalf\s+(?:an?\s+)?hour\b", re.IGNORECASE)
_QUARTER_HOUR_RE = re.compile(r"\b(?:a\s+)?quarter\s+(?:of\s+)?(?:an?\s+)?hour\b", re.IGNORECASE)
_AN_HOUR_RE = re.compile(r"\b(?:an|a)\s+hour\b", re.IGNORECASE)


def words_to_number(phrase: str) -> int | None:
    """Convert an English number phrase (0–99) to an int.

    Accepts "seven", "fifteen", "forty", "twenty-five", "twenty five".
    Returns None for anything else.
    """
    if not phrase:
        return None
    tokens = [t for t in re.split(r"[\s-]+", phrase.strip().lower()) if t and t != "and"]
    if not tokens or len(tokens) > 2:
        return None

    if len(tokens) == 1:
        tok = tokens[0]
        if tok in _ONES:
            return _ONES[tok]
        return _TENS.get(tok)

    tens, unit = tokens
    if tens in _TENS and unit in _ONES and 1 <= _ONES[unit] <= 9:
        return _TENS[tens] + _ONES[unit]
    return None


def replace_number_words(text: str) -> str:
    """Replace every number phrase in text with its digits."""

    def _sub(match: re.Match) -> str:
        value = words_to_number(match.group(0))
        return str(value) if value is not None else match.group(0)

    return _NUMBER_WORD_RE.sub(_sub, text)


# ---------------------------------------------------------------------------
# Clock times
# ---------------------------------------------------------------------------

_AMPM_RE = re.compile(r"\b(\d{1,2})(?::(\d{2}))?\s*([ap])\.?\s*m\b\.?", re.IGNORECASE)
_24H_RE = re.compile(r"\b(\d{1,2}):(\d{2})\b")


def parse_clock_time(text: str | None) -> tuple[int, int] | None:
    """Parse "9 AM", "2:30 pm", "7am" or "14:00" into (hour, minute)."""
    if not text:
        return None
    lower = text.lower().strip()

    m = _AMPM_RE.search(lower)
    if m:
        hour = int(m.group(1))
        minute = int(m.group(2)) if m.group(2) else 0
        period = m.group(3)
        if hour < 1 or hour > 12 or minute > 59:
            return None
        if period == "p" and hour != 12:
            hour += 12
        if period == "a" and hour == 12:
            hour = 0
        return hour, minute

    m = _24H_RE.search(lower)
    if m:
        hour, minute = int(m.group(1)), int(m.group(2))
        if hour > 23 or minute > 59:
            return None
        return hour, minute

    return None


def find_clock_time(text: str | None) -> str | None:
    """Return the first clock expression in text as spoken ("7am", "14:00")."""
    if not text:
        return None
    for regex in (_AMPM_RE, _24H_RE):
        m = regex.search(text)
        if m and parse_clock_time(m.group(0)) is not None:
            return m.group(0).strip()
    return None


def local_now() -> datetime:
    """Wall-clock time in the configured TIMEZONE, as a naive datetime.

    Reminder jobs are scheduled in the same zone, so announced times and
    delivery times agree whatever the server's own clock zone is.
    """
    from focusvoice.config import settings
    return datetime.now(ZoneInfo(settings.TIMEZONE)).replace(tzinfo=None)


def minutes_until(hour: int, minute: int, now: datetime | None = None) -> int:
    """Minutes from now until hour:minute today; 0 if that time has passed."""
    now = now or local_now()
    target = now.replace(hour=hour, minute=minute, second=0, microsecond=0)
    if target <= now:
        return 0
    return int((target - now).total_seconds() // 60)


def format_minutes_to_end_time(minutes: int, now: datetime | None = None) -> str:
    """Return the wall-clock label ("3:45 PM") for now + minutes."""
    now = now or local_now()
    end = now + timedelta(minutes=minutes)
    return end.strftime("%I:%M %p").lstrip("0")


# ---------------------------------------------------------------------------
# Durations
# ---------------------------------------------------------------------------

# "1h30", "1h30m", "2h", "45m", "45", "1.5h"
_COMPACT_RE = re.compile(
    r"^(?:(?P<h>\d+(?:\.\d+)?)\s*h(?:\s*(?P<hm>\d+)\s*m?)?|(?P<m>\d+)\s*m?)$",
    re.IGNORECASE,
)
_HOURS_RE = re.compile(r"(\d+(?:\.\d+)?)\s*(?:hours?|hrs?)\b", re.IGNORECASE)
_MINUTES_RE = re.compile(r"(\d+)\s*(?:minutes?|mins?|m)\b", re.IGNORECASE)
_UNTIL_RE = re.compile(r"\buntil\s+(.+)$", re.IGNORECASE)


def _parse_natural(text: str) -> int:
    hours = _HOURS_RE.search(text)
    minutes = _MINUTES_RE.search(text)
    total = 0.0
    if hours:
        total += float(hours.group(1)) * 60
    if minutes:
        total += int(minutes.group(1))
    return int(round(total))


def parse_duration_to_minutes(
    text: str | None,
    allow_words: bool = False,
    now: datetime | None = None,
) -> int:
    """Parse a duration expression into minutes (0 if unparseable).

    Priority: compact form → natural language → "until <clock>" deadline →
    number words (only when allow_words is set, i.e. the reminder path).
    """
    if not text or not isinstance(text, str):
        return 0
    s = text.strip().lower()
    if not s:
        return 0

    m = _COMPACT_RE.match(s)
    if m:
        if m.group("h") is not None:
            total = float(m.group("h")) * 60 + int(m.group("hm") or 0)
            return int(round(total))
        return int(m.group("m"))

    natural = _parse_natural(s)
    if natural:
        return natural

    until = _UNTIL_RE.search(s)
    if until:
        clock = parse_clock_time(until.group(1))
        if clock is not None:
            return minutes_until(*clock, now=now)
        logger.debug("Unrecognised deadline: '%s'", until.group(1))
        return 0

    if allow_words:
        if _HALF_HOUR_RE.search(s):
            return 30
        if _QUARTER_HOUR_RE.search(s):
            return 15
        converted = _AN_HOUR_RE.sub("1 hour", replace_number_words(s))
        if converted != s:
            return _parse_natural(converted)

    return 0
