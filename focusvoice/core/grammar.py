"""
FocusVoice — Command grammar for block/start/stop utterances.

Examples:
  - block tiktok for 30 minutes
  - block social for 45m
  - block youtube for 1h30
  - start focus for 25 minutes
"""

from __future__ import annotations

import re
from dataclasses import dataclass

_COMMAND_RE = re.compile(r"\b(block|start|stop)\b\s+(.+?)(?:\s+for\s+(.+))?$", re.IGNORECASE)
_DANGLING_FOR_RE = re.compile(r"\s+for$", re.IGNORECASE)
_QUESTION_RE = re.compile(r"\b(what|how|why|when|which|should|can|could)\b", re.IGNORECASE)
_TRAILING_PUNCT = ".!?,"


@dataclass
class ParsedCommand:
    action: str             # "block" | "start" | "stop"
    target_text: str
    duration_text: str = ""
    dangling_for: bool = False   # "block facebook for": duration was started, not given
    confidence: float = 0.0


def calculate_confidence(cmd: ParsedCommand, original_text: str) -> float:
    """Heuristic 0–1 score of how clean the command parse was."""
    score = 0.4

    if cmd.action in ("block", "start", "stop"):
        score += 0.25
    if cmd.duration_text:
        score += 0.2
    if len(cmd.target_text) > 2:
        score += 0.15
    if cmd.action and cmd.target_text and cmd.duration_text:
        score += 0.1

    if len(original_text) < 10:
        score -= 0.15
    if _QUESTION_RE.search(original_text):
        score -= 0.2

    return max(0.0, min(1.0, round(score, 2)))


def parse_command(text: str | None) -> ParsedCommand | None:
    """Match "<action> <target>[ for <duration>]"; None when it does not fit."""
    if not text or not isinstance(text, str):
        return None
    s = text.strip().lower().rstrip(_TRAILING_PUNCT).strip()

    m = _COMMAND_RE.search(s)
    if not m:
        return None

    target = (m.group(2) or "").strip()
    duration = (m.group(3) or "").strip()
    dangling = False
    if not duration and _DANGLING_FOR_RE.search(target):
        target = _DANGLING_FOR_RE.sub("", target).strip()
        dangling = True

    cmd = ParsedCommand(
        action=m.group(1),
        target_text=target,
        duration_text=duration,
        dangling_for=dangling,
    )
    cmd.confidence = calculate_confidence(cmd, text)
    return cmd
