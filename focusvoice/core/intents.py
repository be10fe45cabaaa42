"""
FocusVoice — Intent models.

Shared contract between the parsers (local grammar, reminder sub-parser,
remote LLM), the clarification engine and the executors. Each action has
its own model so that a reminder can never carry a blocking target type and
a block can never carry a reminder type.
"""

from __future__ import annotations

from typing import Annotated, Literal, Union

from pydantic import BaseModel, Field

ReminderType = Literal["one-time", "daily", "weekly", "custom"]


class IntentMetadata(BaseModel):
    """Routing metadata attached by the HybridRouter.

    JSON example:
    {"source": "cloud", "confidence": 0.9, "parse_time_ms": 812.0, "note": ""}
    """
    source: Literal["local", "cloud", "none"] = "local"
    confidence: float = 0.0
    parse_time_ms: float = 0.0
    note: str = ""


class Classification(BaseModel):
    """Coarse verdict of the keyword classifier, produced before parsing."""
    type: Literal["valid", "off-topic", "unclear-action", "unclear-target"]
    confidence: Literal["high", "medium", "low"]
    suggested_action: str | None = None
    detected_target: str | None = None


class BlockIntent(BaseModel):
    """Block a target for a duration.

    JSON example:
    {"action": "block", "target_type": "alias", "target": "social", "duration_minutes": 30}
    """
    action: Literal["block"] = "block"
    target_type: Literal["alias", "preset"] = "alias"
    target: str = ""
    duration_minutes: int = 0     # 0 → unknown, must be clarified
    confidence: float | None = None
    metadata: IntentMetadata | None = None


class StopIntent(BaseModel):
    """Stop the running blocking session."""
    action: Literal["stop"] = "stop"
    target: str = ""
    confidence: float | None = None
    metadata: IntentMetadata | None = None


class RemindIntent(BaseModel):
    """Create a reminder.

    JSON example:
    {"action": "remind", "message": "drink water", "reminder_type": "one-time",
     "duration_minutes": 10, "days": [], "time": null, "confidence": 0.9}
    """
    action: Literal["remind"] = "remind"
    message: str = ""
    reminder_type: ReminderType | None = None
    time: str | None = None        # clock string as spoken, e.g. "9 am"
    duration_minutes: int = 0      # minutes from now (one-time only)
    days: list[str] = Field(default_factory=list)
    confidence: float | None = None
    metadata: IntentMetadata | None = None


class ClassificationIntent(BaseModel):
    """The utterance needs guidance before it can be parsed into an action."""
    action: Literal["classification"] = "classification"
    classification: Classification
    needs_guidance: bool = True
    text: str = ""
    confidence: float | None = None
    metadata: IntentMetadata | None = None


class UnresolvedIntent(BaseModel):
    """No local parse and the remote parser could not be consulted."""
    action: Literal["none"] = "none"
    error: str = ""
    confidence: float | None = None
    metadata: IntentMetadata | None = None


Intent = Annotated[
    Union[BlockIntent, StopIntent, RemindIntent, ClassificationIntent, UnresolvedIntent],
    Field(discriminator="action"),
]

ActionableIntent = Union[BlockIntent, StopIntent, RemindIntent]


def is_actionable(intent: object) -> bool:
    """True for intents that can be planned (block, stop, remind)."""
    return isinstance(intent, (BlockIntent, StopIntent, RemindIntent))


# ---------------------------------------------------------------------------
# Dialog prompts
# ---------------------------------------------------------------------------


class Clarification(BaseModel):
    """A missing slot and the question that fills it."""
    question: str
    suggestions: list[str]
    missing: Literal["message", "time", "target", "duration"]


class GuidancePrompt(BaseModel):
    """Static guidance for utterances the classifier could not accept."""
    message: str
    suggestions: list[str]
    should_speak: bool = True
