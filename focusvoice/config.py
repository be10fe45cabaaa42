"""
FocusVoice — Centralized configuration.

Loads all settings from .env and validates required keys.
Every knob of the voice pipeline (hybrid routing, quotas, context TTL,
undo window, debounce) lives here.
"""

from __future__ import annotations

import os
import sys
from pathlib import Path

from dotenv import load_dotenv
from pydantic import BaseModel, field_validator

# Load .env from project root (one level up from focusvoice/config.py)
_ENV_PATH = Path(__file__).resolve().parent.parent / ".env"
load_dotenv(_ENV_PATH)


class Settings(BaseModel):
    """Application settings loaded from environment variables."""

    # Telegram
    TELEGRAM_BOT_TOKEN: str

    # LLM — provider-agnostic (gemini, anthropic, openai, cohere)
    LLM_PROVIDER: str = "openai"
    LLM_MODEL: str = ""          # empty → smart default per provider
    LLM_API_KEY: str = ""        # empty → remote parser unavailable

    # Audio — OpenAI Whisper (transcription only)
    OPENAI_API_KEY: str = ""
    WHISPER_LANGUAGE: str = "en"

    # Hybrid intent routing
    AI_INTENTS_ENABLED: bool = False
    AI_HYBRID_MODE: bool = True
    AI_CONFIDENCE_THRESHOLD: float = 0.7
    AI_CLOUD_FALLBACK_ENABLED: bool = True
    REMOTE_PARSER_TIMEOUT_SECONDS: float = 10.0

    # Usage quota
    FREE_DAILY_CLOUD_LIMIT: int = 5
    PREMIUM_USER_IDS: list[int] = []

    # Conversation + execution timing
    CONTEXT_TTL_SECONDS: int = 300
    UNDO_GRACE_SECONDS: float = 5.0
    UTTERANCE_SETTLE_SECONDS: float = 0.8
    VOICE_SESSION_SECONDS: float = 3.0      # voice notes closer together share one session

    # SQLite
    DATABASE_PATH: str = "data/focusvoice.db"

    # Security
    ALLOWED_USER_IDS: list[int] = []

    TIMEZONE: str = "UTC"

    @field_validator("ALLOWED_USER_IDS", "PREMIUM_USER_IDS", mode="before")
    @classmethod
    def parse_user_ids(cls, v: str | list[int]) -> list[int]:
        if isinstance(v, list):
            return v
        if isinstance(v, str) and v.strip():
            return [int(uid.strip()) for uid in v.split(",") if uid.strip()]
        return []

    @field_validator(
        "AI_INTENTS_ENABLED", "AI_HYBRID_MODE", "AI_CLOUD_FALLBACK_ENABLED",
        mode="before",
    )
    @classmethod
    def parse_flag(cls, v: str | bool) -> bool:
        if isinstance(v, bool):
            return v
        return str(v).strip().lower() == "true"


def _load_settings() -> Settings:
    """Load settings from environment, validating required keys."""
    token = os.getenv("TELEGRAM_BOT_TOKEN", "")

    if not token or token.startswith("your-"):
        print("ERROR: TELEGRAM_BOT_TOKEN is missing or not set in .env", file=sys.stderr)
        sys.exit(1)

    return Settings(
        TELEGRAM_BOT_TOKEN=token,
        LLM_PROVIDER=os.getenv("LLM_PROVIDER", "openai"),
        LLM_MODEL=os.getenv("LLM_MODEL", ""),
        LLM_API_KEY=os.getenv("LLM_API_KEY", ""),
        OPENAI_API_KEY=os.getenv("OPENAI_API_KEY", ""),
        WHISPER_LANGUAGE=os.getenv("WHISPER_LANGUAGE", "en"),
        AI_INTENTS_ENABLED=os.getenv("AI_INTENTS_ENABLED", "false"),
        AI_HYBRID_MODE=os.getenv("AI_HYBRID_MODE", "true"),
        AI_CONFIDENCE_THRESHOLD=os.getenv("AI_CONFIDENCE_THRESHOLD", "0.7"),
        AI_CLOUD_FALLBACK_ENABLED=os.getenv("AI_CLOUD_FALLBACK_ENABLED", "true"),
        REMOTE_PARSER_TIMEOUT_SECONDS=os.getenv("REMOTE_PARSER_TIMEOUT_SECONDS", "10"),
        FREE_DAILY_CLOUD_LIMIT=os.getenv("FREE_DAILY_CLOUD_LIMIT", "5"),
        PREMIUM_USER_IDS=os.getenv("PREMIUM_USER_IDS", ""),
        CONTEXT_TTL_SECONDS=os.getenv("CONTEXT_TTL_SECONDS", "300"),
        UNDO_GRACE_SECONDS=os.getenv("UNDO_GRACE_SECONDS", "5"),
        UTTERANCE_SETTLE_SECONDS=os.getenv("UTTERANCE_SETTLE_SECONDS", "0.8"),
        VOICE_SESSION_SECONDS=os.getenv("VOICE_SESSION_SECONDS", "3"),
        DATABASE_PATH=os.getenv("DATABASE_PATH", "data/focusvoice.db"),
        ALLOWED_USER_IDS=os.getenv("ALLOWED_USER_IDS", ""),
        TIMEZONE=os.getenv("TIMEZONE", "UTC"),
    )


# Singleton — imported by all other modules as:
#   from focusvoice.config import settings
settings = _load_settings()
