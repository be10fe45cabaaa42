"""
FocusVoice — Audio Transcriber.

Telegram voice notes are transcribed with OpenAI Whisper, then flow into
the same pipeline as typed commands (with from_voice=True, so a missing
duration is asked for rather than assumed).
"""

from __future__ import annotations

import logging
from pathlib import Path

from openai import AsyncOpenAI

from focusvoice.config import settings

logger = logging.getLogger(__name__)

_client: AsyncOpenAI | None = None


def _get_client() -> AsyncOpenAI:
    global _client
    if _client is None:
        _client = AsyncOpenAI(api_key=settings.OPENAI_API_KEY)
    return _client


async def transcribe_audio(file_path: str) -> str:
    """Transcribe an audio file using OpenAI Whisper.

    Args:
        file_path: Path to the audio file (OGG, MP3, etc.).

    Returns:
        Transcribed text string.

    Raises:
        Exception: If the Whisper API call fails.
    """
    try:
        with open(file_path, "rb") as audio_file:
            response = await _get_client().audio.transcriptions.create(
                model="whisper-1",
                file=audio_file,
                language=settings.WHISPER_LANGUAGE,
                # Bias recognition toward command vocabulary
                prompt="Block social for 30 minutes. Remind me to stretch in 20 minutes.",
            )
        text = response.text.strip()
        logger.info("Transcribed %d chars from %s", len(text), Path(file_path).name)
        return text
    except Exception as exc:
        logger.error("Whisper transcription failed for %s: %s", file_path, exc)
        raise
