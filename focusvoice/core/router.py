"""
FocusVoice — Hybrid local/cloud intent router.

Local parse first, always. The remote parser is consulted only when the
local confidence is below the threshold, the cloud is enabled, and the
daily quota allows it. Every degraded path returns the local result with a
note explaining why, so running out of quota or network never fails a
command that the local grammar understood.
"""

from __future__ import annotations

import logging
import time
from dataclasses import asdict, dataclass, field
from typing import TYPE_CHECKING, Any

from focusvoice.core.intents import (
    ClassificationIntent,
    IntentMetadata,
    UnresolvedIntent,
    is_actionable,
)
from focusvoice.core.parser import REMOTE_DEFAULT_CONFIDENCE, intent_from_remote, parse_intent

if TYPE_CHECKING:
    from focusvoice.core.intents import Intent
    from focusvoice.core.usage import UsageTracker
    from focusvoice.ports.remote_parser_port import RemoteParserPort

logger = logging.getLogger(__name__)

DEFAULT_LOCAL_CONFIDENCE = 0.6

NOTE_LIMIT_REACHED = "cloud-limit-reached"
NOTE_CLOUD_FAILED = "cloud-failed-using-local"
NOTE_NO_CLOUD = "low-confidence-no-cloud"
NOTE_NO_LOCAL_FALLBACK = "limit-reached-no-local-fallback"
NOTE_NEEDS_GUIDANCE = "needs-guidance"


@dataclass
class RouterTelemetry:
    total_parses: int = 0
    local_success: int = 0
    cloud_fallback: int = 0       # remote attempts
    cloud_success: int = 0
    avg_local_time_ms: float = 0.0
    avg_cloud_time_ms: float = 0.0
    avg_response_time_ms: float = 0.0
    confidence_distribution: dict[str, int] = field(
        default_factory=lambda: {"high": 0, "medium": 0, "low": 0}
    )


def _running_avg(avg: float, value: float, n: int) -> float:
    return avg + (value - avg) / n if n else value


class HybridRouter:
    """Confidence-gated choice between the local grammar and the remote parser."""

    def __init__(
        self,
        usage: UsageTracker,
        remote: RemoteParserPort | None = None,
        hybrid_mode: bool | None = None,
        threshold: float | None = None,
        cloud_enabled: bool | None = None,
    ) -> None:
        from focusvoice.config import settings

        self._usage = usage
        self._remote = remote
        self.hybrid_mode = settings.AI_HYBRID_MODE if hybrid_mode is None else hybrid_mode
        self.threshold = settings.AI_CONFIDENCE_THRESHOLD if threshold is None else threshold
        self.cloud_enabled = (
            settings.AI_CLOUD_FALLBACK_ENABLED if cloud_enabled is None else cloud_enabled
        )
        self._telemetry = RouterTelemetry()

    # ------------------------------------------------------------------
    # Telemetry
    # ------------------------------------------------------------------

    def get_telemetry(self) -> dict[str, Any]:
        return asdict(self._telemetry)

    def reset_telemetry(self) -> None:
        self._telemetry = RouterTelemetry()

    def _record(self, source: str, confidence: float, local_ms: float, cloud_ms: float) -> None:
        t = self._telemetry
        t.total_parses += 1
        t.avg_local_time_ms = _running_avg(t.avg_local_time_ms, local_ms, t.total_parses)
        t.avg_response_time_ms = _running_avg(
            t.avg_response_time_ms, local_ms + cloud_ms, t.total_parses,
        )
        if source == "local":
            t.local_success += 1
        elif source == "cloud":
            t.cloud_success += 1
            t.avg_cloud_time_ms = _running_avg(t.avg_cloud_time_ms, cloud_ms, t.cloud_success)

        if confidence >= 0.8:
            t.confidence_distribution["high"] += 1
        elif confidence >= 0.5:
            t.confidence_distribution["medium"] += 1
        else:
            t.confidence_distribution["low"] += 1

    # ------------------------------------------------------------------
    # Routing
    # ------------------------------------------------------------------

    def _cloud_available(self) -> bool:
        return bool(self.cloud_enabled and self._remote is not None and self._remote.is_available())

    async def _try_remote(self, text: str, allow_default_duration: bool) -> Intent | None:
        self._telemetry.cloud_fallback += 1
        try:
            data = await self._remote.parse(text)
        except Exception as exc:
            logger.error("Remote parser raised: %s", exc)
            return None
        if not data:
            return None
        return intent_from_remote(data, allow_default_duration)

    @staticmethod
    def _tag(intent: Intent, source: str, confidence: float, elapsed_ms: float, note: str = "") -> Intent:
        intent.metadata = IntentMetadata(
            source=source, confidence=confidence, parse_time_ms=round(elapsed_ms, 1), note=note,
        )
        return intent

    async def parse(self, text: str, **options: Any) -> Intent | None:
        """Parse text, escalating to the remote parser when local is unsure.

        Options are forwarded to parse_intent (allow_default_duration,
        aliases, context). Returns None only when nothing parsed locally and
        no remote parser could be consulted.
        """
        allow_default_duration = options.get("allow_default_duration", True)
        started = time.perf_counter()
        local = await parse_intent(text, **options)
        local_ms = (time.perf_counter() - started) * 1000

        if isinstance(local, ClassificationIntent):
            self._record("local", 0.0, local_ms, 0.0)
            return self._tag(local, "local", 0.0, local_ms, NOTE_NEEDS_GUIDANCE)

        # Nothing usable locally: the remote parser is the only chance
        if local is None or not is_actionable(local):
            if not self._cloud_available():
                logger.info("No local parse and no remote parser for: %s", (text or "")[:80])
                return None

            status = await self._usage.get_remaining_cloud_calls()
            if not status.can_use:
                logger.warning("Cloud quota exhausted and no local parse")
                self._record("none", 0.0, local_ms, 0.0)
                return self._tag(
                    UnresolvedIntent(error="Daily cloud limit reached"),
                    "none", 0.0, local_ms, NOTE_NO_LOCAL_FALLBACK,
                )

            cloud_started = time.perf_counter()
            remote = await self._try_remote(text, allow_default_duration)
            cloud_ms = (time.perf_counter() - cloud_started) * 1000
            if remote is None:
                return None
            await self._usage.increment_cloud_usage()
            self._record("cloud", REMOTE_DEFAULT_CONFIDENCE, local_ms, cloud_ms)
            return self._tag(remote, "cloud", REMOTE_DEFAULT_CONFIDENCE, local_ms + cloud_ms)

        confidence = local.confidence if local.confidence is not None else DEFAULT_LOCAL_CONFIDENCE

        if not self.hybrid_mode or confidence >= self.threshold:
            self._record("local", confidence, local_ms, 0.0)
            return self._tag(local, "local", confidence, local_ms)

        if not self._cloud_available():
            self._record("local", confidence, local_ms, 0.0)
            return self._tag(local, "local", confidence, local_ms, NOTE_NO_CLOUD)

        status = await self._usage.get_remaining_cloud_calls()
        if not status.can_use:
            logger.info("Cloud quota exhausted, using local parse (conf %.2f)", confidence)
            self._record("local", confidence, local_ms, 0.0)
            return self._tag(local, "local", confidence, local_ms, NOTE_LIMIT_REACHED)

        cloud_started = time.perf_counter()
        remote = await self._try_remote(text, allow_default_duration)
        cloud_ms = (time.perf_counter() - cloud_started) * 1000

        if remote is None:
            logger.info("Remote parse failed, using local parse (conf %.2f)", confidence)
            self._record("local", confidence, local_ms, cloud_ms)
            return self._tag(local, "local", confidence, local_ms + cloud_ms, NOTE_CLOUD_FAILED)

        await self._usage.increment_cloud_usage()
        self._record("cloud", REMOTE_DEFAULT_CONFIDENCE, local_ms, cloud_ms)
        logger.info("Cloud parse used (local conf %.2f < %.2f)", confidence, self.threshold)
        return self._tag(remote, "cloud", REMOTE_DEFAULT_CONFIDENCE, local_ms + cloud_ms)
