"""
AI-assisted content moderation on top of an external classifier.

Results are cached by a SHA-256 fingerprint of the content for a TTL, calls
are bounded by a hard timeout, and the last analyses are kept in a bounded
history for review. A verdict only counts as a violation once its
confidence reaches the configured threshold.
"""

from __future__ import annotations

import asyncio
import hashlib
import time
from collections import deque
from typing import Any, Callable, Deque, Dict, List, Tuple

from automod.datatypes.analysis_datatypes import (
    AIModerationOptions,
    AIModerationResult,
    AnalysisOutcome,
    ContentAnalysis,
)
from automod.datatypes.evaluation_datatypes import EvaluationContext
from automod.moderation.collaborators import ContentClassifier, EnforcementBackend
from automod.util.format_utils import now_ms
from automod.util.logger import get_logger

logger = get_logger("ai_content_moderator")

HISTORY_LIMIT = 1000
CACHE_LIMIT = 1024
HISTORY_CONTENT_LENGTH = 500


def content_fingerprint(content: str) -> str:
    return hashlib.sha256(content.encode("utf-8")).hexdigest()


class AIContentModerator:
    """
    Wraps a :class:`ContentClassifier` with caching, a timeout and a threshold.

    Args:
        classifier: The external classifier; None disables AI moderation.
        confidence_threshold: Minimum confidence for a violation to be acted on.
        cache_ttl_seconds: Lifetime of cached analyses.
        request_timeout_seconds: Hard limit for one classifier call.
        min_content_length: Shorter messages are not sent to the classifier.
        monotonic: Clock used for cache expiry.
    """

    def __init__(
        self,
        classifier: ContentClassifier | None,
        confidence_threshold: float = 0.8,
        cache_ttl_seconds: float = 300.0,
        request_timeout_seconds: float = 10.0,
        min_content_length: int = 5,
        monotonic: Callable[[], float] = time.monotonic,
    ) -> None:
        self._classifier = classifier
        self.confidence_threshold = confidence_threshold
        self._cache_ttl = cache_ttl_seconds
        self._timeout = request_timeout_seconds
        self._min_content_length = min_content_length
        self._monotonic = monotonic
        self._cache: Dict[str, Tuple[float, ContentAnalysis]] = {}
        self._history: Deque[Dict[str, Any]] = deque(maxlen=HISTORY_LIMIT)

    @property
    def available(self) -> bool:
        return self._classifier is not None

    @property
    def history(self) -> List[Dict[str, Any]]:
        return list(self._history)

    def _cached(self, fingerprint: str) -> ContentAnalysis | None:
        entry = self._cache.get(fingerprint)
        if entry is None:
            return None
        stored_at, analysis = entry
        if self._monotonic() - stored_at >= self._cache_ttl:
            del self._cache[fingerprint]
            return None
        return analysis

    def _remember(self, fingerprint: str, analysis: ContentAnalysis) -> None:
        now = self._monotonic()
        if len(self._cache) >= CACHE_LIMIT:
            expired = [key for key, (stored_at, _) in self._cache.items() if now - stored_at >= self._cache_ttl]
            for key in expired:
                del self._cache[key]
            if len(self._cache) >= CACHE_LIMIT:
                oldest = min(self._cache, key=lambda key: self._cache[key][0])
                del self._cache[oldest]
        self._cache[fingerprint] = (now, analysis)

    async def analyze(self, content: str, context: Dict[str, Any] | None = None) -> AnalysisOutcome:
        """Classify ``content``; failures are returned, never raised."""
        if self._classifier is None:
            return AnalysisOutcome(success=False, error="AI moderation not available")

        fingerprint = content_fingerprint(content)
        cached = self._cached(fingerprint)
        if cached is not None:
            logger.debug("[AI MODERATION] Cache hit for %s", fingerprint[:12])
            return AnalysisOutcome(success=True, analysis=cached, fingerprint=fingerprint, cached=True)

        try:
            analysis = await asyncio.wait_for(
                self._classifier.analyze(content, dict(context or {})),
                timeout=self._timeout,
            )
        except asyncio.TimeoutError:
            logger.warning("[AI MODERATION] Classifier timed out after %.1fs", self._timeout)
            return AnalysisOutcome(success=False, fingerprint=fingerprint, error="Classifier timed out")
        except Exception as exc:
            logger.error("[AI MODERATION] Classifier call failed: %s", exc, exc_info=True)
            return AnalysisOutcome(success=False, fingerprint=fingerprint, error=str(exc))

        self._remember(fingerprint, analysis)
        self._history.append({
            "fingerprint": fingerprint,
            "content": content[:HISTORY_CONTENT_LENGTH],
            "analysis": analysis.to_dict(),
            "timestamp": now_ms(),
        })
        return AnalysisOutcome(success=True, analysis=analysis, fingerprint=fingerprint)

    async def process_ai_moderation(
        self,
        context: EvaluationContext,
        backend: EnforcementBackend,
        options: AIModerationOptions | None = None,
    ) -> AIModerationResult:
        """Classify a message and apply the configured responses to a confident violation."""
        options = options or AIModerationOptions()
        if not self.available:
            return AIModerationResult(processed=False, reason="AI not available")

        content = context.message_content or ""
        if len(content) < self._min_content_length:
            return AIModerationResult(processed=False, reason="Content too short")

        outcome = await self.analyze(
            content,
            {
                "guild_id": str(context.guild_id),
                "channel_id": None if context.channel_id is None else str(context.channel_id),
                "author_id": str(context.user_id),
            },
        )
        if not outcome.success or outcome.analysis is None:
            return AIModerationResult(processed=False, error=outcome.error)

        analysis = outcome.analysis
        result = AIModerationResult(
            processed=True,
            fingerprint=outcome.fingerprint,
            violation=analysis.is_violation,
            violation_type=analysis.violation_type,
            confidence=analysis.confidence,
            severity=analysis.severity,
            suggested_action=analysis.suggested_action,
        )

        threshold = options.confidence_threshold
        if threshold is None:
            threshold = self.confidence_threshold
        if not (analysis.is_violation and analysis.confidence >= threshold):
            return result

        message = context.message
        if options.auto_delete and analysis.severity == "high" and message is not None and message.deletable:
            try:
                await message.delete()
                result.deleted = True
            except Exception as exc:
                logger.warning("[AI MODERATION] Failed to delete flagged message: %s", exc)

        if options.send_educational_message and analysis.educational_message and message is not None:
            try:
                await message.reply(analysis.educational_message)
                result.educational_message_sent = True
            except Exception as exc:
                logger.warning("[AI MODERATION] Failed to send educational reply: %s", exc)

        if options.warn_on_violation:
            warning = await backend.warn(
                context.guild_id,
                context.user_id,
                reason=f"AI-detected {analysis.violation_type}",
            )
            result.warned = warning.success

        logger.info(
            "[AI MODERATION] %s violation (%.2f, %s) by user %s in guild %s: deleted=%s warned=%s",
            analysis.violation_type, analysis.confidence, analysis.severity,
            context.user_id, context.guild_id, result.deleted, result.warned,
        )
        return result
