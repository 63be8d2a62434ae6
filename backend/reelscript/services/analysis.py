from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Callable, Protocol

from reelscript.core.models import AnalysisResult
from reelscript.core.ratelimit import (
    LimitStatus,
    RateLimiter,
    RateLimitExceeded,
    enforce_limit,
)
from reelscript.core.sanitizer import MalformedAnalysisInput, sanitize_analysis_result
from reelscript.services.demo import DEMO_ANALYSIS_RESULT
from reelscript.services.gemini import GeminiError

logger = logging.getLogger("reelscript.analysis")


class Analyzer(Protocol):
    def analyze(self, video_bytes: bytes, mime_type: str) -> dict[str, Any]: ...


class AnalysisFailed(Exception):
    """Gemini failed and the demo fallback is disabled."""


@dataclass(frozen=True)
class AnalysisOutcome:
    result: AnalysisResult
    rate_limit: LimitStatus
    error: str | None = None
    """Why the demo result was served instead of a real analysis."""


def demo_result() -> AnalysisResult:
    return sanitize_analysis_result({**DEMO_ANALYSIS_RESULT, "is_demo_mode": True})


class AnalysisService:
    def __init__(
        self,
        analyzer: Analyzer,
        limiter_for: Callable[[str], RateLimiter],
        demo_fallback: bool = True,
    ) -> None:
        self.analyzer = analyzer
        self.limiter_for = limiter_for
        self.demo_fallback = demo_fallback

    def analyze(self, user_id: str, video_bytes: bytes, mime_type: str) -> AnalysisOutcome:
        """Rate-limit, call the analyzer and sanitize its answer.

        Raises:
            RateLimitExceeded: The user's analysis window is full.
            AnalysisFailed: The analyzer failed and demo fallback is off.
        """
        try:
            status = enforce_limit(self.limiter_for(user_id))
        except RateLimitExceeded:
            logger.warning("analysis throttled for user %s", user_id)
            raise
        logger.info(
            "analysis for user %s (%d/%d left in window)",
            user_id,
            status.remaining_requests,
            status.max_requests,
        )

        try:
            raw = self.analyzer.analyze(video_bytes, mime_type)
            result = sanitize_analysis_result(raw)
        except (GeminiError, MalformedAnalysisInput) as exc:
            if not self.demo_fallback:
                raise AnalysisFailed(str(exc)) from exc
            logger.warning("analysis failed, serving demo result: %s", exc)
            return AnalysisOutcome(result=demo_result(), rate_limit=status, error=str(exc))

        return AnalysisOutcome(
            result=result.model_copy(update={"is_demo_mode": False}),
            rate_limit=status,
        )
