"""Wiring of stores, limiters and the analyzer for one application instance."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Callable

from reelscript.auth.jwt import TokenDenylist
from reelscript.auth.store import UserStore
from reelscript.core.config import Settings
from reelscript.core.ratelimit import (
    JsonFileKeyValueStore,
    KeyValueStore,
    RateLimiter,
    RateLimiterConfig,
    scoped_limiter,
    sweep_expired,
)
from reelscript.scripts.store import ScriptStore
from reelscript.services.analysis import Analyzer, AnalysisService
from reelscript.services.gemini import GeminiAnalyzer
from reelscript.storage.videos import VideoStorage

logger = logging.getLogger("reelscript.services")


@dataclass
class Services:
    settings: Settings
    users: UserStore
    scripts: ScriptStore
    videos: VideoStorage
    rate_limit_store: KeyValueStore
    analysis_limits: RateLimiterConfig
    save_limits: RateLimiterConfig
    analyzer: Analyzer
    clock: Callable[[], int] | None = None
    tokens: TokenDenylist = field(default_factory=TokenDenylist)

    def analysis_limiter(self, user_id: str) -> RateLimiter:
        return scoped_limiter(self.analysis_limits, user_id, self.rate_limit_store, clock=self.clock)

    def save_limiter(self, user_id: str) -> RateLimiter:
        return scoped_limiter(self.save_limits, user_id, self.rate_limit_store, clock=self.clock)

    @property
    def analysis(self) -> AnalysisService:
        return AnalysisService(
            analyzer=self.analyzer,
            limiter_for=self.analysis_limiter,
            demo_fallback=self.settings.demo_fallback,
        )


def build_services(settings: Settings) -> Services:
    services = Services(
        settings=settings,
        users=UserStore(settings.users_file),
        scripts=ScriptStore(settings.scripts_file, max_per_user=settings.max_saved_scripts),
        videos=VideoStorage(settings),
        rate_limit_store=JsonFileKeyValueStore(settings.rate_limit_file),
        analysis_limits=RateLimiterConfig(
            max_requests=settings.analysis_max_requests,
            window_ms=settings.analysis_window_ms,
            storage_key=settings.analysis_storage_key,
        ),
        save_limits=RateLimiterConfig(
            max_requests=settings.save_max_requests,
            window_ms=settings.save_window_ms,
            storage_key=settings.save_storage_key,
        ),
        analyzer=GeminiAnalyzer(settings),
    )
    try:
        sweep_expired(
            services.rate_limit_store,
            (services.analysis_limits, services.save_limits),
        )
    except OSError as exc:
        logger.warning("could not sweep expired rate limit logs: %s", exc)
    return services
