"""Application configuration using Pydantic BaseSettings.

All configuration is loaded from environment variables or .env.
No os.getenv elsewhere in the codebase.
"""

from __future__ import annotations

import json
from pathlib import Path
from typing import Annotated, Any

from pydantic import field_validator
from pydantic_settings import BaseSettings, NoDecode, SettingsConfigDict

_BACKEND_ROOT = Path(__file__).resolve().parent.parent.parent

_DEFAULT_ORIGINS: list[str] = [
    "http://localhost:5173",
    "http://127.0.0.1:5173",
]

_DEFAULT_VIDEO_TYPES: list[str] = [
    "video/mp4",
    "video/quicktime",
    "video/webm",
]


def _resolve_env_file() -> str | None:
    """Resolve .env path relative to backend root (parent of reelscript/)."""
    path = _BACKEND_ROOT / ".env"
    return str(path) if path.exists() else None


def _parse_str_list(v: Any, default: list[str]) -> list[str]:
    if isinstance(v, list):
        return [str(x).strip() for x in v if str(x).strip()]
    if isinstance(v, str):
        raw = v.strip()
        if not raw:
            return list(default)
        if raw.startswith("["):
            try:
                parsed: list[str] = json.loads(raw)
                return [str(x).strip() for x in parsed if str(x).strip()]
            except json.JSONDecodeError:
                pass
        return [x.strip() for x in raw.split(",") if x.strip()]
    return list(default)


class Settings(BaseSettings):
    """ReelScript settings. Loaded from env and .env."""

    model_config = SettingsConfigDict(
        env_file=_resolve_env_file(),
        env_file_encoding="utf-8",
        extra="ignore",
        case_sensitive=False,
    )

    # Gemini
    gemini_api_key: str = ""
    """Google AI key. When empty, analysis falls back to the demo result."""
    gemini_model: str = "models/gemini-2.5-flash"
    gemini_temperature: float = 0.7
    gemini_max_output_tokens: int = 8192
    ai_language: str = "ru-RU"
    """Language the translation and the scene script are written in."""
    demo_fallback: bool = True
    """Serve the canned demo analysis when Gemini fails instead of erroring."""

    # Storage
    data_dir: Path = _BACKEND_ROOT / "data"
    log_dir: Path = _BACKEND_ROOT / "logs"
    log_level: str = "INFO"
    max_video_bytes: int = 100 * 1024 * 1024
    accepted_video_types: Annotated[list[str], NoDecode] = _DEFAULT_VIDEO_TYPES
    max_saved_scripts: int = 30
    signed_url_expire_seconds: int = 3600

    # Rate limits
    analysis_max_requests: int = 5
    analysis_window_ms: int = 15 * 60 * 1000
    analysis_storage_key: str = "video_analysis_limit"
    save_max_requests: int = 10
    save_window_ms: int = 5 * 60 * 1000
    save_storage_key: str = "save_script_limit"

    # Own JWT auth (python-jose)
    secret_key: str = "change-me-in-production-use-env-secret"
    """Secret key for signing our own JWTs. Set SECRET_KEY in production."""
    jwt_algorithm: str = "HS256"
    access_token_expire_minutes: int = 60 * 24 * 7
    """Access token expiry in minutes (default 7 days)."""

    # CORS
    allowed_origins: Annotated[list[str], NoDecode] = _DEFAULT_ORIGINS

    @field_validator("allowed_origins", mode="before")
    @classmethod
    def parse_allowed_origins(cls, v: Any) -> list[str]:
        return _parse_str_list(v, _DEFAULT_ORIGINS)

    @field_validator("accepted_video_types", mode="before")
    @classmethod
    def parse_accepted_video_types(cls, v: Any) -> list[str]:
        return [x.lower() for x in _parse_str_list(v, _DEFAULT_VIDEO_TYPES)]

    @property
    def rate_limit_file(self) -> Path:
        return self.data_dir / "rate_limits.json"

    @property
    def users_file(self) -> Path:
        return self.data_dir / "users.json"

    @property
    def scripts_file(self) -> Path:
        return self.data_dir / "scripts.json"

    @property
    def videos_dir(self) -> Path:
        return self.data_dir / "videos"


def get_settings() -> Settings:
    """Return application settings."""
    return Settings()
