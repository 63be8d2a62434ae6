"""Shared fixtures: isolated settings, an app with a fake analyzer, auth helper."""

from __future__ import annotations

from typing import Any

import pytest
from fastapi.testclient import TestClient

from reelscript.core.config import Settings
from reelscript.main import create_app
from reelscript.services.container import build_services
from reelscript.services.gemini import GeminiError

SAMPLE_ANALYSIS: dict[str, Any] = {
    "title": "Morning <b>routine</b>",
    "original": {"transcription": "Hello there", "translation": "Привет"},
    "keys": [{"title": "Hook", "description": "Question in the first second"}],
    "script": [
        {"time": "0-3 s", "visual": "close up", "text": "Do you wake up tired?", "note": "hook"},
        {"time": "3-8 s", "visual": "medium shot", "text": "Try this", "note": "promise"},
    ],
    "recommendations": [{"category": "Music", "text": "Upbeat lo-fi"}],
}


class FakeAnalyzer:
    def __init__(self, payload: Any = None, error: Exception | None = None) -> None:
        self.payload = payload if payload is not None else SAMPLE_ANALYSIS
        self.error = error
        self.calls: list[tuple[int, str]] = []

    def analyze(self, video_bytes: bytes, mime_type: str) -> dict[str, Any]:
        self.calls.append((len(video_bytes), mime_type))
        if self.error is not None:
            raise self.error
        return self.payload


@pytest.fixture
def anyio_backend():
    return "asyncio"


@pytest.fixture
def settings(tmp_path) -> Settings:
    return Settings(
        data_dir=tmp_path / "data",
        log_dir=tmp_path / "logs",
        gemini_api_key="",
        secret_key="test-secret",
        max_video_bytes=1024,
    )


@pytest.fixture
def analyzer() -> FakeAnalyzer:
    return FakeAnalyzer()


@pytest.fixture
def services(settings, analyzer):
    services = build_services(settings)
    services.analyzer = analyzer
    return services


@pytest.fixture
def client(services) -> TestClient:
    return TestClient(create_app(services=services))


def register(client: TestClient, email: str = "user@example.com", password: str = "secret123") -> dict[str, str]:
    """Register a user and return the Authorization header for them."""
    resp = client.post("/api/auth/register", json={"email": email, "password": password})
    assert resp.status_code == 200, resp.text
    return {"Authorization": f"Bearer {resp.json()['access_token']}"}


@pytest.fixture
def auth_headers(client) -> dict[str, str]:
    return register(client)


def failing_analyzer(message: str = "Gemini quota exceeded") -> FakeAnalyzer:
    return FakeAnalyzer(error=GeminiError(message))
