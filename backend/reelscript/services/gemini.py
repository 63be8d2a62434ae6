"""
Script analysis of short videos with Gemini.

The video is sent inline (bytes + mime type) together with an instruction
prompt. Gemini answers with free text that should hold one JSON object,
sometimes wrapped in a markdown code fence.
"""

from __future__ import annotations

import json
import logging
import re
from typing import Any

from reelscript.core.config import Settings

logger = logging.getLogger("reelscript.gemini")

_FENCED_JSON_RE = re.compile(r"```(?:json)?\s*\n([\s\S]*?)\n?```")
_OBJECT_RE = re.compile(r"\{[\s\S]*\}")


class GeminiError(RuntimeError):
    """Gemini could not be reached or refused the request."""


class GeminiResponseError(GeminiError):
    """Gemini answered, but not with a usable JSON object."""


def build_analysis_prompt(language: str) -> str:
    """Instruction prompt sent with the video."""
    return f"""You are a professional social media analyst and scriptwriter for short vertical videos (Reels, TikTok, Shorts).

Analyze the attached video and complete the following tasks:

0. SCRIPT TITLE:
   - Come up with a short title (2-3 words) that captures the main idea of the video.

1. TRANSCRIPTION AND TRANSLATION:
   - Transcribe the full audio track in its original language.
   - Translate the transcription into {language}.

2. KEYS TO SUCCESS:
   Identify 5 key reasons why this video can perform well:
   - Hook (how attention is captured in the first 3 seconds)
   - Structure (how the content is built)
   - Delivery (intonation, pace, energy)
   - Visuals (camera, editing, effects)
   - Audio (music, sound accents)

3. READY-MADE SCRIPT:
   Write a step-by-step script in {language} for shooting a similar video.
   For each scene give:
   - Time range (for example "0-3 s")
   - Visuals (close-up, medium shot, demonstration and so on)
   - Voice-over text adapted to {language}
   - A note explaining why the moment matters

4. PRODUCTION RECOMMENDATIONS:
   Give practical advice on:
   - Intonation and voice
   - Background music
   - Working with an AI avatar (if applicable)
   - Editing and effects

Answer STRICTLY as JSON with this structure:
{{
  "title": "Script title",
  "original": {{
    "transcription": "...",
    "translation": "..."
  }},
  "keys": [
    {{"title": "...", "description": "..."}}
  ],
  "script": [
    {{"time": "...", "visual": "...", "text": "...", "note": "..."}}
  ],
  "recommendations": [
    {{"category": "...", "text": "..."}}
  ]
}}
"""


def extract_json_payload(text: str) -> dict[str, Any]:
    """Parse the JSON object out of a model answer.

    Tries, in order: a fenced ```json block, the outermost {...} span, the
    whole text.

    Raises:
        GeminiResponseError: No candidate parses to a JSON object.
    """
    raw = (text or "").strip()
    candidates: list[str] = []
    fenced = _FENCED_JSON_RE.search(raw)
    if fenced:
        candidates.append(fenced.group(1))
    span = _OBJECT_RE.search(raw)
    if span:
        candidates.append(span.group(0))
    candidates.append(raw)

    for candidate in candidates:
        try:
            parsed = json.loads(candidate)
        except json.JSONDecodeError:
            continue
        if isinstance(parsed, dict):
            return parsed

    logger.error("failed to parse Gemini answer as JSON (%d chars)", len(raw))
    raise GeminiResponseError("Failed to parse Gemini response as JSON")


def _normalize_model(model: str) -> str:
    # Accept either "gemini-2.5-flash" or "models/gemini-2.5-flash".
    normalized = (model or "").strip()
    if normalized and not normalized.startswith("models/"):
        normalized = f"models/{normalized}"
    return normalized


class GeminiAnalyzer:
    """Sends a video to Gemini and returns the raw (unsanitized) analysis dict."""

    def __init__(self, settings: Settings) -> None:
        self.api_key = settings.gemini_api_key.strip()
        self.model = _normalize_model(settings.gemini_model)
        self.temperature = settings.gemini_temperature
        self.max_output_tokens = settings.gemini_max_output_tokens
        self.prompt = build_analysis_prompt(settings.ai_language)

    @property
    def configured(self) -> bool:
        return bool(self.api_key)

    def generate_text(self, video_bytes: bytes, mime_type: str) -> str:
        if not self.api_key:
            raise GeminiError("GEMINI_API_KEY not configured")
        try:
            import google.generativeai as genai
        except ImportError as exc:
            raise GeminiError(
                "Dependency 'google-generativeai' is not installed. Run: pip install google-generativeai"
            ) from exc

        genai.configure(api_key=self.api_key)
        model = genai.GenerativeModel(self.model)

        logger.info("calling Gemini (model=%s, bytes=%d, mime=%s)", self.model, len(video_bytes), mime_type)
        try:
            response = model.generate_content(
                [
                    self.prompt,
                    {"mime_type": mime_type, "data": video_bytes},
                ],
                generation_config=genai.types.GenerationConfig(
                    temperature=self.temperature,
                    max_output_tokens=self.max_output_tokens,
                ),
            )
        except Exception as exc:
            error_msg = str(exc).lower()
            if "quota" in error_msg or "resourceexhausted" in error_msg or "429" in error_msg:
                raise GeminiError(
                    "Gemini quota exceeded. Check billing/limits of the project and try again."
                ) from exc
            if "api key" in error_msg or ("invalid" in error_msg and "api" in error_msg):
                raise GeminiError("Invalid Google API key. Check GEMINI_API_KEY in .env") from exc
            if "permission" in error_msg or "403" in error_msg:
                raise GeminiError("Permission denied by Gemini. Check that the API is enabled.") from exc
            raise GeminiError(f"Gemini request failed: {str(exc)[:200]}") from exc

        if not getattr(response, "candidates", None):
            logger.error("Gemini returned no candidates: %s", getattr(response, "prompt_feedback", None))
            raise GeminiError(
                "Gemini returned no candidates. The video may have been blocked by safety filters."
            )
        try:
            text = response.text
        except ValueError as exc:
            # .text raises when the candidate has no text parts (e.g. blocked).
            raise GeminiResponseError("Gemini candidate has no text") from exc
        logger.info("Gemini response received (%d chars)", len(text or ""))
        return text or ""

    def analyze(self, video_bytes: bytes, mime_type: str) -> dict[str, Any]:
        return extract_json_payload(self.generate_text(video_bytes, mime_type))
