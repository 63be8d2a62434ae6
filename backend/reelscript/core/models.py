"""Pydantic models for the analysis payload and saved scripts."""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field


class _Frozen(BaseModel):
    model_config = ConfigDict(frozen=True)


class OriginalText(_Frozen):
    transcription: str = ""
    """Transcript in the language spoken in the video."""
    translation: str = ""


class SuccessKey(_Frozen):
    title: str = ""
    description: str = ""


class Scene(_Frozen):
    time: str = ""
    """Time label such as "0-3 s"."""
    visual: str = ""
    text: str = ""
    note: str = ""


class Recommendation(_Frozen):
    category: str = ""
    text: str = ""


class AnalysisResult(_Frozen):
    """Script analysis of one video. Always built through the sanitizer."""

    title: str = ""
    original: OriginalText = Field(default_factory=OriginalText)
    keys: list[SuccessKey] = Field(default_factory=list)
    script: list[Scene] = Field(default_factory=list)
    recommendations: list[Recommendation] = Field(default_factory=list)
    is_demo_mode: bool = False


class SavedScript(AnalysisResult):
    id: str
    saved_at: str
    """ISO-8601 UTC timestamp."""
