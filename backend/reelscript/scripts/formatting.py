"""Search and plain-text rendering of analysis results."""

from __future__ import annotations

from typing import Iterable

from reelscript.core.models import AnalysisResult, SavedScript


def _haystacks(script: AnalysisResult) -> Iterable[str]:
    yield script.title
    yield " ".join(f"{s.visual} {s.text} {s.note}" for s in script.script)
    yield " ".join(f"{r.category} {r.text}" for r in script.recommendations)
    yield " ".join(f"{k.title} {k.description}" for k in script.keys)


def search_scripts(scripts: list[SavedScript], query: str | None) -> list[SavedScript]:
    """Case-insensitive match on title, scenes, recommendations and keys.

    A blank query returns ``scripts`` unchanged.
    """
    needle = (query or "").strip().lower()
    if not needle:
        return scripts
    return [s for s in scripts if any(needle in h.lower() for h in _haystacks(s))]


def format_scene_list(result: AnalysisResult) -> str:
    """Scene-by-scene copy text: '[time] visual', quoted text, (note)."""
    return "\n".join(
        f'[{scene.time}] {scene.visual}\n"{scene.text}"\n({scene.note})\n'
        for scene in result.script
    )


def format_saved_script(script: AnalysisResult) -> str:
    """Full copy text of a saved script: title, numbered scenes, recommendations."""
    scenes = "\n".join(
        f"{i}. {scene.time}\n"
        f"Visual: {scene.visual}\n"
        f"Text: {scene.text}\n"
        f"Note: {scene.note}\n"
        for i, scene in enumerate(script.script, 1)
    )
    recommendations = "\n".join(f"{r.category}: {r.text}" for r in script.recommendations)
    return f"{script.title}\n\nSCRIPT:\n\n{scenes}\n\nRECOMMENDATIONS:\n{recommendations}"


def format_file_size(num_bytes: int) -> str:
    if num_bytes <= 0:
        return "0 B"
    units = ["B", "KB", "MB", "GB"]
    i = 0
    while num_bytes >= 1024 ** (i + 1) and i < len(units) - 1:
        i += 1
    value = round(num_bytes / (1024**i), 2)
    if value.is_integer():
        value = int(value)
    return f"{value} {units[i]}"


def format_duration(seconds: float) -> str:
    """Seconds as m:ss."""
    total = max(0, int(seconds))
    return f"{total // 60}:{total % 60:02d}"
