"""Sanitization of untrusted text before it is stored or rendered.

The analysis payload comes from a remote model whose output can carry
markup. Every string is stripped of tag-like spans first and escaped
second, so a ``<script>`` cannot survive as text that a later consumer
decodes back into a tag.

Tag stripping is a regex, not an HTML parser. Prose such as ``a <3 b>``
loses the span between the brackets.
"""

from __future__ import annotations

import copy
import json
import logging
import re
from collections.abc import Mapping
from typing import Any

from reelscript.core.models import (
    AnalysisResult,
    OriginalText,
    Recommendation,
    Scene,
    SuccessKey,
)

logger = logging.getLogger("reelscript.sanitizer")

_TAG_RE = re.compile(r"<[^>]*>")

# "&" is left alone: escaping it would turn every entity produced below into
# "&amp;..." on a second pass.
_ESCAPES = {
    "<": "&lt;",
    ">": "&gt;",
    '"': "&quot;",
    "'": "&#x27;",
    "/": "&#x2F;",
}
_ESCAPE_RE = re.compile(r"[<>\"'/]")

DANGEROUS_URL_SCHEMES = ("javascript:", "data:", "vbscript:", "file:")

ALLOWED_VIDEO_MIME_TYPES = frozenset({"video/mp4", "video/quicktime", "video/webm"})

SENSITIVE_KEYS = ("apikey", "api_key", "password", "token", "secret", "authorization")

_FILENAME_DISALLOWED_RE = re.compile(r"[^a-zA-Zа-яА-ЯёЁ0-9._-]")
_DOTS_RE = re.compile(r"\.{2,}")


_SCALAR_TYPES = (str, bytes, bytearray, int, float, bool)


class MalformedAnalysisInput(ValueError):
    """Raised when the analysis payload is not an object at all."""


def escape_html(text: str) -> str:
    return _ESCAPE_RE.sub(lambda m: _ESCAPES[m.group(0)], text)


def strip_html_tags(text: str) -> str:
    return _TAG_RE.sub("", text)


def sanitize_text(value: Any) -> str:
    """Strip tags then escape. Anything that is not a non-empty string becomes ''."""
    if not value or not isinstance(value, str):
        return ""
    return escape_html(strip_html_tags(value))


def _field(item: Any, name: str) -> str:
    if not isinstance(item, Mapping):
        return ""
    return sanitize_text(item.get(name))


def _items(value: Any) -> list[Any]:
    return list(value) if isinstance(value, (list, tuple)) else []


def sanitize_analysis_result(raw: Any) -> AnalysisResult:
    """Build a markup-free AnalysisResult from an untrusted payload.

    Accepts a mapping or an existing ``AnalysisResult`` (re-sanitizing is a
    no-op). Missing or mistyped fields are defaulted rather than rejected.
    Other containers, such as a JSON array, carry no named fields and give
    the all-defaults result.

    Raises:
        MalformedAnalysisInput: ``raw`` is not an object at all (None, a
            number, a bool, a string).
    """
    if isinstance(raw, AnalysisResult):
        raw = raw.model_dump()
    if raw is None or isinstance(raw, _SCALAR_TYPES):
        raise MalformedAnalysisInput(
            f"analysis payload must be an object, got {type(raw).__name__}"
        )
    if not isinstance(raw, Mapping):
        raw = {}

    original = raw.get("original")
    return AnalysisResult(
        title=sanitize_text(raw.get("title")),
        original=OriginalText(
            transcription=_field(original, "transcription"),
            translation=_field(original, "translation"),
        ),
        keys=[
            SuccessKey(title=_field(k, "title"), description=_field(k, "description"))
            for k in _items(raw.get("keys"))
        ],
        script=[
            Scene(
                time=_field(s, "time"),
                visual=_field(s, "visual"),
                text=_field(s, "text"),
                note=_field(s, "note"),
            )
            for s in _items(raw.get("script"))
        ],
        recommendations=[
            Recommendation(category=_field(r, "category"), text=_field(r, "text"))
            for r in _items(raw.get("recommendations"))
        ],
        is_demo_mode=bool(raw.get("is_demo_mode", raw.get("isDemoMode"))),
    )


def sanitize_url(url: Any) -> str:
    """Return ``url`` unchanged unless it uses a script-capable scheme."""
    if not url or not isinstance(url, str):
        return ""
    lowered = url.strip().lower()
    for scheme in DANGEROUS_URL_SCHEMES:
        if lowered.startswith(scheme):
            logger.warning("blocked url with scheme %s", scheme)
            return ""
    return url


def sanitize_filename(filename: Any) -> str:
    if not filename or not isinstance(filename, str):
        return ""
    cleaned = _FILENAME_DISALLOWED_RE.sub("_", filename)
    cleaned = _DOTS_RE.sub(".", cleaned)
    return cleaned[:255]


def is_valid_video_mime_type(mime_type: str | None) -> bool:
    return (mime_type or "").strip().lower() in ALLOWED_VIDEO_MIME_TYPES


def deep_sanitize(obj: Any) -> Any:
    """Sanitize every string inside nested dicts and lists."""
    if obj is None:
        return None
    if isinstance(obj, str):
        return sanitize_text(obj)
    if isinstance(obj, (list, tuple)):
        return [deep_sanitize(item) for item in obj]
    if isinstance(obj, Mapping):
        return {key: deep_sanitize(value) for key, value in obj.items()}
    return obj


def safe_json_parse(text: str) -> Any:
    try:
        parsed = json.loads(text)
    except (json.JSONDecodeError, TypeError) as exc:
        logger.error("failed to parse json payload: %s", exc)
        raise MalformedAnalysisInput("payload is not valid JSON") from exc
    return deep_sanitize(parsed)


def redact_sensitive(data: Any) -> Any:
    """Return a copy of ``data`` with credential-like values replaced, for logging."""
    clean = copy.deepcopy(data)

    def _walk(obj: Any) -> None:
        if isinstance(obj, dict):
            for key in obj:
                if any(s in str(key).lower() for s in SENSITIVE_KEYS):
                    obj[key] = "[REDACTED]"
                else:
                    _walk(obj[key])
        elif isinstance(obj, list):
            for item in obj:
                _walk(item)

    _walk(clean)
    return clean
