"""Copy text to a clipboard through an ordered chain of mechanisms.

The host environment is described by small protocols (an async clipboard,
a DOM-like document, a selection) so the chain can be driven by a browser
bridge or by fakes. Tiers are tried in order; the first success wins and
failures never escape as exceptions.
"""

from __future__ import annotations

import enum
import logging
import re
from dataclasses import dataclass
from typing import Any, MutableMapping, Protocol, Sequence

logger = logging.getLogger("reelscript.clipboard")

_IOS_RE = re.compile(r"ipad|ipod|iphone", re.IGNORECASE)

# Upper bound for setSelectionRange on iOS; larger than any copied text.
_IOS_SELECTION_END = 999_999


class AsyncClipboard(Protocol):
    async def write_text(self, text: str) -> None: ...


class Element(Protocol):
    value: str
    style: MutableMapping[str, str]

    def set_attribute(self, name: str, value: str) -> None: ...

    def select(self) -> None: ...

    def set_selection_range(self, start: int, end: int) -> None: ...


class Range(Protocol):
    def select_node_contents(self, node: Any) -> None: ...


class Selection(Protocol):
    def remove_all_ranges(self) -> None: ...

    def add_range(self, range_: Range) -> None: ...


class Document(Protocol):
    def create_element(self, tag: str) -> Element: ...

    def append_child(self, node: Element) -> None: ...

    def remove_child(self, node: Element) -> None: ...

    def exec_command(self, command: str) -> bool: ...

    def create_range(self) -> Range: ...


class ClipboardHost(Protocol):
    clipboard: AsyncClipboard | None
    document: Document | None
    user_agent: str

    def get_selection(self) -> Selection | None: ...


class CopyMethod(enum.Enum):
    PREFERRED_API = "clipboard"
    LEGACY_FALLBACK = "execCommand"


class TierResult(enum.Enum):
    SUCCESS = "success"
    SOFT_FAIL = "soft_fail"
    """Mechanism unavailable or reported failure."""
    HARD_FAIL = "hard_fail"
    """Mechanism raised."""


@dataclass(frozen=True)
class CopyOutcome:
    success: bool
    method: CopyMethod | None = None

    @classmethod
    def failure(cls) -> "CopyOutcome":
        return cls(success=False, method=None)


class CopyTier(Protocol):
    method: CopyMethod

    async def attempt(self, text: str, host: ClipboardHost) -> TierResult: ...


class PreferredApiTier:
    method = CopyMethod.PREFERRED_API

    async def attempt(self, text: str, host: ClipboardHost) -> TierResult:
        clipboard = getattr(host, "clipboard", None)
        if clipboard is None or not callable(getattr(clipboard, "write_text", None)):
            return TierResult.SOFT_FAIL
        try:
            await clipboard.write_text(text)
        except Exception as exc:
            logger.info("clipboard api unavailable, trying legacy copy: %s", exc)
            return TierResult.HARD_FAIL
        return TierResult.SUCCESS


def _is_ios(user_agent: str | None) -> bool:
    return bool(_IOS_RE.search(user_agent or ""))


class LegacyCommandTier:
    """Off-screen textarea plus the synchronous copy command."""

    method = CopyMethod.LEGACY_FALLBACK

    async def attempt(self, text: str, host: ClipboardHost) -> TierResult:
        document = getattr(host, "document", None)
        if document is None:
            return TierResult.SOFT_FAIL
        try:
            textarea = document.create_element("textarea")
            textarea.value = text
            textarea.style.update(
                {
                    "position": "fixed",
                    "opacity": "0",
                    "pointerEvents": "none",
                    "left": "0",
                    "top": "0",
                }
            )
            textarea.set_attribute("readonly", "")
            document.append_child(textarea)
        except Exception as exc:
            logger.info("legacy copy could not create textarea: %s", exc)
            return TierResult.HARD_FAIL

        try:
            if _is_ios(getattr(host, "user_agent", "")):
                range_ = document.create_range()
                range_.select_node_contents(textarea)
                selection = host.get_selection()
                if selection is not None:
                    selection.remove_all_ranges()
                    selection.add_range(range_)
                textarea.set_selection_range(0, _IOS_SELECTION_END)
            else:
                textarea.select()
            copied = bool(document.exec_command("copy"))
        except Exception as exc:
            logger.info("legacy copy command failed: %s", exc)
            return TierResult.HARD_FAIL
        finally:
            try:
                document.remove_child(textarea)
            except Exception as exc:
                logger.warning("failed to remove temporary textarea: %s", exc)

        return TierResult.SUCCESS if copied else TierResult.SOFT_FAIL


DEFAULT_TIERS: tuple[CopyTier, ...] = (PreferredApiTier(), LegacyCommandTier())


class ClipboardCopier:
    def __init__(self, host: ClipboardHost, tiers: Sequence[CopyTier] | None = None) -> None:
        self.host = host
        self.tiers: tuple[CopyTier, ...] = tuple(tiers) if tiers is not None else DEFAULT_TIERS

    async def copy(self, text: str) -> CopyOutcome:
        for tier in self.tiers:
            try:
                result = await tier.attempt(text, self.host)
            except Exception as exc:
                logger.warning("copy tier %s raised: %s", tier.method.value, exc)
                result = TierResult.HARD_FAIL
            if result is TierResult.SUCCESS:
                logger.info("copied %d chars via %s", len(text), tier.method.value)
                return CopyOutcome(success=True, method=tier.method)
        logger.error("could not copy to clipboard automatically")
        return CopyOutcome.failure()


async def copy_to_clipboard(text: str, host: ClipboardHost) -> bool:
    """Copy ``text``; False tells the caller to show a manual-copy block."""
    outcome = await ClipboardCopier(host).copy(text)
    return outcome.success


async def copy_with_feedback(text: str, host: ClipboardHost) -> dict[str, Any]:
    outcome = await ClipboardCopier(host).copy(text)
    return {
        "success": outcome.success,
        "method": outcome.method.value if outcome.method else None,
    }


def select_text(element: Any, host: ClipboardHost) -> None:
    """Select all text inside ``element`` so the user can copy it by hand."""
    try:
        document = host.document
        selection = host.get_selection()
        if document is None or selection is None:
            return
        range_ = document.create_range()
        range_.select_node_contents(element)
        selection.remove_all_ranges()
        selection.add_range(range_)
    except Exception as exc:
        logger.warning("select_text failed: %s", exc)
