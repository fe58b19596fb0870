"""Clipboard access through Qt."""

from __future__ import annotations

import logging
from typing import Any, Protocol

from ..ai.errors import ClipboardEmptyError

LOGGER = logging.getLogger(__name__)

__all__ = ["Clipboard", "QtClipboard", "StaticClipboard", "read_source_text"]


class Clipboard(Protocol):
    def read(self) -> str:
        ...  # pragma: no cover - protocol

    def write(self, text: str) -> None:
        ...  # pragma: no cover - protocol


class QtClipboard:
    """Clipboard backed by ``QGuiApplication.clipboard()``.

    Requires a running ``QGuiApplication`` (or ``QApplication``).
    """

    def __init__(self, clipboard: Any | None = None) -> None:
        self._clipboard = clipboard

    def _resolve(self) -> Any:
        if self._clipboard is None:
            from PySide6.QtGui import QGuiApplication

            self._clipboard = QGuiApplication.clipboard()
        return self._clipboard

    def read(self) -> str:
        return self._resolve().text() or ""

    def write(self, text: str) -> None:
        self._resolve().setText(text)
        LOGGER.debug("Copied %d character(s) to the clipboard", len(text))


class StaticClipboard:
    """In-memory clipboard used for ``--text`` input and headless runs."""

    def __init__(self, text: str = "") -> None:
        self.text = text

    def read(self) -> str:
        return self.text

    def write(self, text: str) -> None:
        self.text = text


def read_source_text(clipboard: Clipboard) -> str:
    """Return the trimmed clipboard text.

    Raises:
        ClipboardEmptyError: if the clipboard is empty or unreadable.
    """

    try:
        content = clipboard.read()
    except Exception as exc:
        raise ClipboardEmptyError(details={"reason": str(exc)}) from exc
    content = (content or "").strip()
    if not content:
        raise ClipboardEmptyError()
    return content
