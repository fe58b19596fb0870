"""Persistence of the last style the user picked."""

from __future__ import annotations

import logging
from pathlib import Path

from .settings import default_settings_dir

LOGGER = logging.getLogger(__name__)

__all__ = ["SessionConfigStore"]


class SessionConfigStore:
    """Reads and writes the last-used style name as a one-line text file.

    Both directions are best-effort: an unreadable file loads as ``""`` and a
    failed write is only logged.
    """

    def __init__(self, path: Path | None = None) -> None:
        self._path = path or (default_settings_dir() / "current-mode.conf")

    @property
    def path(self) -> Path:
        return self._path

    def load(self) -> str:
        try:
            return self._path.read_text(encoding="utf-8").strip()
        except FileNotFoundError:
            return ""
        except (OSError, UnicodeDecodeError) as exc:
            LOGGER.debug("Unable to read session config %s: %s", self._path, exc)
            return ""

    def save(self, style_name: str) -> None:
        try:
            self._path.parent.mkdir(parents=True, exist_ok=True)
            self._path.write_text(style_name, encoding="utf-8")
        except OSError as exc:
            LOGGER.debug("Unable to write session config %s: %s", self._path, exc)
