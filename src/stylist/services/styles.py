"""Loading of style prompts from a directory of text files."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import List

from ..ai.errors import NoStylesFoundError
from ..ui.models.tab_models import Style
from .settings import default_settings_dir

LOGGER = logging.getLogger(__name__)

__all__ = ["StyleLoader", "MAX_STYLES"]

MAX_STYLES = 10


class StyleLoader:
    """Loads ``*.txt`` prompt files; the file stem is the style name."""

    def __init__(self, directory: Path | str | None = None, *, limit: int = MAX_STYLES) -> None:
        self._directory = Path(directory).expanduser() if directory else default_settings_dir() / "prompts"
        self._limit = max(1, int(limit))

    @property
    def directory(self) -> Path:
        return self._directory

    def load(self) -> List[Style]:
        """Return styles sorted by file name, at most ``limit`` of them.

        Raises:
            NoStylesFoundError: if the directory is missing or nothing could be read.
        """

        if not self._directory.is_dir():
            raise NoStylesFoundError(
                message=f"Prompts directory not found: {self._directory}",
                details={"directory": str(self._directory)},
            )
        files = sorted(self._directory.glob("*.txt"))
        if not files:
            raise NoStylesFoundError(details={"directory": str(self._directory)})

        styles: List[Style] = []
        for path in files[: self._limit]:
            try:
                content = path.read_text(encoding="utf-8")
            except (OSError, UnicodeDecodeError) as exc:
                LOGGER.warning("Skipping unreadable prompt file %s: %s", path, exc)
                continue
            styles.append(Style(name=path.stem, prompt_text=content))

        if not styles:
            raise NoStylesFoundError(
                message="Could not load any valid prompt files.",
                details={"directory": str(self._directory)},
            )
        LOGGER.debug("Loaded %d style(s) from %s", len(styles), self._directory)
        return styles
