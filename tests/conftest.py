"""Shared pytest fixtures."""

from __future__ import annotations

import os

import pytest

os.environ.setdefault("QT_QPA_PLATFORM", "offscreen")

from stylist.ui.models.tab_models import Style  # noqa: E402
from tests.helpers import MemorySessionStore  # noqa: E402


@pytest.fixture
def styles() -> list[Style]:
    return [
        Style(name="formal", prompt_text="Rewrite formally."),
        Style(name="casual", prompt_text="Rewrite casually."),
        Style(name="terse", prompt_text="Rewrite tersely."),
    ]


@pytest.fixture
def session_store() -> MemorySessionStore:
    return MemorySessionStore()


@pytest.fixture(autouse=True)
def _isolated_home(tmp_path_factory: pytest.TempPathFactory, monkeypatch: pytest.MonkeyPatch) -> None:
    """Keep settings, logs and session files out of the real home directory."""

    for name in list(os.environ):
        if name.startswith("STYLIST_"):
            monkeypatch.delenv(name, raising=False)
    home = tmp_path_factory.mktemp("stylist-home")
    monkeypatch.setenv("STYLIST_HOME", str(home))
    monkeypatch.setenv("STYLIST_LOG_DIR", str(home / "logs"))
