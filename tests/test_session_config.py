"""Tests for the last-used style persistence."""

from __future__ import annotations

from pathlib import Path

from stylist.services.session_config import SessionConfigStore


def test_missing_file_loads_empty(tmp_path: Path) -> None:
    assert SessionConfigStore(tmp_path / "current-mode.conf").load() == ""


def test_save_then_load(tmp_path: Path) -> None:
    store = SessionConfigStore(tmp_path / "nested" / "current-mode.conf")

    store.save("formal")

    assert store.load() == "formal"
    assert store.path.read_text(encoding="utf-8") == "formal"


def test_load_strips_whitespace(tmp_path: Path) -> None:
    path = tmp_path / "current-mode.conf"
    path.write_text("  casual\n", encoding="utf-8")

    assert SessionConfigStore(path).load() == "casual"


def test_save_failure_is_swallowed(tmp_path: Path) -> None:
    blocker = tmp_path / "blocker"
    blocker.write_text("", encoding="utf-8")
    store = SessionConfigStore(blocker / "current-mode.conf")

    store.save("formal")

    assert store.load() == ""
