"""Main window: original text, one tab per style, transformed text, Copy.

The window never infers state from what it displays; it renders
:class:`TabView` snapshots from the session manager whenever a tab event
arrives.
"""

from __future__ import annotations

import logging
from functools import partial
from typing import TYPE_CHECKING

from PySide6.QtCore import Signal
from PySide6.QtGui import QCloseEvent, QKeySequence, QShortcut
from PySide6.QtWidgets import (
    QLabel,
    QPlainTextEdit,
    QPushButton,
    QTabBar,
    QVBoxLayout,
    QWidget,
)

from ...ai.prompts import summarize_analysis
from ..events import TabFailed, TabResultReady, TabSelected, TabStateChanged
from ..models.tab_models import TabStatus

if TYPE_CHECKING:  # pragma: no cover - imports for type checking only
    from ...services.clipboard import Clipboard
    from ..domain.session_manager import SessionManager

LOGGER = logging.getLogger(__name__)

WINDOW_TITLE = "Language Stylist"
_MAX_SHORTCUTS = 10
_PROCESSING_BACKGROUND = "#f5f5f5"
_RESULT_BACKGROUND = "#ffffff"
_ERROR_BACKGROUND = "#ffe0e0"
_SOURCE_BACKGROUND = "#f0f0f0"


class StylistWindow(QWidget):
    """Window shell over a :class:`SessionManager`.

    Keys ``1``-``9`` select the first nine tabs and ``0`` the tenth. Copy
    writes the selected result to the clipboard and closes the window.
    """

    closed = Signal()

    def __init__(
        self,
        session: "SessionManager",
        clipboard: "Clipboard",
        *,
        parent: QWidget | None = None,
    ) -> None:
        super().__init__(parent)
        self._session = session
        self._clipboard = clipboard
        self._syncing_tabs = False
        self._shortcuts: list[QShortcut] = []

        self.setWindowTitle(WINDOW_TITLE)
        self.resize(700, 600)
        self._build_ui()
        self._install_shortcuts()

        bus = session.event_bus
        bus.subscribe(TabStateChanged, self._on_tab_event)
        bus.subscribe(TabResultReady, self._on_tab_event)
        bus.subscribe(TabFailed, self._on_tab_event)
        bus.subscribe(TabSelected, self._on_tab_selected)

        self._sync_selection()
        self._refresh()

    # ------------------------------------------------------------------
    # Construction
    # ------------------------------------------------------------------
    def _build_ui(self) -> None:
        layout = QVBoxLayout(self)

        layout.addWidget(QLabel("Original Text:"))
        self._source_view = QPlainTextEdit()
        self._source_view.setReadOnly(True)
        self._source_view.setPlainText(self._session.source_text)
        self._source_view.setMaximumHeight(160)
        self._source_view.setStyleSheet(f"background: {_SOURCE_BACKGROUND};")
        layout.addWidget(self._source_view)

        layout.addWidget(QLabel("Transform using:"))
        self._tab_bar = QTabBar()
        self._tab_bar.setExpanding(False)
        for tab in self._session.tabs():
            self._tab_bar.addTab(tab.name)
        self._tab_bar.currentChanged.connect(self._on_tab_bar_changed)
        layout.addWidget(self._tab_bar)

        layout.addWidget(QLabel("Transformed Text:"))
        self._result_view = QPlainTextEdit()
        self._result_view.setReadOnly(True)
        layout.addWidget(self._result_view, 1)

        self._details_label = QLabel()
        self._details_label.setWordWrap(True)
        layout.addWidget(self._details_label)

        self._copy_button = QPushButton("Copy")
        self._copy_button.setEnabled(False)
        self._copy_button.clicked.connect(self.copy_and_close)
        layout.addWidget(self._copy_button)

    def _install_shortcuts(self) -> None:
        count = min(len(self._session.tabs()), _MAX_SHORTCUTS)
        for index in range(count):
            key = str((index + 1) % 10)
            shortcut = QShortcut(QKeySequence(key), self)
            shortcut.activated.connect(partial(self.select_tab, index))
            self._shortcuts.append(shortcut)

    # ------------------------------------------------------------------
    # Actions
    # ------------------------------------------------------------------
    def select_tab(self, index: int) -> None:
        self._session.select_tab(index)

    def copy_and_close(self) -> None:
        view = self._session.tab_view(self._session.selected_index)
        if view.status is not TabStatus.CACHED or view.result_text is None:
            return
        self._clipboard.write(view.result_text)
        self.close()

    @property
    def result_text(self) -> str:
        return self._result_view.toPlainText()

    @property
    def copy_enabled(self) -> bool:
        return self._copy_button.isEnabled()

    # ------------------------------------------------------------------
    # Event handlers
    # ------------------------------------------------------------------
    def _on_tab_bar_changed(self, index: int) -> None:
        if self._syncing_tabs or index < 0:
            return
        self._session.select_tab(index)

    def _on_tab_selected(self, event: TabSelected) -> None:
        self._sync_selection()
        self._refresh()

    def _on_tab_event(self, event: TabStateChanged | TabResultReady | TabFailed) -> None:
        if event.index == self._session.selected_index:
            self._refresh()

    def _sync_selection(self) -> None:
        index = self._session.selected_index
        if index < 0 or self._tab_bar.currentIndex() == index:
            return
        self._syncing_tabs = True
        try:
            self._tab_bar.setCurrentIndex(index)
        finally:
            self._syncing_tabs = False

    def _refresh(self) -> None:
        index = self._session.selected_index
        if index < 0:
            return
        view = self._session.tab_view(index)
        tab = self._session.tab(index)
        if view.status is TabStatus.CACHED:
            self._show(view.result_text or "", _RESULT_BACKGROUND)
            lines = summarize_analysis(tab.analysis, self._session.options.ambiguity_margin)
            if view.used_fallback:
                lines.insert(0, "Semantic analysis unavailable; single-pass result.")
            self._details_label.setText("\n".join(lines))
            self._copy_button.setEnabled(True)
            self._copy_button.setFocus()
        elif view.status is TabStatus.ERROR:
            self._show(f"Error:\n\n{view.error_message or ''}", _ERROR_BACKGROUND)
            self._details_label.setText("")
            self._copy_button.setEnabled(False)
        else:
            self._show(f"Processing with '{view.name}'...", _PROCESSING_BACKGROUND)
            self._details_label.setText("")
            self._copy_button.setEnabled(False)

    def _show(self, text: str, background: str) -> None:
        self._result_view.setPlainText(text)
        self._result_view.setStyleSheet(f"background: {background};")

    def closeEvent(self, event: QCloseEvent) -> None:  # noqa: N802 - Qt override
        LOGGER.debug("Main window closing")
        self.closed.emit()
        super().closeEvent(event)


__all__ = ["StylistWindow", "WINDOW_TITLE"]
