"""Session manager domain service.

Single owner of the session: the captured source text, one tab and one
controller per style, the selected tab and the persisted style name. All tab
access from the presentation layer goes through this class.
"""

from __future__ import annotations

import asyncio
import inspect
import logging
from typing import Any, Dict, List, Protocol, Sequence

from ...ai.errors import ClipboardEmptyError, NoStylesFoundError
from ...ai.transforms import ChatTransport
from ..events import EventBus, TabSelected
from ..models.tab_models import Style, Tab, TabView
from .tab_controller import PipelineOptions, TabPipelineController

LOGGER = logging.getLogger(__name__)


class SessionStore(Protocol):
    """Persistence of the last selected style name."""

    def load(self) -> str:
        ...  # pragma: no cover - protocol

    def save(self, style_name: str) -> None:
        ...  # pragma: no cover - protocol


class SessionManager:
    """Creates and coordinates the per-style tabs of one run.

    Tabs are keyed by index and run independently; their completions may
    arrive in any order. :meth:`shutdown` is the only place where requests are
    canceled while the application runs (unless ``cancel_on_reselect`` is on).
    """

    def __init__(
        self,
        transport: ChatTransport,
        *,
        options: PipelineOptions | None = None,
        session_store: SessionStore | None = None,
        event_bus: EventBus | None = None,
    ) -> None:
        self._transport = transport
        self._options = options or PipelineOptions()
        self._store = session_store
        self._bus = event_bus or EventBus()
        self._tabs: Dict[int, Tab] = {}
        self._controllers: Dict[int, TabPipelineController] = {}
        self._source_text: str | None = None
        self._selected_index = -1
        self._last_persisted_style = ""
        self._closed = False

    # ------------------------------------------------------------------
    # Properties
    # ------------------------------------------------------------------
    @property
    def event_bus(self) -> EventBus:
        return self._bus

    @property
    def options(self) -> PipelineOptions:
        return self._options

    @property
    def source_text(self) -> str:
        return self._source_text or ""

    @property
    def selected_index(self) -> int:
        return self._selected_index

    @property
    def last_persisted_style(self) -> str:
        return self._last_persisted_style

    @property
    def is_closed(self) -> bool:
        return self._closed

    def tabs(self) -> List[Tab]:
        return [self._tabs[index] for index in sorted(self._tabs)]

    def tab(self, index: int) -> Tab:
        try:
            return self._tabs[index]
        except KeyError:
            raise IndexError(f"Unknown tab index: {index}") from None

    def controller(self, index: int) -> TabPipelineController:
        self.tab(index)
        return self._controllers[index]

    def tab_view(self, index: int) -> TabView:
        return TabView.from_tab(self.tab(index))

    def index_of(self, style_name: str) -> int:
        for tab in self._tabs.values():
            if tab.name == style_name:
                return tab.index
        raise KeyError(f"Unknown style: {style_name}")

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------
    def initialize(
        self,
        styles: Sequence[Style],
        source_text: str,
        *,
        preferred_style: str | None = None,
    ) -> int:
        """Build one idle tab per style, then select and dispatch the initial one.

        The initial tab is ``preferred_style`` if given and known, else the
        persisted style when it is still available, otherwise the
        alphabetically first style. Must be called from a running event loop.

        Returns:
            The index of the initially selected tab.

        Raises:
            NoStylesFoundError: if ``styles`` is empty.
            ClipboardEmptyError: if ``source_text`` is blank.
        """

        if self._tabs:
            raise RuntimeError("Session already initialized")
        if not styles:
            raise NoStylesFoundError()
        if not source_text or not source_text.strip():
            raise ClipboardEmptyError()
        names = [style.name for style in styles]
        if len(set(names)) != len(names):
            raise ValueError("Style names must be unique")

        self._source_text = source_text
        for index, style in enumerate(styles):
            tab = Tab(index=index, style=style)
            self._tabs[index] = tab
            self._controllers[index] = TabPipelineController(
                tab,
                self._transport,
                source_text,
                options=self._options,
                event_bus=self._bus,
            )

        self._last_persisted_style = self._load_last_style()
        if preferred_style and preferred_style in names:
            initial = names.index(preferred_style)
        elif self._last_persisted_style in names:
            initial = names.index(self._last_persisted_style)
        else:
            if self._last_persisted_style:
                LOGGER.info("Persisted style %r not found; using default", self._last_persisted_style)
            initial = names.index(min(names))
        LOGGER.debug("Session initialized with %d tab(s); initial=%r", len(names), names[initial])
        self.select_tab(initial)
        return initial

    def select_tab(self, index: int) -> asyncio.Task[Any] | None:
        """Select a tab, persist its style name and dispatch it if idle.

        Returns the task started by this call, or ``None`` if nothing new ran.
        """

        tab = self.tab(index)
        if self._closed:
            LOGGER.debug("Ignoring selection of %r after shutdown", tab.name)
            return None
        self._selected_index = index
        self._persist(tab.name)
        self._bus.publish(TabSelected(index=index, name=tab.name))
        controller = self._controllers[index]
        if self._options.cancel_on_reselect:
            return controller.restart()
        return controller.dispatch()

    def select_style(self, style_name: str) -> asyncio.Task[Any] | None:
        return self.select_tab(self.index_of(style_name))

    async def wait_for(self, index: int) -> TabView:
        """Wait until the tab reaches a terminal phase and return its view."""

        tab = self.tab(index)
        while not tab.phase.is_terminal:
            task = tab.request
            if task is None:
                raise RuntimeError(f"Tab {tab.name!r} has no request in flight")
            await asyncio.wait({task})
            if task.done() and tab.request is task and not tab.phase.is_terminal:
                raise RuntimeError(f"Tab {tab.name!r} request finished without a result")
        return TabView.from_tab(tab)

    async def shutdown(self) -> None:
        """Cancel every outstanding request, then close the transport.

        Cancellation is best-effort: a failure on one tab is logged and the
        remaining tabs are still canceled. Later calls do nothing.
        """

        if self._closed:
            return
        self._closed = True

        pending: list[asyncio.Task[Any]] = []
        for index in sorted(self._controllers):
            controller = self._controllers[index]
            task = controller.tab.request
            try:
                if controller.cancel() and task is not None:
                    pending.append(task)
            except Exception:
                LOGGER.warning("Failed to cancel request for tab %r", controller.tab.name, exc_info=True)
        if pending:
            LOGGER.debug("Waiting for %d canceled request(s)", len(pending))
            await asyncio.gather(*pending, return_exceptions=True)

        close = getattr(self._transport, "aclose", None)
        if close is None:
            return
        try:
            result = close()
            if inspect.isawaitable(result):
                await result
        except Exception as exc:
            LOGGER.debug("Transport close failed: %s", exc)

    # ------------------------------------------------------------------
    # Persistence
    # ------------------------------------------------------------------
    def _load_last_style(self) -> str:
        if self._store is None:
            return ""
        try:
            return (self._store.load() or "").strip()
        except Exception as exc:
            LOGGER.debug("Unable to load last style: %s", exc)
            return ""

    def _persist(self, style_name: str) -> None:
        self._last_persisted_style = style_name
        if self._store is None:
            return
        try:
            self._store.save(style_name)
        except Exception as exc:
            LOGGER.debug("Unable to persist style %r: %s", style_name, exc)


__all__ = ["SessionManager", "SessionStore"]
