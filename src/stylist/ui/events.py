"""Event bus carrying tab lifecycle notifications to the presentation layer.

The domain layer publishes; widgets subscribe. Nothing in the domain layer
imports Qt.
"""

from __future__ import annotations

import logging
from collections import defaultdict
from dataclasses import dataclass
from typing import Callable, DefaultDict, Generic, TypeVar
from weakref import WeakMethod

from .models.tab_models import TabPhase, TabStatus

logger = logging.getLogger(__name__)

E = TypeVar("E", bound="Event")

Handler = Callable[[E], None]


@dataclass(slots=True)
class Event:
    """Base class for all events."""


@dataclass(slots=True)
class TabStateChanged(Event):
    """Emitted on every phase transition of a tab.

    Attributes:
        index: Tab position.
        name: Style name of the tab.
        phase: New pipeline phase.
        status: Observable status derived from ``phase``.
    """

    index: int
    name: str
    phase: TabPhase
    status: TabStatus


@dataclass(slots=True)
class TabResultReady(Event):
    """Emitted once when a tab reaches ``CACHED``; hand-off point for copy-out."""

    index: int
    name: str
    text: str


@dataclass(slots=True)
class TabFailed(Event):
    """Emitted once when a tab reaches ``ERROR``."""

    index: int
    name: str
    message: str


@dataclass(slots=True)
class TabSelected(Event):
    """Emitted when the user selects a tab."""

    index: int
    name: str


class EventBus(Generic[E]):
    """Typed publish/subscribe bus.

    Bound methods are held through :class:`WeakMethod` so a closed widget
    drops out automatically; plain functions are held strongly. A failing
    handler is logged and does not stop delivery to the others.

    Not thread-safe: publish from the event-loop thread only.
    """

    __slots__ = ("_handlers",)

    def __init__(self) -> None:
        self._handlers: DefaultDict[type[Event], list[_HandlerRef]] = defaultdict(list)

    def subscribe(self, event_type: type[E], handler: Handler[E]) -> None:
        self._handlers[event_type].append(_HandlerRef(handler))
        logger.debug("Subscribed %s to %s", _handler_name(handler), event_type.__name__)

    def unsubscribe(self, event_type: type[E], handler: Handler[E]) -> None:
        handlers = self._handlers.get(event_type)
        if not handlers:
            return
        for i, handler_ref in enumerate(handlers):
            if handler_ref.resolve() == handler:
                handlers.pop(i)
                return

    def publish(self, event: E) -> None:
        event_type = type(event)
        handlers = self._handlers.get(event_type)
        if not handlers:
            return

        dead: list[_HandlerRef] = []
        for handler_ref in list(handlers):
            handler = handler_ref.resolve()
            if handler is None:
                dead.append(handler_ref)
                continue
            try:
                handler(event)
            except Exception:
                logger.exception("Handler %s raised for %s", _handler_name(handler), event_type.__name__)
        for handler_ref in dead:
            handlers.remove(handler_ref)

    def clear(self) -> None:
        self._handlers.clear()

    def handler_count(self, event_type: type[E] | None = None) -> int:
        if event_type is not None:
            return len(self._handlers.get(event_type, []))
        return sum(len(handlers) for handlers in self._handlers.values())


class _HandlerRef:
    __slots__ = ("_ref", "_is_weak")

    def __init__(self, handler: Handler) -> None:
        if hasattr(handler, "__self__") and hasattr(handler, "__func__"):
            try:
                self._ref: object = WeakMethod(handler)  # type: ignore[arg-type]
                self._is_weak = True
                return
            except TypeError:
                pass
        self._ref = handler
        self._is_weak = False

    def resolve(self) -> Handler | None:
        if self._is_weak:
            return self._ref()  # type: ignore[operator]
        return self._ref  # type: ignore[return-value]


def _handler_name(handler: Handler) -> str:
    return getattr(handler, "__qualname__", None) or repr(handler)


__all__ = [
    "Event",
    "EventBus",
    "Handler",
    "TabFailed",
    "TabResultReady",
    "TabSelected",
    "TabStateChanged",
]
