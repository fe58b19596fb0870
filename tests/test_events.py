"""Tests for the event bus."""

from __future__ import annotations

import gc

from stylist.ui.events import EventBus, TabFailed, TabSelected, TabStateChanged
from stylist.ui.models.tab_models import TabPhase, TabStatus


def test_publish_delivers_to_matching_subscribers_only() -> None:
    bus = EventBus()
    selected: list[TabSelected] = []
    failed: list[TabFailed] = []
    bus.subscribe(TabSelected, selected.append)
    bus.subscribe(TabFailed, failed.append)

    bus.publish(TabSelected(index=1, name="formal"))

    assert selected == [TabSelected(index=1, name="formal")]
    assert failed == []


def test_failing_handler_does_not_block_others() -> None:
    bus = EventBus()
    received: list[str] = []

    def _broken(event: TabSelected) -> None:
        raise RuntimeError("boom")

    bus.subscribe(TabSelected, _broken)
    bus.subscribe(TabSelected, lambda event: received.append(event.name))

    bus.publish(TabSelected(index=0, name="casual"))

    assert received == ["casual"]


def test_unsubscribe_removes_handler() -> None:
    bus = EventBus()
    received: list[TabSelected] = []

    def _handler(event: TabSelected) -> None:
        received.append(event)

    bus.subscribe(TabSelected, _handler)
    bus.unsubscribe(TabSelected, _handler)
    bus.publish(TabSelected(index=0, name="x"))

    assert received == []
    assert bus.handler_count(TabSelected) == 0


def test_bound_methods_are_held_weakly() -> None:
    bus = EventBus()
    calls: list[TabStateChanged] = []

    class _Listener:
        def on_event(self, event: TabStateChanged) -> None:
            calls.append(event)

    listener = _Listener()
    bus.subscribe(TabStateChanged, listener.on_event)
    del listener
    gc.collect()

    bus.publish(TabStateChanged(index=0, name="a", phase=TabPhase.CACHED, status=TabStatus.CACHED))

    assert calls == []
    assert bus.handler_count() == 0


def test_phase_status_mapping() -> None:
    assert TabPhase.IDLE.status is TabStatus.IDLE
    assert TabPhase.DISPATCHED.status is TabStatus.PROCESSING
    assert TabPhase.RETRY_STRICT.status is TabStatus.PROCESSING
    assert TabPhase.CACHED.status is TabStatus.CACHED
    assert TabPhase.ERROR.status is TabStatus.ERROR
    assert TabPhase.ERROR.is_terminal and not TabPhase.SECOND_PASS.is_terminal
