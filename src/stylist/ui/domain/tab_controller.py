"""Tab pipeline controller.

Owns one tab's lifecycle: dispatches the pipeline once, tracks the in-flight
task, mirrors transform stages into the tab's phase and publishes every
transition on the event bus.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import Any

from ...ai.errors import PipelineError, StylistError
from ...ai.prompts import DEFAULT_AMBIGUITY_MARGIN
from ...ai.transforms import (
    ChatTransport,
    SinglePassTransform,
    TransformOutcome,
    TransformStage,
    TwoPassTransform,
)
from ..events import EventBus, TabFailed, TabResultReady, TabStateChanged
from ..models.tab_models import Tab, TabPhase, TabStatus

LOGGER = logging.getLogger(__name__)

CANCELED_MESSAGE = "Request canceled"


@dataclass(slots=True)
class PipelineOptions:
    """Knobs shared by every tab of a session."""

    two_pass: bool = True
    two_pass_timeout: float | None = 60.0
    single_pass_timeout: float | None = 30.0
    strict_retries: int = 1
    ambiguity_margin: float = DEFAULT_AMBIGUITY_MARGIN
    cancel_on_reselect: bool = False

    @classmethod
    def from_settings(cls, settings: Any) -> "PipelineOptions":
        """Build options from a settings object, keeping defaults for unusable values."""

        defaults = cls()
        return cls(
            two_pass=bool(getattr(settings, "two_pass", defaults.two_pass)),
            two_pass_timeout=_coerce(settings, "two_pass_timeout", float, defaults.two_pass_timeout, optional=True),
            single_pass_timeout=_coerce(
                settings, "single_pass_timeout", float, defaults.single_pass_timeout, optional=True
            ),
            strict_retries=_coerce(settings, "strict_retries", int, defaults.strict_retries),
            ambiguity_margin=_coerce(settings, "ambiguity_margin", float, defaults.ambiguity_margin),
            cancel_on_reselect=bool(getattr(settings, "cancel_on_reselect", defaults.cancel_on_reselect)),
        )


def _coerce(settings: Any, name: str, kind: type, default: Any, *, optional: bool = False) -> Any:
    value = getattr(settings, name, default)
    if value is None and optional:
        return None
    try:
        return kind(value)
    except (TypeError, ValueError):
        LOGGER.warning("Invalid %s value %r; using %r", name, value, default)
        return default


class TabPipelineController:
    """Drives a single :class:`Tab` from ``IDLE`` to ``CACHED`` or ``ERROR``.

    ``dispatch`` starts the pipeline only from ``IDLE``; terminal tabs never
    run again. Each start bumps a generation counter so that a task that was
    canceled by :meth:`restart` can no longer touch the tab.
    """

    def __init__(
        self,
        tab: Tab,
        transport: ChatTransport,
        source_text: str,
        *,
        options: PipelineOptions | None = None,
        event_bus: EventBus | None = None,
    ) -> None:
        self._tab = tab
        self._source_text = source_text
        self._options = options or PipelineOptions()
        self._bus = event_bus or EventBus()
        self._generation = 0

        if self._options.two_pass:
            single_timeout = self._options.two_pass_timeout
        else:
            single_timeout = self._options.single_pass_timeout
        self._single_pass = SinglePassTransform(transport, timeout=single_timeout)
        self._two_pass = TwoPassTransform(
            transport,
            timeout=self._options.two_pass_timeout,
            strict_retries=self._options.strict_retries,
            ambiguity_margin=self._options.ambiguity_margin,
            fallback=self._single_pass,
        )

    @property
    def tab(self) -> Tab:
        return self._tab

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------
    def dispatch(self) -> asyncio.Task[str | None] | None:
        """Start the pipeline if the tab is still idle.

        Returns the new task, or ``None`` when the tab was already dispatched.
        """

        if self._tab.phase is not TabPhase.IDLE:
            LOGGER.debug("Tab %r already %s; dispatch ignored", self._tab.name, self._tab.phase.value)
            return None
        return self._start()

    def restart(self) -> asyncio.Task[str | None] | None:
        """Cancel an in-flight pipeline and run it again from scratch.

        Only processing tabs restart; idle tabs are dispatched and terminal
        tabs are left alone.
        """

        if self._tab.status is not TabStatus.PROCESSING:
            return self.dispatch()
        LOGGER.info("Restarting tab %r", self._tab.name)
        self.cancel()
        self._tab.phase = TabPhase.IDLE
        self._tab.request = None
        return self._start()

    def cancel(self) -> bool:
        """Cancel the outstanding request. Returns ``True`` if one was canceled."""

        task = self._tab.request
        if task is None or task.done():
            return False
        return task.cancel()

    def _start(self) -> asyncio.Task[str | None]:
        self._generation += 1
        generation = self._generation
        self._set_phase(TabPhase.DISPATCHED)
        task = asyncio.get_running_loop().create_task(
            self._run(generation), name=f"stylist-tab-{self._tab.index}"
        )
        self._tab.request = task
        task.add_done_callback(lambda done: self._on_task_done(generation, done))
        return task

    def _on_task_done(self, generation: int, task: asyncio.Task[Any]) -> None:
        # A task canceled before its first step never enters ``_run``.
        if generation != self._generation:
            return
        if self._tab.request is task:
            self._tab.request = None
        if task.cancelled() and not self._tab.phase.is_terminal:
            self._fail(CANCELED_MESSAGE)

    # ------------------------------------------------------------------
    # Pipeline
    # ------------------------------------------------------------------
    async def _run(self, generation: int) -> str | None:
        tab = self._tab
        style = tab.style
        try:
            if self._options.two_pass:
                outcome = await self._two_pass.run(
                    style.prompt_text,
                    self._source_text,
                    on_stage=lambda stage: self._on_stage(generation, stage),
                )
            else:
                self._on_stage(generation, TransformStage.SINGLE_PASS)
                text = await self._single_pass.run(style.prompt_text, self._source_text)
                outcome = TransformOutcome(text=text)
        except asyncio.CancelledError:
            if generation == self._generation:
                self._fail(CANCELED_MESSAGE)
            raise
        except StylistError as exc:
            if generation == self._generation:
                LOGGER.warning("Tab %r failed: [%s] %s", style.name, exc.error_code, exc.message)
                self._fail(exc.message)
            return None
        except Exception as exc:
            LOGGER.exception("Unexpected failure in tab %r", style.name)
            if generation == self._generation:
                self._fail(PipelineError(message=f"Unexpected error: {exc}").message)
            return None
        finally:
            if generation == self._generation:
                tab.request = None

        if generation != self._generation:
            return None
        tab.analysis = outcome.analysis
        tab.analysis_json = outcome.analysis_json
        tab.used_fallback = outcome.used_fallback
        tab.result = outcome.text
        tab.error_message = None
        self._set_phase(TabPhase.CACHED)
        LOGGER.info(
            "Tab %r cached (%d chars%s)",
            style.name,
            len(outcome.text),
            ", via fallback" if outcome.used_fallback else "",
        )
        self._bus.publish(TabResultReady(index=tab.index, name=tab.name, text=outcome.text))
        return outcome.text

    def _on_stage(self, generation: int, stage: TransformStage) -> None:
        if generation != self._generation:
            return
        self._set_phase(TabPhase(stage.value))

    def _fail(self, message: str) -> None:
        tab = self._tab
        tab.error_message = message
        tab.result = None
        self._set_phase(TabPhase.ERROR)
        self._bus.publish(TabFailed(index=tab.index, name=tab.name, message=message))

    def _set_phase(self, phase: TabPhase) -> None:
        tab = self._tab
        if tab.phase is phase:
            return
        LOGGER.debug("Tab %r: %s -> %s", tab.name, tab.phase.value, phase.value)
        tab.phase = phase
        self._bus.publish(TabStateChanged(index=tab.index, name=tab.name, phase=phase, status=phase.status))


__all__ = ["CANCELED_MESSAGE", "PipelineOptions", "TabPipelineController"]
