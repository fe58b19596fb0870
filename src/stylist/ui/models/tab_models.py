"""Style and tab state models.

A tab's fine-grained :class:`TabPhase` drives the pipeline; the presentation
layer only ever looks at the coarser :class:`TabStatus` derived from it.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass
from enum import Enum
from typing import Any


@dataclass(frozen=True, slots=True)
class Style:
    """A named system-prompt template. ``name`` is unique."""

    name: str
    prompt_text: str


class TabStatus(Enum):
    """Observable status of a tab.

    Values:
        IDLE: No request made yet.
        PROCESSING: A pipeline is in flight.
        CACHED: A result is available for copy-out.
        ERROR: The pipeline failed; the tab will not run again.
    """

    IDLE = "idle"
    PROCESSING = "processing"
    CACHED = "cached"
    ERROR = "error"


class TabPhase(Enum):
    """Pipeline phase of a tab."""

    IDLE = "idle"
    DISPATCHED = "dispatched"
    SINGLE_PASS = "single_pass"
    FIRST_PASS = "first_pass"
    RETRY_STRICT = "retry_strict"
    FALLBACK = "fallback"
    SECOND_PASS = "second_pass"
    CACHED = "cached"
    ERROR = "error"

    @property
    def status(self) -> TabStatus:
        if self is TabPhase.IDLE:
            return TabStatus.IDLE
        if self is TabPhase.CACHED:
            return TabStatus.CACHED
        if self is TabPhase.ERROR:
            return TabStatus.ERROR
        return TabStatus.PROCESSING

    @property
    def is_terminal(self) -> bool:
        return self in (TabPhase.CACHED, TabPhase.ERROR)


@dataclass(slots=True)
class Tab:
    """One run of the pipeline for one style against the shared source text.

    Attributes:
        index: Position of the tab, matching the style order.
        style: The style this tab applies.
        phase: Current pipeline phase.
        request: The in-flight pipeline task, if any.
        analysis: Semantic analysis from the first pass (or the empty shape
            after a fallback).
        analysis_json: The analysis exactly as forwarded to the second pass.
        result: Final styled text once cached.
        error_message: Failure message once in error.
        used_fallback: Whether the single-pass fallback produced the result.
    """

    index: int
    style: Style
    phase: TabPhase = TabPhase.IDLE
    request: asyncio.Task[Any] | None = None
    analysis: dict[str, Any] | None = None
    analysis_json: str | None = None
    result: str | None = None
    error_message: str | None = None
    used_fallback: bool = False

    @property
    def status(self) -> TabStatus:
        return self.phase.status

    @property
    def name(self) -> str:
        return self.style.name


@dataclass(frozen=True, slots=True)
class TabView:
    """Read-only snapshot handed to the presentation layer."""

    index: int
    name: str
    status: TabStatus
    phase: TabPhase
    result_text: str | None = None
    error_message: str | None = None
    used_fallback: bool = False

    @classmethod
    def from_tab(cls, tab: Tab) -> "TabView":
        return cls(
            index=tab.index,
            name=tab.name,
            status=tab.status,
            phase=tab.phase,
            result_text=tab.result,
            error_message=tab.error_message,
            used_fallback=tab.used_fallback,
        )


__all__ = ["Style", "Tab", "TabPhase", "TabStatus", "TabView"]
