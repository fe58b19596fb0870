"""Test doubles shared across the suite."""

from __future__ import annotations

import asyncio
import json
from dataclasses import dataclass, field
from typing import Any, Callable, Iterable

from stylist.ai.prompts import ANALYSIS_SYSTEM_PROMPT

Reply = Any
Handler = Callable[[str, str], Reply]


@dataclass
class RecordedCall:
    system_prompt: str
    user_text: str
    timeout: float | None

    @property
    def is_analysis(self) -> bool:
        return self.system_prompt.startswith(ANALYSIS_SYSTEM_PROMPT)


@dataclass
class FakeTransport:
    """Chat transport that answers from a handler or a queue of replies.

    A reply that is an exception instance is raised instead of returned.
    When ``gate`` is set, every call blocks until the gate is opened.
    """

    handler: Handler | None = None
    replies: list[Reply] = field(default_factory=list)
    gate: asyncio.Event | None = None
    calls: list[RecordedCall] = field(default_factory=list)
    closed: bool = False

    async def complete(self, system_prompt: str, user_text: str, *, timeout: float | None = None) -> str:
        self.calls.append(RecordedCall(system_prompt, user_text, timeout))
        if self.gate is not None:
            await self.gate.wait()
        if self.handler is not None:
            reply = self.handler(system_prompt, user_text)
        else:
            reply = self.replies.pop(0)
        if isinstance(reply, BaseException):
            raise reply
        return reply

    async def aclose(self) -> None:
        self.closed = True

    def calls_for(self, style_text: str) -> list[RecordedCall]:
        """Calls whose system prompt belongs to ``style_text`` (not analysis calls)."""

        return [call for call in self.calls if call.system_prompt.startswith(style_text)]


def make_transport(replies: Iterable[Reply] = (), **kwargs: Any) -> FakeTransport:
    return FakeTransport(replies=list(replies), **kwargs)


class MemorySessionStore:
    """In-memory stand-in for the ``current-mode.conf`` store."""

    def __init__(self, value: str = "") -> None:
        self.value = value
        self.saved: list[str] = []

    def load(self) -> str:
        return self.value

    def save(self, style_name: str) -> None:
        self.saved.append(style_name)
        self.value = style_name


SAMPLE_ANALYSIS: dict[str, Any] = {
    "preserve": [{"text": "Friday", "reason": "fact"}],
    "intensifiers": [{"text": "really", "keep": True, "reason": "emphasis"}],
    "ambiguities": [
        {
            "span": "soon",
            "interpretations": [
                {"meaning": "within days", "probability": 0.55},
                {"meaning": "within hours", "probability": 0.45},
            ],
        }
    ],
    "ordering": {"original_order": ["a", "b"], "recommended_order": ["b", "a"], "reason": "lead with ask"},
    "rewrite_constraints": ["keep it short"],
}


def sample_analysis_json() -> str:
    return json.dumps(SAMPLE_ANALYSIS)
