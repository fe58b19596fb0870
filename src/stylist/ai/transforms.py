"""Single-pass and two-pass text transforms.

Both transforms only await the transport; extraction and parsing are local
and synchronous. The two-pass transform recovers from unusable analyses on
its own (strict retry, then single-pass fallback) so that
:class:`AnalysisInvalidJSONError` never escapes it.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Protocol

from .errors import AnalysisInvalidJSONError, TransportError
from .json_extract import empty_analysis, parse_analysis
from .prompts import (
    DEFAULT_AMBIGUITY_MARGIN,
    analysis_prompt,
    build_second_pass_prompt,
    dump_analysis,
    wrap_source_text,
)

LOGGER = logging.getLogger(__name__)

EM_DASH = "—"


class TransformStage(Enum):
    """Steps reported through ``on_stage`` while a transform runs."""

    SINGLE_PASS = "single_pass"
    FIRST_PASS = "first_pass"
    RETRY_STRICT = "retry_strict"
    FALLBACK = "fallback"
    SECOND_PASS = "second_pass"


StageListener = Callable[[TransformStage], None]


class ChatTransport(Protocol):
    """The one capability the transforms need from :class:`AIClient`."""

    async def complete(self, system_prompt: str, user_text: str, *, timeout: float | None = None) -> str:
        ...  # pragma: no cover - protocol


@dataclass(slots=True)
class TransformOutcome:
    """Result of a transform run."""

    text: str
    analysis: dict[str, Any] | None = None
    analysis_json: str | None = None
    used_fallback: bool = False
    attempts: list[str] = field(default_factory=list)


def normalize_em_dashes(text: str) -> str:
    """Replace every em-dash with a spaced hyphen."""

    return text.replace(EM_DASH, " - ")


class SinglePassTransform:
    """Rewrite the source text with the style prompt in one request."""

    def __init__(self, transport: ChatTransport, *, timeout: float | None = 30.0) -> None:
        self._transport = transport
        self._timeout = timeout

    async def run(self, style_text: str, source_text: str) -> str:
        raw = await self._transport.complete(style_text, wrap_source_text(source_text), timeout=self._timeout)
        return normalize_em_dashes(raw)


class TwoPassTransform:
    """Analyse the text first, then rewrite it under the analysis constraints.

    Ladder: first pass, up to ``strict_retries`` strict re-asks, then the
    single-pass fallback with an empty analysis. Once an analysis parses, the
    second pass is the last request; its failure is not retried.
    """

    def __init__(
        self,
        transport: ChatTransport,
        *,
        timeout: float | None = 60.0,
        strict_retries: int = 1,
        ambiguity_margin: float = DEFAULT_AMBIGUITY_MARGIN,
        fallback: SinglePassTransform | None = None,
    ) -> None:
        self._transport = transport
        self._timeout = timeout
        self._strict_retries = max(0, int(strict_retries))
        self._margin = ambiguity_margin
        self._fallback = fallback or SinglePassTransform(transport, timeout=timeout)

    async def run(
        self,
        style_text: str,
        source_text: str,
        *,
        on_stage: StageListener | None = None,
    ) -> TransformOutcome:
        notify = on_stage or (lambda _stage: None)
        attempts: list[str] = []

        parsed: tuple[dict[str, Any], str] | None = None
        for attempt in range(self._strict_retries + 1):
            strict = attempt > 0
            notify(TransformStage.RETRY_STRICT if strict else TransformStage.FIRST_PASS)
            try:
                parsed = await self._analyse(source_text, strict=strict)
            except AnalysisInvalidJSONError as exc:
                attempts.append("invalid_json")
                LOGGER.info("Analysis attempt %d returned invalid JSON: %s", attempt + 1, exc.details)
            except TransportError as exc:
                attempts.append(exc.error_code)
                LOGGER.info("Analysis attempt %d failed: %s", attempt + 1, exc)
            else:
                attempts.append("ok")
                break

        if parsed is None:
            notify(TransformStage.FALLBACK)
            analysis = empty_analysis()
            LOGGER.warning("Semantic analysis unavailable after %d attempt(s); using single-pass fallback", len(attempts))
            text = await self._fallback.run(style_text, source_text)
            return TransformOutcome(
                text=text,
                analysis=analysis,
                analysis_json=dump_analysis(analysis),
                used_fallback=True,
                attempts=attempts,
            )

        analysis, analysis_json = parsed
        notify(TransformStage.SECOND_PASS)
        system_prompt = build_second_pass_prompt(style_text, analysis_json, margin=self._margin)
        raw = await self._transport.complete(system_prompt, source_text, timeout=self._timeout)
        return TransformOutcome(
            text=normalize_em_dashes(raw),
            analysis=analysis,
            analysis_json=analysis_json,
            attempts=attempts,
        )

    async def _analyse(self, source_text: str, *, strict: bool) -> tuple[dict[str, Any], str]:
        raw = await self._transport.complete(analysis_prompt(strict=strict), source_text, timeout=self._timeout)
        return parse_analysis(raw)


__all__ = [
    "EM_DASH",
    "ChatTransport",
    "SinglePassTransform",
    "TransformOutcome",
    "TransformStage",
    "TwoPassTransform",
    "normalize_em_dashes",
]
