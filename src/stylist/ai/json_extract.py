"""Utilities for pulling a JSON object out of free-form model output.

Models asked for "only JSON" still wrap it in prose or code fences now and
then. :func:`extract_balanced_json` recovers the first complete object so the
caller can hand it to :func:`json.loads`.
"""

from __future__ import annotations

import json
from typing import Any

from .errors import AnalysisInvalidJSONError

__all__ = ["extract_balanced_json", "parse_analysis", "empty_analysis"]


def extract_balanced_json(text: str) -> str:
    """Return the first balanced ``{...}`` span in ``text``.

    Braces inside string literals are ignored. A quote only closes or opens a
    string when it is preceded by an even number of backslashes. When there is
    no opening brace, or the object never closes, ``text`` is returned
    unchanged so the subsequent parse fails on its own.
    """

    if not isinstance(text, str):
        return text
    start = text.find("{")
    if start < 0:
        return text

    depth = 0
    in_string = False
    backslashes = 0
    for index in range(start, len(text)):
        char = text[index]
        if char == "\\":
            backslashes += 1
            continue
        escaped = backslashes % 2 == 1
        backslashes = 0
        if char == '"' and not escaped:
            in_string = not in_string
        elif in_string:
            continue
        elif char == "{":
            depth += 1
        elif char == "}":
            depth -= 1
            if depth == 0:
                return text[start : index + 1]
    return text


def parse_analysis(text: str) -> tuple[dict[str, Any], str]:
    """Extract and parse a semantic analysis object.

    Returns the decoded object together with the exact source span that was
    parsed, so it can be forwarded verbatim.

    Raises:
        AnalysisInvalidJSONError: if the span is not a JSON object.
    """

    candidate = extract_balanced_json(text or "")
    try:
        payload = json.loads(candidate)
    except (json.JSONDecodeError, TypeError) as exc:
        raise AnalysisInvalidJSONError(details={"reason": str(exc), "length": len(candidate or "")}) from exc
    if not isinstance(payload, dict):
        raise AnalysisInvalidJSONError(details={"reason": f"top-level {type(payload).__name__}"})
    return payload, candidate


def empty_analysis() -> dict[str, Any]:
    """Analysis recorded when the first pass could not be recovered."""

    return {
        "preserve": [],
        "intensifiers": [],
        "ambiguities": [],
        "rewrite_constraints": [],
    }
