"""Tests for balanced JSON extraction and analysis parsing."""

from __future__ import annotations

import pytest

from stylist.ai.errors import AnalysisInvalidJSONError
from stylist.ai.json_extract import empty_analysis, extract_balanced_json, parse_analysis


def test_extracts_object_surrounded_by_prose() -> None:
    text = 'Here you go:\n```json\n{"preserve": [], "x": {"y": 1}}\n```\nThanks!'

    assert extract_balanced_json(text) == '{"preserve": [], "x": {"y": 1}}'


def test_returns_first_complete_object_only() -> None:
    assert extract_balanced_json('{"a": 1} trailing {"b": 2}') == '{"a": 1}'


def test_braces_inside_strings_are_ignored() -> None:
    text = 'noise {"text": "a } b { c", "n": 2} more'

    assert extract_balanced_json(text) == '{"text": "a } b { c", "n": 2}'


def test_escaped_quotes_do_not_end_strings() -> None:
    text = r'{"text": "she said \"}\" loudly"} tail'

    assert extract_balanced_json(text) == r'{"text": "she said \"}\" loudly"}'


def test_escaped_backslash_before_quote_closes_string() -> None:
    text = r'{"path": "C:\\"} tail'

    assert extract_balanced_json(text) == r'{"path": "C:\\"}'


def test_text_without_brace_is_returned_unchanged() -> None:
    assert extract_balanced_json("no json here") == "no json here"


def test_unclosed_object_is_returned_unchanged() -> None:
    text = 'prefix {"a": {"b": 1}'

    assert extract_balanced_json(text) == text


def test_empty_string_is_returned_unchanged() -> None:
    assert extract_balanced_json("") == ""


def test_parse_analysis_returns_object_and_exact_span() -> None:
    analysis, span = parse_analysis('Sure! {"preserve": [{"text": "Friday"}]} done')

    assert analysis == {"preserve": [{"text": "Friday"}]}
    assert span == '{"preserve": [{"text": "Friday"}]}'


@pytest.mark.parametrize(
    "raw",
    [
        "I cannot comply.",
        '{"preserve": [}',
        "{not json}",
        '{"preserve": []',
    ],
)
def test_parse_analysis_rejects_invalid_json(raw: str) -> None:
    with pytest.raises(AnalysisInvalidJSONError):
        parse_analysis(raw)


def test_parse_analysis_rejects_non_object_payload() -> None:
    with pytest.raises(AnalysisInvalidJSONError):
        parse_analysis("[1, 2, 3]")


def test_empty_analysis_has_exactly_the_fallback_keys() -> None:
    analysis = empty_analysis()

    assert analysis == {"preserve": [], "intensifiers": [], "ambiguities": [], "rewrite_constraints": []}
    assert empty_analysis() is not analysis
