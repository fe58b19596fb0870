"""Tests for the single-pass and two-pass transforms."""

from __future__ import annotations

import pytest

from stylist.ai.errors import TransportHTTPError, TransportNetworkError
from stylist.ai.json_extract import empty_analysis
from stylist.ai.prompts import STRICT_JSON_SUFFIX, wrap_source_text
from stylist.ai.transforms import SinglePassTransform, TransformStage, TwoPassTransform, normalize_em_dashes
from tests.helpers import make_transport, sample_analysis_json

STYLE = "Rewrite formally."
SOURCE = "hey can u send the report by friday"


def test_normalize_em_dashes() -> None:
    assert normalize_em_dashes("a—b—c") == "a - b - c"
    assert normalize_em_dashes("plain - text") == "plain - text"


@pytest.mark.asyncio
async def test_single_pass_wraps_source_and_strips_em_dashes() -> None:
    transport = make_transport(["Dear colleague—please send it."])

    result = await SinglePassTransform(transport, timeout=30).run(STYLE, SOURCE)

    assert result == "Dear colleague - please send it."
    (call,) = transport.calls
    assert call.system_prompt == STYLE
    assert call.user_text == wrap_source_text(SOURCE)
    assert call.timeout == 30


@pytest.mark.asyncio
async def test_two_pass_forwards_analysis_verbatim_to_second_pass() -> None:
    analysis_json = sample_analysis_json()
    transport = make_transport([f"Here it is:\n{analysis_json}\nDone.", "Could you send the report by Friday—thanks."])
    stages: list[TransformStage] = []

    outcome = await TwoPassTransform(transport, timeout=60).run(STYLE, SOURCE, on_stage=stages.append)

    assert stages == [TransformStage.FIRST_PASS, TransformStage.SECOND_PASS]
    assert outcome.text == "Could you send the report by Friday - thanks."
    assert outcome.analysis_json == analysis_json
    assert outcome.analysis is not None and outcome.analysis["preserve"][0]["text"] == "Friday"
    assert outcome.used_fallback is False

    first, second = transport.calls
    assert first.is_analysis
    assert first.user_text == SOURCE
    assert STRICT_JSON_SUFFIX not in first.system_prompt
    assert second.system_prompt.startswith(STYLE)
    assert second.system_prompt.endswith(analysis_json)
    assert second.user_text == SOURCE
    assert first.timeout == second.timeout == 60


@pytest.mark.asyncio
async def test_invalid_json_triggers_strict_retry() -> None:
    transport = make_transport(["I think this text is friendly.", '{"preserve": []}', "Formal text."])
    stages: list[TransformStage] = []

    outcome = await TwoPassTransform(transport).run(STYLE, SOURCE, on_stage=stages.append)

    assert stages == [TransformStage.FIRST_PASS, TransformStage.RETRY_STRICT, TransformStage.SECOND_PASS]
    assert transport.calls[1].system_prompt.endswith(STRICT_JSON_SUFFIX)
    assert outcome.analysis == {"preserve": []}
    assert outcome.text == "Formal text."
    assert outcome.attempts == ["invalid_json", "ok"]


@pytest.mark.asyncio
async def test_first_pass_transport_failure_is_retried_strictly() -> None:
    transport = make_transport([TransportNetworkError(), '{"preserve": []}', "Formal text."])

    outcome = await TwoPassTransform(transport).run(STYLE, SOURCE)

    assert outcome.used_fallback is False
    assert outcome.attempts == ["transport_network", "ok"]
    assert transport.calls[1].system_prompt.endswith(STRICT_JSON_SUFFIX)


@pytest.mark.asyncio
async def test_two_invalid_analyses_fall_back_to_single_pass() -> None:
    transport = make_transport(["not json", "still not json", "Fallback—text."])
    stages: list[TransformStage] = []

    outcome = await TwoPassTransform(transport, timeout=60).run(STYLE, SOURCE, on_stage=stages.append)

    assert stages == [TransformStage.FIRST_PASS, TransformStage.RETRY_STRICT, TransformStage.FALLBACK]
    assert outcome.used_fallback is True
    assert outcome.analysis == empty_analysis()
    assert outcome.text == "Fallback - text."
    fallback_call = transport.calls[-1]
    assert fallback_call.system_prompt == STYLE
    assert fallback_call.user_text == wrap_source_text(SOURCE)
    assert fallback_call.timeout == 60


@pytest.mark.asyncio
async def test_strict_retries_is_configurable() -> None:
    transport = make_transport(["nope", "nope", "nope", "Fallback."])

    outcome = await TwoPassTransform(transport, strict_retries=2).run(STYLE, SOURCE)

    assert outcome.used_fallback is True
    assert len([call for call in transport.calls if call.is_analysis]) == 3


@pytest.mark.asyncio
async def test_second_pass_failure_is_not_retried() -> None:
    transport = make_transport(['{"preserve": []}', TransportHTTPError(status_code=500, body="boom")])

    with pytest.raises(TransportHTTPError) as excinfo:
        await TwoPassTransform(transport).run(STYLE, SOURCE)

    assert excinfo.value.message == "API error (HTTP 500):\nboom"
    assert len(transport.calls) == 2


@pytest.mark.asyncio
async def test_fallback_failure_propagates() -> None:
    transport = make_transport(["bad", "bad", TransportNetworkError()])

    with pytest.raises(TransportNetworkError):
        await TwoPassTransform(transport).run(STYLE, SOURCE)
