"""Tests for the OpenAI-compatible AI client."""

from __future__ import annotations

from types import SimpleNamespace
from typing import Any

import httpx
import pytest
from openai import APIConnectionError, APIStatusError, APITimeoutError

from stylist.ai.client import AIClient, ClientSettings
from stylist.ai.errors import TransportHTTPError, TransportMalformedError, TransportNetworkError

_URL = "https://api.example.com/v1/chat/completions"


class _FakeCompletions:
    def __init__(self, outcomes: list[Any]):
        self._outcomes = list(outcomes)
        self.calls: list[dict[str, Any]] = []

    async def create(self, **kwargs: Any) -> Any:
        self.calls.append(kwargs)
        outcome = self._outcomes.pop(0)
        if isinstance(outcome, BaseException):
            raise outcome
        return outcome


def _response(content: Any) -> SimpleNamespace:
    return SimpleNamespace(choices=[SimpleNamespace(message=SimpleNamespace(content=content))])


def _make_client(outcomes: list[Any], **overrides: Any) -> tuple[AIClient, _FakeCompletions]:
    completions = _FakeCompletions(outcomes)
    fake_client = SimpleNamespace(chat=SimpleNamespace(completions=completions))
    settings = ClientSettings(
        base_url="https://api.example.com/v1",
        api_key="test-key",
        model="deepseek-chat",
        retry_min_seconds=0,
        retry_max_seconds=0,
        **overrides,
    )
    return AIClient(settings, client=fake_client), completions  # type: ignore[arg-type]


def _request() -> httpx.Request:
    return httpx.Request("POST", _URL)


@pytest.mark.asyncio
async def test_complete_sends_system_and_user_messages() -> None:
    client, completions = _make_client([_response("Styled text")])

    result = await client.complete("Be formal.", "hi there", timeout=12)

    assert result == "Styled text"
    (call,) = completions.calls
    assert call["model"] == "deepseek-chat"
    assert call["messages"] == [
        {"role": "system", "content": "Be formal."},
        {"role": "user", "content": "hi there"},
    ]
    assert call["temperature"] == 0.7
    assert call["max_tokens"] == 2000
    assert call["timeout"] == 12


@pytest.mark.asyncio
async def test_complete_uses_configured_timeout_by_default() -> None:
    client, completions = _make_client([_response("ok")], request_timeout=30)

    await client.complete("sys", "user")

    assert completions.calls[0]["timeout"] == 30


@pytest.mark.asyncio
async def test_timeout_maps_to_network_error() -> None:
    client, _ = _make_client([APITimeoutError(request=_request())])

    with pytest.raises(TransportNetworkError):
        await client.complete("sys", "user")


@pytest.mark.asyncio
async def test_connection_failure_maps_to_network_error() -> None:
    client, _ = _make_client([APIConnectionError(message="refused", request=_request())])

    with pytest.raises(TransportNetworkError):
        await client.complete("sys", "user")


@pytest.mark.asyncio
async def test_http_error_carries_status_and_body() -> None:
    response = httpx.Response(401, request=_request(), text='{"error": "bad key"}')
    client, _ = _make_client([APIStatusError("unauthorized", response=response, body=None)])

    with pytest.raises(TransportHTTPError) as excinfo:
        await client.complete("sys", "user")

    assert excinfo.value.status_code == 401
    assert excinfo.value.message == 'API error (HTTP 401):\n{"error": "bad key"}'


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "response",
    [
        SimpleNamespace(choices=[]),
        SimpleNamespace(),
        SimpleNamespace(choices=[SimpleNamespace(message=None)]),
        _response(None),
    ],
)
async def test_malformed_response_raises(response: Any) -> None:
    client, _ = _make_client([response])

    with pytest.raises(TransportMalformedError) as excinfo:
        await client.complete("sys", "user")

    assert excinfo.value.message == "Unexpected API response format"


@pytest.mark.asyncio
async def test_network_errors_are_retried_when_configured() -> None:
    client, completions = _make_client(
        [APIConnectionError(message="reset", request=_request()), _response("second try")],
        max_retries=2,
    )

    assert await client.complete("sys", "user") == "second try"
    assert len(completions.calls) == 2


@pytest.mark.asyncio
async def test_http_errors_are_not_retried() -> None:
    response = httpx.Response(500, request=_request(), text="oops")
    client, completions = _make_client(
        [APIStatusError("server", response=response, body=None), _response("never")],
        max_retries=3,
    )

    with pytest.raises(TransportHTTPError):
        await client.complete("sys", "user")
    assert len(completions.calls) == 1


@pytest.mark.asyncio
async def test_aclose_closes_underlying_client() -> None:
    closed: list[bool] = []

    async def _close() -> None:
        closed.append(True)

    fake_client = SimpleNamespace(close=_close)
    client = AIClient(ClientSettings(base_url="https://x", api_key="k", model="m"), client=fake_client)  # type: ignore[arg-type]

    await client.aclose()

    assert closed == [True]


def test_default_client_disables_sdk_retries() -> None:
    client = AIClient(ClientSettings(base_url="https://api.example.com/v1", api_key="k", model="m"))

    assert client._client.max_retries == 0
