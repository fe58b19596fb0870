"""Async chat-completion client for OpenAI-compatible endpoints."""

from __future__ import annotations

import inspect
import json
import logging
from dataclasses import dataclass
from typing import Any, Dict, Mapping

import httpx
from openai import (
    APIConnectionError,
    APIError,
    APIResponseValidationError,
    APIStatusError,
    APITimeoutError,
    AsyncOpenAI,
)
from tenacity import AsyncRetrying, retry_if_exception_type, stop_after_attempt, wait_exponential

from .errors import TransportHTTPError, TransportMalformedError, TransportNetworkError

LOGGER = logging.getLogger(__name__)

DEFAULT_TEMPERATURE = 0.7
DEFAULT_MAX_TOKENS = 2000


@dataclass(slots=True)
class ClientSettings:
    """Subset of settings required to configure the AI client."""

    base_url: str
    api_key: str
    model: str
    request_timeout: float = 60.0
    temperature: float = DEFAULT_TEMPERATURE
    max_tokens: int = DEFAULT_MAX_TOKENS
    max_retries: int = 1
    retry_min_seconds: float = 0.5
    retry_max_seconds: float = 6.0
    default_headers: Mapping[str, str] | None = None
    debug_logging: bool = False


class AIClient:
    """Sends ``(system prompt, user text)`` pairs and returns the reply text.

    One instance is shared by every tab. Its configuration is read-only after
    construction, so concurrent requests are safe. Failures are reported as
    :class:`TransportNetworkError` (connection problems and timeouts),
    :class:`TransportHTTPError` (non-2xx answers) or
    :class:`TransportMalformedError` (no ``choices[0].message.content``).
    """

    def __init__(self, settings: ClientSettings, *, client: AsyncOpenAI | None = None) -> None:
        self._settings = settings
        self._client = client or self._build_client(settings)

    @property
    def settings(self) -> ClientSettings:
        return self._settings

    async def complete(self, system_prompt: str, user_text: str, *, timeout: float | None = None) -> str:
        """Run one chat completion and return ``choices[0].message.content``."""

        payload = self._build_chat_payload(system_prompt, user_text)
        effective_timeout = timeout if timeout is not None else self._settings.request_timeout
        LOGGER.debug(
            "Starting chat completion via %s (system=%d chars, user=%d chars, timeout=%ss)",
            self._settings.model,
            len(system_prompt),
            len(user_text),
            effective_timeout,
        )
        if self._settings.debug_logging:
            self._log_prompt_payload(payload)

        response: Any = None
        async for attempt in self._retrying():
            with attempt:
                response = await self._request(payload, effective_timeout)
        return self._extract_content(response)

    def _build_client(self, settings: ClientSettings) -> AsyncOpenAI:
        headers = dict(settings.default_headers) if settings.default_headers else None
        # Retries are driven by tenacity below, never by the SDK.
        return AsyncOpenAI(
            api_key=settings.api_key,
            base_url=settings.base_url,
            timeout=settings.request_timeout,
            max_retries=0,
            default_headers=headers,
        )

    def _retrying(self) -> AsyncRetrying:
        return AsyncRetrying(
            reraise=True,
            stop=stop_after_attempt(max(1, self._settings.max_retries)),
            wait=wait_exponential(
                multiplier=self._settings.retry_min_seconds,
                max=self._settings.retry_max_seconds,
            ),
            retry=retry_if_exception_type(TransportNetworkError),
        )

    async def _request(self, payload: Mapping[str, Any], timeout: float | None) -> Any:
        try:
            return await self._client.chat.completions.create(**payload, timeout=timeout)
        except APITimeoutError as exc:
            raise TransportNetworkError(message="Network error: timeout", details={"timeout": timeout}) from exc
        except APIConnectionError as exc:
            raise TransportNetworkError(message=f"Network error: {exc}") from exc
        except APIStatusError as exc:
            raise TransportHTTPError(status_code=exc.status_code, body=_response_body(exc)) from exc
        except APIResponseValidationError as exc:
            raise TransportMalformedError(details={"reason": str(exc)}) from exc
        except APIError as exc:
            raise TransportMalformedError(details={"reason": str(exc)}) from exc
        except httpx.TimeoutException as exc:
            raise TransportNetworkError(message="Network error: timeout", details={"timeout": timeout}) from exc
        except httpx.HTTPError as exc:
            raise TransportNetworkError(message=f"Network error: {exc}") from exc

    def _build_chat_payload(self, system_prompt: str, user_text: str) -> Dict[str, Any]:
        return {
            "model": self._settings.model,
            "messages": [
                {"role": "system", "content": system_prompt},
                {"role": "user", "content": user_text},
            ],
            "temperature": self._settings.temperature,
            "max_tokens": self._settings.max_tokens,
        }

    @staticmethod
    def _extract_content(response: Any) -> str:
        choices = getattr(response, "choices", None)
        if not choices:
            raise TransportMalformedError(details={"reason": "missing choices"})
        message = getattr(choices[0], "message", None)
        content = getattr(message, "content", None)
        if not isinstance(content, str):
            raise TransportMalformedError(details={"reason": "missing message content"})
        return content

    def _log_prompt_payload(self, payload: Mapping[str, Any]) -> None:
        try:
            serialized = json.dumps(payload, ensure_ascii=False, indent=2)
        except (TypeError, ValueError):
            LOGGER.debug("AI prompt payload (unserializable): %s", payload)
        else:
            LOGGER.debug("AI prompt payload:\n%s", serialized)

    async def aclose(self) -> None:
        """Close the underlying OpenAI client to release network resources."""

        close = getattr(self._client, "close", None)
        if close is None:
            return
        try:
            result = close()
        except Exception as exc:  # pragma: no cover - SDK close may fail on a dead transport
            LOGGER.debug("AI client close failed to start: %s", exc)
            return
        if inspect.isawaitable(result):
            await result


def _response_body(exc: APIStatusError) -> str:
    response = getattr(exc, "response", None)
    try:
        return response.text if response is not None else ""
    except Exception:  # pragma: no cover - body may be unreadable
        return ""
