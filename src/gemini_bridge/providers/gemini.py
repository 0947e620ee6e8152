"""Direct HTTP backend using the Gemini generateContent API."""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Any

import httpx

from gemini_bridge.errors import (
    InvalidCredentialError,
    InvalidRequestError,
    ModelNotFoundError,
    NetworkError,
    ParseFailureError,
    ProviderError,
    RateLimitError,
    RequestTimeoutError,
)
from gemini_bridge.types import StreamEvent, StreamEventType, ToolCall, ToolDefinition

logger = logging.getLogger(__name__)

DEFAULT_BASE_URL = "https://generativelanguage.googleapis.com"


@dataclass
class GeminiReply:
    text: str = ""
    tool_calls: list[ToolCall] = field(default_factory=list)
    thinking: str | None = None
    model: str = ""
    raw: dict[str, Any] = field(default_factory=dict)

    def to_events(self) -> list[StreamEvent]:
        """Express the reply as the CLI's stream events."""
        events = [StreamEvent(type=StreamEventType.START)]
        if self.thinking:
            events.append(StreamEvent(type=StreamEventType.THINKING, content=self.thinking))
        if self.text:
            events.append(StreamEvent(type=StreamEventType.TEXT, content=self.text))
        for tc in self.tool_calls:
            events.append(StreamEvent(type=StreamEventType.TOOL_CALL, tool_call=tc))
        events.append(StreamEvent(type=StreamEventType.END))
        return events


class GeminiHttpBackend:
    """Client for ``models/<model>:generateContent`` authenticated by API key."""

    def __init__(
        self,
        api_key: str,
        base_url: str = DEFAULT_BASE_URL,
        http_client: httpx.AsyncClient | None = None,
        fallback_model: str | None = None,
    ):
        self._api_key = api_key
        self._base_url = base_url.rstrip("/")
        self._owns_client = http_client is None
        self._client = http_client or httpx.AsyncClient(
            headers={"Content-Type": "application/json"},
            timeout=httpx.Timeout(300.0),
        )
        self._fallback_model = fallback_model

    @property
    def name(self) -> str:
        return "gemini-http"

    async def generate(
        self,
        prompt: str,
        *,
        model: str,
        timeout_ms: int,
        tools: list[ToolDefinition] | None = None,
    ) -> GeminiReply:
        """Send one prompt and return the first candidate.

        A 404 for ``model`` is retried once with the fallback model on the
        stable ``v1`` API.
        """
        body = self._build_request_body(prompt, tools)
        try:
            return await self._post(body, model=model, api_version="v1beta", timeout_ms=timeout_ms)
        except ModelNotFoundError:
            fallback = self._fallback_model
            if not fallback or fallback == model:
                raise
            logger.warning("Model %s not found, falling back to %s", model, fallback)
            return await self._post(body, model=fallback, api_version="v1", timeout_ms=timeout_ms)

    async def close(self) -> None:
        if self._owns_client:
            await self._client.aclose()

    # -- Request building --

    def _build_request_body(
        self, prompt: str, tools: list[ToolDefinition] | None
    ) -> dict[str, Any]:
        body: dict[str, Any] = {"contents": [{"parts": [{"text": prompt}]}]}
        if tools:
            body["tools"] = [{"functionDeclarations": [
                {"name": t.name, "description": t.description, "parameters": t.parameters}
                for t in tools
            ]}]
        return body

    async def _post(
        self, body: dict[str, Any], *, model: str, api_version: str, timeout_ms: int
    ) -> GeminiReply:
        url = f"{self._base_url}/{api_version}/models/{model}:generateContent"
        try:
            http_resp = await asyncio.wait_for(
                self._client.post(url, params={"key": self._api_key}, json=body),
                timeout=timeout_ms / 1000.0,
            )
        except asyncio.TimeoutError:
            raise RequestTimeoutError(f"request timed out after {timeout_ms}ms") from None
        except httpx.TimeoutException as e:
            raise RequestTimeoutError(f"request timed out: {e}", cause=e) from e
        except httpx.HTTPError as e:
            raise NetworkError(f"network error: {e}", cause=e) from e

        if not http_resp.is_success:
            self._raise_error(http_resp)
        try:
            data = http_resp.json()
        except ValueError as e:
            raise ParseFailureError("failed to parse API response", cause=e) from e
        return self._parse_response(data, model)

    # -- Response parsing --

    def _parse_response(self, data: Any, model: str) -> GeminiReply:
        if not isinstance(data, dict):
            raise ParseFailureError("failed to parse API response")
        if "error" in data and not data.get("candidates"):
            error_obj = data["error"] if isinstance(data["error"], dict) else {}
            raise ProviderError(f"API error: {error_obj.get('message', data['error'])}", raw=data)

        candidates = data.get("candidates") or []
        candidate = candidates[0] if candidates else {}
        parts = (candidate.get("content") or {}).get("parts") or []

        texts: list[str] = []
        thoughts: list[str] = []
        tool_calls: list[ToolCall] = []
        for part in parts:
            if part.get("thought") is True and "text" in part:
                thoughts.append(part["text"])
            elif "text" in part:
                texts.append(part["text"])
            elif "functionCall" in part:
                fc = part["functionCall"]
                args = fc.get("args")
                tool_calls.append(
                    ToolCall(name=fc.get("name", ""), arguments=args if isinstance(args, dict) else {})
                )

        text = "".join(texts)
        if not text and not tool_calls:
            raise ParseFailureError("no text in response")

        return GeminiReply(
            text=text,
            tool_calls=tool_calls,
            thinking="".join(thoughts) or None,
            model=data.get("modelVersion", model),
            raw=data,
        )

    # -- Error handling --

    def _raise_error(self, http_resp: httpx.Response) -> None:
        try:
            body = http_resp.json()
        except ValueError:
            body = {"error": {"message": http_resp.text}}

        error_obj = body.get("error", {}) if isinstance(body, dict) else {}
        if not isinstance(error_obj, dict):
            error_obj = {"message": str(error_obj)}
        message = error_obj.get("message") or http_resp.text or http_resp.reason_phrase
        status = http_resp.status_code

        if status == 400:
            raise InvalidRequestError(f"invalid request: {message}", raw=body)
        if status in (401, 403):
            raise InvalidCredentialError(f"invalid credential: {message}", status_code=status)
        if status == 404:
            raise ModelNotFoundError(f"API error 404: {message}", raw=body)
        if status == 429:
            raise RateLimitError(f"rate limited: {message}", raw=body)
        raise ProviderError(f"API error {status}: {message}", status_code=status, raw=body)
