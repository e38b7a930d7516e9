"""Upstream AI gateway client for the pet care assistant."""
from __future__ import annotations

import logging
from typing import AsyncIterator, Final, Sequence

import httpx
from fastapi import status

from ..config import get_settings
from ..security.secrets import MissingSecretError, require_secret
from .errors import AssistantProxyError, RateLimited, UpstreamUnavailable

logger = logging.getLogger(__name__)

SYSTEM_PROMPT: Final[str] = """You are a friendly and knowledgeable AI Pet Care Assistant for PawSquare, a community platform for pet lovers. Your role is to help users with:

1. Pet health questions (general guidance, not veterinary diagnosis)
2. Pet nutrition and diet advice
3. Training tips and behavioral guidance
4. Pet grooming and hygiene
5. Exercise and activity recommendations
6. Pet safety and emergency awareness

Guidelines:
- Always be warm, empathetic, and supportive
- For serious health concerns, always recommend consulting a veterinarian
- Provide practical, actionable advice
- Use simple language that pet owners can understand
- Share fun facts about pets when appropriate
- If you're unsure about something, say so and recommend professional consultation

Remember: You are not a replacement for professional veterinary care. For emergencies or serious health issues, always advise users to contact a veterinarian immediately."""

UPSTREAM_RATE_LIMIT_MESSAGE = "Rate limit exceeded. Please try again in a moment."
UPSTREAM_PAYMENT_MESSAGE = "Service temporarily unavailable. Please try again later."
UPSTREAM_FAILURE_MESSAGE = "Failed to get AI response"
NOT_CONFIGURED_MESSAGE = "AI assistant is not configured"


def build_upstream_messages(messages: Sequence[dict[str, str]]) -> list[dict[str, str]]:
    """Prepend the fixed system prompt to the caller's transcript."""

    return [{"role": "system", "content": SYSTEM_PROMPT}, *messages]


def translate_upstream_status(status_code: int) -> AssistantProxyError:
    """Map a non-2xx gateway status onto the user-safe error vocabulary."""

    if status_code == status.HTTP_429_TOO_MANY_REQUESTS:
        return RateLimited(UPSTREAM_RATE_LIMIT_MESSAGE)
    if status_code == status.HTTP_402_PAYMENT_REQUIRED:
        return UpstreamUnavailable(UPSTREAM_PAYMENT_MESSAGE, status_code=status.HTTP_402_PAYMENT_REQUIRED)
    return UpstreamUnavailable(UPSTREAM_FAILURE_MESSAGE)


class AIGatewayClient:
    """Streams chat completions from the OpenAI-compatible AI gateway."""

    def __init__(
        self,
        *,
        endpoint: str | None = None,
        model: str | None = None,
        timeout: float | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        settings = get_settings()
        self._endpoint = endpoint or settings.ai_gateway_url
        self._model = model or settings.ai_model
        self._timeout = timeout if timeout is not None else settings.ai_gateway_timeout
        self._transport = transport

    def _api_key(self) -> str:
        try:
            return require_secret("AI_GATEWAY_API_KEY")
        except MissingSecretError as exc:
            logger.error("AI_GATEWAY_API_KEY is not configured")
            raise AssistantProxyError(NOT_CONFIGURED_MESSAGE) from exc

    async def open_stream(self, messages: Sequence[dict[str, str]]) -> AsyncIterator[bytes]:
        """Start a streaming completion and return an iterator over the raw SSE bytes.

        Non-2xx gateway responses raise before any byte is returned so the
        caller can still choose the response status.
        """

        api_key = self._api_key()
        payload = {
            "model": self._model,
            "messages": build_upstream_messages(messages),
            "stream": True,
        }
        headers = {"Authorization": f"Bearer {api_key}", "Content-Type": "application/json"}

        client = httpx.AsyncClient(timeout=self._timeout, transport=self._transport)
        stream_ctx = client.stream("POST", self._endpoint, json=payload, headers=headers)
        try:
            response = await stream_ctx.__aenter__()
        except httpx.HTTPError as exc:
            await client.aclose()
            logger.error(
                "AI gateway transport error | endpoint=%s timeout=%s error=%s",
                self._endpoint,
                self._timeout,
                type(exc).__name__,
            )
            raise UpstreamUnavailable(UPSTREAM_FAILURE_MESSAGE) from exc

        if not response.is_success:
            try:
                body = (await response.aread()).decode("utf-8", errors="replace")
            except httpx.HTTPError:
                body = ""
            finally:
                await stream_ctx.__aexit__(None, None, None)
                await client.aclose()
            if response.status_code not in (status.HTTP_429_TOO_MANY_REQUESTS, status.HTTP_402_PAYMENT_REQUIRED):
                logger.error("AI gateway error | status=%s body=%s", response.status_code, body[:500])
            else:
                logger.warning("AI gateway throttled | status=%s", response.status_code)
            raise translate_upstream_status(response.status_code)

        async def _relay() -> AsyncIterator[bytes]:
            try:
                async for chunk in response.aiter_raw():
                    if chunk:
                        yield chunk
            except httpx.HTTPError as exc:
                logger.error("AI gateway stream interrupted | error=%s", type(exc).__name__)
            finally:
                await stream_ctx.__aexit__(None, None, None)
                await client.aclose()

        return _relay()


def get_gateway_client() -> AIGatewayClient:
    """FastAPI dependency returning the gateway client; overridden in tests."""

    return AIGatewayClient()


__all__ = [
    "AIGatewayClient",
    "NOT_CONFIGURED_MESSAGE",
    "SYSTEM_PROMPT",
    "UPSTREAM_FAILURE_MESSAGE",
    "UPSTREAM_PAYMENT_MESSAGE",
    "UPSTREAM_RATE_LIMIT_MESSAGE",
    "build_upstream_messages",
    "get_gateway_client",
    "translate_upstream_status",
]
