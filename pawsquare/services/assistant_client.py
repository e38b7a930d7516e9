"""Client for the pet care assistant function with live transcript updates."""
from __future__ import annotations

import asyncio
import logging
from enum import Enum
from typing import Callable

import httpx

from ..schemas.assistant import ChatMessage
from .sse_stream import SSEChatParser, apply_assistant_content

logger = logging.getLogger(__name__)

DEFAULT_ERROR_MESSAGE = "Failed to get response"


class AssistantErrorKind(str, Enum):
    RATE_LIMITED = "rate_limited"
    AUTH_REQUIRED = "auth_required"
    FAILED = "failed"


def classify_error(message: str) -> AssistantErrorKind:
    """Pick the user-facing error category from the server's message text."""

    lowered = message.lower()
    if "rate limit" in lowered:
        return AssistantErrorKind.RATE_LIMITED
    if "sign in" in lowered or "authentication" in lowered:
        return AssistantErrorKind.AUTH_REQUIRED
    return AssistantErrorKind.FAILED


class AssistantRequestError(RuntimeError):
    """Raised when a prompt could not be answered."""

    def __init__(self, message: str, *, status_code: int | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.status_code = status_code
        self.kind = classify_error(message)


def _error_text(response: httpx.Response) -> str:
    try:
        payload = response.json()
    except ValueError:
        return DEFAULT_ERROR_MESSAGE
    if isinstance(payload, dict):
        error = payload.get("error")
        if isinstance(error, str) and error.strip():
            return error
    return DEFAULT_ERROR_MESSAGE


class AssistantChatSession:
    """In-memory assistant conversation streamed through the proxy function.

    ``send`` appends the user message before the request is made and removes
    it again if anything fails, including cancellation of the calling task.
    """

    def __init__(
        self,
        *,
        endpoint: str,
        access_token: str,
        timeout: float = 60.0,
        transport: httpx.AsyncBaseTransport | None = None,
        on_update: Callable[[list[ChatMessage]], None] | None = None,
    ) -> None:
        self._endpoint = endpoint
        self._access_token = access_token
        self._timeout = timeout
        self._transport = transport
        self._on_update = on_update
        self._messages: list[ChatMessage] = []

    @property
    def messages(self) -> list[ChatMessage]:
        return list(self._messages)

    def _replace(self, messages: list[ChatMessage]) -> None:
        self._messages = messages
        if self._on_update is not None:
            self._on_update(list(messages))

    async def send(self, text: str) -> str:
        """Send ``text`` and return the assistant's complete reply."""

        cleaned = text.strip()
        if not cleaned:
            raise ValueError("Message cannot be empty")

        previous = list(self._messages)
        self._replace([*previous, ChatMessage(role="user", content=cleaned)])
        try:
            return await self._stream_reply(list(self._messages))
        except (Exception, asyncio.CancelledError) as exc:
            logger.warning("Assistant request failed | error=%s", type(exc).__name__)
            self._replace(previous)
            raise

    async def _stream_reply(self, transcript: list[ChatMessage]) -> str:
        payload = {"messages": [message.model_dump() for message in transcript]}
        headers = {"Authorization": f"Bearer {self._access_token}"}
        parser = SSEChatParser()

        try:
            async with httpx.AsyncClient(timeout=self._timeout, transport=self._transport) as client:
                async with client.stream("POST", self._endpoint, json=payload, headers=headers) as response:
                    if not response.is_success:
                        await response.aread()
                        raise AssistantRequestError(_error_text(response), status_code=response.status_code)
                    async for chunk in response.aiter_bytes():
                        if parser.feed(chunk):
                            self._replace(apply_assistant_content(self._messages, parser.content))
        except httpx.HTTPError as exc:
            raise AssistantRequestError(DEFAULT_ERROR_MESSAGE) from exc

        return parser.close()


__all__ = [
    "AssistantChatSession",
    "AssistantErrorKind",
    "AssistantRequestError",
    "DEFAULT_ERROR_MESSAGE",
    "classify_error",
]
