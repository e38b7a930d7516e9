"""Tests for the streaming assistant chat session."""
from __future__ import annotations

import asyncio
import json

import httpx
import pytest

from pawsquare.services.assistant_client import (
    AssistantChatSession,
    AssistantErrorKind,
    AssistantRequestError,
    classify_error,
)

ENDPOINT = "https://backend.test/functions/v1/pet-care-assistant"


def _event(content: str) -> bytes:
    return ("data: " + json.dumps({"choices": [{"delta": {"content": content}}]}) + "\n\n").encode()


async def _chunks(*parts: bytes):
    for part in parts:
        yield part


def _session(handler, **kwargs) -> AssistantChatSession:
    return AssistantChatSession(
        endpoint=ENDPOINT,
        access_token="user-token",
        transport=httpx.MockTransport(handler),
        **kwargs,
    )


def test_reply_is_streamed_into_the_transcript():
    updates: list[str] = []
    sent: list[dict] = []
    first = _event("Brush ")
    body = first + _event("weekly") + b"data: [DONE]\n\n"

    async def handler(request: httpx.Request) -> httpx.Response:
        sent.append({"auth": request.headers["Authorization"], "json": json.loads(request.content)})
        # Split inside the first event so fragments arrive across reads.
        return httpx.Response(200, content=_chunks(body[:10], body[10:len(first)], body[len(first):]))

    def on_update(messages):
        if messages[-1].role == "assistant":
            updates.append(messages[-1].content)

    session = _session(handler, on_update=on_update)
    reply = asyncio.run(session.send("  How often should I brush my dog?  "))

    assert reply == "Brush weekly"
    assert updates == ["Brush ", "Brush weekly"]
    assert [(m.role, m.content) for m in session.messages] == [
        ("user", "How often should I brush my dog?"),
        ("assistant", "Brush weekly"),
    ]
    assert sent[0]["auth"] == "Bearer user-token"
    assert sent[0]["json"] == {"messages": [{"role": "user", "content": "How often should I brush my dog?"}]}


def test_follow_up_sends_the_whole_history():
    bodies: list[dict] = []

    def handler(request: httpx.Request) -> httpx.Response:
        bodies.append(json.loads(request.content))
        return httpx.Response(200, content=_event("ok"))

    session = _session(handler)

    async def scenario() -> None:
        await session.send("first")
        await session.send("second")

    asyncio.run(scenario())
    assert [m["role"] for m in bodies[1]["messages"]] == ["user", "assistant", "user"]
    assert len(session.messages) == 4


@pytest.mark.parametrize(
    "status_code, error, kind",
    [
        (429, "Rate limit exceeded. You can send up to 20 messages per hour. Please try again later.", AssistantErrorKind.RATE_LIMITED),
        (401, "Unauthorized. Please sign in again.", AssistantErrorKind.AUTH_REQUIRED),
        (500, "Failed to get AI response", AssistantErrorKind.FAILED),
    ],
)
def test_error_responses_roll_back_the_user_message(status_code, error, kind):
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(status_code, json={"error": error})

    session = _session(handler)
    with pytest.raises(AssistantRequestError) as excinfo:
        asyncio.run(session.send("Hello"))

    assert excinfo.value.status_code == status_code
    assert excinfo.value.message == error
    assert excinfo.value.kind is kind
    assert session.messages == []


def test_error_body_without_message_uses_default_text():
    session = _session(lambda request: httpx.Response(503, text="<html>down</html>"))
    with pytest.raises(AssistantRequestError) as excinfo:
        asyncio.run(session.send("Hello"))
    assert excinfo.value.message == "Failed to get response"


def test_transport_failure_is_reported_as_generic_error():
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("connection refused", request=request)

    session = _session(handler)
    with pytest.raises(AssistantRequestError) as excinfo:
        asyncio.run(session.send("Hello"))
    assert excinfo.value.kind is AssistantErrorKind.FAILED
    assert session.messages == []


def test_cancelling_an_in_flight_reply_restores_the_transcript():
    release = asyncio.Event()

    async def stalled_body():
        yield _event("Partial")
        await release.wait()
        yield _event(" never")

    async def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, content=stalled_body())

    partials: list[str] = []
    session = _session(handler, on_update=lambda messages: partials.append(messages[-1].content))

    async def scenario() -> None:
        task = asyncio.create_task(session.send("Hello"))
        while "Partial" not in partials:
            await asyncio.sleep(0.01)
        task.cancel()
        with pytest.raises(asyncio.CancelledError):
            await task

    asyncio.run(scenario())
    assert session.messages == []


def test_blank_message_is_rejected_without_a_request():
    calls: list[httpx.Request] = []
    session = _session(lambda request: calls.append(request) or httpx.Response(200))
    with pytest.raises(ValueError):
        asyncio.run(session.send("   "))
    assert calls == []
    assert session.messages == []


@pytest.mark.parametrize(
    "message, kind",
    [
        ("Rate limit exceeded. Please try again in a moment.", AssistantErrorKind.RATE_LIMITED),
        ("Authentication required. Please sign in to use the AI assistant.", AssistantErrorKind.AUTH_REQUIRED),
        ("Service temporarily unavailable. Please try again later.", AssistantErrorKind.FAILED),
    ],
)
def test_classify_error(message, kind):
    assert classify_error(message) is kind
