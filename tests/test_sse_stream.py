"""Tests for incremental SSE chat reassembly."""
from __future__ import annotations

import json

import pytest

from pawsquare.schemas import ChatMessage
from pawsquare.services.sse_stream import ParserState, SSEChatParser, apply_assistant_content


def _event(content: str) -> str:
    return "data: " + json.dumps({"choices": [{"delta": {"content": content}}]}, ensure_ascii=False) + "\n\n"


STREAM = (
    ": keep-alive comment\n\n"
    + _event("Dogs ")
    + 'data: {"choices":[{"delta":{"role":"assistant"}}]}\r\n\r\n'
    + "event: ping\n"
    + _event("need daily walks")
    + _event(" – about 30 minutes \U0001F415")
    + "data: [DONE]\n\n"
).encode("utf-8")
EXPECTED = "Dogs need daily walks – about 30 minutes \U0001F415"


def _feed_all(chunks) -> SSEChatParser:
    parser = SSEChatParser()
    for chunk in chunks:
        parser.feed(chunk)
    parser.close()
    return parser


def _split_every(data: bytes, size: int) -> list[bytes]:
    return [data[index:index + size] for index in range(0, len(data), size)]


@pytest.mark.parametrize("size", [1, 2, 3, 7, 16, 64, len(STREAM)])
def test_reassembly_is_independent_of_read_boundaries(size):
    parser = _feed_all(_split_every(STREAM, size))
    assert parser.content == EXPECTED
    assert parser.saw_done is True


def test_split_multibyte_characters_are_preserved():
    emoji = "\U0001F436".encode("utf-8")
    payload = _event("\U0001F436").encode("utf-8")
    cut = payload.index(emoji) + 2

    parser = SSEChatParser()
    assert parser.feed(payload[:cut]) == []
    assert parser.feed(payload[cut:]) == ["\U0001F436"]
    assert parser.content == "\U0001F436"


def test_feed_returns_fragments_in_arrival_order():
    parser = SSEChatParser()
    fragments = parser.feed((_event("a") + _event("b")).encode())
    assert fragments == ["a", "b"]
    assert parser.content == "ab"


def test_lines_without_data_prefix_are_ignored():
    parser = SSEChatParser()
    parser.feed(b'id: 1\nretry: 100\ndata:{"choices":[{"delta":{"content":"no space"}}]}\n')
    assert parser.content == ""
    assert parser.state is ParserState.AWAITING_LINE


def test_unparseable_line_is_pushed_back_and_waits_for_more_bytes():
    parser = SSEChatParser()
    parser.feed(b'data: {"choices": [\n')
    assert parser.state is ParserState.AWAITING_MORE_BYTES
    assert parser.buffered == 'data: {"choices": [\n'
    assert parser.content == ""


def test_done_only_stops_the_current_chunk():
    parser = SSEChatParser()
    parser.feed((_event("first") + "data: [DONE]\n" + _event("late")).encode())
    assert parser.content == "first"
    assert parser.saw_done is True

    parser.feed(b"")
    assert parser.content == "firstlate"


def test_apply_assistant_content_appends_then_replaces():
    history = [ChatMessage(role="user", content="Hi")]

    first = apply_assistant_content(history, "Hel")
    assert [message.role for message in first] == ["user", "assistant"]
    assert first[-1].content == "Hel"

    second = apply_assistant_content(first, "Hello")
    assert len(second) == 2
    assert second[-1].content == "Hello"
    assert first[-1].content == "Hel"
