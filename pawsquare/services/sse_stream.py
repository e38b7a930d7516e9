"""Incremental reassembly of streamed chat-completion deltas.

The proxy relays the gateway's Server-Sent Events untouched; this parser
turns the raw bytes back into the assistant's growing reply. It keeps two
states: ``awaiting-line`` while complete lines are being consumed and
``awaiting-more-bytes`` after a ``data:`` line failed to parse and was
pushed back to the front of the buffer.
"""
from __future__ import annotations

import codecs
import json
from enum import Enum
from typing import Any, Final, Sequence

from ..schemas.assistant import ChatMessage

DATA_PREFIX: Final[str] = "data: "
DONE_SENTINEL: Final[str] = "[DONE]"


class ParserState(str, Enum):
    AWAITING_LINE = "awaiting-line"
    AWAITING_MORE_BYTES = "awaiting-more-bytes"


_INCOMPLETE = object()


def _decode_json(raw: str) -> Any:
    try:
        return json.loads(raw)
    except ValueError:
        return _INCOMPLETE


def extract_delta_content(payload: Any) -> str | None:
    """Return ``choices[0].delta.content`` when the chunk carries text."""

    if not isinstance(payload, dict):
        return None
    choices = payload.get("choices")
    if not isinstance(choices, list) or not choices or not isinstance(choices[0], dict):
        return None
    delta = choices[0].get("delta")
    if not isinstance(delta, dict):
        return None
    content = delta.get("content")
    if isinstance(content, str) and content:
        return content
    return None


class SSEChatParser:
    """Feed raw response bytes, read back the concatenated assistant text."""

    def __init__(self) -> None:
        self._decoder = codecs.getincrementaldecoder("utf-8")(errors="replace")
        self._buffer = ""
        self.state = ParserState.AWAITING_LINE
        self.content = ""
        self.saw_done = False

    @property
    def buffered(self) -> str:
        return self._buffer

    def feed(self, chunk: bytes) -> list[str]:
        """Consume one read from the stream and return the new text fragments.

        ``[DONE]`` only stops processing of the current chunk; lines still in
        the buffer are handled by the next call.
        """

        self._buffer += self._decoder.decode(chunk)
        self.state = ParserState.AWAITING_LINE
        fragments: list[str] = []

        while True:
            newline_index = self._buffer.find("\n")
            if newline_index == -1:
                break
            line = self._buffer[:newline_index]
            self._buffer = self._buffer[newline_index + 1:]

            if line.endswith("\r"):
                line = line[:-1]
            if line.startswith(":") or not line.strip():
                continue
            if not line.startswith(DATA_PREFIX):
                continue

            data = line[len(DATA_PREFIX):].strip()
            if data == DONE_SENTINEL:
                self.saw_done = True
                break

            payload = _decode_json(data)
            if payload is _INCOMPLETE:
                self._buffer = line + "\n" + self._buffer
                self.state = ParserState.AWAITING_MORE_BYTES
                break

            content = extract_delta_content(payload)
            if content:
                self.content += content
                fragments.append(content)

        return fragments

    def close(self) -> str:
        """Flush the decoder at end of stream and return the final content."""

        self._buffer += self._decoder.decode(b"", final=True)
        return self.content


def apply_assistant_content(messages: Sequence[ChatMessage], content: str) -> list[ChatMessage]:
    """Return ``messages`` with the trailing assistant reply set to ``content``."""

    updated = list(messages)
    if updated and updated[-1].role == "assistant":
        updated[-1] = updated[-1].model_copy(update={"content": content})
    else:
        updated.append(ChatMessage(role="assistant", content=content))
    return updated


__all__ = [
    "DATA_PREFIX",
    "DONE_SENTINEL",
    "ParserState",
    "SSEChatParser",
    "apply_assistant_content",
    "extract_delta_content",
]
