"""Project-wide constant values."""
from __future__ import annotations

ASSISTANT_FUNCTION_PATH = "/functions/v1/pet-care-assistant"

GLOBAL_PRESENCE_CHANNEL = "global-presence"
CONVERSATION_CHANNEL_PREFIX = "presence-"

USAGE_WINDOW_SECONDS = 3600


def conversation_channel(conversation_id: str) -> str:
    """Return the presence channel name for a conversation."""

    return f"{CONVERSATION_CHANNEL_PREFIX}{conversation_id}"


__all__ = [
    "ASSISTANT_FUNCTION_PATH",
    "CONVERSATION_CHANNEL_PREFIX",
    "GLOBAL_PRESENCE_CHANNEL",
    "USAGE_WINDOW_SECONDS",
    "conversation_channel",
]
