"""Pydantic schemas exposed by the API."""
from .assistant import AssistantChatRequest, AssistantErrorResponse, ChatMessage
from .realtime import PresenceClientFrame

__all__ = [
    "AssistantChatRequest",
    "AssistantErrorResponse",
    "ChatMessage",
    "PresenceClientFrame",
]
