"""Schemas supporting the pet care assistant endpoint."""
from __future__ import annotations

from typing import List, Literal

from pydantic import BaseModel, Field


class ChatMessage(BaseModel):
    role: Literal["user", "assistant"]
    content: str


class AssistantChatRequest(BaseModel):
    messages: List[ChatMessage] = Field(..., min_length=1)


class AssistantErrorResponse(BaseModel):
    error: str
