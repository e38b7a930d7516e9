"""Schemas for frames exchanged over the presence WebSocket."""
from __future__ import annotations

from typing import Any, Literal

from pydantic import BaseModel, Field


class PresenceClientFrame(BaseModel):
    """Frame sent by a client; ``payload`` is only meaningful for ``track``."""

    type: Literal["track", "ping"]
    payload: dict[str, Any] = Field(default_factory=dict)
