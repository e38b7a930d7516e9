"""SQLAlchemy ORM model for the assistant usage log."""
from __future__ import annotations

import uuid
from datetime import datetime, timezone

from sqlalchemy import Column, DateTime, Index, String
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.sql import func

from pawsquare.database import Base


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class AiUsage(Base):
    """One row per accepted assistant request, used for sliding-window rate limiting."""

    __tablename__ = "ai_usage"
    __table_args__ = (Index("ix_ai_usage_user_created", "user_id", "created_at"),)

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)

    # Subject claim of the caller's access token.
    user_id = Column(String(64), nullable=False)

    created_at = Column(DateTime(timezone=True), default=_utcnow, server_default=func.now(), nullable=False)


__all__ = ["AiUsage"]
