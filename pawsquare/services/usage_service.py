"""Sliding-window rate limiting and retention for the assistant usage log."""
from __future__ import annotations

import logging
from datetime import datetime, timedelta, timezone
from typing import Callable

from sqlalchemy import delete, func, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ..constants import USAGE_WINDOW_SECONDS
from ..models import AiUsage
from .errors import RateLimited

logger = logging.getLogger(__name__)

USAGE_WINDOW = timedelta(seconds=USAGE_WINDOW_SECONDS)
DEFAULT_RETENTION = timedelta(hours=24)


class UsageCleanupError(RuntimeError):
    """Raised when stale usage rows cannot be pruned."""


def _now() -> datetime:
    return datetime.now(timezone.utc)


def rate_limit_message(limit: int) -> str:
    return f"Rate limit exceeded. You can send up to {limit} messages per hour. Please try again later."


def count_recent_usage(db: Session, user_id: str, *, now: datetime | None = None) -> int:
    """Return how many requests ``user_id`` made in the trailing hour."""

    cutoff = (now or _now()) - USAGE_WINDOW
    stmt = (
        select(func.count())
        .select_from(AiUsage)
        .where(AiUsage.user_id == user_id, AiUsage.created_at >= cutoff)
    )
    return int(db.scalar(stmt) or 0)


def enforce_rate_limit(db: Session, user_id: str, *, limit: int, now: datetime | None = None) -> None:
    """Raise :class:`RateLimited` once ``user_id`` reached ``limit`` requests this hour.

    The count and the later insert are not atomic, so concurrent requests
    from one user may both pass. A failing count query lets the request
    through.
    """

    try:
        count = count_recent_usage(db, user_id, now=now)
    except SQLAlchemyError:
        db.rollback()
        logger.exception("Error checking rate limit | user=%s", user_id)
        return

    if count >= limit:
        logger.info("Rate limit exceeded | user=%s count=%s limit=%s", user_id, count, limit)
        raise RateLimited(rate_limit_message(limit))


def record_usage(db: Session, user_id: str, *, now: datetime | None = None) -> AiUsage | None:
    """Insert one usage row; failures are logged and never abort the request."""

    record = AiUsage(user_id=user_id, created_at=now or _now())
    try:
        db.add(record)
        db.commit()
    except SQLAlchemyError:
        db.rollback()
        logger.exception("Error logging AI usage | user=%s", user_id)
        return None
    return record


def prune_usage_records(db: Session, *, retention: timedelta = DEFAULT_RETENTION, now: datetime | None = None) -> int:
    """Delete usage rows older than ``retention`` and return how many were removed."""

    if retention < USAGE_WINDOW:
        raise ValueError("retention must cover the rate limit window")

    cutoff = (now or _now()) - retention
    try:
        result = db.execute(delete(AiUsage).where(AiUsage.created_at < cutoff))
        db.commit()
    except SQLAlchemyError as exc:
        db.rollback()
        logger.exception("Usage cleanup failed; transaction rolled back")
        raise UsageCleanupError("usage cleanup failed") from exc

    deleted = result.rowcount or 0
    logger.info("Usage cleanup finished (deleted=%d, cutoff=%s)", deleted, cutoff.isoformat())
    return deleted


def run_usage_cleanup(session_factory: Callable[[], Session], *, retention: timedelta = DEFAULT_RETENTION) -> int:
    """Run :func:`prune_usage_records` with a session scoped to this call."""

    session = session_factory()
    try:
        return prune_usage_records(session, retention=retention)
    finally:
        session.close()


__all__ = [
    "DEFAULT_RETENTION",
    "USAGE_WINDOW",
    "UsageCleanupError",
    "count_recent_usage",
    "enforce_rate_limit",
    "prune_usage_records",
    "rate_limit_message",
    "record_usage",
    "run_usage_cleanup",
]
