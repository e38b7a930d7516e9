"""Tests for sliding-window usage counting and usage-log retention."""
from __future__ import annotations

import os
from datetime import datetime, timedelta, timezone
from typing import Iterator

import pytest
from sqlalchemy import delete, select
from sqlalchemy.exc import OperationalError

os.environ.setdefault("DATABASE_URL", "sqlite+pysqlite:///./test_pawsquare.db")
os.environ.setdefault("DISABLE_CLEANUP", "true")

from pawsquare.database import Base, SessionLocal, engine  # noqa: E402
from pawsquare.models import AiUsage  # noqa: E402
from pawsquare.services import RateLimited  # noqa: E402
from pawsquare.services.usage_service import (  # noqa: E402
    count_recent_usage,
    enforce_rate_limit,
    prune_usage_records,
    record_usage,
    run_usage_cleanup,
)

NOW = datetime(2026, 10, 18, 12, 0, tzinfo=timezone.utc)


@pytest.fixture(scope="module", autouse=True)
def _create_schema() -> Iterator[None]:
    Base.metadata.create_all(bind=engine)
    yield
    Base.metadata.drop_all(bind=engine)


@pytest.fixture
def db() -> Iterator:
    with SessionLocal() as session:
        session.execute(delete(AiUsage))
        session.commit()
        yield session


def _add(db, user_id: str, *ages: timedelta) -> None:
    db.add_all(AiUsage(user_id=user_id, created_at=NOW - age) for age in ages)
    db.commit()


def test_count_includes_rows_exactly_one_hour_old(db):
    _add(db, "alice", timedelta(hours=1), timedelta(minutes=59), timedelta(hours=1, seconds=1))
    assert count_recent_usage(db, "alice", now=NOW) == 2


def test_count_is_scoped_to_the_user(db):
    _add(db, "alice", timedelta(minutes=1))
    _add(db, "bob", timedelta(minutes=1), timedelta(minutes=2))
    assert count_recent_usage(db, "alice", now=NOW) == 1
    assert count_recent_usage(db, "bob", now=NOW) == 2


def test_enforce_rate_limit_allows_below_limit(db):
    _add(db, "alice", *[timedelta(minutes=index) for index in range(19)])
    enforce_rate_limit(db, "alice", limit=20, now=NOW)


def test_enforce_rate_limit_blocks_at_limit(db):
    _add(db, "alice", *[timedelta(minutes=index) for index in range(20)])
    with pytest.raises(RateLimited) as excinfo:
        enforce_rate_limit(db, "alice", limit=20, now=NOW)
    assert excinfo.value.status_code == 429
    assert "up to 20 messages per hour" in excinfo.value.message


def test_record_usage_inserts_one_row(db):
    record = record_usage(db, "carol", now=NOW)
    assert record is not None
    rows = db.scalars(select(AiUsage).where(AiUsage.user_id == "carol")).all()
    assert len(rows) == 1


def test_prune_removes_only_rows_past_retention(db):
    _add(db, "alice", timedelta(hours=2), timedelta(hours=30), timedelta(days=3))
    deleted = prune_usage_records(db, retention=timedelta(hours=24), now=NOW)
    assert deleted == 2
    remaining = db.scalars(select(AiUsage)).all()
    assert len(remaining) == 1


def test_prune_rejects_retention_shorter_than_window(db):
    with pytest.raises(ValueError):
        prune_usage_records(db, retention=timedelta(minutes=30), now=NOW)


def test_run_usage_cleanup_uses_its_own_session(db):
    db.add(AiUsage(user_id="dave", created_at=datetime.now(timezone.utc) - timedelta(days=10)))
    db.commit()
    assert run_usage_cleanup(SessionLocal, retention=timedelta(hours=24)) == 1


class UnavailableSession:
    """Session stand-in whose queries and commits fail like a locked database."""

    def __init__(self) -> None:
        self.added: list[AiUsage] = []
        self.rollbacks = 0

    def scalar(self, stmt):
        raise OperationalError("SELECT count(*) FROM ai_usage", {}, Exception("database is locked"))

    def add(self, instance) -> None:
        self.added.append(instance)

    def commit(self) -> None:
        raise OperationalError("INSERT INTO ai_usage", {}, Exception("database is locked"))

    def rollback(self) -> None:
        self.rollbacks += 1


def test_enforce_rate_limit_allows_request_when_count_fails(caplog):
    session = UnavailableSession()
    with caplog.at_level("ERROR", logger="pawsquare.services.usage_service"):
        assert enforce_rate_limit(session, "alice", limit=1, now=NOW) is None
    assert session.rollbacks == 1
    assert "Error checking rate limit" in caplog.text


def test_record_usage_swallows_insert_failure(caplog):
    session = UnavailableSession()
    with caplog.at_level("ERROR", logger="pawsquare.services.usage_service"):
        assert record_usage(session, "alice", now=NOW) is None
    assert len(session.added) == 1
    assert session.rollbacks == 1
    assert "Error logging AI usage" in caplog.text
