"""
tests/conftest.py — Shared Test Fixtures
=========================================
"""

from __future__ import annotations

import asyncio
from datetime import UTC, datetime

import pytest
from sqlalchemy import Engine, create_engine
from sqlalchemy.pool import StaticPool

from bibleman.database.models import Base
from bibleman.engine.events import Direction, ReactionEvent
from bibleman.engine.reconcile import ReconciliationEngine
from bibleman.ledger.memory import MemoryLedgerStore

GUILD = "Bible In A Year"


def run_async(coro):
    """Run an async coroutine in a fresh event loop (no pytest-asyncio)."""
    return asyncio.run(coro)


def make_event(
    user_id: str = "U1",
    direction: Direction = Direction.ADD,
    community: str = GUILD,
    display_name: str = "Alice",
    channel_name: str = "daily-reading",
    observed_at: datetime | None = None,
) -> ReactionEvent:
    return ReactionEvent(
        community_id=community,
        user_id=user_id,
        display_name=display_name,
        direction=direction,
        channel_id=500,
        message_id=900,
        channel_name=channel_name,
        observed_at=observed_at or datetime(2026, 1, 15, 12, 30, 0, tzinfo=UTC),
    )


@pytest.fixture
def db_engine() -> Engine:
    """In-memory SQLite engine with all tables.

    StaticPool so every thread (``asyncio.to_thread`` in ``run_db``) shares
    the same in-memory database.
    """
    engine = create_engine(
        "sqlite://",
        echo=False,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(engine)
    return engine


@pytest.fixture
def bare_engine() -> Engine:
    """In-memory SQLite engine with **no** tables."""
    return create_engine(
        "sqlite://",
        echo=False,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )


@pytest.fixture
def memory_store() -> MemoryLedgerStore:
    return MemoryLedgerStore()


@pytest.fixture
def reconciler(memory_store) -> ReconciliationEngine:
    """Engine over the memory store with no backoff or write pacing."""
    return ReconciliationEngine(
        memory_store, tz="America/Chicago", check_delays=(0.0, 0.0, 0.0), write_delay=0.0,
    )
