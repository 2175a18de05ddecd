"""
bibleman.database.engine — Database Connection & Async Helper
==============================================================

**Why this file exists:**
Discord bots run on an ``asyncio`` event loop.  SQLAlchemy, gspread and
every other ledger backend here are **synchronous** — calling them directly
from a reaction handler would freeze the whole bot until the write lands.

The bridge:

    1. A reaction fires in Discord  (async world).
    2. The engine calls ``await run_db(store.find_row, day, user, guild)``.
    3. ``run_db`` ships the synchronous call to a **thread pool** via
       ``asyncio.to_thread()``.
    4. The I/O happens on a background thread — the event loop stays free.

Usage::

    from bibleman.database.engine import create_db_engine, init_db, run_db

    engine = create_db_engine()          # reads DATABASE_URL from .env
    init_db(engine)                      # CREATE TABLE IF NOT EXISTS …
"""

from __future__ import annotations

import asyncio
import logging
import os
from collections.abc import Callable
from contextlib import contextmanager
from typing import ParamSpec, TypeVar

from sqlalchemy import Engine, create_engine
from sqlalchemy.orm import Session

from bibleman.database.models import Base

logger = logging.getLogger(__name__)

P = ParamSpec("P")
T = TypeVar("T")


# ---------------------------------------------------------------------------
# Engine creation
# ---------------------------------------------------------------------------
def create_db_engine(url: str | None = None) -> Engine:
    """Build a SQLAlchemy :class:`Engine` from *url* or ``DATABASE_URL``.

    The pool is sized for a single bot process plus the occasional
    bulk-sync run: five persistent connections, 10 s checkout timeout,
    hourly recycling.

    Raises
    ------
    RuntimeError
        If no URL is given and ``DATABASE_URL`` is not set.
    """
    url = url or os.getenv("DATABASE_URL")
    if not url:
        raise RuntimeError(
            "DATABASE_URL is not set.  "
            "Copy .env.example → .env and set a valid database URL."
        )

    kwargs: dict = {"echo": False, "pool_pre_ping": True}
    if not url.startswith("sqlite"):
        kwargs.update(pool_size=5, max_overflow=10, pool_timeout=10, pool_recycle=3600)

    engine = create_engine(url, **kwargs)
    logger.info("Database engine created → %s", engine.url.host or engine.url.database)
    return engine


# ---------------------------------------------------------------------------
# Schema initialization
# ---------------------------------------------------------------------------
def init_db(engine: Engine) -> None:
    """Create all tables defined in :mod:`bibleman.database.models`.

    Safe to call on every startup — ``CREATE TABLE IF NOT EXISTS`` under
    the hood.
    """
    Base.metadata.create_all(engine)
    logger.info("Database tables verified / created.")


# ---------------------------------------------------------------------------
# Session helper
# ---------------------------------------------------------------------------
@contextmanager
def get_session(engine: Engine):
    """Yield a :class:`Session` that auto-commits on success and rolls back
    on exception.
    """
    session = Session(engine)
    try:
        yield session
        session.commit()
    except Exception:
        session.rollback()
        raise
    finally:
        session.close()


# ---------------------------------------------------------------------------
# Async bridge
# ---------------------------------------------------------------------------
async def run_db(func: Callable[P, T], *args: P.args, **kwargs: P.kwargs) -> T:
    """Run a **synchronous** store call on a background thread.

    Every ledger call made from the event loop goes through this wrapper::

        row = await run_db(store.find_row, 3, "1234", "My Guild")

    Under the hood it calls :func:`asyncio.to_thread`, which schedules
    *func* on the default ``ThreadPoolExecutor``.
    """
    return await asyncio.to_thread(func, *args, **kwargs)
