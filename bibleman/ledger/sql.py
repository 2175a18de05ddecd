"""
bibleman.ledger.sql — SQLAlchemy-backed Ledger
===============================================

Stores the ledger in the ``progress`` table (see
:mod:`bibleman.database.models`), one row per sheet row.  Key lookups are
pushed down to SQL for both layouts and then confirmed through the codec.

Driver errors are translated into the ledger taxonomy: a missing
``progress`` table becomes :class:`SchemaMissing`, anything else
:class:`StoreUnavailable`.
"""

from __future__ import annotations

import logging
from contextlib import contextmanager

from sqlalchemy import Engine, and_, inspect, or_, select
from sqlalchemy.exc import OperationalError, ProgrammingError, SQLAlchemyError

from bibleman.database.engine import get_session, init_db
from bibleman.database.models import CELL_COLUMNS, ProgressEntry
from bibleman.errors import SchemaMissing, StoreUnavailable
from bibleman.ledger.base import LedgerRow, LedgerStore, parse_cells, to_cells

logger = logging.getLogger(__name__)


class SqlLedgerStore(LedgerStore):
    """Ledger persisted through SQLAlchemy (PostgreSQL in prod, SQLite in tests)."""

    def __init__(self, engine: Engine) -> None:
        self.engine = engine

    # -------------------------------------------------------------------
    # Error translation
    # -------------------------------------------------------------------
    def _table_missing(self) -> bool:
        try:
            return not inspect(self.engine).has_table(ProgressEntry.__tablename__)
        except SQLAlchemyError:
            return False

    @contextmanager
    def _guard(self, action: str):
        try:
            yield
        except (OperationalError, ProgrammingError) as exc:
            if self._table_missing():
                raise SchemaMissing(f"progress table missing during {action}") from exc
            raise StoreUnavailable(f"{action} failed: {exc}") from exc
        except SQLAlchemyError as exc:
            raise StoreUnavailable(f"{action} failed: {exc}") from exc

    # -------------------------------------------------------------------
    # Queries
    # -------------------------------------------------------------------
    @staticmethod
    def _key_query(day: int, user_id: str, community: str):
        day_s = str(day)
        return (
            select(ProgressEntry)
            .where(
                ProgressEntry.col_b == str(user_id),
                or_(
                    and_(ProgressEntry.col_a == day_s, ProgressEntry.col_d == community),
                    and_(ProgressEntry.col_h == day_s, ProgressEntry.col_f == community),
                ),
            )
            .order_by(ProgressEntry.id)
        )

    # -------------------------------------------------------------------
    # LedgerStore
    # -------------------------------------------------------------------
    def ensure_schema(self) -> None:
        with self._guard("ensure_schema"):
            init_db(self.engine)

    def append_row(self, row: LedgerRow) -> None:
        values = dict(zip(CELL_COLUMNS, (str(c) for c in to_cells(row))))
        with self._guard("append_row"), get_session(self.engine) as session:
            session.add(ProgressEntry(**values))

    def find_row(self, day: int, user_id: str, community: str) -> LedgerRow | None:
        with self._guard("find_row"), get_session(self.engine) as session:
            for entry in session.scalars(self._key_query(day, user_id, community)):
                row = parse_cells(entry.cells())
                if row is not None and row.matches(day, user_id, community):
                    return row
        return None

    def delete_row(self, day: int, user_id: str, community: str) -> bool:
        with self._guard("delete_row"), get_session(self.engine) as session:
            for entry in session.scalars(self._key_query(day, user_id, community)):
                row = parse_cells(entry.cells())
                if row is not None and row.matches(day, user_id, community):
                    session.delete(entry)
                    return True
        return False

    def load_all(self) -> list[LedgerRow]:
        with self._guard("load_all"), get_session(self.engine) as session:
            entries = session.scalars(select(ProgressEntry).order_by(ProgressEntry.id)).all()
            cells = [entry.cells() for entry in entries]
        return [row for row in map(parse_cells, cells) if row is not None]
