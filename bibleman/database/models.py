"""
bibleman.database.models — SQLAlchemy 2.0 Data Models
======================================================

The SQL backend mirrors the spreadsheet tab instead of normalizing it:
one ``progress`` row per sheet row, eight positional text cells.  That
keeps legacy rows imported from the sheet readable through the same
codec (:mod:`bibleman.ledger.base`) as everything else.

Tables:
- progress — append-mostly completion ledger (columns A..H of the sheet)
"""

from __future__ import annotations

from sqlalchemy import Index, Integer, Text
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column


# ---------------------------------------------------------------------------
# Base
# ---------------------------------------------------------------------------
class Base(DeclarativeBase):
    """Shared base for all ORM models."""


CELL_COLUMNS = ("col_a", "col_b", "col_c", "col_d", "col_e", "col_f", "col_g", "col_h")


# ---------------------------------------------------------------------------
# Progress — one row per completed reading day
# ---------------------------------------------------------------------------
class ProgressEntry(Base):
    __tablename__ = "progress"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    col_a: Mapped[str] = mapped_column(Text, nullable=False)  # Day (current) / Date (legacy)
    col_b: Mapped[str] = mapped_column(Text, nullable=False)  # User id
    col_c: Mapped[str] = mapped_column(Text, default="")      # Display name
    col_d: Mapped[str] = mapped_column(Text, default="")      # Guild / Reaction time
    col_e: Mapped[str] = mapped_column(Text, default="")      # Date / CST time
    col_f: Mapped[str] = mapped_column(Text, default="")      # Reaction time / Guild
    col_g: Mapped[str] = mapped_column(Text, default="")      # CST time / Channel
    col_h: Mapped[str] = mapped_column(Text, default="")      # Channel / Day

    __table_args__ = (
        Index("ix_progress_current_key", "col_a", "col_b", "col_d"),
        Index("ix_progress_legacy_key", "col_h", "col_b", "col_f"),
    )

    def cells(self) -> list[str]:
        return [getattr(self, name) or "" for name in CELL_COLUMNS]

    def __repr__(self) -> str:
        return f"<ProgressEntry id={self.id} a={self.col_a!r} user={self.col_b!r}>"
