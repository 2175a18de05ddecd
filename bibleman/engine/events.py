"""
bibleman.engine.events — ReactionEvent and Direction
=====================================================

The universal event envelope for completion signals.  Live gateway events
and reactions rediscovered by a history scan are both normalized into a
:class:`ReactionEvent` before the reconciliation engine sees them.
"""

from __future__ import annotations

import enum
from dataclasses import dataclass, field
from datetime import UTC, datetime

__all__ = ["Direction", "ReactionEvent"]


class Direction(enum.StrEnum):
    """Whether the user added or removed their ✅."""
    ADD = "add"
    REMOVE = "remove"


# ---------------------------------------------------------------------------
# ReactionEvent — the universal event envelope
# ---------------------------------------------------------------------------
@dataclass(frozen=True, slots=True)
class ReactionEvent:
    """A single observed "I finished today's reading" signal.

    ``community_id`` is the community identity written to the ledger's
    guild column.  ``channel_id`` / ``message_id`` are provenance only and
    never part of the ledger key.  ``observed_at`` is wall-clock time of
    observation and does not order events.
    """

    community_id: str
    user_id: str
    display_name: str
    direction: Direction
    channel_id: int = 0
    message_id: int = 0
    channel_name: str = ""
    observed_at: datetime = field(default_factory=lambda: datetime.now(UTC))
