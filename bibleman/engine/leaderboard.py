"""
bibleman.engine.leaderboard — Completion Leaderboard
=====================================================

Derives per-member progress from ledger rows.  Nothing here is persisted.

``completed_days`` counts **distinct** day numbers, so a duplicate row left
over in old sheet data can't inflate anyone's score.  ``days_behind`` is
measured against days elapsed in the plan, not against the latest day a
member checked off: reading days 1, 2, 4 and 5 on day 5 is one behind.
"""

from __future__ import annotations

import logging
from collections import defaultdict
from collections.abc import Iterable
from dataclasses import dataclass
from datetime import date

from bibleman.constants import DEFAULT_TIMEZONE, FALLBACK_PLAN_DAYS
from bibleman.ledger.base import LedgerRow
from bibleman.services.plan_service import ReadingPlan, local_today, plan_day_for

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class LeaderboardEntry:
    user_id: str
    display_name: str
    community: str
    completed_days: int
    total_plan_days: int
    current_plan_day: int
    completion_rate: float
    days_behind: int

    @property
    def on_track(self) -> bool:
        return self.days_behind == 0


def _elapsed_days(plan: ReadingPlan | None, today: date) -> int:
    if plan is None:
        return FALLBACK_PLAN_DAYS
    try:
        return plan_day_for(plan, today)
    except Exception:
        logger.warning(
            "Reading plan unavailable — assuming %d elapsed days",
            FALLBACK_PLAN_DAYS, exc_info=True,
        )
        return FALLBACK_PLAN_DAYS


def compute_leaderboard(
    rows: Iterable[LedgerRow],
    plan: ReadingPlan | None,
    *,
    today: date | None = None,
    community: str | None = None,
) -> list[LeaderboardEntry]:
    """Build leaderboard entries, highest completion rate first.

    Parameters
    ----------
    rows:
        Ledger rows, any layout.
    plan:
        Reading-plan oracle; ``None`` or a failing oracle falls back to
        a 7-day window.
    today:
        Defaults to today in the default timezone.
    community:
        Restrict to one community.  ``None`` keeps every community, with
        one entry per (user, community).
    """
    today = today or local_today(DEFAULT_TIMEZONE)
    elapsed = _elapsed_days(plan, today)

    days: dict[tuple[str, str], set[int]] = defaultdict(set)
    names: dict[tuple[str, str], tuple[str, str]] = {}

    for row in rows:
        if community is not None and row.community != community:
            continue
        group = (row.user_id, row.community)
        days[group].add(row.day)
        stamp = row.observation_timestamp or row.observation_date
        if row.display_name and (group not in names or stamp >= names[group][0]):
            names[group] = (stamp, row.display_name)

    entries = []
    for (user_id, row_community), user_days in days.items():
        completed = len(user_days)
        entries.append(LeaderboardEntry(
            user_id=user_id,
            display_name=names.get((user_id, row_community), ("", user_id))[1],
            community=row_community,
            completed_days=completed,
            total_plan_days=elapsed,
            current_plan_day=elapsed,
            completion_rate=round(completed / elapsed * 100, 1),
            days_behind=max(0, elapsed - completed),
        ))

    entries.sort(key=lambda e: (-e.completion_rate, -e.completed_days, e.display_name.lower()))
    return entries
