"""
bibleman.services.plan_service — Reading-Plan Oracle
=====================================================

The leaderboard needs to know how far into the plan we are.  A plan is
just a start date (Day 1) and a length; anything that can answer those two
questions satisfies :class:`ReadingPlan`.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime
from typing import Protocol
from zoneinfo import ZoneInfo

from bibleman.config import BibleBotConfig


class ReadingPlan(Protocol):
    """Source of the plan calendar (config, sheet, ...)."""

    def get_plan_start_date(self) -> date: ...

    def get_plan_length(self) -> int: ...


@dataclass(frozen=True, slots=True)
class StaticReadingPlan:
    """Plan calendar fixed in ``config.yaml``."""

    start_date: date
    length: int = 365

    @classmethod
    def from_config(cls, cfg: BibleBotConfig) -> StaticReadingPlan:
        return cls(start_date=cfg.plan_start_date, length=cfg.plan_length)

    def get_plan_start_date(self) -> date:
        return self.start_date

    def get_plan_length(self) -> int:
        return self.length


def local_today(tz: str) -> date:
    """Calendar date right now in *tz*; plan days roll over at local midnight."""
    return datetime.now(ZoneInfo(tz)).date()


def plan_day_for(plan: ReadingPlan, today: date) -> int:
    """Plan day for *today*: the start date is Day 1.

    Clamped to ``[1, plan length]`` so a plan that hasn't started yet or
    has already finished still yields a usable denominator.
    """
    elapsed = (today - plan.get_plan_start_date()).days + 1
    return max(1, min(elapsed, plan.get_plan_length()))
