"""
bibleman.engine.day_key — Reading-Day Extraction
=================================================

Daily posts carry a ``**Day N**`` marker in their embed description.  The
day number is the only thing that ties a reaction to a ledger row, so a
post without one is never tracked.  There is no fallback to the calendar
date: a reaction we can't place on a plan day is dropped.
"""

from __future__ import annotations

import re

from bibleman.constants import MAX_PLAN_DAY, MIN_PLAN_DAY
from bibleman.errors import ExtractionFailure

# Matches "**Day 12**", "Day 12:" and "day 12"
_DAY_RE = re.compile(r"\bDay\s+(\d{1,4})\b", re.IGNORECASE)


def extract_day_key(text: str | None) -> int | None:
    """Return the plan day named in *text*, or ``None``.

    ``None`` when there is no ``Day N`` marker or N falls outside
    ``[MIN_PLAN_DAY, MAX_PLAN_DAY]``.  Only the first marker counts.
    """
    if not text:
        return None
    match = _DAY_RE.search(text)
    if match is None:
        return None
    day = int(match.group(1))
    if not MIN_PLAN_DAY <= day <= MAX_PLAN_DAY:
        return None
    return day


def require_day_key(text: str | None) -> int:
    """Like :func:`extract_day_key` but raise :class:`ExtractionFailure`."""
    day = extract_day_key(text)
    if day is None:
        snippet = (text or "")[:60].replace("\n", " ")
        raise ExtractionFailure(f"No valid 'Day N' marker in {snippet!r}")
    return day
