"""
bibleman.constants — Shared Constants
======================================

Single source of truth for the daily-post contract and the ledger layout.
Import from here instead of duplicating in cogs, services, and stores.
"""

from __future__ import annotations

# ---------------------------------------------------------------------------
# Daily post contract
# ---------------------------------------------------------------------------
CHECKMARK = "✅"  # ✅
COMPLETION_MARKER = f"React with {CHECKMARK} when completed"

MIN_PLAN_DAY = 1
MAX_PLAN_DAY = 366

# Bulk scans only look at this many recent messages per channel
HISTORY_SCAN_LIMIT = 100

# ---------------------------------------------------------------------------
# Reconciliation pacing
# ---------------------------------------------------------------------------
# Delays (seconds) before each existence check on Add
EXISTENCE_CHECK_DELAYS: tuple[float, ...] = (0.0, 0.5, 1.5)

# Pause between appends during bulk sync (external write quota)
SYNC_WRITE_DELAY = 0.2

# Leaderboard fallback when the reading plan cannot be consulted
FALLBACK_PLAN_DAYS = 7

# ---------------------------------------------------------------------------
# Ledger layout
# ---------------------------------------------------------------------------
DEFAULT_TIMEZONE = "America/Chicago"
PROGRESS_TAB = "Progress"
PROGRESS_RANGE = "A:H"

# Current layout: Day | User | Name | Guild | Date | Reaction Time | CST Time | Channel
PROGRESS_HEADERS: list[str] = [
    "Day", "User", "Name", "Guild", "Date", "Reaction Time", "CST Time", "Channel",
]

DATE_FORMAT = "%Y-%m-%d"
TIMESTAMP_FORMAT = "%Y-%m-%d %H:%M:%S"
LABELED_TIMESTAMP_FORMAT = "%Y-%m-%d %H:%M:%S %Z"

# ---------------------------------------------------------------------------
# Leaderboard presentation
# ---------------------------------------------------------------------------
RANK_BADGES: list[str] = ["\U0001f947", "\U0001f948", "\U0001f949"]  # 🥇🥈🥉
LEADERBOARD_SIZE = 25
