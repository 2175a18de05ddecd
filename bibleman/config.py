"""
bibleman.config — YAML Configuration Loader
============================================

Reads ``config.yaml`` for **infrastructure-only** settings (which channels
carry the daily post, where the ledger lives, the reading-plan calendar).
Secrets (``DISCORD_TOKEN``, ``DATABASE_URL``, ``GOOGLE_CREDENTIALS_FILE``)
come from the environment / ``.env`` instead.

Usage::

    from bibleman.config import load_config

    cfg = load_config()          # reads ./config.yaml by default
    print(cfg.channel_ids)       # (1468816181854081229,)
    print(cfg.ledger_backend)    # "sheets"
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from pathlib import Path

import yaml

from bibleman.constants import (
    COMPLETION_MARKER,
    CHECKMARK,
    DEFAULT_TIMEZONE,
    HISTORY_SCAN_LIMIT,
    PROGRESS_TAB,
    SYNC_WRITE_DELAY,
)

LEDGER_BACKENDS = ("sheets", "sql", "memory")


# ---------------------------------------------------------------------------
# Typed settings object
# ---------------------------------------------------------------------------
@dataclass(frozen=True, slots=True)
class BibleBotConfig:
    """Immutable configuration loaded from ``config.yaml``."""

    # Identity
    community_name: str
    bot_prefix: str

    # Discord
    channel_ids: tuple[int, ...]

    # Reading plan
    plan_start_date: date
    plan_length: int = 365
    timezone: str = DEFAULT_TIMEZONE

    # Ledger
    ledger_backend: str = "sheets"
    spreadsheet_id: str | None = None
    progress_tab: str = PROGRESS_TAB

    # Daily post contract
    completion_emoji: str = CHECKMARK
    completion_marker: str = COMPLETION_MARKER

    # Bulk sync
    history_limit: int = HISTORY_SCAN_LIMIT
    sync_write_delay: float = SYNC_WRITE_DELAY
    sync_on_startup: bool = True

    # Optional
    admin_role_id: int | None = None  # Role allowed to run /sync


def _parse_channel_ids(value) -> tuple[int, ...]:
    """Accept a YAML list or a comma-separated string of channel ids."""
    if value is None:
        return ()
    if isinstance(value, (int, str)):
        value = str(value).split(",")
    return tuple(int(str(v).strip()) for v in value if str(v).strip())


def _parse_date(value) -> date:
    # PyYAML already turns unquoted ISO dates into ``date`` objects
    if isinstance(value, date):
        return value
    return date.fromisoformat(str(value))


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------
def load_config(path: str | Path = "config.yaml") -> BibleBotConfig:
    """Read *path* and return a :class:`BibleBotConfig` instance.

    Raises
    ------
    FileNotFoundError
        If the YAML file doesn't exist.
    KeyError
        If a required key is missing from the YAML file.
    ValueError
        If ``ledger_backend`` is not one of ``sheets``, ``sql``, ``memory``.
    """
    config_path = Path(path)
    if not config_path.exists():
        raise FileNotFoundError(
            f"Configuration file not found: {config_path.resolve()}\n"
            "Hint: copy config.yaml.example → config.yaml and edit it."
        )

    with open(config_path, encoding="utf-8") as fh:
        raw: dict = yaml.safe_load(fh) or {}

    backend = str(raw.get("ledger_backend", "sheets")).lower()
    if backend not in LEDGER_BACKENDS:
        raise ValueError(
            f"Unknown ledger_backend {backend!r}; expected one of {LEDGER_BACKENDS}"
        )

    return BibleBotConfig(
        community_name=raw["community_name"],
        bot_prefix=raw.get("bot_prefix", "!"),
        channel_ids=_parse_channel_ids(raw["channel_ids"]),
        plan_start_date=_parse_date(raw["plan_start_date"]),
        plan_length=int(raw.get("plan_length", 365)),
        timezone=raw.get("timezone", DEFAULT_TIMEZONE),
        ledger_backend=backend,
        spreadsheet_id=raw.get("spreadsheet_id") or None,
        progress_tab=raw.get("progress_tab", PROGRESS_TAB),
        completion_emoji=raw.get("completion_emoji", CHECKMARK),
        completion_marker=raw.get("completion_marker", COMPLETION_MARKER),
        history_limit=int(raw.get("history_limit", HISTORY_SCAN_LIMIT)),
        sync_write_delay=float(raw.get("sync_write_delay", SYNC_WRITE_DELAY)),
        sync_on_startup=bool(raw.get("sync_on_startup", True)),
        admin_role_id=(
            int(raw["admin_role_id"]) if raw.get("admin_role_id") else None
        ),
    )
