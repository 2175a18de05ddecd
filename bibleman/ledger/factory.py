"""
bibleman.ledger.factory — Pick a Ledger Backend from Config
============================================================

``ledger_backend`` in ``config.yaml`` selects the store:

* ``sheets`` — Google Sheets tab (``spreadsheet_id`` + ``GOOGLE_CREDENTIALS_FILE``)
* ``sql``    — SQLAlchemy table (``DATABASE_URL``)
* ``memory`` — process-local list, for dry runs
"""

from __future__ import annotations

import logging
import os

from bibleman.config import BibleBotConfig
from bibleman.ledger.base import LedgerStore

logger = logging.getLogger(__name__)


def create_ledger_store(cfg: BibleBotConfig) -> LedgerStore:
    """Build the configured :class:`LedgerStore`.

    Raises
    ------
    RuntimeError
        If the selected backend is missing a required setting or secret.
    """
    backend = cfg.ledger_backend

    if backend == "sheets":
        from bibleman.ledger.sheets import SheetsLedgerStore

        creds = os.getenv("GOOGLE_CREDENTIALS_FILE", "data/credentials.json")
        if not cfg.spreadsheet_id:
            raise RuntimeError("ledger_backend 'sheets' needs spreadsheet_id in config.yaml")
        if not os.path.exists(creds):
            raise RuntimeError(
                f"Google service-account key not found at {creds}.  "
                "Set GOOGLE_CREDENTIALS_FILE in .env."
            )
        store: LedgerStore = SheetsLedgerStore.from_service_account(
            creds, cfg.spreadsheet_id, cfg.progress_tab,
        )

    elif backend == "sql":
        from bibleman.database.engine import create_db_engine
        from bibleman.ledger.sql import SqlLedgerStore

        store = SqlLedgerStore(create_db_engine())

    else:
        from bibleman.ledger.memory import MemoryLedgerStore

        logger.warning("Using in-memory ledger — nothing will be persisted")
        store = MemoryLedgerStore()

    logger.info("Ledger backend: %s", backend)
    return store
