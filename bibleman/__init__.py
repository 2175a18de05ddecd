"""
BibleMan — Daily Bible Reading Tracker for Discord
===================================================
Records completion of the daily reading post from ✅ reactions into a
progress ledger, and reports a leaderboard.  The ledger is append-mostly and
keyed by (day, user, community); reconciling a noisy stream of reaction
events into it is the core of the bot.

Package layout::

    bibleman/
    ├── config.py          # YAML → typed Python config
    ├── constants.py       # Markers, limits, ledger column orders
    ├── errors.py          # Exception taxonomy
    ├── sync.py            # ``python -m bibleman.sync`` bulk-sync CLI
    ├── database/
    │   ├── engine.py      # SQLAlchemy engine + async helper
    │   └── models.py      # ``progress`` table (sheet-shaped)
    ├── ledger/
    │   ├── base.py        # LedgerRow, store contract, row codec
    │   ├── memory.py      # In-memory reference store
    │   ├── sql.py         # SQLAlchemy-backed store
    │   ├── sheets.py      # Google Sheets (gspread) store
    │   └── factory.py     # Backend selection from config
    ├── engine/
    │   ├── events.py      # ReactionEvent dataclass
    │   ├── day_key.py     # "Day N" extraction
    │   ├── reconcile.py   # Reaction → ledger reconciliation
    │   └── leaderboard.py # Completion stats
    ├── services/
    │   ├── plan_service.py  # Reading-plan oracle
    │   └── sync_service.py  # Bulk sync + audit
    └── bot/
        ├── core.py        # Bot subclass, cog loader
        ├── sources.py     # Gateway / history → ReactionEvent
        └── cogs/
            ├── reactions.py  # Live ✅ add/remove handling
            └── meta.py       # /leaderboard, /sync
"""

__version__ = "0.1.0"
