"""
LinkKeeper — Guild Membership & Mastery-Link Distribution
==========================================================
Tracks guild members, their tenure and boss-event participation, and hands
out a limited pool of mastery links fairly across repeating cycles, while
keeping count of the links the guild has in stock.  Exposed
through a Discord bot and an HTTP API over one relational store.

Package layout::

    linkkeeper/
    ├── config.py          # YAML → typed Python config
    ├── errors.py          # Error taxonomy shared by bot and API
    ├── database/
    │   ├── engine.py      # SQLAlchemy engine + async helper
    │   └── models.py      # ORM models (members, history, lists, audit, stock)
    ├── engine/
    │   ├── eligibility.py       # Pure tier-eligibility / activity rules
    │   ├── distribution_list.py # Per-tier cycle state machine
    │   ├── selection.py         # Injectable random source
    │   └── locks.py             # Per-key lock registry
    ├── services/
    │   ├── stores.py               # Member / History / List / Inventory stores
    │   ├── distribution_service.py # Refresh, winner selection, resets
    │   ├── member_service.py       # Member lifecycle + participation
    │   ├── inventory_service.py    # Link stock counts + change journal
    │   └── embeds.py               # Discord embed builders
    ├── bot/
    │   ├── core.py        # Bot subclass, cog loader
    │   ├── checks.py      # Officer role check + error replies
    │   └── cogs/          # members, distribution, inventory, tasks
    └── api/
        ├── main.py        # FastAPI app
        ├── deps.py        # Dependency injection + JWT guard
        └── routes/        # Public + admin REST endpoints
"""

__version__ = "0.1.0"
