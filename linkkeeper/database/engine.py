"""
linkkeeper.database.engine — Engine, Sessions & the Thread Bridge
==================================================================

LinkKeeper talks to its database through a plain synchronous SQLAlchemy
engine.  The bot and the API are both asyncio programs, so every service
call is shipped to a worker thread with :func:`run_db`::

    status = await run_db(bot.distribution.get_status, Tier.GOLD)

Services open one :func:`get_session` block per operation; whatever they
write inside it commits together or rolls back together.  Worker threads
are also why the engine's per-tier locks are ``threading`` locks.

``DATABASE_URL`` picks the backend.  PostgreSQL is the deployment target;
a ``sqlite:///`` URL is accepted for local runs and skips the pool tuning.
"""

from __future__ import annotations

import asyncio
import logging
import os
from collections.abc import Callable, Iterator
from contextlib import contextmanager
from typing import ParamSpec, TypeVar

from sqlalchemy import Engine, create_engine
from sqlalchemy.orm import Session

from linkkeeper.database.models import Base

logger = logging.getLogger(__name__)

P = ParamSpec("P")
T = TypeVar("T")


# ---------------------------------------------------------------------------
# Engine creation
# ---------------------------------------------------------------------------
def create_db_engine(url: str | None = None) -> Engine:
    """Engine for *url*, falling back to ``DATABASE_URL``.

    Raises ``RuntimeError`` when neither is set.
    """
    url = url or os.getenv("DATABASE_URL")
    if not url:
        raise RuntimeError(
            "DATABASE_URL is not set.  "
            "Copy .env.example → .env and point it at the LinkKeeper database."
        )

    if url.startswith("sqlite"):
        engine = create_engine(url, connect_args={"check_same_thread": False})
    else:
        # Two processes (bot + API) share the database; keep each pool small.
        engine = create_engine(
            url,
            pool_size=5,
            max_overflow=10,
            pool_pre_ping=True,
            pool_timeout=10,
            pool_recycle=3600,
        )
    logger.info("Database engine ready (%s)", engine.url.get_backend_name())
    return engine


def init_db(engine: Engine) -> None:
    """``create_all`` for the LinkKeeper tables.

    Alembic owns the production schema; this only fills in missing tables
    for fresh dev databases.
    """
    Base.metadata.create_all(engine)
    logger.info("LinkKeeper tables present")


# ---------------------------------------------------------------------------
# Sessions
# ---------------------------------------------------------------------------
@contextmanager
def get_session(engine: Engine) -> Iterator[Session]:
    """One unit of work: commit on clean exit, roll back on any exception.

    ``expire_on_commit=False`` keeps returned rows readable once detached,
    which is how services hand members and history back to their callers.
    """
    session = Session(engine, expire_on_commit=False)
    try:
        yield session
        session.commit()
    except Exception:
        session.rollback()
        raise
    finally:
        session.close()


async def run_db(func: Callable[P, T], *args: P.args, **kwargs: P.kwargs) -> T:
    """Await a blocking service call on the default thread pool."""
    return await asyncio.to_thread(func, *args, **kwargs)
