"""
tests/conftest.py — Shared Test Fixtures
=========================================
"""

from __future__ import annotations

import os

# ---------------------------------------------------------------------------
# Ensure a valid JWT_SECRET is always set for test runs.
# This must happen before any import of linkkeeper.api.deps which validates
# the secret at module-load time.
# ---------------------------------------------------------------------------
_TEST_JWT_SECRET = "test-secret-for-pytest-only-" + "x" * 40  # > 32 chars
os.environ.setdefault("JWT_SECRET", _TEST_JWT_SECRET)

import random  # noqa: E402
from datetime import UTC, datetime, timedelta  # noqa: E402

import pytest  # noqa: E402
from sqlalchemy import Engine, create_engine  # noqa: E402
from sqlalchemy.pool import StaticPool  # noqa: E402

from linkkeeper.database.engine import get_session  # noqa: E402
from linkkeeper.database.models import Base, Tier  # noqa: E402
from linkkeeper.engine.distribution_list import DistributionList  # noqa: E402
from linkkeeper.engine.eligibility import EligibilityRules  # noqa: E402
from linkkeeper.services.distribution_service import DistributionEngine  # noqa: E402
from linkkeeper.services.inventory_service import InventoryService  # noqa: E402
from linkkeeper.services.member_service import MemberService  # noqa: E402
from linkkeeper.services.stores import StoreBundle  # noqa: E402

NOW = datetime(2026, 6, 1, 12, 0, tzinfo=UTC)


class FixedClock:
    """Callable clock that only moves when a test says so."""

    def __init__(self, now: datetime = NOW) -> None:
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> datetime:
        self.now += timedelta(**kwargs)
        return self.now


@pytest.fixture
def db_engine() -> Engine:
    """Create an in-memory SQLite engine with all LinkKeeper tables.

    Uses StaticPool so all threads share the same in-memory database
    (required by ``asyncio.to_thread`` and the TestClient threadpool).
    """
    engine = create_engine(
        "sqlite://",
        echo=False,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(engine)
    return engine


@pytest.fixture
def rules() -> EligibilityRules:
    return EligibilityRules(silver_days=30, gold_days=90, max_absence_count=3)


@pytest.fixture
def clock() -> FixedClock:
    return FixedClock()


@pytest.fixture
def rng() -> random.Random:
    return random.Random(1234)


@pytest.fixture
def distribution(db_engine, rules, clock, rng) -> DistributionEngine:
    engine = DistributionEngine(db_engine, rules, random_source=rng, clock=clock)
    engine.initialize_lists()
    return engine


@pytest.fixture
def members(db_engine, rules, clock, distribution) -> MemberService:
    return MemberService(db_engine, rules, distribution=distribution, clock=clock)


@pytest.fixture
def inventory(db_engine, clock) -> InventoryService:
    return InventoryService(db_engine, clock=clock)


@pytest.fixture
def make_member(members, clock):
    """Factory: register a member with *days* of tenure and participation flags."""

    def _make(
        discord_id: str,
        days: int = 100,
        *,
        weekly: bool = True,
        officer: bool = False,
        absences: int = 0,
    ):
        members.create_member(
            discord_id, f"user-{discord_id}", clock.now - timedelta(days=days), added_by="1",
        )
        if weekly:
            members.mark_weekly_participation(discord_id, True)
        if officer:
            members.promote_to_officer(discord_id, "1")
        for _ in range(absences):
            members.mark_omni_participation(discord_id, False)
        return members.get_member(discord_id)

    return _make


@pytest.fixture
def seed_list(db_engine, distribution):
    """Factory: overwrite id lists of a stored tier list (eligible=[...], inactive=[...])."""

    def _seed(tier: Tier, **state) -> DistributionList:
        with get_session(db_engine) as session:
            stores = StoreBundle.for_session(session)
            dl = stores.lists.get(tier)
            for key, value in state.items():
                setattr(dl, key, list(value))
            stores.lists.update(dl)
            return dl

    return _seed


@pytest.fixture
def load_list(db_engine):
    """Factory: read the stored list for a tier."""

    def _load(tier: Tier) -> DistributionList:
        with get_session(db_engine) as session:
            return StoreBundle.for_session(session).lists.get(tier)

    return _load


@pytest.fixture
def admin_token():
    """Generate a valid admin JWT for use in API integration tests."""
    return make_admin_token()


def make_admin_token(sub: str = "99999", username: str = "FixtureAdmin") -> str:
    """Create an admin JWT.  Usable as both a fixture and a factory function."""
    from linkkeeper.api.deps import create_access_token

    return create_access_token(sub, username, is_admin=True)


@pytest.fixture
def client(distribution, members, inventory):
    """FastAPI TestClient wired to the in-memory services."""
    from fastapi.testclient import TestClient

    from linkkeeper.api.deps import (
        get_distribution_engine,
        get_inventory_service,
        get_member_service,
    )
    from linkkeeper.api.main import app

    app.dependency_overrides[get_distribution_engine] = lambda: distribution
    app.dependency_overrides[get_member_service] = lambda: members
    app.dependency_overrides[get_inventory_service] = lambda: inventory
    yield TestClient(app, raise_server_exceptions=False)
    app.dependency_overrides.clear()
