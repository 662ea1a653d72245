"""
tests/test_database_engine.py — Engine factory and session helper
==================================================================
"""

from __future__ import annotations

import asyncio
from datetime import UTC, datetime

import pytest
from sqlalchemy import func, inspect, select

from linkkeeper.database.engine import create_db_engine, get_session, init_db, run_db
from linkkeeper.database.models import Member

JOINED = datetime(2026, 1, 1, tzinfo=UTC)


class TestCreateDbEngine:
    def test_missing_url_raises(self, monkeypatch):
        monkeypatch.delenv("DATABASE_URL", raising=False)
        with pytest.raises(RuntimeError, match="DATABASE_URL"):
            create_db_engine()

    def test_sqlite_url_from_env(self, monkeypatch, tmp_path):
        monkeypatch.setenv("DATABASE_URL", f"sqlite:///{tmp_path / 'lk.db'}")
        engine = create_db_engine()
        init_db(engine)
        tables = set(inspect(engine).get_table_names())
        assert {
            "members", "link_history", "distribution_lists", "admin_log",
            "link_inventory", "link_inventory_transactions",
        } <= tables


class TestGetSession:
    def test_rolls_back_on_error(self, db_engine):
        with pytest.raises(ZeroDivisionError):
            with get_session(db_engine) as session:
                session.add(Member(discord_id="1", username="a", join_date=JOINED))
                session.flush()
                1 / 0

        with get_session(db_engine) as session:
            assert session.scalar(select(func.count()).select_from(Member)) == 0

    def test_rows_stay_readable_after_commit(self, db_engine):
        with get_session(db_engine) as session:
            member = Member(discord_id="1", username="a", join_date=JOINED)
            session.add(member)
        assert member.username == "a"
        assert member.version == 1


def test_run_db_returns_result():
    assert asyncio.run(run_db(sum, [1, 2, 3])) == 6
