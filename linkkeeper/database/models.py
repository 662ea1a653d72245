"""
linkkeeper.database.models — SQLAlchemy 2.0 Data Models
========================================================

Tables:
- members            — Guild member profiles (Discord snowflake PK)
- link_history       — Append-only record of every mastery link granted
- distribution_lists — One row per tier holding the current cycle state
- admin_log          — Append-only audit trail of officer actions
- link_inventory     — Links in stock per link type, counted per quality
- link_inventory_transactions — Append-only journal of every stock change

``members``, ``distribution_lists`` and ``link_inventory`` carry a ``version`` column used as
SQLAlchemy's ``version_id_col``: a write against a row another process has
already changed raises :class:`sqlalchemy.orm.exc.StaleDataError`.
"""

from __future__ import annotations

import enum
from datetime import UTC, datetime

from sqlalchemy import (
    JSON,
    Boolean,
    DateTime,
    Index,
    Integer,
    String,
    Text,
    func,
)
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column

# JSONB on PostgreSQL, plain JSON everywhere else (SQLite in tests)
JSONType = JSON().with_variant(JSONB(), "postgresql")


def _utcnow() -> datetime:
    return datetime.now(UTC)


# ---------------------------------------------------------------------------
# Base
# ---------------------------------------------------------------------------
class Base(DeclarativeBase):
    """Shared base for all LinkKeeper ORM models."""


# ---------------------------------------------------------------------------
# Enums
# ---------------------------------------------------------------------------
class Tier(enum.StrEnum):
    """Reward tiers.  Each has its own tenure threshold and cycle."""
    SILVER = "silver"
    GOLD = "gold"


class Rank(enum.StrEnum):
    """Guild ranks (display only — decisions use the eligibility rules)."""
    BOOK_WORM = "Book Worm"  # below the silver threshold
    SCHOLAR = "Scholar"      # silver threshold reached
    SAGE = "Sage"            # gold threshold reached
    MAESTER = "Maester"      # officer


class AdminActionType(enum.StrEnum):
    """Categories of officer mutations recorded in admin_log."""
    CREATE = "CREATE"
    UPDATE = "UPDATE"
    DELETE = "DELETE"
    PROMOTE = "PROMOTE"
    DEMOTE = "DEMOTE"
    PARTICIPATION_RESET = "PARTICIPATION_RESET"
    FORCE_COMPLETE = "FORCE_COMPLETE"


class Quality(enum.StrEnum):
    """Quality grades of a mastery link held in stock."""
    BRONZE = "bronze"
    SILVER = "silver"
    GOLD = "gold"


class InventoryChange(enum.StrEnum):
    ADD = "add"
    REMOVE = "remove"
    ADJUST = "adjust"  # count rewritten to the value it already had


# ---------------------------------------------------------------------------
# Members — one row per registered guild member
# ---------------------------------------------------------------------------
class Member(Base):
    __tablename__ = "members"

    discord_id: Mapped[str] = mapped_column(String(32), primary_key=True)
    username: Mapped[str] = mapped_column(String(100), nullable=False)
    join_date: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    is_officer: Mapped[bool] = mapped_column(Boolean, default=False)

    # Participation
    weekly_boss_participation: Mapped[bool] = mapped_column(Boolean, default=False)
    omni_absence_count: Mapped[int] = mapped_column(Integer, default=0)
    omni_participation_dates: Mapped[list] = mapped_column(JSONType, default=list)
    last_omni_participation: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), default=None
    )
    compensation_owed: Mapped[bool] = mapped_column(Boolean, default=False)

    # Display cache — written by eligibility.refresh_cached_flags only
    rank: Mapped[str] = mapped_column(String(20), default=Rank.BOOK_WORM.value)
    silver_eligible: Mapped[bool] = mapped_column(Boolean, default=False)
    gold_eligible: Mapped[bool] = mapped_column(Boolean, default=False)
    days_in_guild: Mapped[int] = mapped_column(Integer, default=0)

    added_by: Mapped[str | None] = mapped_column(String(32), default=None)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=_utcnow)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=_utcnow, onupdate=_utcnow
    )
    version: Mapped[int] = mapped_column(Integer, nullable=False, default=1)

    __mapper_args__ = {"version_id_col": version}

    def __repr__(self) -> str:
        return f"<Member id={self.discord_id} name={self.username!r} rank={self.rank!r}>"


# ---------------------------------------------------------------------------
# LinkHistory — append-only grant journal
# ---------------------------------------------------------------------------
class LinkHistory(Base):
    __tablename__ = "link_history"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    discord_id: Mapped[str] = mapped_column(String(32), nullable=False)
    username: Mapped[str] = mapped_column(String(100), nullable=False)
    tier: Mapped[str] = mapped_column(String(10), nullable=False)
    date_received: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False
    )
    event_date: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), default=None
    )
    is_compensation: Mapped[bool] = mapped_column(Boolean, default=False)
    notes: Mapped[str | None] = mapped_column(Text, default=None)

    __table_args__ = (
        Index("ix_link_history_member_time", "discord_id", "date_received"),
        Index("ix_link_history_time", "date_received"),
    )

    def __repr__(self) -> str:
        kind = "comp" if self.is_compensation else "regular"
        return f"<LinkHistory id={self.id} member={self.discord_id} {self.tier}/{kind}>"


# ---------------------------------------------------------------------------
# DistributionListRecord — persisted per-tier cycle state
# ---------------------------------------------------------------------------
class DistributionListRecord(Base):
    """Storage shape of :class:`linkkeeper.engine.distribution_list.DistributionList`.

    The id lists are stored as JSON arrays; their order is meaningful
    (``inactive`` is ordered by when members were marked, the compensation
    queue is FIFO).
    """
    __tablename__ = "distribution_lists"

    tier: Mapped[str] = mapped_column(String(10), primary_key=True)
    eligible_members: Mapped[list] = mapped_column(JSONType, default=list)
    completed_members: Mapped[list] = mapped_column(JSONType, default=list)
    inactive_members: Mapped[list] = mapped_column(JSONType, default=list)
    compensation_queue: Mapped[list] = mapped_column(JSONType, default=list)
    max_absence_count: Mapped[int] = mapped_column(Integer, nullable=False)
    current_cycle_start: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False
    )
    last_reset_date: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    version: Mapped[int] = mapped_column(Integer, nullable=False, default=1)

    __mapper_args__ = {"version_id_col": version}

    def __repr__(self) -> str:
        return (
            f"<DistributionListRecord tier={self.tier!r} "
            f"eligible={len(self.eligible_members or [])} v={self.version}>"
        )


# ---------------------------------------------------------------------------
# AdminLog — append-only audit trail
# ---------------------------------------------------------------------------
class AdminLog(Base):
    __tablename__ = "admin_log"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    actor_id: Mapped[str | None] = mapped_column(String(32), default=None)
    action_type: Mapped[str] = mapped_column(String(30), nullable=False)
    target_table: Mapped[str] = mapped_column(String(50), nullable=False)
    target_id: Mapped[str | None] = mapped_column(String(50), default=None)
    before_snapshot: Mapped[dict | None] = mapped_column(JSONType, nullable=True)
    after_snapshot: Mapped[dict | None] = mapped_column(JSONType, nullable=True)
    reason: Mapped[str | None] = mapped_column(Text, default=None)
    timestamp: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )

    __table_args__ = (
        Index("ix_admin_log_timestamp", "timestamp"),
    )

    def __repr__(self) -> str:
        return f"<AdminLog id={self.id} {self.action_type} {self.target_table}:{self.target_id}>"


# ---------------------------------------------------------------------------
# Link inventory — stock on hand, one row per link type
# ---------------------------------------------------------------------------
DEFAULT_INVENTORY_CATEGORY = "Mastery Links"


class InventoryItem(Base):
    __tablename__ = "link_inventory"

    link_type: Mapped[str] = mapped_column(String(100), primary_key=True)
    category: Mapped[str] = mapped_column(
        String(100), nullable=False, default=DEFAULT_INVENTORY_CATEGORY
    )
    description: Mapped[str | None] = mapped_column(Text, default=None)
    bronze_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    silver_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    gold_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True)
    notes: Mapped[str | None] = mapped_column(Text, default=None)
    updated_by: Mapped[str | None] = mapped_column(String(32), default=None)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=_utcnow, onupdate=_utcnow
    )
    version: Mapped[int] = mapped_column(Integer, nullable=False, default=1)

    __mapper_args__ = {"version_id_col": version}

    __table_args__ = (
        Index("ix_link_inventory_category", "category"),
    )

    def count_for(self, quality: Quality) -> int:
        return getattr(self, f"{Quality(quality).value}_count") or 0

    def set_count_for(self, quality: Quality, value: int) -> None:
        setattr(self, f"{Quality(quality).value}_count", value)

    @property
    def total_count(self) -> int:
        return sum(self.count_for(q) for q in Quality)

    def __repr__(self) -> str:
        return (
            f"<InventoryItem {self.link_type!r} b={self.bronze_count} "
            f"s={self.silver_count} g={self.gold_count}>"
        )


class InventoryTransaction(Base):
    """One stock change.  ``quantity`` is always the absolute difference."""
    __tablename__ = "link_inventory_transactions"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    link_type: Mapped[str] = mapped_column(String(100), nullable=False)
    quality: Mapped[str] = mapped_column(String(10), nullable=False)
    change_type: Mapped[str] = mapped_column(String(10), nullable=False)
    quantity: Mapped[int] = mapped_column(Integer, nullable=False)
    previous_count: Mapped[int] = mapped_column(Integer, nullable=False)
    new_count: Mapped[int] = mapped_column(Integer, nullable=False)
    reason: Mapped[str | None] = mapped_column(Text, default=None)
    updated_by: Mapped[str | None] = mapped_column(String(32), default=None)
    timestamp: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=_utcnow
    )

    __table_args__ = (
        Index("ix_inventory_tx_type_time", "link_type", "timestamp"),
    )

    def __repr__(self) -> str:
        return (
            f"<InventoryTransaction id={self.id} {self.link_type!r}/{self.quality} "
            f"{self.change_type} {self.previous_count}->{self.new_count}>"
        )
