"""
linkkeeper.services.inventory_service — Link Stock Tracking
============================================================

How many mastery links the guild holds, per link type and quality, and a
journal of every change to those counts.

Every count change writes exactly one ``link_inventory_transactions`` row in
the same transaction as the new count, so the journal always explains the
current stock.  Counts never go below zero: :meth:`InventoryService.set_count`
rejects a negative target and :meth:`InventoryService.adjust_count` clamps.

Stock is bookkeeping only.  Awarding a link through the distribution engine
does not touch it; officers record what actually left the guild bank.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Iterable
from contextlib import ExitStack
from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import TYPE_CHECKING

from linkkeeper.database.models import (
    DEFAULT_INVENTORY_CATEGORY,
    AdminActionType,
    InventoryChange,
    InventoryItem,
    InventoryTransaction,
    Quality,
)
from linkkeeper.engine.eligibility import as_utc
from linkkeeper.engine.locks import KeyedLocks
from linkkeeper.services.stores import (
    StoreBundle,
    log_admin_action,
    row_to_dict,
    run_transaction,
)

if TYPE_CHECKING:
    from sqlalchemy import Engine

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Value objects
# ---------------------------------------------------------------------------
@dataclass(frozen=True, slots=True)
class CountUpdate:
    """One line of a bulk stock take."""

    link_type: str
    quality: Quality
    new_count: int


@dataclass(slots=True)
class CategorySummary:
    category: str
    link_types: int = 0
    total_bronze: int = 0
    total_silver: int = 0
    total_gold: int = 0

    @property
    def total_links(self) -> int:
        return self.total_bronze + self.total_silver + self.total_gold

    def add(self, item: InventoryItem) -> None:
        self.link_types += 1
        self.total_bronze += item.bronze_count
        self.total_silver += item.silver_count
        self.total_gold += item.gold_count

    def to_dict(self) -> dict:
        return {
            "category": self.category,
            "link_types": self.link_types,
            "total_bronze": self.total_bronze,
            "total_silver": self.total_silver,
            "total_gold": self.total_gold,
            "total_links": self.total_links,
        }


@dataclass(slots=True)
class InventorySummary:
    """Stock totals across every link type, broken down by category."""

    generated_at: datetime
    categories: dict[str, CategorySummary] = field(default_factory=dict)
    total_items: int = 0
    total_bronze: int = 0
    total_silver: int = 0
    total_gold: int = 0

    @property
    def total_links(self) -> int:
        return self.total_bronze + self.total_silver + self.total_gold

    @classmethod
    def from_items(cls, items: Iterable[InventoryItem], now: datetime) -> InventorySummary:
        summary = cls(generated_at=now)
        for item in items:
            summary.categories.setdefault(item.category, CategorySummary(item.category)).add(item)
            summary.total_items += 1
            summary.total_bronze += item.bronze_count
            summary.total_silver += item.silver_count
            summary.total_gold += item.gold_count
        return summary

    def to_dict(self) -> dict:
        return {
            "generated_at": self.generated_at.isoformat(),
            "total_items": self.total_items,
            "total_bronze": self.total_bronze,
            "total_silver": self.total_silver,
            "total_gold": self.total_gold,
            "total_links": self.total_links,
            "categories": [c.to_dict() for c in self.categories.values()],
        }


def item_to_dict(item: InventoryItem) -> dict:
    return {
        "link_type": item.link_type,
        "category": item.category,
        "description": item.description,
        "bronze_count": item.bronze_count,
        "silver_count": item.silver_count,
        "gold_count": item.gold_count,
        "total_count": item.total_count,
        "is_active": item.is_active,
        "notes": item.notes,
        "updated_by": item.updated_by,
        "updated_at": as_utc(item.updated_at).isoformat() if item.updated_at else None,
    }


def transaction_to_dict(tx: InventoryTransaction) -> dict:
    return {
        "id": tx.id,
        "link_type": tx.link_type,
        "quality": tx.quality,
        "change_type": tx.change_type,
        "quantity": tx.quantity,
        "previous_count": tx.previous_count,
        "new_count": tx.new_count,
        "reason": tx.reason,
        "updated_by": tx.updated_by,
        "timestamp": as_utc(tx.timestamp).isoformat(),
    }


# ---------------------------------------------------------------------------
# Service
# ---------------------------------------------------------------------------
class InventoryService:
    """Stock counts over ``link_inventory``.

    Changes to one link type are serialized by a per-type lock inside the
    process and by the row's ``version`` column across processes.
    """

    def __init__(
        self,
        db_engine: Engine,
        *,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self.db_engine = db_engine
        self._clock = clock or (lambda: datetime.now(UTC))
        self.locks = KeyedLocks()

    def now(self) -> datetime:
        return self._clock()

    # -------------------------------------------------------------------
    # Internals
    # -------------------------------------------------------------------
    def _write_count(
        self,
        stores: StoreBundle,
        item: InventoryItem,
        quality: Quality,
        new_count: int,
        reason: str | None,
        actor_id: str | None,
    ) -> InventoryTransaction:
        """Set one count on a loaded *item* and journal the change."""
        if new_count < 0:
            raise ValueError(f"stock cannot be negative (got {new_count})")
        quality = Quality(quality)
        now = self.now()
        previous = item.count_for(quality)
        delta = new_count - previous
        if delta > 0:
            change = InventoryChange.ADD
        elif delta < 0:
            change = InventoryChange.REMOVE
        else:
            change = InventoryChange.ADJUST

        item.set_count_for(quality, new_count)
        item.updated_by = actor_id
        item.updated_at = now
        stores.inventory.update(item)
        return stores.inventory.record(InventoryTransaction(
            link_type=item.link_type,
            quality=quality.value,
            change_type=change.value,
            quantity=abs(delta),
            previous_count=previous,
            new_count=new_count,
            reason=reason,
            updated_by=actor_id,
            timestamp=now,
        ))

    def _log_change(self, tx: InventoryTransaction) -> None:
        logger.info(
            "Inventory %s/%s %s → %s (%s by %s)",
            tx.link_type, tx.quality, tx.previous_count, tx.new_count,
            tx.change_type, tx.updated_by,
        )

    # -------------------------------------------------------------------
    # Items
    # -------------------------------------------------------------------
    def add_item(
        self,
        link_type: str,
        category: str = DEFAULT_INVENTORY_CATEGORY,
        *,
        description: str | None = None,
        actor_id: str | None = None,
    ) -> InventoryItem:
        """Start tracking *link_type* with zero stock.  Raises :class:`AlreadyExists`."""

        def _create(stores: StoreBundle) -> InventoryItem:
            item = stores.inventory.create(InventoryItem(
                link_type=link_type,
                category=category,
                description=description,
                bronze_count=0,
                silver_count=0,
                gold_count=0,
                is_active=True,
                updated_by=actor_id,
                updated_at=self.now(),
            ))
            log_admin_action(
                stores.session,
                actor_id=actor_id,
                action_type=AdminActionType.CREATE.value,
                target_table="link_inventory",
                target_id=link_type,
                after=row_to_dict(item),
            )
            return item

        with self.locks.hold(link_type):
            item = run_transaction(self.db_engine, "add_inventory_item", _create)
        logger.info("Now tracking %r in %r (actor=%s)", link_type, category, actor_id)
        return item

    def get_item(self, link_type: str) -> InventoryItem:
        return run_transaction(
            self.db_engine, "get_inventory_item", lambda stores: stores.inventory.get(link_type)
        )

    def list_items(self, category: str | None = None) -> list[InventoryItem]:
        return run_transaction(
            self.db_engine, "list_inventory", lambda stores: stores.inventory.list(category)
        )

    # -------------------------------------------------------------------
    # Counts
    # -------------------------------------------------------------------
    def set_count(
        self,
        link_type: str,
        quality: Quality,
        new_count: int,
        reason: str | None = None,
        *,
        actor_id: str | None = None,
    ) -> InventoryTransaction:
        """Overwrite one count (a stock take).  Negative targets raise ``ValueError``."""

        def _set(stores: StoreBundle) -> InventoryTransaction:
            item = stores.inventory.get(link_type)
            return self._write_count(stores, item, quality, new_count, reason, actor_id)

        with self.locks.hold(link_type):
            tx = run_transaction(self.db_engine, "set_inventory_count", _set)
        self._log_change(tx)
        return tx

    def adjust_count(
        self,
        link_type: str,
        quality: Quality,
        delta: int,
        reason: str | None = None,
        *,
        actor_id: str | None = None,
    ) -> InventoryTransaction:
        """Move one count by *delta*, stopping at zero."""

        def _adjust(stores: StoreBundle) -> InventoryTransaction:
            item = stores.inventory.get(link_type)
            target = max(item.count_for(quality) + delta, 0)
            return self._write_count(stores, item, quality, target, reason, actor_id)

        with self.locks.hold(link_type):
            tx = run_transaction(self.db_engine, "adjust_inventory_count", _adjust)
        self._log_change(tx)
        return tx

    def receive_stock(
        self,
        link_type: str,
        quality: Quality,
        quantity: int,
        reason: str | None = None,
        *,
        category: str = DEFAULT_INVENTORY_CATEGORY,
        actor_id: str | None = None,
    ) -> InventoryTransaction:
        """Add *quantity* links, creating the link type on first sight."""
        if quantity < 1:
            raise ValueError(f"quantity must be at least 1 (got {quantity})")

        def _receive(stores: StoreBundle) -> InventoryTransaction:
            item = stores.inventory.find(link_type)
            if item is None:
                item = stores.inventory.create(InventoryItem(
                    link_type=link_type,
                    category=category,
                    bronze_count=0,
                    silver_count=0,
                    gold_count=0,
                    is_active=True,
                    updated_by=actor_id,
                    updated_at=self.now(),
                ))
            target = item.count_for(quality) + quantity
            return self._write_count(stores, item, quality, target, reason, actor_id)

        with self.locks.hold(link_type):
            tx = run_transaction(self.db_engine, "receive_inventory", _receive)
        self._log_change(tx)
        return tx

    def bulk_update(
        self,
        updates: list[CountUpdate],
        reason: str | None = None,
        *,
        actor_id: str | None = None,
    ) -> list[InventoryTransaction]:
        """Apply a whole stock take in one transaction; any bad line rejects all."""

        def _bulk(stores: StoreBundle) -> list[InventoryTransaction]:
            return [
                self._write_count(
                    stores,
                    stores.inventory.get(u.link_type),
                    u.quality,
                    u.new_count,
                    reason,
                    actor_id,
                )
                for u in updates
            ]

        with ExitStack() as stack:
            for link_type in sorted({u.link_type for u in updates}):
                stack.enter_context(self.locks.hold(link_type))
            txs = run_transaction(self.db_engine, "bulk_update_inventory", _bulk)
        for tx in txs:
            self._log_change(tx)
        return txs

    # -------------------------------------------------------------------
    # Reports
    # -------------------------------------------------------------------
    def get_transactions(self, link_type: str, limit: int = 50) -> list[InventoryTransaction]:
        """Journal for *link_type*, newest first."""

        def _journal(stores: StoreBundle) -> list[InventoryTransaction]:
            stores.inventory.get(link_type)
            return stores.inventory.transactions(link_type, limit)

        return run_transaction(self.db_engine, "inventory_transactions", _journal)

    def summary(self) -> InventorySummary:
        return InventorySummary.from_items(self.list_items(), self.now())

    def low_stock(self, bronze: int = 0, silver: int = 0, gold: int = 0) -> list[InventoryItem]:
        """Active items where any quality is at or under its threshold."""
        thresholds = {Quality.BRONZE: bronze, Quality.SILVER: silver, Quality.GOLD: gold}
        return [
            item for item in self.list_items()
            if item.is_active
            and any(item.count_for(q) <= limit for q, limit in thresholds.items())
        ]
