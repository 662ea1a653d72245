"""
tests/test_inventory_service.py — Link Stock Tests
===================================================
"""

from __future__ import annotations

import pytest
from sqlalchemy import select

from linkkeeper.database.engine import get_session
from linkkeeper.database.models import AdminLog, InventoryTransaction, Quality
from linkkeeper.errors import AlreadyExists, NotFound
from linkkeeper.services.inventory_service import CountUpdate


def _journal_size(db_engine) -> int:
    with get_session(db_engine) as session:
        return len(session.scalars(select(InventoryTransaction)).all())


class TestItems:
    def test_add_item_starts_empty(self, inventory):
        item = inventory.add_item("Melee Damage", description="+melee", actor_id="7")
        assert item.category == "Mastery Links"
        assert (item.bronze_count, item.silver_count, item.gold_count) == (0, 0, 0)
        assert inventory.get_item("Melee Damage").description == "+melee"

    def test_duplicate_rejected(self, inventory):
        inventory.add_item("Melee Damage")
        with pytest.raises(AlreadyExists) as exc_info:
            inventory.add_item("Melee Damage")
        assert exc_info.value.status_code == 409

    def test_add_item_is_audited(self, inventory, db_engine):
        inventory.add_item("Melee Damage", actor_id="7")
        with get_session(db_engine) as session:
            row = session.scalars(
                select(AdminLog).where(AdminLog.target_table == "link_inventory")
            ).one()
        assert (row.action_type, row.target_id, row.actor_id) == ("CREATE", "Melee Damage", "7")

    def test_unknown_item(self, inventory):
        with pytest.raises(NotFound):
            inventory.get_item("Nope")

    def test_list_by_category(self, inventory):
        inventory.add_item("Melee Damage")
        inventory.add_item("Healing", "Support Links")
        assert [i.link_type for i in inventory.list_items()] == ["Melee Damage", "Healing"]
        assert [i.link_type for i in inventory.list_items("Support Links")] == ["Healing"]


class TestCounts:
    def test_set_count_journals_direction(self, inventory):
        inventory.add_item("Melee Damage")
        up = inventory.set_count("Melee Damage", Quality.GOLD, 5, "stock take", actor_id="7")
        down = inventory.set_count("Melee Damage", Quality.GOLD, 2)
        same = inventory.set_count("Melee Damage", Quality.GOLD, 2)

        assert (up.change_type, up.quantity, up.previous_count, up.new_count) == ("add", 5, 0, 5)
        assert (down.change_type, down.quantity) == ("remove", 3)
        assert (same.change_type, same.quantity) == ("adjust", 0)
        assert up.reason == "stock take"
        assert up.updated_by == "7"
        assert inventory.get_item("Melee Damage").gold_count == 2

    def test_negative_count_rejected_without_journal(self, inventory, db_engine):
        inventory.add_item("Melee Damage")
        with pytest.raises(ValueError):
            inventory.set_count("Melee Damage", Quality.BRONZE, -1)
        assert _journal_size(db_engine) == 0
        assert inventory.get_item("Melee Damage").bronze_count == 0

    def test_set_count_unknown_type(self, inventory):
        with pytest.raises(NotFound):
            inventory.set_count("Nope", Quality.BRONZE, 1)

    def test_adjust_clamps_at_zero(self, inventory):
        inventory.add_item("Melee Damage")
        inventory.set_count("Melee Damage", Quality.SILVER, 3)
        tx = inventory.adjust_count("Melee Damage", Quality.SILVER, -10)
        assert (tx.previous_count, tx.new_count, tx.quantity) == (3, 0, 3)
        assert inventory.get_item("Melee Damage").silver_count == 0

    def test_qualities_are_independent(self, inventory):
        inventory.add_item("Melee Damage")
        inventory.adjust_count("Melee Damage", Quality.BRONZE, 4)
        inventory.adjust_count("Melee Damage", Quality.GOLD, 1)
        item = inventory.get_item("Melee Damage")
        assert (item.bronze_count, item.silver_count, item.gold_count) == (4, 0, 1)
        assert item.total_count == 5


class TestReceiveStock:
    def test_creates_unknown_type(self, inventory):
        tx = inventory.receive_stock(
            "Healing", Quality.BRONZE, 3, "raid drop", category="Support Links", actor_id="7"
        )
        assert (tx.change_type, tx.previous_count, tx.new_count) == ("add", 0, 3)
        assert inventory.get_item("Healing").category == "Support Links"

    def test_adds_to_existing(self, inventory):
        inventory.receive_stock("Healing", Quality.BRONZE, 3)
        tx = inventory.receive_stock("Healing", Quality.BRONZE, 2)
        assert (tx.previous_count, tx.new_count, tx.quantity) == (3, 5, 2)

    @pytest.mark.parametrize("quantity", [0, -2])
    def test_quantity_must_be_positive(self, inventory, quantity):
        with pytest.raises(ValueError):
            inventory.receive_stock("Healing", Quality.BRONZE, quantity)
        with pytest.raises(NotFound):
            inventory.get_item("Healing")


class TestBulkUpdate:
    def test_applies_every_line(self, inventory):
        inventory.add_item("Melee Damage")
        inventory.add_item("Healing")
        txs = inventory.bulk_update(
            [
                CountUpdate("Melee Damage", Quality.GOLD, 2),
                CountUpdate("Healing", Quality.BRONZE, 7),
            ],
            "monthly count",
            actor_id="7",
        )
        assert [t.new_count for t in txs] == [2, 7]
        assert inventory.get_item("Healing").bronze_count == 7

    def test_bad_line_rejects_everything(self, inventory, db_engine):
        inventory.add_item("Melee Damage")
        with pytest.raises(NotFound):
            inventory.bulk_update([
                CountUpdate("Melee Damage", Quality.GOLD, 2),
                CountUpdate("Nope", Quality.GOLD, 1),
            ])
        assert inventory.get_item("Melee Damage").gold_count == 0
        assert _journal_size(db_engine) == 0

    def test_negative_line_rejects_everything(self, inventory):
        inventory.add_item("Melee Damage")
        with pytest.raises(ValueError):
            inventory.bulk_update([
                CountUpdate("Melee Damage", Quality.GOLD, 2),
                CountUpdate("Melee Damage", Quality.SILVER, -1),
            ])
        assert inventory.get_item("Melee Damage").gold_count == 0


class TestReports:
    def test_transactions_newest_first(self, inventory, clock):
        inventory.add_item("Melee Damage")
        inventory.set_count("Melee Damage", Quality.GOLD, 1)
        clock.advance(days=1)
        inventory.set_count("Melee Damage", Quality.GOLD, 4)

        journal = inventory.get_transactions("Melee Damage")
        assert [t.new_count for t in journal] == [4, 1]
        assert [t.new_count for t in inventory.get_transactions("Melee Damage", limit=1)] == [4]

    def test_transactions_for_unknown_type(self, inventory):
        with pytest.raises(NotFound):
            inventory.get_transactions("Nope")

    def test_summary_totals_by_category(self, inventory, clock):
        inventory.receive_stock("Melee Damage", Quality.GOLD, 2)
        inventory.receive_stock("Ranged Damage", Quality.BRONZE, 3)
        inventory.receive_stock("Healing", Quality.SILVER, 1, category="Support Links")

        summary = inventory.summary()
        assert summary.generated_at == clock.now
        assert summary.total_items == 3
        assert summary.total_links == 6
        mastery = summary.categories["Mastery Links"]
        assert (mastery.link_types, mastery.total_gold, mastery.total_bronze) == (2, 2, 3)
        assert summary.to_dict()["categories"][0]["total_links"] == 5

    def test_empty_summary(self, inventory):
        summary = inventory.summary()
        assert summary.total_items == 0
        assert summary.categories == {}

    def test_low_stock_thresholds(self, inventory):
        inventory.receive_stock("Melee Damage", Quality.BRONZE, 5)
        inventory.set_count("Melee Damage", Quality.SILVER, 5)
        inventory.set_count("Melee Damage", Quality.GOLD, 5)
        inventory.receive_stock("Healing", Quality.GOLD, 1)

        # Healing has no bronze or silver
        assert [i.link_type for i in inventory.low_stock()] == ["Healing"]
        assert {i.link_type for i in inventory.low_stock(gold=5)} == {"Healing", "Melee Damage"}
