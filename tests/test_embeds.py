"""
tests/test_embeds.py — Discord embed builders
==============================================
"""

from __future__ import annotations

from datetime import UTC, datetime

import discord

from linkkeeper.database.models import InventoryItem, LinkHistory, Member, Rank, Tier
from linkkeeper.errors import PreconditionFailed
from linkkeeper.services.distribution_service import ListStatus, WinnerResult
from linkkeeper.services.embeds import (
    build_error_embed,
    build_inventory_embed,
    build_list_status_embed,
    build_member_status_embed,
    build_winner_embed,
)
from linkkeeper.services.inventory_service import InventorySummary
from linkkeeper.services.member_service import MemberStatus

NOW = datetime(2026, 6, 1, 12, 0, tzinfo=UTC)


def _member(**kwargs) -> Member:
    defaults = dict(
        discord_id="101",
        username="Ada",
        join_date=NOW,
        is_officer=False,
        weekly_boss_participation=True,
        omni_absence_count=0,
        compensation_owed=False,
    )
    defaults.update(kwargs)
    return Member(**defaults)


def _status(tier: Tier, **kwargs) -> ListStatus:
    defaults = dict(
        tier=tier,
        eligible_count=3,
        completed_count=1,
        inactive_count=0,
        compensation_count=0,
        completion_percentage=25.0,
        current_cycle_start=NOW,
        last_reset_date=NOW,
        can_force_complete=False,
        is_complete=False,
    )
    defaults.update(kwargs)
    return ListStatus(**defaults)


class TestWinnerEmbed:
    def test_regular_grant(self):
        history = LinkHistory(discord_id="101", username="Ada", tier="gold", date_received=NOW)
        result = WinnerResult(
            winner=_member(), history=history, is_compensation=False, status=_status(Tier.GOLD),
        )
        embed = build_winner_embed(result)
        assert "Gold" in embed.title
        assert "<@101>" in embed.description
        assert "mastery link" in embed.description
        assert embed.color == discord.Color.gold()
        assert embed.footer.text is None

    def test_compensation_after_reset(self):
        history = LinkHistory(
            discord_id="101", username="Ada", tier="silver", date_received=NOW,
            notes="Compensation for missed omni events",
        )
        result = WinnerResult(
            winner=_member(),
            history=history,
            is_compensation=True,
            status=_status(Tier.SILVER),
            cycle_reset=True,
        )
        embed = build_winner_embed(result, avatar_url="https://cdn.example/a.png")
        assert "compensation link" in embed.description
        assert embed.fields[0].value == "Compensation for missed omni events"
        assert "new cycle" in embed.footer.text
        assert embed.thumbnail.url == "https://cdn.example/a.png"


class TestStatusEmbeds:
    def test_list_status_has_field_per_tier(self):
        embed = build_list_status_embed({
            Tier.SILVER: _status(Tier.SILVER),
            Tier.GOLD: _status(Tier.GOLD, inactive_count=2, can_force_complete=True),
        })
        assert len(embed.fields) == 2
        assert "Eligible: 3" in embed.fields[0].value
        assert "force completed" in embed.fields[1].value

    def test_member_status(self):
        status = MemberStatus(
            member=_member(compensation_owed=True),
            days_in_guild=45,
            rank=Rank.SCHOLAR,
            silver_eligible=True,
            gold_eligible=False,
            is_active=True,
            total_silver_links=2,
        )
        embed = build_member_status_embed(status)
        assert "Scholar" in embed.description
        assert "2 silver" in embed.fields[2].value
        assert embed.fields[-1].name.endswith("Owed")


class TestErrorEmbed:
    def test_uses_plain_message(self):
        embed = build_error_embed(PreconditionFailed("no eligible recipients", tier="gold"))
        assert embed.description == "no eligible recipients"
        assert embed.color == discord.Color.red()


def _item(link_type: str, category: str = "Mastery Links", **counts) -> InventoryItem:
    return InventoryItem(
        link_type=link_type,
        category=category,
        bronze_count=counts.get("bronze", 0),
        silver_count=counts.get("silver", 0),
        gold_count=counts.get("gold", 0),
        is_active=True,
    )


class TestInventoryEmbed:
    def test_one_field_per_category(self):
        items = [
            _item("Melee Damage", bronze=2, gold=1),
            _item("Healing", "Support Links", silver=3),
        ]
        embed = build_inventory_embed(InventorySummary.from_items(items, NOW))
        assert "**6** links across 2 link types" in embed.description
        assert [f.name for f in embed.fields] == ["Mastery Links (1)", "Support Links (1)"]
        assert embed.footer.text is None

    def test_out_of_stock_field(self):
        items = [_item("Melee Damage", bronze=2)]
        embed = build_inventory_embed(InventorySummary.from_items(items, NOW), items)
        assert embed.fields[-1].value == "Melee Damage"

    def test_empty_stock_hint(self):
        embed = build_inventory_embed(InventorySummary.from_items([], NOW), [])
        assert embed.fields == []
        assert "/add-inventory" in embed.footer.text
