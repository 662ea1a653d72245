"""
linkkeeper.services.embeds — Discord embed builders
====================================================

All embed construction lives here so the cogs only need to supply data.
"""

from __future__ import annotations

import discord

from linkkeeper.database.models import InventoryItem, Quality, Tier
from linkkeeper.errors import LinkKeeperError
from linkkeeper.services.distribution_service import ListStatus, WinnerResult
from linkkeeper.services.inventory_service import InventorySummary
from linkkeeper.services.member_service import MemberStatus

TIER_COLORS = {
    Tier.SILVER: discord.Color.light_grey(),
    Tier.GOLD: discord.Color.gold(),
}

TIER_EMOJI = {
    Tier.SILVER: "\U0001f948",  # 2nd place medal
    Tier.GOLD: "\U0001f947",    # 1st place medal
}

QUALITY_EMOJI = {
    Quality.BRONZE: "\U0001f949",
    Quality.SILVER: TIER_EMOJI[Tier.SILVER],
    Quality.GOLD: TIER_EMOJI[Tier.GOLD],
}


def _check(flag: bool) -> str:
    return "✅" if flag else "❌"


def _progress_bar(pct: float, width: int = 10) -> str:
    filled = round(pct / 100 * width)
    return "█" * filled + "░" * (width - filled)


def build_member_status_embed(status: MemberStatus, avatar_url: str | None = None) -> discord.Embed:
    """Personal status card: rank, tenure, eligibility and link totals."""
    member = status.member
    embed = discord.Embed(
        title=f"\U0001f4da {member.username}",
        description=f"**{status.rank.value}** • {status.days_in_guild} days in the guild",
        color=discord.Color.blurple(),
    )
    embed.add_field(
        name="Eligibility",
        value=(
            f"{_check(status.silver_eligible)} Silver\n"
            f"{_check(status.gold_eligible)} Gold"
        ),
        inline=True,
    )
    embed.add_field(
        name="Participation",
        value=(
            f"Weekly boss: {_check(member.weekly_boss_participation)}\n"
            f"Omni absences: {member.omni_absence_count}\n"
            f"Active: {_check(status.is_active)}"
        ),
        inline=True,
    )
    embed.add_field(
        name="Links received",
        value=(
            f"{TIER_EMOJI[Tier.SILVER]} {status.total_silver_links} silver\n"
            f"{TIER_EMOJI[Tier.GOLD]} {status.total_gold_links} gold\n"
            f"Compensation: {status.compensation_links}"
        ),
        inline=False,
    )
    if member.compensation_owed:
        embed.add_field(name="⏳ Owed", value="Queued for a compensation link.", inline=False)
    if avatar_url:
        embed.set_thumbnail(url=avatar_url)
    return embed


def build_winner_embed(result: WinnerResult, avatar_url: str | None = None) -> discord.Embed:
    """Announcement for one grant."""
    tier = Tier(result.history.tier)
    kind = "compensation link" if result.is_compensation else "mastery link"
    embed = discord.Embed(
        title=f"{TIER_EMOJI[tier]} {tier.value.title()} Link Awarded!",
        description=f"<@{result.winner.discord_id}> receives a {tier.value} {kind}.",
        color=TIER_COLORS[tier],
    )
    if result.history.notes:
        embed.add_field(name="Notes", value=result.history.notes, inline=False)
    embed.add_field(
        name="Cycle",
        value=(
            f"{_progress_bar(result.status.completion_percentage)} "
            f"{result.status.completion_percentage:.0f}%\n"
            f"{result.status.eligible_count} still eligible • "
            f"{result.status.compensation_count} owed"
        ),
        inline=False,
    )
    if result.cycle_reset:
        embed.set_footer(text="Cycle complete, a new cycle has started.")
    if avatar_url:
        embed.set_thumbnail(url=avatar_url)
    return embed


def build_list_status_embed(statuses: dict[Tier, ListStatus]) -> discord.Embed:
    """One field per tier with counts and progress."""
    embed = discord.Embed(
        title="\U0001f4dc Distribution Lists",
        color=discord.Color.teal(),
    )
    for tier, status in statuses.items():
        lines = [
            f"{_progress_bar(status.completion_percentage)} {status.completion_percentage:.0f}%",
            f"Eligible: {status.eligible_count}",
            f"Completed: {status.completed_count}",
            f"Inactive: {status.inactive_count}",
            f"Compensation queue: {status.compensation_count}",
            f"Cycle started <t:{int(status.current_cycle_start.timestamp())}:R>",
        ]
        if status.can_force_complete:
            lines.append("⚠️ Can be force completed")
        embed.add_field(
            name=f"{TIER_EMOJI[tier]} {tier.value.title()}",
            value="\n".join(lines),
            inline=True,
        )
    return embed


def _stock_line(bronze: int, silver: int, gold: int) -> str:
    return (
        f"{QUALITY_EMOJI[Quality.BRONZE]} {bronze}  "
        f"{QUALITY_EMOJI[Quality.SILVER]} {silver}  "
        f"{QUALITY_EMOJI[Quality.GOLD]} {gold}"
    )


def build_inventory_embed(
    summary: InventorySummary, low_stock: list[InventoryItem] | None = None,
) -> discord.Embed:
    """Stock on hand per category, plus an optional out-of-stock list."""
    embed = discord.Embed(
        title="\U0001f4e6 Link Inventory",
        description=(
            f"**{summary.total_links}** links across {summary.total_items} link types\n"
            + _stock_line(summary.total_bronze, summary.total_silver, summary.total_gold)
        ),
        color=discord.Color.dark_gold(),
    )
    for category in summary.categories.values():
        embed.add_field(
            name=f"{category.category} ({category.link_types})",
            value=_stock_line(category.total_bronze, category.total_silver, category.total_gold),
            inline=False,
        )
    if low_stock:
        names = ", ".join(item.link_type for item in low_stock[:15])
        if len(low_stock) > 15:
            names += f" … +{len(low_stock) - 15} more"
        embed.add_field(name="⚠️ Out of a quality", value=names, inline=False)
    if not summary.categories:
        embed.set_footer(text="Nothing stocked yet. Officers can use /add-inventory.")
    return embed


def build_error_embed(error: LinkKeeperError) -> discord.Embed:
    """Ephemeral error reply for a failed command."""
    return discord.Embed(
        title="❌ Could not complete that",
        description=error.message,
        color=discord.Color.red(),
    )
