"""
linkkeeper.bot.cogs.inventory — Link Stock Slash Commands
==========================================================

- /inventory — stock on hand per category (anyone)
- /add-inventory — record links deposited in the guild bank (officer)
- /set-inventory — correct one count after a stock take (officer)
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

import discord
from discord import app_commands
from discord.ext import commands

from linkkeeper.bot.checks import handle_app_command_error, is_officer
from linkkeeper.database.engine import run_db
from linkkeeper.database.models import DEFAULT_INVENTORY_CATEGORY, Quality
from linkkeeper.services.embeds import build_inventory_embed

if TYPE_CHECKING:
    from linkkeeper.bot.core import LinkKeeperBot

logger = logging.getLogger(__name__)

QUALITY_CHOICES = [app_commands.Choice(name=q.value.title(), value=q.value) for q in Quality]


class Inventory(commands.Cog, name="Inventory"):
    """Mastery link stock commands."""

    def __init__(self, bot: LinkKeeperBot) -> None:
        self.bot = bot

    @app_commands.command(name="inventory", description="Show mastery links in stock.")
    async def inventory(self, interaction: discord.Interaction) -> None:
        summary = await run_db(self.bot.inventory.summary)
        empty = await run_db(self.bot.inventory.low_stock)
        await interaction.response.send_message(embed=build_inventory_embed(summary, empty))

    @app_commands.command(name="add-inventory", description="Record mastery links added to stock.")
    @app_commands.describe(
        link_type="Link type, e.g. Melee Damage",
        quality="Link quality",
        quantity="How many links",
        category="Category for a link type seen for the first time",
        reason="Optional note for the journal",
    )
    @app_commands.choices(quality=QUALITY_CHOICES)
    @is_officer()
    async def add_inventory(
        self,
        interaction: discord.Interaction,
        link_type: str,
        quality: app_commands.Choice[str],
        quantity: app_commands.Range[int, 1, 100] = 1,
        category: str = DEFAULT_INVENTORY_CATEGORY,
        reason: str | None = None,
    ) -> None:
        tx = await run_db(
            self.bot.inventory.receive_stock,
            link_type,
            Quality(quality.value),
            quantity,
            reason,
            category=category,
            actor_id=str(interaction.user.id),
        )
        await interaction.response.send_message(
            f"✅ {quantity} × {quality.name} **{link_type}** added "
            f"(stock {tx.previous_count} → {tx.new_count}).",
            ephemeral=True,
        )

    @app_commands.command(name="set-inventory", description="Overwrite one stock count.")
    @app_commands.describe(
        link_type="Link type",
        quality="Link quality",
        count="Correct number in stock",
        reason="Why the count changed",
    )
    @app_commands.choices(quality=QUALITY_CHOICES)
    @is_officer()
    async def set_inventory(
        self,
        interaction: discord.Interaction,
        link_type: str,
        quality: app_commands.Choice[str],
        count: app_commands.Range[int, 0, 10_000],
        reason: str | None = None,
    ) -> None:
        tx = await run_db(
            self.bot.inventory.set_count,
            link_type,
            Quality(quality.value),
            count,
            reason,
            actor_id=str(interaction.user.id),
        )
        await interaction.response.send_message(
            f"✅ {quality.name} **{link_type}**: {tx.previous_count} → {tx.new_count}.",
            ephemeral=True,
        )

    async def cog_app_command_error(
        self, interaction: discord.Interaction, error: app_commands.AppCommandError
    ) -> None:
        await handle_app_command_error(interaction, error)


async def setup(bot: LinkKeeperBot) -> None:
    await bot.add_cog(Inventory(bot))
