"""
linkkeeper.bot.cogs.distribution — Distribution Slash Commands
================================================================

- /list-status — progress of both tier cycles (anyone)
- /pick-winner — award the next link of a tier (officer)
- /refresh-lists — rebuild both eligible sets now (officer)
- /force-complete — close a stalled cycle (officer)

Winner announcements go to ``announce_channel_id`` when configured, else
they are posted where the command was run.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

import discord
from discord import app_commands
from discord.ext import commands

from linkkeeper.bot.checks import handle_app_command_error, is_officer
from linkkeeper.database.engine import run_db
from linkkeeper.database.models import Tier
from linkkeeper.services.embeds import build_list_status_embed, build_winner_embed

if TYPE_CHECKING:
    from linkkeeper.bot.core import LinkKeeperBot

logger = logging.getLogger(__name__)

TIER_CHOICES = [app_commands.Choice(name=t.value.title(), value=t.value) for t in Tier]


class Distribution(commands.Cog, name="Distribution"):
    """Link distribution commands."""

    def __init__(self, bot: LinkKeeperBot) -> None:
        self.bot = bot

    @app_commands.command(name="list-status", description="Show progress of the silver and gold cycles.")
    async def list_status(self, interaction: discord.Interaction) -> None:
        statuses = await run_db(self.bot.distribution.get_all_statuses)
        await interaction.response.send_message(embed=build_list_status_embed(statuses))

    @app_commands.command(name="pick-winner", description="Award the next mastery link of a tier.")
    @app_commands.describe(tier="Link tier", notes="Optional note stored with the grant")
    @app_commands.choices(tier=TIER_CHOICES)
    @is_officer()
    async def pick_winner(
        self,
        interaction: discord.Interaction,
        tier: app_commands.Choice[str],
        notes: str | None = None,
    ) -> None:
        await interaction.response.defer(ephemeral=True)
        result = await run_db(self.bot.distribution.select_winner, Tier(tier.value), notes=notes)
        embed = build_winner_embed(result, self.bot.avatar_for(result.winner.discord_id))

        channel = self.bot.announce_channel() or interaction.channel
        if channel is not None:
            await channel.send(embed=embed)
        await interaction.followup.send(
            f"✅ {tier.name} link awarded to <@{result.winner.discord_id}>.", ephemeral=True,
        )

    @app_commands.command(name="refresh-lists", description="Rebuild both eligible sets from the roster.")
    @is_officer()
    async def refresh_lists(self, interaction: discord.Interaction) -> None:
        await interaction.response.defer(ephemeral=True)
        statuses = await run_db(self.bot.distribution.refresh_all)
        await interaction.followup.send(embed=build_list_status_embed(statuses), ephemeral=True)

    @app_commands.command(
        name="force-complete",
        description="Close a stalled cycle; remaining members are queued for compensation.",
    )
    @app_commands.describe(tier="Link tier", reason="Why the cycle is being closed")
    @app_commands.choices(tier=TIER_CHOICES)
    @is_officer()
    async def force_complete(
        self,
        interaction: discord.Interaction,
        tier: app_commands.Choice[str],
        reason: str,
    ) -> None:
        status = await run_db(
            self.bot.distribution.force_complete,
            Tier(tier.value),
            reason,
            actor_id=str(interaction.user.id),
        )
        await interaction.response.send_message(
            f"✅ {tier.name} cycle restarted. "
            f"{status.compensation_count} member(s) queued for compensation.",
            ephemeral=True,
        )

    async def cog_app_command_error(
        self, interaction: discord.Interaction, error: app_commands.AppCommandError
    ) -> None:
        await handle_app_command_error(interaction, error)


async def setup(bot: LinkKeeperBot) -> None:
    await bot.add_cog(Distribution(bot))
