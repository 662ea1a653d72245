"""
linkkeeper.bot.cogs.members — Member Slash Commands
=====================================================

Self-service:
- /my-status — your rank, eligibility and links received
- /check-rank — someone else's rank and eligibility

Officer-only (configured ``officer_role_id``):
- /add-member — register a guild member
- /promote-officer, /demote-officer — toggle the officer flag
- /mark-weekly — record weekly boss participation
- /mark-omni — record omni event attendance or absence
"""

from __future__ import annotations

import logging
from datetime import UTC, datetime
from typing import TYPE_CHECKING

import discord
from discord import app_commands
from discord.ext import commands

from linkkeeper.bot.checks import handle_app_command_error, is_officer
from linkkeeper.database.engine import run_db
from linkkeeper.services.embeds import build_member_status_embed

if TYPE_CHECKING:
    from linkkeeper.bot.core import LinkKeeperBot

logger = logging.getLogger(__name__)


def _parse_date(value: str | None) -> datetime | None:
    """``YYYY-MM-DD`` → aware UTC midnight."""
    if not value:
        return None
    try:
        return datetime.strptime(value, "%Y-%m-%d").replace(tzinfo=UTC)
    except ValueError as exc:
        raise ValueError(f"`{value}` is not a date, use YYYY-MM-DD.") from exc


class Members(commands.Cog, name="Members"):
    """Roster and participation commands."""

    def __init__(self, bot: LinkKeeperBot) -> None:
        self.bot = bot

    # -------------------------------------------------------------------
    # /my-status, /check-rank
    # -------------------------------------------------------------------
    @app_commands.command(name="my-status", description="Show your rank, eligibility and links.")
    async def my_status(self, interaction: discord.Interaction) -> None:
        status = await run_db(self.bot.members.get_member_status, str(interaction.user.id))
        embed = build_member_status_embed(status, interaction.user.display_avatar.url)
        await interaction.response.send_message(embed=embed, ephemeral=True)

    @app_commands.command(name="check-rank", description="Show a member's rank and eligibility.")
    @app_commands.describe(member="The member to look up")
    async def check_rank(self, interaction: discord.Interaction, member: discord.Member) -> None:
        status = await run_db(self.bot.members.get_member_status, str(member.id))
        embed = build_member_status_embed(status, member.display_avatar.url)
        await interaction.response.send_message(embed=embed)

    # -------------------------------------------------------------------
    # /add-member
    # -------------------------------------------------------------------
    @app_commands.command(name="add-member", description="Register a guild member.")
    @app_commands.describe(
        member="The Discord member to register",
        join_date="Guild join date as YYYY-MM-DD (default: their server join date)",
    )
    @is_officer()
    async def add_member(
        self,
        interaction: discord.Interaction,
        member: discord.Member,
        join_date: str | None = None,
    ) -> None:
        joined = _parse_date(join_date) or member.joined_at or datetime.now(UTC)
        created = await run_db(
            self.bot.members.create_member,
            str(member.id),
            member.display_name,
            joined,
            str(interaction.user.id),
        )
        await interaction.response.send_message(
            f"✅ Added **{created.username}** as {created.rank} "
            f"({created.days_in_guild} days in the guild).",
            ephemeral=True,
        )

    # -------------------------------------------------------------------
    # /promote-officer, /demote-officer
    # -------------------------------------------------------------------
    @app_commands.command(name="promote-officer", description="Promote a member to officer (Maester).")
    @app_commands.describe(member="The member to promote")
    @is_officer()
    async def promote_officer(self, interaction: discord.Interaction, member: discord.Member) -> None:
        await run_db(self.bot.members.promote_to_officer, str(member.id), str(interaction.user.id))
        await interaction.response.send_message(
            f"✅ **{member.display_name}** is now a Maester.", ephemeral=True,
        )

    @app_commands.command(name="demote-officer", description="Remove a member's officer status.")
    @app_commands.describe(member="The member to demote")
    @is_officer()
    async def demote_officer(self, interaction: discord.Interaction, member: discord.Member) -> None:
        await run_db(self.bot.members.demote_from_officer, str(member.id), str(interaction.user.id))
        await interaction.response.send_message(
            f"✅ **{member.display_name}** is no longer an officer.", ephemeral=True,
        )

    # -------------------------------------------------------------------
    # Participation
    # -------------------------------------------------------------------
    @app_commands.command(name="mark-weekly", description="Record weekly boss participation.")
    @app_commands.describe(member="The member", participated="Did they take part this week?")
    @is_officer()
    async def mark_weekly(
        self,
        interaction: discord.Interaction,
        member: discord.Member,
        participated: bool = True,
    ) -> None:
        await run_db(
            self.bot.members.mark_weekly_participation,
            str(member.id),
            participated,
            actor_id=str(interaction.user.id),
        )
        verb = "took part in" if participated else "missed"
        await interaction.response.send_message(
            f"✅ **{member.display_name}** {verb} the weekly boss.", ephemeral=True,
        )

    @app_commands.command(name="mark-omni", description="Record omni event attendance.")
    @app_commands.describe(
        member="The member",
        participated="Did they attend?",
        event_date="Event date as YYYY-MM-DD (default: today)",
    )
    @is_officer()
    async def mark_omni(
        self,
        interaction: discord.Interaction,
        member: discord.Member,
        participated: bool,
        event_date: str | None = None,
    ) -> None:
        updated = await run_db(
            self.bot.members.mark_omni_participation,
            str(member.id),
            participated,
            _parse_date(event_date),
            actor_id=str(interaction.user.id),
        )
        if participated:
            msg = f"✅ **{member.display_name}** attended the omni event."
        else:
            msg = (
                f"📝 **{member.display_name}** missed the omni event "
                f"({updated.omni_absence_count} absence(s))."
            )
        await interaction.response.send_message(msg, ephemeral=True)

    # -------------------------------------------------------------------
    # Error handler
    # -------------------------------------------------------------------
    async def cog_app_command_error(
        self, interaction: discord.Interaction, error: app_commands.AppCommandError
    ) -> None:
        await handle_app_command_error(interaction, error)


async def setup(bot: LinkKeeperBot) -> None:
    await bot.add_cog(Members(bot))
