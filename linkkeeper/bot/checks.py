"""
linkkeeper.bot.checks — Shared slash-command checks & error replies
====================================================================
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

import discord
from discord import app_commands

from linkkeeper.errors import LinkKeeperError, StoreUnavailable
from linkkeeper.services.embeds import build_error_embed

if TYPE_CHECKING:
    from linkkeeper.bot.core import LinkKeeperBot

logger = logging.getLogger(__name__)


def is_officer():
    """Decorator that checks if the user has the configured officer role."""
    async def predicate(interaction: discord.Interaction) -> bool:
        bot: LinkKeeperBot = interaction.client  # type: ignore[assignment]
        if not interaction.user or not hasattr(interaction.user, "roles"):
            return False
        officer_role_id = bot.cfg.officer_role_id
        return any(role.id == officer_role_id for role in interaction.user.roles)
    return app_commands.check(predicate)


async def _send(interaction: discord.Interaction, **kwargs) -> None:
    if interaction.response.is_done():
        await interaction.followup.send(ephemeral=True, **kwargs)
    else:
        await interaction.response.send_message(ephemeral=True, **kwargs)


async def handle_app_command_error(
    interaction: discord.Interaction, error: app_commands.AppCommandError
) -> None:
    """Common ``cog_app_command_error`` body for LinkKeeper cogs."""
    if isinstance(error, app_commands.CheckFailure):
        await _send(interaction, content="🔒 You need the Maester role to use this command.")
        return

    original = getattr(error, "original", error)
    if isinstance(original, LinkKeeperError):
        if isinstance(original, StoreUnavailable):
            logger.error("Command %s failed: %s", interaction.command and interaction.command.name, original)
        await _send(interaction, embed=build_error_embed(original))
        return
    if isinstance(original, ValueError):
        await _send(interaction, content=f"❌ {original}")
        return

    raise error
