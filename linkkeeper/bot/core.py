"""
linkkeeper.bot.core — Bot Instance & Cog Loader
================================================

Defines :class:`LinkKeeperBot`, a ``commands.Bot`` subclass that:

1. Carries the shared config (``bot.cfg``), DB engine (``bot.engine``) and
   the services (``bot.distribution``, ``bot.members``, ``bot.inventory``)
   so every Cog reaches them through ``self.bot``.
2. Loads every Cog listed in :data:`EXTENSIONS`.
3. Makes sure both tier lists exist before the first command runs.
4. Syncs the slash-command tree on ready (guild-scoped when ``DEV_GUILD_ID``
   is set, global otherwise).
"""

from __future__ import annotations

import logging
import os

import discord
from discord.ext import commands
from sqlalchemy import Engine

from linkkeeper.config import LinkKeeperConfig
from linkkeeper.database.engine import run_db
from linkkeeper.services.distribution_service import DistributionEngine
from linkkeeper.services.inventory_service import InventoryService
from linkkeeper.services.member_service import MemberService

logger = logging.getLogger(__name__)

# Cog modules to load on startup.
EXTENSIONS: list[str] = [
    "linkkeeper.bot.cogs.members",
    "linkkeeper.bot.cogs.distribution",
    "linkkeeper.bot.cogs.inventory",
    "linkkeeper.bot.cogs.tasks",
]


class LinkKeeperBot(commands.Bot):
    """Custom Bot subclass that carries project-wide state.

    Parameters
    ----------
    cfg:
        The parsed :class:`LinkKeeperConfig` from ``config.yaml``.
    engine:
        A SQLAlchemy :class:`Engine` connected to PostgreSQL.
    """

    def __init__(self, cfg: LinkKeeperConfig, engine: Engine) -> None:
        intents = discord.Intents.default()
        intents.members = True  # Privileged: role checks and avatar lookups

        super().__init__(
            command_prefix=cfg.bot_prefix,
            intents=intents,
            description=f"{cfg.guild_name} — {cfg.guild_motto}",
        )

        self.cfg = cfg
        self.engine = engine
        self.distribution = DistributionEngine(engine, cfg.rules)
        self.members = MemberService(engine, cfg.rules, distribution=self.distribution)
        self.inventory = InventoryService(engine, clock=self.distribution.now)

    # -----------------------------------------------------------------------
    # Lifecycle hooks
    # -----------------------------------------------------------------------
    async def setup_hook(self) -> None:
        """Load Cog extensions and make sure both tier lists exist.

        A broken Cog is logged and skipped; the rest still load.
        """
        for ext in EXTENSIONS:
            try:
                await self.load_extension(ext)
                logger.info("Loaded extension: %s", ext)
            except Exception as exc:
                logger.error("Failed to load extension %s: %s", ext, exc)

        created = await run_db(self.distribution.initialize_lists)
        if created:
            logger.info("Initialized distribution lists: %s", ", ".join(t.value for t in created))

    async def on_ready(self) -> None:
        """Fired when the bot has connected and the cache is populated."""
        assert self.user is not None  # guaranteed after on_ready
        logger.info("Logged in as %s (ID: %s)", self.user.name, self.user.id)

        dev_guild_id = os.getenv("DEV_GUILD_ID")
        if dev_guild_id:
            guild = discord.Object(id=int(dev_guild_id))
            self.tree.copy_global_to(guild=guild)
            synced = await self.tree.sync(guild=guild)
            logger.info("Synced %d commands to dev guild %s", len(synced), dev_guild_id)
        else:
            synced = await self.tree.sync()
            logger.info("Synced %d commands globally", len(synced))

    async def close(self) -> None:
        logger.info("Bot shutting down…")
        await super().close()

    # -----------------------------------------------------------------------
    # Helpers for cogs
    # -----------------------------------------------------------------------
    def announce_channel(self) -> discord.abc.Messageable | None:
        """The configured announcement channel, if it is visible to the bot."""
        if not self.cfg.announce_channel_id:
            return None
        channel = self.get_channel(self.cfg.announce_channel_id)
        if channel is None:
            logger.warning(
                "Announce channel %d not found — replying in place",
                self.cfg.announce_channel_id,
            )
        return channel

    def avatar_for(self, discord_id: str) -> str | None:
        guild = self.get_guild(self.cfg.guild_id)
        if guild is None:
            return None
        member = guild.get_member(int(discord_id))
        return member.display_avatar.url if member else None
