"""
linkkeeper.bot.cogs.tasks — Periodic Background Tasks
=======================================================

- **List refresh** — hourly, rebuilds both eligible sets so tenure
  milestones and participation changes show up without an officer running
  /refresh-lists.

Runs via ``run_db()`` so the event loop never blocks on the database.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from discord.ext import commands, tasks

from linkkeeper.database.engine import run_db
from linkkeeper.errors import LinkKeeperError

if TYPE_CHECKING:
    from linkkeeper.bot.core import LinkKeeperBot

logger = logging.getLogger(__name__)


class PeriodicTasks(commands.Cog):
    """Cog for scheduled background maintenance tasks."""

    def __init__(self, bot: LinkKeeperBot) -> None:
        self.bot = bot

    async def cog_load(self) -> None:
        self.refresh_loop.start()

    async def cog_unload(self) -> None:
        self.refresh_loop.cancel()

    @tasks.loop(hours=1)
    async def refresh_loop(self):
        """Rebuild the silver and gold eligible sets."""
        try:
            statuses = await run_db(self.bot.distribution.refresh_all)
        except LinkKeeperError:
            logger.exception("List refresh failed", extra={"task": "refresh"})
            return
        logger.info(
            "List refresh complete: %s",
            ", ".join(f"{t.value}={s.eligible_count} eligible" for t, s in statuses.items()),
        )

    @refresh_loop.before_loop
    async def _wait_refresh(self):
        await self.bot.wait_until_ready()


async def setup(bot: LinkKeeperBot) -> None:
    await bot.add_cog(PeriodicTasks(bot))
