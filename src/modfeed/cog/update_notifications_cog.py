"""Cog that starts the mod update scheduler once the bot is connected."""

from __future__ import annotations

import discord
from discord.ext import commands

from modfeed.scheduler.update_scheduler import UpdateScheduler
from modfeed.util.logger import get_logger

logger = get_logger("update_notifications_cog")


class UpdateNotificationsCog(commands.Cog):
    """Owns the lifecycle hook of the update scheduler."""

    def __init__(self, bot: discord.Bot, scheduler: UpdateScheduler) -> None:
        self.bot = bot
        self.scheduler = scheduler

    @commands.Cog.listener()
    async def on_ready(self) -> None:
        # on_ready fires again after every reconnect
        if self.scheduler.is_running:
            return
        self.scheduler.start()
        logger.info("[MOD UPDATES] Started (interval=%.1fs)", self.scheduler.interval)


def setup(bot: discord.Bot, scheduler: UpdateScheduler) -> None:
    """Register the UpdateNotificationsCog with the bot."""
    bot.add_cog(UpdateNotificationsCog(bot, scheduler))
