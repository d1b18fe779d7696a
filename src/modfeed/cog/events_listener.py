"""Event listener Cog for modfeed.

Handles bot lifecycle events: presence on ready, and cleanup of a
community's notification settings when the bot leaves it.
"""

import discord
from discord.ext import commands

from modfeed.datatypes.discord_datatypes import GuildID
from modfeed.services.community_settings_service import CommunitySettingsService
from modfeed.util.logger import get_logger

logger = get_logger("events_listener")


class EventsListenerCog(commands.Cog):
    """Handles Discord bot lifecycle events."""

    def __init__(self, bot: discord.Bot, settings_service: CommunitySettingsService) -> None:
        self.bot = bot
        self.settings_service = settings_service
        logger.info("[EVENTS LISTENER] Events listener cog loaded")

    @commands.Cog.listener(name="on_ready")
    async def on_ready(self) -> None:
        """Set bot presence."""
        if not self.bot.user:
            logger.warning("[EVENTS LISTENER] Bot partially connected, user info not yet available.")
            return

        await self.bot.change_presence(
            status=discord.Status.online,
            activity=discord.Activity(type=discord.ActivityType.watching, name="the mod portal"),
        )
        logger.info("Bot connected as %s (ID: %s)", self.bot.user, self.bot.user.id)

    @commands.Cog.listener(name="on_guild_remove")
    async def on_guild_remove(self, guild: discord.Guild) -> None:
        """Delete the guild's notification settings and subscriptions."""
        logger.debug("[EVENTS LISTENER] Bot removed from guild: %s (ID: %s)", guild.name, guild.id)

        if await self.settings_service.clear_community(GuildID(guild.id)):
            logger.info("[EVENTS LISTENER] Cleaned up data for guild '%s' (ID: %s)", guild.name, guild.id)
        else:
            logger.error("[EVENTS LISTENER] Failed to clean up data for guild '%s' (ID: %s)", guild.name, guild.id)


def setup(bot: discord.Bot, settings_service: CommunitySettingsService) -> None:
    """Register the EventsListenerCog with the bot."""
    bot.add_cog(EventsListenerCog(bot, settings_service))
