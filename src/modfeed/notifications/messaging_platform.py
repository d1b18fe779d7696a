"""
Messaging platform boundary.

The dispatcher only knows ``MessagingPlatform.send_message``; the Discord
implementation translates py-cord exceptions into ``PlatformError`` kinds so
retry policy never has to inspect library exceptions.
"""

from __future__ import annotations

import asyncio
from typing import Protocol

import aiohttp
import discord

from modfeed.datatypes.discord_datatypes import ChannelID, MessageID, RoleID
from modfeed.errors import DeliveryErrorKind, PlatformError
from modfeed.util.logger import get_logger

logger = get_logger("messaging_platform")


class MessagingPlatform(Protocol):
    async def send_message(
        self,
        channel_id: ChannelID,
        embed: discord.Embed,
        *,
        role_id: RoleID | None = None,
    ) -> MessageID:
        """Send one message; raise PlatformError on failure."""
        ...


def _retry_after(exc: discord.HTTPException) -> float | None:
    response = getattr(exc, "response", None)
    headers = getattr(response, "headers", None)
    if not headers:
        return None
    value = headers.get("Retry-After")
    try:
        return float(value) if value is not None else None
    except (TypeError, ValueError):
        return None


def classify_exception(exc: BaseException) -> PlatformError:
    """Map a py-cord / transport exception onto a PlatformError."""
    if isinstance(exc, PlatformError):
        return exc
    if isinstance(exc, discord.Forbidden):
        return PlatformError(DeliveryErrorKind.FORBIDDEN, str(exc))
    if isinstance(exc, discord.NotFound):
        return PlatformError(DeliveryErrorKind.NOT_FOUND, str(exc))
    if isinstance(exc, discord.HTTPException):
        if exc.status == 429:
            return PlatformError(DeliveryErrorKind.RATE_LIMITED, str(exc), retry_after=_retry_after(exc))
        return PlatformError(DeliveryErrorKind.TRANSIENT, f"HTTP {exc.status}: {exc}")
    if isinstance(exc, (aiohttp.ClientError, asyncio.TimeoutError, OSError)):
        return PlatformError(DeliveryErrorKind.TRANSIENT, f"{type(exc).__name__}: {exc}")
    return PlatformError(DeliveryErrorKind.TRANSIENT, f"Unexpected {type(exc).__name__}: {exc}")


class DiscordMessagingPlatform:
    """Sends notifications through a py-cord client."""

    def __init__(self, bot: discord.Client) -> None:
        self.bot = bot

    async def _resolve_channel(self, channel_id: ChannelID) -> discord.abc.Messageable:
        channel = self.bot.get_channel(channel_id.to_int())
        if channel is None:
            channel = await self.bot.fetch_channel(channel_id.to_int())
        if not isinstance(channel, discord.abc.Messageable):
            raise PlatformError(
                DeliveryErrorKind.NOT_FOUND,
                f"Channel {channel_id} cannot receive messages",
            )
        return channel

    async def send_message(
        self,
        channel_id: ChannelID,
        embed: discord.Embed,
        *,
        role_id: RoleID | None = None,
    ) -> MessageID:
        content = f"<@&{role_id.to_int()}>" if role_id is not None else None
        # Only the configured role may be pinged; portal text can never mention anyone
        allowed = discord.AllowedMentions(
            everyone=False,
            users=False,
            roles=[discord.Object(id=role_id.to_int())] if role_id is not None else False,
        )

        try:
            channel = await self._resolve_channel(channel_id)
            message = await channel.send(content=content, embed=embed, allowed_mentions=allowed)
        except asyncio.CancelledError:
            raise
        except Exception as exc:
            error = classify_exception(exc)
            logger.debug("[DISCORD] Send to channel %s failed: %r", channel_id, error)
            raise error from exc

        return MessageID(message.id)
