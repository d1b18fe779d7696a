import asyncio
from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock

import aiohttp
import discord
import pytest

from modfeed.datatypes.discord_datatypes import ChannelID, MessageID, RoleID
from modfeed.errors import DeliveryErrorKind, PlatformError
from modfeed.notifications.messaging_platform import DiscordMessagingPlatform, classify_exception


def http_response(status, reason="", headers=None):
    return MagicMock(status=status, reason=reason, headers=headers or {})


def text_channel(send_result=None, send_error=None):
    channel = MagicMock(spec=discord.TextChannel)
    channel.send = AsyncMock(return_value=send_result or SimpleNamespace(id=77), side_effect=send_error)
    return channel


def make_bot(channel=None, fetch_result=None, fetch_error=None):
    bot = MagicMock()
    bot.get_channel.return_value = channel
    bot.fetch_channel = AsyncMock(return_value=fetch_result, side_effect=fetch_error)
    return bot


@pytest.mark.asyncio
async def test_send_message_uses_cached_channel_and_mentions_role():
    channel = text_channel()
    platform = DiscordMessagingPlatform(make_bot(channel))
    embed = discord.Embed(title="Updated mod:\nBig Bertha")

    message_id = await platform.send_message(ChannelID(10), embed, role_id=RoleID(55))

    assert message_id == MessageID(77)
    kwargs = channel.send.await_args.kwargs
    assert kwargs["content"] == "<@&55>"
    assert kwargs["embed"] is embed
    allowed = kwargs["allowed_mentions"]
    assert allowed.everyone is False
    assert allowed.users is False
    assert [role.id for role in allowed.roles] == [55]


@pytest.mark.asyncio
async def test_send_message_without_role_mentions_nobody():
    channel = text_channel()
    platform = DiscordMessagingPlatform(make_bot(channel))

    await platform.send_message(ChannelID(10), discord.Embed())

    kwargs = channel.send.await_args.kwargs
    assert kwargs["content"] is None
    assert kwargs["allowed_mentions"].roles is False


@pytest.mark.asyncio
async def test_send_message_fetches_uncached_channel():
    channel = text_channel()
    bot = make_bot(None, fetch_result=channel)
    platform = DiscordMessagingPlatform(bot)

    await platform.send_message(ChannelID(10), discord.Embed())

    bot.fetch_channel.assert_awaited_once_with(10)
    channel.send.assert_awaited_once()


@pytest.mark.asyncio
async def test_missing_channel_maps_to_not_found():
    error = discord.NotFound(http_response(404, "Not Found"), "Unknown Channel")
    platform = DiscordMessagingPlatform(make_bot(None, fetch_error=error))

    with pytest.raises(PlatformError) as exc_info:
        await platform.send_message(ChannelID(10), discord.Embed())

    assert exc_info.value.kind is DeliveryErrorKind.NOT_FOUND


@pytest.mark.asyncio
async def test_forbidden_send_maps_to_forbidden():
    error = discord.Forbidden(http_response(403, "Forbidden"), "Missing Access")
    platform = DiscordMessagingPlatform(make_bot(text_channel(send_error=error)))

    with pytest.raises(PlatformError) as exc_info:
        await platform.send_message(ChannelID(10), discord.Embed())

    assert exc_info.value.kind is DeliveryErrorKind.FORBIDDEN


@pytest.mark.asyncio
async def test_non_messageable_channel_is_not_found():
    not_messageable = SimpleNamespace(id=10)
    platform = DiscordMessagingPlatform(make_bot(not_messageable))

    with pytest.raises(PlatformError) as exc_info:
        await platform.send_message(ChannelID(10), discord.Embed())

    assert exc_info.value.kind is DeliveryErrorKind.NOT_FOUND


def test_classify_rate_limit_reads_retry_after():
    error = discord.HTTPException(http_response(429, "Too Many Requests", {"Retry-After": "2.5"}), "slow down")

    classified = classify_exception(error)

    assert classified.kind is DeliveryErrorKind.RATE_LIMITED
    assert classified.retry_after == pytest.approx(2.5)


def test_classify_rate_limit_without_header():
    error = discord.HTTPException(http_response(429, "Too Many Requests"), "slow down")

    assert classify_exception(error).retry_after is None


@pytest.mark.parametrize(
    "exc",
    [
        discord.HTTPException(http_response(500, "Internal Server Error"), "oops"),
        discord.HTTPException(http_response(400, "Bad Request"), "bad"),
        aiohttp.ClientConnectionError("reset"),
        asyncio.TimeoutError(),
        ValueError("weird"),
    ],
)
def test_classify_transient(exc):
    assert classify_exception(exc).kind is DeliveryErrorKind.TRANSIENT


def test_classify_passes_platform_errors_through():
    error = PlatformError(DeliveryErrorKind.FORBIDDEN)

    assert classify_exception(error) is error
    assert error.kind.is_permanent
    assert not DeliveryErrorKind.RATE_LIMITED.is_permanent
