"""
Builds the Discord embed announcing one change event to one community.
"""

from __future__ import annotations

import discord

from modfeed.datatypes.community_datatypes import CommunityConfig
from modfeed.datatypes.mod_datatypes import ChangeEvent, ChangeKind
from modfeed.datatypes.notification_datatypes import OutboundMessage
from modfeed.util.format_utils import escape_formatting, truncate_for_embed

TITLE_LIMIT = 256
DESCRIPTION_LIMIT = 4096

_TITLE_PREFIXES = {
    ChangeKind.CREATED: "New mod:",
    ChangeKind.VERSION_BUMPED: "Updated mod:",
    ChangeKind.METADATA_CHANGED: "Mod details changed:",
}

_COLOURS = {
    ChangeKind.CREATED: discord.Colour(0x2ECC71),
    ChangeKind.VERSION_BUMPED: discord.Colour(0x5865F2),
    ChangeKind.METADATA_CHANGED: discord.Colour.gold(),
}


class MessageFormatter:
    """Formats change events according to each community's preferences."""

    def __init__(self, base_url: str = "https://mods.factorio.com") -> None:
        self.base_url = base_url.rstrip("/")

    def mod_url(self, slug: str) -> str:
        return f"{self.base_url}/mod/{slug.replace(' ', '%20')}"

    def author_url(self, author: str) -> str:
        return f"{self.base_url}/user/{author}"

    def build_embed(self, event: ChangeEvent, show_changelog: bool) -> discord.Embed:
        """
        Build the notification embed for ``event``.

        The release notes only become the description when ``show_changelog``
        is set; everything else is identical for all communities.
        """
        title = f"{_TITLE_PREFIXES[event.kind]}\n{escape_formatting(event.title)}"
        description = event.changelog if show_changelog and event.changelog else None

        embed = discord.Embed(
            title=truncate_for_embed(title, TITLE_LIMIT),
            url=self.mod_url(event.slug),
            colour=_COLOURS[event.kind],
            description=truncate_for_embed(description, DESCRIPTION_LIMIT) if description else None,
        )
        embed.add_field(
            name="**Author**",
            value=f"{escape_formatting(event.owner)} ([more]({self.author_url(event.owner)}))",
            inline=True,
        )
        embed.add_field(name="**Version**", value=event.new_version or "unknown", inline=True)
        if event.thumbnail:
            embed.set_thumbnail(url=event.thumbnail)
        return embed

    def format(self, event: ChangeEvent, community: CommunityConfig) -> OutboundMessage:
        """
        Produce the message for one (event, community) pair.

        Raises:
            ValueError: If the community has no notification channel.
        """
        if community.updates_channel_id is None:
            raise ValueError(f"Community {community.community_id} has no updates channel")

        return OutboundMessage(
            community_id=community.community_id,
            channel_id=community.updates_channel_id,
            event=event,
            embed=self.build_embed(event, community.show_changelog),
            role_id=community.mod_role_id,
        )
