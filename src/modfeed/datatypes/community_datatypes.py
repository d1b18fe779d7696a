"""
Per-community notification preferences and subscriptions.

Database schema:
- servers table: server_id, updates_channel, modrole, show_changelog, notify_metadata
- subscribed_mods table: server_id, mod_name
- subscribed_authors table: server_id, author_name
"""

from __future__ import annotations

from dataclasses import dataclass

from modfeed.datatypes.discord_datatypes import ChannelID, GuildID, RoleID


@dataclass(slots=True)
class CommunityConfig:
    """Notification preferences of one community (guild).

    Attributes:
        community_id: Guild the preferences belong to.
        updates_channel_id: Channel receiving notifications; None disables them.
        mod_role_id: Role mentioned in every notification, if any.
        show_changelog: Whether release notes are included in notifications.
        notify_metadata_changes: Opt-in for notifications about metadata-only
            changes (title, summary, category, compatibility).
    """
    community_id: GuildID
    updates_channel_id: ChannelID | None = None
    mod_role_id: RoleID | None = None
    show_changelog: bool = True
    notify_metadata_changes: bool = False

    @property
    def notifications_enabled(self) -> bool:
        return self.updates_channel_id is not None


@dataclass(frozen=True, slots=True)
class ModSubscription:
    community_id: GuildID
    mod_slug: str


@dataclass(frozen=True, slots=True)
class AuthorSubscription:
    community_id: GuildID
    author: str
