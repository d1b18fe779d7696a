"""
CommunitySettingsService: edits and loads per-community notification state.

Responsibilities:
- Read-modify-write of a community's preferences row in one transaction
- Subscribe / unsubscribe mods and authors
- Delete everything a community owns when the bot leaves it
- Build the SubscriptionIndex for a poll cycle from one read pass

All SQL lives in the repositories; this layer only handles transactions and
per-community locks.
"""

from __future__ import annotations

import asyncio
from dataclasses import replace
from typing import Any, Dict

from modfeed.database.db_connection import ConnectionManager, db_connection
from modfeed.datatypes.community_datatypes import CommunityConfig
from modfeed.datatypes.discord_datatypes import ChannelID, GuildID, RoleID
from modfeed.notifications.subscription_index import SubscriptionIndex
from modfeed.repositories import CommunityRepository, SubscriptionRepository
from modfeed.util.logger import get_logger

logger = get_logger("community_settings_service")


class CommunitySettingsService:
    """Orchestrates the servers and subscription repositories."""

    def __init__(self, connection: ConnectionManager | None = None) -> None:
        self._connection = connection or db_connection
        self._community_repo = CommunityRepository()
        self._subscription_repo = SubscriptionRepository()
        # Per-community locks: concurrent communities don't block each other
        self._per_community_locks: Dict[int, asyncio.Lock] = {}

    def _lock_for(self, community_id: GuildID) -> asyncio.Lock:
        cid = community_id.to_int()
        if cid not in self._per_community_locks:
            self._per_community_locks[cid] = asyncio.Lock()
        return self._per_community_locks[cid]

    # ------------------------------------------------------------------
    # Preferences
    # ------------------------------------------------------------------

    async def get_config(self, community_id: GuildID) -> CommunityConfig:
        """Stored preferences, or the defaults if the community has none yet."""
        async with self._connection.read() as conn:
            config = await self._community_repo.get(conn, community_id)
        return config or CommunityConfig(community_id=community_id)

    async def _update(self, community_id: GuildID, **changes: Any) -> bool:
        async with self._lock_for(community_id):
            try:
                async with self._connection.transaction() as conn:
                    current = await self._community_repo.get(conn, community_id)
                    current = current or CommunityConfig(community_id=community_id)
                    await self._community_repo.upsert(conn, replace(current, **changes))
            except Exception:
                logger.exception(
                    "[COMMUNITY SETTINGS] Failed to update %s for community %s",
                    ", ".join(changes), community_id,
                )
                return False

        logger.debug("[COMMUNITY SETTINGS] Community %s updated: %s", community_id, changes)
        return True

    async def set_updates_channel(self, community_id: GuildID, channel_id: ChannelID | None) -> bool:
        """Set (or with None, clear) the notification channel."""
        return await self._update(community_id, updates_channel_id=channel_id)

    async def set_mod_role(self, community_id: GuildID, role_id: RoleID | None) -> bool:
        return await self._update(community_id, mod_role_id=role_id)

    async def set_show_changelog(self, community_id: GuildID, enabled: bool) -> bool:
        return await self._update(community_id, show_changelog=enabled)

    async def set_notify_metadata_changes(self, community_id: GuildID, enabled: bool) -> bool:
        return await self._update(community_id, notify_metadata_changes=enabled)

    # ------------------------------------------------------------------
    # Subscriptions
    # ------------------------------------------------------------------

    async def subscribe_mod(self, community_id: GuildID, mod_slug: str) -> bool:
        async with self._lock_for(community_id):
            try:
                async with self._connection.transaction() as conn:
                    await self._subscription_repo.add_mod(conn, community_id, mod_slug)
            except Exception:
                logger.exception("[COMMUNITY SETTINGS] Failed to subscribe %s to mod %s", community_id, mod_slug)
                return False
        return True

    async def unsubscribe_mod(self, community_id: GuildID, mod_slug: str) -> bool:
        """Returns True if a subscription was removed."""
        async with self._lock_for(community_id):
            try:
                async with self._connection.transaction() as conn:
                    return await self._subscription_repo.remove_mod(conn, community_id, mod_slug)
            except Exception:
                logger.exception("[COMMUNITY SETTINGS] Failed to unsubscribe %s from mod %s", community_id, mod_slug)
                return False

    async def subscribe_author(self, community_id: GuildID, author: str) -> bool:
        async with self._lock_for(community_id):
            try:
                async with self._connection.transaction() as conn:
                    await self._subscription_repo.add_author(conn, community_id, author)
            except Exception:
                logger.exception("[COMMUNITY SETTINGS] Failed to subscribe %s to author %s", community_id, author)
                return False
        return True

    async def unsubscribe_author(self, community_id: GuildID, author: str) -> bool:
        """Returns True if a subscription was removed."""
        async with self._lock_for(community_id):
            try:
                async with self._connection.transaction() as conn:
                    return await self._subscription_repo.remove_author(conn, community_id, author)
            except Exception:
                logger.exception("[COMMUNITY SETTINGS] Failed to unsubscribe %s from author %s", community_id, author)
                return False

    async def list_subscriptions(self, community_id: GuildID) -> tuple[list[str], list[str]]:
        """Subscribed mod slugs and authors of one community."""
        async with self._connection.read() as conn:
            mods = await self._subscription_repo.get_mods_for(conn, community_id)
            authors = await self._subscription_repo.get_authors_for(conn, community_id)
        return mods, authors

    # ------------------------------------------------------------------
    # Delete
    # ------------------------------------------------------------------

    async def clear_community(self, community_id: GuildID) -> bool:
        """Delete the preferences and every subscription of a community."""
        async with self._lock_for(community_id):
            try:
                async with self._connection.transaction() as conn:
                    await self._community_repo.delete(conn, community_id)
                    await self._subscription_repo.delete_for(conn, community_id)
            except Exception:
                logger.exception("[COMMUNITY SETTINGS] Failed to delete community %s", community_id)
                return False

        self._per_community_locks.pop(community_id.to_int(), None)
        logger.info("[COMMUNITY SETTINGS] Deleted all data for community %s", community_id)
        return True

    # ------------------------------------------------------------------
    # Dispatch-time snapshot
    # ------------------------------------------------------------------

    async def load_subscription_index(self) -> SubscriptionIndex:
        """Read preferences and subscriptions in one pass and index them."""
        async with self._connection.read() as conn:
            configs = await self._community_repo.get_all(conn)
            mod_subs = await self._subscription_repo.get_all_mod_subscriptions(conn)
            author_subs = await self._subscription_repo.get_all_author_subscriptions(conn)

        index = SubscriptionIndex.build(configs, mod_subs, author_subs)
        logger.debug(
            "[COMMUNITY SETTINGS] Indexed %d communities, %d mod and %d author subscriptions",
            len(configs), len(mod_subs), len(author_subs),
        )
        return index


# Singleton
community_settings_service = CommunitySettingsService()
