"""
Repository for the subscribed_mods and subscribed_authors tables.

Both tables hold (server_id, name) pairs; inserts ignore pairs that already
exist so subscribing twice is harmless.
"""

from __future__ import annotations

from typing import List

import aiosqlite

from modfeed.datatypes.community_datatypes import AuthorSubscription, ModSubscription
from modfeed.datatypes.discord_datatypes import GuildID


class SubscriptionRepository:
    """CRUD for the two subscription tables."""

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    async def get_all_mod_subscriptions(self, conn: aiosqlite.Connection) -> List[ModSubscription]:
        async with conn.execute("SELECT server_id, mod_name FROM subscribed_mods") as cursor:
            rows = await cursor.fetchall()
        return [ModSubscription(GuildID(row[0]), row[1]) for row in rows]

    async def get_all_author_subscriptions(self, conn: aiosqlite.Connection) -> List[AuthorSubscription]:
        async with conn.execute("SELECT server_id, author_name FROM subscribed_authors") as cursor:
            rows = await cursor.fetchall()
        return [AuthorSubscription(GuildID(row[0]), row[1]) for row in rows]

    async def get_mods_for(self, conn: aiosqlite.Connection, community_id: GuildID) -> List[str]:
        async with conn.execute(
            "SELECT mod_name FROM subscribed_mods WHERE server_id = ? ORDER BY mod_name",
            (community_id.to_int(),),
        ) as cursor:
            rows = await cursor.fetchall()
        return [row[0] for row in rows]

    async def get_authors_for(self, conn: aiosqlite.Connection, community_id: GuildID) -> List[str]:
        async with conn.execute(
            "SELECT author_name FROM subscribed_authors WHERE server_id = ? ORDER BY author_name",
            (community_id.to_int(),),
        ) as cursor:
            rows = await cursor.fetchall()
        return [row[0] for row in rows]

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    async def add_mod(self, conn: aiosqlite.Connection, community_id: GuildID, mod_slug: str) -> None:
        await conn.execute(
            "INSERT OR IGNORE INTO subscribed_mods (server_id, mod_name) VALUES (?, ?)",
            (community_id.to_int(), mod_slug),
        )

    async def remove_mod(self, conn: aiosqlite.Connection, community_id: GuildID, mod_slug: str) -> bool:
        cursor = await conn.execute(
            "DELETE FROM subscribed_mods WHERE server_id = ? AND mod_name = ?",
            (community_id.to_int(), mod_slug),
        )
        return cursor.rowcount > 0

    async def add_author(self, conn: aiosqlite.Connection, community_id: GuildID, author: str) -> None:
        await conn.execute(
            "INSERT OR IGNORE INTO subscribed_authors (server_id, author_name) VALUES (?, ?)",
            (community_id.to_int(), author),
        )

    async def remove_author(self, conn: aiosqlite.Connection, community_id: GuildID, author: str) -> bool:
        cursor = await conn.execute(
            "DELETE FROM subscribed_authors WHERE server_id = ? AND author_name = ?",
            (community_id.to_int(), author),
        )
        return cursor.rowcount > 0

    async def delete_for(self, conn: aiosqlite.Connection, community_id: GuildID) -> None:
        """Drop every subscription of a community."""
        await conn.execute("DELETE FROM subscribed_mods WHERE server_id = ?", (community_id.to_int(),))
        await conn.execute("DELETE FROM subscribed_authors WHERE server_id = ?", (community_id.to_int(),))
