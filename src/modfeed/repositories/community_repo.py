"""
Repository for the servers table (per-community notification preferences).
"""

from __future__ import annotations

from typing import List

import aiosqlite

from modfeed.datatypes.community_datatypes import CommunityConfig
from modfeed.datatypes.discord_datatypes import ChannelID, GuildID, RoleID

_COLUMNS = "server_id, updates_channel, modrole, show_changelog, notify_metadata"


def _row_to_config(row) -> CommunityConfig:
    return CommunityConfig(
        community_id=GuildID(row[0]),
        updates_channel_id=ChannelID.optional(row[1]),
        mod_role_id=RoleID.optional(row[2]),
        # NULL means the server never touched the setting; changelogs default on
        show_changelog=True if row[3] is None else bool(row[3]),
        notify_metadata_changes=bool(row[4]),
    )


class CommunityRepository:
    """CRUD for the servers table only."""

    async def get(self, conn: aiosqlite.Connection, community_id: GuildID) -> CommunityConfig | None:
        async with conn.execute(
            f"SELECT {_COLUMNS} FROM servers WHERE server_id = ?",
            (community_id.to_int(),),
        ) as cursor:
            row = await cursor.fetchone()
        return None if row is None else _row_to_config(row)

    async def get_all(self, conn: aiosqlite.Connection) -> List[CommunityConfig]:
        async with conn.execute(f"SELECT {_COLUMNS} FROM servers ORDER BY server_id") as cursor:
            rows = await cursor.fetchall()
        return [_row_to_config(row) for row in rows]

    async def upsert(self, conn: aiosqlite.Connection, config: CommunityConfig) -> None:
        """Insert or update a community's preferences row."""
        await conn.execute(
            f"""
            INSERT INTO servers ({_COLUMNS}) VALUES (?, ?, ?, ?, ?)
            ON CONFLICT(server_id) DO UPDATE SET
                updates_channel = excluded.updates_channel,
                modrole         = excluded.modrole,
                show_changelog  = excluded.show_changelog,
                notify_metadata = excluded.notify_metadata
            """,
            (
                config.community_id.to_int(),
                config.updates_channel_id.to_int() if config.updates_channel_id else None,
                config.mod_role_id.to_int() if config.mod_role_id else None,
                1 if config.show_changelog else 0,
                1 if config.notify_metadata_changes else 0,
            ),
        )

    async def delete(self, conn: aiosqlite.Connection, community_id: GuildID) -> None:
        await conn.execute("DELETE FROM servers WHERE server_id = ?", (community_id.to_int(),))
