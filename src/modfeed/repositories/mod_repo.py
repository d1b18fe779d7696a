"""
Repository for the mods table.

Handles only the mods table. The ModStore is its sole writer.
"""

from __future__ import annotations

from typing import Dict, Iterable

import aiosqlite

from modfeed.datatypes.mod_datatypes import ModRecord

_COLUMNS = "name, title, owner, summary, category, downloads_count, factorio_version, version, released_at"


def _row_to_record(row) -> ModRecord:
    return ModRecord(
        slug=row[0],
        title=row[1] or "",
        owner=row[2],
        summary=row[3] or "",
        category=row[4],
        downloads_count=int(row[5]),
        factorio_version=row[6] or "",
        version=row[7] or "",
        released_at=int(row[8]),
    )


class ModRepository:
    """CRUD for the mods table only."""

    async def get(self, conn: aiosqlite.Connection, slug: str) -> ModRecord | None:
        """Fetch a single mod by slug."""
        async with conn.execute(f"SELECT {_COLUMNS} FROM mods WHERE name = ?", (slug,)) as cursor:
            row = await cursor.fetchone()
        return None if row is None else _row_to_record(row)

    async def get_all(self, conn: aiosqlite.Connection) -> Dict[str, ModRecord]:
        """Fetch every mod keyed by slug."""
        async with conn.execute(f"SELECT {_COLUMNS} FROM mods") as cursor:
            rows = await cursor.fetchall()
        return {row[0]: _row_to_record(row) for row in rows}

    async def count(self, conn: aiosqlite.Connection) -> int:
        async with conn.execute("SELECT COUNT(*) FROM mods") as cursor:
            row = await cursor.fetchone()
        return int(row[0]) if row else 0

    async def upsert_many(self, conn: aiosqlite.Connection, records: Iterable[ModRecord]) -> int:
        """Insert or update mods in bulk. Returns the number of rows written."""
        params = [
            (
                record.slug,
                record.title,
                record.owner,
                record.summary,
                record.category,
                record.downloads_count,
                record.factorio_version,
                record.version,
                record.released_at,
            )
            for record in records
        ]
        if not params:
            return 0

        await conn.executemany(
            f"""
            INSERT INTO mods ({_COLUMNS}) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)
            ON CONFLICT(name) DO UPDATE SET
                title            = excluded.title,
                owner            = excluded.owner,
                summary          = excluded.summary,
                category         = excluded.category,
                downloads_count  = excluded.downloads_count,
                factorio_version = excluded.factorio_version,
                version          = excluded.version,
                released_at      = excluded.released_at
            """,
            params,
        )
        return len(params)
