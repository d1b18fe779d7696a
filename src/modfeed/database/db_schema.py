"""
Database schema initialization and migration management.

Handles creation of tables, indexes, and schema version tracking.
"""

import aiosqlite
from modfeed.util.logger import get_logger

logger = get_logger("database_schema")

SCHEMA_VERSION = 3


class SchemaManager:
    """Creates and upgrades the mods, servers and subscription tables."""

    @staticmethod
    async def initialize_schema(db: aiosqlite.Connection) -> None:
        """
        Create or update all database tables and indexes.

        Args:
            db: Open database connection
        """
        await SchemaManager._create_tables(db)
        await SchemaManager._migrate(db)
        await SchemaManager._create_indexes(db)
        await SchemaManager._update_schema_version(db)
        await db.commit()
        logger.info("[SCHEMA] Database schema initialized (version %d)", SCHEMA_VERSION)

    @staticmethod
    async def _create_tables(db: aiosqlite.Connection) -> None:
        """Create all required database tables."""
        # Last observed state of every mod on the portal
        await db.execute("""
            CREATE TABLE IF NOT EXISTS mods (
                name TEXT PRIMARY KEY NOT NULL,
                title TEXT,
                owner TEXT NOT NULL,
                summary TEXT,
                category TEXT NOT NULL,
                downloads_count INTEGER NOT NULL,
                factorio_version TEXT,
                version TEXT,
                released_at INTEGER NOT NULL
            )
        """)

        # Per-server notification preferences
        await db.execute("""
            CREATE TABLE IF NOT EXISTS servers (
                server_id INTEGER PRIMARY KEY NOT NULL,
                updates_channel INTEGER,
                modrole INTEGER,
                show_changelog INTEGER,
                notify_metadata INTEGER NOT NULL DEFAULT 0
            )
        """)

        await db.execute("""
            CREATE TABLE IF NOT EXISTS subscribed_mods (
                server_id INTEGER NOT NULL,
                mod_name TEXT NOT NULL
            )
        """)

        await db.execute("""
            CREATE TABLE IF NOT EXISTS subscribed_authors (
                server_id INTEGER NOT NULL,
                author_name TEXT NOT NULL
            )
        """)

        await db.execute("""
            CREATE TABLE IF NOT EXISTS schema_version (
                version INTEGER PRIMARY KEY,
                applied_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
            )
        """)

    @staticmethod
    async def _migrate(db: aiosqlite.Connection) -> None:
        """Bring databases created by older versions up to date."""
        async with db.execute("PRAGMA table_info(servers)") as cursor:
            columns = {row[1] for row in await cursor.fetchall()}
        if "notify_metadata" not in columns:
            await db.execute(
                "ALTER TABLE servers ADD COLUMN notify_metadata INTEGER NOT NULL DEFAULT 0"
            )
            logger.info("[SCHEMA] Added notify_metadata column to servers")

        # Unique indexes below need duplicate-free tables
        await db.execute("""
            DELETE FROM subscribed_mods WHERE rowid NOT IN (
                SELECT MIN(rowid) FROM subscribed_mods GROUP BY server_id, mod_name
            )
        """)
        await db.execute("""
            DELETE FROM subscribed_authors WHERE rowid NOT IN (
                SELECT MIN(rowid) FROM subscribed_authors GROUP BY server_id, author_name
            )
        """)

    @staticmethod
    async def _create_indexes(db: aiosqlite.Connection) -> None:
        """Create indexes for the dispatch-time lookups."""
        await db.execute("CREATE UNIQUE INDEX IF NOT EXISTS idx_subscribed_mods_pair ON subscribed_mods(server_id, mod_name)")
        await db.execute("CREATE UNIQUE INDEX IF NOT EXISTS idx_subscribed_authors_pair ON subscribed_authors(server_id, author_name)")
        await db.execute("CREATE INDEX IF NOT EXISTS idx_subscribed_mods_name ON subscribed_mods(mod_name)")
        await db.execute("CREATE INDEX IF NOT EXISTS idx_subscribed_authors_name ON subscribed_authors(author_name)")
        await db.execute("CREATE INDEX IF NOT EXISTS idx_mods_owner ON mods(owner)")

    @staticmethod
    async def _update_schema_version(db: aiosqlite.Connection) -> None:
        """Update schema version tracking."""
        await db.execute("INSERT OR IGNORE INTO schema_version (version) VALUES (?)", (SCHEMA_VERSION,))
