"""
Database initialization for SQLite.

The Database class owns the startup and shutdown of the shared connection
and schema creation. Reads and writes go through the repositories in
``modfeed.repositories`` using ``db_connection.read()`` /
``db_connection.transaction()``.
"""

from __future__ import annotations

from pathlib import Path

import aiosqlite

from modfeed.configuration.app_configuration import app_config
from modfeed.database.db_connection import ConnectionManager, db_connection
from modfeed.database.db_schema import SchemaManager
from modfeed.util.logger import get_logger

logger = get_logger("database")


class Database:
    """
    Central database coordinator.

    Lifecycle:
        1. Call initialize() at program startup
        2. Use repositories through the connection manager
        3. Call shutdown() at program end
    """

    def __init__(self, db_path: Path | None = None, connection: ConnectionManager | None = None):
        """
        Args:
            db_path: Path to the SQLite database file (defaults to the configured path)
            connection: Connection manager to open (defaults to the shared one)
        """
        self.db_path = db_path or app_config.database_path
        self.connection = connection or db_connection
        self._initialized = False

    async def initialize(self) -> bool:
        """
        Open the connection and create the schema.

        Returns:
            True if initialization succeeded, False otherwise
        """
        if self._initialized:
            logger.debug("[DATABASE] Already initialized, skipping")
            return True

        try:
            await self.connection.open(self.db_path)
            await SchemaManager.initialize_schema(self.connection.connection)
        except (aiosqlite.Error, OSError) as exc:
            logger.error("[DATABASE] Database initialization failed: %s", exc)
            await self.connection.close()
            return False

        self._initialized = True
        logger.info("[DATABASE] Database initialized at %s", self.db_path)
        return True

    async def shutdown(self) -> None:
        """Flush and close the connection."""
        if not self._initialized:
            return

        await self.connection.close()
        self._initialized = False
        logger.info("[DATABASE] Database shutdown complete")


# Global Database instance
database = Database()
