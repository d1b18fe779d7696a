"""
Persisted last-known state of every mod.

The store keeps an immutable in-memory snapshot of the mods table. Readers
(the diff workers) get the snapshot and never see a partially applied commit:
``commit()`` writes all staged records in one transaction and only swaps the
snapshot after the transaction has committed.
"""

from __future__ import annotations

import asyncio
from types import MappingProxyType
from typing import Iterable, Mapping

import aiosqlite

from modfeed.database.db_connection import ConnectionManager
from modfeed.datatypes.mod_datatypes import ModRecord
from modfeed.errors import PersistenceError
from modfeed.repositories.mod_repo import ModRepository
from modfeed.util.logger import get_logger

logger = get_logger("mod_store")


class ModStore:
    """Single writer of the mods table, shared reader snapshot."""

    def __init__(self, connection: ConnectionManager, repository: ModRepository | None = None) -> None:
        self._connection = connection
        self._repo = repository or ModRepository()
        self._snapshot: Mapping[str, ModRecord] = MappingProxyType({})
        self._commit_lock = asyncio.Lock()

    async def load(self) -> int:
        """Load every stored mod into the snapshot. Returns the number loaded."""
        try:
            async with self._connection.read() as conn:
                records = await self._repo.get_all(conn)
        except aiosqlite.Error as exc:
            raise PersistenceError(f"Failed to load mods: {exc}") from exc

        self._snapshot = MappingProxyType(records)
        logger.info("[MOD STORE] Loaded %d mods", len(records))
        return len(records)

    def snapshot(self) -> Mapping[str, ModRecord]:
        """Read-only view of the last committed state."""
        return self._snapshot

    def get(self, slug: str) -> ModRecord | None:
        return self._snapshot.get(slug)

    def __len__(self) -> int:
        return len(self._snapshot)

    @property
    def is_empty(self) -> bool:
        return not self._snapshot

    async def commit(self, upserts: Iterable[ModRecord]) -> int:
        """
        Persist staged records atomically.

        Either every record is written or none is; on failure the snapshot
        is left untouched.

        Returns:
            Number of records written.

        Raises:
            PersistenceError: If the transaction could not be committed.
        """
        staged = list(upserts)
        if not staged:
            return 0

        async with self._commit_lock:
            try:
                async with self._connection.transaction() as conn:
                    written = await self._repo.upsert_many(conn, staged)
            except (aiosqlite.Error, RuntimeError) as exc:
                raise PersistenceError(f"Failed to commit {len(staged)} mods: {exc}") from exc

            updated = dict(self._snapshot)
            for record in staged:
                updated[record.slug] = record
            self._snapshot = MappingProxyType(updated)

        logger.debug("[MOD STORE] Committed %d mods (%d total)", written, len(self._snapshot))
        return written
