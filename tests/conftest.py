"""
Pytest configuration and shared fixtures for modfeed tests.
"""

import asyncio
import sys
from collections import defaultdict
from pathlib import Path

import pytest_asyncio

# Add src directory to path so imports work
src_path = Path(__file__).parent.parent / "src"
sys.path.insert(0, str(src_path))

from modfeed.database.db_connection import ConnectionManager  # noqa: E402
from modfeed.database.db_schema import SchemaManager  # noqa: E402
from modfeed.datatypes.discord_datatypes import MessageID  # noqa: E402
from modfeed.datatypes.mod_datatypes import RemoteModEntry  # noqa: E402


def make_entry(slug: str = "bigbertha", version: str = "1.0.0", **overrides) -> RemoteModEntry:
    """Catalog entry with sensible defaults for tests."""
    values = dict(
        slug=slug,
        title=slug.title(),
        owner="bertha",
        summary="A big gun.",
        category="Content",
        downloads_count=10,
        factorio_version="2.0",
        version=version,
        released_at=1_700_000_000,
        changelog=None,
        thumbnail="https://assets-mod.factorio.com/assets/thumb.png",
    )
    values.update(overrides)
    return RemoteModEntry(**values)


@pytest_asyncio.fixture
async def db_conn(tmp_path: Path):
    """Open ConnectionManager on a temporary database with the full schema."""
    manager = ConnectionManager()
    await manager.open(tmp_path / "test.db")
    await SchemaManager.initialize_schema(manager.connection)
    yield manager
    await manager.close()


class FakePlatform:
    """Records deliveries; ``failures`` maps a channel to errors raised in turn.

    Sends to a channel in ``hang`` never complete.
    """

    def __init__(self, failures=None, delay=0.0, hang=()):
        self.failures = defaultdict(list, failures or {})
        self.delay = delay
        self.hang = set(hang)
        self.sent_at = defaultdict(list)
        self.sent = []
        self.embeds = []
        self.attempts = defaultdict(int)
        self.in_flight = 0
        self.max_in_flight = 0

    async def send_message(self, channel_id, embed, *, role_id=None):
        self.attempts[channel_id.to_int()] += 1
        self.in_flight += 1
        self.max_in_flight = max(self.max_in_flight, self.in_flight)
        try:
            if channel_id.to_int() in self.hang:
                await asyncio.Event().wait()
            if self.delay:
                await asyncio.sleep(self.delay)
            pending = self.failures[channel_id.to_int()]
            if pending:
                raise pending.pop(0)
            self.sent.append((channel_id.to_int(), embed.fields[1].value))
            self.embeds.append(embed)
            self.sent_at[channel_id.to_int()].append(asyncio.get_running_loop().time())
            return MessageID(len(self.sent))
        finally:
            self.in_flight -= 1
