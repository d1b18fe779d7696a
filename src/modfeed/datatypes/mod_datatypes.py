"""
Mod data structures shared by the portal client, the diff engine and the
mod store.

ModRecord is what the store persists, RemoteModEntry is what one catalog fetch
returns, and ChangeEvent is the ephemeral result of comparing the two.
"""

from __future__ import annotations

from dataclasses import dataclass, fields
from enum import Enum


class ChangeKind(Enum):
    """Kind of change detected for a mod between two observations."""

    CREATED = "created"
    VERSION_BUMPED = "version_bumped"
    METADATA_CHANGED = "metadata_changed"

    def __str__(self) -> str:
        return self.value

    @property
    def is_release(self) -> bool:
        """Release events are announced ahead of metadata-only changes."""
        return self is not ChangeKind.METADATA_CHANGED


@dataclass(frozen=True, slots=True)
class ModRecord:
    """Last observed state of one mod, keyed by slug.

    Attributes:
        slug: Unique portal name of the mod.
        title: Display title.
        owner: Portal user who owns the mod; author subscriptions match on it.
        summary: Short description.
        category: Display name of the portal category.
        downloads_count: Download counter at observation time.
        factorio_version: Game version the latest release targets.
        version: Latest release version string, compared for equality only.
        released_at: Latest release time in unix seconds (0 if unknown).
    """
    slug: str
    title: str
    owner: str
    summary: str
    category: str
    downloads_count: int
    factorio_version: str
    version: str
    released_at: int


# Fields whose change (at equal version) is reported as METADATA_CHANGED
METADATA_FIELDS: tuple[str, ...] = ("title", "summary", "category", "factorio_version")

_RECORD_FIELDS: tuple[str, ...] = tuple(f.name for f in fields(ModRecord))


@dataclass(frozen=True, slots=True)
class RemoteModEntry:
    """One catalog entry as returned by the portal."""
    slug: str
    title: str
    owner: str
    summary: str
    category: str
    downloads_count: int
    factorio_version: str
    version: str
    released_at: int
    changelog: str | None = None
    thumbnail: str | None = None

    def to_record(self) -> ModRecord:
        return ModRecord(**{name: getattr(self, name) for name in _RECORD_FIELDS})


@dataclass(frozen=True, slots=True)
class ModDetails:
    """Per-mod data only available from the portal's detail endpoint."""
    changelog: str | None
    thumbnail: str


@dataclass(frozen=True, slots=True)
class ChangeEvent:
    """A change detected in the current cycle; never persisted.

    ``changelog`` starts out as whatever the catalog supplied and is replaced
    by the rendered release notes of ``new_version`` before dispatch.
    """
    slug: str
    kind: ChangeKind
    previous_version: str | None
    new_version: str
    changelog: str | None
    title: str
    owner: str
    thumbnail: str | None = None
