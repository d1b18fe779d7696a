"""
Diff engine: compares a fetched catalog against the mod store snapshot.

``diff`` is a pure function of its inputs, so the same catalog diffed
against the same snapshot always yields the same events and upserts.
``diff_catalog`` splits a large catalog into contiguous chunks, diffs them in
worker threads and merges the partial results in catalog order before
anything is persisted.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass, field, replace
from typing import List, Mapping, Sequence

from modfeed.datatypes.mod_datatypes import (
    METADATA_FIELDS,
    ChangeEvent,
    ChangeKind,
    ModRecord,
    RemoteModEntry,
)
from modfeed.util.logger import get_logger

logger = get_logger("diff_engine")


@dataclass(slots=True)
class DiffResult:
    """Events to dispatch and records to persist for one cycle."""
    events: List[ChangeEvent] = field(default_factory=list)
    upserts: List[ModRecord] = field(default_factory=list)
    anomalies: List[str] = field(default_factory=list)

    def extend(self, other: "DiffResult") -> None:
        self.events.extend(other.events)
        self.upserts.extend(other.upserts)
        self.anomalies.extend(other.anomalies)


def _event(entry: RemoteModEntry, kind: ChangeKind, previous_version: str | None) -> ChangeEvent:
    return ChangeEvent(
        slug=entry.slug,
        kind=kind,
        previous_version=previous_version,
        new_version=entry.version,
        changelog=entry.changelog,
        title=entry.title,
        owner=entry.owner,
        thumbnail=entry.thumbnail,
    )


def _is_release_regression(entry: RemoteModEntry, stored: ModRecord) -> bool:
    """A different version with an older release time than the one on record."""
    return bool(entry.released_at and stored.released_at and entry.released_at < stored.released_at)


def diff(
    catalog: Sequence[RemoteModEntry],
    snapshot: Mapping[str, ModRecord],
    seen: set[str] | None = None,
) -> DiffResult:
    """
    Compare catalog entries with the stored state.

    Args:
        catalog: Fetched entries in catalog order.
        snapshot: Stored records keyed by slug. Never modified.
        seen: Slugs already handled by an earlier chunk of the same catalog;
            updated in place. Only the first occurrence of a slug counts.

    Returns:
        DiffResult with events and upserts in catalog order.
    """
    result = DiffResult()
    seen = set() if seen is None else seen

    for entry in catalog:
        if entry.slug in seen:
            continue
        seen.add(entry.slug)

        record = entry.to_record()
        stored = snapshot.get(entry.slug)

        if stored is None:
            result.events.append(_event(entry, ChangeKind.CREATED, None))
            result.upserts.append(record)
            continue

        if entry.version == stored.version and entry.released_at < stored.released_at:
            # Release timestamps never move backwards for the same version
            record = replace(record, released_at=stored.released_at)

        if record == stored:
            continue

        if entry.version != stored.version:
            if _is_release_regression(entry, stored):
                logger.warning(
                    "[DIFF ENGINE] %s went from %s to %s with an older release time, ignoring",
                    entry.slug, stored.version, entry.version,
                )
                result.anomalies.append(entry.slug)
                continue
            result.events.append(_event(entry, ChangeKind.VERSION_BUMPED, stored.version))
            result.upserts.append(record)
            continue

        if any(getattr(record, name) != getattr(stored, name) for name in METADATA_FIELDS):
            result.events.append(_event(entry, ChangeKind.METADATA_CHANGED, stored.version))

        # Download counters and the like are kept current without an event
        result.upserts.append(record)

    return result


def _chunk(catalog: Sequence[RemoteModEntry], workers: int) -> List[Sequence[RemoteModEntry]]:
    size = max(1, -(-len(catalog) // workers))
    return [catalog[start:start + size] for start in range(0, len(catalog), size)]


def _dedupe(catalog: Sequence[RemoteModEntry]) -> List[RemoteModEntry]:
    seen: set[str] = set()
    unique: List[RemoteModEntry] = []
    for entry in catalog:
        if entry.slug not in seen:
            seen.add(entry.slug)
            unique.append(entry)
    return unique


async def diff_catalog(
    catalog: Sequence[RemoteModEntry],
    snapshot: Mapping[str, ModRecord],
    workers: int = 4,
) -> DiffResult:
    """
    Diff ``catalog`` in up to ``workers`` threads and merge in catalog order.

    The merged result is identical to ``diff(catalog, snapshot)``.
    """
    # Chunks must not share slugs, or "first occurrence wins" would depend on chunking
    unique = _dedupe(catalog)
    if workers <= 1 or len(unique) < 2 * workers:
        return diff(unique, snapshot)

    chunks = _chunk(unique, workers)
    partials = await asyncio.gather(
        *(asyncio.to_thread(diff, chunk, snapshot) for chunk in chunks)
    )

    merged = DiffResult()
    for partial in partials:
        merged.extend(partial)

    logger.debug(
        "[DIFF ENGINE] Diffed %d entries in %d chunks: %d events, %d upserts",
        len(unique), len(chunks), len(merged.events), len(merged.upserts),
    )
    return merged
