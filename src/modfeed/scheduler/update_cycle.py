"""
One poll cycle: fetch -> diff -> resolve/enrich -> dispatch -> persist.

The mod store is only written at the very end, in one transaction, after the
full event set of the cycle is known and dispatched. Dispatch gets whatever
is left of the cycle budget minus a persistence margin, so a hanging community
cannot keep the store from advancing. A fetch failure leaves
the store untouched; a persistence failure discards the cycle's events, which
are then detected (and delivered) again on the next cycle.
"""

from __future__ import annotations

import asyncio
from dataclasses import replace
from typing import Awaitable, Callable, List

from modfeed.datatypes.mod_datatypes import ChangeEvent
from modfeed.datatypes.notification_datatypes import CycleOutcome, CycleReport
from modfeed.errors import FetchError, PersistenceError
from modfeed.notifications.diff_engine import diff_catalog
from modfeed.notifications.dispatcher import NotificationDispatcher
from modfeed.notifications.subscription_index import SubscriptionIndex
from modfeed.portal.changelog import format_release_notes
from modfeed.portal.portal_client import PortalClient
from modfeed.store.mod_store import ModStore
from modfeed.util.logger import get_logger

logger = get_logger("update_cycle")

IndexLoader = Callable[[], Awaitable[SubscriptionIndex]]


class UpdateCycle:
    """
    Runs a single update pass. Not reentrant; the scheduler guarantees that
    at most one ``run()`` is active.
    """

    def __init__(
        self,
        portal: PortalClient,
        store: ModStore,
        load_index: IndexLoader,
        dispatcher: NotificationDispatcher,
        *,
        diff_workers: int = 4,
        details_concurrency: int = 4,
        changelog_max_lines: int = 15,
        notify_on_initial_sync: bool = False,
        time_budget: float | None = None,
        persist_margin: float = 0.0,
    ) -> None:
        self.portal = portal
        self.store = store
        self.load_index = load_index
        self.dispatcher = dispatcher
        self.diff_workers = diff_workers
        self.details_concurrency = max(1, details_concurrency)
        self.changelog_max_lines = changelog_max_lines
        self.notify_on_initial_sync = notify_on_initial_sync
        # Dispatch must end early enough to leave persist_margin of time_budget
        self.time_budget = time_budget
        self.persist_margin = max(0.0, persist_margin)
        self._stop_requested = False

    def request_stop(self) -> None:
        """Finish in-flight sends, send nothing new, skip persistence."""
        self._stop_requested = True
        self.dispatcher.request_stop()

    @property
    def stop_requested(self) -> bool:
        return self._stop_requested

    async def run(self) -> CycleReport:
        loop = asyncio.get_running_loop()
        started = loop.time()
        report = CycleReport(outcome=CycleOutcome.COMPLETED)

        try:
            await self._run(report, started)
        finally:
            report.duration_seconds = loop.time() - started

        logger.info(
            "[MOD UPDATES] Cycle %s in %.2fs: fetched=%d events=%d upserts=%d anomalies=%d persisted=%s",
            report.outcome, report.duration_seconds, report.mods_fetched, report.events,
            report.upserts, report.anomalies, report.persisted,
        )
        return report

    def _dispatch_deadline(self, started: float) -> float | None:
        """Seconds dispatch may take, or None when the cycle is unbounded."""
        if self.time_budget is None:
            return None
        elapsed = asyncio.get_running_loop().time() - started
        return self.time_budget - self.persist_margin - elapsed

    async def _run(self, report: CycleReport, started: float) -> None:
        try:
            catalog = await self.portal.fetch_catalog()
        except FetchError as exc:
            logger.error("[MOD UPDATES] Catalog fetch failed, store untouched: %s", exc)
            report.outcome = CycleOutcome.FAILED
            report.error = str(exc)
            return
        report.mods_fetched = len(catalog)

        initial_sync = self.store.is_empty
        result = await diff_catalog(catalog, self.store.snapshot(), self.diff_workers)
        report.events = len(result.events)
        report.upserts = len(result.upserts)
        report.anomalies = len(result.anomalies)

        if initial_sync and not self.notify_on_initial_sync:
            logger.info("[MOD UPDATES] Empty mod store, recording %d mods without notifying", report.upserts)
            if await self._persist(result.upserts, report):
                report.outcome = CycleOutcome.INITIALIZED
            return

        if result.events and not self._stop_requested:
            index = await self.load_index()
            events = await self._attach_release_notes(result.events, index)
            deadline = self._dispatch_deadline(started)
            if deadline is not None and deadline <= 0:
                logger.error("[MOD UPDATES] No time left to dispatch %d events, retrying next cycle", len(events))
                report.outcome = CycleOutcome.FAILED
                report.error = "Cycle time budget spent before dispatch"
                return
            report.dispatch = await self.dispatcher.dispatch(events, index, deadline=deadline)

        if self._stop_requested:
            logger.warning("[MOD UPDATES] Stop requested, skipping persistence of %d mods", report.upserts)
            report.outcome = CycleOutcome.INTERRUPTED
            return

        await self._persist(result.upserts, report)

    async def _persist(self, upserts, report: CycleReport) -> bool:
        try:
            await self.store.commit(upserts)
        except PersistenceError as exc:
            logger.error("[MOD UPDATES] Persisting %d mods failed, changes will be redetected: %s", len(upserts), exc)
            report.outcome = CycleOutcome.FAILED
            report.error = str(exc)
            return False
        report.persisted = True
        return True

    async def _attach_release_notes(
        self,
        events: List[ChangeEvent],
        index: SubscriptionIndex,
    ) -> List[ChangeEvent]:
        """
        Replace raw changelogs with rendered release notes.

        Only events somebody will receive are enriched; detail pages are
        fetched when the catalog did not carry a changelog or thumbnail.
        """
        semaphore = asyncio.Semaphore(self.details_concurrency)

        async def enrich(event: ChangeEvent) -> ChangeEvent:
            if not event.kind.is_release or not index.resolve(event):
                return replace(event, changelog=None)

            raw_changelog = event.changelog
            thumbnail = event.thumbnail
            if raw_changelog is None or thumbnail is None:
                try:
                    async with semaphore:
                        details = await self.portal.fetch_mod_details(event.slug)
                    raw_changelog = raw_changelog if raw_changelog is not None else details.changelog
                    thumbnail = thumbnail or details.thumbnail
                except FetchError as exc:
                    logger.warning("[MOD UPDATES] Could not fetch details of %s: %s", event.slug, exc)

            notes = format_release_notes(raw_changelog, event.new_version, self.changelog_max_lines)
            return replace(event, changelog=notes, thumbnail=thumbnail)

        return list(await asyncio.gather(*(enrich(event) for event in events)))
