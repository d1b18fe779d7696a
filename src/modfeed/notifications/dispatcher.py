"""
Notification fan-out with pacing, retries and per-message failure isolation.

Each community gets one ordered queue that is delivered sequentially, so a
community always sees its notifications in event order. Queues of different
communities run concurrently, bounded by a semaphore. Every send draws a slot
from its channel's RateBudget and from the shared global one. A failing
community never holds up the others: its messages are retried a bounded
number of times and then recorded in the DispatchReport, and a dispatch
deadline abandons whatever a hanging target still has queued.
"""

from __future__ import annotations

import asyncio
from typing import Dict, Iterable, List, Sequence

from tenacity import (
    AsyncRetrying,
    RetryCallState,
    retry_if_exception,
    stop_after_attempt,
    wait_exponential,
)

from modfeed.datatypes.discord_datatypes import ChannelID, GuildID
from modfeed.datatypes.mod_datatypes import ChangeEvent
from modfeed.datatypes.notification_datatypes import (
    DeliveryFailure,
    DispatchReport,
    OutboundMessage,
)
from modfeed.errors import DeliveryErrorKind, PlatformError
from modfeed.notifications.message_formatter import MessageFormatter
from modfeed.notifications.messaging_platform import MessagingPlatform
from modfeed.notifications.rate_budget import RateBudget
from modfeed.notifications.subscription_index import SubscriptionIndex
from modfeed.util.logger import get_logger

logger = get_logger("dispatcher")


class DeliverySkipped(Exception):
    """A retry was due but a stop had been requested in the meantime."""


def is_retryable(exc: BaseException) -> bool:
    """Retry transient and rate-limited failures; never FORBIDDEN or NOT_FOUND."""
    return isinstance(exc, PlatformError) and not exc.kind.is_permanent


def prioritize(events: Sequence[ChangeEvent]) -> List[ChangeEvent]:
    """Release events first, metadata-only changes after; stable within each group."""
    return sorted(events, key=lambda event: 0 if event.kind.is_release else 1)


class NotificationDispatcher:
    """
    Delivers change events to every interested community.

    Args:
        platform: Where messages are sent.
        formatter: Builds one message per (event, community).
        rate_budget: Global pacing shared with every other dispatch.
        index: Default subscription index when ``dispatch`` gets none.
        concurrency: Maximum number of sends in flight.
        max_retries: Retries per message after the first attempt.
        backoff_base: Seconds before the first retry; doubles per retry.
        send_timeout: Upper bound of one send attempt in seconds.
        channel_rate_messages: Sends allowed per channel within
            ``channel_rate_period`` seconds; None disables per-channel pacing.
        channel_rate_period: Window of the per-channel budget in seconds.
    """

    def __init__(
        self,
        platform: MessagingPlatform,
        formatter: MessageFormatter,
        rate_budget: RateBudget,
        index: SubscriptionIndex | None = None,
        *,
        concurrency: int = 5,
        max_retries: int = 3,
        backoff_base: float = 1.0,
        send_timeout: float = 15.0,
        channel_rate_messages: int | None = None,
        channel_rate_period: float = 5.0,
    ) -> None:
        self.platform = platform
        self.formatter = formatter
        self.rate_budget = rate_budget
        self.index = index or SubscriptionIndex.empty()
        self.concurrency = max(1, concurrency)
        self.max_retries = max(0, max_retries)
        self.backoff_base = max(0.0, backoff_base)
        self.send_timeout = send_timeout
        self.channel_rate_messages = channel_rate_messages
        self.channel_rate_period = channel_rate_period
        # Outlive a single dispatch, like the global budget
        self._channel_budgets: Dict[ChannelID, RateBudget] = {}
        self._stop_requested = False

    # ------------------------------------------------------------------
    # Stop handling
    # ------------------------------------------------------------------

    def request_stop(self) -> None:
        """Stop issuing new sends; sends already in flight finish on their own."""
        if not self._stop_requested:
            logger.info("[DISPATCHER] Stop requested, no further messages will be sent")
        self._stop_requested = True

    @property
    def stop_requested(self) -> bool:
        return self._stop_requested

    # ------------------------------------------------------------------
    # Pacing
    # ------------------------------------------------------------------

    def channel_budget(self, channel_id: ChannelID) -> RateBudget | None:
        """The budget of one channel, created on first use."""
        if self.channel_rate_messages is None:
            return None
        budget = self._channel_budgets.get(channel_id)
        if budget is None:
            budget = RateBudget(self.channel_rate_messages, self.channel_rate_period)
            self._channel_budgets[channel_id] = budget
        return budget

    # ------------------------------------------------------------------
    # Dispatch
    # ------------------------------------------------------------------

    def build_queues(
        self,
        events: Sequence[ChangeEvent],
        index: SubscriptionIndex,
    ) -> Dict[GuildID, List[OutboundMessage]]:
        """Resolve and format every message, grouped per community in delivery order."""
        queues: Dict[GuildID, List[OutboundMessage]] = {}
        for event in prioritize(events):
            for community in index.resolve(event):
                message = self.formatter.format(event, community)
                queues.setdefault(community.community_id, []).append(message)
        return queues

    async def dispatch(
        self,
        events: Sequence[ChangeEvent],
        index: SubscriptionIndex | None = None,
        *,
        deadline: float | None = None,
    ) -> DispatchReport:
        """
        Deliver ``events`` to every community that resolves for them.

        Never raises for delivery problems; they end up in the report. When
        ``deadline`` seconds pass before every queue is drained, the queues
        still running are abandoned: the message each was sending is recorded
        as failed and the rest of the queue as skipped.
        """
        report = DispatchReport(events_processed=len(events))
        queues = self.build_queues(events, index or self.index)
        report.messages_queued = sum(len(queue) for queue in queues.values())

        if not queues:
            return report

        logger.info(
            "[DISPATCHER] Dispatching %d message(s) for %d event(s) to %d community(ies)",
            report.messages_queued, len(events), len(queues),
        )

        semaphore = asyncio.Semaphore(self.concurrency)
        tasks = [
            asyncio.create_task(self._drain(queue, semaphore, report))
            for queue in queues.values()
        ]
        try:
            done, pending = await asyncio.wait(tasks, timeout=deadline)
        except asyncio.CancelledError:
            await self._abandon(tasks)
            raise

        if pending:
            report.deadline_exceeded = True
            logger.warning(
                "[DISPATCHER] Dispatch deadline of %.1fs passed, abandoning %d community queue(s)",
                deadline, len(pending),
            )
            await self._abandon(pending)

        for task in done:
            task.result()

        logger.info("[DISPATCHER] Dispatch finished: %s", report.summary())
        return report

    @staticmethod
    async def _abandon(tasks: Iterable[asyncio.Task]) -> None:
        unfinished = [task for task in tasks if not task.done()]
        for task in unfinished:
            task.cancel()
        await asyncio.gather(*unfinished, return_exceptions=True)

    async def _drain(
        self,
        queue: List[OutboundMessage],
        semaphore: asyncio.Semaphore,
        report: DispatchReport,
    ) -> None:
        for position, message in enumerate(queue):
            if self._stop_requested:
                report.messages_skipped += len(queue) - position
                return
            try:
                await self._deliver(message, semaphore, report)
            except asyncio.CancelledError:
                self._record_failure(
                    message,
                    PlatformError(DeliveryErrorKind.TRANSIENT, "Abandoned before delivery completed"),
                    report,
                )
                report.messages_skipped += len(queue) - position - 1
                raise

    async def _attempt(self, message: OutboundMessage, semaphore: asyncio.Semaphore) -> None:
        """One send; every failure leaves here as a classified PlatformError."""
        # Waiting on a busy channel must not hold a concurrency slot
        channel_budget = self.channel_budget(message.channel_id)
        if channel_budget is not None:
            await channel_budget.acquire()

        async with semaphore:
            await self.rate_budget.acquire()
            try:
                await asyncio.wait_for(
                    self.platform.send_message(message.channel_id, message.embed, role_id=message.role_id),
                    timeout=self.send_timeout,
                )
            except PlatformError:
                raise
            except asyncio.TimeoutError:
                raise PlatformError(
                    DeliveryErrorKind.TRANSIENT, f"Send timed out after {self.send_timeout}s"
                ) from None
            except Exception as exc:
                logger.exception("[DISPATCHER] Unexpected error sending %s", message.event.slug)
                raise PlatformError(
                    DeliveryErrorKind.TRANSIENT, f"Unexpected {type(exc).__name__}: {exc}"
                ) from exc

    async def _deliver(
        self,
        message: OutboundMessage,
        semaphore: asyncio.Semaphore,
        report: DispatchReport,
    ) -> None:
        backoff = wait_exponential(multiplier=self.backoff_base)

        def wait(retry_state: RetryCallState) -> float:
            # A rate limit waits on the paused budget rather than in here
            if retry_state.outcome.exception().kind is DeliveryErrorKind.RATE_LIMITED:
                return 0.0
            return backoff(retry_state)

        def before_sleep(retry_state: RetryCallState) -> None:
            error = retry_state.outcome.exception()
            report.retries += 1
            if error.kind is DeliveryErrorKind.RATE_LIMITED:
                report.rate_limit_pauses += 1
                pause = error.retry_after if error.retry_after is not None else backoff(retry_state)
                self.rate_budget.pause(pause)
                return
            logger.debug(
                "[DISPATCHER] Retry %d/%d for %s in community %s after %.2fs: %s",
                retry_state.attempt_number, self.max_retries, message.event.slug,
                message.community_id, retry_state.next_action.sleep, error,
            )

        retrying = AsyncRetrying(
            retry=retry_if_exception(is_retryable),
            stop=stop_after_attempt(self.max_retries + 1),
            wait=wait,
            before_sleep=before_sleep,
            reraise=True,
        )
        try:
            async for attempt in retrying:
                with attempt:
                    if attempt.retry_state.attempt_number > 1 and self._stop_requested:
                        raise DeliverySkipped()
                    await self._attempt(message, semaphore)
        except DeliverySkipped:
            report.messages_skipped += 1
            return
        except PlatformError as error:
            self._record_failure(message, error, report)
            return

        report.messages_sent += 1

    @staticmethod
    def _record_failure(message: OutboundMessage, error: PlatformError, report: DispatchReport) -> None:
        logger.warning(
            "[DISPATCHER] Giving up on %s %s for community %s (channel %s): %s %s",
            message.event.slug, message.event.new_version, message.community_id,
            message.channel_id, error.kind, error,
        )
        report.failures.append(
            DeliveryFailure(
                community_id=message.community_id,
                channel_id=message.channel_id,
                mod_slug=message.event.slug,
                version=message.event.new_version,
                kind=error.kind,
                reason=str(error),
            )
        )
