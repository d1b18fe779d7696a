"""
Outbound pacing. The dispatcher keeps one global budget shared by every send
of every cycle and one per destination channel.
"""

from __future__ import annotations

import asyncio
from collections import deque

from modfeed.util.logger import get_logger

logger = get_logger("rate_budget")


class RateBudget:
    """
    Allows at most ``max_messages`` sends per sliding ``period_seconds``.

    ``acquire()`` waits until a slot is free; ``pause()`` holds back every
    sender until the pause has elapsed (used when the platform reports a
    rate limit).
    """

    def __init__(self, max_messages: int, period_seconds: float) -> None:
        if max_messages < 1:
            raise ValueError("max_messages must be at least 1")
        if period_seconds <= 0:
            raise ValueError("period_seconds must be positive")
        self.max_messages = max_messages
        self.period_seconds = period_seconds
        self._sent: deque[float] = deque()
        self._paused_until = 0.0
        self._lock = asyncio.Lock()

    @staticmethod
    def _now() -> float:
        return asyncio.get_running_loop().time()

    @property
    def paused_until(self) -> float:
        return self._paused_until

    def pause(self, seconds: float) -> None:
        """Block all senders for ``seconds`` from now (never shortens a pause)."""
        until = self._now() + max(seconds, 0.0)
        if until > self._paused_until:
            self._paused_until = until
            logger.warning("[RATE BUDGET] Sends paused for %.2fs", seconds)

    async def acquire(self) -> None:
        """Wait for the next free send slot."""
        # Serialised so waiters are served in arrival order
        async with self._lock:
            while True:
                now = self._now()
                if now < self._paused_until:
                    await asyncio.sleep(self._paused_until - now)
                    continue

                while self._sent and now - self._sent[0] >= self.period_seconds:
                    self._sent.popleft()

                if len(self._sent) < self.max_messages:
                    self._sent.append(now)
                    return

                await asyncio.sleep(self.period_seconds - (now - self._sent[0]))
