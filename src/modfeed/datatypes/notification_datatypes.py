"""
Results of the notification pipeline.

DispatchReport and CycleReport are the only externally visible outcome of a
cycle besides the mod store mutation; both are built for logging and for
operators inspecting delivery problems.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum

import discord

from modfeed.datatypes.discord_datatypes import ChannelID, GuildID, RoleID
from modfeed.datatypes.mod_datatypes import ChangeEvent
from modfeed.errors import DeliveryErrorKind


@dataclass(slots=True)
class OutboundMessage:
    """One formatted notification for one (event, community) pair."""
    community_id: GuildID
    channel_id: ChannelID
    event: ChangeEvent
    embed: discord.Embed
    role_id: RoleID | None = None


@dataclass(frozen=True, slots=True)
class DeliveryFailure:
    """A message that was given up on, with the reason reported by the platform."""
    community_id: GuildID
    channel_id: ChannelID
    mod_slug: str
    version: str
    kind: DeliveryErrorKind
    reason: str


@dataclass(slots=True)
class DispatchReport:
    """Aggregated outcome of one dispatch call."""
    events_processed: int = 0
    messages_queued: int = 0
    messages_sent: int = 0
    messages_skipped: int = 0
    retries: int = 0
    rate_limit_pauses: int = 0
    deadline_exceeded: bool = False
    failures: list[DeliveryFailure] = field(default_factory=list)

    @property
    def messages_failed(self) -> int:
        return len(self.failures)

    def summary(self) -> str:
        return (
            f"events={self.events_processed} queued={self.messages_queued} "
            f"sent={self.messages_sent} failed={self.messages_failed} "
            f"skipped={self.messages_skipped} retries={self.retries} "
            f"rate_limit_pauses={self.rate_limit_pauses} "
            f"deadline_exceeded={self.deadline_exceeded}"
        )


class CycleOutcome(Enum):
    """How a poll cycle ended."""

    COMPLETED = "completed"
    INITIALIZED = "initialized"
    INTERRUPTED = "interrupted"
    FAILED = "failed"
    TIMED_OUT = "timed_out"

    def __str__(self) -> str:
        return self.value


@dataclass(slots=True)
class CycleReport:
    """Outcome of one fetch -> diff -> dispatch -> persist pass."""
    outcome: CycleOutcome
    mods_fetched: int = 0
    events: int = 0
    upserts: int = 0
    anomalies: int = 0
    persisted: bool = False
    dispatch: DispatchReport | None = None
    duration_seconds: float = 0.0
    error: str | None = None
