"""
Read-side join between change events and community subscriptions.

Subscriptions are indexed by mod slug and by author so resolving an event
costs a few set lookups per community regardless of how many subscriptions a
community holds.
"""

from __future__ import annotations

from collections import defaultdict
from typing import Dict, Iterable, List, Set

from modfeed.datatypes.community_datatypes import (
    AuthorSubscription,
    CommunityConfig,
    ModSubscription,
)
from modfeed.datatypes.discord_datatypes import GuildID
from modfeed.datatypes.mod_datatypes import ChangeEvent, ChangeKind


class SubscriptionIndex:
    """Immutable index built once per cycle from the community tables."""

    def __init__(
        self,
        configs: Dict[GuildID, CommunityConfig],
        by_mod: Dict[str, Set[GuildID]],
        by_author: Dict[str, Set[GuildID]],
        subscribed: Set[GuildID],
    ) -> None:
        self._configs = configs
        self._by_mod = by_mod
        self._by_author = by_author
        self._subscribed = subscribed
        # Only communities with a channel can ever receive anything
        self._enabled = sorted(
            (config for config in configs.values() if config.notifications_enabled),
            key=lambda config: config.community_id,
        )

    @classmethod
    def build(
        cls,
        configs: Iterable[CommunityConfig],
        mod_subscriptions: Iterable[ModSubscription] = (),
        author_subscriptions: Iterable[AuthorSubscription] = (),
    ) -> "SubscriptionIndex":
        by_mod: Dict[str, Set[GuildID]] = defaultdict(set)
        by_author: Dict[str, Set[GuildID]] = defaultdict(set)
        subscribed: Set[GuildID] = set()

        for sub in mod_subscriptions:
            by_mod[sub.mod_slug].add(sub.community_id)
            subscribed.add(sub.community_id)
        for sub in author_subscriptions:
            by_author[sub.author].add(sub.community_id)
            subscribed.add(sub.community_id)

        return cls(
            {config.community_id: config for config in configs},
            dict(by_mod),
            dict(by_author),
            subscribed,
        )

    @classmethod
    def empty(cls) -> "SubscriptionIndex":
        return cls({}, {}, {}, set())

    def __len__(self) -> int:
        return len(self._configs)

    def get_config(self, community_id: GuildID) -> CommunityConfig | None:
        return self._configs.get(community_id)

    def has_subscriptions(self, community_id: GuildID) -> bool:
        return community_id in self._subscribed

    def resolve(self, event: ChangeEvent) -> List[CommunityConfig]:
        """
        Communities that should be notified about ``event``, by community id.

        A community matches when it has a notification channel and either has
        no subscriptions at all, is subscribed to the mod, or is subscribed to
        the mod's owner. Metadata-only changes also require the community's
        opt-in.
        """
        mod_subscribers = self._by_mod.get(event.slug, ())
        author_subscribers = self._by_author.get(event.owner, ())

        matched: List[CommunityConfig] = []
        for config in self._enabled:
            if event.kind is ChangeKind.METADATA_CHANGED and not config.notify_metadata_changes:
                continue
            community_id = config.community_id
            if (
                community_id not in self._subscribed
                or community_id in mod_subscribers
                or community_id in author_subscribers
            ):
                matched.append(config)
        return matched
