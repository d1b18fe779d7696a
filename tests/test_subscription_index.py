import pytest

from modfeed.datatypes.community_datatypes import AuthorSubscription, CommunityConfig, ModSubscription
from modfeed.datatypes.discord_datatypes import ChannelID, GuildID
from modfeed.datatypes.mod_datatypes import ChangeEvent, ChangeKind
from modfeed.notifications.subscription_index import SubscriptionIndex


def event(slug="bigbertha", owner="bertha", kind=ChangeKind.VERSION_BUMPED):
    return ChangeEvent(
        slug=slug,
        kind=kind,
        previous_version="1.0.0",
        new_version="1.2.0",
        changelog=None,
        title=slug,
        owner=owner,
    )


def community(cid, channel=True, **kwargs):
    return CommunityConfig(GuildID(cid), ChannelID(cid * 10) if channel else None, **kwargs)


def ids(configs):
    return [config.community_id.to_int() for config in configs]


@pytest.mark.parametrize("kind", [ChangeKind.CREATED, ChangeKind.VERSION_BUMPED])
def test_community_without_subscriptions_receives_every_release(kind):
    index = SubscriptionIndex.build([community(1)])

    assert ids(index.resolve(event(kind=kind))) == [1]
    assert ids(index.resolve(event(slug="other", owner="someone", kind=kind))) == [1]


def test_community_without_channel_never_resolves():
    index = SubscriptionIndex.build([community(1, channel=False)])

    assert index.resolve(event()) == []


def test_single_mod_subscription_only_matches_that_slug():
    index = SubscriptionIndex.build([community(1)], [ModSubscription(GuildID(1), "bigbertha")])

    assert ids(index.resolve(event("bigbertha"))) == [1]
    assert index.resolve(event("smallbertha", owner="someone")) == []


def test_author_subscription_matches_owner():
    index = SubscriptionIndex.build([community(1)], [], [AuthorSubscription(GuildID(1), "bertha")])

    assert ids(index.resolve(event("anything", owner="bertha"))) == [1]
    assert index.resolve(event("anything", owner="someone")) == []


def test_results_are_ordered_by_community_id():
    index = SubscriptionIndex.build([community(30), community(2), community(11)])

    assert ids(index.resolve(event())) == [2, 11, 30]


def test_mixed_communities():
    index = SubscriptionIndex.build(
        [community(1), community(2), community(3), community(4, channel=False)],
        [ModSubscription(GuildID(2), "bigbertha"), ModSubscription(GuildID(3), "other")],
        [AuthorSubscription(GuildID(4), "bertha")],
    )

    assert ids(index.resolve(event())) == [1, 2]


@pytest.mark.parametrize("opted_in, expected", [(True, [1]), (False, [])])
def test_metadata_changes_require_opt_in(opted_in, expected):
    index = SubscriptionIndex.build([community(1, notify_metadata_changes=opted_in)])

    assert ids(index.resolve(event(kind=ChangeKind.METADATA_CHANGED))) == expected
    # Releases are unaffected by the flag
    assert ids(index.resolve(event(kind=ChangeKind.VERSION_BUMPED))) == [1]


def test_many_subscriptions():
    subs = [ModSubscription(GuildID(1), f"mod-{i}") for i in range(5000)]
    index = SubscriptionIndex.build([community(1)], subs)

    assert ids(index.resolve(event("mod-4999", owner="x"))) == [1]
    assert index.resolve(event("mod-5000", owner="x")) == []
    assert index.has_subscriptions(GuildID(1))


def test_empty_index():
    index = SubscriptionIndex.empty()

    assert len(index) == 0
    assert index.resolve(event()) == []
