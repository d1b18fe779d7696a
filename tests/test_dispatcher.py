import asyncio

import pytest

from conftest import FakePlatform
from modfeed.datatypes.community_datatypes import CommunityConfig, ModSubscription
from modfeed.datatypes.discord_datatypes import ChannelID, GuildID
from modfeed.datatypes.mod_datatypes import ChangeEvent, ChangeKind
from modfeed.errors import DeliveryErrorKind, PlatformError
from modfeed.notifications.dispatcher import NotificationDispatcher, prioritize
from modfeed.notifications.message_formatter import MessageFormatter
from modfeed.notifications.rate_budget import RateBudget
from modfeed.notifications.subscription_index import SubscriptionIndex


def event(slug="bigbertha", version="1.0.0", kind=ChangeKind.VERSION_BUMPED):
    return ChangeEvent(
        slug=slug,
        kind=kind,
        previous_version=None,
        new_version=version,
        changelog=None,
        title=slug,
        owner="bertha",
    )


def communities(*cids, **kwargs):
    return [CommunityConfig(GuildID(cid), ChannelID(cid), **kwargs) for cid in cids]


def make_dispatcher(platform, **kwargs):
    options = dict(concurrency=5, max_retries=2, backoff_base=0.0, send_timeout=1.0)
    options.update(kwargs)
    return NotificationDispatcher(
        platform,
        MessageFormatter(),
        RateBudget(1000, 1.0),
        **options,
    )


@pytest.mark.asyncio
async def test_fan_out_to_every_resolved_community():
    platform = FakePlatform()
    dispatcher = make_dispatcher(platform)
    index = SubscriptionIndex.build(communities(1, 2, 3))

    report = await dispatcher.dispatch([event()], index)

    assert report.events_processed == 1
    assert report.messages_queued == 3
    assert report.messages_sent == 3
    assert report.failures == []
    assert sorted(channel for channel, _ in platform.sent) == [1, 2, 3]


@pytest.mark.asyncio
async def test_forbidden_is_isolated_and_not_retried():
    platform = FakePlatform({2: [PlatformError(DeliveryErrorKind.FORBIDDEN, "Missing Access")]})
    dispatcher = make_dispatcher(platform)
    index = SubscriptionIndex.build(communities(1, 2, 3, 4))

    report = await dispatcher.dispatch([event()], index)

    assert report.messages_sent == 3
    assert report.messages_failed == 1
    failure = report.failures[0]
    assert failure.community_id == GuildID(2)
    assert failure.kind is DeliveryErrorKind.FORBIDDEN
    assert failure.mod_slug == "bigbertha"
    assert failure.reason == "Missing Access"
    assert platform.attempts[2] == 1
    assert report.retries == 0


@pytest.mark.asyncio
async def test_not_found_is_permanent():
    platform = FakePlatform({1: [PlatformError(DeliveryErrorKind.NOT_FOUND, "Unknown Channel")]})
    dispatcher = make_dispatcher(platform)

    report = await dispatcher.dispatch([event()], SubscriptionIndex.build(communities(1)))

    assert report.failures[0].kind is DeliveryErrorKind.NOT_FOUND
    assert platform.attempts[1] == 1


@pytest.mark.asyncio
async def test_transient_errors_are_retried_until_success():
    platform = FakePlatform({1: [PlatformError(DeliveryErrorKind.TRANSIENT), PlatformError(DeliveryErrorKind.TRANSIENT)]})
    dispatcher = make_dispatcher(platform, max_retries=2)

    report = await dispatcher.dispatch([event()], SubscriptionIndex.build(communities(1)))

    assert report.messages_sent == 1
    assert report.retries == 2
    assert report.failures == []


@pytest.mark.asyncio
async def test_retries_are_bounded():
    errors = [PlatformError(DeliveryErrorKind.TRANSIENT, "502") for _ in range(10)]
    platform = FakePlatform({1: errors})
    dispatcher = make_dispatcher(platform, max_retries=3)

    report = await dispatcher.dispatch([event()], SubscriptionIndex.build(communities(1)))

    assert platform.attempts[1] == 4
    assert report.retries == 3
    assert report.failures[0].kind is DeliveryErrorKind.TRANSIENT


@pytest.mark.asyncio
async def test_unexpected_exceptions_are_treated_as_transient():
    platform = FakePlatform({1: [RuntimeError("boom")]})
    dispatcher = make_dispatcher(platform)

    report = await dispatcher.dispatch([event()], SubscriptionIndex.build(communities(1)))

    assert report.messages_sent == 1
    assert report.retries == 1


@pytest.mark.asyncio
async def test_send_timeout_is_transient():
    platform = FakePlatform(delay=0.5)
    dispatcher = make_dispatcher(platform, send_timeout=0.05, max_retries=1)

    report = await dispatcher.dispatch([event()], SubscriptionIndex.build(communities(1)))

    assert report.messages_sent == 0
    assert report.failures[0].kind is DeliveryErrorKind.TRANSIENT
    assert "timed out" in report.failures[0].reason


@pytest.mark.asyncio
async def test_rate_limit_pauses_budget_and_retries():
    platform = FakePlatform({1: [PlatformError(DeliveryErrorKind.RATE_LIMITED, retry_after=0.1)]})
    dispatcher = make_dispatcher(platform)
    loop = asyncio.get_running_loop()
    start = loop.time()

    report = await dispatcher.dispatch([event()], SubscriptionIndex.build(communities(1)))

    assert report.messages_sent == 1
    assert report.rate_limit_pauses == 1
    assert loop.time() - start >= 0.09


@pytest.mark.asyncio
async def test_per_community_order_matches_event_order():
    platform = FakePlatform(
        {1: [PlatformError(DeliveryErrorKind.TRANSIENT)]},
        delay=0.01,
    )
    dispatcher = make_dispatcher(platform)
    events = [event("bigbertha", "1.1.0"), event("bigbertha", "1.2.0"), event("bigbertha", "1.3.0")]

    await dispatcher.dispatch(events, SubscriptionIndex.build(communities(1, 2)))

    for channel in (1, 2):
        versions = [version for sent_channel, version in platform.sent if sent_channel == channel]
        assert versions == ["1.1.0", "1.2.0", "1.3.0"]


@pytest.mark.asyncio
async def test_release_events_precede_metadata_events():
    platform = FakePlatform()
    dispatcher = make_dispatcher(platform)
    events = [
        event("a", "1.0.0", ChangeKind.METADATA_CHANGED),
        event("b", "2.0.0", ChangeKind.VERSION_BUMPED),
        event("c", "3.0.0", ChangeKind.CREATED),
    ]
    index = SubscriptionIndex.build(communities(1, notify_metadata_changes=True))

    await dispatcher.dispatch(events, index)

    assert [version for _, version in platform.sent] == ["2.0.0", "3.0.0", "1.0.0"]


def test_prioritize_is_stable():
    events = [event("m1", kind=ChangeKind.METADATA_CHANGED), event("r1"), event("m2", kind=ChangeKind.METADATA_CHANGED), event("r2")]

    assert [e.slug for e in prioritize(events)] == ["r1", "r2", "m1", "m2"]


@pytest.mark.asyncio
async def test_concurrency_is_bounded():
    platform = FakePlatform(delay=0.02)
    dispatcher = make_dispatcher(platform, concurrency=2)

    report = await dispatcher.dispatch([event()], SubscriptionIndex.build(communities(*range(1, 9))))

    assert report.messages_sent == 8
    assert platform.max_in_flight <= 2


@pytest.mark.asyncio
async def test_only_subscribed_communities_receive():
    platform = FakePlatform()
    dispatcher = make_dispatcher(platform)
    index = SubscriptionIndex.build(communities(1, 2), [ModSubscription(GuildID(2), "other")])

    report = await dispatcher.dispatch([event("bigbertha")], index)

    assert report.messages_queued == 1
    assert [channel for channel, _ in platform.sent] == [1]


@pytest.mark.asyncio
async def test_stop_request_skips_remaining_messages():
    platform = FakePlatform(delay=0.05)
    dispatcher = make_dispatcher(platform, concurrency=1)
    events = [event("a", "1"), event("b", "2"), event("c", "3")]

    task = asyncio.create_task(dispatcher.dispatch(events, SubscriptionIndex.build(communities(1))))
    await asyncio.sleep(0.01)
    dispatcher.request_stop()
    report = await task

    # The in-flight send completes, nothing new is issued
    assert report.messages_sent == 1
    assert report.messages_skipped == 2
    assert dispatcher.stop_requested


@pytest.mark.asyncio
async def test_dispatch_without_events_or_communities():
    dispatcher = make_dispatcher(FakePlatform())

    assert (await dispatcher.dispatch([])).messages_queued == 0
    assert (await dispatcher.dispatch([event()], SubscriptionIndex.empty())).messages_sent == 0


@pytest.mark.asyncio
async def test_retry_backoff_doubles_per_attempt():
    errors = [PlatformError(DeliveryErrorKind.TRANSIENT), PlatformError(DeliveryErrorKind.TRANSIENT)]
    platform = FakePlatform({1: errors})
    dispatcher = make_dispatcher(platform, max_retries=2, backoff_base=0.05)
    loop = asyncio.get_running_loop()
    start = loop.time()

    report = await dispatcher.dispatch([event()], SubscriptionIndex.build(communities(1)))

    # 0.05s before the first retry, 0.1s before the second
    assert loop.time() - start >= 0.14
    assert report.messages_sent == 1
    assert report.retries == 2


@pytest.mark.asyncio
async def test_deadline_abandons_hanging_community_only():
    platform = FakePlatform(hang={2})
    dispatcher = make_dispatcher(platform, send_timeout=10.0)
    events = [event("a", "1"), event("b", "2"), event("c", "3")]

    report = await dispatcher.dispatch(events, SubscriptionIndex.build(communities(1, 2)), deadline=0.1)

    assert [version for channel, version in platform.sent if channel == 1] == ["1", "2", "3"]
    assert report.deadline_exceeded
    assert report.messages_sent == 3
    assert [(f.community_id, f.mod_slug) for f in report.failures] == [(GuildID(2), "a")]
    assert report.messages_skipped == 2


@pytest.mark.asyncio
async def test_dispatch_within_deadline_is_not_flagged():
    dispatcher = make_dispatcher(FakePlatform())

    report = await dispatcher.dispatch([event()], SubscriptionIndex.build(communities(1)), deadline=5.0)

    assert report.messages_sent == 1
    assert not report.deadline_exceeded


@pytest.mark.asyncio
async def test_channel_budget_paces_one_channel_without_holding_back_another():
    platform = FakePlatform()
    dispatcher = make_dispatcher(platform, channel_rate_messages=1, channel_rate_period=0.2)
    busy = SubscriptionIndex.build(communities(1))
    events = [event("a", "1"), event("b", "2"), event("c", "3")]
    loop = asyncio.get_running_loop()
    start = loop.time()

    await asyncio.gather(
        dispatcher.dispatch(events, busy),
        dispatcher.dispatch([event("d", "4")], SubscriptionIndex.build(communities(2))),
    )

    busy_times = platform.sent_at[1]
    assert len(busy_times) == 3
    assert busy_times[1] - busy_times[0] >= 0.19
    assert busy_times[2] - busy_times[1] >= 0.19
    assert platform.sent_at[2][0] - start < 0.1


def test_channel_budgets_are_per_channel_and_reused():
    dispatcher = make_dispatcher(FakePlatform(), channel_rate_messages=2, channel_rate_period=1.0)

    first = dispatcher.channel_budget(ChannelID(1))

    assert dispatcher.channel_budget(ChannelID(1)) is first
    assert dispatcher.channel_budget(ChannelID(2)) is not first
    assert first.max_messages == 2
    assert make_dispatcher(FakePlatform()).channel_budget(ChannelID(1)) is None
