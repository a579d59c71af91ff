import pytest

from bambite_client_sdk.feature_flags import ClientFeatureFlags
from bambite_client_sdk.realtime import ChannelCredential, ChannelManager, PollScheduler, RealtimeOrders, Reconciler

from tests.helpers import FakeTransport, ManualClock, settle

URL = "ws://api.example.test/realtime"
SUBSCRIBE_ORDER = {"type": "subscribe", "channel": "order"}


class Harness:
    def __init__(self, transport: FakeTransport | None = None, flags: ClientFeatureFlags | None = None) -> None:
        self.transport = transport or FakeTransport()
        self.channel_clock = ManualClock()
        self.poll_clock = ManualClock()
        self.snapshots: list[list[dict]] = []
        self.channel = ChannelManager(URL, transport=self.transport, sleep=self.channel_clock.sleep)
        self.reconciler = Reconciler()
        flags = flags or ClientFeatureFlags()
        self.poller = PollScheduler(
            self.fetch,
            self.reconciler.apply_snapshot,
            interval=20.0,
            grace=2.0,
            enabled=flags.polling_enabled,
            sleep=self.poll_clock.sleep,
            monotonic=self.poll_clock.time,
        )
        self.realtime = RealtimeOrders(self.channel, self.reconciler, self.fetch, flags=flags, poller=self.poller)

    async def fetch(self) -> list[dict]:
        return self.snapshots.pop(0) if self.snapshots else []


@pytest.mark.asyncio
async def test_push_events_update_the_live_list():
    harness = Harness()
    harness.reconciler.load([{"id": "o-1", "status": "PENDING", "user": {"name": "Ana"}}])

    await harness.realtime.enable(ChannelCredential(token="tok"))
    connection = harness.transport.latest

    connection.push(
        "order:new",
        {"id": "o-2", "userId": "u-2", "status": "PENDING", "netPrice": "12.00", "orderedDate": "2026-10-17", "itemCount": 1},
    )
    connection.push("order:updated", {"orderId": "o-1", "status": "SHIPPED"})
    connection.push("order:updated", {"status": "CANCELLED"})
    connection.push("order:new", {"userId": "u-3"})
    await settle()

    assert connection.sent == [SUBSCRIBE_ORDER]
    assert harness.realtime.connected is True
    assert harness.poller.active is False
    assert [record["id"] for record in harness.reconciler.records] == ["o-2", "o-1"]
    assert harness.reconciler.get("o-1") == {"id": "o-1", "status": "SHIPPED", "user": {"name": "Ana"}}
    assert harness.reconciler.get("o-2")["netPrice"] == "12.00"

    await harness.realtime.disable()


@pytest.mark.asyncio
async def test_channel_loss_falls_back_to_polling_until_reconnected():
    harness = Harness()
    harness.reconciler.load([{"id": "o-1", "status": "PENDING", "user": {"name": "Ana"}}])
    harness.snapshots.append([{"id": "o-1", "status": "PAID"}, {"id": "o-3", "status": "PENDING"}])
    await harness.realtime.enable(ChannelCredential(token="tok"))

    harness.transport.latest.drop()
    await settle()

    assert harness.realtime.connected is False
    assert harness.poller.active is True
    assert harness.poll_clock.delays == [2.0]

    await harness.poll_clock.advance()

    assert [record["id"] for record in harness.reconciler.records] == ["o-3", "o-1"]
    assert harness.reconciler.get("o-1") == {"id": "o-1", "status": "PAID", "user": {"name": "Ana"}}

    await harness.channel_clock.advance()

    assert harness.realtime.connected is True
    assert harness.poller.active is False
    assert harness.transport.latest.sent == [SUBSCRIBE_ORDER]

    await harness.realtime.disable()


@pytest.mark.asyncio
async def test_unreachable_channel_starts_polling_immediately():
    harness = Harness(transport=FakeTransport(fail_times=1))

    await harness.realtime.enable(ChannelCredential(token="tok"))
    await settle()

    assert harness.realtime.enabled is True
    assert harness.poller.active is True
    assert harness.poll_clock.delays == [2.0]
    assert harness.channel.reconnect_pending is True

    await harness.realtime.disable()
    await settle()

    assert harness.poller.active is False
    assert harness.channel.reconnect_pending is False


@pytest.mark.asyncio
async def test_enable_twice_takes_one_lease():
    harness = Harness()
    credential = ChannelCredential(token="tok")

    await harness.realtime.enable(credential)
    await harness.realtime.enable(credential)

    assert len(harness.transport.connections) == 1
    assert harness.channel.subscriptions == {("order", None): 1}
    await harness.realtime.disable()


@pytest.mark.asyncio
async def test_disable_releases_channel():
    harness = Harness()
    await harness.realtime.enable(ChannelCredential(token="tok"))
    connection = harness.transport.latest

    await harness.realtime.disable()
    await harness.realtime.disable()

    assert connection.closed is True
    assert harness.realtime.enabled is False
    assert harness.channel.subscriptions == {}


@pytest.mark.asyncio
async def test_realtime_flag_off_leaves_channel_untouched():
    harness = Harness(flags=ClientFeatureFlags(realtime_enabled=False))

    await harness.realtime.enable(ChannelCredential(token="tok"))

    assert harness.transport.connections == []
    assert harness.realtime.enabled is False


@pytest.mark.asyncio
async def test_polling_flag_off_skips_fallback():
    harness = Harness(transport=FakeTransport(fail_times=1), flags=ClientFeatureFlags(polling_fallback_enabled=False))

    await harness.realtime.enable(ChannelCredential(token="tok"))
    await settle()

    assert harness.poller.active is False
    assert harness.poll_clock.delays == []
    await harness.realtime.disable()
