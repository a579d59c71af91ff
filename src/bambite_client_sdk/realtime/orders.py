from __future__ import annotations

from collections.abc import Awaitable, Callable
from typing import Any

from pydantic import ValidationError

from ..feature_flags import ClientFeatureFlags
from ..logger import get_logger, log_event
from ..models import NewOrderEvent, OrderUpdateEvent
from .channel import ChannelCredential, ChannelEvent, ChannelLease, ChannelManager, EventType
from .poller import PollScheduler
from .reconciler import Reconciler

logger = get_logger(__name__)

ORDER_TOPIC = "order"


class RealtimeOrders:
    """Keeps the privileged order list live: push events first, snapshot polling while the channel is down."""

    def __init__(
        self,
        channel: ChannelManager,
        reconciler: Reconciler,
        fetch_snapshot: Callable[[], Awaitable[list[dict[str, Any]]]],
        *,
        flags: ClientFeatureFlags | None = None,
        poll_interval: float = 20.0,
        poll_grace: float = 2.0,
        poller: PollScheduler | None = None,
    ) -> None:
        self.channel = channel
        self.reconciler = reconciler
        self.flags = flags or ClientFeatureFlags()
        self.poller = poller or PollScheduler(
            fetch_snapshot,
            reconciler.apply_snapshot,
            interval=poll_interval,
            grace=poll_grace,
            enabled=self.flags.polling_enabled,
        )
        self._lease: ChannelLease | None = None

    @property
    def enabled(self) -> bool:
        return self._lease is not None

    @property
    def connected(self) -> bool:
        return self.channel.connected

    async def enable(self, credential: ChannelCredential) -> None:
        if self._lease is not None or not self.flags.realtime_enabled:
            return
        lease = self.channel.lease()
        self._lease = lease
        lease.on_event(EventType.NEW_RECORD, self._on_new_order, topic=ORDER_TOPIC)
        lease.on_event(EventType.RECORD_UPDATED, self._on_order_updated, topic=ORDER_TOPIC)
        lease.on_connection_change(self.poller.set_connected)
        await lease.subscribe(ORDER_TOPIC)
        connected = await self.channel.connect(credential)
        if not connected:
            self.poller.set_connected(False)
        log_event(logger, "realtime_orders", "enable", None, None, "connected" if connected else "polling")

    async def disable(self) -> None:
        self.poller.stop()
        lease, self._lease = self._lease, None
        if lease is not None:
            await lease.release()
        log_event(logger, "realtime_orders", "disable", None, None, "released")

    def _on_new_order(self, event: ChannelEvent) -> None:
        try:
            record = NewOrderEvent.model_validate(event.payload).to_record()
        except ValidationError:
            logger.warning("dropping malformed %s payload", event.name)
            return
        self.reconciler.apply_new_record(record)

    def _on_order_updated(self, event: ChannelEvent) -> None:
        try:
            record = OrderUpdateEvent.model_validate(event.payload).to_record()
        except ValidationError:
            logger.warning("dropping malformed %s payload", event.name)
            return
        self.reconciler.apply_record_updated(record)
