from .channel import (
    ChannelCredential,
    ChannelEvent,
    ChannelLease,
    ChannelManager,
    EventType,
    WebSocketTransport,
)
from .orders import RealtimeOrders
from .poller import PollScheduler
from .reconciler import Reconciler, merge_fields

__all__ = [
    "ChannelCredential",
    "ChannelEvent",
    "ChannelLease",
    "ChannelManager",
    "EventType",
    "PollScheduler",
    "RealtimeOrders",
    "Reconciler",
    "WebSocketTransport",
    "merge_fields",
]
