from __future__ import annotations

import asyncio
import json
from collections import Counter
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from enum import Enum
from typing import Any, Protocol

import websockets
from websockets.exceptions import WebSocketException

from ..logger import get_logger, log_event

logger = get_logger(__name__)

_TRANSPORT_ERRORS = (OSError, asyncio.TimeoutError, WebSocketException)


class EventType(str, Enum):
    NEW_RECORD = "new-record"
    RECORD_UPDATED = "record-updated"
    RESOURCE_UPDATED = "resource-updated"


# wire event name -> (event type, topic)
WIRE_EVENTS: dict[str, tuple[EventType, str]] = {
    "order:new": (EventType.NEW_RECORD, "order"),
    "order:updated": (EventType.RECORD_UPDATED, "order"),
    "inventory:updated": (EventType.RESOURCE_UPDATED, "product"),
    "cart:updated": (EventType.RESOURCE_UPDATED, "cart"),
}


@dataclass(frozen=True)
class ChannelCredential:
    token: str | None = None
    scheme: str = "Bearer"

    def headers(self) -> dict[str, str]:
        if not self.token:
            return {}
        return {"Authorization": f"{self.scheme} {self.token}"}


@dataclass(frozen=True)
class ChannelEvent:
    type: EventType
    topic: str
    name: str
    payload: dict[str, Any]


EventListener = Callable[[ChannelEvent], None]
ConnectionListener = Callable[[bool], None]
Subscription = tuple[str, str | None]


class ChannelConnection(Protocol):
    async def send(self, message: str) -> None: ...

    async def recv(self) -> str: ...

    async def close(self) -> None: ...


class ChannelTransport(Protocol):
    async def connect(self, url: str, credential: ChannelCredential) -> ChannelConnection: ...


class WebSocketTransport:
    def __init__(self, open_timeout: float = 10.0) -> None:
        self.open_timeout = open_timeout

    async def connect(self, url: str, credential: ChannelCredential) -> ChannelConnection:
        return await websockets.connect(
            url,
            additional_headers=credential.headers(),
            open_timeout=self.open_timeout,
        )


class ChannelManager:
    """Zero-or-one push connection per process, shared by any number of leases.

    Topic subscriptions are reference counted across leases; the control
    message goes out when the first holder subscribes and when the last one
    lets go. Messages missed while disconnected are not replayed.
    """

    def __init__(
        self,
        url: str,
        transport: ChannelTransport | None = None,
        *,
        reconnect_base_delay: float = 1.0,
        reconnect_max_delay: float = 30.0,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
        credential_provider: Callable[[], ChannelCredential | None] | None = None,
    ) -> None:
        self.url = url
        self.transport = transport or WebSocketTransport()
        self.reconnect_base_delay = reconnect_base_delay
        self.reconnect_max_delay = reconnect_max_delay
        self._sleep = sleep
        self._credential_provider = credential_provider
        self._connection: ChannelConnection | None = None
        self._credential: ChannelCredential | None = None
        self._wanted = False
        self._connected = False
        self._attempt = 0
        self._reader_task: asyncio.Task | None = None
        self._reconnect_task: asyncio.Task | None = None
        self._subscriptions: Counter[Subscription] = Counter()
        self._event_listeners: list[tuple[ChannelLease, EventType, str | None, EventListener]] = []
        self._connection_listeners: list[tuple[ChannelLease, ConnectionListener]] = []
        self._leases: list[ChannelLease] = []

    @property
    def connected(self) -> bool:
        return self._connected

    @property
    def credential(self) -> ChannelCredential | None:
        return self._credential

    @property
    def subscriptions(self) -> dict[Subscription, int]:
        return dict(self._subscriptions)

    @property
    def reconnect_pending(self) -> bool:
        return self._reconnect_task is not None and not self._reconnect_task.done()

    def lease(self) -> "ChannelLease":
        lease = ChannelLease(self)
        self._leases.append(lease)
        return lease

    async def connect(self, credential: ChannelCredential) -> bool:
        if credential == self._credential and self._wanted:
            return self._connected
        if self._wanted:
            log_event(logger, "channel", "connect", None, None, "credential_changed")
            await self.disconnect()

        self._credential = credential
        self._wanted = True
        try:
            await self._open()
        except _TRANSPORT_ERRORS as exc:
            log_event(logger, "channel", "connect", None, None, "failed", error=str(exc))
            self._schedule_reconnect()
            return False
        return True

    async def disconnect(self) -> None:
        self._wanted = False
        self._cancel_reconnect()
        reader, self._reader_task = self._reader_task, None
        if reader is not None and not reader.done():
            reader.cancel()
        connection, self._connection = self._connection, None
        self._set_connected(False)
        if connection is not None:
            try:
                await connection.close()
            except _TRANSPORT_ERRORS as exc:
                logger.debug("channel close failed: %s", exc)
        log_event(logger, "channel", "disconnect", None, None, "closed")

    async def _open(self) -> None:
        if self._credential is None:
            raise RuntimeError("connect() must be called before opening the channel")
        connection = await self.transport.connect(self.url, self._credential)
        self._connection = connection
        self._attempt = 0
        for topic, resource_id in list(self._subscriptions):
            await self._send_control(connection, "subscribe", topic, resource_id)
        self._reader_task = asyncio.create_task(self._read_loop(connection))
        self._set_connected(True)
        log_event(logger, "channel", "connect", None, None, "connected", subscriptions=len(self._subscriptions))

    async def _read_loop(self, connection: ChannelConnection) -> None:
        try:
            while True:
                raw = await connection.recv()
                self._dispatch_raw(raw)
        except _TRANSPORT_ERRORS as exc:
            if connection is not self._connection:
                return
            self._connection = None
            self._reader_task = None
            self._set_connected(False)
            log_event(logger, "channel", "transport", None, None, "lost", error=str(exc))
            if self._wanted:
                self._schedule_reconnect()

    def _schedule_reconnect(self) -> None:
        if self.reconnect_pending or not self._wanted:
            return
        self._reconnect_task = asyncio.create_task(self._reconnect_loop())

    def _cancel_reconnect(self) -> None:
        task, self._reconnect_task = self._reconnect_task, None
        if task is not None and not task.done() and task is not asyncio.current_task():
            task.cancel()

    async def _reconnect_loop(self) -> None:
        while self._wanted and self._connection is None:
            delay = self.backoff_delay(self._attempt)
            self._attempt += 1
            log_event(logger, "channel", "reconnect", None, None, "scheduled", delay=delay, attempt=self._attempt)
            await self._sleep(delay)
            if not self._wanted:
                return
            self._refresh_credential()
            try:
                await self._open()
            except _TRANSPORT_ERRORS as exc:
                log_event(logger, "channel", "reconnect", None, None, "failed", error=str(exc))

    def _refresh_credential(self) -> None:
        if self._credential_provider is None:
            return
        credential = self._credential_provider()
        if credential is not None and credential.token:
            self._credential = credential

    def backoff_delay(self, attempt: int) -> float:
        return min(self.reconnect_base_delay * (2**attempt), self.reconnect_max_delay)

    def _dispatch_raw(self, raw: str | bytes) -> None:
        try:
            message = json.loads(raw)
        except ValueError:
            logger.warning("dropping non-JSON channel message")
            return
        if not isinstance(message, dict):
            logger.warning("dropping channel message that is not an object")
            return

        name = message.get("event")
        mapped = WIRE_EVENTS.get(name) if isinstance(name, str) else None
        if mapped is None:
            logger.debug("ignoring channel event %r", name)
            return
        data = message.get("data")
        if not isinstance(data, dict):
            logger.warning("dropping %s event without a data object", name)
            return

        event_type, topic = mapped
        event = ChannelEvent(type=event_type, topic=topic, name=name, payload=data)
        for _, listen_type, listen_topic, listener in list(self._event_listeners):
            if listen_type is not event_type:
                continue
            if listen_topic is not None and listen_topic != topic:
                continue
            try:
                listener(event)
            except Exception:
                logger.exception("channel listener failed for %s", name)

    def _set_connected(self, value: bool) -> None:
        if self._connected == value:
            return
        self._connected = value
        for _, listener in list(self._connection_listeners):
            try:
                listener(value)
            except Exception:
                logger.exception("connection listener failed")

    async def _send_control(
        self,
        connection: ChannelConnection | None,
        action: str,
        topic: str,
        resource_id: str | None,
    ) -> None:
        if connection is None:
            return
        message: dict[str, Any] = {"type": action, "channel": topic}
        if resource_id is not None:
            message["id"] = resource_id
        try:
            await connection.send(json.dumps(message))
        except _TRANSPORT_ERRORS as exc:
            # the read loop notices the dead transport and drives reconnection
            logger.warning("channel %s for %s failed: %s", action, topic, exc)

    async def _acquire(self, key: Subscription) -> None:
        self._subscriptions[key] += 1
        if self._subscriptions[key] == 1:
            await self._send_control(self._connection, "subscribe", *key)

    async def _drop(self, key: Subscription) -> None:
        if self._subscriptions[key] <= 0:
            return
        self._subscriptions[key] -= 1
        if self._subscriptions[key] == 0:
            del self._subscriptions[key]
            await self._send_control(self._connection, "unsubscribe", *key)

    async def _release_lease(self, lease: "ChannelLease", held: list[Subscription]) -> None:
        self._event_listeners = [entry for entry in self._event_listeners if entry[0] is not lease]
        self._connection_listeners = [entry for entry in self._connection_listeners if entry[0] is not lease]
        if lease in self._leases:
            self._leases.remove(lease)
        last_holder = not self._leases
        if last_holder:
            self._wanted = False
            self._cancel_reconnect()
        for key in held:
            await self._drop(key)
        if last_holder:
            await self.disconnect()


class ChannelLease:
    """One caller's view of the shared channel: its subscriptions and listeners."""

    def __init__(self, manager: ChannelManager) -> None:
        self._manager = manager
        self._held: list[Subscription] = []
        self._released = False

    @property
    def connected(self) -> bool:
        return self._manager.connected

    @property
    def held(self) -> list[Subscription]:
        return list(self._held)

    async def subscribe(self, topic: str, resource_id: str | None = None) -> None:
        key = (topic, resource_id)
        if self._released or key in self._held:
            return
        self._held.append(key)
        await self._manager._acquire(key)

    async def unsubscribe(self, topic: str, resource_id: str | None = None) -> None:
        key = (topic, resource_id)
        if key not in self._held:
            return
        self._held.remove(key)
        await self._manager._drop(key)

    def on_event(self, event_type: EventType, listener: EventListener, topic: str | None = None) -> Callable[[], None]:
        entry = (self, event_type, topic, listener)
        self._manager._event_listeners.append(entry)

        def _remove() -> None:
            if entry in self._manager._event_listeners:
                self._manager._event_listeners.remove(entry)

        return _remove

    def on_connection_change(self, listener: ConnectionListener) -> Callable[[], None]:
        entry = (self, listener)
        self._manager._connection_listeners.append(entry)

        def _remove() -> None:
            if entry in self._manager._connection_listeners:
                self._manager._connection_listeners.remove(entry)

        return _remove

    async def release(self) -> None:
        if self._released:
            return
        self._released = True
        held, self._held = self._held, []
        await self._manager._release_lease(self, held)
