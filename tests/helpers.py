from __future__ import annotations

import asyncio
import json
from collections.abc import Callable

import httpx

from bambite_client_sdk.config import SDKConfig
from bambite_client_sdk.http_client import HttpClient
from bambite_client_sdk.realtime.channel import ChannelCredential

BASE_URL = "https://api.example.test/api/v1"


async def settle(rounds: int = 10) -> None:
    for _ in range(rounds):
        await asyncio.sleep(0)


def make_http(handler: Callable) -> HttpClient:
    config = SDKConfig(base_url=BASE_URL, renewal_timeout_seconds=2.0)
    client = httpx.AsyncClient(base_url=BASE_URL, transport=httpx.MockTransport(handler))
    return HttpClient(config=config, client=client)


def bearer(request: httpx.Request) -> str | None:
    header = request.headers.get("Authorization")
    return header.split(" ", 1)[1] if header else None


def tokens_payload(access: str, refresh: str) -> dict:
    return {"success": True, "data": {"tokens": {"accessToken": access, "refreshToken": refresh}}}


class ManualClock:
    """Stands in for ``asyncio.sleep``; each sleep parks until ``advance()``."""

    def __init__(self) -> None:
        self.delays: list[float] = []
        self.now = 0.0
        self._waiters: list[tuple[float, asyncio.Future]] = []

    def time(self) -> float:
        return self.now

    async def sleep(self, delay: float) -> None:
        self.delays.append(delay)
        waiter = asyncio.get_running_loop().create_future()
        self._waiters.append((delay, waiter))
        await waiter

    @property
    def parked(self) -> int:
        return len([waiter for _, waiter in self._waiters if not waiter.done()])

    async def advance(self) -> None:
        while self._waiters:
            delay, waiter = self._waiters.pop(0)
            if not waiter.done():
                self.now += delay
                waiter.set_result(None)
                break
        await settle()


class InstantClock:
    def __init__(self) -> None:
        self.delays: list[float] = []

    async def sleep(self, delay: float) -> None:
        self.delays.append(delay)
        await asyncio.sleep(0)


class FakeConnection:
    def __init__(self) -> None:
        self.sent: list[dict] = []
        self.closed = False
        self._inbox: asyncio.Queue = asyncio.Queue()

    async def send(self, message: str) -> None:
        if self.closed:
            raise ConnectionError("connection closed")
        self.sent.append(json.loads(message))

    async def recv(self) -> str:
        item = await self._inbox.get()
        if isinstance(item, Exception):
            raise item
        return item

    async def close(self) -> None:
        self.closed = True

    def push(self, event: str, data: dict) -> None:
        self._inbox.put_nowait(json.dumps({"event": event, "data": data}))

    def push_raw(self, raw: str) -> None:
        self._inbox.put_nowait(raw)

    def drop(self) -> None:
        self._inbox.put_nowait(ConnectionResetError("transport lost"))


class FakeTransport:
    def __init__(self, fail_times: int = 0) -> None:
        self.fail_times = fail_times
        self.connections: list[FakeConnection] = []
        self.credentials: list[ChannelCredential] = []

    async def connect(self, url: str, credential: ChannelCredential) -> FakeConnection:
        self.credentials.append(credential)
        if self.fail_times > 0:
            self.fail_times -= 1
            raise ConnectionRefusedError("push endpoint unavailable")
        connection = FakeConnection()
        self.connections.append(connection)
        return connection

    @property
    def latest(self) -> FakeConnection:
        return self.connections[-1]
