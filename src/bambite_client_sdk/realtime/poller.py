from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable
from typing import Any

from ..errors import ApiError
from ..logger import get_logger, log_event

logger = get_logger(__name__)

SnapshotFetcher = Callable[[], Awaitable[list[dict[str, Any]]]]
SnapshotSink = Callable[[list[dict[str, Any]]], Any]


class PollScheduler:
    """Full-snapshot polling that only runs while the push channel is down.

    After activation it waits ``grace`` seconds, so the page's own initial load
    lands first, then polls every ``interval`` seconds, measured from the
    start of each poll. Deactivation cancels
    the timer at once; a poll already in flight is left to finish.
    """

    def __init__(
        self,
        fetch: SnapshotFetcher,
        sink: SnapshotSink,
        *,
        interval: float = 20.0,
        grace: float = 2.0,
        enabled: bool = True,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
        monotonic: Callable[[], float] | None = None,
    ) -> None:
        self.fetch = fetch
        self.sink = sink
        self.interval = interval
        self.grace = grace
        self.enabled = enabled
        self._sleep = sleep
        self._monotonic = monotonic
        self._task: asyncio.Task | None = None
        self._in_flight = False
        self._poll_lock = asyncio.Lock()
        self.poll_count = 0

    @property
    def active(self) -> bool:
        return self._task is not None and not self._task.done()

    @property
    def in_flight(self) -> bool:
        return self._in_flight

    def set_connected(self, connected: bool) -> None:
        if connected:
            self.stop()
        else:
            self.start()

    def start(self) -> bool:
        if not self.enabled or self.active:
            return False
        self._task = asyncio.create_task(self._run())
        log_event(logger, "poller", "start", None, None, "scheduled", grace=self.grace, interval=self.interval)
        return True

    def stop(self) -> None:
        task, self._task = self._task, None
        if task is None or task.done():
            return
        if not self._in_flight:
            task.cancel()
        log_event(logger, "poller", "stop", None, None, "stopped", in_flight=self._in_flight)

    async def _run(self) -> None:
        me = asyncio.current_task()
        await self._sleep(self.grace)
        now = self._monotonic or asyncio.get_running_loop().time
        while self._task is me:
            started = now()
            await self.poll_once()
            if self._task is not me:
                return
            await self._sleep(max(0.0, self.interval - (now() - started)))

    async def poll_once(self) -> bool:
        async with self._poll_lock:
            self._in_flight = True
            try:
                snapshot = await self.fetch()
            except ApiError as error:
                log_event(
                    logger,
                    "poller",
                    "poll",
                    None,
                    error.trace_id,
                    "failed",
                    error_code=error.code,
                    status_code=error.status_code,
                )
                return False
            except Exception as exc:
                log_event(logger, "poller", "poll", None, None, "failed", level=logging.ERROR, error=repr(exc))
                return False
            finally:
                self._in_flight = False
            try:
                self.sink(snapshot)
            except Exception as exc:
                log_event(logger, "poller", "apply", None, None, "failed", level=logging.ERROR, error=repr(exc))
                return False
            self.poll_count += 1
            log_event(logger, "poller", "poll", None, None, "applied", records=len(snapshot))
            return True
