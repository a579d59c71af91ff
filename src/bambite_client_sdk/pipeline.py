from __future__ import annotations

import asyncio
import itertools
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from enum import Enum
from typing import Any

import httpx
from pydantic import ValidationError

from .errors import ApiError, SessionExpiredError
from .http_client import HttpClient, RequestSpec, parse_body
from .logger import get_logger, log_event
from .models import AuthResponse, Role, Session
from .session_store import SessionStore

REFRESH_PATH = "/auth/refresh"

logger = get_logger(__name__)

Renewer = Callable[[Session | None], Awaitable[AuthResponse]]


class PipelineState(str, Enum):
    IDLE = "idle"
    RENEWING = "renewing"
    TERMINAL = "terminal"


@dataclass
class PendingRequest:
    id: int
    spec: RequestSpec
    future: asyncio.Future


@dataclass(frozen=True)
class SessionExpired:
    role: Role
    redirect_to: str
    error: ApiError


SessionExpiredListener = Callable[[SessionExpired], None]


class RequestPipeline:
    """Authenticated request entry point for one role.

    Every call carries the role's current access token. The first 401 seen
    while idle starts a single renewal; calls that fail with 401 until it
    settles are parked and replayed once, in arrival order, with the renewed
    credentials. A failed renewal rejects everything parked, drops the role's
    session and emits one session-expired signal.
    """

    def __init__(
        self,
        http: HttpClient,
        store: SessionStore,
        role: Role,
        *,
        renew: Renewer | None = None,
        renewal_timeout: float | None = None,
    ) -> None:
        self.http = http
        self.store = store
        self.role = role
        self.renewal_timeout = renewal_timeout or http.config.renewal_timeout_seconds
        self._renew = renew or self._refresh_tokens
        self._state = PipelineState.IDLE
        self._queue: list[PendingRequest] = []
        self._ids = itertools.count(1)
        self._renewal_task: asyncio.Task | None = None
        self._expired_listeners: list[SessionExpiredListener] = []

    @property
    def state(self) -> PipelineState:
        return self._state

    @property
    def pending_count(self) -> int:
        return len(self._queue)

    def on_session_expired(self, listener: SessionExpiredListener) -> Callable[[], None]:
        self._expired_listeners.append(listener)

        def _remove() -> None:
            if listener in self._expired_listeners:
                self._expired_listeners.remove(listener)

        return _remove

    async def request(self, spec: RequestSpec) -> dict[str, Any] | list[Any] | None:
        response, sent_token = await self._dispatch(spec)
        if response.status_code != 401:
            return self._finish(response)
        if spec.auth_exempt:
            raise ApiError.from_http_response(response, auth_exempt=True)

        current_token = self._current_token()
        if self._state is PipelineState.IDLE and current_token and sent_token != current_token:
            # credentials were renewed while this call was in flight
            return await self._replay(spec)
        return await self._enqueue(spec)

    async def aclose(self) -> None:
        if self._renewal_task is not None and not self._renewal_task.done():
            self._renewal_task.cancel()
        queue, self._queue = self._queue, []
        for pending in queue:
            if not pending.future.done():
                pending.future.cancel()
        self._state = PipelineState.IDLE

    async def _enqueue(self, spec: RequestSpec) -> dict[str, Any] | list[Any] | None:
        pending = PendingRequest(id=next(self._ids), spec=spec, future=asyncio.get_running_loop().create_future())
        self._queue.append(pending)
        if self._state is PipelineState.IDLE:
            self._state = PipelineState.RENEWING
            self._renewal_task = asyncio.create_task(self._run_renewal())
        return await pending.future

    async def _run_renewal(self) -> None:
        session = self.store.get(self.role)
        log_event(logger, "pipeline", "renewal", self.role.value, None, "started", queued=len(self._queue))
        try:
            auth = await asyncio.wait_for(self._renew(session), timeout=self.renewal_timeout)
        except asyncio.TimeoutError as exc:
            self._fail(
                ApiError(code="RENEWAL_TIMEOUT", message="Session renewal timed out", status_code=0),
                cause=exc,
            )
            return
        except ApiError as exc:
            self._fail(exc, cause=exc)
            return
        except Exception as exc:
            self._fail(_renewal_failed(f"Session renewal failed: {exc}"), cause=exc)
            return

        if not auth.access_token:
            error = _renewal_failed("Session renewal returned no access token")
            self._fail(error, cause=error)
            return
        self.store.update_tokens(self.role, auth.access_token, auth.refresh_token)
        log_event(logger, "pipeline", "renewal", self.role.value, None, "succeeded", queued=len(self._queue))

        self._state = PipelineState.IDLE
        queue, self._queue = self._queue, []
        for pending in queue:
            if pending.future.done():
                continue
            try:
                result = await self._replay(pending.spec)
            except Exception as exc:
                if not pending.future.done():
                    pending.future.set_exception(exc)
            else:
                if not pending.future.done():
                    pending.future.set_result(result)

    def _fail(self, error: ApiError, *, cause: BaseException) -> None:
        self._state = PipelineState.TERMINAL
        queue, self._queue = self._queue, []
        log_event(
            logger,
            "pipeline",
            "renewal",
            self.role.value,
            error.trace_id,
            "failed",
            queued=len(queue),
            error_code=error.code,
        )
        for pending in queue:
            if not pending.future.done():
                expired = _session_expired(error)
                expired.__cause__ = cause
                pending.future.set_exception(expired)

        self.store.clear(self.role)
        signal = SessionExpired(role=self.role, redirect_to=self.role.entry_point, error=_session_expired(error))
        log_event(logger, "pipeline", "session_expired", self.role.value, error.trace_id, "redirect", to=signal.redirect_to)
        for listener in list(self._expired_listeners):
            try:
                listener(signal)
            except Exception:
                logger.exception("session-expired listener failed")
        self._state = PipelineState.IDLE

    async def _replay(self, spec: RequestSpec) -> dict[str, Any] | list[Any] | None:
        response, _ = await self._dispatch(spec)
        if response.status_code == 401:
            raise ApiError.from_http_response(response, auth_exempt=True)
        return self._finish(response)

    async def _dispatch(self, spec: RequestSpec) -> tuple[httpx.Response, str | None]:
        token = self._current_token()
        response = await self.http.send(spec, token)
        return response, token

    def _current_token(self) -> str | None:
        session = self.store.get(self.role)
        return session.access_token if session else None

    @staticmethod
    def _finish(response: httpx.Response) -> dict[str, Any] | list[Any] | None:
        if response.is_success:
            return parse_body(response)
        raise ApiError.from_http_response(response)

    async def _refresh_tokens(self, session: Session | None) -> AuthResponse:
        body = {"refreshToken": session.refresh_token} if session and session.refresh_token else {}
        payload = await self.request(
            RequestSpec(
                method="POST",
                path=REFRESH_PATH,
                json_body=body,
                auth_exempt=True,
                module="auth",
                operation="refresh",
            )
        )
        try:
            return AuthResponse.parse(payload)
        except ValidationError as exc:
            raise _renewal_failed("Session renewal returned malformed tokens", details=exc.errors()) from exc


def _renewal_failed(message: str, details: Any = None) -> ApiError:
    return ApiError(code="RENEWAL_FAILED", message=message, details=details, status_code=0)


def _session_expired(error: ApiError) -> SessionExpiredError:
    return SessionExpiredError(
        code="SESSION_EXPIRED",
        message="Your session has expired. Please sign in again.",
        details={"renewal_error": error.code, "renewal_message": error.message},
        trace_id=error.trace_id,
        status_code=401,
    )

