from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Any

import httpx

_HTML_ERROR = re.compile(r"Error: ([^<]+)<")


@dataclass
class ApiError(Exception):
    code: str
    message: str
    details: dict[str, Any] | list[Any] | str | None = None
    trace_id: str | None = None
    status_code: int | None = None
    retry_after: float | None = None

    def __str__(self) -> str:
        return f"{self.code}: {self.message}"

    def to_payload(self) -> dict[str, Any]:
        """Normalized shape handed to calling pages."""
        payload: dict[str, Any] = {
            "message": self.message,
            "statusCode": self.status_code or 0,
            "errorCode": self.code,
        }
        if self.retry_after is not None:
            payload["retryAfter"] = self.retry_after
        return payload

    @classmethod
    def from_http_response(cls, response: httpx.Response, *, auth_exempt: bool = False) -> "ApiError":
        status_code = response.status_code
        mapped = error_class_for_status(status_code, auth_exempt=auth_exempt)
        trace_id = _extract_trace_id(response)
        payload = _safe_json(response)

        if isinstance(payload, dict):
            code = str(payload.get("code") or payload.get("error") or _default_code(status_code))
            message = str(payload.get("message") or payload.get("error") or response.text or "HTTP request failed")
            details = payload.get("details")
            retry_after = _retry_after(response, payload)
        else:
            code = _default_code(status_code)
            message = _message_from_text(response.text)
            details = payload
            retry_after = _retry_after(response, {})

        return mapped(
            code=code,
            message=message,
            details=details,
            trace_id=trace_id,
            status_code=status_code,
            retry_after=retry_after,
        )


class AuthExpiredError(ApiError):
    """401 on an ordinary call; handled locally by renewal."""


class AuthInvalidError(ApiError):
    """Terminal authorization failure; renewal is never attempted for it."""


class RateLimitedError(ApiError):
    """429 throttling; surfaced verbatim with ``retry_after``."""


class NetworkUnreachableError(ApiError):
    """No response was received (connect failure, timeout)."""


class ServerError(ApiError):
    """5xx server-side failures."""


class ValidationRejectedError(ApiError):
    """4xx other than 401 and 429."""


class SessionExpiredError(ApiError):
    """Renewal failed; the role's session has been discarded."""


def error_class_for_status(status_code: int, *, auth_exempt: bool = False) -> type[ApiError]:
    if status_code == 401:
        return AuthInvalidError if auth_exempt else AuthExpiredError
    if status_code == 429:
        return RateLimitedError
    if status_code >= 500:
        return ServerError
    if status_code >= 400:
        return ValidationRejectedError
    if status_code <= 0:
        return NetworkUnreachableError
    return ApiError


def _default_code(status_code: int) -> str:
    if status_code == 401:
        return "UNAUTHORIZED"
    if status_code == 429:
        return "RATE_LIMITED"
    return "HTTP_ERROR"


def _safe_json(response: httpx.Response) -> Any:
    try:
        return response.json()
    except ValueError:
        return None


def _message_from_text(text: str) -> str:
    if "<html" in text.lower():
        match = _HTML_ERROR.search(text)
        if match:
            return match.group(1).strip()
        return "HTTP request failed"
    return text or "HTTP request failed"


def _retry_after(response: httpx.Response, payload: dict[str, Any]) -> float | None:
    raw = payload.get("retryAfter", response.headers.get("Retry-After"))
    if raw is None:
        return None
    try:
        return float(raw)
    except (TypeError, ValueError):
        return None


def _extract_trace_id(response: httpx.Response) -> str | None:
    payload = _safe_json(response)
    if isinstance(payload, dict) and payload.get("trace_id"):
        return str(payload["trace_id"])
    return response.headers.get("X-Trace-ID") or response.headers.get("X-Trace-Id")
