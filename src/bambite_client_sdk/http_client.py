from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from typing import Any

import httpx

from .config import SDKConfig
from .errors import NetworkUnreachableError

TRACE_HEADER = "X-Trace-ID"


@dataclass(frozen=True)
class RequestSpec:
    method: str
    path: str
    json_body: dict[str, Any] | None = None
    params: dict[str, Any] | None = None
    headers: dict[str, str] = field(default_factory=dict)
    auth_exempt: bool = False
    module: str = "unknown"
    operation: str = "unknown"


class HttpClient:
    def __init__(self, config: SDKConfig | None = None, client: httpx.AsyncClient | None = None) -> None:
        self.config = config or SDKConfig.from_env()
        self._client = client or httpx.AsyncClient(
            base_url=self.config.base_url,
            timeout=self.config.timeout_seconds,
            verify=self.config.verify_ssl,
        )

    async def send(self, spec: RequestSpec, token: str | None = None) -> httpx.Response:
        request_headers = {"Accept": "application/json", TRACE_HEADER: str(uuid.uuid4())}
        request_headers.update(spec.headers)
        if token:
            request_headers["Authorization"] = f"Bearer {token}"

        normalized_path = spec.path if spec.path.startswith("/") else f"/{spec.path}"
        try:
            return await self._client.request(
                method=spec.method.upper(),
                url=normalized_path,
                json=spec.json_body,
                params=spec.params,
                headers=request_headers,
            )
        except httpx.TimeoutException as exc:
            raise NetworkUnreachableError(
                code="TIMEOUT_ERROR",
                message="The server took too long to respond.",
                details=str(exc),
                trace_id=request_headers[TRACE_HEADER],
                status_code=0,
            ) from exc
        except httpx.TransportError as exc:
            raise NetworkUnreachableError(
                code="NETWORK_ERROR",
                message="No response from server. Please check your connection.",
                details=str(exc),
                trace_id=request_headers[TRACE_HEADER],
                status_code=0,
            ) from exc

    async def aclose(self) -> None:
        await self._client.aclose()


def parse_body(response: httpx.Response) -> dict[str, Any] | list[Any] | None:
    if not response.content:
        return None
    try:
        return response.json()
    except ValueError:
        return {"message": response.text}
