from __future__ import annotations

from dataclasses import dataclass
from typing import Any

from ..http_client import RequestSpec
from ..pipeline import RequestPipeline


@dataclass
class BaseClient:
    pipeline: RequestPipeline
    module: str = "unknown"

    async def _request(self, method: str, path: str, *, operation: str = "unknown", **kwargs: Any):
        spec = RequestSpec(method=method, path=path, module=self.module, operation=operation, **kwargs)
        return await self.pipeline.request(spec)
