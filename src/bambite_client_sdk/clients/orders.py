from __future__ import annotations

from dataclasses import dataclass
from typing import Any

from ..normalizers import build_query_params, extract_record, extract_rows
from .base import BaseClient

SNAPSHOT_PATH = "/realtime/admin/orders"


@dataclass
class OrdersClient(BaseClient):
    module: str = "orders"

    async def list_orders(
        self,
        *,
        status: str | None = None,
        user_id: str | None = None,
        start_date: str | None = None,
        end_date: str | None = None,
        page: int | None = None,
        limit: int | None = None,
    ) -> list[dict[str, Any]]:
        params = build_query_params(
            status=status,
            userId=user_id,
            startDate=start_date,
            endDate=end_date,
            page=page,
            limit=limit,
        )
        payload = await self._request("GET", "/orders", operation="list", params=params or None)
        return extract_rows(payload)

    async def get_order(self, order_id: str) -> dict[str, Any]:
        payload = await self._request("GET", f"/orders/{order_id}", operation="detail")
        return extract_record(payload)

    async def update_status(self, order_id: str, status: str) -> dict[str, Any]:
        payload = await self._request(
            "PATCH",
            f"/orders/{order_id}/status",
            operation="update_status",
            json_body={"status": status},
        )
        return extract_record(payload)

    async def cancel_order(self, order_id: str) -> dict[str, Any]:
        payload = await self._request("POST", f"/orders/{order_id}/cancel", operation="cancel", json_body={})
        return extract_record(payload)

    async def admin_snapshot(self) -> list[dict[str, Any]]:
        """Summary list the realtime service keeps for privileged views; feeds the poll fallback."""
        payload = await self._request("GET", SNAPSHOT_PATH, operation="snapshot")
        return extract_rows(payload)
