from __future__ import annotations

from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field


class Role(str, Enum):
    ADMIN = "admin"
    STAFF = "staff"
    CUSTOMER = "customer"

    @property
    def login_path(self) -> str:
        return _LOGIN_PATHS[self]

    @property
    def entry_point(self) -> str:
        """Where the console sends the operator once this role's session is gone."""
        return _ENTRY_POINTS[self]


_LOGIN_PATHS = {
    Role.ADMIN: "/auth/admin/login",
    Role.STAFF: "/staff-accounts/login",
    Role.CUSTOMER: "/auth/user/login",
}

_ENTRY_POINTS = {
    Role.ADMIN: "/admin/login",
    Role.STAFF: "/staff/login",
    Role.CUSTOMER: "/login",
}


class Session(BaseModel):
    role: Role
    access_token: str | None = None
    refresh_token: str | None = None
    user_summary: dict[str, Any] = Field(default_factory=dict)


class AuthResponse(BaseModel):
    access_token: str | None = None
    refresh_token: str | None = None
    user: dict[str, Any] = Field(default_factory=dict)

    @classmethod
    def parse(cls, payload: Any) -> "AuthResponse":
        """Accept every token layout the backend has shipped (nested, flat, legacy ``token``)."""
        if not isinstance(payload, dict):
            return cls()
        body = payload.get("data") if isinstance(payload.get("data"), dict) else payload
        tokens = body.get("tokens") if isinstance(body.get("tokens"), dict) else {}
        access = tokens.get("accessToken") or body.get("accessToken") or body.get("token")
        refresh = tokens.get("refreshToken") or body.get("refreshToken")
        user: dict[str, Any] = {}
        for key in ("user", "admin", "staffAccount"):
            candidate = body.get(key)
            if isinstance(candidate, dict):
                user = candidate
                break
        return cls(access_token=access, refresh_token=refresh, user=user)

    def to_session(self, role: Role) -> Session:
        return Session(
            role=role,
            access_token=self.access_token,
            refresh_token=self.refresh_token,
            user_summary=_summarize_user(self.user),
        )


def _summarize_user(user: dict[str, Any]) -> dict[str, Any]:
    keys = ("id", "email", "name", "firstName", "lastName", "role", "mustChangePassword")
    return {key: user[key] for key in keys if key in user}


class _EventModel(BaseModel):
    model_config = ConfigDict(extra="ignore")


class NewOrderEvent(_EventModel):
    id: str
    userId: str | None = None
    status: str | None = None
    netPrice: str | None = None
    orderedDate: str | None = None
    itemCount: int | None = None

    def to_record(self) -> dict[str, Any]:
        return _present(
            id=self.id,
            userId=self.userId,
            status=self.status,
            netPrice=self.netPrice,
            orderedDate=self.orderedDate,
        )


class OrderUpdateEvent(_EventModel):
    orderId: str
    status: str | None = None
    netPrice: str | None = None
    orderedDate: str | None = None

    def to_record(self) -> dict[str, Any]:
        return _present(id=self.orderId, status=self.status, netPrice=self.netPrice, orderedDate=self.orderedDate)


class InventoryUpdateEvent(_EventModel):
    productId: str
    stockQuantity: int | None = None
    quantityChange: int | None = None
    reason: str | None = None


def _present(**fields: Any) -> dict[str, Any]:
    return {key: value for key, value in fields.items() if value is not None}
