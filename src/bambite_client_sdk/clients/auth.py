from __future__ import annotations

from dataclasses import dataclass
from typing import Any

from ..errors import ApiError, AuthInvalidError
from ..logger import get_logger, log_event
from ..models import AuthResponse, Role, Session
from ..pipeline import REFRESH_PATH
from .base import BaseClient

logger = get_logger(__name__)


@dataclass
class AuthClient(BaseClient):
    module: str = "auth"

    async def login(self, email: str, password: str) -> Session:
        role = self.pipeline.role
        payload = await self._request(
            "POST",
            role.login_path,
            operation="login",
            json_body={"email": email, "password": password},
            auth_exempt=True,
        )
        session = self._establish(payload)
        log_event(logger, "auth", "login", role.value, None, "success")
        return session

    async def register(self, registration: dict[str, Any]) -> Session:
        if self.pipeline.role is not Role.CUSTOMER:
            raise AuthInvalidError(code="ROLE_NOT_ALLOWED", message="Only customers can self-register", status_code=0)
        payload = await self._request(
            "POST",
            "/auth/user/register",
            operation="register",
            json_body=registration,
            auth_exempt=True,
        )
        return self._establish(payload)

    async def refresh(self, refresh_token: str | None = None) -> AuthResponse:
        body = {"refreshToken": refresh_token} if refresh_token else {}
        payload = await self._request("POST", REFRESH_PATH, operation="refresh", json_body=body, auth_exempt=True)
        return AuthResponse.parse(payload)

    async def change_password(self, current_password: str, new_password: str) -> None:
        await self._request(
            "POST",
            "/auth/change-password",
            operation="change_password",
            json_body={"currentPassword": current_password, "newPassword": new_password},
            auth_exempt=True,
        )

    async def profile(self) -> dict[str, Any]:
        path = {
            Role.ADMIN: "/auth/admin/profile",
            Role.STAFF: "/staff-accounts/profile",
            Role.CUSTOMER: "/auth/user/profile",
        }[self.pipeline.role]
        payload = await self._request("GET", path, operation="profile")
        if isinstance(payload, dict) and isinstance(payload.get("data"), dict):
            return payload["data"]
        return payload if isinstance(payload, dict) else {}

    async def logout(self) -> None:
        await self._end_session("/auth/logout", operation="logout")

    async def logout_all(self) -> None:
        await self._end_session("/auth/logout-all", operation="logout_all")

    async def _end_session(self, path: str, *, operation: str) -> None:
        role = self.pipeline.role
        session = self.pipeline.store.get(role)
        body = {"refreshToken": session.refresh_token} if session and session.refresh_token else {}
        try:
            await self._request("POST", path, operation=operation, json_body=body, auth_exempt=True)
        except ApiError as error:
            # the local session goes regardless; the server may already have dropped it
            log_event(logger, "auth", operation, role.value, error.trace_id, "server_error", error_code=error.code)
        else:
            log_event(logger, "auth", operation, role.value, None, "success")
        finally:
            self.pipeline.store.clear(role)

    def _establish(self, payload: Any) -> Session:
        role = self.pipeline.role
        session = AuthResponse.parse(payload).to_session(role)
        self.pipeline.store.set(role, session)
        return session
