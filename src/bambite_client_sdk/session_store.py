from __future__ import annotations

import json
from pathlib import Path

from platformdirs import user_data_dir
from pydantic import ValidationError

from .models import Role, Session


class SessionStore:
    """Per-role credential material, persisted so a restart does not force a new login.

    The file only lets the client *attempt* authenticated calls right away; the
    server stays the authority on whether a token is still good.
    """

    def __init__(self, path: str | Path | None = None, app_name: str = "bambite", filename: str = "sessions.json") -> None:
        self._explicit_path = Path(path) if path else None
        self.app_name = app_name
        self.filename = filename

    def _path(self) -> Path:
        if self._explicit_path is not None:
            self._explicit_path.parent.mkdir(parents=True, exist_ok=True)
            return self._explicit_path
        base = Path(user_data_dir(self.app_name, "Bambite"))
        base.mkdir(parents=True, exist_ok=True)
        return base / self.filename

    def get(self, role: Role) -> Session | None:
        raw = self._load().get(role.value)
        if raw is None:
            return None
        try:
            return Session.model_validate(raw)
        except ValidationError:
            self.clear(role)
            return None

    def set(self, role: Role, session: Session) -> None:
        data = self._load()
        data[role.value] = session.model_copy(update={"role": role}).model_dump(mode="json")
        self._write(data)

    def update_tokens(self, role: Role, access_token: str | None, refresh_token: str | None) -> Session:
        current = self.get(role) or Session(role=role)
        updated = current.model_copy(
            update={
                "access_token": access_token,
                "refresh_token": refresh_token or current.refresh_token,
            }
        )
        self.set(role, updated)
        return updated

    def clear(self, role: Role | None = None) -> None:
        if role is None:
            path = self._path()
            if path.exists():
                path.unlink()
            return
        data = self._load()
        if data.pop(role.value, None) is not None:
            self._write(data)

    def has_active(self) -> bool:
        return any(self.get(role) is not None for role in Role)

    def active_roles(self) -> list[Role]:
        return [role for role in Role if self.get(role) is not None]

    def _load(self) -> dict[str, dict]:
        path = self._path()
        if not path.exists():
            return {}
        try:
            data = json.loads(path.read_text(encoding="utf-8"))
        except (ValueError, OSError):
            path.unlink(missing_ok=True)
            return {}
        return data if isinstance(data, dict) else {}

    def _write(self, data: dict[str, dict]) -> None:
        path = self._path()
        path.write_text(json.dumps(data, indent=2), encoding="utf-8")
        try:
            path.chmod(0o600)
        except OSError:
            pass
