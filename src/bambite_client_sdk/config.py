from __future__ import annotations

import os
from dataclasses import dataclass
from urllib.parse import urlsplit, urlunsplit

from dotenv import load_dotenv

DEFAULT_BASE_URL = "http://localhost:3000/api/v1"
API_PREFIX = "/api/v1"


class ConfigError(ValueError):
    pass


@dataclass(frozen=True)
class SDKConfig:
    base_url: str = DEFAULT_BASE_URL
    realtime_url: str = "ws://localhost:3000/realtime"
    timeout_seconds: float = 15.0
    renewal_timeout_seconds: float = 10.0
    verify_ssl: bool = True
    poll_interval_seconds: float = 20.0
    poll_grace_seconds: float = 2.0
    reconnect_base_delay_seconds: float = 1.0
    reconnect_max_delay_seconds: float = 30.0
    session_file: str | None = None

    @classmethod
    def from_env(cls, env_file: str = ".env") -> "SDKConfig":
        load_dotenv(env_file, override=False)
        base_url = _normalize_base_url(os.getenv("BAMBITE_BASE_URL", DEFAULT_BASE_URL))
        realtime_url = (os.getenv("BAMBITE_REALTIME_URL") or "").strip() or derive_realtime_url(base_url)
        config = cls(
            base_url=base_url,
            realtime_url=realtime_url,
            timeout_seconds=_read_float("BAMBITE_TIMEOUT_SECONDS", "15"),
            renewal_timeout_seconds=_read_float("BAMBITE_RENEWAL_TIMEOUT_SECONDS", "10"),
            verify_ssl=parse_bool(os.getenv("BAMBITE_VERIFY_SSL", "true"), default=True),
            poll_interval_seconds=_read_float("BAMBITE_POLL_INTERVAL_SECONDS", "20"),
            poll_grace_seconds=_read_float("BAMBITE_POLL_GRACE_SECONDS", "2"),
            reconnect_base_delay_seconds=_read_float("BAMBITE_RECONNECT_BASE_DELAY_SECONDS", "1"),
            reconnect_max_delay_seconds=_read_float("BAMBITE_RECONNECT_MAX_DELAY_SECONDS", "30"),
            session_file=(os.getenv("BAMBITE_SESSION_FILE") or "").strip() or None,
        )
        config.validate()
        return config

    def validate(self) -> None:
        if not self.base_url:
            raise ConfigError("BAMBITE_BASE_URL must not be empty")
        if self.timeout_seconds <= 0:
            raise ConfigError(f"Invalid BAMBITE_TIMEOUT_SECONDS: expected > 0, got {self.timeout_seconds}")
        if self.renewal_timeout_seconds <= 0:
            raise ConfigError(
                f"Invalid BAMBITE_RENEWAL_TIMEOUT_SECONDS: expected > 0, got {self.renewal_timeout_seconds}"
            )
        if self.poll_interval_seconds <= 0:
            raise ConfigError(
                f"Invalid BAMBITE_POLL_INTERVAL_SECONDS: expected > 0, got {self.poll_interval_seconds}"
            )
        if self.poll_grace_seconds < 0:
            raise ConfigError(f"Invalid BAMBITE_POLL_GRACE_SECONDS: expected >= 0, got {self.poll_grace_seconds}")
        if self.reconnect_base_delay_seconds <= 0:
            raise ConfigError(
                "Invalid BAMBITE_RECONNECT_BASE_DELAY_SECONDS: "
                f"expected > 0, got {self.reconnect_base_delay_seconds}"
            )
        if self.reconnect_max_delay_seconds < self.reconnect_base_delay_seconds:
            raise ConfigError("BAMBITE_RECONNECT_MAX_DELAY_SECONDS must be >= BAMBITE_RECONNECT_BASE_DELAY_SECONDS")


def derive_realtime_url(base_url: str) -> str:
    """Build the push endpoint from the REST base URL (``http://h/api/v1`` -> ``ws://h/realtime``)."""
    parts = urlsplit(base_url.rstrip("/"))
    scheme = {"https": "wss", "http": "ws"}.get(parts.scheme, parts.scheme)
    path = parts.path
    if path.endswith(API_PREFIX):
        path = path[: -len(API_PREFIX)]
    return urlunsplit((scheme, parts.netloc, f"{path}/realtime", "", ""))


def _normalize_base_url(value: str) -> str:
    normalized = value.strip()
    if not normalized:
        return DEFAULT_BASE_URL
    return normalized.rstrip("/")


def parse_bool(value: str | bool | None, default: bool = True) -> bool:
    if isinstance(value, bool):
        return value
    if value is None:
        return default

    normalized = str(value).strip().lower()
    if normalized in {"1", "true", "t", "yes", "y", "on"}:
        return True
    if normalized in {"0", "false", "f", "no", "n", "off"}:
        return False
    return default


def _read_float(name: str, default: str) -> float:
    raw = os.getenv(name, default)
    try:
        return float(raw)
    except (TypeError, ValueError) as exc:
        raise ConfigError(f"Invalid {name}: expected a number, got {raw!r}") from exc
