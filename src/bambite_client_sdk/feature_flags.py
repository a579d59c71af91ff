from __future__ import annotations

import os
from dataclasses import dataclass


@dataclass(frozen=True)
class ClientFeatureFlags:
    realtime_enabled: bool = True
    polling_fallback_enabled: bool = True

    @classmethod
    def from_env(cls) -> "ClientFeatureFlags":
        return cls(
            realtime_enabled=_read_bool("BAMBITE_REALTIME_ENABLED", default=True),
            polling_fallback_enabled=_read_bool("BAMBITE_POLLING_FALLBACK_ENABLED", default=True),
        )

    @property
    def polling_enabled(self) -> bool:
        return self.realtime_enabled and self.polling_fallback_enabled


def _read_bool(name: str, *, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None:
        return default
    return raw.strip().lower() in {"1", "true", "yes", "on"}
