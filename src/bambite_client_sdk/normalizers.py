from __future__ import annotations

from typing import Any

_ROW_KEYS = ("data", "items", "rows", "orders")


def extract_rows(payload: Any) -> list[dict[str, Any]]:
    """Pull the record list out of a listing payload, whatever envelope it came in."""
    rows: Any = []
    if isinstance(payload, list):
        rows = payload
    elif isinstance(payload, dict):
        for key in _ROW_KEYS:
            candidate = payload.get(key)
            if isinstance(candidate, list):
                rows = candidate
                break
            if isinstance(candidate, dict):
                nested = extract_rows(candidate)
                if nested:
                    rows = nested
                    break
    return [row for row in rows if isinstance(row, dict)]


def extract_record(payload: Any) -> dict[str, Any]:
    if isinstance(payload, dict):
        data = payload.get("data")
        if isinstance(data, dict):
            return data
        return payload
    return {}


def build_query_params(**kwargs: Any) -> dict[str, Any]:
    return {key: value for key, value in kwargs.items() if value not in (None, "")}
