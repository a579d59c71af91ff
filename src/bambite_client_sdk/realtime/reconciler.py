from __future__ import annotations

from collections.abc import Callable, Iterable
from typing import Any

from ..logger import get_logger

logger = get_logger(__name__)

Record = dict[str, Any]
ChangeListener = Callable[[list[Record]], None]


def merge_fields(existing: Record, incoming: Record, fields: Iterable[str] | None = None) -> Record:
    """Latest value wins for every field the update carries; everything else is kept.

    ``None`` counts as "not carried" so a sparse payload can never blank out
    detail that an earlier, richer load provided.
    """
    allowed = set(fields) if fields is not None else None
    merged = dict(existing)
    for key, value in incoming.items():
        if value is None:
            continue
        if allowed is not None and key not in allowed and key in existing:
            continue
        merged[key] = value
    return merged


class Reconciler:
    """Canonical client-side collection fed by push events and poll snapshots."""

    def __init__(self, key: str = "id", poll_fields: Iterable[str] | None = None) -> None:
        self.key = key
        self.poll_fields = tuple(poll_fields) if poll_fields is not None else None
        self._order: list[str] = []
        self._records: dict[str, Record] = {}
        self._listeners: list[ChangeListener] = []

    @property
    def records(self) -> list[Record]:
        return [dict(self._records[record_id]) for record_id in self._order]

    def __len__(self) -> int:
        return len(self._order)

    def get(self, record_id: str) -> Record | None:
        record = self._records.get(str(record_id))
        return dict(record) if record is not None else None

    def subscribe(self, listener: ChangeListener) -> Callable[[], None]:
        self._listeners.append(listener)

        def _remove() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return _remove

    def load(self, records: Iterable[Record]) -> None:
        """Install the page's own full fetch; existing detail for known ids is merged, not dropped."""
        order: list[str] = []
        merged: dict[str, Record] = {}
        for record in records:
            record_id = self._id_of(record)
            if record_id is None or record_id in merged:
                continue
            current = self._records.get(record_id)
            merged[record_id] = merge_fields(current, record) if current else dict(record)
            order.append(record_id)
        self._order = order
        self._records = merged
        self._notify()

    def apply_new_record(self, record: Record) -> bool:
        record_id = self._id_of(record)
        if record_id is None or record_id in self._records:
            return False
        self._records[record_id] = {key: value for key, value in record.items() if value is not None}
        self._order.insert(0, record_id)
        self._notify()
        return True

    def apply_record_updated(self, record: Record) -> bool:
        record_id = self._id_of(record)
        if record_id is None or record_id not in self._records:
            return False
        self._records[record_id] = merge_fields(self._records[record_id], record)
        self._notify()
        return True

    def apply_snapshot(self, records: Iterable[Record]) -> int:
        """Merge an authoritative poll snapshot; returns how many records were inserted."""
        inserted: list[str] = []
        changed = False
        for record in records:
            record_id = self._id_of(record)
            if record_id is None:
                continue
            current = self._records.get(record_id)
            if current is None:
                self._records[record_id] = dict(record)
                inserted.append(record_id)
                changed = True
                continue
            merged = merge_fields(current, record, self.poll_fields)
            if merged != current:
                self._records[record_id] = merged
                changed = True
        if inserted:
            self._order = inserted + self._order
        if changed:
            self._notify()
        return len(inserted)

    def clear(self) -> None:
        self._order = []
        self._records = {}
        self._notify()

    def _id_of(self, record: Record) -> str | None:
        value = record.get(self.key)
        if value is None:
            logger.warning("dropping record without %r", self.key)
            return None
        return str(value)

    def _notify(self) -> None:
        snapshot = self.records
        for listener in list(self._listeners):
            try:
                listener(snapshot)
            except Exception:
                logger.exception("collection listener failed")
