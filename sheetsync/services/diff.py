from __future__ import annotations

import logging
from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from typing import Any

from ..models.records import RecordKey, SheetRecord, format_key

"""Three-way diff between freshly normalized records and the stored index.

Each source key lands in exactly one of insert / update / unchanged; stored
keys missing from the source land in delete, but only when the caller says
the source pass was complete (``allow_delete``). Duplicate source keys are
resolved last-write-wins in read order.
"""

__all__ = [
    "StoredRow",
    "PendingUpdate",
    "DiffResult",
    "compute_diff",
]

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class StoredRow:
    """Projection of a persisted row used for change detection."""
    storage_id: Any  # opaque id assigned by the store
    key: RecordKey
    row_hash: str | None


@dataclass(frozen=True)
class PendingUpdate:
    storage_id: Any
    record: SheetRecord


@dataclass
class DiffResult:
    to_insert: list[SheetRecord] = field(default_factory=list)
    to_update: list[PendingUpdate] = field(default_factory=list)
    to_delete: list[StoredRow] = field(default_factory=list)
    unchanged: int = 0
    duplicate_keys: list[RecordKey] = field(default_factory=list)

    @property
    def processed(self) -> int:
        return len(self.to_insert) + len(self.to_update) + self.unchanged

    @property
    def has_changes(self) -> bool:
        return bool(self.to_insert or self.to_update or self.to_delete)


def _dedupe(records: Iterable[SheetRecord]) -> tuple[dict[RecordKey, SheetRecord], list[RecordKey]]:
    latest: dict[RecordKey, SheetRecord] = {}
    duplicates: list[RecordKey] = []
    for record in records:
        previous = latest.get(record.key)
        if previous is not None:
            duplicates.append(record.key)
            logger.warning(
                "duplicate key=%s rows=%d,%d (later row wins)",
                format_key(record.key),
                previous.row_number,
                record.row_number,
            )
        latest[record.key] = record
    return latest, duplicates


def compute_diff(
    records: Iterable[SheetRecord],
    stored: Mapping[RecordKey, StoredRow],
    *,
    allow_delete: bool = True,
) -> DiffResult:
    latest, duplicates = _dedupe(records)
    result = DiffResult(duplicate_keys=duplicates)

    for key, record in latest.items():
        existing = stored.get(key)
        if existing is None:
            result.to_insert.append(record)
        elif existing.row_hash != record.row_hash:
            result.to_update.append(PendingUpdate(existing.storage_id, record))
        else:
            result.unchanged += 1

    if allow_delete:
        result.to_delete = [row for key, row in stored.items() if key not in latest]

    return result
