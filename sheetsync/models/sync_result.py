from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime

"""Sync result models.

KindStats collects counters for one record kind while the orchestrator works
through it; SyncResult is the aggregate returned to the caller and rendered
as SUMMARY lines by services.summary.
"""


@dataclass
class KindStats:
    """Per-kind counters for a single sync run.

    ``processed`` counts valid records (after duplicate keys collapse);
    rows rejected for an empty key are not counted anywhere.
    """
    kind: str
    processed: int = 0  # valid records seen in the source
    added: int = 0
    updated: int = 0
    deleted: int = 0
    skipped: int = 0  # unchanged records (hash equal)
    rejected: int = 0  # rows dropped because cleaning raised
    duplicates: int = 0  # source rows shadowed by a later row with the same key
    deletes_suppressed: int = 0  # deletions held back by the completeness guard
    stored_rows: int | None = None  # table row count after apply
    elapsed_seconds: float = 0.0
    error: str | None = None  # persistence failure that stopped this kind

    @property
    def failed(self) -> bool:
        return self.error is not None

    def as_counts(self) -> dict[str, int]:
        return {"added": self.added, "updated": self.updated, "deleted": self.deleted}


@dataclass
class SyncResult:
    """Aggregated result of one strategy run."""
    strategy: str
    start_time: datetime
    end_time: datetime | None = None
    kinds: dict[str, KindStats] = field(default_factory=dict)
    skipped: bool = False  # probe found nothing to do
    message: str | None = None
    dry_run: bool = False

    @property
    def elapsed_seconds(self) -> float:
        if self.end_time is None:
            return 0.0
        return (self.end_time - self.start_time).total_seconds()

    @property
    def failed(self) -> bool:
        return any(stats.failed for stats in self.kinds.values())

    def stats(self, kind: str) -> KindStats:
        if kind not in self.kinds:
            self.kinds[kind] = KindStats(kind=kind)
        return self.kinds[kind]
