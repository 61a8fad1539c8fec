from __future__ import annotations

import logging
import time
from collections.abc import Sequence
from dataclasses import replace
from datetime import UTC, datetime
from enum import Enum

from ..db.repository import PersistenceError, PersistenceGateway
from ..logging.error_log import ErrorLogBuffer, ErrorRecord
from ..models.config_models import KindConfig
from ..models.records import RecordSchema
from ..models.sync_result import KindStats, SyncResult
from ..sheets.normalizer import NormalizedBatch, normalize_rows
from ..sources.a1 import bounded_range
from ..sources.base import SourceFetchError, SourceGateway
from .diff import DiffResult, StoredRow, compute_diff
from .hashing import compute_row_hash
from .progress import ProgressTracker

"""Sync orchestration: fetch -> normalize -> diff -> apply.

Three strategies share the pipeline and differ in fetch scope and apply
granularity:

- full: complete ranges; updates go to the store as one batch per kind, and
  a kind configured with ``full_sync_mode: replace`` is rewritten with
  delete-all + bulk insert instead of diffed.
- incremental: complete ranges; batched inserts, one update call per changed
  row (sequential), batched deletes.
- probe: compare a small sample (most recently modified stored rows vs. the
  first rows of the sheet) on reduced fields first; run incremental only if
  the sample shows a difference. Changes outside the sample window can be
  missed; callers needing strict correctness use incremental or full.

Every kind is fetched and normalized before the first write, so a source
failure never leaves a partial sync behind. A persistence failure stops the
remaining writes of that kind only; other kinds still run and nothing is
rolled back across kinds.
"""

__all__ = [
    "SyncStrategy",
    "SyncAbortedError",
    "SyncOrchestrator",
    "NO_CHANGES_MESSAGE",
]

logger = logging.getLogger(__name__)

NO_CHANGES_MESSAGE = "no changes detected"


class SyncStrategy(Enum):
    FULL = "full"
    INCREMENTAL = "incremental"
    PROBE = "probe"

    @classmethod
    def parse(cls, name: str | SyncStrategy) -> SyncStrategy:
        if isinstance(name, SyncStrategy):
            return name
        try:
            return cls(name.strip().lower())
        except ValueError:
            choices = ", ".join(s.value for s in cls)
            raise ValueError(f"unknown strategy '{name}' (choose from {choices})") from None


class SyncAbortedError(Exception):
    """The run stopped before any write (source fetch or probe read failed)."""

    def __init__(self, strategy: str, kind: str, cause: Exception) -> None:
        self.strategy = strategy
        self.kind = kind
        self.cause = cause
        super().__init__(f"strategy={strategy} kind={kind}: {cause}")


class SyncOrchestrator:
    """Runs one sync strategy against injected source and store gateways."""

    def __init__(
        self,
        source: SourceGateway,
        store: PersistenceGateway,
        kinds: Sequence[KindConfig],
        *,
        probe_window: int = 50,
        error_log: ErrorLogBuffer | None = None,
        dry_run: bool = False,
    ) -> None:
        self.source = source
        self.store = store
        self.kinds = list(kinds)
        self.probe_window = probe_window
        self.error_log = error_log if error_log is not None else ErrorLogBuffer()
        self.dry_run = dry_run

    def run(self, strategy: SyncStrategy | str = SyncStrategy.PROBE) -> SyncResult:
        strategy = SyncStrategy.parse(strategy)
        result = SyncResult(
            strategy=strategy.value, start_time=datetime.now(UTC), dry_run=self.dry_run
        )
        logger.info("sync started strategy=%s dry_run=%s", strategy.value, self.dry_run)
        try:
            if strategy is SyncStrategy.PROBE:
                if not self.probe():
                    logger.info(NO_CHANGES_MESSAGE + ", skipping sync")
                    result.skipped = True
                    result.message = NO_CHANGES_MESSAGE
                    return result
                logger.info("changes detected, running incremental sync")
                apply_strategy = SyncStrategy.INCREMENTAL
            else:
                apply_strategy = strategy

            batches = self._fetch_all(strategy)
            for kind_cfg in self.kinds:
                stats = result.stats(kind_cfg.kind)
                self._sync_kind(kind_cfg, batches[kind_cfg.kind], apply_strategy, stats)
            return result
        finally:
            result.end_time = datetime.now(UTC)
            self._flush_error_log()

    # -- probe ---------------------------------------------------------------

    def probe(self) -> bool:
        """True when any kind's sample shows a difference (kinds in config order)."""
        for kind_cfg in self.kinds:
            if self._probe_kind(kind_cfg):
                return True
        return False

    def _probe_kind(self, kind_cfg: KindConfig) -> bool:
        schema = kind_cfg.schema
        fields = list(schema.probe_fields or schema.field_names)
        columns = list(dict.fromkeys([*schema.key_fields, *fields]))
        sample_range = bounded_range(schema.cell_range, self.probe_window)
        try:
            rows = self.source.fetch_range(schema.sheet, sample_range)
            recent = self.store.fetch_recent(schema, columns, self.probe_window)
        except (SourceFetchError, PersistenceError) as e:
            raise SyncAbortedError(SyncStrategy.PROBE.value, schema.kind, e) from e

        # Reduced-field hashes on both sides, fed through the same diff with
        # deletions off: a sample can never prove a row is gone.
        sample = normalize_rows(rows, schema)
        reduced = [replace(r, row_hash=compute_row_hash(r.values, fields)) for r in sample.records]
        stored = {}
        for row in recent:
            key = schema.key_of(row)
            stored[key] = StoredRow(storage_id=None, key=key, row_hash=compute_row_hash(row, fields))
        diff = compute_diff(reduced, stored, allow_delete=False)

        logger.info(
            "probe kind=%s sampled=%d recent=%d new=%d changed=%d",
            schema.kind,
            len(reduced),
            len(stored),
            len(diff.to_insert),
            len(diff.to_update),
        )
        return diff.has_changes

    # -- fetch ---------------------------------------------------------------

    def _fetch_all(self, strategy: SyncStrategy) -> dict[str, NormalizedBatch]:
        batches: dict[str, NormalizedBatch] = {}
        for kind_cfg in self.kinds:
            schema = kind_cfg.schema
            try:
                rows = self.source.fetch_range(schema.sheet, schema.cell_range)
            except SourceFetchError as e:
                logger.error("fetch failed kind=%s sheet=%s: %s", schema.kind, schema.sheet, e)
                raise SyncAbortedError(strategy.value, schema.kind, e) from e
            batch = normalize_rows(rows, schema, error_log=self.error_log)
            logger.info(
                "fetched kind=%s sheet=%s rows=%d records=%d rejected=%d",
                schema.kind,
                schema.sheet,
                len(rows),
                len(batch.records),
                len(batch.errors),
            )
            batches[schema.kind] = batch
        return batches

    # -- diff + apply --------------------------------------------------------

    def _sync_kind(
        self,
        kind_cfg: KindConfig,
        batch: NormalizedBatch,
        strategy: SyncStrategy,
        stats: KindStats,
    ) -> None:
        schema = kind_cfg.schema
        started = time.perf_counter()
        stats.rejected = len(batch.errors)
        try:
            if (
                strategy is SyncStrategy.FULL
                and kind_cfg.full_sync_mode == "replace"
                and len(batch.records) >= kind_cfg.min_source_rows
            ):
                self._replace(schema, batch, stats)
            else:
                index = self.store.fetch_index(schema)
                diff = compute_diff(batch.records, index)
                stats.duplicates = len(diff.duplicate_keys)
                self._guard_deletions(kind_cfg, diff, len(index), stats)
                stats.processed = diff.processed
                stats.skipped = diff.unchanged
                if self.dry_run:
                    stats.added = len(diff.to_insert)
                    stats.updated = len(diff.to_update)
                    stats.deleted = len(diff.to_delete)
                else:
                    self._apply(schema, diff, strategy, stats)
            if not self.dry_run:
                stats.stored_rows = self.store.count(schema)
        except PersistenceError as e:
            stats.error = str(e)
            logger.error("kind=%s stopped: %s", schema.kind, e)
            self.error_log.append(
                ErrorRecord.create(
                    kind=schema.kind,
                    sheet=schema.sheet,
                    row=-1,
                    error_type="PERSISTENCE_ERROR",
                    message=f"{e.operation}: {e.message}",
                    key=e.key,
                )
            )
        finally:
            stats.elapsed_seconds = time.perf_counter() - started

    def _guard_deletions(
        self, kind_cfg: KindConfig, diff: DiffResult, stored_count: int, stats: KindStats
    ) -> None:
        """Drop the delete set when the snapshot does not look complete."""
        if not diff.to_delete:
            return
        reason = None
        if diff.processed < kind_cfg.min_source_rows:
            reason = f"snapshot has {diff.processed} records (min_source_rows={kind_cfg.min_source_rows})"
        elif (
            kind_cfg.max_delete_fraction is not None
            and stored_count
            and len(diff.to_delete) / stored_count > kind_cfg.max_delete_fraction
        ):
            reason = (
                f"{len(diff.to_delete)}/{stored_count} rows would be deleted "
                f"(max_delete_fraction={kind_cfg.max_delete_fraction})"
            )
        if reason is None:
            return
        logger.warning("kind=%s deletions suppressed: %s", kind_cfg.kind, reason)
        stats.deletes_suppressed = len(diff.to_delete)
        diff.to_delete = []

    def _apply(
        self, schema: RecordSchema, diff: DiffResult, strategy: SyncStrategy, stats: KindStats
    ) -> None:
        if diff.to_insert:
            stats.added = self.store.insert_records(schema, diff.to_insert)
            logger.info("kind=%s inserted=%d", schema.kind, stats.added)

        if diff.to_update:
            if strategy is SyncStrategy.FULL:
                stats.updated = self.store.update_records(schema, diff.to_update)
            else:
                with ProgressTracker(len(diff.to_update), description=f"Updating {schema.kind}") as progress:
                    for pending in diff.to_update:
                        self.store.update_record(schema, pending.storage_id, pending.record)
                        stats.updated += 1
                        progress.advance()
            logger.info("kind=%s updated=%d", schema.kind, stats.updated)

        if diff.to_delete:
            if len(schema.key_fields) == 1:
                stats.deleted = self.store.delete_by_keys(schema, [row.key for row in diff.to_delete])
            else:
                stats.deleted = self.store.delete_by_ids(
                    schema, [row.storage_id for row in diff.to_delete]
                )
            logger.info("kind=%s deleted=%d", schema.kind, stats.deleted)

    def _replace(self, schema: RecordSchema, batch: NormalizedBatch, stats: KindStats) -> None:
        deduped = compute_diff(batch.records, {}, allow_delete=False)
        records = deduped.to_insert
        stats.processed = len(records)
        stats.duplicates = len(deduped.duplicate_keys)
        if self.dry_run:
            stats.deleted = self.store.count(schema)
            stats.added = len(records)
            return
        stats.deleted = self.store.delete_all(schema)
        stats.added = self.store.insert_records(schema, records)
        logger.info("kind=%s replaced deleted=%d inserted=%d", schema.kind, stats.deleted, stats.added)

    def _flush_error_log(self) -> None:
        try:
            path = self.error_log.flush()
        except OSError as e:
            logger.warning("error log flush failed: %s", e)
            return
        if path is not None:
            logger.info("error log written: %s", path)
