from __future__ import annotations

import logging
from collections.abc import Iterator, Sequence
from contextlib import contextmanager
from typing import Any, Protocol

import psycopg2
from psycopg2.extras import execute_batch

from ..models.records import RecordKey, RecordSchema, SheetRecord, format_key
from ..services.diff import PendingUpdate, StoredRow
from .batch_insert import BatchInsertError, batch_insert, quote_ident

"""Persistence gateway: the relational store the sync writes to.

PostgresRepository commits every operation on its own, so after a failure the
table reflects every operation that completed before it. Updates always write
the attributes, ``row_hash`` and ``updated_at`` in the same statement.
"""

__all__ = [
    "PersistenceError",
    "PersistenceGateway",
    "PostgresRepository",
]

logger = logging.getLogger(__name__)


class PersistenceError(Exception):
    """A store operation failed; carries enough context to re-run safely."""

    def __init__(self, table: str, operation: str, message: str, key: str | None = None) -> None:
        self.table = table
        self.operation = operation
        self.key = key
        self.message = message
        detail = f"{operation} on {table} failed"
        if key is not None:
            detail += f" key={key}"
        super().__init__(f"{detail}: {message}")


class PersistenceGateway(Protocol):
    def fetch_index(self, schema: RecordSchema) -> dict[RecordKey, StoredRow]: ...

    def fetch_recent(
        self, schema: RecordSchema, columns: Sequence[str], limit: int
    ) -> list[dict[str, Any]]: ...

    def insert_records(self, schema: RecordSchema, records: Sequence[SheetRecord]) -> int: ...

    def update_record(self, schema: RecordSchema, storage_id: Any, record: SheetRecord) -> None: ...

    def update_records(self, schema: RecordSchema, updates: Sequence[PendingUpdate]) -> int: ...

    def delete_by_keys(self, schema: RecordSchema, keys: Sequence[RecordKey]) -> int: ...

    def delete_by_ids(self, schema: RecordSchema, ids: Sequence[Any]) -> int: ...

    def delete_all(self, schema: RecordSchema) -> int: ...

    def count(self, schema: RecordSchema) -> int: ...


class PostgresRepository:
    """Persistence gateway over a psycopg2 connection (autocommit off)."""

    def __init__(self, connection: Any, page_size: int = 1000) -> None:
        self.connection = connection
        self.page_size = page_size

    @contextmanager
    def _operation(
        self, schema: RecordSchema, operation: str, key: str | None = None
    ) -> Iterator[Any]:
        cur = self.connection.cursor()
        try:
            yield cur
            self.connection.commit()
        except (psycopg2.Error, BatchInsertError) as e:
            self.connection.rollback()
            raise PersistenceError(schema.table, operation, str(e).strip(), key=key) from e
        finally:
            cur.close()

    def _update_sql(self, schema: RecordSchema) -> str:
        assignments = ", ".join(f"{quote_ident(c)} = %s" for c in schema.field_names)
        return (
            f"UPDATE {quote_ident(schema.table)} SET {assignments}, "
            f"row_hash = %s, updated_at = now() WHERE id = %s"
        )

    def _update_params(self, schema: RecordSchema, storage_id: Any, record: SheetRecord) -> list[Any]:
        return record.as_row(schema.field_names) + [record.row_hash, storage_id]

    def fetch_index(self, schema: RecordSchema) -> dict[RecordKey, StoredRow]:
        key_cols = ", ".join(quote_ident(c) for c in schema.key_fields)
        sql = f"SELECT id, row_hash, {key_cols} FROM {quote_ident(schema.table)} ORDER BY id"
        with self._operation(schema, "fetch_index") as cur:
            cur.execute(sql)
            rows = cur.fetchall()
        index: dict[RecordKey, StoredRow] = {}
        for row in rows:
            key = tuple(row[2:])
            previous = index.get(key)
            if previous is not None:
                # only the newest id per key is tracked
                logger.warning(
                    "table=%s duplicate stored key=%s ids=%s,%s (keeping newest)",
                    schema.table,
                    format_key(key),
                    previous.storage_id,
                    row[0],
                )
            index[key] = StoredRow(storage_id=row[0], key=key, row_hash=row[1])
        return index

    def fetch_recent(
        self, schema: RecordSchema, columns: Sequence[str], limit: int
    ) -> list[dict[str, Any]]:
        cols = ", ".join(quote_ident(c) for c in columns)
        sql = (
            f"SELECT {cols} FROM {quote_ident(schema.table)} "
            f"ORDER BY updated_at DESC NULLS LAST, id DESC LIMIT %s"
        )
        with self._operation(schema, "fetch_recent") as cur:
            cur.execute(sql, (limit,))
            rows = cur.fetchall()
        return [dict(zip(columns, row, strict=True)) for row in rows]

    def insert_records(self, schema: RecordSchema, records: Sequence[SheetRecord]) -> int:
        columns = schema.field_names + ["row_hash"]
        rows = [r.as_row(schema.field_names) + [r.row_hash] for r in records]
        with self._operation(schema, "insert") as cur:
            result = batch_insert(cur, schema.table, columns, rows, page_size=self.page_size)
        logger.debug(
            "table=%s inserted=%d elapsed=%.3fs", schema.table, result.inserted_rows, result.elapsed_seconds
        )
        return result.inserted_rows

    def update_record(self, schema: RecordSchema, storage_id: Any, record: SheetRecord) -> None:
        with self._operation(schema, "update", key=format_key(record.key)) as cur:
            cur.execute(self._update_sql(schema), self._update_params(schema, storage_id, record))
            if cur.rowcount == 0:
                logger.warning(
                    "table=%s id=%s key=%s vanished before update",
                    schema.table,
                    storage_id,
                    format_key(record.key),
                )

    def update_records(self, schema: RecordSchema, updates: Sequence[PendingUpdate]) -> int:
        if not updates:
            return 0
        params = [self._update_params(schema, u.storage_id, u.record) for u in updates]
        with self._operation(schema, "update_batch") as cur:
            execute_batch(cur, self._update_sql(schema), params, page_size=self.page_size)
        return len(updates)

    def delete_by_keys(self, schema: RecordSchema, keys: Sequence[RecordKey]) -> int:
        if not keys:
            return 0
        if len(schema.key_fields) != 1:
            raise ValueError(f"{schema.table} has a composite key; delete by id instead")
        column = quote_ident(schema.key_fields[0])
        values = [k[0] for k in keys]
        with self._operation(schema, "delete") as cur:
            cur.execute(
                f"DELETE FROM {quote_ident(schema.table)} WHERE {column} = ANY(%s)", (values,)
            )
            return cur.rowcount

    def delete_by_ids(self, schema: RecordSchema, ids: Sequence[Any]) -> int:
        if not ids:
            return 0
        with self._operation(schema, "delete") as cur:
            cur.execute(f"DELETE FROM {quote_ident(schema.table)} WHERE id = ANY(%s)", (list(ids),))
            return cur.rowcount

    def delete_all(self, schema: RecordSchema) -> int:
        with self._operation(schema, "delete_all") as cur:
            cur.execute(f"DELETE FROM {quote_ident(schema.table)}")
            return cur.rowcount

    def count(self, schema: RecordSchema) -> int:
        with self._operation(schema, "count") as cur:
            cur.execute(f"SELECT count(*) FROM {quote_ident(schema.table)}")
            return int(cur.fetchone()[0])
