from __future__ import annotations

import logging
import os
from collections.abc import Iterator
from contextlib import contextmanager
from typing import Any

import psycopg2

from ..models.config_models import DatabaseConfig

"""PostgreSQL connection handling.

Connection parameters are resolved in this order:
    1. ``DATABASE_URL`` / ``PGDSN`` (full DSN)
    2. individual ``PGHOST`` / ``PGPORT`` / ``PGUSER`` / ``PGPASSWORD`` / ``PGDATABASE``
    3. the ``database`` section of the config file
``.env`` is loaded by the CLI before any of this runs.
"""

__all__ = [
    "SYNC_LOCK_ID",
    "SyncLockedError",
    "resolve_dsn",
    "db_connection",
    "advisory_lock",
]

logger = logging.getLogger(__name__)

# Session advisory lock id shared by every sync process (single-flight guard)
SYNC_LOCK_ID = 0x5EE75C


class SyncLockedError(Exception):
    """Another sync run holds the advisory lock."""


def resolve_dsn(db_cfg: DatabaseConfig) -> str:
    dsn = os.getenv("DATABASE_URL") or os.getenv("PGDSN") or db_cfg.dsn
    if dsn:
        return dsn
    host = os.getenv("PGHOST", db_cfg.host or "localhost")
    port = os.getenv("PGPORT", str(db_cfg.port) if db_cfg.port else "5432")
    user = os.getenv("PGUSER", db_cfg.user or "postgres")
    password = os.getenv("PGPASSWORD", db_cfg.password or "")
    database = os.getenv("PGDATABASE", db_cfg.database or "postgres")
    dsn = f"host={host} port={port} user={user} dbname={database}"
    if password:
        dsn += f" password={password}"
    return dsn


@contextmanager
def db_connection(db_cfg: DatabaseConfig, timeout_seconds: float = 60.0) -> Iterator[Any]:
    """Open a psycopg2 connection with connect and statement timeouts.

    Autocommit stays off; the repository commits each operation itself.
    """
    conn = psycopg2.connect(
        resolve_dsn(db_cfg),
        connect_timeout=max(1, int(timeout_seconds)),
        options=f"-c statement_timeout={int(timeout_seconds * 1000)}",
    )
    try:
        conn.autocommit = False
        yield conn
    finally:
        conn.close()


@contextmanager
def advisory_lock(conn: Any, lock_id: int = SYNC_LOCK_ID) -> Iterator[None]:
    """Hold a session advisory lock for the duration of the block.

    Raises SyncLockedError immediately when another session holds it.
    """
    with conn.cursor() as cur:
        cur.execute("SELECT pg_try_advisory_lock(%s)", (lock_id,))
        acquired = bool(cur.fetchone()[0])
    conn.commit()
    if not acquired:
        raise SyncLockedError(f"another sync run holds advisory lock {lock_id}")
    try:
        yield
    finally:
        try:
            with conn.cursor() as cur:
                cur.execute("SELECT pg_advisory_unlock(%s)", (lock_id,))
            conn.commit()
        except psycopg2.Error as e:
            # the lock is released with the session anyway
            logger.warning("advisory unlock failed: %s", e)
