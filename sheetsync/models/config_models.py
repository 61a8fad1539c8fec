from __future__ import annotations

from dataclasses import dataclass, field, replace

from .records import SCHEMAS, RecordSchema

"""Config dataclasses for the Sheets -> PostgreSQL sync.

Built by sheetsync.config.loader once the raw YAML has passed JSON schema
validation; everything downstream receives these objects instead of dicts.
"""


@dataclass(frozen=True)
class DatabaseConfig:
    """Database connection configuration.

    Used as fallback when environment variables are not set.
    Environment variables take precedence over these values.
    """
    host: str | None = None
    port: int | None = None
    user: str | None = None
    password: str | None = None
    database: str | None = None
    dsn: str | None = None


@dataclass(frozen=True)
class SourceConfig:
    """Where sheet rows come from."""
    type: str = "google_sheets"  # google_sheets | workbook
    credentials_env: str = "GOOGLE_SERVICE_ACCOUNT_KEY"  # env var holding the key JSON
    credentials_file: str | None = None
    workbook_path: str | None = None
    value_render: str = "unformatted"  # unformatted | formatted


@dataclass(frozen=True)
class TimeoutConfig:
    source_seconds: float = 30.0
    database_seconds: float = 60.0


@dataclass(frozen=True)
class KindConfig:
    """Per record kind settings (one sheet -> one table)."""
    kind: str  # shipments | invoices
    sheet: str
    cell_range: str
    table: str
    spreadsheet_id: str | None = None
    spreadsheet_id_env: str | None = None
    full_sync_mode: str = "diff"  # diff | replace
    min_source_rows: int = 1  # snapshot smaller than this never deletes
    max_delete_fraction: float | None = None  # None = no ratio guard

    @property
    def schema(self) -> RecordSchema:
        """Built-in schema for this kind with sheet/range/table overrides applied."""
        return replace(
            SCHEMAS[self.kind],
            sheet=self.sheet,
            cell_range=self.cell_range,
            table=self.table,
        )


@dataclass(frozen=True)
class SyncConfig:
    """Root configuration object for a sync run."""
    kinds: list[KindConfig]
    source: SourceConfig = field(default_factory=SourceConfig)
    strategy: str = "probe"
    probe_window: int = 50
    timeouts: TimeoutConfig = field(default_factory=TimeoutConfig)
    database: DatabaseConfig = field(default_factory=DatabaseConfig)
