"""Domain models for the Sheets -> PostgreSQL sync.

Record schemas, normalized rows, configuration objects and run statistics.
"""

from .config_models import DatabaseConfig, KindConfig, SourceConfig, SyncConfig, TimeoutConfig
from .error_record import ErrorRecord
from .records import (
    INVOICE_SCHEMA,
    SCHEMAS,
    SHIPMENT_SCHEMA,
    FieldSpec,
    FieldType,
    RecordSchema,
    RejectReason,
    RowRejection,
    SheetRecord,
)
from .sync_result import KindStats, SyncResult

__all__ = [
    # Configuration models
    "DatabaseConfig",
    "KindConfig",
    "SourceConfig",
    "SyncConfig",
    "TimeoutConfig",
    # Record models
    "FieldSpec",
    "FieldType",
    "RecordSchema",
    "SheetRecord",
    "RejectReason",
    "RowRejection",
    "SHIPMENT_SCHEMA",
    "INVOICE_SCHEMA",
    "SCHEMAS",
    # Results
    "ErrorRecord",
    "KindStats",
    "SyncResult",
]
