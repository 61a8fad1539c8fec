from __future__ import annotations

import json
from dataclasses import asdict, dataclass
from datetime import UTC, datetime

"""ErrorRecord model for error logging.

Structured record written to the JSON Lines error log for rows the normalizer
had to drop and for failed persistence operations. ``row=-1`` marks errors
that are not tied to a single sheet row (batch insert, delete, fetch).
"""

__all__ = [
    "ErrorRecord",
]


@dataclass(frozen=True)
class ErrorRecord:
    """Structured error record for JSON Lines logging.

    Attributes:
        timestamp: ISO8601 UTC timestamp with 'Z' suffix
        kind: Record kind being synced (shipments / invoices)
        sheet: Sheet name the rows were read from
        row: Sheet row number (1-based). Use -1 when the row is unknown
        error_type: Error classification in UPPER_SNAKE_CASE format
        message: Error message or description
        key: Business key of the affected record, if known
    """
    timestamp: str  # ISO8601 UTC
    kind: str
    sheet: str
    row: int
    error_type: str  # UPPER_SNAKE
    message: str
    key: str | None = None

    @staticmethod
    def create(
        kind: str,
        sheet: str,
        row: int,
        error_type: str,
        message: str,
        key: str | None = None,
    ) -> ErrorRecord:
        """Create a new ErrorRecord with current UTC timestamp."""
        ts = datetime.now(UTC).isoformat().replace("+00:00", "Z")
        return ErrorRecord(
            timestamp=ts,
            kind=kind,
            sheet=sheet,
            row=row,
            error_type=error_type,
            message=message,
            key=key,
        )

    def to_json_line(self) -> str:
        """Serialize ErrorRecord to JSON Lines format (fixed key set)."""
        return json.dumps(asdict(self), ensure_ascii=False)
