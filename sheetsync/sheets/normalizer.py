from __future__ import annotations

import logging
from collections.abc import Callable, Iterable, Sequence
from dataclasses import dataclass, field
from typing import Any

from ..logging.error_log import ErrorLogBuffer
from ..models.error_record import ErrorRecord
from ..models.records import (
    FieldType,
    RecordSchema,
    RejectReason,
    RowRejection,
    SheetRecord,
)
from ..services.hashing import compute_row_hash
from .cleaning import clean_date, clean_datetime, clean_number, clean_string

"""Row normalizer: raw sheet cells -> SheetRecord.

Rows are positional lists exactly as the source returned them; trailing empty
cells may be missing. A row whose key cell is empty or ``"-"`` is rejected
with MISSING_KEY. Any exception while cleaning a row rejects only that row
(reason ERROR) and is logged with its sheet row number; the batch continues.
"""

__all__ = [
    "NormalizedBatch",
    "normalize_row",
    "normalize_rows",
]

logger = logging.getLogger(__name__)

_CLEANERS: dict[FieldType, Callable[[Any], Any]] = {
    FieldType.STRING: clean_string,
    FieldType.NUMBER: clean_number,
    FieldType.DATE: clean_date,
    FieldType.DATETIME: clean_datetime,
}


@dataclass
class NormalizedBatch:
    """Result of normalizing one fetched range, in read order."""
    records: list[SheetRecord] = field(default_factory=list)
    rejections: list[RowRejection] = field(default_factory=list)

    @property
    def errors(self) -> list[RowRejection]:
        return [r for r in self.rejections if r.reason is RejectReason.ERROR]


def _cell(row: Sequence[Any], position: int) -> Any:
    return row[position] if position < len(row) else None


def normalize_row(
    row: Sequence[Any], row_number: int, schema: RecordSchema
) -> SheetRecord | RowRejection:
    """Clean one positional row; never raises."""
    try:
        key_cell = _cell(row, schema.key_position)
        if clean_string(key_cell) is None:
            return RowRejection(row_number, RejectReason.MISSING_KEY)

        values: dict[str, Any] = {}
        for spec in schema.fields:
            values[spec.name] = _CLEANERS[spec.type](_cell(row, spec.position))

        return SheetRecord(
            row_number=row_number,
            values=values,
            row_hash=compute_row_hash(values),
            key=schema.key_of(values),
        )
    except Exception as e:
        logger.warning(
            "kind=%s sheet=%s row=%d dropped: %s", schema.kind, schema.sheet, row_number, e
        )
        return RowRejection(row_number, RejectReason.ERROR, str(e))


def normalize_rows(
    rows: Iterable[Sequence[Any]],
    schema: RecordSchema,
    start_row: int | None = None,
    error_log: ErrorLogBuffer | None = None,
) -> NormalizedBatch:
    """Normalize every fetched row; ``start_row`` is the sheet row of ``rows[0]``."""
    first = schema.start_row if start_row is None else start_row
    batch = NormalizedBatch()
    for offset, row in enumerate(rows):
        row_number = first + offset
        result = normalize_row(row or [], row_number, schema)
        if isinstance(result, SheetRecord):
            batch.records.append(result)
            continue
        batch.rejections.append(result)
        if result.reason is RejectReason.MISSING_KEY:
            logger.debug("kind=%s row=%d skipped: empty key", schema.kind, row_number)
        elif error_log is not None:
            error_log.append(
                ErrorRecord.create(
                    kind=schema.kind,
                    sheet=schema.sheet,
                    row=row_number,
                    error_type="ROW_NORMALIZATION_ERROR",
                    message=result.message,
                )
            )
    logger.debug(
        "kind=%s normalized records=%d rejected=%d",
        schema.kind,
        len(batch.records),
        len(batch.rejections),
    )
    return batch
