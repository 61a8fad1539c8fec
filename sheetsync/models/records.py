from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any

"""Record schemas and normalized row models for the Sheets -> PostgreSQL sync.

A RecordSchema describes one record kind (shipments, invoices): which sheet
columns feed which table columns, how each cell is cleaned, and which fields
form the business key. SheetRecord is a single row after normalization;
RowRejection is the typed outcome for a row that could not become a record.
"""

__all__ = [
    "FieldType",
    "FieldSpec",
    "RecordSchema",
    "SheetRecord",
    "RejectReason",
    "RowRejection",
    "RecordKey",
    "SHIPMENT_SCHEMA",
    "INVOICE_SCHEMA",
    "SCHEMAS",
    "format_key",
]

RecordKey = tuple[Any, ...]


class FieldType(Enum):
    """How a raw cell is cleaned before it becomes a record attribute."""
    STRING = "string"
    NUMBER = "number"
    DATE = "date"
    DATETIME = "datetime"


@dataclass(frozen=True)
class FieldSpec:
    name: str  # table column name
    position: int  # 0-based index inside the fetched row
    type: FieldType = FieldType.STRING


@dataclass(frozen=True)
class RecordSchema:
    """Column layout and identity rules for one record kind.

    ``key_position`` is the cell that decides whether a row exists at all:
    an empty or ``"-"`` value there rejects the row. ``key_fields`` form the
    business key used for reconciliation; for invoices this is a composite
    key even though only ``no_sp`` is required to be present.
    """
    kind: str
    table: str
    sheet: str
    cell_range: str
    fields: tuple[FieldSpec, ...]
    key_fields: tuple[str, ...]
    key_position: int
    probe_fields: tuple[str, ...] = ()

    @property
    def field_names(self) -> list[str]:
        return [f.name for f in self.fields]

    @property
    def start_row(self) -> int:
        """Sheet row number of the first fetched row (``A3:W`` -> 3)."""
        digits = "".join(ch for ch in self.cell_range.split(":")[0] if ch.isdigit())
        return int(digits) if digits else 1

    def key_of(self, values: dict[str, Any]) -> RecordKey:
        return tuple(values.get(name) for name in self.key_fields)


@dataclass(frozen=True)
class SheetRecord:
    """A single sheet row after cleaning, with its content fingerprint."""
    row_number: int  # sheet row number (1-based, as shown in the spreadsheet)
    values: dict[str, Any]  # column name -> cleaned value
    row_hash: str
    key: RecordKey = field(default=())

    def as_row(self, columns: list[str]) -> list[Any]:
        return [self.values.get(c) for c in columns]


class RejectReason(Enum):
    MISSING_KEY = "missing_key"
    ERROR = "error"


@dataclass(frozen=True)
class RowRejection:
    row_number: int
    reason: RejectReason
    message: str = ""


def format_key(key: RecordKey) -> str:
    """Render a business key the way it appears in logs (``SP-1_INV-9``)."""
    return "_".join("" if part is None else str(part) for part in key)


SHIPMENT_SCHEMA = RecordSchema(
    kind="shipments",
    table="shipments",
    sheet="2025",
    cell_range="A3:W",
    # Column A holds a running number and is not synced.
    fields=(
        FieldSpec("pick_up", 1, FieldType.DATE),
        FieldSpec("no_sj", 2),
        FieldSpec("no_sp", 3),
        FieldSpec("customer", 4),
        FieldSpec("tujuan", 5),
        FieldSpec("via", 6),
        FieldSpec("qty", 7, FieldType.NUMBER),
        FieldSpec("berat", 8, FieldType.NUMBER),
        FieldSpec("jenis_barang", 9),
        FieldSpec("dikirim_oleh", 10),
        FieldSpec("armada", 11),
        FieldSpec("ops", 12),
        FieldSpec("data_armada", 13),
        FieldSpec("berangkat", 14, FieldType.DATE),
        FieldSpec("eta", 15, FieldType.DATE),
        FieldSpec("diterima", 16, FieldType.DATE),
        FieldSpec("penerima", 17),
        FieldSpec("qc", 18),
        FieldSpec("waktu_diterima", 19, FieldType.DATETIME),
        FieldSpec("no_smu_bl", 20),
        FieldSpec("no_flight_countr", 21),
        FieldSpec("do_balik", 22),
    ),
    key_fields=("no_sp",),
    key_position=3,
    probe_fields=("no_sp", "customer", "pick_up", "no_sj"),
)

INVOICE_SCHEMA = RecordSchema(
    kind="invoices",
    table="invoices",
    sheet="INVOICE",
    cell_range="B5:I",
    fields=(
        FieldSpec("no_invoice", 0),
        FieldSpec("tanggal_invoice", 1, FieldType.DATE),
        FieldSpec("nama_customer", 2),
        FieldSpec("tujuan", 3),
        FieldSpec("no_sp", 4),
        FieldSpec("tanggal_pick_up", 5, FieldType.DATE),
        FieldSpec("keterangan", 6),
        FieldSpec("no_stt", 7),
    ),
    key_fields=("no_sp", "no_invoice"),
    key_position=4,
    probe_fields=("no_invoice", "no_sp", "tanggal_invoice"),
)

# Sync order matters for the probe: shipments are sampled first.
SCHEMAS: dict[str, RecordSchema] = {
    SHIPMENT_SCHEMA.kind: SHIPMENT_SCHEMA,
    INVOICE_SCHEMA.kind: INVOICE_SCHEMA,
}
