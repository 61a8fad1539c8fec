from __future__ import annotations

from datetime import date, datetime

from sheetsync.logging.error_log import ErrorLogBuffer
from sheetsync.models.records import (
    INVOICE_SCHEMA,
    SHIPMENT_SCHEMA,
    FieldType,
    RejectReason,
    RowRejection,
    SheetRecord,
)
from sheetsync.services.hashing import compute_row_hash
from sheetsync.sheets import normalizer
from sheetsync.sheets.normalizer import normalize_row, normalize_rows
from tests.doubles import invoice_row, shipment_row


def test_normalize_shipment_row_cleans_every_field():
    record = normalize_row(shipment_row("SP-1", waktu_diterima="07/01/2025 09:15"), 3, SHIPMENT_SCHEMA)

    assert isinstance(record, SheetRecord)
    assert record.row_number == 3
    assert record.key == ("SP-1",)
    v = record.values
    assert list(v) == SHIPMENT_SCHEMA.field_names
    assert v["pick_up"] == date(2025, 1, 5)
    assert v["no_sj"] == "SJ-SP-1"
    assert v["qty"] == 3.0
    assert v["berat"] == 12.5
    assert v["diterima"] is None
    assert v["waktu_diterima"] == datetime(2025, 1, 7, 9, 15)
    assert v["penerima"] is None
    assert record.row_hash == compute_row_hash(v)


def test_normalize_invoice_composite_key():
    record = normalize_row(invoice_row("SP-7", "INV-3"), 5, INVOICE_SCHEMA)
    assert isinstance(record, SheetRecord)
    assert record.key == ("SP-7", "INV-3")
    assert record.values["tanggal_invoice"] == date(2025, 1, 10)


def test_invoice_without_invoice_number_is_kept():
    record = normalize_row(invoice_row("SP-7", None), 5, INVOICE_SCHEMA)
    assert isinstance(record, SheetRecord)
    assert record.key == ("SP-7", None)


def test_empty_or_placeholder_key_is_rejected():
    for key in (None, "", "  ", "-"):
        result = normalize_row(shipment_row(key), 9, SHIPMENT_SCHEMA)
        assert result == RowRejection(9, RejectReason.MISSING_KEY)


def test_short_row_missing_trailing_cells():
    row = shipment_row("SP-2")[:5]  # A..E only
    record = normalize_row(row, 4, SHIPMENT_SCHEMA)
    assert isinstance(record, SheetRecord)
    assert record.values["customer"] == "PT ACME"
    assert record.values["tujuan"] is None
    assert record.values["qty"] == 0.0


def test_numeric_key_cell_renders_as_text():
    record = normalize_row(shipment_row(1234.0), 3, SHIPMENT_SCHEMA)
    assert record.key == ("1234",)


def test_normalize_rows_assigns_sheet_row_numbers_and_skips_blank_rows():
    rows = [shipment_row("SP-1"), [], shipment_row("-"), shipment_row("SP-2")]
    batch = normalize_rows(rows, SHIPMENT_SCHEMA)

    assert [r.row_number for r in batch.records] == [3, 6]
    assert [r.row_number for r in batch.rejections] == [4, 5]
    assert batch.errors == []


def test_cleaning_failure_rejects_only_that_row(monkeypatch, tmp_path):
    def explode(value):
        if value == "boom":
            raise ValueError("cannot clean")
        return 1.0

    monkeypatch.setitem(normalizer._CLEANERS, FieldType.NUMBER, explode)
    error_log = ErrorLogBuffer(logs_dir=tmp_path)
    rows = [shipment_row("SP-1"), shipment_row("SP-2", qty="boom"), shipment_row("SP-3")]

    batch = normalize_rows(rows, SHIPMENT_SCHEMA, error_log=error_log)

    assert [r.key for r in batch.records] == [("SP-1",), ("SP-3",)]
    assert len(batch.errors) == 1
    assert batch.errors[0].row_number == 4
    assert "cannot clean" in batch.errors[0].message
    records = error_log.records
    assert len(records) == 1
    assert records[0].error_type == "ROW_NORMALIZATION_ERROR"
    assert records[0].row == 4
    assert records[0].kind == "shipments"
    assert records[0].sheet == "2025"


def test_missing_key_rows_are_not_written_to_error_log(tmp_path):
    error_log = ErrorLogBuffer(logs_dir=tmp_path)
    normalize_rows([shipment_row(None)], SHIPMENT_SCHEMA, error_log=error_log)
    assert error_log.records == []


def test_explicit_start_row():
    batch = normalize_rows([invoice_row("SP-1")], INVOICE_SCHEMA, start_row=20)
    assert batch.records[0].row_number == 20
