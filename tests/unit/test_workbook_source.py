from __future__ import annotations

from pathlib import Path

import pandas as pd
import pytest

from sheetsync.sources.base import SourceFetchError
from sheetsync.sources.workbook import WorkbookSource
from tests.doubles import invoice_row, shipment_row


def write_workbook(path: Path, sheets: dict[str, list[list]]) -> Path:
    with pd.ExcelWriter(path, engine="openpyxl") as writer:
        for name, rows in sheets.items():
            pd.DataFrame(rows).to_excel(writer, sheet_name=name, header=False, index=False)
    return path


@pytest.fixture()
def workbook(tmp_path: Path) -> Path:
    shipments = [
        ["Daftar Pengiriman 2025"],
        ["No", "Pick Up", "No SJ", "No SP", "Customer"],
        shipment_row("SP-1"),
        shipment_row("SP-2", customer="null"),
    ]
    invoices = [
        ["Invoice"],
        [],
        [],
        ["", "No Invoice", "Tanggal"],
        ["1"] + invoice_row("SP-1", "INV-1"),
    ]
    return write_workbook(tmp_path / "export.xlsx", {"2025": shipments, "INVOICE": invoices})


def test_fetch_open_ended_range(workbook: Path):
    rows = WorkbookSource(workbook).fetch_range("2025", "A3:W")

    assert len(rows) == 2
    first = rows[0]
    assert first[3] == "SP-1"
    assert first[7] == 3
    assert first[16] == "-"
    # trailing empty cells are dropped like the Sheets API does
    assert len(first) == 17
    # placeholder text reaches the normalizer unchanged
    assert rows[1][4] == "null"


def test_fetch_offset_columns(workbook: Path):
    rows = WorkbookSource(workbook).fetch_range("INVOICE", "B5:I")
    assert rows == [invoice_row("SP-1", "INV-1")]


def test_fetch_bounded_range(workbook: Path):
    rows = WorkbookSource(workbook).fetch_range("2025", "A3:W3")
    assert len(rows) == 1
    assert rows[0][3] == "SP-1"


def test_range_past_last_row_is_empty(workbook: Path):
    assert WorkbookSource(workbook).fetch_range("2025", "A100:W") == []


def test_missing_sheet(workbook: Path):
    with pytest.raises(SourceFetchError):
        WorkbookSource(workbook).fetch_range("2024", "A3:W")


def test_missing_file(tmp_path: Path):
    with pytest.raises(SourceFetchError, match="workbook not found"):
        WorkbookSource(tmp_path / "nope.xlsx").fetch_range("2025", "A3:W")


def test_invalid_range(workbook: Path):
    with pytest.raises(SourceFetchError):
        WorkbookSource(workbook).fetch_range("2025", "A3")
