from __future__ import annotations

from contextlib import contextmanager, nullcontext
from datetime import date, datetime
from pathlib import Path
from unittest.mock import MagicMock

import pandas as pd
import pytest

import sheetsync.cli.__main__ as cli_mod
from sheetsync.cli import main as cli_main
from sheetsync.models.records import INVOICE_SCHEMA, SHIPMENT_SCHEMA
from tests.doubles import InMemoryStore, invoice_row, shipment_row

"""End to end: .xlsx export -> WorkbookSource -> orchestrator -> store, via the CLI."""

CONFIG = """strategy: probe
source:
  type: workbook
  workbook_path: data/export.xlsx
kinds:
  shipments:
    sheet: "2025"
  invoices:
    sheet: INVOICE
"""


def write_export(path: Path, shipments: list[list], invoices: list[list]) -> None:
    sheets = {
        "2025": [["Daftar Pengiriman"], ["No", "Pick Up", "No SJ", "No SP"]] + shipments,
        "INVOICE": [["Invoice"], [], [], ["", "No Invoice"]] + [["x"] + row for row in invoices],
    }
    with pd.ExcelWriter(path, engine="openpyxl") as writer:
        for name, rows in sheets.items():
            pd.DataFrame(rows).to_excel(writer, sheet_name=name, header=False, index=False)


@pytest.fixture()
def workspace(temp_workdir: Path, monkeypatch) -> tuple[Path, InMemoryStore]:
    (temp_workdir / "config" / "sync.yml").write_text(CONFIG, encoding="utf-8")
    store = InMemoryStore()

    @contextmanager
    def fake_db_connection(db_cfg, timeout_seconds=60.0):
        yield MagicMock(name="connection")

    monkeypatch.setattr(cli_mod, "db_connection", fake_db_connection)
    monkeypatch.setattr(cli_mod, "advisory_lock", lambda conn: nullcontext())
    monkeypatch.setattr(cli_mod, "PostgresRepository", lambda conn: store)
    return temp_workdir / "data" / "export.xlsx", store


def test_full_then_probe_then_change(workspace, capsys):
    export, store = workspace
    write_export(
        export,
        [
            shipment_row("SP-1", pick_up=datetime(2025, 1, 5), waktu_diterima=datetime(2025, 1, 8, 10, 30)),
            shipment_row("SP-2"),
            shipment_row("-"),
        ],
        [invoice_row("SP-1", "INV-1"), invoice_row("SP-2", None)],
    )

    assert cli_main(["full"]) == 0
    rows = store.rows(SHIPMENT_SCHEMA)
    assert [r["no_sp"] for r in rows] == ["SP-1", "SP-2"]
    assert rows[0]["pick_up"] == date(2025, 1, 5)
    assert rows[0]["waktu_diterima"] == datetime(2025, 1, 8, 10, 30)
    assert rows[1]["berat"] == 12.5
    assert [(r["no_sp"], r["no_invoice"]) for r in store.rows(INVOICE_SCHEMA)] == [("SP-1", "INV-1"), ("SP-2", None)]
    capsys.readouterr()

    # unchanged export: the probe finds nothing
    assert cli_main([]) == 0
    assert "status=skipped" in capsys.readouterr().out

    write_export(
        export,
        [shipment_row("SP-1", customer="PT BARU"), shipment_row("SP-3")],
        [invoice_row("SP-1", "INV-1")],
    )
    assert cli_main(["incremental"]) == 0
    out = capsys.readouterr().out

    assert "SUMMARY kind=shipments processed=2 added=1 updated=1 deleted=1 skipped=0" in out
    assert "SUMMARY kind=invoices processed=1 added=0 updated=0 deleted=1 skipped=1" in out
    assert [(r["no_sp"], r["customer"]) for r in store.rows(SHIPMENT_SCHEMA)] == [("SP-1", "PT BARU"), ("SP-3", "PT ACME")]
    assert len(store.rows(INVOICE_SCHEMA)) == 1


def test_missing_workbook_is_fatal(workspace, capsys):
    assert cli_main(["full"]) == 1
    assert "ERROR sync aborted" in capsys.readouterr().out
