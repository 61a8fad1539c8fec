# Shared pytest fixtures: temp workdir, config writer, in-memory gateways
from __future__ import annotations

import tempfile
from contextlib import contextmanager, nullcontext
from pathlib import Path
from unittest.mock import MagicMock

import pytest

import sheetsync.cli.__main__ as cli_mod
from sheetsync.logging.init import reset_logging
from tests.doubles import FakeSource, InMemoryStore


@pytest.fixture(autouse=True)
def clean_logging():
    reset_logging()
    yield
    reset_logging()


@pytest.fixture()
def temp_workdir(monkeypatch) -> Path:
    with tempfile.TemporaryDirectory() as d:
        p = Path(d)
        (p / "config").mkdir()
        (p / "data").mkdir()
        (p / "logs").mkdir()
        monkeypatch.chdir(p)
        yield p


@pytest.fixture()
def sample_config_yaml() -> str:
    return """strategy: probe
probe_window: 50
source:
  type: google_sheets
  credentials_env: TEST_SA_KEY
kinds:
  shipments:
    spreadsheet_id: sheet-ship
    sheet: "2025"
    range: A3:W
    table: shipments
  invoices:
    spreadsheet_id_env: TEST_INVOICE_SHEET
    sheet: INVOICE
    range: B5:I
    table: invoices
timeouts:
  source_seconds: 10
  database_seconds: 20
database:
  host: localhost
  port: 5432
  user: appuser
  password: secret
  database: appdb
"""


@pytest.fixture()
def write_config(temp_workdir: Path, sample_config_yaml: str) -> Path:
    cfg = temp_workdir / "config" / "sync.yml"
    cfg.write_text(sample_config_yaml, encoding="utf-8")
    return cfg


@pytest.fixture()
def fake_source() -> FakeSource:
    return FakeSource()


@pytest.fixture()
def store() -> InMemoryStore:
    return InMemoryStore()


@pytest.fixture()
def cli_stack(monkeypatch, store: InMemoryStore, fake_source: FakeSource):
    """Point the CLI at the in-memory source/store instead of Google and PostgreSQL."""

    @contextmanager
    def fake_db_connection(db_cfg, timeout_seconds=60.0):
        yield MagicMock(name="connection")

    monkeypatch.setattr(cli_mod, "db_connection", fake_db_connection)
    monkeypatch.setattr(cli_mod, "advisory_lock", lambda conn: nullcontext())
    monkeypatch.setattr(cli_mod, "PostgresRepository", lambda conn: store)
    monkeypatch.setattr(cli_mod, "build_source", lambda cfg: fake_source)
    return fake_source, store
