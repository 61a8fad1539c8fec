from __future__ import annotations

import json
from pathlib import Path
from typing import Any

import jsonschema
import yaml
from jsonschema.exceptions import ValidationError

from ..models.config_models import (
    DatabaseConfig,
    KindConfig,
    SourceConfig,
    SyncConfig,
    TimeoutConfig,
)
from ..models.records import SCHEMAS

"""Config loader.

Responsibilities:
- Load YAML config (default ``config/sync.yml``)
- Validate against ``config_schema.json`` (shipped next to this module)
- Fill per-kind defaults (sheet, range, table) from the built-in schemas
- Cross-field checks the JSON schema cannot express (workbook path, source ids)
"""

__all__ = [
    "ConfigError",
    "DEFAULT_CONFIG_PATH",
    "SCHEMA_PATH",
    "load_config",
]

SCHEMA_PATH = Path(__file__).with_name("config_schema.json")
DEFAULT_CONFIG_PATH = Path("config/sync.yml")


class ConfigError(Exception):
    pass


def _validate_config_schema(data: dict[str, Any]) -> None:
    """Validate config data against the JSON schema.

    Raises:
        ConfigError: schema file missing or unreadable, or the data violates it
    """
    if not SCHEMA_PATH.exists():
        raise ConfigError(f"config schema not found: {SCHEMA_PATH}")
    try:
        schema = json.loads(SCHEMA_PATH.read_text(encoding="utf-8"))
        jsonschema.validate(data, schema)
    except json.JSONDecodeError as e:
        raise ConfigError(f"invalid schema file: {e}") from e
    except ValidationError as e:
        where = ".".join(str(p) for p in e.absolute_path)
        suffix = f" (at {where})" if where else ""
        raise ConfigError(f"config validation failed: {e.message}{suffix}") from e


def _build_kind(kind: str, raw: dict[str, Any]) -> KindConfig:
    base = SCHEMAS[kind]
    return KindConfig(
        kind=kind,
        sheet=raw.get("sheet", base.sheet),
        cell_range=raw.get("range", base.cell_range),
        table=raw.get("table", base.table),
        spreadsheet_id=raw.get("spreadsheet_id"),
        spreadsheet_id_env=raw.get("spreadsheet_id_env"),
        full_sync_mode=raw.get("full_sync_mode", "diff"),
        min_source_rows=raw.get("min_source_rows", 1),
        max_delete_fraction=raw.get("max_delete_fraction"),
    )


def load_config(path: Path = DEFAULT_CONFIG_PATH) -> SyncConfig:
    if not path.exists():
        raise ConfigError(f"config file not found: {path}")
    try:
        data = yaml.safe_load(path.read_text(encoding="utf-8")) or {}
    except yaml.YAMLError as e:
        raise ConfigError(f"invalid yaml: {e}") from e
    if not isinstance(data, dict):
        raise ConfigError("config validation failed: top level must be a mapping")

    _validate_config_schema(data)

    kinds_raw = data["kinds"]
    # Built-in order (shipments before invoices), not YAML order
    kinds = [_build_kind(kind, kinds_raw[kind] or {}) for kind in SCHEMAS if kind in kinds_raw]

    src_raw = data.get("source", {})
    source = SourceConfig(
        type=src_raw.get("type", "google_sheets"),
        credentials_env=src_raw.get("credentials_env", "GOOGLE_SERVICE_ACCOUNT_KEY"),
        credentials_file=src_raw.get("credentials_file"),
        workbook_path=src_raw.get("workbook_path"),
        value_render=src_raw.get("value_render", "unformatted"),
    )
    if source.type == "workbook" and not source.workbook_path:
        raise ConfigError("config validation failed: source.workbook_path is required for type workbook")

    t_raw = data.get("timeouts", {})
    timeouts = TimeoutConfig(
        source_seconds=float(t_raw.get("source_seconds", 30.0)),
        database_seconds=float(t_raw.get("database_seconds", 60.0)),
    )

    db_raw = data.get("database", {})
    db = DatabaseConfig(
        host=db_raw.get("host"),
        port=db_raw.get("port"),
        user=db_raw.get("user"),
        password=db_raw.get("password"),
        database=db_raw.get("database"),
        dsn=db_raw.get("dsn"),
    )
    return SyncConfig(
        kinds=kinds,
        source=source,
        strategy=data.get("strategy", "probe"),
        probe_window=data.get("probe_window", 50),
        timeouts=timeouts,
        database=db,
    )
