from __future__ import annotations

import json
from pathlib import Path

import jsonschema
import pytest
import yaml

from sheetsync.config.loader import SCHEMA_PATH

"""Config JSON schema contract: shipped example config and edge values."""


@pytest.fixture(scope="module")
def schema() -> dict:
    return json.loads(SCHEMA_PATH.read_text(encoding="utf-8"))


def test_shipped_example_config_is_valid(schema):
    example = Path(__file__).resolve().parents[2] / "config" / "sync.yml"
    jsonschema.validate(yaml.safe_load(example.read_text(encoding="utf-8")), schema)


def test_minimal_config_is_valid(schema):
    jsonschema.validate({"kinds": {"shipments": {}}}, schema)


@pytest.mark.parametrize(
    "config",
    [
        {},
        {"kinds": {}},
        {"kinds": {"orders": {}}},
        {"kinds": {"shipments": {"range": "A3"}}},
        {"kinds": {"shipments": {"range": "A3:W; DROP TABLE x"}}},
        {"kinds": {"shipments": {"table": "ship ments"}}},
        {"kinds": {"shipments": {"full_sync_mode": "truncate"}}},
        {"kinds": {"shipments": {"max_delete_fraction": 0}}},
        {"kinds": {"shipments": {"max_delete_fraction": 1.5}}},
        {"kinds": {"shipments": {"min_source_rows": -1}}},
        {"kinds": {"shipments": {}}, "probe_window": 0},
        {"kinds": {"shipments": {}}, "source": {"type": "csv"}},
        {"kinds": {"shipments": {}}, "timeouts": {"source_seconds": 0}},
        {"kinds": {"shipments": {}}, "database": {"port": 70000}},
    ],
)
def test_invalid_configs_rejected(schema, config):
    with pytest.raises(jsonschema.ValidationError):
        jsonschema.validate(config, schema)
