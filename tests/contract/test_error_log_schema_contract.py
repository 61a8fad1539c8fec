from __future__ import annotations

import json
from pathlib import Path

import jsonschema
import pytest

from sheetsync.logging.error_log import ErrorLogBuffer
from sheetsync.models.error_record import ErrorRecord

"""Error log line contract: fixed key set, UPPER_SNAKE error types."""

ERROR_LINE_SCHEMA = {
    "type": "object",
    "additionalProperties": False,
    "required": ["timestamp", "kind", "sheet", "row", "error_type", "message", "key"],
    "properties": {
        "timestamp": {"type": "string", "pattern": "Z$"},
        "kind": {"enum": ["shipments", "invoices"]},
        "sheet": {"type": "string"},
        "row": {"type": "integer", "minimum": -1},
        "error_type": {"enum": ["ROW_NORMALIZATION_ERROR", "PERSISTENCE_ERROR"]},
        "message": {"type": "string"},
        "key": {"type": ["string", "null"]},
    },
}


@pytest.mark.parametrize(
    "record",
    [
        ErrorRecord.create("shipments", "2025", 12, "ROW_NORMALIZATION_ERROR", "bad date"),
        ErrorRecord.create("invoices", "INVOICE", -1, "PERSISTENCE_ERROR", "update: timeout", key="SP-1_INV-1"),
    ],
)
def test_error_lines_match_schema(tmp_path: Path, record):
    buf = ErrorLogBuffer(logs_dir=tmp_path)
    buf.append(record)
    (line,) = buf.flush().read_text(encoding="utf-8").splitlines()
    jsonschema.validate(json.loads(line), ERROR_LINE_SCHEMA)


def test_schema_rejects_extra_key():
    line = json.loads(ErrorRecord.create("shipments", "2025", 1, "PERSISTENCE_ERROR", "x").to_json_line())
    line["extra"] = "not allowed"
    with pytest.raises(jsonschema.ValidationError):
        jsonschema.validate(line, ERROR_LINE_SCHEMA)
