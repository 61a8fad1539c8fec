from __future__ import annotations

import hashlib
import json
from collections.abc import Iterable, Mapping
from datetime import date, datetime
from decimal import Decimal
from typing import Any

"""Row fingerprints for change detection.

The fingerprint is an MD5 hex digest (32 chars, the width of the
``row_hash`` column) over a canonical JSON rendering of the record's
significant fields. It only detects that content changed; it is not an
integrity check.

Canonical form: keys sorted, compact separators, dates as ISO strings and
every number as float. Values read back from PostgreSQL (``Decimal``,
``date``) therefore hash the same as freshly cleaned sheet values.
"""

__all__ = [
    "EXCLUDED_FIELDS",
    "canonical_value",
    "canonical_payload",
    "compute_row_hash",
]

# Database-generated or sync-maintained columns; hashing them would make the
# fingerprint change on every write.
EXCLUDED_FIELDS = frozenset({"id", "created_at", "updated_at", "row_hash"})


def canonical_value(value: Any) -> Any:
    if value is None:
        return None
    if isinstance(value, bool):
        return value
    if isinstance(value, datetime):
        return value.replace(microsecond=0).isoformat()
    if isinstance(value, date):
        return value.isoformat()
    if isinstance(value, (int, float, Decimal)):
        return float(value)
    return str(value)


def canonical_payload(values: Mapping[str, Any], fields: Iterable[str] | None = None) -> str:
    """Deterministic JSON for the significant fields of ``values``.

    When ``fields`` is given only those keys take part (missing keys count as
    null); otherwise every key outside EXCLUDED_FIELDS does.
    """
    if fields is None:
        names = [k for k in values if k not in EXCLUDED_FIELDS]
    else:
        names = [k for k in fields if k not in EXCLUDED_FIELDS]
    payload = {name: canonical_value(values.get(name)) for name in names}
    return json.dumps(payload, sort_keys=True, separators=(",", ":"), ensure_ascii=False)


def compute_row_hash(values: Mapping[str, Any], fields: Iterable[str] | None = None) -> str:
    data = canonical_payload(values, fields).encode("utf-8")
    return hashlib.md5(data, usedforsecurity=False).hexdigest()
