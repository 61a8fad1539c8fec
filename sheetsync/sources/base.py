from __future__ import annotations

from typing import Any, Protocol

"""Source gateway contract.

A source returns the cells of a rectangular A1 range as a list of rows. Rows
may be shorter than the range width (trailing empty cells omitted); callers
treat missing cells as empty. Every failure reaching the source surfaces as
SourceFetchError.
"""

__all__ = [
    "SourceFetchError",
    "SourceGateway",
]


class SourceFetchError(Exception):
    """Raised when a range cannot be read (network, auth, quota, missing sheet)."""


class SourceGateway(Protocol):
    def fetch_range(self, sheet_name: str, cell_range: str) -> list[list[Any]]:
        ...
