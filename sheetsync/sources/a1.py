from __future__ import annotations

import re
from dataclasses import dataclass

"""A1 range helpers (``A3:W``, ``B5:I50``)."""

__all__ = [
    "A1RangeError",
    "CellRange",
    "parse_range",
    "column_index",
    "column_letters",
    "bounded_range",
]

_CELL_RE = re.compile(r"^([A-Za-z]+)(\d*)$")


class A1RangeError(ValueError):
    pass


@dataclass(frozen=True)
class CellRange:
    first_col: int  # 0-based
    first_row: int  # 1-based sheet row
    last_col: int  # 0-based, inclusive
    last_row: int | None  # inclusive; None = open-ended

    @property
    def width(self) -> int:
        return self.last_col - self.first_col + 1


def column_index(letters: str) -> int:
    """``A`` -> 0, ``Z`` -> 25, ``AA`` -> 26."""
    index = 0
    for ch in letters.upper():
        index = index * 26 + (ord(ch) - ord("A") + 1)
    return index - 1


def column_letters(index: int) -> str:
    letters = ""
    index += 1
    while index:
        index, rem = divmod(index - 1, 26)
        letters = chr(ord("A") + rem) + letters
    return letters


def _split_cell(cell: str, cell_range: str) -> tuple[str, int | None]:
    m = _CELL_RE.match(cell.strip())
    if m is None:
        raise A1RangeError(f"invalid A1 range: {cell_range!r}")
    return m.group(1), (int(m.group(2)) if m.group(2) else None)


def parse_range(cell_range: str) -> CellRange:
    if "!" in cell_range:
        cell_range = cell_range.split("!", 1)[1]
    parts = cell_range.split(":")
    if len(parts) != 2:
        raise A1RangeError(f"invalid A1 range: {cell_range!r}")
    start_col, start_row = _split_cell(parts[0], cell_range)
    end_col, end_row = _split_cell(parts[1], cell_range)
    first = column_index(start_col)
    last = column_index(end_col)
    if last < first or (end_row is not None and start_row is not None and end_row < start_row):
        raise A1RangeError(f"invalid A1 range: {cell_range!r}")
    return CellRange(first, start_row or 1, last, end_row)


def bounded_range(cell_range: str, max_rows: int) -> str:
    """Limit ``cell_range`` to its first ``max_rows`` rows (``A3:W``, 50 -> ``A3:W52``)."""
    parsed = parse_range(cell_range)
    last_row = parsed.first_row + max_rows - 1
    if parsed.last_row is not None:
        last_row = min(last_row, parsed.last_row)
    return (
        f"{column_letters(parsed.first_col)}{parsed.first_row}:"
        f"{column_letters(parsed.last_col)}{last_row}"
    )
