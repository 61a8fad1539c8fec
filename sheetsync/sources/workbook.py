from __future__ import annotations

from pathlib import Path
from typing import Any
from zipfile import BadZipFile

from openpyxl import load_workbook
from openpyxl.utils.exceptions import InvalidFileException

from .a1 import A1RangeError, parse_range
from .base import SourceFetchError

"""Local .xlsx source (exports of the production spreadsheets).

Each worksheet is read once with openpyxl (read-only, cached formula values)
and kept in memory for the lifetime of the source. Blank rows keep their
position, so sheet row numbers match the A1 range exactly; cell text such as
``null`` or ``-`` reaches the normalizer unchanged.
"""

__all__ = [
    "WorkbookSource",
]


def _trim_trailing(row: list[Any]) -> list[Any]:
    end = len(row)
    while end and row[end - 1] is None:
        end -= 1
    return row[:end]


class WorkbookSource:
    def __init__(self, path: Path | str) -> None:
        self.path = Path(path)
        self._sheets: dict[str, list[tuple[Any, ...]]] = {}

    def _sheet_rows(self, sheet_name: str) -> list[tuple[Any, ...]]:
        if sheet_name not in self._sheets:
            if not self.path.exists():
                raise SourceFetchError(f"workbook not found: {self.path}")
            try:
                wb = load_workbook(self.path, read_only=True, data_only=True)
            except (InvalidFileException, BadZipFile, OSError) as e:
                raise SourceFetchError(f"workbook not readable: {e}") from e
            try:
                if sheet_name not in wb.sheetnames:
                    raise SourceFetchError(f"sheet '{sheet_name}' not found in {self.path.name}")
                self._sheets[sheet_name] = list(wb[sheet_name].iter_rows(values_only=True))
            finally:
                wb.close()
        return self._sheets[sheet_name]

    def fetch_range(self, sheet_name: str, cell_range: str) -> list[list[Any]]:
        try:
            rng = parse_range(cell_range)
        except A1RangeError as e:
            raise SourceFetchError(str(e)) from e
        sheet = self._sheet_rows(sheet_name)

        start = rng.first_row - 1
        stop = len(sheet) if rng.last_row is None else min(rng.last_row, len(sheet))
        columns = range(rng.first_col, rng.last_col + 1)

        rows = [
            _trim_trailing([raw[i] if i < len(raw) else None for i in columns])
            for raw in sheet[start:stop]
        ]
        # Like the Sheets API: no trailing empty rows
        while rows and not rows[-1]:
            rows.pop()
        return rows
