from __future__ import annotations

import pytest

from sheetsync.sources.a1 import (
    A1RangeError,
    CellRange,
    bounded_range,
    column_index,
    column_letters,
    parse_range,
)


@pytest.mark.parametrize("letters, index", [("A", 0), ("B", 1), ("W", 22), ("Z", 25), ("AA", 26), ("AZ", 51)])
def test_column_index_and_letters(letters, index):
    assert column_index(letters) == index
    assert column_letters(index) == letters


def test_parse_open_ended_range():
    rng = parse_range("A3:W")
    assert rng == CellRange(first_col=0, first_row=3, last_col=22, last_row=None)
    assert rng.width == 23


def test_parse_bounded_range_with_sheet_prefix():
    rng = parse_range("INVOICE!B5:I50")
    assert rng == CellRange(first_col=1, first_row=5, last_col=8, last_row=50)


@pytest.mark.parametrize("bad", ["A3", "3:W", "W3:A", "A10:B5", "A1:B2:C3", ""])
def test_parse_invalid_range(bad):
    with pytest.raises(A1RangeError):
        parse_range(bad)


def test_bounded_range():
    assert bounded_range("A3:W", 50) == "A3:W52"
    assert bounded_range("B5:I", 50) == "B5:I54"
    # never widens an already bounded range
    assert bounded_range("B5:I20", 50) == "B5:I20"
