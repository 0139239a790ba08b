from datetime import date, datetime

import pytest

from core.exceptions import InvalidAddress
from utils.cells import (
    column_index_to_letter,
    column_letter_to_index,
    encode_cell_address,
    extract_references,
    parse_cell_address,
    serialize_value,
    shift_row_references,
)


@pytest.mark.parametrize("letters,index", [("A", 0), ("Z", 25), ("AA", 26), ("AZ", 51), ("BA", 52), ("ZZ", 701), ("AAA", 702)])
def test_column_letters(letters, index):
    assert column_letter_to_index(letters) == index
    assert column_index_to_letter(index) == letters


def test_lowercase_letters_accepted():
    assert column_letter_to_index("ab") == 27


def test_column_letters_round_trip():
    for index in range(0, 20000):
        assert column_letter_to_index(column_index_to_letter(index)) == index


def test_parse_cell_address_is_zero_based():
    address = parse_cell_address("B12")
    assert address.row == 11
    assert address.col == 1
    assert encode_cell_address(11, 1) == "B12"


@pytest.mark.parametrize("text", ["ab12", "Ab12", "aB12", "AB12", "z1", "xfd1048576", "Aa100"])
def test_address_round_trip_is_upper_case(text):
    address = parse_cell_address(text)
    assert encode_cell_address(address.row, address.col) == text.upper()


@pytest.mark.parametrize("text", ["", "12", "A0", "A-1", "1A", "A1B", None])
def test_parse_cell_address_rejects_malformed(text):
    with pytest.raises(InvalidAddress):
        parse_cell_address(text)


def test_invalid_address_is_a_value_error():
    with pytest.raises(ValueError):
        column_letter_to_index("A1")
    with pytest.raises(InvalidAddress):
        column_index_to_letter(-1)


def test_extract_references_dedupes_in_order():
    assert extract_references("=SUM(B2:D2)+$B$2*c2") == ["B2", "D2", "C2"]
    assert extract_references("") == []


def test_shift_row_references_keeps_anchored_rows():
    assert shift_row_references("=A2+B$2+$C2", 3) == "=A5+B$2+$C5"


def test_shift_row_references_clamps_at_first_row():
    assert shift_row_references("=A2*2", -5) == "=A1*2"
    assert shift_row_references("=A2*2", 0) == "=A2*2"


def test_shift_row_references_skips_quoted_text():
    assert shift_row_references('=IF(A2>0,"Q1",0)', 2) == '=IF(A4>0,"Q1",0)'
    assert shift_row_references('=A2&"say ""B2"""&C2', 1) == '=A3&"say ""B2"""&C3'


def test_serialize_value():
    assert serialize_value(datetime(2024, 1, 2, 3, 4, 5)) == "2024-01-02T03:04:05"
    assert serialize_value(date(2024, 1, 2)) == "2024-01-02"
    assert serialize_value(1.5) == 1.5
