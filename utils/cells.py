"""Cell address and formula reference helpers

Column letters use bijective base 26: A=0, Z=25, AA=26. Rows in addresses are
1-based, rows and columns everywhere else are 0-based.
"""

import re
from datetime import date, datetime, time
from typing import NamedTuple

from core.exceptions import InvalidAddress


ADDRESS_PATTERN = re.compile(r"^([A-Z]+)([0-9]+)$", re.IGNORECASE)

# Token grammar for references inside formula text; anchors are optional
CELL_REFERENCE_PATTERN = re.compile(r"\$?([A-Z]+)\$?([0-9]+)", re.IGNORECASE)

# String literals are matched first so their text is never shifted
_SHIFT_PATTERN = re.compile(r'("(?:[^"]|"")*")|(\$?)([A-Z]+)(\$?)([0-9]+)', re.IGNORECASE)


class CellAddress(NamedTuple):
    row: int
    col: int


def column_letter_to_index(letters: str) -> int:
    """'A' -> 0, 'Z' -> 25, 'AA' -> 26"""
    if not isinstance(letters, str) or not letters:
        raise InvalidAddress(letters)
    index = 0
    for char in letters.upper():
        if not ("A" <= char <= "Z"):
            raise InvalidAddress(letters)
        index = index * 26 + (ord(char) - ord("A") + 1)
    return index - 1


def column_index_to_letter(index: int) -> str:
    """0 -> 'A', 25 -> 'Z', 26 -> 'AA'"""
    if index < 0:
        raise InvalidAddress(index)
    result = ""
    n = index + 1
    while n > 0:
        n, remainder = divmod(n - 1, 26)
        result = chr(65 + remainder) + result
    return result


def parse_cell_address(text: str) -> CellAddress:
    """'B12' -> CellAddress(row=11, col=1)"""
    match = ADDRESS_PATTERN.match(text.strip()) if isinstance(text, str) else None
    if not match:
        raise InvalidAddress(text)
    row = int(match.group(2))
    if row < 1:
        raise InvalidAddress(text)
    return CellAddress(row=row - 1, col=column_letter_to_index(match.group(1)))


def encode_cell_address(row: int, col: int) -> str:
    if row < 0:
        raise InvalidAddress((row, col))
    return f"{column_index_to_letter(col)}{row + 1}"


def extract_references(formula: str) -> list[str]:
    """Referenced addresses in first-seen order, upper-cased, anchors stripped"""
    if not formula:
        return []
    seen = []
    for match in CELL_REFERENCE_PATTERN.finditer(formula):
        address = f"{match.group(1).upper()}{match.group(2)}"
        if address not in seen:
            seen.append(address)
    return seen


def shift_row_references(formula: str, offset: int) -> str:
    """Move relative row references by `offset`; `$`-anchored rows and quoted text stay put"""
    if not offset or not formula:
        return formula

    def _shift(match: re.Match) -> str:
        literal, col_anchor, letters, row_anchor, digits = match.groups()
        if literal is not None:
            return literal
        row = int(digits)
        if not row_anchor:
            row = max(1, row + offset)
        return f"{col_anchor}{letters}{row_anchor}{row}"

    return _SHIFT_PATTERN.sub(_shift, formula)


def serialize_value(value):
    """Dates become ISO text so cell values survive JSON storage"""
    if isinstance(value, (datetime, date, time)):
        return value.isoformat()
    return value
