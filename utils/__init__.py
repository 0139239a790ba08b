"""Utility modules"""

from .cells import (
    CellAddress,
    column_letter_to_index,
    column_index_to_letter,
    parse_cell_address,
    encode_cell_address,
    extract_references,
    shift_row_references,
    serialize_value,
)
from .field_rules import FIELD_RULES, FieldRule, classify_header, is_employee_id_header
from .identity import IdentityFactory
from .uploads import save_upload, remove_upload, transient_upload
from .log import setup_logging

__all__ = [
    "CellAddress",
    "column_letter_to_index",
    "column_index_to_letter",
    "parse_cell_address",
    "encode_cell_address",
    "extract_references",
    "shift_row_references",
    "serialize_value",
    "FIELD_RULES",
    "FieldRule",
    "classify_header",
    "is_employee_id_header",
    "IdentityFactory",
    "save_upload",
    "remove_upload",
    "transient_upload",
    "setup_logging",
]
