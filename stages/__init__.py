"""Pipeline stages"""

from .s0_reception import Receiver, ExcelCodec
from .s1_structure import StructureExtractor
from .s2_validation import UploadValidator
from .s3_row_processing import FormulaEngine, RowProcessor
from .s4_export import Exporter

__all__ = [
    "Receiver",
    "ExcelCodec",
    "StructureExtractor",
    "UploadValidator",
    "FormulaEngine",
    "RowProcessor",
    "Exporter",
]
