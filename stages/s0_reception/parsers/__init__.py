"""Workbook codecs"""

from .excel import ExcelCodec

__all__ = ["ExcelCodec"]
