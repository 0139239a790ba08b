"""Excel workbook codec"""

import io
from datetime import date, datetime, time
from typing import Any, List, Optional

import openpyxl
from openpyxl.worksheet.formula import ArrayFormula

from core.models import Grid, GridBounds, GridCell
from core.enums import CellValueType
from core.exceptions import MalformedSpreadsheet, EmptySpreadsheet
from core.interfaces import SpreadsheetCodec
from utils.cells import encode_cell_address


ERROR_CODES = {"#NULL!", "#DIV/0!", "#VALUE!", "#REF!", "#NAME?", "#NUM!", "#N/A"}


class ExcelCodec(SpreadsheetCodec):
    """Codec for Office Open XML workbooks (.xlsx, .xlsm)

    Only the first worksheet is read. Formula cells keep their formula text
    plus the value cached by the application that last saved the file.
    """

    @property
    def supported_extensions(self) -> List[str]:
        return [".xlsx", ".xlsm"]

    def decode(self, content: bytes, file_name: str = None) -> Grid:
        """Decode workbook bytes into a Grid"""
        try:
            formulas_wb = openpyxl.load_workbook(io.BytesIO(content), data_only=False)
            values_wb = openpyxl.load_workbook(io.BytesIO(content), data_only=True)
        except Exception as e:
            raise MalformedSpreadsheet(
                f"Failed to parse Excel file: {e}",
                file_name
            ) from e

        if not formulas_wb.sheetnames:
            raise MalformedSpreadsheet("Workbook has no worksheets", file_name)

        sheet_name = formulas_wb.sheetnames[0]
        sheet = formulas_wb[sheet_name]
        cached = values_wb[sheet_name]

        cells = {}
        for row in sheet.iter_rows():
            for cell in row:
                if cell.value is None:
                    continue
                if isinstance(cell.value, str) and cell.value == "":
                    continue

                r, c = cell.row - 1, cell.column - 1
                formula = self._formula_text(cell)
                if formula is not None:
                    value = cached.cell(row=cell.row, column=cell.column).value
                else:
                    value = cell.value

                address = encode_cell_address(r, c)
                cells[address] = GridCell(
                    address=address,
                    row=r,
                    col=c,
                    value=value,
                    formula=formula,
                    number_format=self._number_format(cell),
                    value_type=self._value_type(value, cell.data_type if formula is None else None),
                )

        if not cells:
            raise EmptySpreadsheet(file_name=file_name)

        bounds = GridBounds(
            min_row=sheet.min_row - 1,
            max_row=sheet.max_row - 1,
            min_col=sheet.min_column - 1,
            max_col=sheet.max_column - 1,
        )
        return Grid(sheet_name=sheet_name, bounds=bounds, cells=cells)

    def encode(self, grid: Grid) -> bytes:
        """Encode a Grid as a single-sheet workbook"""
        workbook = openpyxl.Workbook()
        sheet = workbook.active
        sheet.title = grid.sheet_name

        for cell in grid.iter_cells():
            target = sheet.cell(row=cell.row + 1, column=cell.col + 1)
            if cell.formula:
                target.value = cell.formula if cell.formula.startswith("=") else f"={cell.formula}"
            else:
                target.value = cell.value
            if cell.number_format:
                target.number_format = cell.number_format

        buffer = io.BytesIO()
        workbook.save(buffer)
        return buffer.getvalue()

    def _formula_text(self, cell) -> Optional[str]:
        value = cell.value
        if isinstance(value, ArrayFormula):
            text = value.text or ""
        elif cell.data_type == "f" and isinstance(value, str):
            text = value
        else:
            return None
        text = text.strip()
        if not text:
            return None
        if not text.startswith("="):
            text = f"={text}"
        return text

    def _number_format(self, cell) -> Optional[str]:
        fmt = cell.number_format
        if not fmt or fmt == "General":
            return None
        return fmt

    def _value_type(self, value: Any, data_type: Optional[str]) -> CellValueType:
        if value is None:
            return CellValueType.EMPTY
        if data_type == "e":
            return CellValueType.ERROR
        if isinstance(value, bool):
            return CellValueType.BOOLEAN
        if isinstance(value, (datetime, date, time)):
            return CellValueType.DATE
        if isinstance(value, (int, float)):
            return CellValueType.NUMBER
        if isinstance(value, str) and value in ERROR_CODES:
            return CellValueType.ERROR
        return CellValueType.STRING
