import io
from datetime import datetime

import pytest
from openpyxl import Workbook, load_workbook

from core.enums import CellValueType
from core.exceptions import EmptySpreadsheet, MalformedSpreadsheet, StageError
from core.models import Grid, GridCell
from stages import ExcelCodec, Receiver

from conftest import make_grid, write_workbook


def workbook_bytes(rows, title="Data") -> bytes:
    workbook = Workbook()
    sheet = workbook.active
    sheet.title = title
    for row in rows:
        sheet.append(row)
    buffer = io.BytesIO()
    workbook.save(buffer)
    return buffer.getvalue()


def test_decode_first_sheet():
    content = workbook_bytes([
        ["Employee ID", "Joined", "Base", "Total"],
        ["E100", datetime(2024, 1, 15), 100, "=C2*2"],
    ])
    grid = ExcelCodec().decode(content, "upload.xlsx")

    assert grid.sheet_name == "Data"
    assert grid.bounds.max_row == 1
    assert grid.bounds.max_col == 3
    assert grid.get(0, 0).value == "Employee ID"
    assert grid.get(1, 1).value_type == CellValueType.DATE
    assert grid.get(1, 2).value == 100
    assert grid.get(1, 2).value_type == CellValueType.NUMBER

    total = grid.cells["D2"]
    assert total.formula == "=C2*2"
    # openpyxl does not compute formulas, so there is no cached result
    assert total.value is None


def test_number_formats_are_kept():
    workbook = Workbook()
    sheet = workbook.active
    sheet["A1"] = 0.25
    sheet["A1"].number_format = "0.00%"
    buffer = io.BytesIO()
    workbook.save(buffer)

    cell = ExcelCodec().decode(buffer.getvalue()).get(0, 0)
    assert cell.number_format == "0.00%"


def test_empty_workbook_is_rejected():
    with pytest.raises(EmptySpreadsheet):
        ExcelCodec().decode(workbook_bytes([]), "empty.xlsx")


def test_garbage_is_rejected():
    with pytest.raises(MalformedSpreadsheet) as exc_info:
        ExcelCodec().decode(b"not a workbook", "broken.xlsx")
    assert exc_info.value.file_name == "broken.xlsx"


def test_encode_writes_formulas():
    grid = make_grid([["Base", "Total"], [10, "=A2*2"]], sheet_name="PMS Data")
    workbook = load_workbook(io.BytesIO(ExcelCodec().encode(grid)))

    sheet = workbook["PMS Data"]
    assert sheet["A1"].value == "Base"
    assert sheet["A2"].value == 10
    assert sheet["B2"].value == "=A2*2"


@pytest.mark.asyncio
async def test_receiver_reads_file(tmp_path):
    path = write_workbook(tmp_path / "upload.xlsx", [["Employee ID"], ["E100"]])
    result = await Receiver().execute(str(path))

    assert result.file_name == "upload.xlsx"
    assert result.file_size_bytes == path.stat().st_size
    assert result.content == path.read_bytes()
    assert result.grid.get(1, 0).value == "E100"
    assert result.to_original_file().file_name == "upload.xlsx"


@pytest.mark.asyncio
async def test_receiver_uses_client_file_name(tmp_path):
    path = write_workbook(tmp_path / "0f3a9c.xlsx", [["Employee ID"]])
    result = await Receiver().execute(str(path), file_name="Header Template.xlsx")
    assert result.file_name == "Header Template.xlsx"


@pytest.mark.asyncio
async def test_receiver_rejects_unsupported_types(tmp_path):
    path = tmp_path / "notes.csv"
    path.write_text("Employee ID\nE100\n")

    with pytest.raises(StageError):
        await Receiver().execute(str(path))


def test_receiver_input_must_exist(tmp_path):
    receiver = Receiver()
    assert not receiver.validate_input(str(tmp_path / "missing.xlsx"))
    assert not receiver.validate_input(42)


def test_row_cells_are_indexed_by_row():
    cells = {
        address: GridCell(address=address, row=r, col=c, value=address)
        for address, r, c in [("C2", 1, 2), ("A1", 0, 0), ("A2", 1, 0), ("B2", 1, 1)]
    }
    grid = Grid(cells=cells)

    assert [cell.address for cell in grid.row_cells(1)] == ["A2", "B2", "C2"]
    assert [cell.address for cell in grid.row_cells(0)] == ["A1"]
    assert grid.row_cells(7) == []

    # callers may not disturb the index
    grid.row_cells(1).clear()
    assert len(grid.row_cells(1)) == 3
