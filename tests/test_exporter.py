import io
from datetime import date

import pytest
from openpyxl import load_workbook

from core.exceptions import BatchNotFound
from core.models import ComputedValue, ExportRequest, LiteralValue, OriginalFile, UploadedRow
from stages import Exporter

from conftest import TEMPLATE_ROWS, extract_template


def uploaded(row_number, employee_id, base, total):
    return UploadedRow(
        template_id=1,
        employee_id=employee_id,
        uploaded_by="uploader-1",
        upload_batch_id="1234abcd-0000-0000-0000-000000000000",
        row_number=row_number,
        data={
            "Employee ID": LiteralValue(value=employee_id),
            "Base": LiteralValue(value=base),
            "Total": ComputedValue(formula=f"=C{row_number}+D{row_number}", value=None,
                                   calculated_value=total),
        },
    )


@pytest.fixture
def exporter():
    return Exporter(today=lambda: date(2024, 3, 1), max_column_width=12)


def test_export_batch(exporter):
    template = extract_template(TEMPLATE_ROWS, template_id=1)
    request = ExportRequest(
        template=template,
        rows=[uploaded(3, "E101", 50, 55), uploaded(2, "E100", 200, 220)],
        upload_batch_id="1234abcd-0000-0000-0000-000000000000",
    )

    payload = exporter.export_batch(request)

    assert payload.file_name == "PMS-Header-1700000000000-abc123_1234abcd_2024-03-01.xlsx"
    sheet = load_workbook(io.BytesIO(payload.content))["Employee Data"]
    rows = [list(r) for r in sheet.iter_rows(values_only=True)]
    assert rows[0] == ["Employee ID", "Name", "Base", "Bonus", "Total"]
    assert rows[1][0] == "E100"
    assert rows[1][2] == 200
    assert rows[1][4] == 220
    assert rows[2][0] == "E101"
    assert rows[2][4] == 55

    assert sheet.column_dimensions["A"].width == 12
    assert sheet.column_dimensions["C"].width == 6


def test_export_of_empty_batch_fails(exporter):
    template = extract_template(TEMPLATE_ROWS, template_id=1)
    with pytest.raises(BatchNotFound) as exc_info:
        exporter.export_batch(ExportRequest(template=template, rows=[], upload_batch_id="b"))
    assert str(exc_info.value) == "No data found for this batch"


def test_export_template_returns_original_file(exporter):
    template = extract_template(TEMPLATE_ROWS)
    template.original_file = OriginalFile(file_name="header.xlsx", content=b"original bytes")

    payload = exporter.export_template(template)
    assert payload.content == b"original bytes"
    assert payload.file_name == "header.xlsx"


def test_export_template_rebuilds_workbook(exporter):
    template = extract_template(TEMPLATE_ROWS)

    payload = exporter.export_template(template)

    assert payload.file_name == f"{template.template_name}.xlsx"
    sheet = load_workbook(io.BytesIO(payload.content))["PMS Data"]
    assert sheet["A1"].value == "Employee ID"
    assert sheet["C2"].value == 100
    assert sheet["E2"].value == "=C2+D2"
