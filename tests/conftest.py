from pathlib import Path

import pytest
from openpyxl import Workbook

from core.models import Employee, Grid, GridBounds, GridCell, TemplateSource
from db import InMemoryEmployeeDirectory, InMemoryTemplateStore, InMemoryUploadedRowStore
from orchestrator import Orchestrator
from stages import StructureExtractor
from utils.cells import encode_cell_address
from utils.identity import IdentityFactory


TEMPLATE_ROWS = [
    ["Employee ID", "Name", "Base", "Bonus", "Total"],
    ["E100", "Ann", 100, 10, "=C2+D2"],
]


def make_grid(rows, sheet_name="Sheet1") -> Grid:
    """Grid from nested lists; strings starting with "=" become formula cells"""
    cells = {}
    for r, row in enumerate(rows):
        for c, value in enumerate(row):
            if value is None or value == "":
                continue
            address = encode_cell_address(r, c)
            if isinstance(value, str) and value.startswith("="):
                cells[address] = GridCell(address=address, row=r, col=c, formula=value)
            else:
                cells[address] = GridCell(address=address, row=r, col=c, value=value)
    return Grid(
        sheet_name=sheet_name,
        bounds=GridBounds(
            max_row=max(len(rows) - 1, 0),
            max_col=max((len(row) for row in rows), default=1) - 1,
        ),
        cells=cells,
    )


def write_workbook(path: Path, rows, title="Sheet1") -> Path:
    workbook = Workbook()
    sheet = workbook.active
    sheet.title = title
    for row in rows:
        sheet.append(row)
    workbook.save(path)
    return path


def fixed_identity() -> IdentityFactory:
    batches = iter(f"batch-{n:04d}-0000-0000-000000000000" for n in range(1, 1000))
    return IdentityFactory(
        clock=lambda: 1700000000.0,
        token_factory=lambda: "abc123",
        batch_factory=lambda: next(batches),
    )


def extract_template(rows, base_name="PMS-Header", template_id=None):
    extractor = StructureExtractor(identity=fixed_identity())
    template = extractor.extract(TemplateSource(grid=make_grid(rows), base_name=base_name))
    template.id = template_id
    return template


@pytest.fixture
def employees():
    return InMemoryEmployeeDirectory([
        Employee(employee_id="E100", name="Ann Lee", email="Ann@Example.com", designation="Analyst"),
        Employee(employee_id="E101", name="Bob Roy", email="bob@example.com", department="Sales"),
        Employee(employee_id="1001", name="Cy Park", email="cy@example.com"),
        Employee(employee_id="E900", name="Gone", email="gone@example.com", is_active=False),
    ])


@pytest.fixture
def template_store():
    return InMemoryTemplateStore()


@pytest.fixture
def row_store():
    return InMemoryUploadedRowStore()


@pytest.fixture
def orchestrator(template_store, row_store, employees):
    return Orchestrator(
        templates=template_store,
        uploads=row_store,
        employees=employees,
        identity=fixed_identity(),
    )
