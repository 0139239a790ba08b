import pytest

from core.enums import CellDataType, CellType, MappedField
from core.exceptions import EmptySpreadsheet
from core.models import Grid, TemplateSource
from stages import StructureExtractor

from conftest import TEMPLATE_ROWS, fixed_identity, make_grid


def extract(rows, **kwargs):
    extractor = StructureExtractor(identity=fixed_identity(), **kwargs)
    return extractor.extract(TemplateSource(grid=make_grid(rows), base_name="PMS-Header"))


def test_bonus_sheet_mapping():
    template = extract([
        ["Employee ID", "Bonus %"],
        ["E100", 0.1],
        ["E101", 0.2],
    ])

    assert template.template_name == "PMS-Header-1700000000000-abc123"
    assert template.header_row_index == 0
    assert template.data_start_row == 1
    assert template.employee_field_mapping.employee_id_column == 0
    assert len(template.column_mappings) == 2
    assert template.formula_definitions == []

    employee_id, bonus = template.column_mappings
    assert employee_id.mapped_field == MappedField.EMPLOYEE_ID
    assert employee_id.is_required
    assert employee_id.column_name == "A"
    assert bonus.mapped_field is None
    assert bonus.data_type == CellDataType.NUMBER

    assert template.metadata.total_rows == 3
    assert template.metadata.total_columns == 2
    assert template.metadata.protected_ranges == ["A1", "B1"]
    assert template.metadata.data_input_ranges == ["A2", "B2", "A3", "B3"]


def test_formula_cells_are_recorded():
    template = extract(TEMPLATE_ROWS)

    assert len(template.formula_definitions) == 1
    formula = template.formula_definitions[0]
    assert formula.cell_address == "E2"
    assert formula.formula == "=C2+D2"
    assert formula.dependent_cells == ["C2", "D2"]
    assert (formula.row, formula.col) == (1, 4)

    cells = {cell.address: cell for cell in template.sheet_structure}
    assert cells["E2"].type == CellType.FORMULA
    assert cells["E2"].is_locked
    assert cells["E2"].data_type == CellDataType.FORMULA
    assert cells["E2"].column_header == "Total"
    assert cells["C2"].type == CellType.DATA
    assert not cells["C2"].is_locked

    assert template.metadata.formula_rows == [1]
    assert template.metadata.formula_cells == ["E2"]
    assert "E2" in template.metadata.protected_ranges
    assert "E2" not in template.metadata.data_input_ranges


def test_colon_text_is_metadata():
    template = extract([
        ["Period: Q1"],
        ["Employee ID", "Name", "Score"],
        ["E100", "Ann", 4],
    ])

    assert template.header_row_index == 1
    assert template.data_start_row == 2
    cells = {cell.address: cell for cell in template.sheet_structure}
    assert cells["A1"].type == CellType.METADATA
    assert cells["A1"].is_locked
    assert cells["A2"].type == CellType.HEADER


def test_header_tie_goes_to_lower_row():
    template = extract([["a", "b"], ["c", "d"]])
    assert template.header_row_index == 0


def test_header_scan_stops_at_limit():
    rows = [[1], [2], [3], ["Employee ID", "Name"]]
    assert extract(rows).header_row_index == 3
    assert extract(rows, header_scan_last_row=1).header_row_index == -1


def test_no_header_row():
    template = extract([[1, 2], [3, 4]])

    assert template.header_row_index == -1
    assert template.data_start_row == -1
    assert template.column_mappings == []
    assert template.employee_field_mapping.employee_id_column == -1


def test_first_matching_column_wins():
    template = extract([
        ["Employee ID", "Employee No", "Email"],
        ["E100", "100", "a@example.com"],
    ])

    mapping = template.employee_field_mapping
    assert mapping.employee_id_column == 0
    assert mapping.email_column == 2
    assert template.column_mappings[1].mapped_field is None


def test_empty_grid_is_rejected():
    extractor = StructureExtractor(identity=fixed_identity())
    with pytest.raises(EmptySpreadsheet):
        extractor.extract(TemplateSource(grid=Grid(), base_name="PMS-Header"))


def test_extraction_is_repeatable():
    first = extract(TEMPLATE_ROWS).model_dump(exclude={"created_at"})
    second = extract(TEMPLATE_ROWS).model_dump(exclude={"created_at"})
    assert first == second


def test_to_dict_is_json_ready():
    data = extract(TEMPLATE_ROWS).to_dict()

    assert data["column_mappings"][0]["column_name"] == "A"
    assert data["column_mappings"][0]["is_required"] is True
    assert data["employee_field_mapping"]["employee_id_column"] == 0
    assert data["file_name"] is None
    assert "original_file" not in data
