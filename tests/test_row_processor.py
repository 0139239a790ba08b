import pytest

from core.enums import RecalculationPolicy, RowStatus
from core.exceptions import MissingEmployeeIdColumn
from core.models import ComputedValue, LiteralValue, RowProcessingRequest
from stages import RowProcessor

from conftest import TEMPLATE_ROWS, extract_template, make_grid

HEADER = TEMPLATE_ROWS[0]


def request_for(rows, template=None, batch_id="batch-1"):
    return RowProcessingRequest(
        template=template or extract_template(TEMPLATE_ROWS, template_id=1),
        grid=make_grid(rows),
        uploaded_by="uploader-1",
        upload_batch_id=batch_id,
    )


@pytest.mark.asyncio
async def test_rows_are_recalculated_and_stored(employees, row_store):
    processor = RowProcessor(employees, row_store)
    result = await processor.execute(request_for([
        HEADER,
        ["E100", "Ann", 200, 20, "=C2+D2"],
        ["E101", "Bob", 50, 5],
    ]))

    assert result.total_rows == 2
    assert result.success_count == 2
    assert result.error_count == 0

    first, second = result.results
    assert first.row_number == 2
    assert first.employee_name == "Ann Lee"
    assert first.employee_email == "ann@example.com"
    assert first.calculated_values == {"Total": 220}
    # no formula in the upload: the template formula is shifted down one row
    assert second.calculated_values == {"Total": 55}

    stored = await row_store.find_by_batch("batch-1")
    assert [row.row_number for row in stored] == [2, 3]
    assert stored[0].status == RowStatus.VALIDATED
    assert stored[0].template_id == 1
    assert stored[0].uploaded_by == "uploader-1"
    assert stored[0].data["Base"] == LiteralValue(value=200)
    assert stored[1].data["Total"] == ComputedValue(formula="=C3+D3", value=55, calculated_value=55)
    assert stored[1].raw_data == {"Employee ID": "E101", "Name": "Bob", "Base": 50, "Bonus": 5}


@pytest.mark.asyncio
async def test_missing_employee_id_is_a_row_error(employees, row_store):
    processor = RowProcessor(employees, row_store)
    result = await processor.execute(request_for([
        HEADER,
        [None, "Nobody", 1, 2],
        ["E100", "Ann", 1, 2],
    ]))

    assert result.success_count == 1
    assert result.error_count == 1
    assert result.errors[0].row_number == 2
    assert result.errors[0].error == "Missing Employee ID"
    assert result.results[0].row_number == 3


@pytest.mark.asyncio
async def test_unknown_employee_is_not_stored(employees, row_store):
    processor = RowProcessor(employees, row_store)
    result = await processor.execute(request_for([
        HEADER,
        ["E999", "Who", 1, 2],
        ["E900", "Gone", 1, 2],
    ]))

    assert result.success_count == 0
    assert [e.error for e in result.errors] == [
        "Employee with ID E999 not found",
        "Employee with ID E900 not found",
    ]
    assert result.errors[0].employee_id == "E999"
    assert await row_store.find_by_batch("batch-1") == []


@pytest.mark.asyncio
async def test_blank_rows_are_skipped(employees, row_store):
    processor = RowProcessor(employees, row_store)
    result = await processor.execute(request_for([
        HEADER,
        ["E100", "Ann", 1, 2],
        [],
        ["E101", "Bob", 3, 4],
    ]))

    assert result.total_rows == 3
    assert [r.row_number for r in result.results] == [2, 4]
    assert result.errors == []


@pytest.mark.asyncio
async def test_numeric_employee_ids_are_normalized(employees, row_store):
    processor = RowProcessor(employees, row_store)
    result = await processor.execute(request_for([HEADER, [1001.0, "Cy", 1, 1]]))

    assert result.results[0].employee_id == "1001"
    stored = await row_store.find_by_batch("batch-1")
    assert stored[0].employee_id == "1001"


@pytest.mark.asyncio
async def test_cached_values_are_kept_under_backfill(employees, row_store):
    processor = RowProcessor(employees, row_store)
    request = request_for([HEADER, ["E100", "Ann", 200, 20]])
    request.grid.cells["E2"] = request.grid.cells["D2"].model_copy(
        update={"address": "E2", "col": 4, "value": 999, "formula": "=C2+D2"}
    )
    request.grid.model_post_init(None)

    result = await processor.execute(request)
    assert result.results[0].calculated_values == {"Total": 999}


@pytest.mark.asyncio
async def test_always_policy_recomputes(employees, row_store):
    processor = RowProcessor(employees, row_store, policy=RecalculationPolicy.ALWAYS)
    request = request_for([HEADER, ["E100", "Ann", 200, 20]])
    request.grid.cells["E2"] = request.grid.cells["D2"].model_copy(
        update={"address": "E2", "col": 4, "value": 999, "formula": "=C2+D2"}
    )
    request.grid.model_post_init(None)

    result = await processor.execute(request)
    assert result.results[0].calculated_values == {"Total": 220}


@pytest.mark.asyncio
async def test_never_policy_stores_values_as_uploaded(employees, row_store):
    processor = RowProcessor(employees, row_store, policy=RecalculationPolicy.NEVER)
    result = await processor.execute(request_for([HEADER, ["E100", "Ann", 200, 20]]))

    assert result.results[0].calculated_values == {}


@pytest.mark.asyncio
async def test_employee_id_column_found_in_upload_headers(employees, row_store):
    template = extract_template([["Staff", "Score"], ["x", 1]], template_id=7)
    assert template.employee_field_mapping.employee_id_column == -1

    processor = RowProcessor(employees, row_store)
    result = await processor.execute(request_for(
        [["Score", "Employee No"], [5, "E101"]], template=template
    ))
    assert result.results[0].employee_id == "E101"


@pytest.mark.asyncio
async def test_no_employee_id_column_anywhere(employees, row_store):
    template = extract_template([["Staff", "Score"], ["x", 1]])
    processor = RowProcessor(employees, row_store)

    with pytest.raises(MissingEmployeeIdColumn):
        await processor.execute(request_for([["Staff", "Score"], ["E100", 1]], template=template))


@pytest.mark.parametrize("value,expected", [
    ("E100", "E100"),
    ("  E100 ", "E100"),
    (1001.0, "1001"),
    (1001, "1001"),
    (10.5, "10.5"),
    ("", None),
    (None, None),
    (True, None),
])
def test_normalize_employee_id(value, expected):
    assert RowProcessor.normalize_employee_id(value) == expected


@pytest.mark.asyncio
async def test_large_upload_is_processed_row_by_row(employees, row_store):
    processor = RowProcessor(employees, row_store)
    rows = [HEADER] + [["E100", "Ann", n, 1] for n in range(3000)]

    result = await processor.execute(request_for(rows))

    assert result.success_count == 3000
    assert result.results[0].calculated_values == {"Total": 1}
    assert result.results[-1].row_number == 3001
    assert result.results[-1].calculated_values == {"Total": 3000}
