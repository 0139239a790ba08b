"""Stage 3: Row Processing - resolve employees and recompute formulas per row"""

import logging
from typing import Any, Dict, List, Optional, Tuple

from core.interfaces import Stage, EmployeeDirectory, UploadedRowStore
from core.models import (
    ComputedValue,
    FormulaDefinition,
    Grid,
    LiteralValue,
    RowError,
    RowProcessingRequest,
    RowResult,
    TemplateModel,
    UploadedRow,
    UploadResult,
)
from core.enums import RecalculationPolicy, RowStatus
from core.exceptions import EmployeeNotFound, MissingEmployeeId, MissingEmployeeIdColumn
from utils.field_rules import is_employee_id_header
from utils.cells import shift_row_references, serialize_value
from config import settings
from .formula_engine import FormulaEngine

logger = logging.getLogger(__name__)


class RowProcessor(Stage[RowProcessingRequest, UploadResult]):
    """Turn each data row of an upload into a persisted UploadedRow."""

    @property
    def name(self) -> str:
        return "Row Processing"

    @property
    def stage_number(self) -> int:
        return 3

    def __init__(
        self,
        directory: EmployeeDirectory,
        row_store: UploadedRowStore,
        engine: FormulaEngine = None,
        policy: RecalculationPolicy = None,
    ):
        self.directory = directory
        self.row_store = row_store
        self.engine = engine or FormulaEngine()
        self.policy = RecalculationPolicy(policy or settings.RECALCULATION_POLICY)

    def validate_input(self, input_data: RowProcessingRequest) -> bool:
        return (
            isinstance(input_data, RowProcessingRequest)
            and bool(input_data.uploaded_by)
            and bool(input_data.upload_batch_id)
        )

    async def execute(self, input_data: RowProcessingRequest) -> UploadResult:
        template = input_data.template
        grid = input_data.grid

        header_row = template.header_row_index if template.header_row_index >= 0 else 0
        headers = self._read_headers(grid, header_row)
        employee_id_col = self._resolve_employee_id_column(template, headers)

        data_start_row = template.data_start_row if template.data_start_row >= 0 else header_row + 1
        row_formulas = self._row_formulas(template, data_start_row)

        result = UploadResult(
            upload_batch_id=input_data.upload_batch_id,
            template_id=template.id,
            template_name=template.template_name,
            total_rows=max(0, grid.bounds.max_row - data_start_row + 1),
        )

        for r in range(data_start_row, grid.bounds.max_row + 1):
            if not self._row_has_data(grid, r):
                continue
            try:
                row_result = await self._process_row(
                    input_data, grid, r, headers, employee_id_col, row_formulas
                )
            except MissingEmployeeId as e:
                logger.info("Row %d: %s", e.row_number, e)
                result.errors.append(RowError(row_number=e.row_number, error=str(e)))
                continue
            except EmployeeNotFound as e:
                logger.info("Row %d: %s", e.row_number, e)
                result.errors.append(
                    RowError(row_number=e.row_number, employee_id=e.employee_id, error=str(e))
                )
                continue
            result.results.append(row_result)

        result.success_count = len(result.results)
        result.error_count = len(result.errors)
        logger.info(
            "Batch %s: %d rows stored, %d rows rejected",
            input_data.upload_batch_id,
            result.success_count,
            result.error_count,
        )
        return result

    async def _process_row(
        self,
        request: RowProcessingRequest,
        grid: Grid,
        r: int,
        headers: Dict[int, str],
        employee_id_col: int,
        row_formulas: List[Tuple[int, FormulaDefinition]],
    ) -> RowResult:
        row_number = r + 1
        id_cell = grid.get(r, employee_id_col)
        employee_id = self.normalize_employee_id(id_cell.value if id_cell else None)
        if not employee_id:
            raise MissingEmployeeId(row_number)

        employee = await self.directory.find_active_by_id(employee_id)
        if employee is None:
            raise EmployeeNotFound(employee_id, row_number)

        raw_data: Dict[str, Any] = {}
        data: Dict[str, Any] = {}
        calculated: Dict[str, Any] = {}
        row_values: Dict[str, Any] = {}

        for cell in grid.row_cells(r):
            header = headers.get(cell.col)
            if not header:
                continue
            value = serialize_value(cell.value)
            if cell.formula:
                data[header] = ComputedValue(formula=cell.formula, value=value, calculated_value=value)
                calculated[header] = value
                raw_data[header] = value
                row_values[header] = value
            elif value is not None:
                data[header] = LiteralValue(value=value)
                raw_data[header] = value
                row_values[header] = value

        self._recalculate(r, row_number, row_formulas, headers, data, calculated, row_values)

        stored = await self.row_store.create(
            UploadedRow(
                template_id=request.template.id,
                employee_id=employee.employee_id,
                uploaded_by=request.uploaded_by,
                upload_batch_id=request.upload_batch_id,
                row_number=row_number,
                raw_data=raw_data,
                data=data,
                calculated_data=calculated,
                status=RowStatus.VALIDATED,
                validation_errors=[],
            )
        )

        return RowResult(
            row_number=row_number,
            employee_id=employee_id,
            employee_name=employee.name,
            employee_email=employee.email,
            employee_designation=employee.designation,
            employee_department=employee.department,
            data_id=stored.id,
            calculated_values=calculated,
        )

    def _recalculate(
        self,
        r: int,
        row_number: int,
        row_formulas: List[Tuple[int, FormulaDefinition]],
        headers: Dict[int, str],
        data: Dict[str, Any],
        calculated: Dict[str, Any],
        row_values: Dict[str, Any],
    ) -> None:
        if self.policy == RecalculationPolicy.NEVER:
            return

        for col, definition in row_formulas:
            header = headers.get(col)
            if not header:
                continue
            if self.policy == RecalculationPolicy.BACKFILL and self._is_resolved(data.get(header)):
                continue

            # Shift from the anchor row so the stored text names row r; references
            # resolve by column, so the value matches a shift from data_start_row
            formula = shift_row_references(definition.formula, r - definition.row)
            value = self.engine.evaluate(formula, row_values, headers, row_number)
            if value is None:
                continue

            data[header] = ComputedValue(formula=formula, value=value, calculated_value=value)
            calculated[header] = value
            row_values[header] = value

    def _row_formulas(
        self, template: TemplateModel, data_start_row: int
    ) -> List[Tuple[int, FormulaDefinition]]:
        """One formula per column: the first one anchored inside the data region"""
        by_column: Dict[int, FormulaDefinition] = {}
        for definition in template.formula_definitions:
            if definition.row < data_start_row:
                continue
            current = by_column.get(definition.col)
            if current is None or definition.row < current.row:
                by_column[definition.col] = definition

        return [(col, by_column[col]) for col in sorted(by_column)]

    def _read_headers(self, grid: Grid, header_row: int) -> Dict[int, str]:
        headers = {}
        for cell in grid.row_cells(header_row):
            if cell.value is None:
                continue
            text = str(cell.value).strip()
            if text:
                headers[cell.col] = text
        return headers

    def _resolve_employee_id_column(self, template: TemplateModel, headers: Dict[int, str]) -> int:
        column = template.employee_field_mapping.employee_id_column
        if column >= 0:
            return column
        for col in sorted(headers):
            if is_employee_id_header(headers[col]):
                logger.info("Employee ID column resolved from upload headers: %d", col)
                return col
        logger.error("No Employee ID column in template %s or upload", template.template_name)
        raise MissingEmployeeIdColumn()

    def _row_has_data(self, grid: Grid, r: int) -> bool:
        for cell in grid.row_cells(r):
            if cell.formula:
                return True
            if cell.value is not None and cell.value != "":
                return True
        return False

    def _is_resolved(self, entry: Optional[Any]) -> bool:
        return isinstance(entry, ComputedValue) and entry.calculated_value is not None

    @staticmethod
    def normalize_employee_id(value: Any) -> Optional[str]:
        """Employee ids read as 1001.0 are stored as "1001" """
        if value is None or isinstance(value, bool):
            return None
        if isinstance(value, float) and value.is_integer():
            value = int(value)
        text = str(value).strip()
        return text or None
