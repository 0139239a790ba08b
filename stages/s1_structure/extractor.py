"""Stage 1: Structure Extraction - derive a TemplateModel from a workbook grid"""

import logging
from datetime import date, datetime, time
from typing import List, Optional

from core.interfaces import Stage
from core.models import (
    CellDefinition,
    ColumnMapping,
    EmployeeFieldMapping,
    FormulaDefinition,
    Grid,
    GridCell,
    TemplateMetadata,
    TemplateModel,
    TemplateSource,
)
from core.enums import CellDataType, CellType, CellValueType, ResultType
from core.exceptions import EmptySpreadsheet
from utils.cells import extract_references, serialize_value
from utils.field_rules import classify_header
from utils.identity import IdentityFactory
from config import settings

logger = logging.getLogger(__name__)


class StructureExtractor(Stage[TemplateSource, TemplateModel]):
    """Classify cells, detect the header row and map columns to employee fields."""

    @property
    def name(self) -> str:
        return "Structure Extraction"

    @property
    def stage_number(self) -> int:
        return 1

    def __init__(
        self,
        identity: IdentityFactory = None,
        header_scan_last_row: int = None,
        version: str = None,
    ):
        self.identity = identity or IdentityFactory()
        self.header_scan_last_row = (
            settings.HEADER_SCAN_LAST_ROW if header_scan_last_row is None else header_scan_last_row
        )
        self.version = version or settings.TEMPLATE_VERSION

    def validate_input(self, input_data: TemplateSource) -> bool:
        return isinstance(input_data, TemplateSource) and bool(input_data.base_name)

    async def execute(self, input_data: TemplateSource) -> TemplateModel:
        return self.extract(input_data)

    def extract(self, source: TemplateSource) -> TemplateModel:
        grid = source.grid
        if grid.is_empty():
            raise EmptySpreadsheet(
                file_name=source.original_file.file_name if source.original_file else None
            )

        header_row = self.detect_header_row(grid)
        data_start_row = header_row + 1 if header_row >= 0 else -1

        field_mapping = EmployeeFieldMapping()
        column_mappings = self._map_columns(grid, header_row, data_start_row, field_mapping)
        headers = {cm.column_index: cm.header_name for cm in column_mappings}

        sheet_structure: List[CellDefinition] = []
        formula_definitions: List[FormulaDefinition] = []
        metadata = TemplateMetadata(
            total_rows=grid.bounds.row_count,
            total_columns=grid.bounds.column_count,
        )
        formula_rows = set()

        for cell in grid.iter_cells():
            cell_type = self._classify_cell(cell, header_row)
            dependencies = extract_references(cell.formula) if cell.formula else []

            definition = CellDefinition(
                row=cell.row,
                col=cell.col,
                address=cell.address,
                value=serialize_value(cell.value),
                formula=cell.formula,
                formula_dependencies=dependencies,
                type=cell_type,
                is_locked=cell_type != CellType.DATA,
                data_type=self._infer_data_type(cell),
                column_header=headers.get(cell.col),
            )
            sheet_structure.append(definition)

            if cell.formula:
                formula_rows.add(cell.row)
                metadata.formula_cells.append(cell.address)
                formula_definitions.append(
                    FormulaDefinition(
                        cell_address=cell.address,
                        row=cell.row,
                        col=cell.col,
                        formula=cell.formula,
                        dependent_cells=dependencies,
                        result_type=self._infer_result_type(cell),
                    )
                )

            if definition.is_locked or definition.formula:
                metadata.protected_ranges.append(cell.address)
            elif definition.type == CellType.DATA:
                metadata.data_input_ranges.append(cell.address)

        metadata.formula_rows = sorted(formula_rows)

        template = TemplateModel(
            template_name=self.identity.template_name(source.base_name),
            description=source.description,
            version=self.version,
            sheet_name=grid.sheet_name,
            sheet_structure=sheet_structure,
            column_mappings=column_mappings,
            formula_definitions=formula_definitions,
            employee_field_mapping=field_mapping,
            header_row_index=header_row,
            data_start_row=data_start_row,
            metadata=metadata,
            original_file=source.original_file,
        )

        logger.info(
            "Extracted %s: %d cells, %d formulas, header row %d, employee id column %d",
            template.template_name,
            len(sheet_structure),
            len(formula_definitions),
            header_row,
            field_mapping.employee_id_column,
        )
        if header_row < 0:
            logger.warning("No header row detected in %s", template.template_name)

        return template

    def detect_header_row(self, grid: Grid) -> int:
        """Row with the most literal text cells; ties go to the lower row, -1 if none"""
        last_row = min(grid.bounds.max_row, self.header_scan_last_row)
        best_row = -1
        best_count = 0
        for row in range(0, last_row + 1):
            count = sum(1 for cell in grid.row_cells(row) if self._is_text_literal(cell))
            if count > best_count:
                best_row = row
                best_count = count
        return best_row

    def _map_columns(
        self,
        grid: Grid,
        header_row: int,
        data_start_row: int,
        field_mapping: EmployeeFieldMapping,
    ) -> List[ColumnMapping]:
        if header_row < 0:
            return []

        mappings = []
        for cell in grid.row_cells(header_row):
            if cell.value is None:
                continue
            header_name = str(cell.value).strip()
            if not header_name:
                continue

            mapped_field = classify_header(header_name)
            # first column wins for each field
            if mapped_field is not None and not field_mapping.claim(mapped_field, cell.col):
                mapped_field = None

            sample = grid.get(data_start_row, cell.col)
            mappings.append(
                ColumnMapping(
                    column_index=cell.col,
                    header_name=header_name,
                    mapped_field=mapped_field,
                    data_type=self._infer_data_type(sample) if sample else CellDataType.STRING,
                )
            )
        return mappings

    def _classify_cell(self, cell: GridCell, header_row: int) -> CellType:
        if cell.formula:
            return CellType.FORMULA
        if cell.row == header_row:
            return CellType.HEADER
        if isinstance(cell.value, str) and ":" in cell.value:
            return CellType.METADATA
        return CellType.DATA

    def _infer_data_type(self, cell: GridCell) -> CellDataType:
        if cell.formula:
            return CellDataType.FORMULA
        value = cell.value
        if cell.value_type == CellValueType.DATE or isinstance(value, (datetime, date, time)):
            return CellDataType.DATE
        if isinstance(value, (int, float)) and not isinstance(value, bool):
            if "%" in (cell.number_format or ""):
                return CellDataType.PERCENTAGE
            return CellDataType.NUMBER
        return CellDataType.STRING

    def _infer_result_type(self, cell: GridCell) -> ResultType:
        if "%" in (cell.number_format or ""):
            return ResultType.PERCENTAGE
        if isinstance(cell.value, str):
            return ResultType.STRING
        return ResultType.NUMBER

    def _is_text_literal(self, cell: Optional[GridCell]) -> bool:
        return (
            cell is not None
            and not cell.formula
            and isinstance(cell.value, str)
            and bool(cell.value.strip())
        )
