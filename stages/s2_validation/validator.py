"""Stage 2: Upload Validation - check an uploaded grid against its template"""

import logging

from core.interfaces import Stage
from core.models import ValidationReport, ValidationRequest

logger = logging.getLogger(__name__)


class UploadValidator(Stage[ValidationRequest, ValidationReport]):
    """Hard errors block processing; warnings are only reported."""

    @property
    def name(self) -> str:
        return "Upload Validation"

    @property
    def stage_number(self) -> int:
        return 2

    def validate_input(self, input_data: ValidationRequest) -> bool:
        return isinstance(input_data, ValidationRequest)

    async def execute(self, input_data: ValidationRequest) -> ValidationReport:
        return self.validate(input_data)

    def validate(self, request: ValidationRequest) -> ValidationReport:
        template = request.template
        grid = request.grid
        errors = []
        warnings = []

        if template.employee_field_mapping.employee_id_column == -1:
            errors.append("Template does not have an Employee ID column mapping")
        if template.header_row_index < 0:
            errors.append("Template does not have a header row")

        column_count = grid.bounds.column_count
        expected_columns = template.metadata.total_columns
        if column_count < expected_columns:
            warnings.append(
                f"Uploaded file has fewer columns than template ({column_count} vs {expected_columns})"
            )

        if template.header_row_index >= 0:
            actual = {
                str(cell.value).strip().lower()
                for cell in grid.row_cells(template.header_row_index)
                if cell.value is not None
            }
            for mapping in template.column_mappings:
                if mapping.header_name.lower() not in actual:
                    warnings.append(f'Expected header "{mapping.header_name}" not found in uploaded file')

        data_start_row = template.data_start_row if template.data_start_row >= 0 else 1
        report = ValidationReport(
            is_valid=not errors,
            errors=errors,
            warnings=warnings,
            row_count=max(0, grid.bounds.max_row - data_start_row + 1),
            column_count=column_count,
        )

        logger.info(
            "Validated upload against %s: %d errors, %d warnings",
            template.template_name,
            len(errors),
            len(warnings),
        )
        return report
