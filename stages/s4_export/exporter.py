"""Stage 4: Export - batch results and template workbooks"""

import io
import logging
from datetime import date
from typing import Any, Callable, List

import pandas as pd

from core.interfaces import Stage, SpreadsheetCodec
from core.models import (
    ComputedValue,
    DownloadPayload,
    ExportRequest,
    Grid,
    GridBounds,
    GridCell,
    LiteralValue,
    TemplateModel,
    UploadedRow,
)
from core.exceptions import BatchNotFound
from stages.s0_reception.parsers import ExcelCodec
from utils.cells import column_index_to_letter
from config import settings

logger = logging.getLogger(__name__)

EXPORT_SHEET_NAME = "Employee Data"
TEMPLATE_SHEET_NAME = "PMS Data"


class Exporter(Stage[ExportRequest, DownloadPayload]):
    """Stage 4: Export - write uploaded batches and templates back to xlsx"""

    @property
    def name(self) -> str:
        return "Export"

    @property
    def stage_number(self) -> int:
        return 4

    def __init__(
        self,
        codec: SpreadsheetCodec = None,
        today: Callable[[], date] = None,
        max_column_width: int = None,
    ):
        self.codec = codec or ExcelCodec()
        self.today = today or date.today
        self.max_column_width = max_column_width or settings.EXPORT_MAX_COLUMN_WIDTH

    def validate_input(self, input_data: ExportRequest) -> bool:
        return isinstance(input_data, ExportRequest)

    async def execute(self, input_data: ExportRequest) -> DownloadPayload:
        return self.export_batch(input_data)

    def export_batch(self, request: ExportRequest) -> DownloadPayload:
        """One row per uploaded record, columns in template order"""
        if not request.rows:
            raise BatchNotFound(request.upload_batch_id)

        template = request.template
        headers = [cm.header_name for cm in template.column_mappings]
        records = [
            [self._export_value(row, header) for header in headers]
            for row in sorted(request.rows, key=lambda r: r.row_number)
        ]
        df = pd.DataFrame(records, columns=headers)

        buffer = io.BytesIO()
        with pd.ExcelWriter(buffer, engine="openpyxl") as writer:
            df.to_excel(writer, sheet_name=EXPORT_SHEET_NAME, index=False)
            sheet = writer.sheets[EXPORT_SHEET_NAME]
            for idx, width in enumerate(self._column_widths(headers, records)):
                sheet.column_dimensions[column_index_to_letter(idx)].width = width

        file_name = (
            f"{template.template_name}_{request.upload_batch_id[:8]}_"
            f"{self.today().isoformat()}.xlsx"
        )
        logger.info("Exported %d rows of batch %s", len(records), request.upload_batch_id)
        return DownloadPayload(content=buffer.getvalue(), file_name=file_name)

    def export_template(self, template: TemplateModel) -> DownloadPayload:
        """Original upload when kept, else a workbook rebuilt from the cell structure"""
        if template.original_file is not None:
            return DownloadPayload(
                content=template.original_file.content,
                file_name=template.original_file.file_name or f"{template.template_name}.xlsx",
            )

        grid = self.rebuild_grid(template)
        return DownloadPayload(
            content=self.codec.encode(grid),
            file_name=f"{template.template_name}.xlsx",
        )

    def rebuild_grid(self, template: TemplateModel) -> Grid:
        cells = {}
        max_row = max_col = 0
        for definition in template.sheet_structure:
            max_row = max(max_row, definition.row)
            max_col = max(max_col, definition.col)
            cells[definition.address] = GridCell(
                address=definition.address,
                row=definition.row,
                col=definition.col,
                value=definition.value,
                formula=definition.formula,
            )
        return Grid(
            sheet_name=TEMPLATE_SHEET_NAME,
            bounds=GridBounds(max_row=max_row, max_col=max_col),
            cells=cells,
        )

    def _export_value(self, row: UploadedRow, header: str) -> Any:
        entry = row.data.get(header)
        if isinstance(entry, ComputedValue):
            return entry.calculated_value
        if isinstance(entry, LiteralValue):
            return entry.value
        return ""

    def _column_widths(self, headers: List[str], records: List[List[Any]]) -> List[int]:
        widths = [len(h) for h in headers]
        for record in records:
            for idx, value in enumerate(record):
                length = len("" if value is None else str(value))
                if length > widths[idx]:
                    widths[idx] = length
        return [min(w + 2, self.max_column_width) for w in widths]
