"""Template and upload orchestrator"""

import logging
from pathlib import Path
from typing import Optional, Union

from core.models import *
from core.interfaces import EmployeeDirectory, SpreadsheetCodec, TemplateStore, UploadedRowStore
from core.enums import RecalculationPolicy
from core.exceptions import (
    BatchNotFound,
    PlantillaError,
    StageError,
    TemplateNotFound,
    ValidationFailed,
)
from stages import (
    Receiver, StructureExtractor, UploadValidator, RowProcessor, Exporter, ExcelCodec
)
from ui.progress import ProgressTracker, LoggingProgress
from utils.identity import IdentityFactory
from utils.uploads import transient_upload
from config import settings

logger = logging.getLogger(__name__)

PathLike = Union[str, Path]


class Orchestrator:
    """Request-scoped use cases over templates, uploads and employees"""

    def __init__(
        self,
        templates: TemplateStore,
        uploads: UploadedRowStore,
        employees: EmployeeDirectory,
        progress: Optional[ProgressTracker] = None,
        codec: Optional[SpreadsheetCodec] = None,
        identity: Optional[IdentityFactory] = None,
        policy: Optional[RecalculationPolicy] = None,
    ):
        self.templates = templates
        self.uploads = uploads
        self.employees = employees
        self.progress = progress or LoggingProgress()
        self.identity = identity or IdentityFactory()

        codec = codec or ExcelCodec()
        self.stages = {
            0: Receiver(codec),
            1: StructureExtractor(self.identity),
            2: UploadValidator(),
            3: RowProcessor(employees, uploads, policy=policy),
            4: Exporter(codec),
        }

    # ─────────────────────────────────────────────────────────
    # Templates
    # ─────────────────────────────────────────────────────────

    async def create_template(
        self,
        file_path: PathLike,
        template_name: Optional[str] = None,
        description: Optional[str] = None,
        file_name: Optional[str] = None,
    ) -> TemplateCreated:
        """Extract and store a template; the upload is deleted afterwards"""
        with transient_upload(file_path) as path:
            reception = await self._execute_stage(0, str(path), file_name=file_name)

            source = TemplateSource(
                grid=reception.grid,
                base_name=template_name or settings.DEFAULT_TEMPLATE_NAME,
                description=description or settings.DEFAULT_TEMPLATE_DESCRIPTION,
                original_file=reception.to_original_file(),
            )
            template = await self._execute_stage(1, source)
            stored = await self.templates.create(template)

        logger.info("Template %s stored with id %s", stored.template_name, stored.id)
        return TemplateCreated(
            template_id=stored.id,
            template_name=stored.template_name,
            total_cells=len(stored.sheet_structure),
            data_input_cells=len(stored.metadata.data_input_ranges),
            formula_cells=len(stored.formula_definitions),
            header_row_index=stored.header_row_index,
            employee_id_column=stored.employee_field_mapping.employee_id_column,
        )

    async def get_template(self, template_name: Optional[str] = None) -> TemplateModel:
        """Named template, else the most recent active one"""
        name = template_name or settings.FALLBACK_TEMPLATE_NAME
        template = await self.templates.find_active(name)
        if template is None:
            raise TemplateNotFound(name)
        return template

    async def get_template_by_name(self, template_name: str) -> TemplateModel:
        template = await self.templates.find_by_name(template_name)
        if template is None:
            raise TemplateNotFound(template_name)
        return template

    async def get_template_by_id(self, template_id: int) -> TemplateModel:
        template = await self.templates.find_by_id(template_id)
        if template is None:
            raise TemplateNotFound(template_id)
        return template

    async def list_templates(self) -> list[TemplateSummary]:
        return [TemplateSummary.from_template(t) for t in await self.templates.list_active()]

    async def get_template_preview(self, template_id: int) -> TemplateModel:
        return await self.get_template_by_id(template_id)

    async def delete_template(self, template_id: int) -> None:
        if not await self.templates.soft_delete(template_id):
            raise TemplateNotFound(template_id)
        logger.info("Template %s deactivated", template_id)

    async def download_template(self, template_id: int) -> DownloadPayload:
        template = await self.get_template_by_id(template_id)
        return self.stages[4].export_template(template)

    # ─────────────────────────────────────────────────────────
    # Uploads
    # ─────────────────────────────────────────────────────────

    async def validate_upload(
        self,
        file_path: PathLike,
        template_id: int,
        file_name: Optional[str] = None,
    ) -> ValidationReport:
        """Check an upload without storing anything; the upload is deleted afterwards"""
        with transient_upload(file_path) as path:
            template = await self.get_template_by_id(template_id)
            reception = await self._execute_stage(0, str(path), file_name=file_name)
            return await self._execute_stage(
                2, ValidationRequest(template=template, grid=reception.grid)
            )

    async def upload_filled_data(
        self,
        file_path: PathLike,
        template_id: int,
        uploaded_by: str,
        file_name: Optional[str] = None,
    ) -> UploadResult:
        """Validate, then store one UploadedRow per data row; the upload is always deleted"""
        with transient_upload(file_path) as path:
            template = await self.get_template_by_id(template_id)
            reception = await self._execute_stage(0, str(path), file_name=file_name)

            report = await self._execute_stage(
                2, ValidationRequest(template=template, grid=reception.grid)
            )
            if not report.is_valid:
                logger.error("Upload rejected for %s: %s", template.template_name, report.errors)
                raise ValidationFailed(report.errors, report.warnings)

            result = await self._execute_stage(
                3,
                RowProcessingRequest(
                    template=template,
                    grid=reception.grid,
                    uploaded_by=uploaded_by,
                    upload_batch_id=self.identity.batch_id(),
                ),
            )
            result.validation_warnings = report.warnings
            return result

    # ─────────────────────────────────────────────────────────
    # Queries
    # ─────────────────────────────────────────────────────────

    async def get_upload_history(self, limit: Optional[int] = None) -> list[BatchSummary]:
        history = await self.uploads.batch_history(limit or settings.UPLOAD_HISTORY_LIMIT)
        names = {}
        for batch in history:
            if batch.template_id is None:
                continue
            if batch.template_id not in names:
                template = await self.templates.find_by_id(batch.template_id)
                names[batch.template_id] = template.template_name if template else None
            batch.template_name = names[batch.template_id]
        return history

    async def get_data_by_employee(self, employee_id: str) -> list[UploadedRow]:
        return await self.uploads.find_by_employee(employee_id)

    async def get_data_by_batch(self, upload_batch_id: str) -> list[UploadedRow]:
        return await self.uploads.find_by_batch(upload_batch_id)

    async def get_data_summary(self) -> DataSummary:
        return await self.uploads.aggregate_summary()

    async def get_uploaded_data_with_calculations(self, upload_batch_id: str) -> BatchCalculations:
        rows = await self.uploads.find_by_batch(upload_batch_id)
        if not rows:
            return BatchCalculations()

        employees = await self.employees.find_by_ids(sorted({r.employee_id for r in rows}))
        template = None
        if rows[0].template_id is not None:
            template = await self.templates.find_by_id(rows[0].template_id)

        records = [
            BatchRecord(
                row_number=row.row_number,
                employee=employees.get(row.employee_id),
                data=row.data,
                calculated_data=row.calculated_data,
                status=row.status,
                created_at=row.created_at,
            )
            for row in rows
        ]
        return BatchCalculations(
            records=records,
            template=template.to_dict() if template else None,
        )

    async def export_batch(self, upload_batch_id: str) -> DownloadPayload:
        rows = await self.uploads.find_by_batch(upload_batch_id)
        if not rows:
            raise BatchNotFound(upload_batch_id)
        template = await self.get_template_by_id(rows[0].template_id)
        return await self._execute_stage(
            4,
            ExportRequest(template=template, rows=rows, upload_batch_id=upload_batch_id),
        )

    # ─────────────────────────────────────────────────────────
    # Employees
    # ─────────────────────────────────────────────────────────

    async def add_employee(self, employee: Employee) -> Employee:
        return await self.employees.create(employee)

    async def _execute_stage(self, stage_num: int, input_data, **kwargs):
        """Execute a single stage with progress tracking"""
        stage = self.stages[stage_num]
        self.progress.start_stage(stage_num, stage.name)

        if not stage.validate_input(input_data):
            self.progress.fail(stage_num, "Invalid input")
            raise StageError(stage_num, "Invalid input")

        try:
            result = await stage.execute(input_data, **kwargs)
        except PlantillaError as e:
            self.progress.fail(stage_num, str(e))
            raise

        self.progress.complete_stage(stage_num)
        return result
