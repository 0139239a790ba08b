"""Template persistence"""

from typing import Optional

from core.interfaces import TemplateStore
from core.models import OriginalFile, TemplateModel
from .connection import DatabaseManager


class PostgresTemplateStore(TemplateStore):
    """Templates in the `templates` table; structure columns are JSONB"""

    def __init__(self, db_manager: DatabaseManager):
        self.db = db_manager

    async def create(self, template: TemplateModel) -> TemplateModel:
        query = """
            INSERT INTO templates (template_name, description, version, sheet_name,
                                   sheet_structure, column_mappings, formula_definitions,
                                   employee_field_mapping, header_row_index, data_start_row,
                                   metadata, file_name, file_buffer, is_active, created_at)
            VALUES ($1, $2, $3, $4, $5, $6, $7, $8, $9, $10, $11, $12, $13, $14, $15)
            RETURNING id, created_at
        """
        data = template.model_dump(mode="json", exclude={"original_file"})
        original = template.original_file

        result = await self.db.execute_one(
            query,
            template.template_name,
            template.description,
            template.version,
            template.sheet_name,
            data["sheet_structure"],
            data["column_mappings"],
            data["formula_definitions"],
            data["employee_field_mapping"],
            template.header_row_index,
            template.data_start_row,
            data["metadata"],
            original.file_name if original else None,
            original.content if original else None,
            template.is_active,
            template.created_at,
        )

        stored = template.model_copy()
        if result:
            stored.id = result["id"]
            stored.created_at = result["created_at"]
        return stored

    async def find_by_id(self, template_id: int) -> Optional[TemplateModel]:
        result = await self.db.execute_one("SELECT * FROM templates WHERE id = $1", template_id)
        return self._row_to_template(result) if result else None

    async def find_by_name(self, template_name: str) -> Optional[TemplateModel]:
        query = "SELECT * FROM templates WHERE template_name = $1 AND is_active = TRUE"
        result = await self.db.execute_one(query, template_name)
        return self._row_to_template(result) if result else None

    async def find_active(self, template_name: str = None) -> Optional[TemplateModel]:
        if template_name:
            template = await self.find_by_name(template_name)
            if template is not None:
                return template

        query = """
            SELECT * FROM templates WHERE is_active = TRUE
            ORDER BY created_at DESC, id DESC LIMIT 1
        """
        result = await self.db.execute_one(query)
        return self._row_to_template(result) if result else None

    async def list_active(self) -> list[TemplateModel]:
        query = """
            SELECT * FROM templates WHERE is_active = TRUE
            ORDER BY created_at DESC, id DESC
        """
        return [self._row_to_template(row) for row in await self.db.execute(query)]

    async def soft_delete(self, template_id: int) -> bool:
        query = "UPDATE templates SET is_active = FALSE WHERE id = $1 AND is_active = TRUE"
        status = await self.db.execute_write(query, template_id)
        return status != "UPDATE 0"

    def _row_to_template(self, row) -> TemplateModel:
        """Convert database row to TemplateModel"""
        original = None
        if row["file_buffer"] is not None:
            original = OriginalFile(
                file_name=row["file_name"] or f"{row['template_name']}.xlsx",
                content=bytes(row["file_buffer"]),
            )

        return TemplateModel(
            id=row["id"],
            template_name=row["template_name"],
            description=row["description"] or "",
            version=row["version"] or "1.0.0",
            sheet_name=row["sheet_name"] or "Sheet1",
            sheet_structure=row["sheet_structure"] or [],
            column_mappings=row["column_mappings"] or [],
            formula_definitions=row["formula_definitions"] or [],
            employee_field_mapping=row["employee_field_mapping"] or {},
            header_row_index=row["header_row_index"],
            data_start_row=row["data_start_row"],
            metadata=row["metadata"] or {},
            original_file=original,
            is_active=row["is_active"],
            created_at=row["created_at"],
        )
