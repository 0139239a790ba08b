"""Uploaded row persistence"""

from core.interfaces import UploadedRowStore
from core.models import BatchSummary, DataSummary, UploadedRow
from .connection import DatabaseManager


class PostgresUploadedRowStore(UploadedRowStore):
    """Uploaded rows in the `uploaded_rows` table"""

    def __init__(self, db_manager: DatabaseManager):
        self.db = db_manager

    async def create(self, row: UploadedRow) -> UploadedRow:
        query = """
            INSERT INTO uploaded_rows (template_id, employee_id, uploaded_by, upload_batch_id,
                                       row_number, raw_data, data, calculated_data, status,
                                       validation_errors, created_at)
            VALUES ($1, $2, $3, $4, $5, $6, $7, $8, $9, $10, $11)
            RETURNING id, created_at
        """
        data = row.model_dump(mode="json")

        result = await self.db.execute_one(
            query,
            row.template_id,
            row.employee_id,
            row.uploaded_by,
            row.upload_batch_id,
            row.row_number,
            data["raw_data"],
            data["data"],
            data["calculated_data"],
            row.status.value,
            data["validation_errors"],
            row.created_at,
        )

        stored = row.model_copy()
        if result:
            stored.id = result["id"]
            stored.created_at = result["created_at"]
        return stored

    async def find_by_batch(self, upload_batch_id: str) -> list[UploadedRow]:
        query = "SELECT * FROM uploaded_rows WHERE upload_batch_id = $1 ORDER BY row_number"
        return [self._row_to_uploaded(r) for r in await self.db.execute(query, upload_batch_id)]

    async def find_by_employee(self, employee_id: str) -> list[UploadedRow]:
        query = """
            SELECT * FROM uploaded_rows WHERE employee_id = $1
            ORDER BY created_at DESC, id DESC
        """
        return [self._row_to_uploaded(r) for r in await self.db.execute(query, employee_id)]

    async def batch_history(self, limit: int = 50) -> list[BatchSummary]:
        # a batch always belongs to exactly one template and uploader
        query = """
            SELECT upload_batch_id,
                   MIN(template_id) AS template_id,
                   MIN(uploaded_by) AS uploaded_by,
                   MIN(created_at) AS uploaded_at,
                   COUNT(*) AS total_records,
                   COUNT(*) FILTER (WHERE status = 'validated') AS success_count,
                   COUNT(*) FILTER (WHERE status = 'error') AS error_count
            FROM uploaded_rows
            GROUP BY upload_batch_id
            ORDER BY uploaded_at DESC
            LIMIT $1
        """
        return [BatchSummary(**dict(r)) for r in await self.db.execute(query, limit)]

    async def aggregate_summary(self) -> DataSummary:
        query = """
            SELECT COUNT(*) AS total_records,
                   COUNT(DISTINCT upload_batch_id) AS total_batches,
                   COUNT(*) FILTER (WHERE status = 'validated') AS validated_count,
                   COUNT(*) FILTER (WHERE status = 'pending') AS pending_count,
                   COUNT(*) FILTER (WHERE status = 'error') AS error_count
            FROM uploaded_rows
        """
        result = await self.db.execute_one(query)
        return DataSummary(**dict(result)) if result else DataSummary()

    def _row_to_uploaded(self, row) -> UploadedRow:
        """Convert database row to UploadedRow"""
        return UploadedRow(
            id=row["id"],
            template_id=row["template_id"],
            employee_id=row["employee_id"],
            uploaded_by=row["uploaded_by"],
            upload_batch_id=row["upload_batch_id"],
            row_number=row["row_number"],
            raw_data=row["raw_data"] or {},
            data=row["data"] or {},
            calculated_data=row["calculated_data"] or {},
            status=row["status"],
            validation_errors=row["validation_errors"] or [],
            created_at=row["created_at"],
        )
