"""In-memory stores with the same contracts as the Postgres ones

Used by the test suite and for local runs without a database. Uniqueness
constraints are checked the way the database would check them.
"""

from typing import Optional

from core.interfaces import EmployeeDirectory, TemplateStore, UploadedRowStore
from core.models import BatchSummary, DataSummary, Employee, TemplateModel, UploadedRow
from core.enums import RowStatus
from core.exceptions import ConflictError


class InMemoryTemplateStore(TemplateStore):

    def __init__(self):
        self._templates: dict[int, TemplateModel] = {}
        self._next_id = 1

    async def create(self, template: TemplateModel) -> TemplateModel:
        if any(t.template_name == template.template_name for t in self._templates.values()):
            raise ConflictError(f"Duplicate record: template_name={template.template_name}")
        stored = template.model_copy(deep=True, update={"id": self._next_id})
        self._templates[stored.id] = stored
        self._next_id += 1
        return stored.model_copy(deep=True)

    async def find_by_id(self, template_id: int) -> Optional[TemplateModel]:
        template = self._templates.get(template_id)
        return template.model_copy(deep=True) if template else None

    async def find_by_name(self, template_name: str) -> Optional[TemplateModel]:
        for template in self._templates.values():
            if template.is_active and template.template_name == template_name:
                return template.model_copy(deep=True)
        return None

    async def find_active(self, template_name: str = None) -> Optional[TemplateModel]:
        if template_name:
            template = await self.find_by_name(template_name)
            if template is not None:
                return template
        active = await self.list_active()
        return active[0] if active else None

    async def list_active(self) -> list[TemplateModel]:
        active = [t for t in self._templates.values() if t.is_active]
        active.sort(key=lambda t: (t.created_at, t.id), reverse=True)
        return [t.model_copy(deep=True) for t in active]

    async def soft_delete(self, template_id: int) -> bool:
        template = self._templates.get(template_id)
        if template is None or not template.is_active:
            return False
        template.is_active = False
        return True


class InMemoryUploadedRowStore(UploadedRowStore):

    def __init__(self):
        self._rows: list[UploadedRow] = []
        self._next_id = 1

    async def create(self, row: UploadedRow) -> UploadedRow:
        key = (row.upload_batch_id, row.row_number)
        if any((r.upload_batch_id, r.row_number) == key for r in self._rows):
            raise ConflictError(
                f"Duplicate record: upload_batch_id={row.upload_batch_id}, row_number={row.row_number}"
            )
        stored = row.model_copy(deep=True, update={"id": self._next_id})
        self._rows.append(stored)
        self._next_id += 1
        return stored.model_copy(deep=True)

    async def find_by_batch(self, upload_batch_id: str) -> list[UploadedRow]:
        rows = [r for r in self._rows if r.upload_batch_id == upload_batch_id]
        rows.sort(key=lambda r: r.row_number)
        return [r.model_copy(deep=True) for r in rows]

    async def find_by_employee(self, employee_id: str) -> list[UploadedRow]:
        rows = [r for r in self._rows if r.employee_id == employee_id]
        rows.sort(key=lambda r: (r.created_at, r.id), reverse=True)
        return [r.model_copy(deep=True) for r in rows]

    async def batch_history(self, limit: int = 50) -> list[BatchSummary]:
        batches: dict[str, BatchSummary] = {}
        first_id: dict[str, int] = {}
        for row in self._rows:
            summary = batches.get(row.upload_batch_id)
            if summary is None:
                summary = BatchSummary(
                    upload_batch_id=row.upload_batch_id,
                    template_id=row.template_id,
                    uploaded_by=row.uploaded_by,
                    uploaded_at=row.created_at,
                )
                batches[row.upload_batch_id] = summary
                first_id[row.upload_batch_id] = row.id
            summary.total_records += 1
            if row.status == RowStatus.VALIDATED:
                summary.success_count += 1
            elif row.status == RowStatus.ERROR:
                summary.error_count += 1
            if row.created_at < summary.uploaded_at:
                summary.uploaded_at = row.created_at

        ordered = sorted(
            batches.values(),
            key=lambda b: (b.uploaded_at, first_id[b.upload_batch_id]),
            reverse=True,
        )
        return ordered[:limit]

    async def aggregate_summary(self) -> DataSummary:
        return DataSummary(
            total_records=len(self._rows),
            total_batches=len({r.upload_batch_id for r in self._rows}),
            validated_count=sum(1 for r in self._rows if r.status == RowStatus.VALIDATED),
            pending_count=sum(1 for r in self._rows if r.status == RowStatus.PENDING),
            error_count=sum(1 for r in self._rows if r.status == RowStatus.ERROR),
        )


class InMemoryEmployeeDirectory(EmployeeDirectory):

    def __init__(self, employees: list[Employee] = None):
        self._employees: dict[str, Employee] = {}
        self._next_id = 1
        for employee in employees or []:
            self._insert(employee)

    async def create(self, employee: Employee) -> Employee:
        return self._insert(employee).model_copy()

    async def find_active_by_id(self, employee_id: str) -> Optional[Employee]:
        employee = self._employees.get(employee_id)
        if employee is None or not employee.is_active:
            return None
        return employee.model_copy()

    async def find_by_ids(self, employee_ids: list[str]) -> dict[str, Employee]:
        return {
            eid: self._employees[eid].model_copy()
            for eid in employee_ids
            if eid in self._employees
        }

    def _insert(self, employee: Employee) -> Employee:
        email = employee.email.lower()
        if employee.employee_id in self._employees:
            raise ConflictError(f"Duplicate record: employee_id={employee.employee_id}")
        if any(e.email == email for e in self._employees.values()):
            raise ConflictError(f"Duplicate record: email={email}")
        stored = employee.model_copy(update={"id": self._next_id, "email": email})
        self._employees[stored.employee_id] = stored
        self._next_id += 1
        return stored
