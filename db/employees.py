"""Employee directory persistence"""

from typing import Optional

from core.interfaces import EmployeeDirectory
from core.models import Employee
from .connection import DatabaseManager


class PostgresEmployeeDirectory(EmployeeDirectory):
    """Employees in the `employees` table"""

    def __init__(self, db_manager: DatabaseManager):
        self.db = db_manager

    async def create(self, employee: Employee) -> Employee:
        query = """
            INSERT INTO employees (employee_id, name, email, designation, department,
                                   division, geography, is_active)
            VALUES ($1, $2, $3, $4, $5, $6, $7, $8)
            RETURNING id
        """
        result = await self.db.execute_one(
            query,
            employee.employee_id,
            employee.name,
            employee.email.lower(),
            employee.designation,
            employee.department,
            employee.division,
            employee.geography,
            employee.is_active,
        )

        stored = employee.model_copy(update={"email": employee.email.lower()})
        if result:
            stored.id = result["id"]
        return stored

    async def find_active_by_id(self, employee_id: str) -> Optional[Employee]:
        query = "SELECT * FROM employees WHERE employee_id = $1 AND is_active = TRUE"
        result = await self.db.execute_one(query, employee_id)
        return self._row_to_employee(result) if result else None

    async def find_by_ids(self, employee_ids: list[str]) -> dict[str, Employee]:
        if not employee_ids:
            return {}
        query = "SELECT * FROM employees WHERE employee_id = ANY($1::text[])"
        rows = await self.db.execute(query, list(employee_ids))
        return {row["employee_id"]: self._row_to_employee(row) for row in rows}

    def _row_to_employee(self, row) -> Employee:
        """Convert database row to Employee"""
        return Employee(
            id=row["id"],
            employee_id=row["employee_id"],
            name=row["name"],
            email=row["email"],
            designation=row["designation"] or "",
            department=row["department"] or "",
            division=row["division"] or "",
            geography=row["geography"] or "",
            is_active=row["is_active"],
        )
