"""Schema management operations"""

import logging

from core.exceptions import DatabaseError
from .connection import DatabaseManager

logger = logging.getLogger(__name__)

TEMPLATES_DDL = """
    CREATE TABLE IF NOT EXISTS templates (
        id SERIAL PRIMARY KEY,
        template_name VARCHAR(255) UNIQUE NOT NULL,
        description TEXT DEFAULT '',
        version VARCHAR(20) DEFAULT '1.0.0',
        sheet_name VARCHAR(255),
        sheet_structure JSONB NOT NULL DEFAULT '[]',
        column_mappings JSONB NOT NULL DEFAULT '[]',
        formula_definitions JSONB NOT NULL DEFAULT '[]',
        employee_field_mapping JSONB NOT NULL DEFAULT '{}',
        header_row_index INTEGER DEFAULT -1,
        data_start_row INTEGER DEFAULT -1,
        metadata JSONB NOT NULL DEFAULT '{}',
        file_name VARCHAR(255),
        file_buffer BYTEA,
        is_active BOOLEAN DEFAULT TRUE,
        created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
    );
    CREATE INDEX IF NOT EXISTS idx_templates_active ON templates(is_active, created_at);
"""

EMPLOYEES_DDL = """
    CREATE TABLE IF NOT EXISTS employees (
        id SERIAL PRIMARY KEY,
        employee_id VARCHAR(64) UNIQUE NOT NULL,
        name VARCHAR(255) NOT NULL,
        email VARCHAR(255) UNIQUE NOT NULL,
        designation VARCHAR(255) DEFAULT '',
        department VARCHAR(255) DEFAULT '',
        division VARCHAR(255) DEFAULT '',
        geography VARCHAR(255) DEFAULT '',
        is_active BOOLEAN DEFAULT TRUE,
        created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
    );
"""

UPLOADED_ROWS_DDL = """
    CREATE TABLE IF NOT EXISTS uploaded_rows (
        id SERIAL PRIMARY KEY,
        template_id INTEGER REFERENCES templates(id),
        employee_id VARCHAR(64) NOT NULL,
        uploaded_by VARCHAR(255) NOT NULL,
        upload_batch_id VARCHAR(64) NOT NULL,
        row_number INTEGER NOT NULL,
        raw_data JSONB NOT NULL DEFAULT '{}',
        data JSONB NOT NULL DEFAULT '{}',
        calculated_data JSONB NOT NULL DEFAULT '{}',
        status VARCHAR(20) DEFAULT 'pending',
        validation_errors JSONB NOT NULL DEFAULT '[]',
        created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
        UNIQUE (upload_batch_id, row_number)
    );
    CREATE INDEX IF NOT EXISTS idx_uploaded_rows_batch ON uploaded_rows(upload_batch_id);
    CREATE INDEX IF NOT EXISTS idx_uploaded_rows_employee ON uploaded_rows(employee_id);
"""

# creation order respects foreign keys
TABLES = {
    "templates": TEMPLATES_DDL,
    "employees": EMPLOYEES_DDL,
    "uploaded_rows": UPLOADED_ROWS_DDL,
}


class SchemaManager:
    """PostgreSQL schema operations"""

    def __init__(self, db_manager: DatabaseManager):
        self.db = db_manager

    async def create_all(self) -> None:
        """Create every table and index that does not exist yet"""
        for table_name, ddl in TABLES.items():
            try:
                await self.db.execute_write(ddl)
            except DatabaseError as e:
                raise DatabaseError(f"Failed to create table {table_name}: {e}") from e
            logger.info("Table %s ready", table_name)

    async def drop_all(self) -> None:
        for table_name in reversed(list(TABLES)):
            await self.drop_table(table_name)

    async def drop_table(self, table_name: str, if_exists: bool = True) -> None:
        """Drop table"""
        sql = f"DROP TABLE {'IF EXISTS' if if_exists else ''} {table_name} CASCADE;"

        try:
            await self.db.execute_write(sql)
        except DatabaseError as e:
            raise DatabaseError(f"Failed to drop table {table_name}: {e}") from e
