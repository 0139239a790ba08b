"""Database layer"""

from .connection import DatabaseManager
from .schema import SchemaManager
from .templates import PostgresTemplateStore
from .uploads import PostgresUploadedRowStore
from .employees import PostgresEmployeeDirectory
from .memory import InMemoryTemplateStore, InMemoryUploadedRowStore, InMemoryEmployeeDirectory

__all__ = [
    "DatabaseManager",
    "SchemaManager",
    "PostgresTemplateStore",
    "PostgresUploadedRowStore",
    "PostgresEmployeeDirectory",
    "InMemoryTemplateStore",
    "InMemoryUploadedRowStore",
    "InMemoryEmployeeDirectory",
]
