"""Core enumerations for Plantilla"""

from enum import Enum


class CellType(str, Enum):
    """Structural role of a template cell"""
    HEADER = "header"
    FORMULA = "formula"
    DATA = "data"
    METADATA = "metadata"


class CellDataType(str, Enum):
    """Data type inferred for a cell or column"""
    STRING = "string"
    NUMBER = "number"
    DATE = "date"
    FORMULA = "formula"
    PERCENTAGE = "percentage"


class CellValueType(str, Enum):
    """Type of the value reported by the spreadsheet codec"""
    STRING = "string"
    NUMBER = "number"
    BOOLEAN = "boolean"
    DATE = "date"
    ERROR = "error"
    EMPTY = "empty"


class MappedField(str, Enum):
    """Employee fields a template column can map to"""
    EMPLOYEE_ID = "employeeId"
    NAME = "name"
    EMAIL = "email"
    DESIGNATION = "designation"
    DEPARTMENT = "department"
    DIVISION = "division"
    GEOGRAPHY = "geography"


class ResultType(str, Enum):
    """Result type of a formula cell"""
    NUMBER = "number"
    PERCENTAGE = "percentage"
    STRING = "string"


class RowStatus(str, Enum):
    """Lifecycle of an uploaded row"""
    PENDING = "pending"
    VALIDATED = "validated"
    ERROR = "error"
    PROCESSED = "processed"


class RecalculationPolicy(str, Enum):
    """When the row processor re-evaluates template formulas"""
    BACKFILL = "backfill"  # only columns the codec left without a computed value
    ALWAYS = "always"
    NEVER = "never"
