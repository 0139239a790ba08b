"""Core abstractions for Plantilla"""

from .models import *
from .enums import *
from .exceptions import *
from .interfaces import *

__all__ = [
    # Models
    "GridCell",
    "GridBounds",
    "Grid",
    "OriginalFile",
    "ReceptionResult",
    "CellDefinition",
    "ColumnMapping",
    "FormulaDefinition",
    "EmployeeFieldMapping",
    "TemplateMetadata",
    "TemplateModel",
    "TemplateSource",
    "TemplateSummary",
    "TemplateCreated",
    "Employee",
    "LiteralValue",
    "ComputedValue",
    "CellEntry",
    "UploadedRow",
    "ValidationRequest",
    "ValidationReport",
    "RowProcessingRequest",
    "RowResult",
    "RowError",
    "UploadResult",
    "BatchSummary",
    "DataSummary",
    "BatchRecord",
    "BatchCalculations",
    "ExportRequest",
    "DownloadPayload",
    # Enums
    "CellType",
    "CellDataType",
    "CellValueType",
    "MappedField",
    "ResultType",
    "RowStatus",
    "RecalculationPolicy",
    # Exceptions
    "PlantillaError",
    "StageError",
    "MalformedSpreadsheet",
    "EmptySpreadsheet",
    "InvalidAddress",
    "TemplateNotFound",
    "BatchNotFound",
    "EmployeeNotFound",
    "MissingEmployeeIdColumn",
    "MissingEmployeeId",
    "ValidationFailed",
    "FormulaEvaluationError",
    "DatabaseError",
    "ConflictError",
    # Interfaces
    "Stage",
    "SpreadsheetCodec",
    "EmployeeDirectory",
    "TemplateStore",
    "UploadedRowStore",
]
