"""Core data models for Plantilla"""

from pydantic import BaseModel, Field, PrivateAttr
from typing import Optional, Any, Literal, Union, Annotated, Iterator
from datetime import datetime
from .enums import (
    CellType, CellDataType, CellValueType, MappedField,
    ResultType, RowStatus
)


# ─────────────────────────────────────────────────────────────
# Codec: decoded spreadsheet grid
# ─────────────────────────────────────────────────────────────

class GridCell(BaseModel):
    """One non-empty decoded cell"""
    address: str
    row: int  # 0-based
    col: int  # 0-based
    value: Any = None  # literal, or cached result for formula cells
    formula: Optional[str] = None
    number_format: Optional[str] = None
    value_type: CellValueType = CellValueType.STRING


class GridBounds(BaseModel):
    """Used range of a sheet, 0-based and inclusive"""
    min_row: int = 0
    max_row: int = 0
    min_col: int = 0
    max_col: int = 0

    @property
    def row_count(self) -> int:
        return self.max_row + 1

    @property
    def column_count(self) -> int:
        return self.max_col + 1


class Grid(BaseModel):
    """Decoded first sheet of a workbook"""
    sheet_name: str = "Sheet1"
    bounds: GridBounds = Field(default_factory=GridBounds)
    cells: dict[str, GridCell] = {}  # address -> cell

    _by_coord: dict = PrivateAttr(default_factory=dict)
    _by_row: dict = PrivateAttr(default_factory=dict)  # row -> cells sorted by col

    def model_post_init(self, __context: Any) -> None:
        self._by_coord = {(cell.row, cell.col): cell for cell in self.cells.values()}
        self._by_row = {}
        for key in sorted(self._by_coord):
            self._by_row.setdefault(key[0], []).append(self._by_coord[key])

    def get(self, row: int, col: int) -> Optional[GridCell]:
        return self._by_coord.get((row, col))

    def row_cells(self, row: int) -> list[GridCell]:
        """Non-empty cells of a row, left to right"""
        return list(self._by_row.get(row, ()))

    def iter_cells(self) -> Iterator[GridCell]:
        """All cells in row/column order"""
        for key in sorted(self._by_coord):
            yield self._by_coord[key]

    def is_empty(self) -> bool:
        return not self.cells


class OriginalFile(BaseModel):
    """Uploaded template file kept for re-download"""
    file_name: str
    content: bytes


class ReceptionResult(BaseModel):
    """Output of Stage 0: decoded workbook plus its raw bytes"""
    file_name: str
    file_size_bytes: int
    grid: Grid
    content: bytes

    def to_original_file(self) -> OriginalFile:
        return OriginalFile(file_name=self.file_name, content=self.content)


# ─────────────────────────────────────────────────────────────
# Template structure
# ─────────────────────────────────────────────────────────────

class CellDefinition(BaseModel):
    """Classified template cell"""
    row: int
    col: int
    address: str
    value: Any = None
    formula: Optional[str] = None
    formula_dependencies: list[str] = []
    type: CellType = CellType.DATA
    is_locked: bool = False
    data_type: CellDataType = CellDataType.STRING
    column_header: Optional[str] = None


class ColumnMapping(BaseModel):
    """Semantic role of one header column"""
    column_index: int
    header_name: str
    mapped_field: Optional[MappedField] = None
    data_type: CellDataType = CellDataType.STRING

    @property
    def column_name(self) -> str:
        from utils.cells import column_index_to_letter
        return column_index_to_letter(self.column_index)

    @property
    def is_required(self) -> bool:
        return self.mapped_field == MappedField.EMPLOYEE_ID

    def to_dict(self) -> dict:
        data = self.model_dump(mode="json")
        data["column_name"] = self.column_name
        data["is_required"] = self.is_required
        return data


class FormulaDefinition(BaseModel):
    """Dependency record of one formula cell"""
    cell_address: str
    row: int
    col: int
    formula: str
    dependent_cells: list[str] = []
    result_type: ResultType = ResultType.NUMBER


_FIELD_ATTRS = {
    MappedField.EMPLOYEE_ID: "employee_id_column",
    MappedField.NAME: "name_column",
    MappedField.EMAIL: "email_column",
    MappedField.DESIGNATION: "designation_column",
    MappedField.DEPARTMENT: "department_column",
    MappedField.DIVISION: "division_column",
    MappedField.GEOGRAPHY: "geography_column",
}


class EmployeeFieldMapping(BaseModel):
    """Column index per employee field, -1 when unmapped"""
    employee_id_column: int = -1
    name_column: int = -1
    email_column: int = -1
    designation_column: int = -1
    department_column: int = -1
    division_column: int = -1
    geography_column: int = -1

    def column_for(self, field: MappedField) -> int:
        return getattr(self, _FIELD_ATTRS[field])

    def claim(self, field: MappedField, column_index: int) -> bool:
        """Record the column for a field unless one is already recorded"""
        if self.column_for(field) != -1:
            return False
        setattr(self, _FIELD_ATTRS[field], column_index)
        return True


class TemplateMetadata(BaseModel):
    """Range bookkeeping for a template"""
    total_rows: int = 0
    total_columns: int = 0
    formula_rows: list[int] = []
    data_input_ranges: list[str] = []
    protected_ranges: list[str] = []
    formula_cells: list[str] = []


class TemplateModel(BaseModel):
    """Structural artifact extracted from one reference spreadsheet"""
    id: Optional[int] = None
    template_name: str
    description: str = ""
    version: str = "1.0.0"
    sheet_name: str = "Sheet1"
    sheet_structure: list[CellDefinition] = []
    column_mappings: list[ColumnMapping] = []
    formula_definitions: list[FormulaDefinition] = []
    employee_field_mapping: EmployeeFieldMapping = Field(default_factory=EmployeeFieldMapping)
    header_row_index: int = -1
    data_start_row: int = -1
    metadata: TemplateMetadata = Field(default_factory=TemplateMetadata)
    original_file: Optional[OriginalFile] = None
    is_active: bool = True
    created_at: datetime = Field(default_factory=datetime.now)

    def to_dict(self) -> dict:
        """JSON-safe view without the stored file payload"""
        data = self.model_dump(mode="json", exclude={"original_file"})
        data["column_mappings"] = [cm.to_dict() for cm in self.column_mappings]
        data["file_name"] = self.original_file.file_name if self.original_file else None
        return data


class TemplateSource(BaseModel):
    """Input of the structure extraction stage"""
    grid: Grid
    base_name: str
    description: str = ""
    original_file: Optional[OriginalFile] = None


class TemplateSummary(BaseModel):
    """Template entry for selection lists"""
    id: Optional[int] = None
    template_name: str
    description: str = ""
    version: str = "1.0.0"
    created_at: datetime
    total_rows: int = 0
    total_columns: int = 0
    header_row_index: int = -1
    data_start_row: int = -1
    employee_id_column: int = -1
    formula_cells: list[str] = []

    @classmethod
    def from_template(cls, template: TemplateModel) -> "TemplateSummary":
        return cls(
            id=template.id,
            template_name=template.template_name,
            description=template.description,
            version=template.version,
            created_at=template.created_at,
            total_rows=template.metadata.total_rows,
            total_columns=template.metadata.total_columns,
            header_row_index=template.header_row_index,
            data_start_row=template.data_start_row,
            employee_id_column=template.employee_field_mapping.employee_id_column,
            formula_cells=template.metadata.formula_cells,
        )


class TemplateCreated(BaseModel):
    """Result of a template upload"""
    template_id: Optional[int] = None
    template_name: str
    total_cells: int
    data_input_cells: int
    formula_cells: int
    header_row_index: int
    employee_id_column: int


# ─────────────────────────────────────────────────────────────
# Employees
# ─────────────────────────────────────────────────────────────

class Employee(BaseModel):
    """Directory entry used to resolve uploaded rows"""
    id: Optional[int] = None
    employee_id: str
    name: str
    email: str
    designation: str = ""
    department: str = ""
    division: str = ""
    geography: str = ""
    is_active: bool = True


# ─────────────────────────────────────────────────────────────
# Uploads
# ─────────────────────────────────────────────────────────────

class LiteralValue(BaseModel):
    """Plain cell value as found in the upload"""
    kind: Literal["literal"] = "literal"
    value: Any = None


class ComputedValue(BaseModel):
    """Formula-bearing cell with its computed result"""
    kind: Literal["computed"] = "computed"
    formula: str
    value: Any = None
    calculated_value: Any = None


CellEntry = Annotated[Union[LiteralValue, ComputedValue], Field(discriminator="kind")]


class UploadedRow(BaseModel):
    """One processed row of employee data"""
    id: Optional[int] = None
    template_id: Optional[int] = None
    employee_id: str
    uploaded_by: str
    upload_batch_id: str
    row_number: int  # 1-based, as in the source sheet
    raw_data: dict[str, Any] = {}
    data: dict[str, CellEntry] = {}
    calculated_data: dict[str, Any] = {}
    status: RowStatus = RowStatus.PENDING
    validation_errors: list[str] = []
    created_at: datetime = Field(default_factory=datetime.now)


class ValidationRequest(BaseModel):
    """Input of the upload validation stage"""
    template: TemplateModel
    grid: Grid


class ValidationReport(BaseModel):
    """Outcome of checking an upload against a template"""
    is_valid: bool
    errors: list[str] = []
    warnings: list[str] = []
    row_count: int = 0
    column_count: int = 0


class RowProcessingRequest(BaseModel):
    """Input of the row processing stage"""
    template: TemplateModel
    grid: Grid
    uploaded_by: str
    upload_batch_id: str


class RowResult(BaseModel):
    """Summary entry for a persisted row"""
    row_number: int
    employee_id: str
    employee_name: str
    employee_email: str
    employee_designation: str = ""
    employee_department: str = ""
    data_id: Optional[int] = None
    calculated_values: dict[str, Any] = {}


class RowError(BaseModel):
    """Row-scoped failure collected during processing"""
    row_number: int
    employee_id: Optional[str] = None
    error: str


class UploadResult(BaseModel):
    """Outcome of processing one uploaded file"""
    upload_batch_id: str
    template_id: Optional[int] = None
    template_name: str
    total_rows: int = 0
    success_count: int = 0
    error_count: int = 0
    validation_warnings: list[str] = []
    results: list[RowResult] = []
    errors: list[RowError] = []


class BatchSummary(BaseModel):
    """Per-batch totals for upload history"""
    upload_batch_id: str
    template_id: Optional[int] = None
    template_name: Optional[str] = None
    uploaded_by: Optional[str] = None
    uploaded_at: Optional[datetime] = None
    total_records: int = 0
    success_count: int = 0
    error_count: int = 0


class DataSummary(BaseModel):
    """Global totals over all uploaded rows"""
    total_records: int = 0
    total_batches: int = 0
    validated_count: int = 0
    pending_count: int = 0
    error_count: int = 0


class BatchRecord(BaseModel):
    """Uploaded row joined with its employee"""
    row_number: int
    employee: Optional[Employee] = None
    data: dict[str, CellEntry] = {}
    calculated_data: dict[str, Any] = {}
    status: RowStatus
    created_at: datetime


class BatchCalculations(BaseModel):
    """Batch records plus the template that shaped them"""
    records: list[BatchRecord] = []
    template: Optional[dict] = None


class ExportRequest(BaseModel):
    """Input of the export stage"""
    template: TemplateModel
    rows: list[UploadedRow]
    upload_batch_id: str


class DownloadPayload(BaseModel):
    """File handed back to a caller"""
    content: bytes
    file_name: str
    content_type: str = "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"
