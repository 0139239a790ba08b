"""Abstract base classes for Plantilla components"""

from abc import ABC, abstractmethod
from typing import Generic, TypeVar, Optional

InputT = TypeVar("InputT")
OutputT = TypeVar("OutputT")


class Stage(ABC, Generic[InputT, OutputT]):
    """Abstract base class for all pipeline stages"""

    @property
    @abstractmethod
    def name(self) -> str:
        """Human-readable stage name"""
        pass

    @property
    @abstractmethod
    def stage_number(self) -> int:
        """Stage number (0-4)"""
        pass

    @abstractmethod
    async def execute(self, input_data: InputT) -> OutputT:
        """Execute the stage"""
        pass

    @abstractmethod
    def validate_input(self, input_data: InputT) -> bool:
        """Validate input before processing"""
        pass


class SpreadsheetCodec(ABC):
    """Binary workbook <-> Grid conversion"""

    @property
    @abstractmethod
    def supported_extensions(self) -> list[str]:
        """List of supported file extensions"""
        pass

    @abstractmethod
    def decode(self, content: bytes, file_name: str = None) -> "Grid":
        """Decode workbook bytes into the grid of its first sheet"""
        pass

    @abstractmethod
    def encode(self, grid: "Grid") -> bytes:
        """Encode a grid back to workbook bytes, keeping formulas"""
        pass


class EmployeeDirectory(ABC):
    """Read access to employees"""

    @abstractmethod
    async def find_active_by_id(self, employee_id: str) -> Optional["Employee"]:
        pass

    @abstractmethod
    async def find_by_ids(self, employee_ids: list[str]) -> dict[str, "Employee"]:
        """Employees keyed by identifier, active or not"""
        pass

    @abstractmethod
    async def create(self, employee: "Employee") -> "Employee":
        pass


class TemplateStore(ABC):
    """Persistence for TemplateModel"""

    @abstractmethod
    async def create(self, template: "TemplateModel") -> "TemplateModel":
        """Insert a template; raises ConflictError on a duplicate name"""
        pass

    @abstractmethod
    async def find_by_id(self, template_id: int) -> Optional["TemplateModel"]:
        pass

    @abstractmethod
    async def find_by_name(self, template_name: str) -> Optional["TemplateModel"]:
        """Active template with exactly this name"""
        pass

    @abstractmethod
    async def find_active(self, template_name: str = None) -> Optional["TemplateModel"]:
        """Active template by name, else the most recently created active one"""
        pass

    @abstractmethod
    async def list_active(self) -> list["TemplateModel"]:
        """Active templates, newest first"""
        pass

    @abstractmethod
    async def soft_delete(self, template_id: int) -> bool:
        pass


class UploadedRowStore(ABC):
    """Persistence for UploadedRow"""

    @abstractmethod
    async def create(self, row: "UploadedRow") -> "UploadedRow":
        """Insert a row; raises ConflictError on a duplicate (batch, row_number)"""
        pass

    @abstractmethod
    async def find_by_batch(self, upload_batch_id: str) -> list["UploadedRow"]:
        """Rows of a batch in row order"""
        pass

    @abstractmethod
    async def find_by_employee(self, employee_id: str) -> list["UploadedRow"]:
        """Rows of an employee, newest first"""
        pass

    @abstractmethod
    async def batch_history(self, limit: int = 50) -> list["BatchSummary"]:
        """Per-batch totals, most recent batch first"""
        pass

    @abstractmethod
    async def aggregate_summary(self) -> "DataSummary":
        pass
