"""Stage 0: Reception - Workbook loading"""

from pathlib import Path

from core.interfaces import Stage, SpreadsheetCodec
from core.models import ReceptionResult
from core.exceptions import StageError, PlantillaError
from .parsers import ExcelCodec


class Receiver(Stage[str, ReceptionResult]):
    """Stage 0: Reception - Read an uploaded workbook into a Grid"""

    @property
    def name(self) -> str:
        return "Reception"

    @property
    def stage_number(self) -> int:
        return 0

    def __init__(self, codec: SpreadsheetCodec = None):
        self.codec = codec or ExcelCodec()

    def validate_input(self, input_data: str) -> bool:
        """Validate file path"""
        if not isinstance(input_data, (str, Path)):
            return False

        path = Path(input_data)
        return path.exists() and path.is_file()

    async def execute(self, input_data: str, file_name: str = None) -> ReceptionResult:
        """Execute reception stage"""
        path = Path(input_data)
        file_name = file_name or path.name

        ext = Path(file_name).suffix.lower() or path.suffix.lower()
        if ext not in self.codec.supported_extensions:
            raise StageError(
                self.stage_number,
                f"Unsupported file type: {ext or '(none)'}. "
                f"Supported: {', '.join(self.codec.supported_extensions)}"
            )

        try:
            content = path.read_bytes()
            grid = self.codec.decode(content, file_name)
        except PlantillaError:
            raise
        except OSError as e:
            raise StageError(self.stage_number, f"Could not read file: {e}") from e

        return ReceptionResult(
            file_name=file_name,
            file_size_bytes=len(content),
            grid=grid,
            content=content,
        )
