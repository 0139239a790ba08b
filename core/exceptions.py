"""Custom exceptions for Plantilla"""


class PlantillaError(Exception):
    """Base exception for all Plantilla errors"""
    pass


class StageError(PlantillaError):
    """Error in a specific stage"""
    def __init__(self, stage: int, message: str):
        super().__init__(f"Stage {stage}: {message}")
        self.stage = stage
        self.message = message


class MalformedSpreadsheet(PlantillaError):
    """Spreadsheet bytes could not be decoded"""
    def __init__(self, message: str, file_name: str = None):
        super().__init__(message)
        self.file_name = file_name


class EmptySpreadsheet(PlantillaError):
    """Spreadsheet decoded but holds no cells"""
    def __init__(self, message: str = "Spreadsheet has no cells", file_name: str = None):
        super().__init__(message)
        self.file_name = file_name


class InvalidAddress(PlantillaError, ValueError):
    """Malformed cell address or column letters"""
    def __init__(self, address: object):
        super().__init__(f"Invalid cell address: {address}")
        self.address = address


class TemplateNotFound(PlantillaError):
    """No (active) template matches the reference"""
    def __init__(self, reference: object):
        super().__init__(f'Template "{reference}" not found')
        self.reference = reference


class BatchNotFound(PlantillaError):
    """No uploaded rows exist for a batch"""
    def __init__(self, batch_id: str):
        super().__init__("No data found for this batch")
        self.batch_id = batch_id


class EmployeeNotFound(PlantillaError):
    """Employee identifier unknown or inactive"""
    def __init__(self, employee_id: str, row_number: int = None):
        super().__init__(f"Employee with ID {employee_id} not found")
        self.employee_id = employee_id
        self.row_number = row_number


class MissingEmployeeIdColumn(PlantillaError):
    """Neither the template nor the upload yields an employee-id column"""
    def __init__(self, message: str = "Could not find Employee ID column in the uploaded file"):
        super().__init__(message)


class MissingEmployeeId(PlantillaError):
    """A data row has no employee-id value"""
    def __init__(self, row_number: int):
        super().__init__("Missing Employee ID")
        self.row_number = row_number


class ValidationFailed(PlantillaError):
    """Upload failed hard validation checks"""
    def __init__(self, errors: list, warnings: list = None):
        super().__init__(f"File validation failed: {', '.join(errors)}")
        self.errors = list(errors)
        self.warnings = list(warnings or [])


class FormulaEvaluationError(PlantillaError):
    """A formula could not be evaluated to a number"""
    def __init__(self, message: str, formula: str = None):
        super().__init__(message)
        self.formula = formula


class DatabaseError(PlantillaError):
    """Database operation error"""
    pass


class ConflictError(DatabaseError):
    """A store uniqueness constraint rejected a write"""
    pass
