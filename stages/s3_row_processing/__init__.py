"""Stage 3: Row Processing"""

from .formula_engine import FormulaEngine
from .processor import RowProcessor

__all__ = ["FormulaEngine", "RowProcessor"]
