"""Stage 4: Export"""

from .exporter import Exporter, EXPORT_SHEET_NAME, TEMPLATE_SHEET_NAME

__all__ = ["Exporter", "EXPORT_SHEET_NAME", "TEMPLATE_SHEET_NAME"]
