"""Stage 2: Upload Validation"""

from .validator import UploadValidator

__all__ = ["UploadValidator"]
