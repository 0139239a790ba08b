"""Stage 1: Structure Extraction"""

from .extractor import StructureExtractor

__all__ = ["StructureExtractor"]
