"""Stage 0: Reception"""

from .receiver import Receiver
from .parsers import ExcelCodec

__all__ = ["Receiver", "ExcelCodec"]
