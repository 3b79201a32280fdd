"""ScreenMemory - searchable screenshot history with OCR."""

__version__ = "1.0.0"

from .memory import ScreenMemory
from .store import Record, RecordStore

__all__ = ["ScreenMemory", "Record", "RecordStore", "__version__"]
