"""Record storage and query layer for ScreenMemory."""

from .record_store import Record, RecordStore, new_record_id, UNKNOWN_APP
from .query import (
    Query,
    TextFilter,
    AppFilter,
    AgeFilter,
    parse,
    evaluate,
    search,
)

__all__ = [
    "Record",
    "RecordStore",
    "new_record_id",
    "UNKNOWN_APP",
    "Query",
    "TextFilter",
    "AppFilter",
    "AgeFilter",
    "parse",
    "evaluate",
    "search",
]
