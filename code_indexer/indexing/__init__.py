"""Indexing engine, file discovery and freshness handling."""

from .discovery import discover_files, is_internal_file
from .engine import IndexingEngine, create_engine
from .temporal import FreshnessWindow
from .types import BatchResult, IndexingStatus, IndexOutcome, SearchResult, TemporalStats

__all__ = [
    "BatchResult",
    "FreshnessWindow",
    "IndexOutcome",
    "IndexingEngine",
    "IndexingStatus",
    "SearchResult",
    "TemporalStats",
    "create_engine",
    "discover_files",
    "is_internal_file",
]
