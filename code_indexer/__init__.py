"""Code Indexer - incremental semantic indexing of source trees into Qdrant."""

__version__ = "0.1.0"

from .config import IndexerConfig, load_config
from .errors import IndexerError
from .indexing import (
    BatchResult,
    IndexingEngine,
    IndexOutcome,
    SearchResult,
    create_engine,
)

__all__ = [
    "BatchResult",
    "IndexOutcome",
    "IndexerConfig",
    "IndexerError",
    "IndexingEngine",
    "SearchResult",
    "create_engine",
    "load_config",
]
