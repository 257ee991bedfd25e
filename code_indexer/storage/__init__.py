"""Storage package for the vector store and persisted indexing state."""

from .base import StorageResult, VectorPoint, VectorStore, generate_file_id
from .qdrant import QdrantStore
from .state import FileRecord, FileStateStore, IndexStats, StatsStore

__all__ = [
    "VectorStore",
    "VectorPoint",
    "StorageResult",
    "generate_file_id",
    "QdrantStore",
    "FileRecord",
    "FileStateStore",
    "IndexStats",
    "StatsStore",
]
