"""Base classes and interfaces for vector storage."""

import hashlib
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any


def generate_file_id(file_path: str) -> str:
    """Derive the vector-store point ID for a file path.

    MD5 of the UTF-8 path laid out as a version-4 shaped UUID string. The
    layout skips hex digit 12 and forces the variant bits; it must stay
    byte-for-byte stable or existing points become unreachable.
    """
    digest = hashlib.md5(file_path.encode("utf-8")).hexdigest()
    variant = format((int(digest[16], 16) & 0x3) | 0x8, "x")
    return "-".join(
        [
            digest[0:8],
            digest[8:12],
            "4" + digest[13:16],
            variant + digest[17:20],
            digest[20:32],
        ]
    )


@dataclass
class StorageResult:
    """Result of a storage operation."""

    success: bool
    operation: str  # "create_collection", "upsert", "delete", "search", ...

    items_processed: int = 0
    items_failed: int = 0
    processing_time: float = 0.0

    # For search operations
    results: list[dict[str, Any]] = field(default_factory=list)
    total_found: int = 0

    errors: list[str] = field(default_factory=list)


@dataclass
class VectorPoint:
    """Represents a point in vector space."""

    id: str | int
    vector: list[float]
    payload: dict[str, Any]

    def __post_init__(self) -> None:
        if len(self.vector) == 0:
            raise ValueError("Vector cannot be empty")
        if not isinstance(self.payload, dict):
            raise ValueError("Payload must be a dictionary")


class VectorStore(ABC):
    """Abstract base class for vector storage backends.

    Implementations raise ``StoreFailure`` once their retry budget for a
    remote call is spent, rather than returning an unsuccessful result.
    """

    def __init__(
        self, auto_create_collections: bool = True, default_vector_size: int = 768
    ):
        self.auto_create_collections = auto_create_collections
        self.default_vector_size = default_vector_size

    @abstractmethod
    def create_collection(
        self, collection_name: str, vector_size: int, distance_metric: str = "cosine"
    ) -> StorageResult:
        """Create a new collection."""
        pass

    @abstractmethod
    def collection_exists(self, collection_name: str) -> bool:
        """Check if collection exists."""
        pass

    @abstractmethod
    def upsert_points(
        self, collection_name: str, points: list[VectorPoint]
    ) -> StorageResult:
        """Insert or update points in the collection."""
        pass

    @abstractmethod
    def delete_points(
        self, collection_name: str, point_ids: list[str | int]
    ) -> StorageResult:
        """Delete points by their IDs; absent IDs are not an error."""
        pass

    @abstractmethod
    def delete_expired(self, collection_name: str, before: datetime) -> StorageResult:
        """Delete every point whose ``expiresAt`` payload precedes ``before``."""
        pass

    @abstractmethod
    def search_similar(
        self,
        collection_name: str,
        query_vector: list[float],
        limit: int = 10,
        score_threshold: float | None = None,
    ) -> StorageResult:
        """Search for similar vectors, best match first."""
        pass

    @abstractmethod
    def get_collection_info(self, collection_name: str) -> dict[str, Any]:
        """Get information about a collection.

        Raises:
            CollectionNotFoundError: If the collection does not exist.
        """
        pass

    @abstractmethod
    def list_collections(self) -> list[str]:
        """List all collections."""
        pass

    def ensure_collection(
        self, collection_name: str, vector_size: int | None = None
    ) -> bool:
        """Ensure collection exists, create if allowed."""
        if self.collection_exists(collection_name):
            return True

        if not self.auto_create_collections:
            return False

        result = self.create_collection(
            collection_name, vector_size or self.default_vector_size
        )
        return result.success
