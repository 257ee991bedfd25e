"""Qdrant vector store implementation."""

import threading
import time
import warnings
from collections.abc import Callable
from datetime import datetime
from typing import Any, TypeVar

from qdrant_client import QdrantClient
from qdrant_client.models import (
    DatetimeRange,
    Distance,
    FieldCondition,
    Filter,
    FilterSelector,
    PayloadSchemaType,
    PointIdsList,
    PointStruct,
    VectorParams,
)

from ..errors import CollectionNotFoundError, StoreFailure
from ..indexer_logging import LogCategory, get_category_logger
from ..utils.retry import RetryError, RetryPolicy
from .base import StorageResult, VectorPoint, VectorStore

logger = get_category_logger(LogCategory.STORAGE)

T = TypeVar("T")

EXPIRES_AT_FIELD = "expiresAt"


class QdrantStore(VectorStore):
    """Qdrant vector database implementation.

    Every remote call runs under a ``RetryPolicy``; when it gives up the
    call raises ``StoreFailure`` with the attempt count and last error.
    """

    def __init__(
        self,
        url: str = "http://localhost:6333",
        api_key: str | None = None,
        timeout: float = 30.0,
        max_attempts: int = 3,
        base_delay: float = 1.0,
        auto_create_collections: bool = True,
        default_vector_size: int = 768,
    ):
        super().__init__(
            auto_create_collections=auto_create_collections,
            default_vector_size=default_vector_size,
        )

        self.DISTANCE_METRICS = {
            "cosine": Distance.COSINE,
            "euclidean": Distance.EUCLID,
            "dot": Distance.DOT,
        }

        self.url = url
        self.timeout = timeout
        self.retry_policy = RetryPolicy(
            max_attempts=max_attempts, base_delay=base_delay, name="Qdrant"
        )
        self._known_collections: set[str] = set()
        # Upserts arrive from worker threads; creation must happen once
        self._collection_lock = threading.Lock()

        try:
            # Suppress insecure connection warning for development
            with warnings.catch_warnings():
                warnings.filterwarnings(
                    "ignore", message="Api key is used with an insecure connection"
                )
                self.client = QdrantClient(
                    url=url, api_key=api_key or None, timeout=int(timeout)
                )
            # Test connection
            self.client.get_collections()
        except Exception as e:
            raise ConnectionError(f"Failed to connect to Qdrant at {url}: {e}") from e

    def _call(self, operation: str, func: Callable[..., T], *args: Any, **kwargs: Any) -> T:
        try:
            return self.retry_policy.call(func, *args, **kwargs)
        except RetryError as e:
            logger.error(f"Qdrant {operation} failed after {e.attempts} attempts: {e.last_error}")
            raise StoreFailure(operation, e.attempts, str(e.last_error)) from e.last_error

    def create_collection(
        self, collection_name: str, vector_size: int, distance_metric: str = "cosine"
    ) -> StorageResult:
        """Create a collection with a datetime index on ``expiresAt``."""
        start_time = time.time()

        if distance_metric not in self.DISTANCE_METRICS:
            available = list(self.DISTANCE_METRICS.keys())
            return StorageResult(
                success=False,
                operation="create_collection",
                errors=[f"Invalid distance metric: {distance_metric}. Available: {available}"],
            )

        try:
            self._call(
                "create collection",
                self.client.create_collection,
                collection_name=collection_name,
                vectors_config=VectorParams(
                    size=vector_size, distance=self.DISTANCE_METRICS[distance_metric]
                ),
            )
        except StoreFailure as e:
            # Another process won the race; the collection is usable
            if "already exists" not in str(e.last_error or "").lower():
                raise
            logger.debug(f"Collection {collection_name} already exists")

        self._call(
            "create payload index",
            self.client.create_payload_index,
            collection_name=collection_name,
            field_name=EXPIRES_AT_FIELD,
            field_schema=PayloadSchemaType.DATETIME,
        )
        self._known_collections.add(collection_name)
        logger.info(f"Created collection {collection_name} ({vector_size}D, {distance_metric})")

        return StorageResult(
            success=True,
            operation="create_collection",
            items_processed=1,
            processing_time=time.time() - start_time,
        )

    def collection_exists(self, collection_name: str) -> bool:
        exists = self._call(
            "check collection", self.client.collection_exists, collection_name
        )
        if exists:
            self._known_collections.add(collection_name)
        else:
            self._known_collections.discard(collection_name)
        return exists

    def ensure_collection(
        self, collection_name: str, vector_size: int | None = None
    ) -> bool:
        """Ensure collection exists, creating it at most once per store."""
        if collection_name in self._known_collections:
            return True
        with self._collection_lock:
            if collection_name in self._known_collections:
                return True
            return super().ensure_collection(collection_name, vector_size)

    def upsert_points(
        self, collection_name: str, points: list[VectorPoint]
    ) -> StorageResult:
        start_time = time.time()
        if not points:
            return StorageResult(success=True, operation="upsert")

        if collection_name not in self._known_collections and not self.ensure_collection(
            collection_name, len(points[0].vector)
        ):
            return StorageResult(
                success=False,
                operation="upsert",
                items_failed=len(points),
                errors=[
                    f"Collection {collection_name} does not exist and auto-creation is disabled"
                ],
            )

        self._call(
            "upsert",
            self.client.upsert,
            collection_name=collection_name,
            points=[
                PointStruct(id=point.id, vector=point.vector, payload=point.payload)
                for point in points
            ],
            wait=True,
        )
        return StorageResult(
            success=True,
            operation="upsert",
            items_processed=len(points),
            processing_time=time.time() - start_time,
        )

    def delete_points(
        self, collection_name: str, point_ids: list[str | int]
    ) -> StorageResult:
        start_time = time.time()
        if not self.collection_exists(collection_name):
            return StorageResult(success=True, operation="delete")

        self._call(
            "delete",
            self.client.delete,
            collection_name=collection_name,
            points_selector=PointIdsList(points=point_ids),
            wait=True,
        )
        return StorageResult(
            success=True,
            operation="delete",
            items_processed=len(point_ids),
            processing_time=time.time() - start_time,
        )

    def delete_expired(self, collection_name: str, before: datetime) -> StorageResult:
        start_time = time.time()
        if not self.collection_exists(collection_name):
            return StorageResult(success=True, operation="delete_expired")

        self._call(
            "delete expired points",
            self.client.delete,
            collection_name=collection_name,
            points_selector=FilterSelector(
                filter=Filter(
                    must=[
                        FieldCondition(
                            key=EXPIRES_AT_FIELD, range=DatetimeRange(lt=before)
                        )
                    ]
                )
            ),
            wait=True,
        )
        return StorageResult(
            success=True,
            operation="delete_expired",
            processing_time=time.time() - start_time,
        )

    def search_similar(
        self,
        collection_name: str,
        query_vector: list[float],
        limit: int = 10,
        score_threshold: float | None = None,
    ) -> StorageResult:
        start_time = time.time()
        response = self._call(
            "search",
            self.client.query_points,
            collection_name=collection_name,
            query=query_vector,
            limit=limit,
            score_threshold=score_threshold,
            with_payload=True,
        )
        results = [
            {"id": point.id, "score": point.score, "payload": point.payload or {}}
            for point in response.points
        ]
        return StorageResult(
            success=True,
            operation="search",
            processing_time=time.time() - start_time,
            results=results,
            total_found=len(results),
        )

    def get_collection_info(self, collection_name: str) -> dict[str, Any]:
        if not self.collection_exists(collection_name):
            raise CollectionNotFoundError(collection_name)

        collection_info = self._call(
            "get collection", self.client.get_collection, collection_name
        )
        vectors_config = collection_info.config.params.vectors
        if isinstance(vectors_config, dict):
            vectors_config = next(iter(vectors_config.values()))

        return {
            "name": collection_name,
            "status": collection_info.status.value,
            "vector_size": vectors_config.size,
            "distance_metric": vectors_config.distance.value,
            "points_count": collection_info.points_count,
            "indexed_vectors_count": collection_info.indexed_vectors_count,
        }

    def list_collections(self) -> list[str]:
        collections = self._call("list collections", self.client.get_collections)
        return [col.name for col in collections.collections]
