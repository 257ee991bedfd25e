"""
Shared fixtures for the code indexer test suite.

Provides test fixtures for:
- Temporary repository creation
- Deterministic embedders (sync provider and async client)
- An in-memory vector store
- Engine construction with isolated state files
"""

import asyncio
import threading
from datetime import datetime
from pathlib import Path
from typing import Any

import numpy as np
import pytest

from code_indexer.embeddings.base import Embedder, EmbeddingResult
from code_indexer.errors import CollectionNotFoundError
from code_indexer.indexing.engine import IndexingEngine
from code_indexer.storage.base import StorageResult, VectorPoint, VectorStore
from code_indexer.storage.state import FileStateStore, StatsStore
from code_indexer.utils.exclusion_matcher import ExclusionMatcher
from code_indexer.utils.timestamps import parse_iso

TEST_DIMENSION = 8


# ---------------------------------------------------------------------------
# Temporary repository fixture
# ---------------------------------------------------------------------------


@pytest.fixture()
def temp_repo(tmp_path_factory) -> Path:
    """Create a temporary repository with a few source files."""
    repo_path = tmp_path_factory.mktemp("sample_repo").resolve()

    (repo_path / "foo.py").write_text(
        '''"""Sample module with functions."""

def add(x, y):
    """Return sum of two numbers."""
    return x + y
'''
    )

    (repo_path / "bar.py").write_text(
        '''"""Module that imports and uses foo."""
from foo import add

def main():
    print(add(1, 2))
'''
    )

    subdir = repo_path / "utils"
    subdir.mkdir()
    (subdir / "helpers.py").write_text(
        '''def format_output(value):
    return f"Value: {value}"
'''
    )

    # Excluded by the default folder rules
    node_modules = repo_path / "node_modules" / "left-pad"
    node_modules.mkdir(parents=True)
    (node_modules / "index.js").write_text("module.exports = () => {};\n")
    (node_modules / "README.md").write_text("# left-pad\n")

    (repo_path / "debug.log").write_text("noise\n")

    return repo_path


@pytest.fixture()
def empty_repo(tmp_path_factory) -> Path:
    """Create an empty temporary repository."""
    return tmp_path_factory.mktemp("empty_repo").resolve()


# ---------------------------------------------------------------------------
# Embedder fixtures
# ---------------------------------------------------------------------------


def deterministic_vector(text: str, dimension: int = TEST_DIMENSION) -> list[float]:
    """Stable pseudo-random unit vector for a text."""
    seed = sum(text.encode("utf-8")) % 10000
    rng = np.random.default_rng(seed)
    vector = rng.random(dimension)
    return (vector / np.linalg.norm(vector)).tolist()


class DummyEmbedder(Embedder):
    """Fast, deterministic blocking embedder for testing."""

    def __init__(self, dimension: int = TEST_DIMENSION):
        self.dimension = dimension
        self.calls: list[str] = []

    def embed_text(self, text: str) -> EmbeddingResult:
        self.calls.append(text)
        return EmbeddingResult(
            text=text,
            embedding=deterministic_vector(text, self.dimension),
            model="dummy",
            token_count=len(text.split()),
            processing_time=0.001,
        )

    def get_model_info(self) -> dict[str, Any]:
        return {"model": "dummy", "dimension": self.dimension, "max_tokens": 8192}

    def get_max_tokens(self) -> int:
        return 8192


class FakeEmbeddingClient:
    """Async embedding client that records calls and peak concurrency.

    Texts containing any marker in ``fail_on`` raise the configured error.
    """

    def __init__(self, dimensions: int = TEST_DIMENSION, delay: float = 0.0):
        self.dimensions = dimensions
        self.delay = delay
        self.calls: list[str] = []
        self.fail_on: set[str] = set()
        self.error: Exception = RuntimeError("embedding provider unavailable")
        self.active = 0
        self.peak_active = 0

    async def embed(self, text: str) -> list[float]:
        self.calls.append(text)
        self.active += 1
        self.peak_active = max(self.peak_active, self.active)
        try:
            if self.delay:
                await asyncio.sleep(self.delay)
            if any(marker in text for marker in self.fail_on):
                raise self.error
            return deterministic_vector(text, self.dimensions)
        finally:
            self.active -= 1


@pytest.fixture()
def dummy_embedder() -> DummyEmbedder:
    """Provide a fast, deterministic embedder for tests."""
    return DummyEmbedder()


@pytest.fixture()
def embedding_client() -> FakeEmbeddingClient:
    return FakeEmbeddingClient()


# ---------------------------------------------------------------------------
# Vector store fixtures
# ---------------------------------------------------------------------------


class InMemoryVectorStore(VectorStore):
    """Thread-safe in-process vector store with cosine scoring."""

    def __init__(self, vector_size: int = TEST_DIMENSION):
        super().__init__(default_vector_size=vector_size)
        self.collections: dict[str, dict[str | int, VectorPoint]] = {}
        self.vector_sizes: dict[str, int] = {}
        self.upsert_calls = 0
        self.delete_expired_calls: list[datetime] = []
        self._lock = threading.Lock()

    def create_collection(
        self, collection_name: str, vector_size: int, distance_metric: str = "cosine"
    ) -> StorageResult:
        with self._lock:
            self.collections.setdefault(collection_name, {})
            self.vector_sizes[collection_name] = vector_size
        return StorageResult(success=True, operation="create_collection")

    def collection_exists(self, collection_name: str) -> bool:
        return collection_name in self.collections

    def upsert_points(
        self, collection_name: str, points: list[VectorPoint]
    ) -> StorageResult:
        if points and not self.ensure_collection(
            collection_name, len(points[0].vector)
        ):
            return StorageResult(
                success=False, operation="upsert", errors=["missing collection"]
            )
        with self._lock:
            self.upsert_calls += 1
            for point in points:
                self.collections[collection_name][point.id] = point
        return StorageResult(
            success=True, operation="upsert", items_processed=len(points)
        )

    def delete_points(
        self, collection_name: str, point_ids: list[str | int]
    ) -> StorageResult:
        with self._lock:
            points = self.collections.get(collection_name, {})
            for point_id in point_ids:
                points.pop(point_id, None)
        return StorageResult(success=True, operation="delete")

    def delete_expired(self, collection_name: str, before: datetime) -> StorageResult:
        with self._lock:
            self.delete_expired_calls.append(before)
            points = self.collections.get(collection_name, {})
            expired = [
                point_id
                for point_id, point in points.items()
                if (expires := parse_iso(point.payload.get("expiresAt"))) is not None
                and expires < before
            ]
            for point_id in expired:
                del points[point_id]
        return StorageResult(
            success=True, operation="delete_expired", items_processed=len(expired)
        )

    def search_similar(
        self,
        collection_name: str,
        query_vector: list[float],
        limit: int = 10,
        score_threshold: float | None = None,
    ) -> StorageResult:
        query = np.asarray(query_vector)
        scored = []
        with self._lock:
            points = list(self.collections.get(collection_name, {}).values())
        for point in points:
            vector = np.asarray(point.vector)
            score = float(
                np.dot(query, vector) / (np.linalg.norm(query) * np.linalg.norm(vector))
            )
            if score_threshold is None or score >= score_threshold:
                scored.append({"id": point.id, "score": score, "payload": point.payload})
        scored.sort(key=lambda hit: hit["score"], reverse=True)
        results = scored[:limit]
        return StorageResult(
            success=True,
            operation="search",
            results=results,
            total_found=len(results),
        )

    def get_collection_info(self, collection_name: str) -> dict[str, Any]:
        if collection_name not in self.collections:
            raise CollectionNotFoundError(collection_name)
        return {
            "name": collection_name,
            "status": "green",
            "vector_size": self.vector_sizes[collection_name],
            "distance_metric": "Cosine",
            "points_count": len(self.collections[collection_name]),
            "indexed_vectors_count": len(self.collections[collection_name]),
        }

    def list_collections(self) -> list[str]:
        return list(self.collections)

    def payloads(self, collection_name: str) -> dict[str | int, dict[str, Any]]:
        return {
            point_id: point.payload
            for point_id, point in self.collections.get(collection_name, {}).items()
        }


@pytest.fixture()
def vector_store() -> InMemoryVectorStore:
    return InMemoryVectorStore()


# ---------------------------------------------------------------------------
# Engine fixtures
# ---------------------------------------------------------------------------


@pytest.fixture()
def make_engine(temp_repo, embedding_client, vector_store):
    """Factory building an engine over ``temp_repo`` with in-memory adapters."""

    def _create_engine(**overrides: Any) -> IndexingEngine:
        root = overrides.pop("root", temp_repo)
        matcher = overrides.pop("matcher", None) or ExclusionMatcher(root)
        return IndexingEngine(
            overrides.pop("embedding_client", embedding_client),
            overrides.pop("vector_store", vector_store),
            matcher,
            FileStateStore(root / ".indexer-state.json"),
            StatsStore(root / ".indexer-metadata.json"),
            collection_name=overrides.pop("collection_name", "test-collection"),
            **overrides,
        )

    return _create_engine


@pytest.fixture()
def engine(make_engine) -> IndexingEngine:
    return make_engine()
