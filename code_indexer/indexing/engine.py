"""The indexing engine: per-file decisions, admission control, batches,
freshness-filtered search and lazy purge of expired entries.

All public operations are coroutines meant to run on one event loop.
Blocking adapters (vector store, file reads, embedding providers) are
pushed to worker threads, so the engine's own bookkeeping is only ever
touched from the loop thread.
"""

import asyncio
import contextlib
import hashlib
import stat
import time
from collections.abc import AsyncIterator, Callable, Iterable
from datetime import datetime, timedelta
from pathlib import Path
from typing import Any, Protocol

from ..config.models import IndexerConfig
from ..embeddings.client import EmbeddingClient
from ..embeddings.registry import create_embedder_from_config
from ..errors import (
    CollectionNotFoundError,
    FileIndexingError,
    IndexNotReadyError,
    NotFoundError,
    StoreFailure,
    ValidationFailure,
)
from ..indexer_logging import LogCategory, get_category_logger
from ..storage.base import VectorPoint, VectorStore, generate_file_id
from ..storage.qdrant import QdrantStore
from ..storage.state import FileRecord, FileStateStore, IndexStats, StatsStore
from ..utils.exclusion_matcher import ExclusionMatcher
from ..utils.timestamps import mtime_to_iso, to_iso, utc_now
from .discovery import discover_files
from .temporal import FreshnessWindow
from .types import BatchResult, IndexingStatus, IndexOutcome, SearchResult, TemporalStats


class EmbeddingCapability(Protocol):
    """What the engine needs from an embedding client."""

    dimensions: int

    async def embed(self, text: str) -> list[float]: ...


class IndexingEngine:
    """Indexes files into a vector collection and serves fresh search results."""

    def __init__(
        self,
        embedding_client: EmbeddingCapability,
        vector_store: VectorStore,
        matcher: ExclusionMatcher,
        state_store: FileStateStore,
        stats_store: StatsStore | None = None,
        *,
        collection_name: str = "codebase",
        max_concurrency: int = 5,
        batch_size: int = 10,
        incremental_enabled: bool = True,
        persist_metadata: bool = True,
        validation_enabled: bool = True,
        ttl_seconds: float = 7 * 24 * 3600,
        purge_interval_seconds: float = 3600,
        search_overfetch_factor: int = 3,
        clock: Callable[[], datetime] = utc_now,
    ):
        if max_concurrency < 1:
            raise ValueError("max_concurrency must be at least 1")
        if batch_size < 1:
            raise ValueError("batch_size must be at least 1")

        self.embedding_client = embedding_client
        self.vector_store = vector_store
        self.matcher = matcher
        self.state = state_store
        self.stats_store = stats_store

        self.collection_name = collection_name
        self.max_concurrency = max_concurrency
        self.batch_size = batch_size
        self.incremental_enabled = incremental_enabled
        self.persist_metadata = persist_metadata
        self.validation_enabled = validation_enabled
        self.freshness = FreshnessWindow(ttl_seconds)
        self.purge_interval = timedelta(seconds=purge_interval_seconds)
        self.search_overfetch_factor = search_overfetch_factor
        self._clock = clock

        self.logger = get_category_logger(LogCategory.INDEXER)
        self.stats = stats_store.load() if stats_store is not None else IndexStats()

        # Admission gate
        self._gate = asyncio.Semaphore(max_concurrency)
        self._active = 0

        # Path -> in-flight indexing task
        self._in_flight: dict[str, asyncio.Task[IndexOutcome]] = {}

        # Lazy purge bookkeeping
        self._purge_running = False
        self._last_purge: datetime | None = None
        self._background: set[asyncio.Task[Any]] = set()

    # ------------------------------------------------------------------
    # Single-file indexing
    # ------------------------------------------------------------------

    @staticmethod
    def normalize_path(file_path: str | Path) -> str:
        return str(Path(file_path).expanduser().resolve())

    async def index_file(self, file_path: str | Path) -> IndexOutcome:
        """Index one file, sharing the work with any concurrent caller.

        Raises:
            NotFoundError: If the path is not an existing regular file.
            FileIndexingError: If embedding or storing failed; ``cause``
                holds the underlying error.
        """
        path = self.normalize_path(file_path)
        outcome = await self._submit(path)
        if outcome is IndexOutcome.INDEXED and self.persist_metadata:
            self.state.save()
        return outcome

    def _submit(self, path: str) -> "asyncio.Future[IndexOutcome]":
        task = self._in_flight.get(path)
        if task is None:
            task = asyncio.create_task(self._run(path), name=f"index:{path}")
            self._in_flight[path] = task
            task.add_done_callback(lambda t, p=path: self._on_task_done(p, t))
        else:
            self.logger.debug(f"File already being indexed, waiting: {path}")
        # Callers that stop waiting must not cancel work others depend on
        return asyncio.shield(task)

    def _on_task_done(self, path: str, task: "asyncio.Task[IndexOutcome]") -> None:
        if self._in_flight.get(path) is task:
            del self._in_flight[path]
        if not task.cancelled():
            # Mark the exception retrieved even if every waiter went away
            task.exception()

    async def _run(self, path: str) -> IndexOutcome:
        try:
            async with self._admitted():
                return await self._index_admitted(path)
        finally:
            if self._in_flight.get(path) is asyncio.current_task():
                del self._in_flight[path]

    @contextlib.asynccontextmanager
    async def _admitted(self) -> AsyncIterator[None]:
        async with self._gate:
            self._active += 1
            try:
                yield
            finally:
                self._active -= 1

    async def _index_admitted(self, path: str) -> IndexOutcome:
        start = time.perf_counter()
        try:
            file_stat = self._stat_regular_file(path)

            decision = await asyncio.to_thread(self.matcher.explain, path)
            if decision.excluded:
                self.logger.debug(
                    f"File excluded ({decision.reason}): {path}",
                    extra={"file_path": path, "operation": "exclude"},
                )
                return IndexOutcome.EXCLUDED

            last_modified = mtime_to_iso(file_stat.st_mtime)
            if self.incremental_enabled and not self.state.needs_indexing(
                path, last_modified
            ):
                self.logger.debug(f"File skipped (no changes): {path}")
                return IndexOutcome.UNCHANGED

            content = await asyncio.to_thread(_read_text, path)
            checksum = hashlib.sha256(content.encode("utf-8")).hexdigest()
            embedding = await self.embedding_client.embed(content)

            now = self._clock()
            indexed_at = to_iso(now)
            created_at, expires_at = self.freshness.stamp(now)
            file_id = generate_file_id(path)
            payload = {
                "filePath": path,
                "fileSize": file_stat.st_size,
                "lastModified": last_modified,
                "fileType": Path(path).suffix[1:] or "unknown",
                "checksum": checksum,
                "indexed": indexed_at,
                "createdAt": created_at,
                "expiresAt": expires_at,
            }

            result = await asyncio.to_thread(
                self.vector_store.upsert_points,
                self.collection_name,
                [VectorPoint(id=file_id, vector=embedding, payload=payload)],
            )
            if not result.success:
                raise StoreFailure("upsert", 1, "; ".join(result.errors))

            self.state.set(
                path,
                FileRecord(
                    checksum=checksum,
                    last_modified=last_modified,
                    indexed_at=indexed_at,
                    created_at=created_at,
                    expires_at=expires_at,
                ),
            )
            self.stats.indexed_files += 1
            self.stats.indexed_size += file_stat.st_size
            self.stats.last_indexed = indexed_at

            duration_ms = (time.perf_counter() - start) * 1000
            self.logger.info(
                f"Indexed {path} ({file_stat.st_size} bytes, {duration_ms:.0f}ms)",
                extra={
                    "file_path": path,
                    "operation": "index_file",
                    "duration_ms": round(duration_ms, 2),
                },
            )
            return IndexOutcome.INDEXED

        except Exception as e:
            self.stats.failed_files += 1
            self.logger.error(
                f"Failed to index file {path}: {e}",
                extra={"file_path": path, "operation": "index_file"},
            )
            if isinstance(e, NotFoundError):
                raise
            raise FileIndexingError(path, e) from e

    @staticmethod
    def _stat_regular_file(path: str) -> Any:
        try:
            file_stat = Path(path).stat()
        except (FileNotFoundError, NotADirectoryError):
            raise NotFoundError(path) from None
        if not stat.S_ISREG(file_stat.st_mode):
            raise NotFoundError(path)
        return file_stat

    # ------------------------------------------------------------------
    # Batches and directories
    # ------------------------------------------------------------------

    async def index_files(self, file_paths: Iterable[str | Path]) -> BatchResult:
        """Index many files; per-file failures are reported, never raised."""
        paths = [str(p) for p in file_paths]
        resolved = [self.normalize_path(p) for p in paths]

        total_size = 0
        for path in resolved:
            try:
                total_size += Path(path).stat().st_size
            except OSError:
                self.logger.warning(f"Could not get file stats: {path}")
        self.stats.reset(total_files=len(paths), total_size=total_size)

        total_batches = (len(paths) + self.batch_size - 1) // self.batch_size
        self.logger.info(
            f"Starting batch indexing of {len(paths)} files in {total_batches} batches",
            extra={"operation": "index_files", "file_count": len(paths)},
        )

        result = BatchResult()
        for batch_number, start in enumerate(range(0, len(paths), self.batch_size), 1):
            batch = list(
                zip(
                    paths[start : start + self.batch_size],
                    resolved[start : start + self.batch_size],
                    strict=True,
                )
            )
            self.logger.debug(
                f"Processing batch {batch_number}/{total_batches} ({len(batch)} files)"
            )
            outcomes = await asyncio.gather(
                *(self._submit(path) for _, path in batch), return_exceptions=True
            )
            for (original, _), outcome in zip(batch, outcomes, strict=True):
                if isinstance(outcome, IndexOutcome):
                    result.successful.append(original)
                    result.outcomes[original] = outcome
                elif isinstance(outcome, Exception):
                    result.failed.append(original)
                    result.errors[original] = str(outcome)
                else:
                    raise outcome

        if self.persist_metadata:
            self.flush()

        self.logger.info(
            f"Batch indexing completed: {len(result.successful)} successful, "
            f"{len(result.failed)} failed, {len(paths)} total",
            extra={"operation": "index_files", "file_count": len(paths)},
        )
        return result

    async def get_all_files(self, directory: str | Path) -> list[str]:
        """Absolute paths of every non-excluded file below ``directory``."""
        return await asyncio.to_thread(discover_files, directory, self.matcher)

    async def reindex_all(self, directory: str | Path) -> BatchResult:
        """Forget all incremental state and index every file below ``directory``."""
        self.logger.info(f"Starting reindex of {directory}")
        files = await self.get_all_files(directory)
        if not files:
            self.logger.warning(f"No files found to index in {directory}")
            return BatchResult()

        self.clear_incremental_state()
        return await self.index_files(files)

    def clear_incremental_state(self) -> None:
        """Drop every file record so the next run re-indexes everything."""
        self.state.clear()
        self.logger.info("Incremental state cleared")

    async def delete_file_from_index(self, file_path: str | Path) -> None:
        """Remove a file's vector and record; deleting twice is harmless."""
        path = self.normalize_path(file_path)

        in_flight = self._in_flight.get(path)
        if in_flight is not None:
            # Let a running index of this path land first so it can't resurrect it
            await asyncio.wait({in_flight})

        file_id = generate_file_id(path)
        await asyncio.to_thread(
            self.vector_store.delete_points, self.collection_name, [file_id]
        )
        self.state.remove(path)
        self.state.save()
        self.logger.info(
            f"File deleted from index: {path}",
            extra={"file_path": path, "operation": "delete"},
        )

    # ------------------------------------------------------------------
    # Search and lazy purge
    # ------------------------------------------------------------------

    async def validate_index(self) -> dict[str, Any]:
        """Check the collection exists and matches the embedding size.

        Raises:
            IndexNotReadyError: If the collection is missing.
            ValidationFailure: If its vector size differs from the embeddings.
        """
        try:
            info = await asyncio.to_thread(
                self.vector_store.get_collection_info, self.collection_name
            )
        except CollectionNotFoundError as e:
            self.logger.error(f"Index validation failed: {e}")
            raise IndexNotReadyError(self.collection_name) from e

        vector_size = info.get("vector_size")
        expected = self.embedding_client.dimensions
        if vector_size is not None and vector_size != expected:
            raise ValidationFailure(
                f"Index validation failed: collection '{self.collection_name}' holds "
                f"{vector_size}-dimensional vectors, embeddings have {expected}",
                suggestion="Reindex into a new collection or fix EMBEDDING_DIMENSIONS",
            )
        return info

    async def search(self, query: str, limit: int = 5) -> list[SearchResult]:
        """Semantic search restricted to entries inside the freshness window."""
        if limit < 1:
            raise ValueError("limit must be at least 1")

        if self.validation_enabled:
            await self.validate_index()

        query_vector = await self.embedding_client.embed(query)
        candidates = await asyncio.to_thread(
            self.vector_store.search_similar,
            self.collection_name,
            query_vector,
            limit * self.search_overfetch_factor,
        )

        now = self._clock()
        results: list[SearchResult] = []
        for hit in candidates.results:
            payload = hit.get("payload") or {}
            if not self.freshness.is_fresh_payload(payload, now):
                continue
            results.append(
                SearchResult(
                    id=hit["id"],
                    score=hit["score"],
                    file_path=payload.get("filePath", ""),
                    payload=payload,
                )
            )
            if len(results) == limit:
                break

        self.logger.info(
            f"Search returned {len(results)} of {len(candidates.results)} candidates "
            f"for '{query[:50]}'",
            extra={"operation": "search"},
        )
        self._schedule_purge(now)
        return results

    def _schedule_purge(self, now: datetime) -> None:
        if self._purge_running:
            return
        if self._last_purge is not None and now - self._last_purge < self.purge_interval:
            return

        self._purge_running = True
        self._last_purge = now
        task = asyncio.create_task(self._purge_expired(now), name="lazy-purge")
        self._background.add(task)
        task.add_done_callback(self._background.discard)

    async def _purge_expired(self, now: datetime) -> None:
        try:
            try:
                await asyncio.to_thread(
                    self.vector_store.delete_expired, self.collection_name, now
                )
            except Exception as e:
                self.logger.warning(
                    f"Lazy purge of vector store failed: {e}",
                    extra={"operation": "purge"},
                )

            removed = self.state.remove_expired(now)
            if removed:
                self.state.save()
                self.logger.info(
                    f"Lazy purge removed {len(removed)} expired records",
                    extra={"operation": "purge", "file_count": len(removed)},
                )
        except Exception as e:
            self.logger.warning(f"Lazy purge failed: {e}", extra={"operation": "purge"})
        finally:
            self._purge_running = False

    async def wait_for_background(self) -> None:
        """Wait for background maintenance (lazy purge) to finish."""
        if self._background:
            await asyncio.gather(*self._background, return_exceptions=True)

    # ------------------------------------------------------------------
    # Introspection and lifecycle
    # ------------------------------------------------------------------

    def get_indexing_status(self) -> IndexingStatus:
        return IndexingStatus(
            queue_size=len(self._in_flight),
            current_concurrency=self._active,
            max_concurrency=self.max_concurrency,
        )

    def get_stats(self) -> dict[str, Any]:
        return {
            "total_files": self.stats.total_files,
            "indexed_files": self.stats.indexed_files,
            "failed_files": self.stats.failed_files,
            "total_size": self.stats.total_size,
            "indexed_size": self.stats.indexed_size,
            "last_indexed": self.stats.last_indexed,
            "incremental_state_size": len(self.state),
        }

    def get_temporal_stats(self) -> TemporalStats:
        now = self._clock()
        fresh = 0
        ages: list[float] = []
        total = 0
        for _, record in self.state.items():
            total += 1
            if self.freshness.is_fresh(record.created_at, record.expires_at, now):
                fresh += 1
            age = self.freshness.age_seconds(record.created_at, now)
            if age is not None:
                ages.append(age)

        if self._last_purge is None:
            next_eligible = now
        else:
            next_eligible = max(now, self._last_purge + self.purge_interval)

        return TemporalStats(
            total_records=total,
            fresh_records=fresh,
            expired_records=total - fresh,
            average_age_seconds=sum(ages) / len(ages) if ages else 0.0,
            ttl_seconds=self.freshness.ttl_seconds,
            last_purge=to_iso(self._last_purge) if self._last_purge else None,
            next_purge_eligible=to_iso(next_eligible),
            purge_in_progress=self._purge_running,
        )

    def flush(self) -> None:
        """Persist incremental state and stats."""
        self.state.save()
        if self.stats_store is not None:
            self.stats_store.save(self.stats)

    async def close(self) -> None:
        """Wait for in-flight work, then flush state one last time."""
        pending = list(self._in_flight.values())
        if pending:
            await asyncio.wait(pending)
        await self.wait_for_background()
        if self.persist_metadata:
            self.flush()


def _read_text(path: str) -> str:
    with open(path, encoding="utf-8", errors="replace") as f:
        return f.read()


def create_engine(config: IndexerConfig) -> IndexingEngine:
    """Wire an engine to Qdrant, the configured embedder and on-disk state."""
    base_directory = Path(config.base_directory).resolve()

    matcher = ExclusionMatcher(base_directory, config_path=config.exclusion_config_path)
    embedding_client = EmbeddingClient(
        create_embedder_from_config(config),
        dimensions=config.embedding_dimensions,
        strict_dimensions=config.strict_dimensions,
    )
    vector_store = QdrantStore(
        url=config.qdrant_url,
        api_key=config.qdrant_api_key or None,
        timeout=config.qdrant_timeout,
        max_attempts=config.qdrant_retries,
        default_vector_size=config.embedding_dimensions,
    )

    return IndexingEngine(
        embedding_client,
        vector_store,
        matcher,
        FileStateStore(config.state_file),
        StatsStore(config.stats_file),
        collection_name=config.collection_name,
        max_concurrency=config.max_concurrency,
        batch_size=config.batch_size,
        incremental_enabled=config.incremental_enabled,
        persist_metadata=config.persist_metadata,
        validation_enabled=config.validation_enabled,
        ttl_seconds=config.ttl_seconds,
        purge_interval_seconds=config.purge_interval_seconds,
        search_overfetch_factor=config.search_overfetch_factor,
    )
