"""File system event handling for automatic re-indexing."""

import asyncio
from pathlib import Path
from typing import Any

from watchdog.events import FileSystemEvent, FileSystemEventHandler
from watchdog.observers import Observer

from ..indexer_logging import LogCategory, get_category_logger
from ..indexing.discovery import is_internal_file
from ..indexing.engine import IndexingEngine
from ..utils.exclusion_matcher import ExclusionMatcher
from .debounce import AsyncDebouncer

logger = get_category_logger(LogCategory.WATCHER)


class IndexingEventHandler(FileSystemEventHandler):
    """Filters watchdog events and hands them to the debouncer.

    Watchdog calls these methods from its observer thread; events are
    handed to the event loop with ``call_soon_threadsafe``.
    """

    def __init__(
        self,
        matcher: ExclusionMatcher,
        debouncer: AsyncDebouncer,
        loop: asyncio.AbstractEventLoop,
    ):
        super().__init__()
        self.matcher = matcher
        self.debouncer = debouncer
        self.loop = loop

        # Stats
        self.events_received = 0
        self.events_forwarded = 0
        self.events_ignored = 0

    def on_modified(self, event: FileSystemEvent) -> None:
        if not event.is_directory:
            self._handle_file_event(event.src_path, "modified")

    def on_created(self, event: FileSystemEvent) -> None:
        if not event.is_directory:
            self._handle_file_event(event.src_path, "created")

    def on_deleted(self, event: FileSystemEvent) -> None:
        if not event.is_directory:
            self._handle_file_event(event.src_path, "deleted")

    def on_moved(self, event: FileSystemEvent) -> None:
        if not event.is_directory:
            # Treat as delete + create
            self._handle_file_event(event.src_path, "deleted")
            self._handle_file_event(event.dest_path, "created")

    def _handle_file_event(self, file_path: str | bytes, event_type: str) -> None:
        self.events_received += 1
        path = file_path.decode() if isinstance(file_path, bytes) else file_path

        try:
            if is_internal_file(path) or self.matcher.is_excluded(path):
                self.events_ignored += 1
                return

            self.loop.call_soon_threadsafe(self.debouncer.submit, path, event_type)
            self.events_forwarded += 1
        except RuntimeError as e:
            # Loop already closed during shutdown
            self.events_ignored += 1
            logger.debug(f"Dropped {event_type} event for {path}: {e}")
        except Exception as e:
            logger.error(f"Error handling file event {path}: {e}")

    def get_stats(self) -> dict[str, Any]:
        return {
            "events_received": self.events_received,
            "events_forwarded": self.events_forwarded,
            "events_ignored": self.events_ignored,
        }


class Watcher:
    """Keeps the index in sync with a directory while it is being edited."""

    def __init__(
        self,
        directory: str | Path,
        engine: IndexingEngine,
        debounce_seconds: float = 1.0,
    ):
        # Resolve symlinks (macOS /var -> /private/var) so paths match the engine's
        self.directory = Path(directory).resolve()
        self.engine = engine
        self.debounce_seconds = debounce_seconds

        self.debouncer = AsyncDebouncer(delay=debounce_seconds)
        self.debouncer.set_callback(self._process_batch)
        self.observer: Any = None
        self.event_handler: IndexingEventHandler | None = None
        self._running = False

        self.files_indexed = 0
        self.files_deleted = 0
        self.files_failed = 0

    @property
    def is_watching(self) -> bool:
        return self._running

    async def start(self) -> None:
        """Start watching; must be awaited on the loop that owns the engine."""
        if self._running:
            return
        if not self.directory.is_dir():
            raise NotADirectoryError(f"Cannot watch {self.directory}: not a directory")

        await self.debouncer.start()
        try:
            self.event_handler = IndexingEventHandler(
                self.engine.matcher, self.debouncer, asyncio.get_running_loop()
            )
            self.observer = Observer()
            self.observer.schedule(
                self.event_handler, str(self.directory), recursive=True
            )
            self.observer.start()
        except Exception as e:
            logger.error(f"Failed to start watcher: {e}")
            await self.debouncer.stop()
            raise

        self._running = True
        logger.info(
            f"Watching {self.directory} (debounce {self.debounce_seconds}s)"
        )

    async def stop(self) -> None:
        """Stop the observer, then forward whatever is still pending."""
        if not self._running:
            return
        self._running = False

        try:
            if self.observer is not None and self.observer.is_alive():
                self.observer.stop()
                await asyncio.to_thread(self.observer.join, 5.0)
        except Exception as e:
            logger.error(f"Error stopping observer: {e}")

        await self.debouncer.stop()
        logger.info(f"Stopped watching {self.directory}")

    async def _process_batch(self, batch_event: dict[str, Any]) -> None:
        """Index settled modifications and drop deleted files from the index."""
        to_index: list[str] = []
        to_delete: list[str] = []

        for file_path in batch_event["modified_files"]:
            # Editors that save by rename can leave a modify event for a gone file
            (to_index if Path(file_path).exists() else to_delete).append(file_path)
        for file_path in batch_event["deleted_files"]:
            if Path(file_path).exists():
                logger.debug(f"Ignoring phantom deletion of existing file: {file_path}")
                to_index.append(file_path)
            else:
                to_delete.append(file_path)

        if to_index:
            logger.info(f"Auto-indexing {len(to_index)} changed files")
            outcomes = await asyncio.gather(
                *(self.engine.index_file(path) for path in to_index),
                return_exceptions=True,
            )
            for path, outcome in zip(to_index, outcomes, strict=True):
                if isinstance(outcome, Exception):
                    self.files_failed += 1
                    logger.error(f"Auto-indexing failed for {path}: {outcome}")
                elif isinstance(outcome, BaseException):
                    raise outcome
                else:
                    self.files_indexed += 1
                    logger.debug(f"Auto-indexed {path}: {outcome.value}")

        for path in to_delete:
            try:
                await self.engine.delete_file_from_index(path)
                self.files_deleted += 1
            except Exception as e:
                self.files_failed += 1
                logger.error(f"Failed to remove deleted file {path} from index: {e}")

    def get_stats(self) -> dict[str, Any]:
        return {
            "directory": str(self.directory),
            "watching": self._running,
            "files_indexed": self.files_indexed,
            "files_deleted": self.files_deleted,
            "files_failed": self.files_failed,
            "handler": self.event_handler.get_stats() if self.event_handler else {},
            "debouncer": self.debouncer.get_stats(),
        }
