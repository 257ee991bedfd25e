"""Async debouncing for file change events."""

import asyncio
import time
from collections.abc import Awaitable, Callable
from typing import Any

from ..indexer_logging import LogCategory, get_category_logger

logger = get_category_logger(LogCategory.WATCHER)

BatchCallback = Callable[[dict[str, Any]], Awaitable[None]]


class AsyncDebouncer:
    """Async debouncer with coalescing for file system events.

    A modified file is forwarded once no new event for it has arrived for
    ``delay`` seconds. Deletions are forwarded with the next batch and
    cancel any pending modification of the same path.
    """

    def __init__(self, delay: float = 1.0, max_batch_size: int = 100):
        self.delay = delay
        self.max_batch_size = max_batch_size

        # Track pending operations
        self._pending_files: dict[str, float] = {}  # file_path -> last event time
        self._deleted_files: set[str] = set()
        self._task: asyncio.Task[Any] | None = None
        self._callback: BatchCallback | None = None

        self._running = False
        # None wakes the loop up for shutdown
        self._queue: asyncio.Queue[dict[str, Any] | None] = asyncio.Queue()

    @property
    def is_running(self) -> bool:
        return self._running

    def set_callback(self, callback: BatchCallback) -> None:
        """Set the coroutine that receives each batch of settled events."""
        self._callback = callback

    async def start(self) -> None:
        """Start the debouncer task."""
        if self._running:
            return

        self._running = True
        self._task = asyncio.create_task(self._process_events(), name="debouncer")

    async def stop(self) -> None:
        """Stop the debouncer and forward everything still pending."""
        if not self._running:
            return
        self._running = False

        if self._task:
            # Let a batch that is already being forwarded finish
            self._queue.put_nowait(None)
            await self._task
            self._task = None

        while not self._queue.empty():
            event = self._queue.get_nowait()
            if event is not None:
                self._handle_event(event)
        await self._flush_pending(force=True)

    def submit(self, file_path: str, event_type: str) -> None:
        """Queue an event without waiting; must run on the loop thread."""
        self._queue.put_nowait(
            {
                "file_path": file_path,
                "event_type": event_type,
                "timestamp": time.monotonic(),
            }
        )

    async def add_file_event(self, file_path: str, event_type: str) -> None:
        """Add a file change event to the debounce queue."""
        self.submit(file_path, event_type)

    def _next_timeout(self) -> float | None:
        if not self._pending_files:
            return None
        oldest = min(self._pending_files.values())
        return max(0.0, oldest + self.delay - time.monotonic())

    async def _process_events(self) -> None:
        """Main event processing loop."""
        while self._running:
            try:
                event = await asyncio.wait_for(
                    self._queue.get(), timeout=self._next_timeout()
                )
                if event is None:
                    break
                self._handle_event(event)

                if len(self._pending_files) >= self.max_batch_size:
                    await self._flush_pending(force=True)
                    continue
            except TimeoutError:
                pass

            try:
                await self._flush_pending()
            except Exception as e:
                logger.error(f"Error in debouncer: {e}")

    def _handle_event(self, event: dict[str, Any]) -> None:
        file_path = event["file_path"]

        if event["event_type"] == "deleted":
            self._deleted_files.add(file_path)
            self._pending_files.pop(file_path, None)
        else:
            self._pending_files[file_path] = event["timestamp"]
            self._deleted_files.discard(file_path)

    async def _flush_pending(self, force: bool = False) -> None:
        """Forward settled modifications and all deletions to the callback."""
        if self._callback is None:
            return

        current_time = time.monotonic()
        stable_files = [
            path
            for path, timestamp in self._pending_files.items()
            if force or current_time - timestamp >= self.delay
        ]
        for path in stable_files:
            del self._pending_files[path]

        if not stable_files and not self._deleted_files:
            return

        batch_event = {
            "modified_files": sorted(stable_files),
            "deleted_files": sorted(self._deleted_files),
            "timestamp": time.time(),
        }
        self._deleted_files.clear()

        try:
            await self._callback(batch_event)
        except Exception as e:
            logger.error(f"Error in debouncer callback: {e}")

    def get_stats(self) -> dict[str, Any]:
        """Get debouncer statistics."""
        return {
            "running": self._running,
            "pending_files": len(self._pending_files),
            "pending_deletions": len(self._deleted_files),
            "queue_size": self._queue.qsize(),
            "delay": self.delay,
            "max_batch_size": self.max_batch_size,
        }
