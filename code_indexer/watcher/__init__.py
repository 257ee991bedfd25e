"""File watching and automatic re-indexing."""

from .debounce import AsyncDebouncer
from .handler import IndexingEventHandler, Watcher

__all__ = ["AsyncDebouncer", "IndexingEventHandler", "Watcher"]
