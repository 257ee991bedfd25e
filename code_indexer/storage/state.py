"""Persistent per-file indexing state and aggregate statistics.

Two JSON documents live under the project root:

    .indexer-state.json     {path: {checksum, lastModified, indexed, createdAt, expiresAt}}
    .indexer-metadata.json  {totalFiles, indexedFiles, failedFiles, totalSize,
                             indexedSize, lastIndexed}

Both are rewritten whole on every save through a temp file and rename.
Unreadable or corrupt files are logged and treated as empty; failed writes
are logged and reported through the return value. Neither raises.
"""

import contextlib
import json
from collections.abc import Iterator
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path
from typing import Any

from ..errors import StateIOError
from ..indexer_logging import LogCategory, get_category_logger
from ..utils.timestamps import parse_iso

logger = get_category_logger(LogCategory.STORAGE)


def atomic_json_write(file_path: Path, data: Any) -> None:
    """Atomically write JSON data to a file using temp file + rename.

    Raises:
        StateIOError: If the file cannot be written.
    """
    temp_file = file_path.with_suffix(".tmp")
    try:
        file_path.parent.mkdir(parents=True, exist_ok=True)
        with open(temp_file, "w", encoding="utf-8") as f:
            json.dump(data, f, indent=2)
        temp_file.replace(file_path)
    except OSError as e:
        with contextlib.suppress(OSError):
            temp_file.unlink(missing_ok=True)
        raise StateIOError(str(file_path), str(e)) from e


def read_json_object(file_path: Path) -> dict[str, Any]:
    """Read a JSON object from disk.

    Raises:
        StateIOError: If the file is unreadable or not a JSON object.
    """
    try:
        data = json.loads(file_path.read_text(encoding="utf-8"))
    except (OSError, json.JSONDecodeError) as e:
        raise StateIOError(str(file_path), str(e)) from e
    if not isinstance(data, dict):
        raise StateIOError(str(file_path), "expected a JSON object")
    return data


@dataclass
class FileRecord:
    """Last successful indexing of one file."""

    checksum: str
    last_modified: str
    indexed_at: str
    created_at: str | None = None
    expires_at: str | None = None

    def to_dict(self) -> dict[str, Any]:
        data = {
            "checksum": self.checksum,
            "lastModified": self.last_modified,
            "indexed": self.indexed_at,
        }
        if self.created_at is not None:
            data["createdAt"] = self.created_at
        if self.expires_at is not None:
            data["expiresAt"] = self.expires_at
        return data

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "FileRecord":
        return cls(
            checksum=str(data.get("checksum", "")),
            last_modified=str(data.get("lastModified", "")),
            indexed_at=str(data.get("indexed", "")),
            created_at=data.get("createdAt"),
            expires_at=data.get("expiresAt"),
        )

    def is_expired(self, now: datetime) -> bool:
        expires_at = parse_iso(self.expires_at)
        return expires_at is not None and expires_at < now


class FileStateStore:
    """Durable map from absolute file path to its ``FileRecord``."""

    def __init__(self, state_file: Path | str):
        self.state_file = Path(state_file)
        self._records: dict[str, FileRecord] = {}
        self.load()

    def load(self) -> None:
        """Replace in-memory records with the file contents, if any."""
        self._records = {}
        if not self.state_file.exists():
            return

        try:
            data = read_json_object(self.state_file)
        except StateIOError as e:
            logger.warning(f"{e}; starting from empty incremental state")
            return

        for path, raw in data.items():
            if isinstance(raw, dict):
                self._records[path] = FileRecord.from_dict(raw)
            else:
                logger.debug(f"Dropping malformed state entry for {path}")
        logger.debug(f"Loaded incremental state for {len(self._records)} files")

    def save(self) -> bool:
        """Write all records to disk; returns False (and logs) on failure."""
        try:
            atomic_json_write(
                self.state_file,
                {path: record.to_dict() for path, record in self._records.items()},
            )
        except StateIOError as e:
            logger.error(f"Failed to save incremental state: {e}")
            return False
        return True

    def get(self, path: str) -> FileRecord | None:
        return self._records.get(path)

    def set(self, path: str, record: FileRecord) -> None:
        self._records[path] = record

    def remove(self, path: str) -> bool:
        return self._records.pop(path, None) is not None

    def clear(self) -> None:
        """Drop every record and delete the state file."""
        self._records = {}
        try:
            self.state_file.unlink(missing_ok=True)
        except OSError as e:
            logger.warning(f"Failed to delete state file {self.state_file}: {e}")

    def needs_indexing(self, path: str, last_modified: str) -> bool:
        """True unless a record exists whose modification time matches."""
        record = self._records.get(path)
        return record is None or record.last_modified != last_modified

    def expired_paths(self, now: datetime) -> list[str]:
        return [path for path, record in self._records.items() if record.is_expired(now)]

    def remove_expired(self, now: datetime) -> list[str]:
        expired = self.expired_paths(now)
        for path in expired:
            del self._records[path]
        return expired

    def items(self) -> Iterator[tuple[str, FileRecord]]:
        return iter(list(self._records.items()))

    def __len__(self) -> int:
        return len(self._records)

    def __contains__(self, path: object) -> bool:
        return path in self._records


@dataclass
class IndexStats:
    """Aggregate counters for the most recent batch."""

    total_files: int = 0
    indexed_files: int = 0
    failed_files: int = 0
    total_size: int = 0
    indexed_size: int = 0
    last_indexed: str | None = None

    def reset(self, total_files: int = 0, total_size: int = 0) -> None:
        self.total_files = total_files
        self.indexed_files = 0
        self.failed_files = 0
        self.total_size = total_size
        self.indexed_size = 0

    def to_dict(self) -> dict[str, Any]:
        return {
            "totalFiles": self.total_files,
            "indexedFiles": self.indexed_files,
            "failedFiles": self.failed_files,
            "totalSize": self.total_size,
            "indexedSize": self.indexed_size,
            "lastIndexed": self.last_indexed,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "IndexStats":
        return cls(
            total_files=int(data.get("totalFiles", 0)),
            indexed_files=int(data.get("indexedFiles", 0)),
            failed_files=int(data.get("failedFiles", 0)),
            total_size=int(data.get("totalSize", 0)),
            indexed_size=int(data.get("indexedSize", 0)),
            last_indexed=data.get("lastIndexed"),
        )


class StatsStore:
    """Best-effort persistence of ``IndexStats``."""

    def __init__(self, stats_file: Path | str):
        self.stats_file = Path(stats_file)

    def load(self) -> IndexStats:
        if not self.stats_file.exists():
            return IndexStats()
        try:
            return IndexStats.from_dict(read_json_object(self.stats_file))
        except (StateIOError, TypeError, ValueError) as e:
            logger.warning(f"Failed to load index stats: {e}; starting from zero")
            return IndexStats()

    def save(self, stats: IndexStats) -> bool:
        try:
            atomic_json_write(self.stats_file, stats.to_dict())
        except StateIOError as e:
            logger.error(f"Failed to save index stats: {e}")
            return False
        return True
