"""Type definitions for the indexing engine."""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any


class IndexOutcome(str, Enum):
    """What ``index_file`` did with a path."""

    INDEXED = "indexed"
    UNCHANGED = "unchanged"
    EXCLUDED = "excluded"


@dataclass
class BatchResult:
    """Per-file outcome of a batch indexing run.

    Attributes:
        successful: Paths that were indexed, unchanged or excluded
        failed: Paths whose indexing raised
        errors: Error message per failed path
        outcomes: Outcome per successful path
    """

    successful: list[str] = field(default_factory=list)
    failed: list[str] = field(default_factory=list)
    errors: dict[str, str] = field(default_factory=dict)
    outcomes: dict[str, IndexOutcome] = field(default_factory=dict)

    def to_dict(self) -> dict[str, list[str]]:
        return {"successful": list(self.successful), "failed": list(self.failed)}


@dataclass
class SearchResult:
    """One fresh search hit."""

    id: str | int
    score: float
    file_path: str
    payload: dict[str, Any]


@dataclass
class IndexingStatus:
    """Snapshot of the admission gate."""

    queue_size: int
    current_concurrency: int
    max_concurrency: int


@dataclass
class TemporalStats:
    """Freshness of the persisted records and purge bookkeeping.

    Attributes:
        total_records: Records in the incremental state
        fresh_records: Records still inside the freshness window
        expired_records: Records past ``expiresAt`` or outside the window
        average_age_seconds: Mean age since ``createdAt`` over dated records
        ttl_seconds: Configured freshness window
        last_purge: When the last purge pass started, if any
        next_purge_eligible: Earliest time the next purge may run
        purge_in_progress: Whether a purge pass is running now
    """

    total_records: int
    fresh_records: int
    expired_records: int
    average_age_seconds: float
    ttl_seconds: float
    last_purge: str | None
    next_purge_eligible: str
    purge_in_progress: bool
