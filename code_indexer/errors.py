"""Structured error types for the indexing engine and its adapters.

Every failure the engine surfaces derives from ``IndexerError`` and carries
a category, a human-readable message and an optional recovery suggestion,
so the CLI can render any of them the same way.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any


class ErrorCategory(Enum):
    """Categories of indexer errors for organization and handling."""

    FILE_SYSTEM = "file_system"  # Missing files, permissions
    EMBEDDING = "embedding"  # Embedding provider failures
    STORAGE = "storage"  # Vector store failures
    VALIDATION = "validation"  # Missing collection, bad dimensions
    STATE = "state"  # Persisted state I/O
    INDEXING = "indexing"  # Per-file indexing failures
    CONFIGURATION = "configuration"  # Invalid settings


@dataclass
class IndexerError(Exception):
    """Base class for structured indexer errors.

    Attributes:
        category: Error category for grouping.
        message: Human-readable error message.
        suggestion: Optional actionable recovery suggestion.
        details: Optional additional details dict.
        exit_code: Exit code to use when this error terminates the CLI.
    """

    category: ErrorCategory
    message: str
    suggestion: str | None = None
    details: dict[str, Any] | None = field(default_factory=dict)
    exit_code: int = 1

    def __post_init__(self) -> None:
        super().__init__(self.message)

    def format(self, use_color: bool = True) -> str:
        """Format the error for display, with suggestion and details."""
        red = "\033[91m" if use_color else ""
        cyan = "\033[96m" if use_color else ""
        dim = "\033[2m" if use_color else ""
        reset = "\033[0m" if use_color else ""

        lines = [f"{red}Error:{reset} {self.message}"]

        if self.suggestion:
            lines.append(f"{cyan}Suggestion:{reset} {self.suggestion}")

        if self.details:
            for key, value in self.details.items():
                lines.append(f"{dim}  {key}: {value}{reset}")

        return "\n".join(lines)

    def __str__(self) -> str:
        return self.message


class NotFoundError(IndexerError):
    """The path does not resolve to an existing regular file."""

    def __init__(self, path: str):
        self.path = path
        super().__init__(
            category=ErrorCategory.FILE_SYSTEM,
            message=f"File not found: {path}",
            suggestion="Verify the path exists and is a regular file",
            details={"path": path},
        )


class RetryExhaustedError(IndexerError):
    """Base for failures surfaced after the retry ceiling is reached."""

    def __init__(
        self,
        category: ErrorCategory,
        message: str,
        attempts: int,
        last_error: str | None = None,
        suggestion: str | None = None,
    ):
        self.attempts = attempts
        self.last_error = last_error
        super().__init__(
            category=category,
            message=message,
            suggestion=suggestion,
            details={"attempts": attempts, "last_error": last_error},
        )


class EmbeddingFailure(RetryExhaustedError):
    """The embedding provider failed after all retries."""

    def __init__(self, attempts: int, last_error: str | None = None):
        super().__init__(
            category=ErrorCategory.EMBEDDING,
            message=(
                f"Failed to generate embedding after {attempts} attempts: "
                f"{last_error or 'unknown error'}"
            ),
            attempts=attempts,
            last_error=last_error,
            suggestion="Check the embedding provider is reachable and the API key is valid",
        )


class StoreFailure(RetryExhaustedError):
    """The vector store failed after all retries."""

    def __init__(
        self, operation: str, attempts: int, last_error: str | None = None
    ):
        self.operation = operation
        super().__init__(
            category=ErrorCategory.STORAGE,
            message=(
                f"Failed to {operation} in Qdrant after {attempts} attempts: "
                f"{last_error or 'unknown error'}"
            ),
            attempts=attempts,
            last_error=last_error,
            suggestion=(
                "Ensure Qdrant is running. Start with: "
                "docker run -p 6333:6333 qdrant/qdrant"
            ),
        )


class ValidationFailure(IndexerError):
    """The index or its configuration is not usable."""

    def __init__(self, message: str, suggestion: str | None = None):
        super().__init__(
            category=ErrorCategory.VALIDATION,
            message=message,
            suggestion=suggestion,
        )


class IndexNotReadyError(ValidationFailure):
    """The collection backing the index does not exist."""

    def __init__(self, collection_name: str, reason: str | None = None):
        self.collection_name = collection_name
        message = f"Index validation failed: collection '{collection_name}' not found"
        if reason:
            message = f"{message} ({reason})"
        super().__init__(
            message=message,
            suggestion="Run 'code-indexer index' or 'code-indexer reindex' first",
        )
        self.details = {"collection": collection_name}


class CollectionNotFoundError(IndexerError):
    """Raised by the store when collection introspection hits a missing collection."""

    def __init__(self, collection_name: str):
        self.collection_name = collection_name
        super().__init__(
            category=ErrorCategory.VALIDATION,
            message=f"Collection not found: {collection_name}",
            details={"collection": collection_name},
        )


class StateIOError(IndexerError):
    """Persisted state could not be read or written."""

    def __init__(self, path: str, reason: str):
        self.path = path
        super().__init__(
            category=ErrorCategory.STATE,
            message=f"State file {path} unusable: {reason}",
            details={"path": path},
        )


class FileIndexingError(IndexerError):
    """A single file failed to index; wraps the root cause."""

    def __init__(self, file_path: str, cause: BaseException):
        self.file_path = file_path
        self.cause = cause
        super().__init__(
            category=ErrorCategory.INDEXING,
            message=f"Failed to index file {file_path}: {cause}",
            details={"file": file_path},
        )


class ConfigurationError(IndexerError):
    """Error in configuration file or settings."""

    def __init__(self, message: str, config_file: str | None = None):
        super().__init__(
            category=ErrorCategory.CONFIGURATION,
            message=message,
            suggestion="Check your configuration file syntax and required fields",
            details={"config_file": config_file} if config_file else None,
        )


def handle_exception(
    error: Exception, use_color: bool = True, verbose: bool = False
) -> tuple[str, int]:
    """Convert any exception to formatted output and exit code."""
    import traceback

    if isinstance(error, IndexerError):
        message = error.format(use_color=use_color)
        exit_code = error.exit_code
    else:
        red = "\033[91m" if use_color else ""
        reset = "\033[0m" if use_color else ""
        message = f"{red}Error:{reset} {error}"
        exit_code = 1

    if verbose:
        message += "\n\nTraceback:\n" + traceback.format_exc()

    return message, exit_code
