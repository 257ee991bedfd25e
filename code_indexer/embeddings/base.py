"""Base classes and interfaces for text embedding generation."""

import time
from abc import ABC, abstractmethod
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any

import tiktoken

from ..indexer_logging import LogCategory, get_category_logger
from ..utils.retry import RetryError, RetryPolicy


@dataclass
class EmbeddingResult:
    """Result of an embedding operation."""

    text: str
    embedding: list[float]

    # Metadata
    model: str = ""
    token_count: int = 0
    processing_time: float = 0.0
    attempts: int = 1
    error: str | None = None

    @property
    def success(self) -> bool:
        """Check if embedding generation was successful."""
        return self.error is None and len(self.embedding) > 0

    @property
    def dimension(self) -> int:
        """Get the dimensionality of the embedding vector."""
        return len(self.embedding)


class TiktokenMixin:
    """Mixin for accurate token counting with tiktoken."""

    def __init__(self, *args: Any, **kwargs: Any) -> None:
        super().__init__(*args, **kwargs)
        self._tiktoken_encoder: tiktoken.Encoding | None = None
        self._init_tiktoken()

    def _init_tiktoken(self) -> None:
        """Initialize the tiktoken encoder for the model, defaulting to cl100k_base."""
        logger = get_category_logger(LogCategory.EMBEDDING)
        model = getattr(self, "model", None)
        try:
            if model:
                try:
                    self._tiktoken_encoder = tiktoken.encoding_for_model(model)
                    return
                except KeyError:
                    pass
            self._tiktoken_encoder = tiktoken.get_encoding("cl100k_base")
            logger.debug(f"Using cl100k_base encoder for {model or 'default model'}")
        except Exception as e:
            # Encoder files are fetched lazily and may be unavailable offline
            logger.warning(f"tiktoken initialization failed: {e}")
            self._tiktoken_encoder = None

    def _estimate_tokens_with_tiktoken(self, text: str) -> int:
        """Token count using tiktoken, or a character approximation without it."""
        if self._tiktoken_encoder is not None:
            return max(1, len(self._tiktoken_encoder.encode(text, disallowed_special=())))
        return max(1, len(text) // 4)


class Embedder(ABC):
    """Abstract base class for text embedding generators."""

    @abstractmethod
    def embed_text(self, text: str) -> EmbeddingResult:
        """Generate embedding for a single text."""
        pass

    @abstractmethod
    def get_model_info(self) -> dict[str, Any]:
        """Get information about the embedding model."""
        pass

    @abstractmethod
    def get_max_tokens(self) -> int:
        """Get maximum token limit for input text."""
        pass

    def truncate_text(self, text: str, max_tokens: int | None = None) -> str:
        """Truncate text to fit within token limits."""
        if max_tokens is None:
            max_tokens = self.get_max_tokens()

        if hasattr(self, "_estimate_tokens_with_tiktoken"):
            if self._estimate_tokens_with_tiktoken(text) <= max_tokens:
                return text

            # Binary search for the longest prefix within the limit
            left, right = 0, len(text)
            best_length = 0
            while left <= right:
                mid = (left + right) // 2
                if self._estimate_tokens_with_tiktoken(text[:mid]) <= max_tokens:
                    best_length = mid
                    left = mid + 1
                else:
                    right = mid - 1
            return text[:best_length]

        max_chars = max_tokens * 4
        return text if len(text) <= max_chars else text[:max_chars]


class RetryableEmbedder(Embedder):
    """Base class for embedders that retry transient provider failures."""

    def __init__(
        self,
        max_attempts: int = 3,
        base_delay: float = 1.0,
        max_delay: float = 30.0,
        backoff_factor: float = 2.0,
    ):
        self.retry_policy = RetryPolicy(
            max_attempts=max_attempts,
            base_delay=base_delay,
            max_delay=max_delay,
            backoff_factor=backoff_factor,
            name="Embedding",
        )

    def _embed_with_retry(
        self, text: str, operation: Callable[[str], list[float]]
    ) -> EmbeddingResult:
        """Run one embedding request under the retry policy.

        Failures never raise; they come back as an ``EmbeddingResult`` whose
        ``error`` holds the last message and ``attempts`` the number of tries.
        """
        start_time = time.time()
        model = getattr(self, "model", "")
        attempts = 0

        def _attempt() -> list[float]:
            nonlocal attempts
            attempts += 1
            return operation(text)

        try:
            embedding = self.retry_policy.call(_attempt)
        except RetryError as e:
            return EmbeddingResult(
                text=text,
                embedding=[],
                model=model,
                processing_time=time.time() - start_time,
                attempts=e.attempts,
                error=str(e.last_error),
            )

        token_count = 0
        if hasattr(self, "_estimate_tokens_with_tiktoken"):
            token_count = self._estimate_tokens_with_tiktoken(text)

        return EmbeddingResult(
            text=text,
            embedding=list(embedding),
            model=model,
            token_count=token_count,
            processing_time=time.time() - start_time,
            attempts=attempts,
        )
