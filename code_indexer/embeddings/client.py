"""Async embedding facade used by the indexing engine."""

import asyncio

import numpy as np

from ..errors import EmbeddingFailure, ValidationFailure
from ..indexer_logging import LogCategory, get_category_logger
from .base import Embedder

logger = get_category_logger(LogCategory.EMBEDDING)


class EmbeddingClient:
    """Runs a blocking embedder off the event loop and fixes vector size.

    Vectors that come back longer or shorter than ``dimensions`` are
    truncated or zero-padded so they fit the collection, unless
    ``strict_dimensions`` is set, in which case a mismatch is an error.
    """

    def __init__(
        self,
        embedder: Embedder,
        dimensions: int,
        strict_dimensions: bool = False,
        normalize: bool = False,
    ):
        self.embedder = embedder
        self.dimensions = dimensions
        self.strict_dimensions = strict_dimensions
        self.normalize = normalize
        self._warned_sizes: set[int] = set()

    async def embed(self, text: str) -> list[float]:
        """Embed text, raising ``EmbeddingFailure`` once retries are exhausted."""
        result = await asyncio.to_thread(self.embedder.embed_text, text)
        if not result.success:
            raise EmbeddingFailure(
                result.attempts, result.error or "provider returned an empty vector"
            )
        return self.reconcile(result.embedding)

    def reconcile(self, embedding: list[float]) -> list[float]:
        vector = np.asarray(embedding, dtype=np.float64)
        size = vector.shape[0]

        if size != self.dimensions:
            if self.strict_dimensions:
                raise ValidationFailure(
                    f"Embedding has {size} dimensions, collection expects {self.dimensions}",
                    suggestion="Set EMBEDDING_DIMENSIONS to match the embedding model",
                )
            if size not in self._warned_sizes:
                self._warned_sizes.add(size)
                logger.warning(
                    f"Embedding dimension mismatch: got {size}, expected "
                    f"{self.dimensions}; vectors will be "
                    f"{'truncated' if size > self.dimensions else 'zero-padded'}"
                )
            if size > self.dimensions:
                vector = vector[: self.dimensions]
            else:
                vector = np.pad(vector, (0, self.dimensions - size))

        if self.normalize:
            norm = np.linalg.norm(vector)
            if norm > 0:
                vector = vector / norm

        return vector.tolist()
