"""Bounded retry with exponential backoff for remote calls."""

import random
import time
from collections.abc import Callable
from typing import Any, TypeVar

from ..indexer_logging import get_logger

T = TypeVar("T")

TRANSIENT_MARKERS = (
    "rate limit",
    "timeout",
    "timed out",
    "connection",
    "temporary",
    "unavailable",
    "503",
    "502",
    "504",
    "429",
    "internal server error",
)

# Ollama answers 500 while a model is still loading
TRANSIENT_STATUS_CODES = frozenset({429, 500, 502, 503, 504})


class RetryError(Exception):
    """Raised when an operation keeps failing until the retry policy gives up."""

    def __init__(self, attempts: int, last_error: Exception):
        self.attempts = attempts
        self.last_error = last_error
        super().__init__(f"Gave up after {attempts} attempts: {last_error}")


def is_transient_error(error: Exception) -> bool:
    """Whether an error looks like a transient network or service condition."""
    if isinstance(error, ConnectionError | TimeoutError):
        return True
    status_code = getattr(getattr(error, "response", None), "status_code", None)
    if status_code is None:
        status_code = getattr(error, "status_code", None)
    if status_code in TRANSIENT_STATUS_CODES:
        return True
    error_str = str(error).lower()
    return any(marker in error_str for marker in TRANSIENT_MARKERS)


class RetryPolicy:
    """Exponential backoff with jitter and a fixed attempt ceiling.

    Only transient errors are retried; anything else ends the loop at once.
    Either way the caller sees a ``RetryError`` carrying the number of
    attempts made and the last underlying exception.
    """

    def __init__(
        self,
        max_attempts: int = 3,
        base_delay: float = 1.0,
        max_delay: float = 30.0,
        backoff_factor: float = 2.0,
        jitter: bool = True,
        retry_on: Callable[[Exception], bool] = is_transient_error,
        name: str = "operation",
    ):
        if max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")
        self.max_attempts = max_attempts
        self.base_delay = base_delay
        self.max_delay = max_delay
        self.backoff_factor = backoff_factor
        self.jitter = jitter
        self.retry_on = retry_on
        self.name = name
        self.logger = get_logger()

    def calculate_delay(self, attempt: int) -> float:
        """Delay before the retry that follows ``attempt`` (1-based)."""
        delay = self.base_delay * (self.backoff_factor ** (attempt - 1))
        delay = min(delay, self.max_delay)

        if self.jitter:
            delay += random.uniform(0.1, 0.3) * delay
        return delay

    def should_retry(self, error: Exception, attempt: int) -> bool:
        if attempt >= self.max_attempts:
            return False
        return self.retry_on(error)

    def call(self, operation: Callable[..., T], *args: Any, **kwargs: Any) -> T:
        """Run ``operation`` until it succeeds or the policy gives up."""
        attempt = 0
        while True:
            attempt += 1
            try:
                return operation(*args, **kwargs)
            except Exception as e:
                if not self.should_retry(e, attempt):
                    raise RetryError(attempt, e) from e

                delay = self.calculate_delay(attempt)
                self.logger.warning(
                    f"{self.name} attempt {attempt} failed: {e}. "
                    f"Retrying in {delay:.1f}s...",
                    extra={"operation": self.name, "attempt": attempt},
                )
                time.sleep(delay)
