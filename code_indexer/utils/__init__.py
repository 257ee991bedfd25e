"""Utility modules for code-indexer."""

from .exclusion_matcher import ExclusionDecision, ExclusionMatcher
from .ignore_parser import IgnoreParser
from .retry import RetryError, RetryPolicy, is_transient_error

__all__ = [
    "ExclusionDecision",
    "ExclusionMatcher",
    "IgnoreParser",
    "RetryError",
    "RetryPolicy",
    "is_transient_error",
]
