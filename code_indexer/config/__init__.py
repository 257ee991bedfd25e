"""Configuration package.

Configuration Precedence (highest to lowest):
1. Explicit overrides
2. Environment variables
3. JSON config file
4. Defaults
"""

from .config_loader import load_config, parse_bool
from .exclusions import (
    ExclusionConfig,
    PatternValidation,
    load_exclusion_config,
    validate_patterns,
)
from .models import IndexerConfig

__all__ = [
    "IndexerConfig",
    "load_config",
    "parse_bool",
    "ExclusionConfig",
    "PatternValidation",
    "load_exclusion_config",
    "validate_patterns",
]
