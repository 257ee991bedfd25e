"""Exclusion configuration schema, defaults and lenient file loading.

The JSON layout mirrors the ``indexer-exclusions.json`` files used by
earlier releases::

    {
      "exclusions": {
        "folders": {"patterns": ["node_modules/**"]},
        "files": {"patterns": ["*.log"]},
        "extensions": {"patterns": ["bak"]},
        "exact_names": {"patterns": [".DS_Store"]},
        "size_limits": {"max_file_size_mb": 50},
        "content_based": {"binary_files": true}
      },
      "inclusion_overrides": {"patterns": ["README.*"]},
      "language_specific": {"python": {"folders": [".tox/**"], "files": []}},
      "custom_rules": {"exclude_test_files": false}
    }

Any group left out of the file keeps its default.
"""

import json
import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from pydantic import BaseModel, Field, validator

from ..indexer_logging import get_logger

logger = get_logger()

DEFAULT_FOLDER_PATTERNS = [
    "node_modules/**",
    ".git/**",
    "dist/**",
    "build/**",
    "coverage/**",
    "__pycache__/**",
    ".venv/**",
    "venv/**",
    "target/**",
    "bin/**",
    "obj/**",
    "tmp/**",
    "temp/**",
    "logs/**",
]

DEFAULT_FILE_PATTERNS = [
    "*.log",
    "*.tmp",
    "*.temp",
    "*.cache",
    "*.pid",
    "*.lock",
    "*.swp",
    "*.swo",
    "*~",
    ".DS_Store",
    "Thumbs.db",
    "*.min.js",
    "*.min.css",
    "*.map",
    "package-lock.json",
    "yarn.lock",
    "*.pyc",
    "*.class",
    "*.jar",
    "*.dll",
    "*.exe",
    "*.so",
    "*.o",
    "*.obj",
]

DEFAULT_EXTENSIONS = [
    "log",
    "tmp",
    "temp",
    "cache",
    "bak",
    "backup",
    "old",
    "swp",
    "swo",
    "pid",
    "lock",
]

DEFAULT_EXACT_NAMES = [
    ".DS_Store",
    "Thumbs.db",
    "desktop.ini",
    ".gitkeep",
    ".eslintcache",
    ".stylelintcache",
    "npm-debug.log",
    "yarn-debug.log",
    "yarn-error.log",
]

DEFAULT_INCLUSION_OVERRIDES = [
    "README.*",
    "LICENSE*",
    "CHANGELOG.*",
    "CONTRIBUTING.*",
    "*.md",
    "*.txt",
    "Dockerfile*",
    "Makefile",
]

# Patterns applied when the matching custom rule is switched on
CUSTOM_RULE_PATTERNS: dict[str, list[str]] = {
    "exclude_test_files": [
        "test_*.py",
        "*_test.py",
        "*_test.go",
        "*.test.*",
        "*.spec.*",
        "tests/**",
        "__tests__/**",
    ],
    "exclude_documentation": ["docs/**", "*.md", "*.rst", "*.adoc"],
    "exclude_config_files": [
        "*.yaml",
        "*.yml",
        "*.toml",
        "*.ini",
        "*.cfg",
        "*.conf",
        ".env*",
    ],
    "exclude_sample_data": [
        "sample_data/**",
        "samples/**",
        "*.sample",
        "*.sample.*",
    ],
}

_PROBLEMATIC_CHARS = re.compile(r'[<>"|\x00-\x1f]')


class PatternGroup(BaseModel):
    """A described list of glob patterns."""

    description: str | None = Field(default=None)
    patterns: list[str] = Field(default_factory=list)

    @validator("patterns", pre=True)
    def validate_pattern_list(cls, v: Any) -> list[str]:
        if v is None:
            return []
        if not isinstance(v, list):
            raise ValueError("Patterns must be a list")
        for pattern in v:
            if not isinstance(pattern, str):
                raise ValueError("All patterns must be strings")
        return v


class SizeLimits(BaseModel):
    """Maximum file size; the byte value wins when both are given."""

    max_file_size_mb: float = Field(default=50, gt=0)
    max_file_size_bytes: int | None = Field(default=None, gt=0)

    @property
    def max_bytes(self) -> int:
        if self.max_file_size_bytes is not None:
            return self.max_file_size_bytes
        return int(self.max_file_size_mb * 1024 * 1024)


class ContentRules(BaseModel):
    """Content-based exclusion switches."""

    binary_files: bool = Field(default=True)
    empty_files: bool = Field(default=False)
    minified_files: bool = Field(default=True)


class LanguageRules(BaseModel):
    """Extra folder and file patterns for one language ecosystem."""

    folders: list[str] = Field(default_factory=list)
    files: list[str] = Field(default_factory=list)


class CustomRules(BaseModel):
    """Boolean switches for common project-content categories."""

    exclude_test_files: bool = Field(default=False)
    exclude_documentation: bool = Field(default=False)
    exclude_config_files: bool = Field(default=False)
    exclude_sample_data: bool = Field(default=True)

    def enabled_patterns(self) -> dict[str, list[str]]:
        """Map each enabled rule name to the patterns it excludes."""
        return {
            name: patterns
            for name, patterns in CUSTOM_RULE_PATTERNS.items()
            if getattr(self, name)
        }


class ExclusionRules(BaseModel):
    """The exclusion categories, each defaulting to the built-in list."""

    folders: PatternGroup = Field(
        default_factory=lambda: PatternGroup(patterns=list(DEFAULT_FOLDER_PATTERNS))
    )
    files: PatternGroup = Field(
        default_factory=lambda: PatternGroup(patterns=list(DEFAULT_FILE_PATTERNS))
    )
    extensions: PatternGroup = Field(
        default_factory=lambda: PatternGroup(patterns=list(DEFAULT_EXTENSIONS))
    )
    exact_names: PatternGroup = Field(
        default_factory=lambda: PatternGroup(patterns=list(DEFAULT_EXACT_NAMES))
    )
    size_limits: SizeLimits = Field(default_factory=SizeLimits)
    content_based: ContentRules = Field(default_factory=ContentRules)


class ExclusionConfig(BaseModel):
    """Complete exclusion rule set consumed by the exclusion matcher."""

    exclusions: ExclusionRules = Field(default_factory=ExclusionRules)
    inclusion_overrides: PatternGroup = Field(
        default_factory=lambda: PatternGroup(
            patterns=list(DEFAULT_INCLUSION_OVERRIDES)
        )
    )
    language_specific: dict[str, LanguageRules] = Field(default_factory=dict)
    custom_rules: CustomRules = Field(default_factory=CustomRules)

    @classmethod
    def default(cls) -> "ExclusionConfig":
        return cls()


@dataclass
class PatternValidation:
    """Outcome of ``validate_patterns``."""

    valid_patterns: int = 0
    invalid_patterns: list[str] = field(default_factory=list)

    @property
    def is_valid(self) -> bool:
        return not self.invalid_patterns


def validate_patterns(config: ExclusionConfig) -> PatternValidation:
    """Check every pattern for emptiness and characters that break matching."""
    result = PatternValidation()

    def check(pattern: str, kind: str) -> None:
        if not pattern or not pattern.strip():
            result.invalid_patterns.append(f"{kind}: Empty pattern")
        elif _PROBLEMATIC_CHARS.search(pattern):
            result.invalid_patterns.append(
                f'{kind}: "{pattern}" contains invalid characters'
            )
        else:
            result.valid_patterns += 1

    rules = config.exclusions
    for kind, group in (
        ("folder", rules.folders),
        ("file", rules.files),
        ("extension", rules.extensions),
        ("exact_name", rules.exact_names),
        ("inclusion_override", config.inclusion_overrides),
    ):
        for pattern in group.patterns:
            check(pattern, kind)

    for language, language_rules in config.language_specific.items():
        for pattern in language_rules.folders:
            check(pattern, f"{language}_folder")
        for pattern in language_rules.files:
            check(pattern, f"{language}_file")

    return result


def _clean_raw_config(raw: dict[str, Any]) -> dict[str, Any]:
    """Drop documentation-only and malformed language entries before validation."""
    language_specific = raw.get("language_specific")
    if isinstance(language_specific, dict):
        if isinstance(language_specific.get("description"), str):
            logger.info(
                "Removing non-schema field language_specific.description from exclusion config"
            )
            del language_specific["description"]

        for key in list(language_specific):
            if not isinstance(language_specific[key], dict):
                logger.warning(
                    f"Removing invalid language_specific entry '{key}' "
                    "(expected object with folders/files arrays)"
                )
                del language_specific[key]
    return raw


def load_exclusion_config(config_path: Path | str | None) -> ExclusionConfig:
    """Load an exclusion config file, falling back to defaults on any problem.

    A missing, unreadable, malformed or schema-invalid file never raises;
    the reason is logged and the built-in defaults are returned.
    """
    if config_path is None:
        return ExclusionConfig.default()

    path = Path(config_path)
    if not path.exists():
        logger.warning(f"Exclusion config file not found, using defaults: {path}")
        return ExclusionConfig.default()

    try:
        raw = json.loads(path.read_text(encoding="utf-8"))
    except OSError as e:
        logger.error(f"Failed to read exclusion config {path}: {e}")
        return ExclusionConfig.default()
    except json.JSONDecodeError as e:
        logger.error(f"Invalid JSON in exclusion config {path}: {e}")
        return ExclusionConfig.default()

    if not isinstance(raw, dict):
        logger.error(f"Exclusion config {path} must contain a JSON object")
        return ExclusionConfig.default()

    try:
        config = ExclusionConfig(**_clean_raw_config(raw))
    except ValueError as e:
        logger.error(f"Invalid exclusion configuration schema in {path}: {e}")
        return ExclusionConfig.default()

    validation = validate_patterns(config)
    if not validation.is_valid:
        logger.warning(
            f"Some exclusion patterns in {path} are invalid and will be ignored: "
            f"{validation.invalid_patterns}"
        )

    logger.info(
        f"Loaded exclusion configuration from {path} "
        f"({validation.valid_patterns} valid patterns)"
    )
    return config
