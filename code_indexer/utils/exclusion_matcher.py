"""Layered exclusion decisions for candidate files.

Rules are evaluated in a fixed order and the first hit wins:

1. Inclusion overrides (force-include, checked first so they beat everything)
2. Folder patterns
3. File patterns
4. Extensions
5. Exact names
6. Language-specific folder/file patterns
7. Project ``.indexerignore`` file
8. Custom rules (tests, docs, config files, sample data)
9. Size limit
10. Content checks (empty, binary, minified)
"""

from dataclasses import dataclass
from pathlib import Path

from ..config.exclusions import ExclusionConfig, load_exclusion_config
from ..indexer_logging import LogCategory, get_category_logger
from .ignore_parser import IgnoreParser

logger = get_category_logger(LogCategory.INDEXER)

IGNORE_FILE_NAME = ".indexerignore"
BINARY_SAMPLE_BYTES = 8192
MINIFIED_SAMPLE_BYTES = 32768
MINIFIED_AVG_LINE_LENGTH = 500
MINIFIABLE_EXTENSIONS = {".js", ".mjs", ".cjs", ".css"}


@dataclass(frozen=True)
class ExclusionDecision:
    """Whether a path is excluded and which rule decided it."""

    excluded: bool
    category: str | None = None
    pattern: str | None = None

    @property
    def reason(self) -> str:
        if self.category is None:
            return "no rule matched"
        if self.pattern is None:
            return self.category
        return f"{self.category}: {self.pattern}"


INCLUDED = ExclusionDecision(excluded=False)


class ExclusionMatcher:
    """Answers "should this path be skipped?" for one project tree."""

    def __init__(
        self,
        project_root: Path | str,
        config: ExclusionConfig | None = None,
        config_path: Path | str | None = None,
        use_ignore_file: bool = True,
    ):
        self.project_root = Path(project_root).resolve()
        self.config_path = Path(config_path) if config_path else None
        self.use_ignore_file = use_ignore_file
        if config is None:
            config = load_exclusion_config(self.config_path)
        self._apply(config)

    def _parser(self, patterns: list[str]) -> IgnoreParser:
        parser = IgnoreParser(self.project_root, anchor_patterns=True)
        parser.add_patterns(patterns)
        return parser

    def _apply(self, config: ExclusionConfig) -> None:
        self.config = config
        rules = config.exclusions

        self._overrides = self._parser(config.inclusion_overrides.patterns)
        self._folders = self._parser(rules.folders.patterns)
        self._files = self._parser(rules.files.patterns)
        self._extensions = {
            ext.lower().lstrip(".") for ext in rules.extensions.patterns if ext.strip()
        }
        self._exact_names = set(rules.exact_names.patterns)
        self._languages = {
            language: (
                self._parser(language_rules.folders),
                self._parser(language_rules.files),
            )
            for language, language_rules in config.language_specific.items()
        }
        self._custom = {
            name: self._parser(patterns)
            for name, patterns in config.custom_rules.enabled_patterns().items()
        }

        self._ignore_file = IgnoreParser(self.project_root)
        if self.use_ignore_file:
            count = self._ignore_file.load_file(IGNORE_FILE_NAME)
            if count:
                logger.debug(f"Loaded {count} patterns from {IGNORE_FILE_NAME}")

    def reload(self) -> None:
        """Re-read the exclusion config file and the project ignore file."""
        if self.config_path is None:
            logger.warning("No exclusion config path set, reloading ignore file only")
            self._apply(self.config)
            return
        self._apply(load_exclusion_config(self.config_path))
        logger.info("Exclusion configuration reloaded")

    @property
    def has_inclusion_overrides(self) -> bool:
        return self._overrides.pattern_count > 0

    def matches_inclusion_override(self, path: Path | str) -> bool:
        """Pattern-only check against the inclusion overrides."""
        return self._overrides.matches(self._absolute(path))

    def _absolute(self, path: Path | str) -> Path:
        path = Path(path)
        if not path.is_absolute():
            path = self.project_root / path
        return path.resolve()

    def is_excluded(self, path: Path | str) -> bool:
        return self.explain(path).excluded

    def explain(self, path: Path | str) -> ExclusionDecision:
        """Evaluate every rule layer for a file and report the deciding rule."""
        path = self._absolute(path)

        pattern = self._overrides.get_matching_pattern(path)
        if pattern is not None:
            return ExclusionDecision(False, "inclusion_override", pattern)

        decision = self._pattern_decision(path)
        if decision is not None:
            return decision

        return self._file_decision(path)

    def is_directory_excluded(self, path: Path | str) -> bool:
        """Whether every file below a directory is excluded by folder rules."""
        path = self._absolute(path)
        parsers = [self._folders]
        parsers.extend(folders for folders, _ in self._languages.values())
        parsers.extend(self._custom.values())
        if self.use_ignore_file:
            parsers.append(self._ignore_file)
        return any(parser.matches(path, is_dir=True) for parser in parsers)

    def _pattern_decision(self, path: Path) -> ExclusionDecision | None:
        pattern = self._folders.get_matching_pattern(path)
        if pattern is not None:
            return ExclusionDecision(True, "folder", pattern)

        pattern = self._files.get_matching_pattern(path)
        if pattern is not None:
            return ExclusionDecision(True, "file", pattern)

        suffix = path.suffix.lower().lstrip(".")
        if suffix and suffix in self._extensions:
            return ExclusionDecision(True, "extension", suffix)

        if path.name in self._exact_names:
            return ExclusionDecision(True, "exact_name", path.name)

        for language, (folders, files) in self._languages.items():
            pattern = folders.get_matching_pattern(path) or files.get_matching_pattern(
                path
            )
            if pattern is not None:
                return ExclusionDecision(True, f"language:{language}", pattern)

        if self.use_ignore_file and self._ignore_file.matches(path):
            return ExclusionDecision(
                True, "ignore_file", self._ignore_file.get_matching_pattern(path)
            )

        for rule, parser in self._custom.items():
            pattern = parser.get_matching_pattern(path)
            if pattern is not None:
                return ExclusionDecision(True, f"custom:{rule}", pattern)

        return None

    def _file_decision(self, path: Path) -> ExclusionDecision:
        try:
            size = path.stat().st_size
        except OSError:
            # Vanished or unreadable files are reported by the caller
            return INCLUDED

        rules = self.config.exclusions
        if size > rules.size_limits.max_bytes:
            return ExclusionDecision(True, "size", f"> {rules.size_limits.max_bytes} bytes")

        content = rules.content_based
        if size == 0:
            if content.empty_files:
                return ExclusionDecision(True, "empty")
            return INCLUDED

        if content.binary_files and self._looks_binary(path):
            return ExclusionDecision(True, "binary")

        if content.minified_files and self._looks_minified(path):
            return ExclusionDecision(True, "minified")

        return INCLUDED

    @staticmethod
    def _looks_binary(path: Path) -> bool:
        try:
            with open(path, "rb") as f:
                return b"\x00" in f.read(BINARY_SAMPLE_BYTES)
        except OSError:
            return False

    @staticmethod
    def _looks_minified(path: Path) -> bool:
        if ".min." in path.name:
            return True
        if path.suffix.lower() not in MINIFIABLE_EXTENSIONS:
            return False
        try:
            with open(path, "rb") as f:
                sample = f.read(MINIFIED_SAMPLE_BYTES)
        except OSError:
            return False
        lines = sample.count(b"\n") + 1
        return len(sample) / lines > MINIFIED_AVG_LINE_LENGTH
