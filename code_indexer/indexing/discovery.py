"""Recursive discovery of indexable files."""

import os
from pathlib import Path

from ..config.models import STATE_FILE_NAME, STATS_FILE_NAME
from ..indexer_logging import LogCategory, get_category_logger
from ..utils.exclusion_matcher import ExclusionMatcher

logger = get_category_logger(LogCategory.INDEXER)

# The engine's own bookkeeping is never indexed
INTERNAL_FILE_NAMES = frozenset({STATE_FILE_NAME, STATS_FILE_NAME})


def is_internal_file(path: Path | str) -> bool:
    name = Path(path).name
    return name in INTERNAL_FILE_NAMES or (
        name.endswith(".tmp") and name.startswith(".indexer-")
    )


def discover_files(directory: Path | str, matcher: ExclusionMatcher) -> list[str]:
    """Walk ``directory`` and return absolute paths of non-excluded files.

    Excluded directories are skipped without descending into them. When
    inclusion overrides exist an override may still rescue a file deep
    inside an excluded folder, so such subtrees are walked but their files
    are only tested against the override patterns.
    """
    root = Path(directory).resolve()
    if not root.is_dir():
        logger.warning(f"Not a directory, nothing to discover: {root}")
        return []

    prune = not matcher.has_inclusion_overrides
    # Directories excluded by folder rules but kept for override matching
    excluded_dirs: set[Path] = set()
    found: list[str] = []
    excluded = 0

    for dirpath, dirnames, filenames in os.walk(root, onerror=_log_walk_error):
        current = Path(dirpath)
        inside_excluded = current in excluded_dirs
        kept = []
        for name in sorted(dirnames):
            child = current / name
            if inside_excluded:
                excluded_dirs.add(child)
            elif matcher.is_directory_excluded(child):
                if prune:
                    continue
                excluded_dirs.add(child)
            kept.append(name)
        dirnames[:] = kept

        for name in sorted(filenames):
            file_path = current / name
            if inside_excluded and not matcher.matches_inclusion_override(file_path):
                excluded += 1
                continue
            if is_internal_file(file_path) or not file_path.is_file():
                continue
            if matcher.is_excluded(file_path):
                excluded += 1
                continue
            found.append(str(file_path))

    logger.debug(f"Found {len(found)} files in {root} ({excluded} excluded)")
    return found


def _log_walk_error(error: OSError) -> None:
    logger.warning(f"Cannot read directory during discovery: {error}")
