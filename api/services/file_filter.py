"""File filtering policy for backfill walks

Following Sandi Metz principles:
- Single Responsibility: Only handles file exclusion logic
- Tell, Don't Ask: Policy makes decisions, doesn't expose internals
"""
import fnmatch
from pathlib import Path
from typing import Iterable, List, Optional


class FileFilterPolicy:
    """Determines which files a backfill walk skips

    Hidden files, VCS/tooling directories and caller-configured
    exclusion prefixes are never catalogued.
    """

    EXCLUDED_DIRS = {
        '.git', '.svn', '.hg',
        'node_modules', '__pycache__', '.pytest_cache',
        '.venv', 'venv',
        '.cache', '.mypy_cache', '.ruff_cache',
        '.idea', '.vscode',
    }

    EXCLUDED_FILE_PATTERNS = [
        '.ds_store', 'thumbs.db',
        '*.pyc', '*.pyo',
        '*.tmp', '*.swp',
    ]

    def __init__(self, excluded_prefixes: Iterable[str] = ()):
        self.excluded_prefixes: List[Path] = [Path(p).expanduser() for p in excluded_prefixes]

    def should_exclude(self, path: Path, base: Optional[Path] = None) -> bool:
        """Determine if file should be excluded

        Name rules apply to the part of path below base, so a hidden
        ancestor of the walk root does not exclude everything.
        """
        relative = path.relative_to(base) if base is not None else path
        return (
            self._is_hidden(relative) or
            self._is_in_excluded_directory(relative) or
            self._matches_excluded_pattern(relative) or
            self._is_under_excluded_prefix(path)
        )

    def _is_hidden(self, path: Path) -> bool:
        return any(part.startswith('.') for part in path.parts)

    def _is_in_excluded_directory(self, path: Path) -> bool:
        return any(part in self.EXCLUDED_DIRS for part in path.parts)

    def _matches_excluded_pattern(self, path: Path) -> bool:
        name = path.name.lower()
        return any(fnmatch.fnmatch(name, pattern) for pattern in self.EXCLUDED_FILE_PATTERNS)

    def _is_under_excluded_prefix(self, path: Path) -> bool:
        return any(prefix == path or prefix in path.parents for prefix in self.excluded_prefixes)
