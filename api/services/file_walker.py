from pathlib import Path

from services.file_filter import FileFilterPolicy


class FileWalker:
    """Walks one allowlisted root for backfill

    - Dependency Injection: filter_policy injected vs. hardcoded
    - Single Responsibility: Only handles directory walking
    """

    def __init__(self, base_path: Path, filter_policy: FileFilterPolicy = None):
        self.base_path = Path(base_path).expanduser()
        self.filter_policy = filter_policy or FileFilterPolicy()

    def walk(self):
        """Yield files that pass the filter policy"""
        if not self.base_path.exists():
            return
        yield from self._walk_files()

    def _walk_files(self):
        for file_path in self.base_path.rglob("*"):
            if self._is_candidate(file_path):
                yield file_path

    def _is_candidate(self, path: Path) -> bool:
        if not path.is_file():
            return False
        return not self.filter_policy.should_exclude(path, self.base_path)
