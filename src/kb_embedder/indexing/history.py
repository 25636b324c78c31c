"""Recent commit messages for files, read through the git command line."""

import logging
import subprocess
from pathlib import Path
from typing import List, Optional


class HistoryError(Exception):
    """Raised when git cannot be run or the repository cannot be opened."""


class GitHistory:
    """Reads per-file commit history from a git working tree."""

    def __init__(self, repo_path: str, logger: Optional[logging.Logger] = None):
        self.root = Path(repo_path).resolve()
        self.logger = logger or logging.getLogger(__name__)

        if not self.is_repository(str(self.root)):
            raise HistoryError(f"{self.root} is not a git repository")

    @staticmethod
    def is_repository(path: str) -> bool:
        try:
            result = subprocess.run(
                ['git', 'rev-parse', '--git-dir'],
                cwd=path,
                capture_output=True,
                text=True,
            )
        except OSError:
            return False
        return result.returncode == 0

    def last_commit_messages(self, file_path: str, n: int) -> List[str]:
        """Subjects of the last ``n`` commits touching ``file_path``, newest first."""
        path = Path(file_path)
        if path.is_absolute():
            try:
                path = path.resolve().relative_to(self.root)
            except ValueError as e:
                raise HistoryError(f"{file_path} is outside {self.root}") from e

        try:
            result = subprocess.run(
                ['git', 'log', '-n', str(n), '--format=%s', '--', path.as_posix()],
                cwd=str(self.root),
                capture_output=True,
                text=True,
            )
        except OSError as e:
            raise HistoryError(f"failed to run git: {e}") from e

        if result.returncode != 0:
            raise HistoryError(f"git log failed: {result.stderr.strip()}")

        return [line.strip() for line in result.stdout.splitlines() if line.strip()]
