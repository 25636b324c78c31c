"""
File discovery with simple ignore-file support.

Ignore patterns are matched with prefix, path-segment and glob rules.
Negated patterns are skipped.
"""

import fnmatch
import logging
import os
from pathlib import Path
from typing import Iterable, List, Optional

ALWAYS_EXCLUDED_DIRS = {'.git'}


def matches_pattern(path: str, pattern: str, is_dir: bool = False) -> bool:
    """Check a relative POSIX path against one ignore pattern."""
    pattern = pattern.lstrip('/')
    dir_only = pattern.endswith('/')
    pattern = pattern.rstrip('/')
    if not pattern:
        return False

    parts = path.split('/')
    dir_parts = parts if is_dir else parts[:-1]

    if dir_only:
        return path.startswith(pattern + '/') or \
            any(fnmatch.fnmatch(part, pattern) for part in dir_parts)

    if fnmatch.fnmatch(path, pattern) or fnmatch.fnmatch(parts[-1], pattern):
        return True

    if path.startswith(pattern + '/'):
        return True

    return pattern in parts


class FileScanner:
    """Finds files with selected extensions under a root directory."""

    def __init__(self, root_dir: str, extensions: Iterable[str], logger: Optional[logging.Logger] = None):
        self.root_dir = Path(root_dir)
        self.extensions = {ext.lower() for ext in extensions}
        self.ignore_patterns: List[str] = []
        self.logger = logger or logging.getLogger(__name__)

    def load_ignore_file(self, name: str = ".gitignore") -> int:
        """Load ignore patterns; a missing file is not an error."""
        ignore_path = self.root_dir / name
        if not ignore_path.is_file():
            return 0

        patterns = []
        with open(ignore_path, 'r', encoding='utf-8', errors='replace') as f:
            for line in f:
                line = line.strip()
                if line and not line.startswith('#') and not line.startswith('!'):
                    patterns.append(line)

        self.ignore_patterns.extend(patterns)
        self.logger.debug(f"Loaded {len(patterns)} ignore patterns from {ignore_path}")
        return len(patterns)

    def should_ignore(self, relative_path: str, is_dir: bool = False) -> bool:
        return any(matches_pattern(relative_path, pattern, is_dir) for pattern in self.ignore_patterns)

    def scan(self) -> List[str]:
        """Return matching relative paths in a stable, sorted walk order."""
        files = []

        for dirpath, dirnames, filenames in os.walk(self.root_dir):
            rel_dir = Path(dirpath).relative_to(self.root_dir).as_posix()
            rel_dir = '' if rel_dir == '.' else rel_dir

            kept_dirs = []
            for dirname in sorted(dirnames):
                rel = f"{rel_dir}/{dirname}" if rel_dir else dirname
                if dirname in ALWAYS_EXCLUDED_DIRS or self.should_ignore(rel, is_dir=True):
                    continue
                kept_dirs.append(dirname)
            dirnames[:] = kept_dirs

            for filename in sorted(filenames):
                if Path(filename).suffix.lower() not in self.extensions:
                    continue
                rel = f"{rel_dir}/{filename}" if rel_dir else filename
                if self.should_ignore(rel):
                    continue
                files.append(rel)

        self.logger.info(f"📁 Found {len(files)} files")
        if not files:
            self.logger.warning("⚠️ No files found! Check the root directory, extensions and ignore rules")
        return files
