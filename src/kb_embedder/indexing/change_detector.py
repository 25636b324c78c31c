"""
Content-hash change detection.

Decides which scanned files need extraction by comparing the MD5 of their
bytes with the fingerprint recorded on the previous run. Blocks of a changed
file are deleted before its new fingerprint is written, so an interrupted run
re-triggers extraction on the next one.

A file whose blocks could not all be stored keeps its fingerprint behind a
``retry:`` prefix. If the bytes still match, the next run re-extracts it and
keeps the rows already stored; if they differ, it is handled as changed.
"""

import hashlib
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Iterable, List, Optional

from .storage import BlockStore, StorageError

RETRY_PREFIX = "retry:"


def file_md5(path: Path) -> str:
    """Calculate the MD5 hex digest of a file's bytes."""
    h = hashlib.md5()
    with open(path, 'rb') as f:
        for chunk in iter(lambda: f.read(1024 * 1024), b''):
            h.update(chunk)
    return h.hexdigest()


@dataclass
class ChangeReport:
    """Outcome of one detection pass, every list in input order."""
    to_process: List[str] = field(default_factory=list)
    new: List[str] = field(default_factory=list)
    changed: List[str] = field(default_factory=list)
    retried: List[str] = field(default_factory=list)
    unchanged: List[str] = field(default_factory=list)
    skipped: List[str] = field(default_factory=list)


class ChangeDetector:
    """Compares current file hashes with stored fingerprints."""

    def __init__(self, root_dir: str, store: BlockStore, logger: Optional[logging.Logger] = None):
        self.root_dir = Path(root_dir)
        self.store = store
        self.logger = logger or logging.getLogger(__name__)

    def detect(self, relative_paths: Iterable[str]) -> ChangeReport:
        self.logger.info("🔍 Checking file changes...")
        report = ChangeReport()

        for rel in relative_paths:
            try:
                current_hash = file_md5(self.root_dir / rel)
            except OSError as e:
                self.logger.warning(f"⚠️ Could not hash {rel}: {e}")
                report.skipped.append(rel)
                continue

            try:
                stored_hash = self.store.get_file_hash(rel)
            except StorageError as e:
                self.logger.warning(f"⚠️ Could not read stored hash for {rel}: {e}")
                report.skipped.append(rel)
                continue

            if stored_hash == current_hash:
                report.unchanged.append(rel)
                continue

            retry = stored_hash == RETRY_PREFIX + current_hash
            try:
                if stored_hash is not None and not retry:
                    removed = self.store.delete_file_blocks(rel)
                    self.logger.debug(f"🗑️ Removed {removed} stale blocks for {rel}")
                self.store.update_file_hash(rel, current_hash)
            except StorageError as e:
                self.logger.warning(f"⚠️ Could not update fingerprint for {rel}: {e}")
                report.skipped.append(rel)
                continue

            if stored_hash is None:
                report.new.append(rel)
            elif retry:
                report.retried.append(rel)
            else:
                report.changed.append(rel)
            report.to_process.append(rel)

        self.logger.info(
            f"📝 Files to process: {len(report.to_process)} "
            f"({len(report.new)} new, {len(report.changed)} changed, {len(report.retried)} retried, "
            f"{len(report.unchanged)} unchanged)"
        )
        for rel in report.to_process:
            self.logger.debug(f"  - {rel}")

        return report

    def mark_for_retry(self, relative_paths: Iterable[str]) -> List[str]:
        """Prefix the stored fingerprints so the next detection extracts these files again."""
        marked = []
        for rel in sorted(set(relative_paths)):
            try:
                stored_hash = self.store.get_file_hash(rel)
                if stored_hash is None or stored_hash.startswith(RETRY_PREFIX):
                    continue
                self.store.update_file_hash(rel, RETRY_PREFIX + stored_hash)
            except StorageError as e:
                self.logger.warning(f"⚠️ Could not mark {rel} for retry: {e}")
                continue
            self.logger.debug(f"🔁 {rel} will be retried on the next run")
            marked.append(rel)
        return marked

    def prune_deleted(self, current_paths: Iterable[str]) -> List[str]:
        """Forget files that have a fingerprint but no longer exist in the scan."""
        current = set(current_paths)
        try:
            tracked = self.store.get_tracked_files()
        except StorageError as e:
            self.logger.warning(f"⚠️ Could not list tracked files: {e}")
            return []

        removed = []
        for rel in tracked:
            if rel in current:
                continue
            try:
                self.store.delete_file_blocks(rel)
                self.store.delete_file_hash(rel)
            except StorageError as e:
                self.logger.warning(f"⚠️ Could not remove deleted file {rel}: {e}")
                continue
            removed.append(rel)

        if removed:
            self.logger.info(f"🗑️ Removed {len(removed)} deleted files from the index")
        return removed
