"""
Main Codebase Indexer

This module ties the pipeline together: scan the tree, find stale files by
content hash, extract blocks with the registered extractors, annotate them
with git history, and persist them with their embeddings.

Embeddings are produced either in one pass (embed, then insert) or in two
phases: blocks are first stored without vectors and a later backfill fills
them in. Work is sequential and every block identity is embedded at most
once per run.
"""

import logging
import time
from dataclasses import dataclass
from pathlib import Path
from typing import List, Optional, Sequence, Set

from .change_detector import ChangeDetector
from .chunker import Block, ExtractionError, ExtractorRegistry
from .embeddings import EmbeddingError, EmbeddingService
from .file_scanner import FileScanner
from .history import GitHistory, HistoryError
from .storage import BlockStore, StorageError

DEFAULT_BATCH_TIMEOUT = 30 * 60


@dataclass
class IndexingStats:
    """Statistics from indexing process."""
    files_scanned: int = 0
    files_to_process: int = 0
    blocks_extracted: int = 0
    blocks_existing: int = 0
    blocks_saved: int = 0
    embeddings_generated: int = 0
    errors: int = 0
    elapsed: float = 0.0
    timed_out: bool = False


class CodebaseIndexer:
    """Drives extraction and embedding for one source tree."""

    def __init__(self,
                 root_dir: str,
                 store: BlockStore,
                 registry: ExtractorRegistry,
                 embedder: Optional[EmbeddingService] = None,
                 history: Optional[GitHistory] = None,
                 scanner: Optional[FileScanner] = None,
                 n_commits: int = 3,
                 batch_timeout: float = DEFAULT_BATCH_TIMEOUT,
                 batch_size: int = 1,
                 logger: Optional[logging.Logger] = None):
        self.root_dir = Path(root_dir).resolve()
        self.store = store
        self.registry = registry
        self.embedder = embedder
        self.history = history
        self.n_commits = n_commits
        self.batch_timeout = batch_timeout
        self.batch_size = max(1, batch_size)
        self.logger = logger or logging.getLogger(__name__)

        if scanner is None:
            extensions = {ext for extractor in registry.get_all() for ext in extractor.extensions}
            scanner = FileScanner(str(self.root_dir), extensions, self.logger)
            scanner.load_ignore_file()
        self.scanner = scanner
        self.detector = ChangeDetector(str(self.root_dir), store, self.logger)

        self._deadline: Optional[float] = None

    def index_project(self, defer_embeddings: bool = False) -> IndexingStats:
        """
        Index every new or changed file under the root.

        Args:
            defer_embeddings: store blocks without vectors; run
                ``backfill_embeddings`` later to fill them in

        Returns:
            IndexingStats with indexing results
        """
        self.logger.info(f"🚀 Starting indexing of {self.root_dir}")
        start_time = time.monotonic()
        stats = IndexingStats()

        files = self.scanner.scan()
        stats.files_scanned = len(files)

        self.detector.prune_deleted(files)
        report = self.detector.detect(files)
        stats.files_to_process = len(report.to_process)
        stats.errors += len(report.skipped)

        if not report.to_process:
            self.logger.info("✅ No files need indexing")
            stats.elapsed = time.monotonic() - start_time
            return stats

        blocks = self.extract_blocks(report.to_process, stats)
        self.store_blocks(blocks, defer_embeddings=defer_embeddings, stats=stats)

        stats.elapsed = time.monotonic() - start_time
        self._log_summary(stats)
        return stats

    def extract_blocks(self, relative_paths: Sequence[str],
                       stats: Optional[IndexingStats] = None) -> List[Block]:
        """Run the matching extractor on each file, keeping input order."""
        stats = stats or IndexingStats()
        blocks: List[Block] = []

        for rel in relative_paths:
            extractor = self.registry.get_extractor(Path(rel).suffix)
            if extractor is None:
                self.logger.warning(f"⚠️ No extractor for {rel}")
                continue

            try:
                file_blocks = extractor.parse(str(self.root_dir / rel))
            except ExtractionError as e:
                self.logger.warning(f"⚠️ {e}")
                stats.errors += 1
                continue
            except Exception as e:
                self.logger.warning(f"⚠️ {extractor.name} extractor failed on {rel}: {e}")
                stats.errors += 1
                continue

            commit_messages = self._commit_messages(rel) if file_blocks else []
            for block in file_blocks:
                block.relative_path = rel
                block.commit_messages = list(commit_messages)

            self.logger.debug(f"📄 {rel}: {len(file_blocks)} blocks")
            blocks.extend(file_blocks)

        stats.blocks_extracted += len(blocks)
        self.logger.info(f"🧩 Extracted {len(blocks)} blocks from {len(relative_paths)} files")
        return blocks

    def _commit_messages(self, rel: str) -> List[str]:
        if self.history is None or self.n_commits <= 0:
            return []
        try:
            return self.history.last_commit_messages(rel, self.n_commits)
        except HistoryError as e:
            self.logger.debug(f"No commit history for {rel}: {e}")
            return []

    def store_blocks(self, blocks: Sequence[Block], defer_embeddings: bool = False,
                     stats: Optional[IndexingStats] = None) -> IndexingStats:
        """
        Persist blocks that are not stored yet.

        In combined mode each new block is embedded and inserted together with
        its vector. With ``defer_embeddings`` blocks are inserted with an empty
        vector and no provider call is made.

        Files with a block that could not be stored are marked for retry, so
        the next run extracts them again and embeds only the missing blocks.
        """
        stats = stats or IndexingStats()
        if not defer_embeddings and self.embedder is None:
            raise ValueError("an embedding service is required unless embeddings are deferred")

        self._start_deadline()
        seen = set()
        failed_files: Set[str] = set()
        pending: List[Block] = []

        for i, block in enumerate(blocks):
            if block.identity in seen:
                stats.blocks_existing += 1
                continue
            seen.add(block.identity)

            try:
                exists = self.store.block_exists(block)
            except StorageError as e:
                self.logger.warning(f"⚠️ {e}")
                stats.errors += 1
                failed_files.add(block.display_path)
                continue

            if exists:
                stats.blocks_existing += 1
                continue

            if defer_embeddings:
                if not self._save(block, None, block.embedding_text(), stats):
                    failed_files.add(block.display_path)
                continue

            pending.append(block)
            if len(pending) >= self.batch_size:
                if not self._embed_and_save(pending, stats, failed_files):
                    abandoned = pending + self._unstored(blocks[i + 1:], seen)
                    self._abandon(len(abandoned), stats)
                    failed_files.update(b.display_path for b in abandoned)
                    pending = []
                    break
                pending = []

        if pending and not self._embed_and_save(pending, stats, failed_files):
            self._abandon(len(pending), stats)
            failed_files.update(b.display_path for b in pending)

        self.detector.mark_for_retry(failed_files)
        return stats

    def _embed_and_save(self, blocks: List[Block], stats: IndexingStats, failed_files: Set[str]) -> bool:
        """Embed and insert a group of blocks; False once the deadline has passed."""
        texts = [block.embedding_text() for block in blocks]
        vectors = self._embed(texts, stats)
        if vectors is None:
            if not stats.timed_out:
                failed_files.update(block.display_path for block in blocks)
            return not stats.timed_out

        for block, text, vector in zip(blocks, texts, vectors):
            if not self._save(block, vector, text, stats):
                failed_files.add(block.display_path)
        return True

    def _save(self, block: Block, vector: Optional[List[float]], text: str, stats: IndexingStats) -> bool:
        try:
            self.store.save_block(block, vector, text)
        except StorageError as e:
            self.logger.warning(f"⚠️ {e}")
            stats.errors += 1
            return False
        stats.blocks_saved += 1
        return True

    def _unstored(self, blocks: Sequence[Block], seen: Set) -> List[Block]:
        """Blocks left behind by an abandoned run that are not in the store yet."""
        missing = []
        for block in blocks:
            if block.identity in seen:
                continue
            seen.add(block.identity)
            try:
                if self.store.block_exists(block):
                    continue
            except StorageError as e:
                self.logger.warning(f"⚠️ {e}")
            missing.append(block)
        return missing

    def backfill_embeddings(self, stats: Optional[IndexingStats] = None) -> IndexingStats:
        """
        Generate vectors for stored blocks that do not have one.

        Only the vector column is written. A failure to read the pending set
        is raised as StorageError.
        """
        stats = stats or IndexingStats()
        if self.embedder is None:
            raise ValueError("an embedding service is required to backfill embeddings")

        start_time = time.monotonic()
        records = self.store.get_blocks_without_embeddings()
        if not records:
            self.logger.info("✅ All blocks already have embeddings")
            return stats

        self.logger.info(f"🔄 Generating embeddings for {len(records)} stored blocks...")
        self._start_deadline()

        for offset in range(0, len(records), self.batch_size):
            group = records[offset:offset + self.batch_size]
            vectors = self._embed([record.embedding_text for record in group], stats)
            if vectors is None:
                if stats.timed_out:
                    self._abandon(len(records) - offset, stats)
                    break
                continue

            for record, vector in zip(group, vectors):
                try:
                    self.store.update_embedding(record.id, vector)
                except StorageError as e:
                    self.logger.warning(f"⚠️ {e}")
                    stats.errors += 1

        stats.elapsed = time.monotonic() - start_time
        self._log_summary(stats)
        return stats

    def _embed(self, texts: List[str], stats: IndexingStats) -> Optional[List[List[float]]]:
        """Call the provider within the batch deadline; None when nothing was produced."""
        remaining = self._remaining()
        if remaining <= 0:
            stats.timed_out = True
            return None

        try:
            if len(texts) == 1:
                vectors = [self.embedder.embed(texts[0], timeout=remaining)]
            else:
                vectors = self.embedder.embed_batch(texts, timeout=remaining)
        except EmbeddingError as e:
            self.logger.warning(f"⚠️ Embedding failed for {len(texts)} block(s): {e}")
            stats.errors += len(texts)
            return None

        stats.embeddings_generated += len(vectors)
        return vectors

    def _start_deadline(self):
        self._deadline = time.monotonic() + self.batch_timeout

    def _remaining(self) -> float:
        if self._deadline is None:
            return float(self.batch_timeout)
        return self._deadline - time.monotonic()

    def _abandon(self, remaining_blocks: int, stats: IndexingStats):
        stats.timed_out = True
        self.logger.warning(
            f"⏰ Embedding deadline of {self.batch_timeout}s exceeded, "
            f"abandoning the remaining {remaining_blocks} block(s)"
        )

    def _log_summary(self, stats: IndexingStats):
        self.logger.info("✅ Indexing complete!")
        self.logger.info(
            f"📊 Results: {stats.blocks_saved} blocks saved, {stats.blocks_existing} already stored, "
            f"{stats.embeddings_generated} embeddings"
        )
        self.logger.info(f"⏱️ Time: {stats.elapsed:.1f}s")
        if stats.errors:
            self.logger.warning(f"⚠️ {stats.errors} errors occurred during indexing")
