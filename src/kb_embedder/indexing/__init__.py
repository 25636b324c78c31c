"""
Codebase Indexing System

This package turns a source tree into embedded code blocks stored in SQLite,
reprocessing only files whose content changed since the last run.

Core Components:
- CodebaseIndexer: Main indexing orchestrator and embedding pipeline
- Block / ExtractorRegistry: Block model and extension-to-extractor lookup
- build_registry: Language extractors for the selected extensions
- FileScanner / ChangeDetector: File discovery and content-hash change detection
- GitHistory: Recent commit messages per file
- EmbeddingService: Vector embedding generation
- BlockStore: Block, vector and fingerprint storage
"""

from .chunker import Block, BlockType, ExtractionError, Extractor, ExtractorRegistry
from .change_detector import ChangeDetector, ChangeReport
from .embeddings import EmbeddingError, EmbeddingService, embedding_stats
from .file_scanner import FileScanner
from .history import GitHistory, HistoryError
from .indexer import CodebaseIndexer, IndexingStats
from .parsers import build_registry
from .storage import BlockStore, EmbeddingRecord, StorageError, StorageStats

__all__ = [
    "Block",
    "BlockType",
    "BlockStore",
    "ChangeDetector",
    "ChangeReport",
    "CodebaseIndexer",
    "EmbeddingError",
    "EmbeddingRecord",
    "EmbeddingService",
    "ExtractionError",
    "Extractor",
    "ExtractorRegistry",
    "FileScanner",
    "GitHistory",
    "HistoryError",
    "IndexingStats",
    "StorageError",
    "StorageStats",
    "build_registry",
    "embedding_stats",
]
