#!/usr/bin/env python3
"""
Knowledge Base Embedder
Extracts code blocks from a source tree and stores their embeddings in SQLite.
"""

import argparse
import logging
import sys
from typing import List, Optional

from .config import Config, ConfigError, load_config
from .indexing import (
    BlockStore,
    CodebaseIndexer,
    EmbeddingService,
    FileScanner,
    GitHistory,
    HistoryError,
    StorageError,
    build_registry,
    embedding_stats,
)

LOG_LEVELS = {
    'debug': logging.DEBUG,
    'info': logging.INFO,
    'warn': logging.WARNING,
    'warning': logging.WARNING,
    'error': logging.ERROR,
}


def setup_logging(level: str) -> logging.Logger:
    """Configure the package logger with a console handler."""
    logger = logging.getLogger('kb_embedder')
    logger.setLevel(LOG_LEVELS.get((level or 'info').lower(), logging.INFO))

    if not getattr(logger, 'handler_set', False):
        handler = logging.StreamHandler()
        formatter = logging.Formatter(
            '%(asctime)s | %(levelname)s | %(message)s',
            datefmt='%Y-%m-%d %H:%M:%S'
        )
        handler.setFormatter(formatter)
        logger.addHandler(handler)
        logger.handler_set = True

    return logger


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog='kb-embedder',
        description='Incremental code block extraction and embedding'
    )
    parser.add_argument('--root', type=str, help='Root directory to scan (ROOT_DIR)')
    parser.add_argument('--db', type=str, help='SQLite database path (DB_PATH)')
    parser.add_argument('--extensions', type=str, help='Comma separated file extensions (FILE_EXTENSIONS)')
    parser.add_argument('--log-level', type=str, help='debug, info, warn or error (LOG_LEVEL)')
    parser.add_argument('--env-file', type=str, default='.env', help='Environment file to load')

    subparsers = parser.add_subparsers(dest='command', required=True)
    subparsers.add_parser('run', help='Scan, extract and embed changed files')
    subparsers.add_parser('preprocess', help='Extract and store blocks without embeddings')
    subparsers.add_parser('embed', help='Generate embeddings for stored blocks that lack them')
    subparsers.add_parser('stats', help='Show database statistics')
    export = subparsers.add_parser('export', help='Export all stored blocks to CSV')
    export.add_argument('-o', '--output', type=str, required=True, help='CSV file to write')

    return parser


def make_indexer(config: Config, store: BlockStore, logger: logging.Logger,
                 with_embedder: bool) -> CodebaseIndexer:
    registry = build_registry(config.file_extensions, config.token_limit, logger)

    scanner = FileScanner(config.root_dir, config.file_extensions, logger)
    scanner.load_ignore_file()

    history = None
    try:
        history = GitHistory(config.root_dir, logger)
    except HistoryError as e:
        logger.info(f"ℹ️ Commit history disabled: {e}")

    embedder = None
    if with_embedder:
        embedder = EmbeddingService(config.openai_api_key, model=config.embedding_model, logger=logger)

    return CodebaseIndexer(
        config.root_dir,
        store,
        registry,
        embedder=embedder,
        history=history,
        scanner=scanner,
        n_commits=config.n_commits,
        batch_timeout=config.batch_timeout,
        batch_size=config.batch_size,
        logger=logger,
    )


def print_statistics(store: BlockStore):
    stats = store.get_statistics()
    vector_stats = embedding_stats(list(store.iter_embeddings()))

    print("📊 Database statistics")
    print("=" * 40)
    print(f"Total blocks:               {stats.total_blocks}")
    print(f"Blocks with embeddings:     {stats.blocks_with_embeddings}")
    print(f"Blocks without embeddings:  {stats.blocks_without_embeddings}")
    print(f"Files:                      {stats.file_count}")
    if stats.block_types:
        print("Blocks by type:")
        for block_type, count in stats.block_types.items():
            print(f"  • {block_type}: {count}")
    if vector_stats:
        print(f"Embedding dimensions:       {vector_stats['dimensions']}")
        print(f"Mean vector magnitude:      {vector_stats['mean_magnitude']:.4f}")
        print(f"Std of vector magnitude:    {vector_stats['std_magnitude']:.4f}")


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    logger = setup_logging(args.log_level or 'info')

    needs_key = args.command in ('run', 'embed')
    needs_root = args.command in ('run', 'preprocess', 'embed')
    try:
        config = load_config(
            env_file=args.env_file,
            require_api_key=needs_key,
            require_root=needs_root,
            overrides={
                'root_dir': args.root,
                'db_path': args.db,
                'file_extensions': args.extensions,
                'log_level': args.log_level,
            },
        )
    except ConfigError as e:
        logger.error(f"❌ Configuration error: {e}")
        return 1

    setup_logging(config.log_level)
    logger.debug(f"⚙️ Root: {config.root_dir} | DB: {config.db_path} | Extensions: {', '.join(config.file_extensions)}")

    try:
        with BlockStore(config.db_path, logger) as store:
            if args.command == 'stats':
                print_statistics(store)
            elif args.command == 'export':
                store.export_csv(args.output)
            elif args.command == 'embed':
                indexer = make_indexer(config, store, logger, with_embedder=True)
                indexer.backfill_embeddings()
            else:
                defer = args.command == 'preprocess'
                indexer = make_indexer(config, store, logger, with_embedder=not defer)
                indexer.index_project(defer_embeddings=defer)
    except StorageError as e:
        logger.error(f"❌ Storage error: {e}")
        return 1
    except OSError as e:
        logger.error(f"❌ {e}")
        return 1

    return 0


if __name__ == "__main__":
    sys.exit(main())
