"""
Block and Embedding Storage

This module persists code blocks, their embedding vectors and per-file
content fingerprints in SQLite. Vectors are stored as JSON text; an empty
string marks a block whose embedding has not been generated yet.
"""

import csv
import json
import logging
import sqlite3
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, Iterator, List, Optional

from .chunker import Block, BlockType


class StorageError(Exception):
    """Raised when a database operation fails."""


@dataclass
class EmbeddingRecord:
    """A stored block together with its vector and embedding input text."""
    block: Block
    embedding: List[float]
    embedding_text: str
    id: Optional[int] = None
    created_at: Optional[str] = None

    @property
    def has_embedding(self) -> bool:
        return bool(self.embedding)


@dataclass
class StorageStats:
    """Statistics about the block store."""
    total_blocks: int
    blocks_with_embeddings: int
    blocks_without_embeddings: int
    file_count: int
    block_types: Dict[str, int] = field(default_factory=dict)
    embedding_dimensions: int = 0


EXPORT_COLUMNS = [
    'id', 'file_path', 'relative_path', 'block_type', 'class_name', 'method_name',
    'start_line', 'end_line', 'commit_messages', 'raw_text', 'embedding_text',
    'embedding', 'created_at',
]


class BlockStore:
    """SQLite store for blocks, vectors and file fingerprints."""

    def __init__(self, db_path: str = "embeddings.sqlite3", logger: Optional[logging.Logger] = None):
        self.db_path = Path(db_path)
        self.logger = logger or logging.getLogger(__name__)

        try:
            if self.db_path.parent and not self.db_path.parent.exists():
                self.db_path.parent.mkdir(parents=True, exist_ok=True)
            self._conn = sqlite3.connect(str(self.db_path), isolation_level=None)
            self._conn.row_factory = sqlite3.Row
            self._init_database()
        except (OSError, sqlite3.Error) as e:
            raise StorageError(f"failed to open database {self.db_path}: {e}") from e

    def _init_database(self):
        """Create tables and indexes if they do not exist."""
        cursor = self._conn.cursor()

        cursor.execute('''
            CREATE TABLE IF NOT EXISTS blocks (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                embedding TEXT NOT NULL DEFAULT '',
                file_path TEXT NOT NULL,
                relative_path TEXT NOT NULL,
                block_type TEXT NOT NULL,
                class_name TEXT,
                method_name TEXT,
                start_line INTEGER NOT NULL,
                end_line INTEGER NOT NULL,
                commit_messages TEXT,
                raw_text TEXT NOT NULL,
                embedding_text TEXT NOT NULL,
                created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
            )
        ''')

        cursor.execute('''
            CREATE UNIQUE INDEX IF NOT EXISTS idx_block_identity ON blocks(
                file_path, block_type, IFNULL(class_name, ''), IFNULL(method_name, ''),
                start_line, end_line
            )
        ''')
        cursor.execute('''
            CREATE INDEX IF NOT EXISTS idx_relative_path ON blocks(relative_path)
        ''')

        cursor.execute('''
            CREATE TABLE IF NOT EXISTS file_hashes (
                file_path TEXT PRIMARY KEY,
                file_hash TEXT NOT NULL,
                updated_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
            )
        ''')

    def close(self):
        self._conn.close()

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc, tb):
        self.close()

    # File fingerprints

    def get_file_hash(self, file_path: str) -> Optional[str]:
        try:
            row = self._conn.execute(
                'SELECT file_hash FROM file_hashes WHERE file_path = ?', (file_path,)
            ).fetchone()
        except sqlite3.Error as e:
            raise StorageError(f"failed to read hash for {file_path}: {e}") from e
        return row['file_hash'] if row else None

    def update_file_hash(self, file_path: str, file_hash: str):
        try:
            self._conn.execute('''
                INSERT OR REPLACE INTO file_hashes (file_path, file_hash, updated_at)
                VALUES (?, ?, CURRENT_TIMESTAMP)
            ''', (file_path, file_hash))
        except sqlite3.Error as e:
            raise StorageError(f"failed to update hash for {file_path}: {e}") from e

    def delete_file_hash(self, file_path: str):
        try:
            self._conn.execute('DELETE FROM file_hashes WHERE file_path = ?', (file_path,))
        except sqlite3.Error as e:
            raise StorageError(f"failed to delete hash for {file_path}: {e}") from e

    def get_tracked_files(self) -> List[str]:
        """Relative paths that have a stored fingerprint."""
        try:
            rows = self._conn.execute('SELECT file_path FROM file_hashes ORDER BY file_path').fetchall()
        except sqlite3.Error as e:
            raise StorageError(f"failed to list tracked files: {e}") from e
        return [row['file_path'] for row in rows]

    # Blocks

    def delete_file_blocks(self, relative_path: str) -> int:
        """Remove every block stored for a file, returning the number removed."""
        try:
            cursor = self._conn.execute('DELETE FROM blocks WHERE relative_path = ?', (relative_path,))
        except sqlite3.Error as e:
            raise StorageError(f"failed to delete blocks for {relative_path}: {e}") from e
        return cursor.rowcount

    def block_exists(self, block: Block) -> bool:
        try:
            row = self._conn.execute('''
                SELECT COUNT(*) AS n FROM blocks
                WHERE file_path = ? AND block_type = ? AND class_name IS ? AND method_name IS ?
                AND start_line = ? AND end_line = ?
            ''', block.identity).fetchone()
        except sqlite3.Error as e:
            raise StorageError(f"failed to check existence of {block}: {e}") from e
        return row['n'] > 0

    def save_block(self, block: Block, embedding: Optional[List[float]], embedding_text: str) -> int:
        """Insert a block; ``embedding`` may be None to defer vector generation."""
        commit_messages = json.dumps(block.commit_messages) if block.commit_messages else None
        try:
            cursor = self._conn.execute('''
                INSERT INTO blocks
                (embedding, file_path, relative_path, block_type, class_name, method_name,
                 start_line, end_line, commit_messages, raw_text, embedding_text)
                VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
            ''', (
                json.dumps(embedding) if embedding else '',
                block.file_path,
                block.display_path,
                block.block_type.value,
                block.class_name,
                block.method_name,
                block.start_line,
                block.end_line,
                commit_messages,
                block.raw_text,
                embedding_text,
            ))
        except sqlite3.Error as e:
            raise StorageError(f"failed to save {block}: {e}") from e
        return cursor.lastrowid

    def update_embedding(self, record_id: int, embedding: List[float]):
        """Attach a vector to an existing row, leaving other columns untouched."""
        try:
            cursor = self._conn.execute(
                'UPDATE blocks SET embedding = ? WHERE id = ?', (json.dumps(embedding), record_id)
            )
        except sqlite3.Error as e:
            raise StorageError(f"failed to update embedding for block {record_id}: {e}") from e
        if cursor.rowcount == 0:
            raise StorageError(f"block {record_id} does not exist")

    def get_blocks_without_embeddings(self) -> List[EmbeddingRecord]:
        try:
            rows = self._conn.execute(
                "SELECT * FROM blocks WHERE embedding = '' ORDER BY id"
            ).fetchall()
        except sqlite3.Error as e:
            raise StorageError(f"failed to load blocks without embeddings: {e}") from e
        return [self._row_to_record(row) for row in rows]

    def iter_records(self) -> Iterator[EmbeddingRecord]:
        try:
            cursor = self._conn.execute('SELECT * FROM blocks ORDER BY id')
            for row in cursor:
                yield self._row_to_record(row)
        except sqlite3.Error as e:
            raise StorageError(f"failed to read blocks: {e}") from e

    def iter_embeddings(self) -> Iterator[List[float]]:
        try:
            cursor = self._conn.execute("SELECT embedding FROM blocks WHERE embedding != '' ORDER BY id")
            for row in cursor:
                yield json.loads(row['embedding'])
        except sqlite3.Error as e:
            raise StorageError(f"failed to read embeddings: {e}") from e

    def _row_to_record(self, row: sqlite3.Row) -> EmbeddingRecord:
        block = Block(
            file_path=row['file_path'],
            block_type=BlockType(row['block_type']),
            start_line=row['start_line'],
            end_line=row['end_line'],
            raw_text=row['raw_text'],
            class_name=row['class_name'],
            method_name=row['method_name'],
            relative_path=row['relative_path'],
            commit_messages=json.loads(row['commit_messages']) if row['commit_messages'] else [],
        )
        return EmbeddingRecord(
            block=block,
            embedding=json.loads(row['embedding']) if row['embedding'] else [],
            embedding_text=row['embedding_text'],
            id=row['id'],
            created_at=row['created_at'],
        )

    # Reporting

    def get_statistics(self) -> StorageStats:
        try:
            totals = self._conn.execute('''
                SELECT
                    COUNT(*) AS total,
                    SUM(CASE WHEN embedding != '' THEN 1 ELSE 0 END) AS with_embeddings,
                    COUNT(DISTINCT file_path) AS files
                FROM blocks
            ''').fetchone()
            type_rows = self._conn.execute(
                'SELECT block_type, COUNT(*) AS n FROM blocks GROUP BY block_type ORDER BY block_type'
            ).fetchall()
            sample = self._conn.execute(
                "SELECT embedding FROM blocks WHERE embedding != '' LIMIT 1"
            ).fetchone()
        except sqlite3.Error as e:
            raise StorageError(f"failed to compute statistics: {e}") from e

        total = totals['total'] or 0
        with_embeddings = totals['with_embeddings'] or 0
        return StorageStats(
            total_blocks=total,
            blocks_with_embeddings=with_embeddings,
            blocks_without_embeddings=total - with_embeddings,
            file_count=totals['files'] or 0,
            block_types={row['block_type']: row['n'] for row in type_rows},
            embedding_dimensions=len(json.loads(sample['embedding'])) if sample else 0,
        )

    def export_csv(self, output_path: str) -> int:
        """Write every stored row to a CSV file and return the row count."""
        count = 0
        with open(output_path, 'w', newline='', encoding='utf-8') as f:
            writer = csv.writer(f)
            writer.writerow(EXPORT_COLUMNS)
            for record in self.iter_records():
                block = record.block
                writer.writerow([
                    record.id,
                    block.file_path,
                    block.display_path,
                    block.block_type.value,
                    block.class_name or '',
                    block.method_name or '',
                    block.start_line,
                    block.end_line,
                    '; '.join(block.commit_messages),
                    block.raw_text,
                    record.embedding_text,
                    json.dumps(record.embedding) if record.embedding else '',
                    record.created_at or '',
                ])
                count += 1

        self.logger.info(f"📤 Exported {count} rows to {output_path}")
        return count
