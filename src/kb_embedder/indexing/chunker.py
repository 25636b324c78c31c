"""
Code Block Model and Scanning Primitives

This module defines the Block unit produced by every extractor, the shared
indentation/brace scanning helpers, and the registry that maps a file
extension to the single extractor claiming it.

The scanners are lexical: braces or colons inside string literals
and comments are counted like any other character.
"""

import logging
from collections import OrderedDict
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import List, Optional, Tuple


class BlockType(Enum):
    """Kinds of blocks an extractor can produce."""
    FUNCTION = "function"
    METHOD = "method"
    STRUCT = "struct"
    CLASS = "class"
    MARKDOWN = "markdown"
    YAML = "yaml"
    CONFIG = "config"
    TEXT = "text"


class ExtractionError(Exception):
    """Raised when a file cannot be read or parsed as a whole."""


@dataclass
class Block:
    """A contiguous span of a source file considered a unit of meaning."""
    file_path: str
    block_type: BlockType
    start_line: int
    end_line: int
    raw_text: str
    class_name: Optional[str] = None
    method_name: Optional[str] = None
    relative_path: Optional[str] = None
    commit_messages: List[str] = field(default_factory=list)

    def __post_init__(self):
        if self.start_line < 1 or self.end_line < self.start_line:
            raise ValueError(
                f"invalid line range {self.start_line}-{self.end_line} for {self.file_path}"
            )

    @property
    def display_path(self) -> str:
        return self.relative_path or self.file_path

    @property
    def identity(self) -> Tuple[str, str, Optional[str], Optional[str], int, int]:
        """Natural key used for deduplication against the store."""
        return (
            self.file_path,
            self.block_type.value,
            self.class_name,
            self.method_name,
            self.start_line,
            self.end_line,
        )

    def embedding_text(self) -> str:
        """Build the canonical text sent to the embedding provider."""
        header = [f"File: {self.display_path}"]
        if self.class_name is not None:
            header.append(f"Class: {self.class_name}")
        if self.method_name is not None:
            header.append(f"Method/Function: {self.method_name}")
        header.append(f"Lines: {self.start_line}-{self.end_line}")
        if self.commit_messages:
            header.append(f"Recent commits: {'; '.join(self.commit_messages)}")

        return "\n".join(header) + "\n\n" + self.raw_text

    def __str__(self) -> str:
        return (
            f"<Block {self.block_type.value} {self.class_name or ''} {self.method_name or ''} "
            f"{self.file_path}:{self.start_line}-{self.end_line}>"
        )


def split_lines(content: str) -> List[str]:
    """Split file content into lines; a final newline does not add a line."""
    if not content:
        return []
    lines = content.split('\n')
    if lines[-1] == '':
        lines.pop()
    return lines


def indent_level(line: str) -> int:
    """Count leading spaces and tabs without expanding tabs."""
    indent = 0
    for char in line:
        if char in (' ', '\t'):
            indent += 1
        else:
            break
    return indent


def extract_braced_body(lines: List[str], start_index: int) -> Tuple[int, str]:
    """
    Find the end of a brace-delimited body starting at ``start_index``.

    Returns the index of the last included line and the joined text. If no
    brace ever opens, the header line alone is returned; an unterminated body
    runs to the end of the file.
    """
    depth = 0
    opened = False

    for i in range(start_index, len(lines)):
        for char in lines[i]:
            if char == '{':
                depth += 1
                opened = True
            elif char == '}':
                depth -= 1
                if opened and depth <= 0:
                    return i, '\n'.join(lines[start_index:i + 1])

    if not opened:
        return start_index, lines[start_index]

    end_index = len(lines) - 1
    return end_index, '\n'.join(lines[start_index:end_index + 1])


def extract_indented_body(lines: List[str], start_index: int, base_indent: int) -> Tuple[int, str]:
    """
    Find the end of an indentation-delimited body (Python-style).

    The body ends before the first non-blank line indented at or below
    ``base_indent``. Trailing blank lines are not part of the body.
    """
    end_index = start_index

    for i in range(start_index + 1, len(lines)):
        line = lines[i]
        if not line.strip():
            continue
        if indent_level(line) <= base_indent:
            break
        end_index = i

    return end_index, '\n'.join(lines[start_index:end_index + 1])


class Extractor:
    """Base class for language block extractors."""

    name = "base"
    extensions: Tuple[str, ...] = ()

    def __init__(self, logger: Optional[logging.Logger] = None):
        self.logger = logger or logging.getLogger(__name__)

    def can_handle(self, extension: str) -> bool:
        return extension.lower() in self.extensions

    def parse(self, file_path: str) -> List[Block]:
        """Read ``file_path`` and extract its blocks."""
        content = read_source(file_path)
        return self.parse_content(content, file_path)

    def parse_content(self, content: str, file_path: str) -> List[Block]:
        raise NotImplementedError


def read_source(file_path: str) -> str:
    """Read a source file as text, raising ExtractionError on failure."""
    try:
        return Path(file_path).read_text(encoding='utf-8', errors='replace')
    except OSError as e:
        raise ExtractionError(f"failed to read {file_path}: {e}") from e


class ExtractorRegistry:
    """Maps file extensions to extractors; first registered wins."""

    def __init__(self, logger: Optional[logging.Logger] = None):
        self.logger = logger or logging.getLogger(__name__)
        self._extractors: "OrderedDict[str, Extractor]" = OrderedDict()

    def register(self, extractor: Extractor):
        if extractor.name in self._extractors:
            self.logger.debug(f"Extractor {extractor.name} already registered, keeping the first one")
            return
        self._extractors[extractor.name] = extractor
        self.logger.debug(f"✅ Registered extractor: {extractor.name}")

    def get_extractor(self, extension: str) -> Optional[Extractor]:
        for extractor in self._extractors.values():
            if extractor.can_handle(extension):
                return extractor
        return None

    def get_all(self) -> List[Extractor]:
        return list(self._extractors.values())

    def __len__(self) -> int:
        return len(self._extractors)
