"""Token-bounded splitter for markdown, YAML, config and plain text files."""

import logging
from pathlib import Path
from typing import List, Optional

from ..chunker import Block, BlockType, Extractor, split_lines
from ..tokenizer import split_by_tokens

EXTENSION_BLOCK_TYPES = {
    '.md': BlockType.MARKDOWN,
    '.yml': BlockType.YAML,
    '.yaml': BlockType.YAML,
    '.conf': BlockType.CONFIG,
    '.config': BlockType.CONFIG,
    '.txt': BlockType.TEXT,
}


class TextParser(Extractor):
    """Splits unstructured files into consecutive chunks under a token budget."""

    name = "text"
    extensions = tuple(EXTENSION_BLOCK_TYPES)

    def __init__(self, token_limit: int, logger: Optional[logging.Logger] = None):
        super().__init__(logger)
        if token_limit < 1:
            raise ValueError("token_limit must be at least 1")
        self.token_limit = token_limit

    def parse_content(self, content: str, file_path: str) -> List[Block]:
        block_type = self.block_type_for(file_path)
        return [
            Block(
                file_path=file_path,
                block_type=block_type,
                start_line=start_line,
                end_line=end_line,
                raw_text=text,
            )
            for start_line, end_line, text in split_by_tokens(split_lines(content), self.token_limit)
        ]

    @staticmethod
    def block_type_for(file_path: str) -> BlockType:
        ext = Path(file_path).suffix.lower()
        return EXTENSION_BLOCK_TYPES.get(ext, BlockType.TEXT)
