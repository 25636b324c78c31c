"""Indentation-based extractor for Python files."""

import re
from typing import List, Optional

from ..chunker import Block, BlockType, Extractor, extract_indented_body, indent_level, split_lines

CLASS_PATTERN = re.compile(r'^class\s+(\w+)')
DEF_PATTERN = re.compile(r'^(?:async\s+)?def\s+(\w+)')


class PythonParser(Extractor):
    """Extracts functions and methods by following indentation."""

    name = "python"
    extensions = ('.py',)

    def parse_content(self, content: str, file_path: str) -> List[Block]:
        lines = split_lines(content)
        blocks = []

        current_class: Optional[str] = None
        class_indent = 0

        for i, line in enumerate(lines):
            stripped = line.strip()
            if not stripped or stripped.startswith('#') or ':' not in stripped:
                continue

            indent = indent_level(line)

            class_match = CLASS_PATTERN.match(stripped)
            if class_match:
                current_class = class_match.group(1)
                class_indent = indent
                continue

            def_match = DEF_PATTERN.match(stripped)
            if not def_match:
                continue

            is_method = current_class is not None and indent > class_indent
            try:
                end_index, body = extract_indented_body(lines, i, indent)
                blocks.append(Block(
                    file_path=file_path,
                    block_type=BlockType.METHOD if is_method else BlockType.FUNCTION,
                    start_line=i + 1,
                    end_line=end_index + 1,
                    raw_text=body,
                    class_name=current_class if is_method else None,
                    method_name=def_match.group(1),
                ))
            except ValueError as e:
                self.logger.debug(f"Skipping definition at {file_path}:{i + 1}: {e}")

        return blocks
