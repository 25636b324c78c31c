"""
Regex-Driven Extractor for Brace-Delimited Languages

Subclasses provide the class-header pattern and an ordered list of
function-declaration patterns. Each non-comment line is tested against the
patterns in order and produces at most one block; bodies are delimited by
brace matching. Class scope is tracked by indentation of the last class
header, without modelling nesting.
"""

import re
from typing import List, Optional, Pattern, Tuple

from ..chunker import (
    Block,
    BlockType,
    Extractor,
    extract_braced_body,
    indent_level,
    split_lines,
)

CONTROL_KEYWORDS = {
    'if', 'for', 'while', 'switch', 'catch', 'with', 'return', 'function',
    'foreach', 'elseif', 'else', 'do', 'try', 'match', 'new', 'typeof',
}


class FunctionPattern:
    """A function-declaration shape and how its body is delimited."""

    def __init__(self, regex: str, class_scope_only: bool = False, expression_body: bool = False):
        self.regex: Pattern = re.compile(regex)
        self.class_scope_only = class_scope_only
        self.expression_body = expression_body

    def match(self, line: str) -> Optional[str]:
        match = self.regex.match(line)
        if not match:
            return None
        name = match.group('name')
        if name in CONTROL_KEYWORDS:
            return None
        return name


class BraceLanguageParser(Extractor):
    """Base extractor for JavaScript/TypeScript/PHP-like sources."""

    class_pattern: Pattern = re.compile(r'^$')
    function_patterns: List[FunctionPattern] = []
    comment_prefixes: Tuple[str, ...] = ('//', '/*', '*')

    def parse_content(self, content: str, file_path: str) -> List[Block]:
        lines = split_lines(content)
        blocks = []

        current_class: Optional[str] = None
        class_indent = 0

        for i, line in enumerate(lines):
            stripped = line.strip()
            if not stripped or stripped.startswith(self.comment_prefixes):
                continue

            indent = indent_level(line)

            class_match = self.class_pattern.match(stripped)
            if class_match:
                current_class = class_match.group('name')
                class_indent = indent
                continue

            in_class = current_class is not None and indent > class_indent

            for pattern in self.function_patterns:
                if pattern.class_scope_only and not in_class:
                    continue
                name = pattern.match(stripped)
                if name is None:
                    continue

                try:
                    end_index, body = self._extract_body(lines, i, pattern)
                    blocks.append(Block(
                        file_path=file_path,
                        block_type=BlockType.METHOD if in_class else BlockType.FUNCTION,
                        start_line=i + 1,
                        end_line=end_index + 1,
                        raw_text=body,
                        class_name=current_class if in_class else None,
                        method_name=name,
                    ))
                except ValueError as e:
                    self.logger.debug(f"Skipping declaration at {file_path}:{i + 1}: {e}")
                break

        return blocks

    def _extract_body(self, lines: List[str], start_index: int, pattern: FunctionPattern) -> Tuple[int, str]:
        header = lines[start_index].strip()

        # Abstract/interface signatures have no body
        if header.endswith(';') and '{' not in header:
            return start_index, lines[start_index]

        if pattern.expression_body and '{' not in header:
            return self._extract_expression_body(lines, start_index)

        return extract_braced_body(lines, start_index)

    def _extract_expression_body(self, lines: List[str], start_index: int) -> Tuple[int, str]:
        """Arrow functions with an implicit return end at ``;`` or a blank line."""
        end_index = start_index
        for i in range(start_index, len(lines)):
            stripped = lines[i].strip()
            if not stripped:
                break
            end_index = i
            if stripped.endswith(';'):
                break
        return end_index, '\n'.join(lines[start_index:end_index + 1])
