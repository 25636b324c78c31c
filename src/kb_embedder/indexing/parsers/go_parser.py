"""
Grammar-aware extractor for Go files.

Uses the tree-sitter Go grammar to walk declarations: plain functions,
methods (distinguished by their receiver) and struct type definitions.
Block text is cut to the declaration's exact line span and annotated with a
one-line comment so the block keeps its context when embedded alone.
"""

from typing import List, Optional

from tree_sitter_language_pack import get_parser

from ..chunker import Block, BlockType, Extractor, split_lines


class GoParser(Extractor):
    """Extracts functions, methods and structs from Go source."""

    name = "go"
    extensions = ('.go',)

    def parse_content(self, content: str, file_path: str) -> List[Block]:
        source = content.encode('utf-8')
        tree = get_parser('go').parse(source)
        lines = split_lines(content)
        blocks: List[Block] = []

        def node_text(node) -> str:
            return source[node.start_byte:node.end_byte].decode('utf-8', errors='replace')

        def walk(node):
            try:
                block = self._block_for(node, node_text, lines, file_path)
                if block is not None:
                    blocks.append(block)
            except ValueError as e:
                self.logger.debug(f"Skipping {node.type} in {file_path}: {e}")
            for child in node.children:
                walk(child)

        walk(tree.root_node)
        return blocks

    def _block_for(self, node, node_text, lines: List[str], file_path: str) -> Optional[Block]:
        if node.type == 'function_declaration':
            name_node = node.child_by_field_name('name')
            return self._make_block(
                node, lines, file_path, BlockType.FUNCTION,
                class_name=None,
                method_name=node_text(name_node) if name_node else None,
                prefix=None,
            )

        if node.type == 'method_declaration':
            name_node = node.child_by_field_name('name')
            receiver = node.child_by_field_name('receiver')
            receiver_type = self._receiver_type(receiver, node_text) if receiver else None
            return self._make_block(
                node, lines, file_path, BlockType.METHOD,
                class_name=receiver_type,
                method_name=node_text(name_node) if name_node else None,
                prefix=f"// Method of {receiver_type}" if receiver_type else None,
            )

        if node.type == 'type_spec':
            type_node = node.child_by_field_name('type')
            if type_node is None or type_node.type != 'struct_type':
                return None
            name_node = node.child_by_field_name('name')
            return self._make_block(
                node, lines, file_path, BlockType.STRUCT,
                class_name=node_text(name_node) if name_node else None,
                method_name=None,
                prefix="// Type definition",
            )

        return None

    def _receiver_type(self, receiver, node_text) -> Optional[str]:
        """First type identifier in the receiver list, so ``*T`` and ``T[K]`` both yield ``T``."""
        if receiver.type == 'type_identifier':
            return node_text(receiver)
        for child in receiver.children:
            found = self._receiver_type(child, node_text)
            if found:
                return found
        return None

    def _make_block(self, node, lines: List[str], file_path: str, block_type: BlockType,
                    class_name: Optional[str], method_name: Optional[str],
                    prefix: Optional[str]) -> Block:
        start_line = node.start_point[0] + 1
        end_line = node.end_point[0] + 1
        if node.end_point[1] == 0 and end_line > start_line:
            end_line -= 1
        end_line = min(end_line, len(lines))

        text = '\n'.join(lines[start_line - 1:end_line])
        if prefix:
            text = f"{prefix}\n{text}"

        return Block(
            file_path=file_path,
            block_type=block_type,
            start_line=start_line,
            end_line=end_line,
            raw_text=text,
            class_name=class_name,
            method_name=method_name,
        )
