"""
Approximate Token Counting

Word/punctuation counter used only to size text chunks. It does not match
any provider's tokenizer and is not meant for billing estimates.
"""

import unicodedata
from typing import List, Tuple


def _is_punctuation(char: str) -> bool:
    return unicodedata.category(char).startswith('P')


def count_tokens(text: str) -> int:
    """Count whitespace-separated runs, with each punctuation mark as its own token."""
    count = 0
    in_run = False

    for char in text:
        if char.isspace():
            if in_run:
                count += 1
                in_run = False
        elif _is_punctuation(char):
            if in_run:
                count += 1
                in_run = False
            count += 1
        else:
            in_run = True

    if in_run:
        count += 1

    return count


def split_by_tokens(lines: List[str], token_limit: int) -> List[Tuple[int, int, str]]:
    """
    Partition lines into consecutive chunks bounded by ``token_limit``.

    Returns (start_line, end_line, text) tuples with 1-based inclusive line
    numbers. A single line over the limit is kept whole in its own chunk.
    """
    chunks = []
    current: List[str] = []
    current_tokens = 0
    start_line = 1

    for i, line in enumerate(lines):
        line_num = i + 1
        line_tokens = count_tokens(line)

        if current and current_tokens + line_tokens > token_limit:
            chunks.append((start_line, line_num - 1, '\n'.join(current)))
            current = [line]
            current_tokens = line_tokens
            start_line = line_num
        else:
            current.append(line)
            current_tokens += line_tokens

    if current:
        chunks.append((start_line, len(lines), '\n'.join(current)))

    return chunks
