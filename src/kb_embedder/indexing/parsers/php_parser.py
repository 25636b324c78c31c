"""Regex/brace extractor for PHP files."""

import re

from .brace_parser import BraceLanguageParser, FunctionPattern


class PHPParser(BraceLanguageParser):
    """Extracts functions, closures and class/trait methods from PHP."""

    name = "php"
    extensions = ('.php',)
    comment_prefixes = ('//', '#', '/*', '*')

    class_pattern = re.compile(
        r'^(?:(?:abstract|final|readonly)\s+)*(?:class|interface|trait|enum)\s+(?P<name>\w+)'
    )

    function_patterns = [
        FunctionPattern(
            r'^(?:(?:public|private|protected|static|abstract|final)\s+)*function\s+&?\s*(?P<name>\w+)\s*\('
        ),
        # $name = function (...) use (...) { / $name = fn($x) => ...;
        FunctionPattern(
            r'^\$(?P<name>\w+)\s*=\s*(?:static\s+)?(?:function|fn)\b',
            expression_body=True,
        ),
    ]
