"""Regex/brace extractor for JavaScript and TypeScript files."""

import re

from .brace_parser import BraceLanguageParser, FunctionPattern


class JavaScriptParser(BraceLanguageParser):
    """Extracts functions, arrow functions and class methods from JS/TS."""

    name = "javascript"
    extensions = ('.js', '.jsx', '.ts', '.tsx', '.mjs', '.cjs')

    class_pattern = re.compile(
        r'^(?:export\s+)?(?:default\s+)?(?:declare\s+)?(?:abstract\s+)?(?:class|interface)\s+(?P<name>\w+)'
    )

    function_patterns = [
        # function name(...) / export default async function* name(...)
        FunctionPattern(
            r'^(?:export\s+)?(?:default\s+)?(?:async\s+)?function\s*\*?\s*(?P<name>\w+)\s*[(<]'
        ),
        # const name = (...) => ... / const name = function (...)
        FunctionPattern(
            r'^(?:export\s+)?(?:const|let|var)\s+(?P<name>\w+)\s*(?::[^=]+)?=\s*(?:async\s+)?'
            r'(?:function\b|\([^)]*\)\s*(?::[^=]+)?=>|\w+\s*=>)',
            expression_body=True,
        ),
        # name: (...) => ... / name: function (...)
        FunctionPattern(
            r'^(?P<name>\w+)\s*:\s*(?:async\s+)?(?:function\b|\([^)]*\)\s*(?::[^=]+)?=>|\w+\s*=>)',
            expression_body=True,
        ),
        # class members: async name(...) { / static get name() {
        FunctionPattern(
            r'^(?:(?:public|private|protected|static|async|override|abstract|readonly|get|set)\s+)*'
            r'\*?(?P<name>\w+)\s*(?:<[^>]*>)?\s*\([^)]*\)[^{;]*\{',
            class_scope_only=True,
        ),
    ]
