"""
Language extractors and registry construction.

Only extractors for the selected file extensions are registered, in a fixed
order, so extension lookup is deterministic.
"""

import logging
from typing import Iterable, Optional

from ..chunker import ExtractorRegistry
from .go_parser import GoParser
from .javascript_parser import JavaScriptParser
from .php_parser import PHPParser
from .python_parser import PythonParser
from .text_parser import TextParser


def build_registry(extensions: Iterable[str], token_limit: int,
                   logger: Optional[logging.Logger] = None) -> ExtractorRegistry:
    """Register one extractor per language family claimed by ``extensions``."""
    logger = logger or logging.getLogger(__name__)
    selected = {ext.lower() for ext in extensions}
    registry = ExtractorRegistry(logger)

    candidates = [
        PythonParser(logger),
        JavaScriptParser(logger),
        PHPParser(logger),
        GoParser(logger),
        TextParser(token_limit, logger),
    ]

    for extractor in candidates:
        if selected.intersection(extractor.extensions):
            registry.register(extractor)
        else:
            logger.debug(f"⏭️ Skipping {extractor.name} extractor (no selected extensions)")

    logger.info(f"📝 Registered extractors: {len(registry)}")
    return registry


__all__ = [
    "build_registry",
    "GoParser",
    "JavaScriptParser",
    "PHPParser",
    "PythonParser",
    "TextParser",
]
