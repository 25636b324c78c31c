"""Incremental code-block extraction and embedding for source trees."""

__version__ = "1.0.0"
