"""Bundled parsers satisfying the ``Parser`` / ``ConfigDialect`` capabilities.

Usage::

    from patchsmith.parsers import ParserRegistry

    parsers = ParserRegistry.default_registry()
    parser = parsers.for_path("config/config.json")
    tree = parser.parse(text)
"""

from patchsmith.parsers.base import (
    ConfigDialect,
    KeyPath,
    Parser,
    ParserRegistry,
    format_key_path,
)
from patchsmith.parsers.dotenv import DotenvParser
from patchsmith.parsers.jsonc import JsoncParser
from patchsmith.parsers.text import TextParser

__all__ = [
    "ConfigDialect",
    "DotenvParser",
    "JsoncParser",
    "KeyPath",
    "Parser",
    "ParserRegistry",
    "TextParser",
    "format_key_path",
]
