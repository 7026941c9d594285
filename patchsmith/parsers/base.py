"""Parser capability interfaces and the suffix-based parser registry."""

from __future__ import annotations

from pathlib import PurePosixPath
from typing import Any, Protocol, Union, runtime_checkable

from patchsmith.zipper import Cursor, Node

KeyPath = tuple[Union[str, int], ...]


@runtime_checkable
class Parser(Protocol):
    """Turns text into a lossless ``Node`` tree and back.

    Implementations must satisfy ``render(parse(text)) == text`` for every
    input they accept.
    """

    name: str

    def parse(self, text: str) -> Node: ...

    def render(self, tree: Node) -> str: ...


@runtime_checkable
class ConfigDialect(Parser, Protocol):
    """A parser whose trees expose named configuration keys."""

    def empty_document(self) -> str: ...

    def normalize(self, value: Any) -> Any: ...

    def locate(self, tree: Node, key_path: KeyPath) -> Cursor | None: ...

    def value_of(self, node: Node) -> Any: ...

    def set_value(self, tree: Node, key_path: KeyPath, value: Any) -> Node: ...

    def append_item(self, tree: Node, key_path: KeyPath, value: Any) -> Node: ...


def format_key_path(key_path: KeyPath) -> str:
    """Render a key path for diagnostics, e.g. ``things[0].name``."""
    out = ""
    for part in key_path:
        if isinstance(part, int):
            out += f"[{part}]"
        else:
            out += f".{part}" if out else str(part)
    return out or "<root>"


class ParserRegistry:
    """Maps file names and suffixes to parsers.

    Exact file names (``.env``) win over suffixes (``.json``); anything
    unmatched falls back to the registry's default parser.
    """

    def __init__(self, default: Parser) -> None:
        self.default = default
        self._by_suffix: dict[str, Parser] = {}
        self._by_name: dict[str, Parser] = {}

    def register(
        self,
        parser: Parser,
        *,
        suffixes: list[str] | None = None,
        names: list[str] | None = None,
    ) -> None:
        for suffix in suffixes or []:
            self._by_suffix[suffix.lower()] = parser
        for name in names or []:
            self._by_name[name] = parser

    def for_path(self, path: str) -> Parser:
        pure = PurePosixPath(path)
        if pure.name in self._by_name:
            return self._by_name[pure.name]
        if pure.suffix.lower() in self._by_suffix:
            return self._by_suffix[pure.suffix.lower()]
        return self.default

    @classmethod
    def default_registry(cls) -> "ParserRegistry":
        """Registry with the bundled text, JSONC and dotenv parsers."""
        from patchsmith.parsers.dotenv import DotenvParser
        from patchsmith.parsers.jsonc import JsoncParser
        from patchsmith.parsers.text import TextParser

        registry = cls(TextParser())
        registry.register(JsoncParser(), suffixes=[".json", ".jsonc"])
        registry.register(
            DotenvParser(),
            suffixes=[".env"],
            names=[".env", ".env.example", ".env.development", ".env.test", ".env.local"],
        )
        return registry
