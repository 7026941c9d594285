"""Lossless parser for dotenv files (``KEY=value`` per line).

Only flat, scalar keys exist, so key paths have exactly one string part and
list operations are rejected.
"""

from __future__ import annotations

import re
from typing import Any

from patchsmith.errors import StructuralError
from patchsmith.parsers.base import KeyPath, format_key_path
from patchsmith.zipper import Cursor, Node, focus

_ENTRY_RE = re.compile(
    r"^(?P<lead>[ \t]*(?:export[ \t]+)?)"
    r"(?P<key>[A-Za-z_][A-Za-z0-9_.\-]*)"
    r"(?P<sep>[ \t]*=[ \t]*)"
    r"(?P<value>[^\r\n]*?)"
    r"(?P<nl>\r?\n)?$"
)
_NEEDS_QUOTES_RE = re.compile(r"[\s#'\"\\]")


class DotenvParser:
    """Config dialect for ``.env`` style files."""

    name = "dotenv"

    def parse(self, text: str) -> Node:
        children = [self._parse_line(line) for line in text.splitlines(keepends=True)]
        return Node.container("document", children)

    def render(self, tree: Node) -> str:
        return tree.source

    def empty_document(self) -> str:
        return ""

    # -- Reading -------------------------------------------------------------

    def value_of(self, node: Node) -> Any:
        if node.kind == "entry":
            node = node.children[_value_index(node)]
        if node.kind != "value":
            raise StructuralError(f"node {node.kind!r} has no value")
        return _unquote(node.text or "")

    def normalize(self, value: Any) -> Any:
        """Return *value* as it would read back after being written."""
        return _unquote(_quote(value))

    def locate(self, tree: Node, key_path: KeyPath) -> Cursor | None:
        key = _single_key(key_path)
        matches = [i for i, c in enumerate(tree.children) if c.kind == "entry" and _entry_key(c) == key]
        if not matches:
            return None
        entry = focus(tree, (matches[-1],))
        return entry.down(_value_index(entry.node))

    # -- Editing -------------------------------------------------------------

    def set_value(self, tree: Node, key_path: KeyPath, value: Any) -> Node:
        key = _single_key(key_path)
        cursor = self.locate(tree, key_path)
        if cursor is not None:
            return cursor.replace(Node.leaf("value", _quote(value))).root()

        children = list(tree.children)
        if children and not children[-1].source.endswith("\n"):
            children[-1] = _terminate(children[-1])
        children.append(self._parse_line(f"{key}={_quote(value)}\n"))
        return tree.with_children(tuple(children))

    def append_item(self, tree: Node, key_path: KeyPath, value: Any) -> Node:
        raise StructuralError(
            f"dotenv values are scalar; cannot append to {format_key_path(key_path)!r}"
        )

    # -- Internal ------------------------------------------------------------

    def _parse_line(self, line: str) -> Node:
        m = _ENTRY_RE.match(line)
        if not m:
            return Node.leaf("line", line)
        children: list[Node] = []
        if m.group("lead"):
            children.append(Node.leaf("ws", m.group("lead")))
        children.append(Node.leaf("key", m.group("key")))
        children.append(Node.leaf("punct", m.group("sep")))
        children.append(Node.leaf("value", m.group("value")))
        if m.group("nl"):
            children.append(Node.leaf("newline", m.group("nl")))
        return Node.container("entry", children, min_items=2)


def _single_key(key_path: KeyPath) -> str:
    if len(key_path) != 1 or not isinstance(key_path[0], str):
        raise StructuralError(
            f"dotenv keys are flat; got key path {format_key_path(key_path)!r}"
        )
    return key_path[0]


def _entry_key(entry: Node) -> str:
    return next(c.text or "" for c in entry.children if c.kind == "key")


def _value_index(entry: Node) -> int:
    return next(i for i, c in enumerate(entry.children) if c.kind == "value")


def _terminate(node: Node) -> Node:
    if node.is_leaf:
        return Node.leaf(node.kind, (node.text or "") + "\n")
    return node.with_children(node.children + (Node.leaf("newline", "\n"),))


def _quote(value: Any) -> str:
    if isinstance(value, bool):
        return "true" if value else "false"
    text = "" if value is None else str(value)
    if text and not _NEEDS_QUOTES_RE.search(text):
        return text
    if not text:
        return '""'
    escaped = text.replace("\\", "\\\\").replace('"', '\\"').replace("\n", "\\n")
    return f'"{escaped}"'


def _unquote(raw: str) -> str:
    raw = raw.strip()
    if len(raw) >= 2 and raw[0] == raw[-1] == "'":
        return raw[1:-1]
    if len(raw) >= 2 and raw[0] == raw[-1] == '"':
        body = raw[1:-1]
        out: list[str] = []
        i = 0
        while i < len(body):
            ch = body[i]
            if ch == "\\" and i + 1 < len(body):
                nxt = body[i + 1]
                out.append("\n" if nxt == "n" else nxt)
                i += 2
                continue
            out.append(ch)
            i += 1
        return "".join(out)
    if " #" in raw:
        raw = raw.split(" #", 1)[0].rstrip()
    return raw
