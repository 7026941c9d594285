"""Lossless JSON-with-comments parser and config dialect.

Accepts plain JSON plus ``//`` and ``/* */`` comments and trailing commas.
Every byte of the input is kept in a leaf, so untouched regions render back
exactly.  Structural inserts follow the layout already present in the
container being edited: its item indentation, its separator after commas,
and whether it uses a trailing comma.

Tree shape::

    document : ws/comment* value ws/comment*
    object   : "{" (ws | comment | member | ",")* "}"
    member   : string ws* ":" ws* value
    array    : "[" (ws | comment | value | ",")* "]"
    string / number / literal : leaves
"""

from __future__ import annotations

import json
import re
from typing import Any, Callable

from patchsmith.errors import StructuralError
from patchsmith.parsers.base import KeyPath, format_key_path
from patchsmith.zipper import Cursor, Node, focus

_WS_RE = re.compile(r"[ \t\r\n]+")
_STRING_RE = re.compile(r'"(?:[^"\\\n]|\\.)*"')
_NUMBER_RE = re.compile(r"-?(?:0|[1-9]\d*)(?:\.\d+)?(?:[eE][+-]?\d+)?")
_LITERALS = ("true", "false", "null")
_CONTAINERS = ("object", "array")


def _punct(text: str) -> Node:
    return Node.leaf("punct", text)


def _ws(text: str) -> Node:
    return Node.leaf("ws", text)


# ---------------------------------------------------------------------------
# Reader
# ---------------------------------------------------------------------------


class _Reader:
    """Recursive-descent reader producing lossless nodes."""

    def __init__(self, text: str) -> None:
        self.text = text
        self.pos = 0

    def error(self, message: str) -> StructuralError:
        line = self.text.count("\n", 0, self.pos) + 1
        col = self.pos - (self.text.rfind("\n", 0, self.pos) + 1) + 1
        return StructuralError(message, location=f"{line}:{col}")

    def peek(self, token: str) -> bool:
        return self.text.startswith(token, self.pos)

    def at_end(self) -> bool:
        return self.pos >= len(self.text)

    def trivia(self) -> list[Node]:
        nodes: list[Node] = []
        while not self.at_end():
            m = _WS_RE.match(self.text, self.pos)
            if m:
                nodes.append(_ws(m.group()))
                self.pos = m.end()
            elif self.peek("//"):
                end = self.text.find("\n", self.pos)
                end = len(self.text) if end == -1 else end
                nodes.append(Node.leaf("comment", self.text[self.pos:end]))
                self.pos = end
            elif self.peek("/*"):
                end = self.text.find("*/", self.pos + 2)
                if end == -1:
                    raise self.error("unterminated block comment")
                nodes.append(Node.leaf("comment", self.text[self.pos:end + 2]))
                self.pos = end + 2
            else:
                break
        return nodes

    def expect(self, token: str) -> Node:
        if not self.peek(token):
            raise self.error(f"expected {token!r}")
        self.pos += len(token)
        return _punct(token)

    def value(self) -> Node:
        if self.peek("{"):
            return self.object()
        if self.peek("["):
            return self.array()
        if self.peek('"'):
            return self.string()
        for literal in _LITERALS:
            if self.peek(literal):
                self.pos += len(literal)
                return Node.leaf("literal", literal)
        m = _NUMBER_RE.match(self.text, self.pos)
        if m:
            self.pos = m.end()
            return Node.leaf("number", m.group())
        if self.at_end():
            raise self.error("unexpected end of input")
        raise self.error(f"unexpected character {self.text[self.pos]!r}")

    def string(self) -> Node:
        m = _STRING_RE.match(self.text, self.pos)
        if not m:
            raise self.error("unterminated string")
        self.pos = m.end()
        return Node.leaf("string", m.group())

    def member(self) -> Node:
        children = [self.string()]
        children += self.trivia()
        children.append(self.expect(":"))
        children += self.trivia()
        children.append(self.value())
        return Node.container("member", children, min_items=2)

    def object(self) -> Node:
        return self._sequence("object", "{", "}", self.member, '"')

    def array(self) -> Node:
        return self._sequence("array", "[", "]", self.value, None)

    def _sequence(
        self,
        kind: str,
        open_: str,
        close: str,
        item: Callable[[], Node],
        item_start: str | None,
    ) -> Node:
        children = [self.expect(open_)]
        while True:
            children += self.trivia()
            if self.peek(close):
                children.append(self.expect(close))
                break
            if item_start is not None and not self.peek(item_start):
                raise self.error(f"expected string key or {close!r}")
            children.append(item())
            children += self.trivia()
            if self.peek(","):
                children.append(self.expect(","))
            elif self.peek(close):
                children.append(self.expect(close))
                break
            else:
                raise self.error(f"expected ',' or {close!r}")
        return Node.container(kind, children)


# ---------------------------------------------------------------------------
# Parser / dialect
# ---------------------------------------------------------------------------


class JsoncParser:
    """Config dialect for ``.json`` / ``.jsonc`` files."""

    name = "jsonc"

    def parse(self, text: str) -> Node:
        reader = _Reader(text)
        children = reader.trivia()
        if not reader.at_end():
            children.append(reader.value())
            children += reader.trivia()
            if not reader.at_end():
                raise reader.error("unexpected content after the top-level value")
        return Node.container("document", children, min_items=1)

    def parse_value(self, text: str) -> Node:
        """Parse a single JSON value with no surrounding trivia."""
        reader = _Reader(text)
        node = reader.value()
        if not reader.at_end():
            raise reader.error("unexpected content after value")
        return node

    def render(self, tree: Node) -> str:
        return tree.source

    def empty_document(self) -> str:
        return "{}\n"

    def normalize(self, value: Any) -> Any:
        """Return *value* as it would read back after being written."""
        return json.loads(json.dumps(value))

    # -- Reading -------------------------------------------------------------

    def value_of(self, node: Node) -> Any:
        """Convert a value node (or document / member) to a Python value."""
        if node.kind in ("string", "number", "literal"):
            return json.loads(node.text or "")
        if node.kind == "object":
            return {_member_key(m): self.value_of(m) for _, m in node.items()}
        if node.kind == "array":
            return [self.value_of(item) for _, item in node.items()]
        if node.kind == "member":
            return self.value_of(node.children[_value_index(node)])
        if node.kind == "document":
            items = node.items()
            return self.value_of(items[0][1]) if items else None
        raise StructuralError(f"node {node.kind!r} has no value")

    def locate(self, tree: Node, key_path: KeyPath) -> Cursor | None:
        cursor, consumed = self._walk(tree, key_path)
        if cursor is None or consumed != len(key_path):
            return None
        return cursor

    # -- Editing -------------------------------------------------------------

    def set_value(self, tree: Node, key_path: KeyPath, value: Any) -> Node:
        """Set *key_path* to *value*, creating intermediate objects as needed."""
        cursor, consumed = self._walk(tree, key_path)
        unit = _indent_unit(cursor)
        if cursor is None:
            return self._with_root_value(tree, _nest(key_path, value), unit)
        if consumed == len(key_path):
            base = _line_indent(cursor)
            return cursor.replace(self._format(value, unit, base)).root()

        remaining = key_path[consumed:]
        if cursor.node.kind != "object" or not isinstance(remaining[0], str):
            raise StructuralError(
                f"cannot create {format_key_path(key_path)!r}: "
                f"{format_key_path(key_path[:consumed])!r} is a {cursor.node.kind}",
            )
        key = remaining[0]
        nested = _nest(remaining[1:], value)

        def make(indent: str) -> Node:
            return self._member(key, nested, unit, indent)

        return _insert_entry(cursor, make, unit).root()

    def append_item(self, tree: Node, key_path: KeyPath, value: Any) -> Node:
        """Append *value* to the list at *key_path*, creating the list if absent."""
        cursor = self.locate(tree, key_path)
        if cursor is None:
            return self.set_value(tree, key_path, [value])
        if cursor.node.kind != "array":
            raise StructuralError(
                f"{format_key_path(key_path)!r} is a {cursor.node.kind}, not a list"
            )
        unit = _indent_unit(cursor)
        return _insert_entry(cursor, lambda indent: self._format(value, unit, indent), unit).root()

    # -- Internal ------------------------------------------------------------

    def _walk(self, tree: Node, key_path: KeyPath) -> tuple[Cursor | None, int]:
        """Follow *key_path* as far as it exists; return the cursor and parts consumed."""
        items = tree.items()
        if not items:
            return None, 0
        cursor = focus(tree, (items[0][0],))
        for consumed, part in enumerate(key_path):
            node = cursor.node
            if isinstance(part, str) and node.kind == "object":
                matches = [i for i, m in node.items() if _member_key(m) == part]
                if not matches:
                    return cursor, consumed
                member = cursor.down(matches[-1])
                cursor = member.down(_value_index(member.node))
            elif isinstance(part, int) and node.kind == "array":
                elements = node.items()
                if not -len(elements) <= part < len(elements):
                    return cursor, consumed
                cursor = cursor.down(elements[part][0])
            else:
                return cursor, consumed
        return cursor, len(key_path)

    def _format(self, value: Any, unit: str, base: str) -> Node:
        text = json.dumps(value, indent=unit, ensure_ascii=False)
        if base:
            text = text.replace("\n", "\n" + base)
        return self.parse_value(text)

    def _member(self, key: str, value: Any, unit: str, indent: str) -> Node:
        return Node.container(
            "member",
            [
                Node.leaf("string", json.dumps(key, ensure_ascii=False)),
                _punct(":"),
                _ws(" "),
                self._format(value, unit, indent),
            ],
            min_items=2,
        )

    def _with_root_value(self, tree: Node, value: Any, unit: str) -> Node:
        node = self._format(value, unit, "")
        children = list(tree.children) + [node, _ws("\n")]
        return tree.with_children(tuple(children))


# ---------------------------------------------------------------------------
# Layout helpers
# ---------------------------------------------------------------------------


def _member_key(member: Node) -> str:
    return json.loads(member.children[0].text or '""')


def _value_index(member: Node) -> int:
    return member.items()[-1][0]


def _nest(parts: KeyPath, value: Any) -> Any:
    for part in reversed(parts):
        if not isinstance(part, str):
            raise StructuralError(f"cannot create list index {part} in a missing container")
        value = {part: value}
    return value


def _indent_unit(cursor: Cursor | None) -> str:
    """Indentation step of the nearest enclosing multi-line container.

    Only the ancestors of *cursor* are inspected; two spaces when none of
    them is laid out one item per line.
    """
    cur = cursor
    while cur is not None:
        node = cur.node
        items = node.items() if node.kind in _CONTAINERS else []
        if items:
            before = node.children[items[0][0] - 1]
            text = (before.text or "") if before.kind == "ws" else ""
            if "\n" in text:
                indent = text.rsplit("\n", 1)[1]
                base = _line_indent(cur)
                if indent.startswith(base) and len(indent) > len(base):
                    return indent[len(base):]
        cur = cur.parent
    return "  "


def _line_indent(cursor: Cursor) -> str:
    """Leading whitespace of the line on which *cursor*'s node starts.

    Walks backwards through preceding leaves only as far as the previous
    newline.
    """
    pieces: list[str] = []
    cur = cursor
    while cur.parent is not None:
        for sibling in reversed(cur.parent.node.children[: cur.index]):
            if _tail_to_newline(sibling, pieces):
                return _leading_ws("".join(reversed(pieces)))
        cur = cur.parent
    return _leading_ws("".join(reversed(pieces)))


def _tail_to_newline(node: Node, pieces: list[str]) -> bool:
    """Collect *node*'s text backwards into *pieces*; True once a newline is hit."""
    if node.is_leaf:
        text = node.text or ""
        if "\n" in text:
            pieces.append(text.rsplit("\n", 1)[1])
            return True
        pieces.append(text)
        return False
    return any(_tail_to_newline(child, pieces) for child in reversed(node.children))


def _leading_ws(line: str) -> str:
    return line[: len(line) - len(line.lstrip(" \t"))]


def _insert_entry(cursor: Cursor, make: Callable[[str], Node], unit: str) -> Cursor:
    """Insert a new item built by ``make(indent)`` at the end of a container.

    Returns a cursor on the inserted item.
    """
    node = cursor.node
    if node.kind not in _CONTAINERS:
        raise StructuralError(f"cannot insert into {node.kind!r}")
    kids = node.children
    items = [i for i, c in node.items()]
    base = _line_indent(cursor)

    if not items:
        inner = kids[1:-1]
        comments = [k for k in inner if k.kind == "comment"]
        at_top = cursor.parent is not None and cursor.parent.node.kind == "document"
        if at_top or comments or any("\n" in k.source for k in inner):
            indent = base + unit
            new_kids: list[Node] = [kids[0]]
            for comment in comments:
                new_kids += [_ws("\n" + indent), comment]
            new_kids += [_ws("\n" + indent), make(indent), _ws("\n" + base), kids[-1]]
            position = len(new_kids) - 3
        else:
            new_kids = [kids[0], make(base), kids[-1]]
            position = 1
        return cursor.replace(node.with_children(tuple(new_kids))).down(position)

    first, last = items[0], items[-1]
    before_first = kids[first - 1]
    if before_first.kind == "ws" and "\n" in (before_first.text or ""):
        indent = (before_first.text or "").rsplit("\n", 1)[1]
        separator = "\n" + indent
    else:
        indent = base
        separator = _inline_separator(kids, items)

    trailing = _trailing_comma(kids, last)
    new_item = make(indent)
    if trailing is not None:
        insertion = (_ws(separator), new_item, _punct(","))
        position = trailing + 1
        focus_at = position + 1
    else:
        insertion = (_punct(","), _ws(separator), new_item)
        position = last + 1
        focus_at = position + 2
    if not separator:
        insertion = tuple(n for n in insertion if n.text != "")
        focus_at -= 1
    return cursor.replace(node.insert_children(position, insertion)).down(focus_at)


def _inline_separator(kids: tuple[Node, ...], items: list[int]) -> str:
    if len(items) > 1:
        between = kids[items[0] + 1:items[1]]
        seen_comma = False
        for k in between:
            if k.kind == "punct" and k.text == ",":
                seen_comma = True
            elif seen_comma and k.kind == "ws":
                return k.text or " "
        if seen_comma:
            return ""
    return " "


def _trailing_comma(kids: tuple[Node, ...], last: int) -> int | None:
    for index in range(last + 1, len(kids)):
        kid = kids[index]
        if kid.kind in ("ws", "comment"):
            continue
        if kid.kind == "punct" and kid.text == ",":
            return index
        return None
    return None
