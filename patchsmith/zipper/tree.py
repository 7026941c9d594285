"""Persistent, lossless syntax tree.

Every character of a parsed file lives in exactly one leaf, so rendering a
tree is the concatenation of its leaves.  Nodes are immutable: an edit builds
new nodes along the path from the root to the edit site and shares every
other subtree with the previous version.  Rendered text is cached per node,
which means untouched subtrees are rendered once and then reused verbatim.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from functools import cached_property
from typing import Callable, Iterator


# Node kinds that carry formatting rather than content.  They never count
# towards a container's ``min_items``.
TRIVIA_KINDS: frozenset[str] = frozenset({"ws", "comment", "punct", "newline"})


@dataclass(frozen=True, eq=False)
class Node:
    """A single node of a lossless tree.

    Attributes:
        kind: Parser-specific node type, e.g. ``"object"`` or ``"line"``.
        text: Source text for leaves, ``None`` for containers.
        children: Child nodes for containers.
        min_items: Minimum number of non-trivia children a container must
            keep.  Deleting below this raises ``StructuralError``.
    """

    kind: str
    text: str | None = None
    children: tuple[Node, ...] = field(default=())
    min_items: int = 0

    # -- Constructors ------------------------------------------------------

    @classmethod
    def leaf(cls, kind: str, text: str) -> Node:
        return cls(kind=kind, text=text)

    @classmethod
    def container(cls, kind: str, children: list[Node] | tuple[Node, ...], min_items: int = 0) -> Node:
        return cls(kind=kind, children=tuple(children), min_items=min_items)

    # -- Rendering ---------------------------------------------------------

    @cached_property
    def source(self) -> str:
        """The exact source text of this subtree."""
        if self.text is not None:
            return self.text
        return "".join(child.source for child in self.children)

    @cached_property
    def length(self) -> int:
        if self.text is not None:
            return len(self.text)
        return sum(child.length for child in self.children)

    # -- Inspection --------------------------------------------------------

    @property
    def is_leaf(self) -> bool:
        return self.text is not None

    @property
    def is_trivia(self) -> bool:
        return self.kind in TRIVIA_KINDS

    def items(self) -> list[tuple[int, Node]]:
        """Return ``(index, child)`` for every non-trivia child."""
        return [(i, c) for i, c in enumerate(self.children) if not c.is_trivia]

    def walk(self) -> Iterator[Node]:
        """Yield this node and all descendants in pre-order."""
        yield self
        for child in self.children:
            yield from child.walk()

    def find_all(self, predicate: Callable[[Node], bool]) -> list[Node]:
        return [n for n in self.walk() if predicate(n)]

    # -- Persistent updates (return new nodes) -----------------------------

    def with_children(self, children: tuple[Node, ...]) -> Node:
        return Node(kind=self.kind, text=None, children=children, min_items=self.min_items)

    def replace_child(self, index: int, child: Node) -> Node:
        kids = self.children
        return self.with_children(kids[:index] + (child,) + kids[index + 1:])

    def insert_children(self, index: int, new: tuple[Node, ...]) -> Node:
        kids = self.children
        return self.with_children(kids[:index] + new + kids[index:])

    def remove_child(self, index: int) -> Node:
        kids = self.children
        return self.with_children(kids[:index] + kids[index + 1:])

    def __repr__(self) -> str:
        if self.text is not None:
            return f"Node({self.kind!r}, {self.text!r})"
        return f"Node({self.kind!r}, children={len(self.children)})"


def to_source(tree: Node) -> str:
    """Render *tree* back to source text."""
    return tree.source
