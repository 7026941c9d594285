"""Zipper cursor over a persistent ``Node`` tree.

A ``Cursor`` is a focused node plus the chain of parent cursors needed to
rebuild the root.  Moving and editing never mutate anything: each call
returns a new cursor, and previously obtained cursors keep describing the
tree as it was when they were created.

Quick usage::

    cur = focus(tree, (1, 0))
    cur = cur.replace(Node.leaf("string", '"new"'))
    new_tree = cur.root()
"""

from __future__ import annotations

from dataclasses import dataclass, replace
from typing import Callable, Iterator

from patchsmith.errors import StructuralError
from patchsmith.zipper.tree import Node


@dataclass(frozen=True)
class Cursor:
    """A focused position inside a tree.

    Attributes:
        node: The node under focus (possibly an edited version).
        parent: Cursor on the parent node, ``None`` at the root.
        index: Position of ``node`` inside the parent's children.
    """

    node: Node
    parent: Cursor | None = None
    index: int = -1

    # -- Navigation ----------------------------------------------------------

    @property
    def is_root(self) -> bool:
        return self.parent is None

    @property
    def depth(self) -> int:
        depth, cur = 0, self.parent
        while cur is not None:
            depth, cur = depth + 1, cur.parent
        return depth

    @property
    def path(self) -> tuple[int, ...]:
        """Child indices leading from the root to this node."""
        indices: list[int] = []
        cur: Cursor | None = self
        while cur is not None and cur.parent is not None:
            indices.append(cur.index)
            cur = cur.parent
        return tuple(reversed(indices))

    def down(self, index: int) -> Cursor:
        children = self.node.children
        if index < 0:
            index += len(children)
        if not 0 <= index < len(children):
            raise StructuralError(
                f"node {self.node.kind!r} has no child {index}",
                location=_format_path(self.path + (index,)),
            )
        return Cursor(children[index], self, index)

    def first_child(self) -> Cursor:
        return self.down(0)

    def last_child(self) -> Cursor:
        return self.down(-1)

    def up(self) -> Cursor:
        """Move to the parent, carrying any edit made at this position."""
        if self.parent is None:
            raise StructuralError("cursor is already at the root")
        parent_node = self.parent.node
        if parent_node.children[self.index] is not self.node:
            parent_node = parent_node.replace_child(self.index, self.node)
            return replace(self.parent, node=parent_node)
        return self.parent

    def left(self) -> Cursor:
        return self.up().down(self.index - 1) if self.index > 0 else self._no_sibling("left")

    def right(self) -> Cursor:
        if self.parent is None or self.index + 1 >= len(self.parent.node.children):
            return self._no_sibling("right")
        return self.up().down(self.index + 1)

    def root_cursor(self) -> Cursor:
        cur = self
        while cur.parent is not None:
            cur = cur.up()
        return cur

    def root(self) -> Node:
        """Return the root node of the (possibly edited) tree."""
        return self.root_cursor().node

    def find(self, predicate: Callable[[Node], bool]) -> Cursor | None:
        """Return a cursor on the first descendant (pre-order) matching *predicate*."""
        for cur in self.descendants():
            if predicate(cur.node):
                return cur
        return None

    def descendants(self) -> Iterator[Cursor]:
        yield self
        for i in range(len(self.node.children)):
            yield from self.down(i).descendants()

    @property
    def offset(self) -> int:
        """Character offset of the focused node inside the rendered root."""
        total = 0
        cur: Cursor = self
        while cur.parent is not None:
            siblings = cur.parent.node.children
            total += sum(s.length for s in siblings[: cur.index])
            cur = cur.parent
        return total

    # -- Editing -------------------------------------------------------------

    def replace(self, node: Node) -> Cursor:
        """Replace the focused node.  Replacing the root replaces the whole file."""
        return Cursor(node, self.parent, self.index)

    def insert_before(self, node: Node) -> Cursor:
        parent = self._require_parent("insert before")
        new_parent = parent.node.insert_children(self.index, (node,))
        return Cursor(node, replace(parent, node=new_parent), self.index)

    def insert_after(self, node: Node) -> Cursor:
        parent = self._require_parent("insert after")
        new_parent = parent.node.insert_children(self.index + 1, (node,))
        return Cursor(node, replace(parent, node=new_parent), self.index + 1)

    def insert_child(self, index: int, *nodes: Node) -> Cursor:
        """Insert *nodes* as children of the focused node; focus the first one."""
        if self.node.is_leaf:
            raise StructuralError(
                f"cannot insert children into leaf {self.node.kind!r}",
                location=_format_path(self.path),
            )
        count = len(self.node.children)
        if index < 0:
            index += count + 1
        if not 0 <= index <= count:
            raise StructuralError(
                f"insert position {index} out of range for {self.node.kind!r}",
                location=_format_path(self.path),
            )
        new_node = self.node.insert_children(index, tuple(nodes))
        return Cursor(new_node, self.parent, self.index).down(index)

    def delete(self) -> Cursor:
        """Delete the focused node and return a cursor on its parent."""
        parent = self._require_parent("delete")
        container = parent.node
        if not self.node.is_trivia and container.min_items:
            remaining = len(container.items()) - 1
            if remaining < container.min_items:
                raise StructuralError(
                    f"cannot delete the last required item of {container.kind!r}",
                    location=_format_path(self.path),
                )
        return replace(parent, node=container.remove_child(self.index))

    # -- Internal ------------------------------------------------------------

    def _require_parent(self, action: str) -> Cursor:
        if self.parent is None:
            raise StructuralError(f"cannot {action} the root node")
        return self.up()

    def _no_sibling(self, side: str) -> Cursor:
        raise StructuralError(
            f"node {self.node.kind!r} has no {side} sibling",
            location=_format_path(self.path),
        )


# ---------------------------------------------------------------------------
# Functional API
# ---------------------------------------------------------------------------


def focus(tree: Node, path: tuple[int, ...] | list[int] = ()) -> Cursor:
    """Return a cursor on the node reached by following *path* from *tree*."""
    cur = Cursor(tree)
    for index in path:
        cur = cur.down(index)
    return cur


def edit_replace(cursor: Cursor, node: Node) -> tuple[Node, Cursor]:
    cur = cursor.replace(node)
    return cur.root(), cur


def edit_insert_before(cursor: Cursor, node: Node) -> tuple[Node, Cursor]:
    cur = cursor.insert_before(node)
    return cur.root(), cur


def edit_insert_after(cursor: Cursor, node: Node) -> tuple[Node, Cursor]:
    cur = cursor.insert_after(node)
    return cur.root(), cur


def edit_delete(cursor: Cursor) -> tuple[Node, Cursor]:
    cur = cursor.delete()
    return cur.root(), cur


def _format_path(path: tuple[int, ...]) -> str:
    return "/" + "/".join(str(i) for i in path)
