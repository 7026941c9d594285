"""Structural cursor layer.

Persistent lossless trees (``Node``) and a zipper (``Cursor``) for localized,
format-preserving edits.

Quick usage::

    from patchsmith.zipper import focus, to_source

    cur = focus(tree, (0, 2)).replace(new_node)
    print(to_source(cur.root()))
"""

from patchsmith.zipper.cursor import (
    Cursor,
    edit_delete,
    edit_insert_after,
    edit_insert_before,
    edit_replace,
    focus,
)
from patchsmith.zipper.tree import TRIVIA_KINDS, Node, to_source

__all__ = [
    "Cursor",
    "Node",
    "TRIVIA_KINDS",
    "edit_delete",
    "edit_insert_after",
    "edit_insert_before",
    "edit_replace",
    "focus",
    "to_source",
]
