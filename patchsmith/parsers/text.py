"""Line-oriented parser for arbitrary text files.

The document node has one ``line`` leaf per line, terminator included, so a
``RawEdit`` can address a line by its index: ``node_path=(3,)`` is the fourth
line.
"""

from __future__ import annotations

from patchsmith.zipper import Node


class TextParser:
    """Lossless parser that splits text into line leaves."""

    name = "text"

    def parse(self, text: str) -> Node:
        lines = text.splitlines(keepends=True)
        return Node.container("document", [Node.leaf("line", line) for line in lines])

    def render(self, tree: Node) -> str:
        return tree.source
