"""Unified diff rendering for merged change sets."""

from __future__ import annotations

import difflib
from dataclasses import dataclass
from typing import TYPE_CHECKING

from patchsmith.errors import ConflictError

if TYPE_CHECKING:
    from patchsmith.composer.changeset import MergedChangeSet

NO_NEWLINE_MARKER = "\\ No newline at end of file\n"


@dataclass(frozen=True)
class FileDiff:
    """Reviewable diff of one file."""

    path: str
    text: str
    is_new: bool
    added: int
    removed: int


def unified_diff(path: str, before: str | None, after: str, context_lines: int = 3) -> str:
    """Return a git-style unified diff; new files are diffed against ``/dev/null``."""
    old_lines = before.splitlines(keepends=True) if before is not None else []
    new_lines = after.splitlines(keepends=True)
    fromfile = f"a/{path}" if before is not None else "/dev/null"
    lines = difflib.unified_diff(
        old_lines, new_lines, fromfile=fromfile, tofile=f"b/{path}", n=context_lines
    )
    out = []
    for line in lines:
        if line.endswith("\n"):
            out.append(line)
        else:
            out.append(line + "\n")
            out.append(NO_NEWLINE_MARKER)
    return "".join(out)


def _count(text: str, sign: str) -> int:
    # Skip the ---/+++ header.
    return sum(1 for line in text.splitlines()[2:] if line.startswith(sign))


def render_changeset(changeset: "MergedChangeSet", context_lines: int = 3) -> list[FileDiff]:
    """Render every changed file of *changeset*, in change-set order.

    Raises:
        ConflictError: The change set has unresolved conflicts or failures.
    """
    report = changeset.report()
    if not report.ok:
        raise ConflictError(report)
    diffs = []
    for change in changeset.files:
        text = unified_diff(change.path, change.before, change.after, context_lines)
        diffs.append(
            FileDiff(
                path=change.path,
                text=text,
                is_new=change.is_new,
                added=_count(text, "+"),
                removed=_count(text, "-"),
            )
        )
    return diffs
