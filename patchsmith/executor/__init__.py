"""Diff rendering and atomic apply.

Key classes:
    FileDiff         - unified diff of one file
    ChangeSetWriter  - all-or-nothing apply with drift check and rollback
    ApplyResult      - what an apply wrote (or that it was declined)
"""

from patchsmith.executor.diff import FileDiff, render_changeset, unified_diff
from patchsmith.executor.writer import ApplyResult, ChangeSetWriter, ConfirmCallback

__all__ = [
    "ApplyResult",
    "ChangeSetWriter",
    "ConfirmCallback",
    "FileDiff",
    "render_changeset",
    "unified_diff",
]
