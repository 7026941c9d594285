"""All-or-nothing application of a merged change set to disk.

Apply runs in three steps:

1. **Drift check** - every file the change set touches must still look
   exactly as it did in the planning snapshot.
2. **Stage** - every new file content is written to a temp file in the
   target's directory.  Nothing visible has changed yet.
3. **Commit** - staged files are moved over their targets with
   ``os.replace``.

A failure in any step removes the staged files, restores the targets that
were already committed, and removes directories created for new files, then
raises ``ApplyError`` naming the file that failed.
"""

from __future__ import annotations

import asyncio
import contextlib
import inspect
import os
import tempfile
from dataclasses import dataclass
from pathlib import Path
from typing import TYPE_CHECKING, Awaitable, Callable, Union

from patchsmith.errors import ApplyError
from patchsmith.executor.diff import FileDiff, render_changeset

if TYPE_CHECKING:
    from patchsmith.composer.changeset import FileChange, MergedChangeSet

ConfirmCallback = Callable[[list[FileDiff]], Union[bool, Awaitable[bool]]]

_NEW_FILE_MODE = 0o644


@dataclass(frozen=True)
class ApplyResult:
    """Outcome of ``ChangeSetWriter.apply``."""

    applied: bool
    written: tuple[str, ...] = ()
    created: tuple[str, ...] = ()
    diffs: tuple[FileDiff, ...] = ()

    @property
    def declined(self) -> bool:
        return not self.applied


@dataclass
class _Staged:
    change: "FileChange"
    target: Path
    temp: Path
    backup: bytes | None = None
    committed: bool = False


class ChangeSetWriter:
    """Writes a ``MergedChangeSet`` into the project at *root*."""

    def __init__(self, root: str | Path, *, context_lines: int = 3, check_drift: bool = True) -> None:
        self.root = Path(root)
        self.context_lines = context_lines
        self.check_drift = check_drift

    async def apply(
        self,
        changeset: "MergedChangeSet",
        confirm: ConfirmCallback | None = None,
    ) -> ApplyResult:
        """Apply *changeset*, optionally after confirmation.

        *confirm* receives the rendered diffs and returns (or resolves to)
        ``True`` to proceed.  Declining leaves the project untouched and
        returns a result with ``applied=False``.

        Raises:
            ConflictError: The change set has unresolved conflicts.
            ApplyError: Drift, staging, or commit failed.  Nothing was written.
        """
        diffs = render_changeset(changeset, self.context_lines)
        if not changeset.files:
            return ApplyResult(applied=True)
        if confirm is not None:
            answer = confirm(diffs)
            if inspect.isawaitable(answer):
                answer = await answer
            if not answer:
                return ApplyResult(applied=False, diffs=tuple(diffs))
        written, created = await asyncio.to_thread(self._commit, changeset)
        return ApplyResult(applied=True, written=written, created=created, diffs=tuple(diffs))

    # -- Internal ------------------------------------------------------------

    def _commit(self, changeset: "MergedChangeSet") -> tuple[tuple[str, ...], tuple[str, ...]]:
        if self.check_drift:
            self.verify_unchanged(changeset)

        payloads = [_encode(change) for change in changeset.files]
        staged: list[_Staged] = []
        created_dirs: list[Path] = []
        current = ""
        try:
            for change, payload in zip(changeset.files, payloads):
                current = change.path
                target = self.root / change.path
                _make_parents(target.parent, created_dirs)
                staged.append(_Staged(change, target, self._stage(target, payload)))

            for item in staged:
                current = item.change.path
                if item.target.exists():
                    item.backup = item.target.read_bytes()
                os.replace(item.temp, item.target)
                item.committed = True
        except OSError as exc:
            self._rollback(staged, created_dirs)
            raise ApplyError(f"write failed, no files were changed: {exc}", path=current) from exc

        written = tuple(item.change.path for item in staged)
        created = tuple(item.change.path for item in staged if item.change.is_new)
        return written, created

    def verify_unchanged(self, changeset: "MergedChangeSet") -> None:
        """Raise ``ApplyError`` if a touched file changed on disk since planning."""
        for change in changeset.files:
            target = self.root / change.path
            if change.before is None:
                if target.exists():
                    raise ApplyError("file was created on disk after planning", path=change.path)
                continue
            try:
                current = target.read_bytes().decode("utf-8")
            except (OSError, UnicodeDecodeError) as exc:
                raise ApplyError(f"cannot re-read file: {exc}", path=change.path) from exc
            if current != change.before:
                raise ApplyError("file changed on disk after planning", path=change.path)

    def _stage(self, target: Path, payload: bytes) -> Path:
        fd, name = tempfile.mkstemp(
            dir=target.parent, prefix=f".{target.name}.", suffix=".patchsmith"
        )
        temp = Path(name)
        try:
            with os.fdopen(fd, "wb") as fh:
                fh.write(payload)
            mode = target.stat().st_mode & 0o7777 if target.exists() else _NEW_FILE_MODE
            os.chmod(temp, mode)
        except OSError:
            temp.unlink(missing_ok=True)
            raise
        return temp

    def _rollback(self, staged: list[_Staged], created_dirs: list[Path]) -> None:
        for item in reversed(staged):
            if item.committed:
                if item.backup is None:
                    item.target.unlink(missing_ok=True)
                else:
                    item.target.write_bytes(item.backup)
            else:
                item.temp.unlink(missing_ok=True)
        for directory in reversed(created_dirs):
            # Only directories this apply created; they are empty again now.
            with contextlib.suppress(OSError):
                directory.rmdir()


def _make_parents(directory: Path, created: list[Path]) -> None:
    """Create *directory* and missing parents, recording each one in *created*."""
    missing: list[Path] = []
    current = directory
    while not current.exists():
        missing.append(current)
        current = current.parent
    missing.reverse()
    for path in missing:
        path.mkdir()
        created.append(path)


def _encode(change: "FileChange") -> bytes:
    try:
        return change.after.encode("utf-8")
    except UnicodeEncodeError as exc:
        raise ApplyError(f"content cannot be written as UTF-8: {exc}", path=change.path) from exc
