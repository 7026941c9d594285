"""Immutable in-memory view of a target project.

``ProjectLoader`` reads and parses the project's files once, concurrently,
into a ``ProjectSnapshot``.  A snapshot is never mutated: applying an
operation produces a new snapshot that shares every untouched ``FileEntry``
with the previous one.
"""

from __future__ import annotations

import asyncio
import fnmatch
import os
from dataclasses import dataclass
from pathlib import Path, PurePosixPath
from types import MappingProxyType
from typing import Any, Iterator, Mapping

from patchsmith.config import LoaderConfig
from patchsmith.errors import StructuralError
from patchsmith.parsers import ConfigDialect, KeyPath, Parser, ParserRegistry
from patchsmith.zipper import Node


def normalize_path(path: str) -> str:
    """Return *path* as a clean project-relative POSIX path.

    Raises:
        StructuralError: If the path is absolute or escapes the project root.
    """
    pure = PurePosixPath(str(path).replace("\\", "/"))
    if pure.is_absolute():
        raise StructuralError("path must be relative to the project root", path=str(path))
    parts: list[str] = []
    for part in pure.parts:
        if part == "..":
            if not parts:
                raise StructuralError("path escapes the project root", path=str(path))
            parts.pop()
        elif part not in ("", "."):
            parts.append(part)
    if not parts:
        raise StructuralError("empty path", path=str(path))
    return "/".join(parts)


@dataclass(frozen=True)
class FileEntry:
    """One file of the snapshot: its text, parsed tree, and parser.

    ``parse_error`` is set when the file's preferred parser rejected it; the
    tree then comes from the fallback text parser.
    """

    path: str
    text: str
    tree: Node
    parser: Parser
    parse_error: str | None = None

    @classmethod
    def parse(cls, path: str, text: str, parsers: ParserRegistry) -> "FileEntry":
        parser = parsers.for_path(path)
        try:
            return cls(path=path, text=text, tree=parser.parse(text), parser=parser)
        except StructuralError as exc:
            fallback = parsers.default
            return cls(
                path=path,
                text=text,
                tree=fallback.parse(text),
                parser=fallback,
                parse_error=str(exc.at(path)),
            )

    def with_tree(self, tree: Node) -> "FileEntry":
        return FileEntry(self.path, self.parser.render(tree), tree, self.parser)


class ProjectSnapshot:
    """Read-only mapping of project-relative paths to ``FileEntry`` objects.

    A loaded snapshot also remembers what exists on disk but was left out:
    ``skipped`` files (oversized or not UTF-8), ``unlisted`` files (no include
    glob matched) and ``excluded_dirs`` (pruned without being walked).
    """

    def __init__(
        self,
        root: str | Path,
        entries: Mapping[str, FileEntry] | None = None,
        skipped: tuple[str, ...] = (),
        unlisted: tuple[str, ...] = (),
        excluded_dirs: tuple[str, ...] = (),
    ) -> None:
        self.root = Path(root)
        self._entries: Mapping[str, FileEntry] = MappingProxyType(dict(entries or {}))
        self.skipped = skipped
        self.unlisted = unlisted
        self.excluded_dirs = excluded_dirs
        self._left_out = frozenset(skipped) | frozenset(unlisted)

    @classmethod
    def from_texts(
        cls,
        root: str | Path,
        texts: Mapping[str, str],
        parsers: ParserRegistry | None = None,
    ) -> "ProjectSnapshot":
        """Build a snapshot from in-memory file contents."""
        parsers = parsers or ParserRegistry.default_registry()
        entries = {}
        for path, text in texts.items():
            rel = normalize_path(path)
            entries[rel] = FileEntry.parse(rel, text, parsers)
        return cls(root, entries)

    # -- Mapping-style access ----------------------------------------------

    def __contains__(self, path: object) -> bool:
        return isinstance(path, str) and path in self._entries

    def __iter__(self) -> Iterator[str]:
        return iter(sorted(self._entries))

    def __len__(self) -> int:
        return len(self._entries)

    def paths(self) -> list[str]:
        return sorted(self._entries)

    def get(self, path: str) -> FileEntry | None:
        return self._entries.get(normalize_path(path))

    def exists(self, path: str) -> bool:
        return self.get(path) is not None

    def is_unloaded(self, path: str) -> bool:
        """True when *path* may exist on disk although it has no entry here."""
        rel = normalize_path(path)
        if rel in self._left_out:
            return True
        return any(rel == d or rel.startswith(d + "/") for d in self.excluded_dirs)

    def read(self, path: str) -> str | None:
        entry = self.get(path)
        return entry.text if entry else None

    def tree(self, path: str) -> Node | None:
        entry = self.get(path)
        return entry.tree if entry else None

    def config_value(self, path: str, key_path: KeyPath, default: Any = None) -> Any:
        """Read a configuration value, or *default* when file or key is missing."""
        entry = self.get(path)
        if entry is None or not isinstance(entry.parser, ConfigDialect):
            return default
        cursor = entry.parser.locate(entry.tree, tuple(key_path))
        if cursor is None:
            return default
        return entry.parser.value_of(cursor.node)

    # -- Persistent update -------------------------------------------------

    def with_entry(self, entry: FileEntry) -> "ProjectSnapshot":
        entries = dict(self._entries)
        entries[entry.path] = entry
        return ProjectSnapshot(self.root, entries, self.skipped, self.unlisted, self.excluded_dirs)


# ---------------------------------------------------------------------------
# Loader
# ---------------------------------------------------------------------------


class ProjectLoader:
    """Enumerates, reads, and parses a project's files into a snapshot.

    Parsing is read-only, so files are parsed concurrently on worker threads,
    at most ``LoaderConfig.parse_workers`` at a time.
    """

    def __init__(
        self,
        root: str | Path,
        config: LoaderConfig | None = None,
        parsers: ParserRegistry | None = None,
    ) -> None:
        self.root = Path(root)
        self.config = config or LoaderConfig()
        self.parsers = parsers or ParserRegistry.default_registry()

    async def load(self) -> ProjectSnapshot:
        paths, unlisted, pruned = await asyncio.to_thread(self._walk)
        semaphore = asyncio.Semaphore(self.config.parse_workers)

        async def _load(rel: str) -> tuple[str, FileEntry | None]:
            async with semaphore:
                return rel, await asyncio.to_thread(self._read_and_parse, rel)

        results = await asyncio.gather(*[_load(p) for p in paths])
        entries = {rel: entry for rel, entry in results if entry is not None}
        skipped = tuple(rel for rel, entry in results if entry is None)
        return ProjectSnapshot(self.root, entries, skipped, tuple(unlisted), tuple(pruned))

    def discover(self) -> list[str]:
        """Return every project-relative file path matching the include globs."""
        return self._walk()[0]

    def _walk(self) -> tuple[list[str], list[str], list[str]]:
        """Split the tree into included files, unmatched files and pruned dirs."""
        found: list[str] = []
        unlisted: list[str] = []
        pruned: list[str] = []
        if not self.root.is_dir():
            return found, unlisted, pruned
        excluded = set(self.config.exclude_dirs)
        for dirpath, dirnames, filenames in os.walk(self.root):
            base = Path(dirpath).relative_to(self.root)
            pruned.extend((base / d).as_posix() for d in sorted(dirnames) if d in excluded)
            dirnames[:] = sorted(d for d in dirnames if d not in excluded)
            for filename in sorted(filenames):
                rel = (base / filename).as_posix()
                if any(fnmatch.fnmatchcase(rel, pattern) for pattern in self.config.include):
                    found.append(rel)
                else:
                    unlisted.append(rel)
        return found, unlisted, pruned

    def _read_and_parse(self, rel: str) -> FileEntry | None:
        path = self.root / rel
        try:
            if path.stat().st_size > self.config.max_file_bytes:
                return None
            text = path.read_bytes().decode("utf-8")
        except (OSError, UnicodeDecodeError):
            return None
        return FileEntry.parse(rel, text, self.parsers)
