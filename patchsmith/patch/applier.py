"""Applies one patch operation to a project snapshot.

``OperationApplier.apply`` never raises for conflicts or structural problems;
it returns an ``Outcome`` describing whether the operation changed the
snapshot, was already satisfied, conflicted with an earlier owner, or failed.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import TYPE_CHECKING

from jinja2 import TemplateError

from patchsmith.errors import StructuralError
from patchsmith.parsers import ConfigDialect, KeyPath, ParserRegistry
from patchsmith.patch.conflicts import (
    EXISTING_OWNER,
    AlreadyExistsConflict,
    Conflict,
    OperationFailure,
    RawEditOverlapConflict,
    ValueConflict,
)
from patchsmith.patch.operations import (
    CreateFile,
    EnsureConfigValue,
    ListInsert,
    MergeStrategy,
    PatchOperation,
    RawEdit,
    same_value,
)
from patchsmith.snapshot import FileEntry, ProjectSnapshot
from patchsmith.zipper import Node, focus

if TYPE_CHECKING:
    from patchsmith.scaffolder.templates import TemplateRenderer


class Status(str, Enum):
    APPLIED = "applied"
    NOOP = "noop"
    CONFLICT = "conflict"
    FAILED = "failed"


@dataclass(frozen=True)
class Outcome:
    """Result of applying one operation."""

    status: Status
    snapshot: ProjectSnapshot
    conflict: Conflict | None = None
    failure: OperationFailure | None = None


@dataclass
class OwnershipLedger:
    """Who last wrote each file and configuration key during a run.

    Used only to name both parties in conflict records.
    """

    files: dict[str, str] = field(default_factory=dict)
    keys: dict[tuple[str, KeyPath], str] = field(default_factory=dict)
    raw_edits: list[RawEdit] = field(default_factory=list)

    def file_owner(self, path: str) -> str:
        return self.files.get(path, EXISTING_OWNER)

    def key_owner(self, path: str, key_path: KeyPath) -> str:
        for end in range(len(key_path), 0, -1):
            owner = self.keys.get((path, tuple(key_path[:end])))
            if owner is not None:
                return owner
        return self.file_owner(path)

    def record(self, op: PatchOperation, status: Status) -> None:
        if isinstance(op, RawEdit):
            if status in (Status.APPLIED, Status.NOOP):
                self.raw_edits.append(op)
            return
        if status is not Status.APPLIED:
            return
        if isinstance(op, CreateFile):
            self.files[op.path] = op.provenance
        elif isinstance(op, EnsureConfigValue):
            self.keys[(op.path, tuple(op.key_path))] = op.provenance
            self.files.setdefault(op.path, op.provenance)
        elif isinstance(op, ListInsert):
            self.files.setdefault(op.path, op.provenance)


class OperationApplier:
    """Applies operations using the project's parsers and template renderer."""

    def __init__(
        self,
        parsers: ParserRegistry | None = None,
        renderer: TemplateRenderer | None = None,
    ) -> None:
        from patchsmith.scaffolder.templates import TemplateRenderer

        self.parsers = parsers or ParserRegistry.default_registry()
        self.renderer = renderer or TemplateRenderer()

    def apply(
        self,
        snapshot: ProjectSnapshot,
        op: PatchOperation,
        ledger: OwnershipLedger | None = None,
    ) -> Outcome:
        ledger = ledger or OwnershipLedger()
        try:
            if snapshot.get(op.path) is None and snapshot.is_unloaded(op.path):
                return self._unloaded(snapshot, op)
            if isinstance(op, CreateFile):
                return self._create_file(snapshot, op, ledger)
            if isinstance(op, EnsureConfigValue):
                return self._ensure_value(snapshot, op, ledger)
            if isinstance(op, ListInsert):
                return self._list_insert(snapshot, op)
            if isinstance(op, RawEdit):
                return self._raw_edit(snapshot, op, ledger)
        except StructuralError as exc:
            return _failed(snapshot, op, exc)
        raise TypeError(f"Unsupported operation type: {type(op).__name__}")

    def _unloaded(self, snapshot: ProjectSnapshot, op: PatchOperation) -> Outcome:
        """Refuse to treat a file the loader left out as a new one."""
        if not isinstance(op, CreateFile):
            raise StructuralError("file exists on disk but was not loaded (excluded, oversized or not UTF-8)")
        conflict = AlreadyExistsConflict(
            path=op.path,
            generators=[EXISTING_OWNER, op.provenance],
            incoming_content=self.render_content(op),
        )
        return Outcome(Status.CONFLICT, snapshot, conflict=conflict)

    # -- CreateFile ----------------------------------------------------------

    def _create_file(self, snapshot: ProjectSnapshot, op: CreateFile, ledger: OwnershipLedger) -> Outcome:
        content = self.render_content(op)
        entry = snapshot.get(op.path)
        if entry is not None:
            if entry.text == content:
                return Outcome(Status.NOOP, snapshot)
            conflict = AlreadyExistsConflict(
                path=op.path,
                generators=[ledger.file_owner(op.path), op.provenance],
                existing_content=entry.text,
                incoming_content=content,
            )
            return Outcome(Status.CONFLICT, snapshot, conflict=conflict)

        new_entry = FileEntry.parse(op.path, content, self.parsers)
        if new_entry.parse_error:
            raise StructuralError(f"generated content does not parse: {new_entry.parse_error}")
        return Outcome(Status.APPLIED, snapshot.with_entry(new_entry))

    def render_content(self, op: CreateFile) -> str:
        if op.content is not None:
            return op.content
        try:
            return self.renderer.render(op.template or "", op.context)
        except TemplateError as exc:
            raise StructuralError(f"template {op.template!r} failed: {exc}") from exc

    # -- EnsureConfigValue ---------------------------------------------------

    def _ensure_value(
        self, snapshot: ProjectSnapshot, op: EnsureConfigValue, ledger: OwnershipLedger
    ) -> Outcome:
        entry, dialect = self._config_entry(snapshot, op.path)
        tree = entry.tree
        cursor = dialect.locate(tree, op.key_path)
        if cursor is None:
            return _applied(snapshot, entry, dialect.set_value(tree, op.key_path, op.value))

        existing = dialect.value_of(cursor.node)
        incoming = dialect.normalize(op.value)
        if same_value(existing, incoming) or op.strategy is MergeStrategy.PREFER_EXISTING:
            return Outcome(Status.NOOP, snapshot)
        if op.strategy is MergeStrategy.PREFER_INCOMING:
            return _applied(snapshot, entry, dialect.set_value(tree, op.key_path, op.value))
        if op.strategy is MergeStrategy.MERGE_LIST and isinstance(existing, list) and isinstance(incoming, list):
            missing = [item for item in incoming if not any(same_value(item, e) for e in existing)]
            if not missing:
                return Outcome(Status.NOOP, snapshot)
            for item in missing:
                tree = dialect.append_item(tree, op.key_path, item)
            return _applied(snapshot, entry, tree)

        conflict = ValueConflict(
            path=op.path,
            key_path=op.key_path,
            generators=[ledger.key_owner(op.path, op.key_path), op.provenance],
            existing=existing,
            incoming=incoming,
        )
        return Outcome(Status.CONFLICT, snapshot, conflict=conflict)

    # -- ListInsert ----------------------------------------------------------

    def _list_insert(self, snapshot: ProjectSnapshot, op: ListInsert) -> Outcome:
        entry, dialect = self._config_entry(snapshot, op.path)
        cursor = dialect.locate(entry.tree, op.key_path)
        if cursor is not None:
            existing = dialect.value_of(cursor.node)
            if not isinstance(existing, list):
                raise StructuralError(f"key holds a {type(existing).__name__}, not a list")
            incoming = dialect.normalize(op.value)
            if any(op.is_duplicate(item, incoming) for item in existing):
                return Outcome(Status.NOOP, snapshot)
        return _applied(snapshot, entry, dialect.append_item(entry.tree, op.key_path, op.value))

    # -- RawEdit -------------------------------------------------------------

    def _raw_edit(self, snapshot: ProjectSnapshot, op: RawEdit, ledger: OwnershipLedger) -> Outcome:
        prior = next((p for p in ledger.raw_edits if p.overlaps(op)), None)
        entry = snapshot.get(op.path)
        if entry is None:
            raise StructuralError("cannot raw-edit a file that does not exist")
        if prior is not None:
            if _node_text(entry.tree, op.node_path) == op.replacement:
                return Outcome(Status.NOOP, snapshot)
            conflict = RawEditOverlapConflict(
                path=op.path,
                node_paths=[prior.node_path, op.node_path],
                generators=[prior.provenance, op.provenance],
            )
            return Outcome(Status.CONFLICT, snapshot, conflict=conflict)

        cursor = focus(entry.tree, op.node_path)
        current = cursor.node.source
        if current == op.replacement:
            return Outcome(Status.NOOP, snapshot)
        if op.expected is not None and current != op.expected:
            raise StructuralError(
                "node text does not match the expected text",
                location="/" + "/".join(str(i) for i in op.node_path),
            )
        kind = cursor.node.kind if cursor.node.is_leaf else "raw"
        text = entry.parser.render(cursor.replace(Node.leaf(kind, op.replacement)).root())
        new_entry = FileEntry.parse(op.path, text, self.parsers)
        if new_entry.parse_error:
            raise StructuralError(f"raw edit leaves the file unparseable: {new_entry.parse_error}")
        return Outcome(Status.APPLIED, snapshot.with_entry(new_entry))

    # -- Helpers -------------------------------------------------------------

    def _config_entry(self, snapshot: ProjectSnapshot, path: str) -> tuple[FileEntry, ConfigDialect]:
        entry = snapshot.get(path)
        if entry is not None and entry.parse_error:
            raise StructuralError(entry.parse_error)
        parser = entry.parser if entry is not None else self.parsers.for_path(path)
        if not isinstance(parser, ConfigDialect):
            raise StructuralError(f"{parser.name} files have no configuration keys")
        if entry is None:
            text = parser.empty_document()
            entry = FileEntry(path=path, text=text, tree=parser.parse(text), parser=parser)
        return entry, parser


def _applied(snapshot: ProjectSnapshot, entry: FileEntry, tree: Node) -> Outcome:
    return Outcome(Status.APPLIED, snapshot.with_entry(entry.with_tree(tree)))


def _node_text(tree: Node, node_path: tuple[int, ...]) -> str | None:
    """Source of the node at *node_path*, or None when an earlier edit removed it."""
    try:
        return focus(tree, node_path).node.source
    except StructuralError:
        return None


def _failed(snapshot: ProjectSnapshot, op: PatchOperation, exc: StructuralError) -> Outcome:
    failure = OperationFailure(
        path=exc.path or op.path,
        generator=op.provenance,
        operation=op.describe(),
        location=exc.location,
        message=exc.message,
    )
    return Outcome(Status.FAILED, snapshot, failure=failure)
