"""Merging generator output into one ``MergedChangeSet``.

``ChangeSetBuilder`` runs invocations in composition order against an
evolving snapshot.  Each emitted operation is applied immediately, so a
later generator sees what earlier ones produced, and per-file operations end
up concatenated in invocation order.  Conflicts and structural failures are
recorded and planning continues.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable

from patchsmith.composer.context import GeneratorContext
from patchsmith.composer.graph import GeneratorInvocation
from patchsmith.errors import GeneratorError, PatchsmithError, StructuralError
from patchsmith.patch import (
    Conflict,
    ConflictReport,
    CreateFile,
    EnsureConfigValue,
    ListInsert,
    OperationApplier,
    OperationFailure,
    Outcome,
    OwnershipLedger,
    PatchOperation,
    RawEdit,
    Status,
)
from patchsmith.snapshot import ProjectSnapshot
from patchsmith.zipper import Node

_OPERATION_TYPES = (CreateFile, EnsureConfigValue, ListInsert, RawEdit)


@dataclass(frozen=True)
class FileChange:
    """The merged effect on one file."""

    path: str
    before: str | None
    after: str
    tree: Node
    operations: tuple[PatchOperation, ...]

    @property
    def is_new(self) -> bool:
        return self.before is None

    @property
    def generators(self) -> list[str]:
        return list(dict.fromkeys(op.provenance for op in self.operations))


@dataclass(frozen=True)
class MergedChangeSet:
    """Result of one planning run.

    ``files`` lists every file whose text changes, in the order the files
    were first touched.  ``snapshot`` is the project as it will look after
    apply; ``base`` is the snapshot planning started from.
    """

    base: ProjectSnapshot
    snapshot: ProjectSnapshot
    files: tuple[FileChange, ...] = ()
    conflicts: tuple[Conflict, ...] = ()
    failures: tuple[OperationFailure, ...] = ()
    invocations: tuple[str, ...] = ()

    @property
    def is_empty(self) -> bool:
        return not self.files and not self.conflicts and not self.failures

    @property
    def has_conflicts(self) -> bool:
        return bool(self.conflicts or self.failures)

    @property
    def operations(self) -> list[PatchOperation]:
        return [op for change in self.files for op in change.operations]

    def paths(self) -> list[str]:
        return [change.path for change in self.files]

    def get(self, path: str) -> FileChange | None:
        for change in self.files:
            if change.path == path:
                return change
        return None

    def operations_by_path(self) -> dict[str, list[PatchOperation]]:
        return {change.path: list(change.operations) for change in self.files}

    def report(self) -> ConflictReport:
        return ConflictReport(conflicts=list(self.conflicts), failures=list(self.failures))


class ChangeSetBuilder:
    """Accumulates operations into a ``MergedChangeSet``.

    Operations that turn out to be no-ops are dropped, so planning against
    an already-patched project yields an empty change set.
    """

    def __init__(self, base: ProjectSnapshot, applier: OperationApplier | None = None) -> None:
        self.base = base
        self.snapshot = base
        self.applier = applier or OperationApplier()
        self.ledger = OwnershipLedger()
        self._operations: dict[str, list[PatchOperation]] = {}
        self._conflicts: list[Conflict] = []
        self._failures: list[OperationFailure] = []
        self._invocations: list[str] = []

    def add(self, op: PatchOperation) -> Outcome:
        """Apply one operation on top of everything added so far."""
        outcome = self.applier.apply(self.snapshot, op, self.ledger)
        self.ledger.record(op, outcome.status)
        if outcome.status is Status.APPLIED:
            self.snapshot = outcome.snapshot
            self._operations.setdefault(op.path, []).append(op)
        elif outcome.status is Status.CONFLICT and outcome.conflict is not None:
            self._conflicts.append(outcome.conflict)
        elif outcome.status is Status.FAILED and outcome.failure is not None:
            self._failures.append(outcome.failure)
        return outcome

    def add_all(self, ops: Iterable[PatchOperation]) -> list[Outcome]:
        return [self.add(op) for op in ops]

    def run(self, invocation: GeneratorInvocation) -> list[Outcome]:
        """Run one generator against the current snapshot and merge its output.

        A ``StructuralError`` raised by the generator is recorded as a
        failure.  Any other non-patchsmith exception is wrapped in
        ``GeneratorError`` and aborts planning.
        """
        self._invocations.append(invocation.id)
        context = GeneratorContext(
            generator_id=invocation.id,
            group=invocation.group,
            options=dict(invocation.options),
            snapshot=self.snapshot,
            renderer=self.applier.renderer,
            parent=invocation.parent,
        )
        try:
            ops = list(invocation.descriptor.run(context) or ())
        except StructuralError as exc:
            self._failures.append(
                OperationFailure(
                    path=exc.path,
                    generator=invocation.id,
                    operation="run",
                    location=exc.location,
                    message=exc.message,
                )
            )
            return []
        except PatchsmithError:
            raise
        except Exception as exc:
            raise GeneratorError(invocation.id, str(exc)) from exc

        outcomes = []
        for op in ops:
            if not isinstance(op, _OPERATION_TYPES):
                raise GeneratorError(
                    invocation.id, f"returned {type(op).__name__}, not a patch operation"
                )
            outcomes.append(self.add(op.with_provenance(invocation.id)))
        return outcomes

    def build(self) -> MergedChangeSet:
        files = []
        for path, ops in self._operations.items():
            entry = self.snapshot.get(path)
            before = self.base.read(path)
            if entry is None or entry.text == before:
                continue
            files.append(
                FileChange(
                    path=path,
                    before=before,
                    after=entry.text,
                    tree=entry.tree,
                    operations=tuple(ops),
                )
            )
        return MergedChangeSet(
            base=self.base,
            snapshot=self.snapshot,
            files=tuple(files),
            conflicts=tuple(self._conflicts),
            failures=tuple(self._failures),
            invocations=tuple(self._invocations),
        )
