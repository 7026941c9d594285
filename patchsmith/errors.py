"""Exception hierarchy for patchsmith.

Conflicts between generators are *not* exceptions: they are collected as
records on the ``MergedChangeSet`` and returned to the caller.  The classes
below cover the conditions that stop an operation, a binding step, or a
whole run.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from patchsmith.flags.resolver import AmbiguousFlagReport
    from patchsmith.patch.conflicts import ConflictReport


class PatchsmithError(Exception):
    """Base class for every error raised by patchsmith."""


class StructuralError(PatchsmithError):
    """Raised when an edit targets a malformed or unsupported tree position.

    Fatal to the single operation that triggered it.  During planning the
    engine records it against the file and keeps processing other operations.
    """

    def __init__(self, message: str, path: str = "", location: str = "") -> None:
        self.message = message
        self.path = path
        self.location = location
        prefix = path
        if location:
            prefix = f"{path}:{location}" if path else location
        super().__init__(f"{prefix}: {message}" if prefix else message)

    def at(self, path: str) -> "StructuralError":
        """Return a copy of this error attributed to *path*."""
        return StructuralError(self.message, path=path, location=self.location)


class CompositionCycleError(PatchsmithError):
    """Raised when generators compose each other in a loop."""

    def __init__(self, cycle: list[str]) -> None:
        self.cycle = list(cycle)
        super().__init__("Generator composition cycle: " + " -> ".join(self.cycle))


class UnknownGeneratorError(PatchsmithError):
    """Raised when a generator id is not present in the registry."""

    def __init__(self, generator_id: str, known: list[str] | None = None) -> None:
        self.generator_id = generator_id
        self.known = sorted(known or [])
        hint = f" (known: {', '.join(self.known)})" if self.known else ""
        super().__init__(f"Unknown generator '{generator_id}'{hint}")


class GeneratorError(PatchsmithError):
    """Raised when a generator's ``run`` callable fails unexpectedly."""

    def __init__(self, generator_id: str, message: str) -> None:
        self.generator_id = generator_id
        super().__init__(f"Generator '{generator_id}' failed: {message}")


class AmbiguousFlagError(PatchsmithError):
    """Raised when a bare flag name is used that several groups declare."""

    def __init__(self, report: "AmbiguousFlagReport") -> None:
        self.report = report
        super().__init__(report.format())


class FlagBindingError(PatchsmithError):
    """Raised when raw arguments cannot be bound to the flag namespace, or two
    flag forms of the namespace would be spelled the same."""


class ConflictError(PatchsmithError):
    """Raised when rendering or applying a change set that has unresolved conflicts."""

    def __init__(self, report: "ConflictReport") -> None:
        self.report = report
        super().__init__(report.format())


class ApplyError(PatchsmithError):
    """Raised when the apply phase fails.  The target project is left untouched."""

    def __init__(self, message: str, path: str = "") -> None:
        self.path = path
        super().__init__(f"{path}: {message}" if path else message)
