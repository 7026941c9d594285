"""Conflict and failure records collected while merging operations.

These are data, not exceptions: planning keeps going after a conflict so the
caller gets every problem of a run in one ``ConflictReport``.
"""

from __future__ import annotations

from typing import Annotated, Any, Literal, Optional, Union

from pydantic import BaseModel, Field, computed_field

from patchsmith.parsers import format_key_path

# Owner name used for content that was already in the project before the run.
EXISTING_OWNER = "project"


class AlreadyExistsConflict(BaseModel):
    """Two parties want different content for the same file."""

    kind: Literal["already_exists"] = "already_exists"
    path: str
    generators: list[str] = Field(..., description="Existing owner first, then the incoming generator")
    existing_content: str = ""
    incoming_content: str = ""

    def message(self) -> str:
        return (
            f"{self.path}: file already exists with different content "
            f"({' vs '.join(self.generators)})"
        )


class ValueConflict(BaseModel):
    """Two parties want different values for the same configuration key."""

    kind: Literal["value"] = "value"
    path: str
    key_path: tuple[Union[str, int], ...]
    generators: list[str]
    existing: Any = None
    incoming: Any = None

    def message(self) -> str:
        return (
            f"{self.path}:{format_key_path(self.key_path)}: "
            f"{self.existing!r} ({self.generators[0]}) vs {self.incoming!r} ({self.generators[-1]})"
        )


class RawEditOverlapConflict(BaseModel):
    """Two raw edits from different generators target overlapping nodes."""

    kind: Literal["raw_edit_overlap"] = "raw_edit_overlap"
    path: str
    node_paths: list[tuple[int, ...]]
    generators: list[str]

    def message(self) -> str:
        locations = ", ".join("/" + "/".join(str(i) for i in p) for p in self.node_paths)
        return f"{self.path}: overlapping raw edits at {locations} ({' vs '.join(self.generators)})"


Conflict = Annotated[
    Union[AlreadyExistsConflict, ValueConflict, RawEditOverlapConflict],
    Field(discriminator="kind"),
]


class OperationFailure(BaseModel):
    """A single operation that could not be applied (a ``StructuralError``)."""

    path: str
    generator: str
    operation: str = Field(..., description="Short description of the failed operation")
    location: str = ""
    message: str

    def format(self) -> str:
        where = f"{self.path}:{self.location}" if self.location else self.path
        return f"{where}: {self.message} [{self.generator}: {self.operation}]"


class ConflictReport(BaseModel):
    """Every unresolved conflict and failed operation of one planning run."""

    conflicts: list[Conflict] = Field(default_factory=list)
    failures: list[OperationFailure] = Field(default_factory=list)

    @computed_field  # type: ignore[misc]
    @property
    def ok(self) -> bool:
        """True when nothing blocks the apply step."""
        return not self.conflicts and not self.failures

    def paths(self) -> list[str]:
        seen: dict[str, None] = {}
        for item in [*self.conflicts, *self.failures]:
            seen.setdefault(item.path, None)
        return list(seen)

    def format(self) -> str:
        lines = [f"{len(self.conflicts)} conflict(s), {len(self.failures)} failed operation(s)"]
        lines += [f"  conflict: {c.message()}" for c in self.conflicts]
        lines += [f"  failure:  {f.format()}" for f in self.failures]
        return "\n".join(lines)


def describe_owner(owner: Optional[str]) -> str:
    return owner or EXISTING_OWNER
