"""Patch operation model.

Operations are immutable descriptions of one intended change to one file.
They are plain data: a generator returns them, the composition engine
inspects, merges, and conflict-checks them, and nothing touches the disk
until the executor commits the merged result.

Each operation kind owns its idempotence rule (see ``OperationApplier``), so
applying the same operation to an already-patched project is a no-op.
"""

from __future__ import annotations

from enum import Enum
from typing import Annotated, Any, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from patchsmith.errors import StructuralError
from patchsmith.parsers import format_key_path
from patchsmith.snapshot import normalize_path


# ---------------------------------------------------------------------------
# Enumerations
# ---------------------------------------------------------------------------

class MergeStrategy(str, Enum):
    """How ``EnsureConfigValue`` resolves an existing, different value."""
    FAIL = "fail"
    PREFER_EXISTING = "prefer_existing"
    PREFER_INCOMING = "prefer_incoming"
    MERGE_LIST = "merge_list"


# ---------------------------------------------------------------------------
# Value comparison
# ---------------------------------------------------------------------------

def same_value(a: Any, b: Any) -> bool:
    """Equality on configuration values that keeps JSON types apart.

    Unlike ``==``, ``true`` differs from ``1`` and ``1`` differs from ``1.0``.
    """
    if isinstance(a, dict) and isinstance(b, dict):
        return a.keys() == b.keys() and all(same_value(a[k], b[k]) for k in a)
    if isinstance(a, (list, tuple)) and isinstance(b, (list, tuple)):
        return len(a) == len(b) and all(same_value(x, y) for x, y in zip(a, b))
    return type(a) is type(b) and a == b


# ---------------------------------------------------------------------------
# Operations
# ---------------------------------------------------------------------------

class _Operation(BaseModel):
    """Fields shared by every operation kind."""

    model_config = ConfigDict(frozen=True)

    path: str = Field(..., description="Project-relative POSIX path of the target file")
    provenance: str = Field(default="", description="Id of the generator that produced it")

    @field_validator("path")
    @classmethod
    def _clean_path(cls, value: str) -> str:
        try:
            return normalize_path(value)
        except StructuralError as exc:
            raise ValueError(str(exc)) from exc

    def with_provenance(self, generator_id: str) -> "PatchOperation":
        return self.model_copy(update={"provenance": generator_id})  # type: ignore[return-value]

    def describe(self) -> str:
        return f"{self.kind} {self.path}"  # type: ignore[attr-defined]


class CreateFile(_Operation):
    """Create a file from literal content or from a Jinja2 template."""

    kind: Literal["create_file"] = "create_file"
    content: Optional[str] = Field(default=None, description="Literal file content")
    template: Optional[str] = Field(default=None, description="Template name to render")
    context: dict[str, Any] = Field(default_factory=dict, description="Template context")

    @model_validator(mode="after")
    def _content_or_template(self) -> "CreateFile":
        if (self.content is None) == (self.template is None):
            raise ValueError("CreateFile needs exactly one of 'content' or 'template'")
        return self


class EnsureConfigValue(_Operation):
    """Make sure a configuration key holds a value."""

    kind: Literal["ensure_config_value"] = "ensure_config_value"
    key_path: tuple[Union[str, int], ...] = Field(..., description="Keys from the document root")
    value: Any = None
    strategy: MergeStrategy = Field(default=MergeStrategy.FAIL)

    def describe(self) -> str:
        return f"{self.kind} {self.path}:{format_key_path(self.key_path)}"


class ListInsert(_Operation):
    """Insert a value into a configuration list unless an equal item exists."""

    kind: Literal["list_insert"] = "list_insert"
    key_path: tuple[Union[str, int], ...] = Field(..., description="Keys leading to the list")
    value: Any = None
    dedupe_on: Optional[str] = Field(
        default=None,
        description="Compare only this field of mapping items instead of whole values",
    )

    def is_duplicate(self, existing: Any, incoming: Any) -> bool:
        if self.dedupe_on is not None and isinstance(existing, dict) and isinstance(incoming, dict):
            return self.dedupe_on in existing and same_value(
                existing.get(self.dedupe_on), incoming.get(self.dedupe_on)
            )
        return same_value(existing, incoming)

    def describe(self) -> str:
        return f"{self.kind} {self.path}:{format_key_path(self.key_path)}"


class RawEdit(_Operation):
    """Replace the node at a cursor position with raw text.

    The lowest-level escape hatch.  Idempotence is the producing generator's
    job, helped by ``expected``: when set, the node's current text must equal
    it (or already equal ``replacement``) for the edit to apply.
    """

    kind: Literal["raw_edit"] = "raw_edit"
    node_path: tuple[int, ...] = Field(..., description="Child indices from the file's root node")
    replacement: str = Field(..., description="Replacement source text")
    expected: Optional[str] = Field(default=None, description="Guard on the current node text")

    def overlaps(self, other: "RawEdit") -> bool:
        """True when one node path equals or contains the other."""
        if self.path != other.path:
            return False
        shorter = min(len(self.node_path), len(other.node_path))
        return self.node_path[:shorter] == other.node_path[:shorter]

    def describe(self) -> str:
        location = "/" + "/".join(str(i) for i in self.node_path)
        return f"{self.kind} {self.path}@{location}"


PatchOperation = Annotated[
    Union[CreateFile, EnsureConfigValue, ListInsert, RawEdit],
    Field(discriminator="kind"),
]


class OperationList(BaseModel):
    """Serialisable wrapper for a sequence of operations."""

    operations: list[PatchOperation] = Field(default_factory=list)


# ---------------------------------------------------------------------------
# Convenience constructors
# ---------------------------------------------------------------------------

def create_file(
    path: str,
    content: str | None = None,
    *,
    template: str | None = None,
    context: dict[str, Any] | None = None,
) -> CreateFile:
    return CreateFile(path=path, content=content, template=template, context=context or {})


def ensure_config_value(
    path: str,
    key_path: tuple[str | int, ...] | list[str | int],
    value: Any,
    strategy: MergeStrategy | str = MergeStrategy.FAIL,
) -> EnsureConfigValue:
    return EnsureConfigValue(
        path=path, key_path=tuple(key_path), value=value, strategy=MergeStrategy(strategy)
    )


def list_insert(
    path: str,
    key_path: tuple[str | int, ...] | list[str | int],
    value: Any,
    dedupe_on: str | None = None,
) -> ListInsert:
    return ListInsert(path=path, key_path=tuple(key_path), value=value, dedupe_on=dedupe_on)


def raw_edit(
    path: str,
    node_path: tuple[int, ...] | list[int],
    replacement: str,
    expected: str | None = None,
) -> RawEdit:
    return RawEdit(path=path, node_path=tuple(node_path), replacement=replacement, expected=expected)
