"""Generator composition.

Key classes:
    GeneratorRegistry   - id -> GeneratorDescriptor lookup and discovery
    CompositionGraph    - expands composition, detects cycles, fixes order
    ChangeSetBuilder    - merges operations into a MergedChangeSet
    GeneratorContext    - read-only view handed to each generator
"""

from patchsmith.composer.changeset import ChangeSetBuilder, FileChange, MergedChangeSet
from patchsmith.composer.context import GeneratorContext
from patchsmith.composer.graph import CompositionGraph, GeneratorInvocation
from patchsmith.composer.registry import (
    ComposeRequest,
    GeneratorDescriptor,
    GeneratorRegistry,
    generator,
)

__all__ = [
    # Registry
    "GeneratorRegistry",
    "GeneratorDescriptor",
    "ComposeRequest",
    "generator",
    # Graph
    "CompositionGraph",
    "GeneratorInvocation",
    # Change sets
    "ChangeSetBuilder",
    "MergedChangeSet",
    "FileChange",
    "GeneratorContext",
]
