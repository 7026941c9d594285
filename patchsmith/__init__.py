"""patchsmith: composable project generators with reviewable, atomic patches.

Generators emit patch operations against an immutable snapshot of a target
project.  The engine composes them, merges their operations per file,
reports conflicts and ambiguous flags, renders unified diffs, and applies the
result all or nothing.
"""

from patchsmith.composer import ComposeRequest, GeneratorDescriptor, GeneratorRegistry, generator
from patchsmith.config import Config, DiffConfig, LoaderConfig
from patchsmith.engine import Engine, GeneratorRequest
from patchsmith.errors import (
    AmbiguousFlagError,
    ApplyError,
    CompositionCycleError,
    ConflictError,
    FlagBindingError,
    GeneratorError,
    PatchsmithError,
    StructuralError,
    UnknownGeneratorError,
)
from patchsmith.flags import FlagSpec, FlagType

__version__ = "0.1.0"

__all__ = [
    "Engine",
    "GeneratorRequest",
    "Config",
    "LoaderConfig",
    "DiffConfig",
    "GeneratorRegistry",
    "GeneratorDescriptor",
    "ComposeRequest",
    "generator",
    "FlagSpec",
    "FlagType",
    "PatchsmithError",
    "StructuralError",
    "CompositionCycleError",
    "UnknownGeneratorError",
    "GeneratorError",
    "AmbiguousFlagError",
    "FlagBindingError",
    "ConflictError",
    "ApplyError",
]
