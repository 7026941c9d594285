"""Flag namespace resolution across composed generators.

Key classes:
    FlagSpec             - one declared option (name, type, default, help, required)
    FlagNamespace        - the merged option surface of a run; binds raw args
    AmbiguousFlagReport  - every flag name that must be qualified
"""

from patchsmith.flags.resolver import (
    AmbiguousFlag,
    AmbiguousFlagReport,
    FlagNamespace,
    FlagOwner,
    FlagSpec,
    FlagType,
    option_key,
    resolve_flags,
)

__all__ = [
    "AmbiguousFlag",
    "AmbiguousFlagReport",
    "FlagNamespace",
    "FlagOwner",
    "FlagSpec",
    "FlagType",
    "option_key",
    "resolve_flags",
]
