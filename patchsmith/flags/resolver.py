"""Flag namespace resolver.

Every participating generator declares ``FlagSpec`` objects and a group.
``resolve_flags`` merges all of them, once per run, into a single
``FlagNamespace``:

* a name declared only inside one group is one shared option, exposed as
  ``--<flag>`` (and also as ``--<group>.<flag>``);
* a name declared by several groups is ambiguous: the bare ``--<flag>`` is
  withdrawn and only ``--<group>.<flag>`` is accepted, with one diagnostic
  per name listing every owner and every qualified form;
* members of one group that disagree on a flag's type cannot share it, so
  each of them is reached through ``--<generator>.<flag>`` instead.

``--<generator>.<flag>`` is always accepted and overrides the group value for
that generator only.
"""

from __future__ import annotations

import argparse
import re
from enum import Enum
from typing import TYPE_CHECKING, Any, Iterable, Mapping, Optional, Sequence

from pydantic import BaseModel, ConfigDict, Field, field_validator

from patchsmith.errors import AmbiguousFlagError, FlagBindingError

if TYPE_CHECKING:
    from patchsmith.composer.registry import GeneratorDescriptor

_FLAG_NAME_RE = re.compile(r"^[a-z][a-z0-9_-]*$")


# ---------------------------------------------------------------------------
# Flag declarations
# ---------------------------------------------------------------------------

class FlagType(str, Enum):
    STRING = "string"
    INTEGER = "integer"
    BOOLEAN = "boolean"
    LIST = "list"


class FlagSpec(BaseModel):
    """One option declared by a generator."""

    model_config = ConfigDict(frozen=True)

    name: str = Field(..., description="Flag name without leading dashes")
    type: FlagType = Field(default=FlagType.STRING)
    default: Any = None
    help: str = ""
    required: bool = False

    @field_validator("name")
    @classmethod
    def _check_name(cls, value: str) -> str:
        if not _FLAG_NAME_RE.match(value):
            raise ValueError(
                f"invalid flag name {value!r}: use lowercase letters, digits, '-' and '_'"
            )
        return value

    @property
    def dest(self) -> str:
        """Key under which the flag's value appears in a generator's options."""
        return option_key(self.name)


def option_key(name: str) -> str:
    return name.replace("-", "_")


class FlagOwner(BaseModel):
    """A generator that declares a flag, with the group it belongs to."""

    generator: str
    group: str
    spec: FlagSpec


class AmbiguousFlag(BaseModel):
    """Diagnostic for one flag name that cannot be exposed bare."""

    name: str
    owners: list[FlagOwner]
    qualified_forms: list[str] = Field(..., description="Flag spellings the caller must use")
    reason: str

    def format(self) -> str:
        owners = ", ".join(f"{o.generator} (group {o.group})" for o in self.owners)
        return (
            f"--{self.name} is ambiguous ({self.reason}); declared by {owners}; "
            f"use {' / '.join(self.qualified_forms)}"
        )


class AmbiguousFlagReport(BaseModel):
    """Every ambiguous flag name of one run."""

    flags: list[AmbiguousFlag] = Field(default_factory=list)

    def names(self) -> list[str]:
        return [f.name for f in self.flags]

    def get(self, name: str) -> Optional[AmbiguousFlag]:
        for flag in self.flags:
            if flag.name == name:
                return flag
        return None

    def only(self, names: Iterable[str]) -> "AmbiguousFlagReport":
        wanted = set(names)
        return AmbiguousFlagReport(flags=[f for f in self.flags if f.name in wanted])

    def format(self) -> str:
        lines = [f"{len(self.flags)} ambiguous flag(s):"]
        lines += [f"  {flag.format()}" for flag in self.flags]
        return "\n".join(lines)


# ---------------------------------------------------------------------------
# Namespace
# ---------------------------------------------------------------------------

# Precedence of explicit spellings; higher wins.
_SHARED = 1
_GENERATOR = 2


class _Option:
    """One accepted spelling and the generators it sets."""

    def __init__(
        self, surface: str, spec: FlagSpec, targets: list[str], level: int, effective: bool
    ) -> None:
        self.surface = surface
        self.spec = spec
        self.targets = targets
        self.level = level
        # Part of the unique surface shown to the caller (vs. an optional override).
        self.effective = effective


class _FlagParser(argparse.ArgumentParser):
    def error(self, message: str):  # type: ignore[override]
        raise FlagBindingError(message)


class FlagNamespace:
    """The merged option surface of one run.

    Build it with ``resolve_flags``.  ``report`` is ``None`` when every flag
    name can be exposed bare.
    """

    def __init__(
        self,
        owners: dict[str, list[FlagOwner]],
        options: dict[str, _Option],
        withdrawn: set[str],
        report: AmbiguousFlagReport | None,
    ) -> None:
        self._owners = owners
        self._options = options
        self._withdrawn = withdrawn
        self.report = report

    @property
    def is_ambiguous(self) -> bool:
        return self.report is not None

    def accepted_names(self, *, include_overrides: bool = False) -> list[str]:
        """Spellings (with ``--``) the caller may use.

        By default only the effective, unique surface is listed: bare names
        where unambiguous, group-qualified names otherwise.  Pass
        ``include_overrides`` to add every ``--<generator>.<flag>`` form.
        """
        return [
            f"--{surface}"
            for surface, option in self._options.items()
            if option.effective or include_overrides
        ]

    def flags_for(self, generator_id: str) -> list[FlagSpec]:
        return [
            owner.spec
            for owners in self._owners.values()
            for owner in owners
            if owner.generator == generator_id
        ]

    def parser(self) -> argparse.ArgumentParser:
        """Build an argparse parser accepting exactly this namespace."""
        parser = _FlagParser(
            prog="patchsmith",
            add_help=False,
            allow_abbrev=False,
            exit_on_error=False,
        )
        for index, (surface, option) in enumerate(self._options.items()):
            _add_argument(parser, f"--{surface}", f"opt{index}", option.spec)
        for name in sorted(self._withdrawn):
            parser.add_argument(
                f"--{name}", dest=f"bare_{option_key(name)}", nargs="?", default=argparse.SUPPRESS
            )
        return parser

    def bind(self, argv: Sequence[str]) -> dict[str, dict[str, Any]]:
        """Parse raw arguments into explicit option values per generator.

        Returns ``{generator_id: {option_key: value}}`` holding only flags
        the caller actually passed.  A generator-qualified value overrides a
        bare or group-qualified one for that generator.

        Raises:
            AmbiguousFlagError: A withdrawn bare name was used.
            FlagBindingError: Unknown or malformed arguments.
        """
        parser = self.parser()
        try:
            parsed, extra = parser.parse_known_args(list(argv))
        except argparse.ArgumentError as exc:
            raise FlagBindingError(str(exc)) from exc
        if extra:
            raise FlagBindingError(f"unrecognized arguments: {' '.join(extra)}")

        values = vars(parsed)
        used_bare = [
            name for name in sorted(self._withdrawn) if f"bare_{option_key(name)}" in values
        ]
        if used_bare and self.report is not None:
            raise AmbiguousFlagError(self.report.only(used_bare))

        explicit: dict[str, dict[str, Any]] = {}
        levels: dict[tuple[str, str], int] = {}
        for index, option in enumerate(self._options.values()):
            dest = f"opt{index}"
            if dest not in values:
                continue
            for generator_id in option.targets:
                key = (generator_id, option.spec.dest)
                if levels.get(key, 0) > option.level:
                    continue
                levels[key] = option.level
                explicit.setdefault(generator_id, {})[option.spec.dest] = values[dest]
        return explicit

    def options_for(
        self,
        generator_id: str,
        explicit: Mapping[str, Mapping[str, Any]] | None = None,
        compose_options: Mapping[str, Any] | None = None,
    ) -> dict[str, Any]:
        """Resolve every declared option of one generator.

        Precedence, lowest first: flag default, options passed by the
        composing parent, explicit bare or group flag, explicit
        generator-qualified flag.

        Raises:
            FlagBindingError: A required flag has no value.
        """
        specs = self.flags_for(generator_id)
        resolved: dict[str, Any] = {spec.dest: spec.default for spec in specs}
        given = {option_key(k): v for k, v in (compose_options or {}).items()}
        given.update((explicit or {}).get(generator_id, {}))
        resolved.update(given)

        missing = [spec for spec in specs if spec.required and given.get(spec.dest) is None]
        if missing:
            forms = ", ".join(self._spelling_for(generator_id, spec) for spec in missing)
            raise FlagBindingError(f"generator '{generator_id}' requires {forms}")
        return resolved

    def _spelling_for(self, generator_id: str, spec: FlagSpec) -> str:
        for surface, option in self._options.items():
            if option.effective and generator_id in option.targets and option.spec.name == spec.name:
                return f"--{surface}"
        return f"--{generator_id}.{spec.name}"


def _add_argument(parser: argparse.ArgumentParser, flag: str, dest: str, spec: FlagSpec) -> None:
    kwargs: dict[str, Any] = {"dest": dest, "default": argparse.SUPPRESS, "help": spec.help or None}
    if spec.type is FlagType.BOOLEAN:
        kwargs["action"] = argparse.BooleanOptionalAction
    elif spec.type is FlagType.INTEGER:
        kwargs["type"] = int
    elif spec.type is FlagType.LIST:
        kwargs["action"] = "extend"
        kwargs["nargs"] = "+"
    parser.add_argument(flag, **kwargs)


# ---------------------------------------------------------------------------
# Resolution
# ---------------------------------------------------------------------------

def resolve_flags(
    descriptors: Iterable["GeneratorDescriptor"],
    *,
    strict: bool = False,
) -> FlagNamespace:
    """Merge the flag declarations of every participating generator.

    Args:
        descriptors: All generators taking part in the run, including those
            reached through composition.  Duplicates are ignored.
        strict: Raise ``AmbiguousFlagError`` instead of returning a
            namespace that carries a report.

    Raises:
        FlagBindingError: A group is named after a generator that declares
            the same flag, so ``--<name>.<flag>`` would mean both.
    """
    owners: dict[str, list[FlagOwner]] = {}
    seen: set[str] = set()
    for descriptor in descriptors:
        if descriptor.id in seen:
            continue
        seen.add(descriptor.id)
        for spec in descriptor.flags:
            owners.setdefault(spec.name, []).append(
                FlagOwner(generator=descriptor.id, group=descriptor.effective_group, spec=spec)
            )

    options: dict[str, _Option] = {}
    withdrawn: set[str] = set()
    diagnostics: list[AmbiguousFlag] = []

    for name, flag_owners in owners.items():
        by_group: dict[str, list[FlagOwner]] = {}
        for owner in flag_owners:
            by_group.setdefault(owner.group, []).append(owner)

        shared_groups = {
            group: members
            for group, members in by_group.items()
            if len({m.spec.type for m in members}) == 1
        }
        split_groups = [group for group in by_group if group not in shared_groups]
        ambiguous = len(by_group) > 1 or bool(split_groups)

        qualified: list[str] = []
        for group, members in shared_groups.items():
            targets = [m.generator for m in members]
            if not ambiguous:
                options[name] = _Option(name, members[0].spec, targets, _SHARED, True)
            surface = f"{group}.{name}"
            options.setdefault(surface, _Option(surface, members[0].spec, targets, _SHARED, ambiguous))
            qualified.append(f"--{surface}")
        for owner in flag_owners:
            surface = f"{owner.generator}.{name}"
            split = owner.group in split_groups
            existing = options.get(surface)
            if existing is not None and existing.targets != [owner.generator]:
                raise FlagBindingError(
                    f"--{surface} names both group '{owner.generator}' and generator "
                    f"'{owner.generator}'; rename the group or the generator"
                )
            options.setdefault(
                surface, _Option(surface, owner.spec, [owner.generator], _GENERATOR, split)
            )
            if split:
                qualified.append(f"--{surface}")

        if ambiguous:
            withdrawn.add(name)
            reasons = []
            if len(by_group) > 1:
                reasons.append(f"declared in groups {', '.join(by_group)}")
            for group in split_groups:
                reasons.append(f"group {group} declares it with different types")
            diagnostics.append(
                AmbiguousFlag(
                    name=name,
                    owners=flag_owners,
                    qualified_forms=qualified,
                    reason="; ".join(reasons),
                )
            )

    report = AmbiguousFlagReport(flags=diagnostics) if diagnostics else None
    if strict and report is not None:
        raise AmbiguousFlagError(report)
    return FlagNamespace(owners, options, withdrawn, report)
