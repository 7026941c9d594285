"""Generator descriptors and the registry that looks them up by id."""

from __future__ import annotations

import importlib
import pkgutil
from dataclasses import dataclass, field
from types import ModuleType
from typing import TYPE_CHECKING, Any, Callable, Iterable, Iterator, Mapping, Sequence, Union

from patchsmith.errors import UnknownGeneratorError
from patchsmith.flags import FlagSpec, option_key

if TYPE_CHECKING:
    from patchsmith.composer.context import GeneratorContext
    from patchsmith.patch import PatchOperation

RunFn = Callable[["GeneratorContext"], Iterable["PatchOperation"]]


@dataclass(frozen=True)
class ComposeRequest:
    """A request to run *generator*, optionally with preset option values."""

    generator: str
    options: Mapping[str, Any] = field(default_factory=dict)

    def __post_init__(self) -> None:
        object.__setattr__(self, "options", {option_key(k): v for k, v in self.options.items()})


@dataclass(frozen=True)
class GeneratorDescriptor:
    """Everything the engine needs to know about one generator.

    Attributes:
        id: Unique generator id, e.g. ``scaffold.readme``.
        run: Callable receiving a ``GeneratorContext`` and returning patch
            operations.  It must not write to disk.
        flags: Options the generator declares.
        group: Namespace shared with related generators; defaults to ``id``.
        composes: Generators this one requests, as ids or ``ComposeRequest``.
        description: One-line summary for listings.
    """

    id: str
    run: RunFn
    flags: Sequence[FlagSpec] = ()
    group: str | None = None
    composes: Sequence[Union[str, ComposeRequest]] = ()
    description: str = ""

    def __post_init__(self) -> None:
        if not self.id:
            raise ValueError("generator id must not be empty")
        names = [spec.name for spec in self.flags]
        duplicates = sorted({n for n in names if names.count(n) > 1})
        if duplicates:
            raise ValueError(f"generator '{self.id}' declares {', '.join(duplicates)} twice")
        object.__setattr__(self, "flags", tuple(self.flags))
        object.__setattr__(
            self,
            "composes",
            tuple(c if isinstance(c, ComposeRequest) else ComposeRequest(c) for c in self.composes),
        )

    @property
    def effective_group(self) -> str:
        return self.group or self.id


def generator(
    generator_id: str,
    *,
    flags: Sequence[FlagSpec] = (),
    group: str | None = None,
    composes: Sequence[Union[str, ComposeRequest]] = (),
    description: str | None = None,
) -> Callable[[RunFn], GeneratorDescriptor]:
    """Decorator turning a run function into a ``GeneratorDescriptor``.

    The description defaults to the first line of the function's docstring.
    """

    def wrap(fn: RunFn) -> GeneratorDescriptor:
        summary = description
        if summary is None:
            summary = (fn.__doc__ or "").strip().splitlines()[0] if fn.__doc__ else ""
        return GeneratorDescriptor(
            id=generator_id,
            run=fn,
            flags=flags,
            group=group,
            composes=composes,
            description=summary,
        )

    return wrap


class GeneratorRegistry:
    """Maps generator ids to descriptors.

    Usage::

        registry = GeneratorRegistry()

        @registry.generator("app.greeting", flags=[FlagSpec(name="name")])
        def greeting(ctx):
            return [create_file("hello.txt", f"hello {ctx.option('name')}\\n")]
    """

    def __init__(self, descriptors: Iterable[GeneratorDescriptor] = ()) -> None:
        self._generators: dict[str, GeneratorDescriptor] = {}
        for descriptor in descriptors:
            self.register(descriptor)

    def register(self, descriptor: GeneratorDescriptor, *, replace: bool = False) -> GeneratorDescriptor:
        if descriptor.id in self._generators and not replace:
            raise ValueError(f"generator '{descriptor.id}' is already registered")
        self._generators[descriptor.id] = descriptor
        return descriptor

    def generator(self, generator_id: str, **kwargs: Any) -> Callable[[RunFn], GeneratorDescriptor]:
        """Like the module-level ``generator`` decorator, and registers the result."""

        def wrap(fn: RunFn) -> GeneratorDescriptor:
            return self.register(generator(generator_id, **kwargs)(fn))

        return wrap

    def lookup(self, generator_id: str) -> GeneratorDescriptor:
        try:
            return self._generators[generator_id]
        except KeyError:
            raise UnknownGeneratorError(generator_id, list(self._generators)) from None

    def ids(self) -> list[str]:
        return sorted(self._generators)

    def __contains__(self, generator_id: object) -> bool:
        return generator_id in self._generators

    def __iter__(self) -> Iterator[GeneratorDescriptor]:
        return iter(self._generators[g] for g in self.ids())

    def __len__(self) -> int:
        return len(self._generators)

    # -- Discovery ---------------------------------------------------------

    def discover(self, package: str | ModuleType) -> list[str]:
        """Import every module of *package* and register its ``GENERATORS``.

        A module opts in by defining a module-level ``GENERATORS`` sequence
        of descriptors.  Returns the ids registered, in discovery order.
        """
        root = importlib.import_module(package) if isinstance(package, str) else package
        modules = [root]
        for info in pkgutil.walk_packages(getattr(root, "__path__", []), prefix=f"{root.__name__}."):
            modules.append(importlib.import_module(info.name))

        registered: list[str] = []
        for module in modules:
            for descriptor in getattr(module, "GENERATORS", ()):
                self.register(descriptor)
                registered.append(descriptor.id)
        return registered

    @classmethod
    def default(cls) -> "GeneratorRegistry":
        """Registry holding the built-in ``scaffold.*`` generators."""
        registry = cls()
        registry.discover("patchsmith.scaffolder")
        return registry
