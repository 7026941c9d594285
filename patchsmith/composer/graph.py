"""Composition graph: expands requested generators into an invocation order."""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from typing import Any, Iterator, Mapping, Sequence, Union

from patchsmith.composer.registry import ComposeRequest, GeneratorDescriptor, GeneratorRegistry
from patchsmith.errors import CompositionCycleError
from patchsmith.flags import FlagNamespace


@dataclass(frozen=True)
class GeneratorInvocation:
    """One generator bound (after ``CompositionGraph.bind``) to its options."""

    descriptor: GeneratorDescriptor
    compose_options: Mapping[str, Any] = field(default_factory=dict)
    parent: str | None = None
    options: Mapping[str, Any] = field(default_factory=dict)

    @property
    def id(self) -> str:
        return self.descriptor.id

    @property
    def group(self) -> str:
        return self.descriptor.effective_group


class CompositionGraph:
    """The tree of generator invocations of one run, flattened.

    ``build`` walks composition depth-first.  The resulting order is
    pre-order: a generator runs before the generators it composes, and
    requested generators run in the order given.  A generator reached more
    than once runs once, at its first position, with the options of that
    first request.
    """

    def __init__(self, invocations: Sequence[GeneratorInvocation]) -> None:
        self._invocations = tuple(invocations)

    @classmethod
    def build(
        cls,
        registry: GeneratorRegistry,
        requests: Sequence[Union[str, ComposeRequest]],
    ) -> "CompositionGraph":
        """Expand *requests* through the registry.

        Raises:
            UnknownGeneratorError: A requested or composed id is not registered.
            CompositionCycleError: Generators compose each other in a loop.
                Raised before any generator runs.
        """
        order: list[GeneratorInvocation] = []
        seen: set[str] = set()

        def visit(request: ComposeRequest, parent: str | None, stack: list[str]) -> None:
            if request.generator in stack:
                start = stack.index(request.generator)
                raise CompositionCycleError(stack[start:] + [request.generator])
            descriptor = registry.lookup(request.generator)
            if descriptor.id in seen:
                return
            seen.add(descriptor.id)
            order.append(
                GeneratorInvocation(
                    descriptor=descriptor,
                    compose_options=dict(request.options),
                    parent=parent,
                )
            )
            for child in descriptor.composes:
                visit(child, descriptor.id, stack + [descriptor.id])  # type: ignore[arg-type]

        for request in requests:
            visit(request if isinstance(request, ComposeRequest) else ComposeRequest(request), None, [])
        return cls(order)

    def __iter__(self) -> Iterator[GeneratorInvocation]:
        return iter(self._invocations)

    def __len__(self) -> int:
        return len(self._invocations)

    def order(self) -> list[str]:
        return [inv.id for inv in self._invocations]

    def descriptors(self) -> list[GeneratorDescriptor]:
        return [inv.descriptor for inv in self._invocations]

    def children(self, generator_id: str) -> list[str]:
        return [inv.id for inv in self._invocations if inv.parent == generator_id]

    def bind(
        self,
        namespace: FlagNamespace,
        explicit: Mapping[str, Mapping[str, Any]] | None = None,
    ) -> list[GeneratorInvocation]:
        """Resolve every invocation's options against *namespace*.

        Raises:
            FlagBindingError: A required flag has no value.
        """
        return [
            replace(inv, options=namespace.options_for(inv.id, explicit, inv.compose_options))
            for inv in self._invocations
        ]
