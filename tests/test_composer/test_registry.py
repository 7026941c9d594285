"""Tests for generator descriptors and the registry (patchsmith.composer.registry)."""

from __future__ import annotations

import pytest

from patchsmith.composer import ComposeRequest, GeneratorDescriptor, GeneratorRegistry, generator
from patchsmith.errors import UnknownGeneratorError
from patchsmith.flags import FlagSpec


def _noop(ctx):
    return []


class TestGeneratorDescriptor:
    @pytest.mark.unit
    def test_defaults(self):
        descriptor = GeneratorDescriptor("app.readme", run=_noop)
        assert descriptor.flags == ()
        assert descriptor.composes == ()
        assert descriptor.effective_group == "app.readme"

    @pytest.mark.unit
    def test_composes_are_normalised(self):
        descriptor = GeneratorDescriptor(
            "a", run=_noop, composes=["b", ComposeRequest("c", {"module-name": "Foo"})]
        )
        assert descriptor.composes == (ComposeRequest("b"), ComposeRequest("c", {"module_name": "Foo"}))

    @pytest.mark.unit
    def test_duplicate_flags_rejected(self):
        with pytest.raises(ValueError, match="name"):
            GeneratorDescriptor("a", run=_noop, flags=[FlagSpec(name="name"), FlagSpec(name="name")])

    @pytest.mark.unit
    def test_empty_id_rejected(self):
        with pytest.raises(ValueError):
            GeneratorDescriptor("", run=_noop)


class TestGeneratorDecorator:
    @pytest.mark.unit
    def test_description_from_docstring(self):
        @generator("app.thing", group="app")
        def thing(ctx):
            """Create a thing.

            Longer explanation.
            """
            return []

        assert isinstance(thing, GeneratorDescriptor)
        assert thing.description == "Create a thing."
        assert thing.group == "app"
        assert thing.run(None) == []

    @pytest.mark.unit
    def test_explicit_description(self):
        @generator("app.other", description="Other")
        def other(ctx):
            return []

        assert other.description == "Other"


class TestGeneratorRegistry:
    @pytest.mark.unit
    def test_register_and_lookup(self):
        registry = GeneratorRegistry()

        @registry.generator("b")
        def b(ctx):
            return []

        registry.register(GeneratorDescriptor("a", run=_noop))
        assert registry.lookup("b") is b
        assert registry.ids() == ["a", "b"]
        assert [d.id for d in registry] == ["a", "b"]
        assert "a" in registry
        assert len(registry) == 2

    @pytest.mark.unit
    def test_duplicate_registration_rejected(self):
        registry = GeneratorRegistry([GeneratorDescriptor("a", run=_noop)])
        with pytest.raises(ValueError, match="already registered"):
            registry.register(GeneratorDescriptor("a", run=_noop))

    @pytest.mark.unit
    def test_replace(self):
        registry = GeneratorRegistry([GeneratorDescriptor("a", run=_noop)])
        replacement = GeneratorDescriptor("a", run=_noop, description="new")
        registry.register(replacement, replace=True)
        assert registry.lookup("a").description == "new"

    @pytest.mark.unit
    def test_unknown_generator(self):
        registry = GeneratorRegistry([GeneratorDescriptor("a", run=_noop)])
        with pytest.raises(UnknownGeneratorError) as exc_info:
            registry.lookup("missing")
        assert exc_info.value.generator_id == "missing"
        assert exc_info.value.known == ["a"]
        assert "known: a" in str(exc_info.value)

    @pytest.mark.unit
    def test_default_registry_discovers_builtin_generators(self):
        registry = GeneratorRegistry.default()
        assert {"scaffold.readme", "scaffold.env", "scaffold.module", "scaffold.register"} <= set(
            registry.ids()
        )
        assert all(d.effective_group == "scaffold" for d in registry)
