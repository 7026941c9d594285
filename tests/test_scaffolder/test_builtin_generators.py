"""Tests for the built-in scaffold.* generators (patchsmith.scaffolder.builtin)."""

from __future__ import annotations

import pytest

from patchsmith.composer import ChangeSetBuilder, CompositionGraph, GeneratorRegistry
from patchsmith.errors import FlagBindingError
from patchsmith.flags import resolve_flags
from patchsmith.scaffolder.builtin import DEFAULT_REGISTRY_FILE, GENERATORS, GROUP

from conftest import SAMPLE_CONFIG_JSON

pytestmark = pytest.mark.unit


@pytest.fixture
def registry() -> GeneratorRegistry:
    return GeneratorRegistry(GENERATORS)


@pytest.fixture
def plan(registry, applier):
    def _plan(requests, snapshot, argv=()):
        graph = CompositionGraph.build(registry, requests)
        namespace = resolve_flags(graph.descriptors())
        builder = ChangeSetBuilder(snapshot, applier)
        for invocation in graph.bind(namespace, namespace.bind(list(argv))):
            builder.run(invocation)
        return builder.build()

    return _plan


class TestDeclarations:
    def test_all_share_one_group(self):
        assert {g.group for g in GENERATORS} == {GROUP}

    def test_shared_name_flag_is_not_ambiguous(self, registry):
        graph = CompositionGraph.build(registry, ["scaffold.module"])
        namespace = resolve_flags(graph.descriptors())
        assert not namespace.is_ambiguous
        assert "--name" in namespace.accepted_names()

    def test_descriptions_come_from_docstrings(self, registry):
        assert registry.lookup("scaffold.readme").description == "Create README.md listing the registered modules."


class TestModule:
    def test_creates_module_and_registers_it(self, plan, make_snapshot):
        base = make_snapshot({DEFAULT_REGISTRY_FILE: SAMPLE_CONFIG_JSON})
        changeset = plan(["scaffold.module"], base, ["--name", "billing"])

        assert changeset.invocations == ("scaffold.module", "scaffold.register")
        assert changeset.paths() == ["lib/billing.ex", DEFAULT_REGISTRY_FILE]
        assert changeset.get("lib/billing.ex").after.startswith("defmodule Demo.Billing do\n")
        assert changeset.snapshot.config_value(DEFAULT_REGISTRY_FILE, ["modules"]) == ["Billing"]

    def test_options(self, plan, make_snapshot):
        changeset = plan(
            ["scaffold.module"],
            make_snapshot({}),
            ["--name", "UserProfile", "--app", "shop", "--lib-dir", "apps/core/lib/"],
        )
        change = changeset.get("apps/core/lib/user_profile.ex")
        assert change.after.startswith("defmodule Shop.UserProfile do\n")
        assert changeset.snapshot.config_value(DEFAULT_REGISTRY_FILE, ["modules"]) == ["UserProfile"]

    @pytest.mark.parametrize("lib_dir", ["", "/", "."])
    def test_empty_lib_dir_is_project_root(self, plan, make_snapshot, lib_dir):
        changeset = plan(["scaffold.module"], make_snapshot({}), ["--name", "billing", "--lib-dir", lib_dir])
        assert not changeset.has_conflicts
        assert changeset.paths()[0] == "billing.ex"

    def test_name_is_required(self, plan, make_snapshot):
        with pytest.raises(FlagBindingError, match="--name"):
            plan(["scaffold.module"], make_snapshot({}))

    def test_second_run_is_empty(self, plan, make_snapshot):
        base = make_snapshot({DEFAULT_REGISTRY_FILE: SAMPLE_CONFIG_JSON})
        first = plan(["scaffold.module"], base, ["--name", "billing"])
        assert plan(["scaffold.module"], first.snapshot, ["--name", "billing"]).is_empty

    def test_register_nested_key(self, plan, make_snapshot):
        changeset = plan(
            ["scaffold.register"],
            make_snapshot({"c.json": '{"app": {"mods": []}}'}),
            ["--name", "billing", "--registry-file", "c.json", "--registry-key", "app.mods"],
        )
        assert changeset.snapshot.config_value("c.json", ["app", "mods"]) == ["Billing"]


class TestReadme:
    def test_readme_lists_modules_registered_earlier(self, plan, make_snapshot):
        base = make_snapshot({DEFAULT_REGISTRY_FILE: SAMPLE_CONFIG_JSON})
        changeset = plan(["scaffold.module", "scaffold.readme"], base, ["--name", "billing"])
        readme = changeset.get("README.md").after
        assert readme.startswith("# Demo\n\nA patchsmith project.\n")
        assert readme.endswith("## Modules\n\n- `Billing`\n")

    def test_readme_without_modules(self, plan, make_snapshot):
        changeset = plan(
            ["scaffold.readme"],
            make_snapshot({}),
            ["--project-name", "Shop", "--description", "Sells things."],
        )
        readme = changeset.get("README.md").after
        assert readme.startswith("# Shop\n\nSells things.\n")
        assert "## Modules" not in readme

    def test_existing_readme_conflicts(self, plan, make_snapshot):
        changeset = plan(["scaffold.readme"], make_snapshot({"README.md": "# Mine\n"}))
        assert changeset.has_conflicts
        assert changeset.conflicts[0].generators == ["project", "scaffold.readme"]


class TestEnv:
    def test_default_keys(self, plan, make_snapshot):
        changeset = plan(["scaffold.env"], make_snapshot({}))
        assert changeset.get(".env.example").after == "APP_ENV=development\nLOG_LEVEL=info\n"

    def test_existing_values_are_kept(self, plan, make_snapshot):
        base = make_snapshot({".env.example": "# keys\nAPP_ENV=prod\n"})
        changeset = plan(["scaffold.env"], base, ["--env-keys", "APP_ENV", "LOG_LEVEL", "SECRET"])
        assert changeset.get(".env.example").after == "# keys\nAPP_ENV=prod\nLOG_LEVEL=info\nSECRET=\"\"\n"
