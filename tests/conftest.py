"""Shared pytest fixtures for the patchsmith test suite.

Provides reusable fixtures for:
- Temporary project directories populated from a ``{path: text}`` mapping
- Parser registries and in-memory snapshots
- Small generator registries used across composer, engine and integration tests
"""

from __future__ import annotations

import textwrap
from pathlib import Path
from typing import Callable

import pytest

from patchsmith.composer import GeneratorRegistry
from patchsmith.config import Config
from patchsmith.flags import FlagSpec
from patchsmith.parsers import JsoncParser, ParserRegistry
from patchsmith.patch import OperationApplier, create_file, list_insert
from patchsmith.scaffolder import TemplateRenderer
from patchsmith.snapshot import ProjectSnapshot


# ---------------------------------------------------------------------------
# Sample content
# ---------------------------------------------------------------------------

SAMPLE_CONFIG_JSON = textwrap.dedent(
    """\
    {
      // things registered by generators
      "app": "Demo",
      "things": [
        "Bar",
      ],
    }
    """
)

FOO_MODULE = textwrap.dedent(
    """\
    defmodule Demo.Foo do
    end
    """
)


# ---------------------------------------------------------------------------
# Paths & Directories
# ---------------------------------------------------------------------------

@pytest.fixture
def tmp_project_dir(tmp_path: Path) -> Path:
    """Temporary directory for a target project (auto-cleanup)."""
    project_dir = tmp_path / "test-project"
    project_dir.mkdir()
    yield project_dir


@pytest.fixture
def write_files() -> Callable[[Path, dict[str, str]], Path]:
    """Return a helper that writes ``{relative path: text}`` under a root."""

    def _write(root: Path, files: dict[str, str]) -> Path:
        for rel, text in files.items():
            target = root / rel
            target.parent.mkdir(parents=True, exist_ok=True)
            target.write_bytes(text.encode("utf-8"))
        return root

    return _write


@pytest.fixture
def sample_project(tmp_project_dir: Path, write_files) -> Path:
    """A project with a JSONC config file and a lib/ directory."""
    return write_files(
        tmp_project_dir,
        {
            "config/config.json": SAMPLE_CONFIG_JSON,
            "lib/bar.ex": "defmodule Demo.Bar do\nend\n",
        },
    )


# ---------------------------------------------------------------------------
# Parsers, snapshots, applier
# ---------------------------------------------------------------------------

@pytest.fixture
def parsers() -> ParserRegistry:
    return ParserRegistry.default_registry()


@pytest.fixture
def jsonc() -> JsoncParser:
    return JsoncParser()


@pytest.fixture
def make_snapshot(parsers: ParserRegistry) -> Callable[[dict[str, str]], ProjectSnapshot]:
    """Return a helper building an in-memory snapshot from file texts."""

    def _make(files: dict[str, str]) -> ProjectSnapshot:
        return ProjectSnapshot.from_texts("/virtual/project", files, parsers)

    return _make


@pytest.fixture
def renderer(tmp_path: Path) -> TemplateRenderer:
    """Renderer with one extra search path holding a test template."""
    template_dir = tmp_path / "templates"
    (template_dir / "greeting").mkdir(parents=True)
    (template_dir / "greeting" / "hello.txt.j2").write_text(
        "Hello, {{ name | pascal_case }}!\n", encoding="utf-8"
    )
    return TemplateRenderer([template_dir])


@pytest.fixture
def applier(parsers: ParserRegistry, renderer: TemplateRenderer) -> OperationApplier:
    return OperationApplier(parsers, renderer)


# ---------------------------------------------------------------------------
# Generators
# ---------------------------------------------------------------------------

@pytest.fixture
def scenario_registry() -> GeneratorRegistry:
    """``gen1`` creates lib/foo.ex and composes ``gen2``, which registers Foo.

    Both generators belong to group ``g``.
    """
    registry = GeneratorRegistry()

    @registry.generator("gen2", group="g", flags=[FlagSpec(name="module", default="Foo")])
    def gen2(ctx):
        return [list_insert("config/config.json", ["things"], ctx.option("module"))]

    @registry.generator(
        "gen1", group="g", flags=[FlagSpec(name="module", default="Foo")], composes=["gen2"]
    )
    def gen1(ctx):
        return [create_file("lib/foo.ex", FOO_MODULE)]

    return registry


@pytest.fixture
def project_config(sample_project: Path) -> Config:
    return Config(project_root=sample_project)
