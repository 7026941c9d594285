"""patchsmith configuration.

Centralised, typed configuration for a composition run.  All settings use
Pydantic v2 models so they can be validated at construction time and serialised
to/from JSON or environment variables without boiler-plate.
"""

from __future__ import annotations

import os
from pathlib import Path
from typing import Any

from pydantic import BaseModel, Field


DEFAULT_EXCLUDE_DIRS: list[str] = [
    ".git",
    ".hg",
    ".svn",
    "_build",
    "deps",
    "node_modules",
    "__pycache__",
    ".venv",
    "venv",
    ".mypy_cache",
    ".pytest_cache",
]


class LoaderConfig(BaseModel):
    """Which project files are read into the snapshot, and how."""

    include: list[str] = Field(
        default_factory=lambda: ["*"],
        description="fnmatch patterns matched against project-relative POSIX paths",
    )
    exclude_dirs: list[str] = Field(default_factory=lambda: list(DEFAULT_EXCLUDE_DIRS))
    max_file_bytes: int = Field(
        default=2_000_000, ge=1, description="Files larger than this are left out of the snapshot"
    )
    parse_workers: int = Field(
        default=4, ge=1, description="Maximum files parsed concurrently on worker threads"
    )


class DiffConfig(BaseModel):
    """Rendering options for reviewable diffs."""

    context_lines: int = Field(default=3, ge=0, description="Unified diff context lines")


class Config(BaseModel):
    """Global patchsmith configuration.

    Instances are typically created once by the caller (or ``from_env``) and
    handed to ``Engine``.
    """

    project_root: Path = Field(default=Path("."))
    loader: LoaderConfig = Field(default_factory=LoaderConfig)
    diff: DiffConfig = Field(default_factory=DiffConfig)
    template_dirs: list[Path] = Field(
        default_factory=list, description="Extra Jinja2 template search paths"
    )
    assume_yes: bool = Field(default=False, description="Apply without asking for confirmation")
    verbose: bool = Field(default=False, description="Print progress to the console")
    check_drift: bool = Field(
        default=True, description="Refuse to apply if files changed on disk since planning"
    )

    # ------------------------------------------------------------------
    # Derived paths (read-only properties)
    # ------------------------------------------------------------------

    @property
    def resolved_root(self) -> Path:
        """Absolute path of the target project."""
        return self.project_root.expanduser().resolve()

    @property
    def resolved_template_dirs(self) -> list[Path]:
        """Template directories, relative entries resolved against the project root."""
        return [
            d if d.is_absolute() else self.resolved_root / d
            for d in (p.expanduser() for p in self.template_dirs)
        ]

    # ------------------------------------------------------------------
    # Serialisation helpers
    # ------------------------------------------------------------------

    def save(self, path: Path) -> Path:
        """Persist the configuration to a JSON file.

        Args:
            path: Destination file.

        Returns:
            The path where the file was written.
        """
        target = Path(path)
        target.parent.mkdir(parents=True, exist_ok=True)
        target.write_text(self.model_dump_json(indent=2), encoding="utf-8")
        return target

    @classmethod
    def load(cls, path: Path) -> "Config":
        """Load a previously-saved configuration from JSON."""
        raw = Path(path).read_text(encoding="utf-8")
        return cls.model_validate_json(raw)

    @classmethod
    def from_env(cls) -> "Config":
        """Build a ``Config`` from environment variables.

        Recognised variables (all optional):
            PATCHSMITH_ROOT, PATCHSMITH_PARSE_WORKERS, PATCHSMITH_MAX_FILE_BYTES,
            PATCHSMITH_CONTEXT_LINES, PATCHSMITH_TEMPLATE_DIRS,
            PATCHSMITH_ASSUME_YES, PATCHSMITH_VERBOSE.
        """
        loader_kwargs: dict[str, Any] = {}
        if os.environ.get("PATCHSMITH_PARSE_WORKERS"):
            loader_kwargs["parse_workers"] = int(os.environ["PATCHSMITH_PARSE_WORKERS"])
        if os.environ.get("PATCHSMITH_MAX_FILE_BYTES"):
            loader_kwargs["max_file_bytes"] = int(os.environ["PATCHSMITH_MAX_FILE_BYTES"])

        diff_kwargs: dict[str, Any] = {}
        if os.environ.get("PATCHSMITH_CONTEXT_LINES"):
            diff_kwargs["context_lines"] = int(os.environ["PATCHSMITH_CONTEXT_LINES"])

        template_dirs = [
            Path(p) for p in os.environ.get("PATCHSMITH_TEMPLATE_DIRS", "").split(os.pathsep) if p
        ]

        return cls(
            project_root=Path(os.environ.get("PATCHSMITH_ROOT", ".")),
            loader=LoaderConfig(**loader_kwargs),
            diff=DiffConfig(**diff_kwargs),
            template_dirs=template_dirs,
            assume_yes=_env_flag("PATCHSMITH_ASSUME_YES"),
            verbose=_env_flag("PATCHSMITH_VERBOSE"),
        )


def _env_flag(name: str) -> bool:
    return os.environ.get(name, "").strip().lower() in ("1", "true", "yes", "on")
