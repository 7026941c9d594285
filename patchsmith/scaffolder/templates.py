"""Jinja2 template rendering for generated files.

Provides the TemplateRenderer class which loads Jinja2 templates from the
bundled ``patchsmith/scaffolder/templates/`` directory plus any configured
search paths.  Rendering is pure: it returns strings or ``CreateFile``
operations and never writes to disk, so it is safe during planning.
"""

from __future__ import annotations

import re
from pathlib import Path, PurePosixPath
from typing import Any

from jinja2 import Environment, FileSystemLoader, StrictUndefined, select_autoescape

from patchsmith.patch.operations import CreateFile


_BUNDLED_TEMPLATES = Path(__file__).parent / "templates"


class TemplateRenderer:
    """Renders Jinja2 templates for generators.

    Templates are looked up in *search_paths* first and then in the bundled
    template directory, so a project can override any built-in template by
    providing a file with the same relative name.  Undefined variables raise
    instead of rendering as empty strings.
    """

    def __init__(self, search_paths: list[str | Path] | None = None) -> None:
        self.search_paths = [Path(p) for p in (search_paths or [])] + [_BUNDLED_TEMPLATES]
        self.env = Environment(
            loader=FileSystemLoader([str(p) for p in self.search_paths]),
            autoescape=select_autoescape([], default_for_string=False),
            undefined=StrictUndefined,
            keep_trailing_newline=True,
            trim_blocks=True,
            lstrip_blocks=True,
        )
        self.env.filters.update(
            slugify=slugify, pascal_case=pascal_case, snake_case=snake_case, camel_case=camel_case
        )

    def render(self, template_path: str, context: dict[str, Any]) -> str:
        """Render the template named *template_path* (e.g. ``"readme/README.md.j2"``).

        Raises:
            jinja2.TemplateNotFound: No search path provides the template.
            jinja2.UndefinedError: The template uses a variable missing from
                *context*.
        """
        return self.env.get_template(template_path).render(context)

    def render_string(self, source: str, context: dict[str, Any]) -> str:
        return self.env.from_string(source).render(context)

    def render_tree(
        self,
        template_prefix: str,
        output_prefix: str,
        context: dict[str, Any],
        *,
        skip_patterns: list[str] | None = None,
    ) -> list[CreateFile]:
        """Build one ``CreateFile`` per ``*.j2`` template under *template_prefix*.

        ``module/lib/app.ex.j2`` with ``template_prefix="module"`` and
        ``output_prefix="apps/core"`` becomes ``apps/core/lib/app.ex``.
        Nothing is rendered here; the applier renders each template when it
        applies the operation.  Templates whose relative name contains one of
        *skip_patterns* are left out.
        """
        out_dir = PurePosixPath(output_prefix.strip("/") or ".")
        operations = []
        for name in self.list_templates(template_prefix):
            relative = PurePosixPath(name).relative_to(template_prefix or ".")
            if any(pattern in relative.as_posix() for pattern in skip_patterns or ()):
                continue
            target = out_dir / relative.with_suffix("")
            operations.append(CreateFile(path=target.as_posix(), template=name, context=dict(context)))
        return operations

    def list_templates(self, prefix: str = "") -> list[str]:
        """Sorted ``.j2`` names under *prefix*, each listed once across search paths."""
        found = {
            path.relative_to(root).as_posix()
            for root in self.search_paths
            if (root / prefix).is_dir()
            for path in (root / prefix).rglob("*.j2")
        }
        return sorted(found)


# ---------------------------------------------------------------------------
# Jinja2 custom filters
# ---------------------------------------------------------------------------

_CASE_BOUNDARY = re.compile(r"(?<=[a-z0-9])(?=[A-Z])|(?<=[A-Z])(?=[A-Z][a-z])")
_NON_ALNUM = re.compile(r"[^A-Za-z0-9]+")


def _words(value: str) -> list[str]:
    return [w for w in _NON_ALNUM.split(_CASE_BOUNDARY.sub(" ", value)) if w]


def slugify(value: str) -> str:
    """``"My Cool App!"`` -> ``"my-cool-app"``."""
    return "-".join(w.lower() for w in _NON_ALNUM.split(value) if w)


def pascal_case(value: str) -> str:
    """``user-profile``, ``user_profile`` and ``UserProfile`` -> ``UserProfile``."""
    return "".join(w[:1].upper() + w[1:] for w in _words(value))


def snake_case(value: str) -> str:
    return "_".join(w.lower() for w in _words(value))


def camel_case(value: str) -> str:
    pascal = pascal_case(value)
    return pascal[:1].lower() + pascal[1:]
