"""Template rendering and the built-in ``scaffold.*`` generators.

The generators live in ``patchsmith.scaffolder.builtin`` and are picked up by
``GeneratorRegistry.default()`` through its module-level ``GENERATORS``.

Key classes:
    TemplateRenderer - Jinja2 rendering of bundled and project templates
"""

from patchsmith.scaffolder.templates import TemplateRenderer

__all__ = ["TemplateRenderer"]
