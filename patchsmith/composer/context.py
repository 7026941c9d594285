"""Read-only view handed to a generator's ``run`` callable."""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Mapping, Optional, Sequence, Union

from patchsmith.flags import option_key
from patchsmith.snapshot import ProjectSnapshot
from patchsmith.zipper import Node

if TYPE_CHECKING:
    from patchsmith.scaffolder.templates import TemplateRenderer


@dataclass(frozen=True)
class GeneratorContext:
    """What a generator may see while planning.

    ``snapshot`` reflects the effects of every generator that ran earlier in
    the same run.  Nothing here writes to disk.
    """

    generator_id: str
    group: str
    options: Mapping[str, Any]
    snapshot: ProjectSnapshot
    renderer: Optional["TemplateRenderer"] = None
    parent: str | None = None

    def option(self, name: str, default: Any = None) -> Any:
        value = self.options.get(option_key(name))
        return default if value is None else value

    def read(self, path: str) -> str | None:
        return self.snapshot.read(path)

    def exists(self, path: str) -> bool:
        return self.snapshot.exists(path)

    def tree(self, path: str) -> Node | None:
        return self.snapshot.tree(path)

    def config_value(
        self, path: str, key_path: Sequence[Union[str, int]], default: Any = None
    ) -> Any:
        return self.snapshot.config_value(path, tuple(key_path), default)

    def render(self, template: str, **context: Any) -> str:
        """Render a template now, e.g. to compute content for a ``RawEdit``."""
        if self.renderer is None:
            raise RuntimeError("no template renderer configured")
        return self.renderer.render(template, context)
