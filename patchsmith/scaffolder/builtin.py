"""Built-in ``scaffold.*`` generators.

Small generators that cover each operation kind and show composition:

* ``scaffold.readme``   - templated ``README.md`` (``CreateFile`` via a template tree)
* ``scaffold.env``      - keys in ``.env.example`` (``EnsureConfigValue`` on a dotenv file)
* ``scaffold.module``   - a module file from a template; composes ``scaffold.register``
* ``scaffold.register`` - adds a module name to a JSON list (``ListInsert``)

All four share the ``scaffold`` group, so a flag such as ``--name`` declared
by both ``scaffold.module`` and ``scaffold.register`` is one shared option.
"""

from __future__ import annotations

from patchsmith.composer.context import GeneratorContext
from patchsmith.composer.registry import ComposeRequest, generator
from patchsmith.flags import FlagSpec, FlagType
from patchsmith.patch import MergeStrategy, PatchOperation, create_file, ensure_config_value, list_insert
from patchsmith.scaffolder.templates import pascal_case, snake_case

GROUP = "scaffold"
DEFAULT_REGISTRY_FILE = "config/config.json"
DEFAULT_REGISTRY_KEY = "modules"


@generator(
    "scaffold.readme",
    group=GROUP,
    flags=[
        FlagSpec(name="project-name", help="Project title (defaults to the 'app' config value)"),
        FlagSpec(name="description", default="A patchsmith project.", help="One-line summary"),
    ],
)
def readme(ctx: GeneratorContext) -> list[PatchOperation]:
    """Create README.md listing the registered modules."""
    project_name = ctx.option("project-name") or ctx.config_value(
        DEFAULT_REGISTRY_FILE, ["app"], default="Project"
    )
    modules = ctx.config_value(DEFAULT_REGISTRY_FILE, [DEFAULT_REGISTRY_KEY], default=[])
    if ctx.renderer is None:
        return []
    context = {
        "project_name": project_name,
        "description": ctx.option("description"),
        "modules": modules if isinstance(modules, list) else [],
    }
    return list(ctx.renderer.render_tree("readme", "", context))


@generator(
    "scaffold.env",
    group=GROUP,
    flags=[
        FlagSpec(
            name="env-keys",
            type=FlagType.LIST,
            default=["APP_ENV", "LOG_LEVEL"],
            help="Keys every environment must define",
        ),
        FlagSpec(name="app-env", default="development", help="Value for APP_ENV"),
    ],
)
def env_example(ctx: GeneratorContext) -> list[PatchOperation]:
    """Make sure .env.example documents the expected keys."""
    defaults = {"APP_ENV": ctx.option("app-env"), "LOG_LEVEL": "info"}
    return [
        ensure_config_value(".env.example", [key], defaults.get(key, ""), MergeStrategy.PREFER_EXISTING)
        for key in ctx.option("env-keys", [])
    ]


@generator(
    "scaffold.module",
    group=GROUP,
    flags=[
        FlagSpec(name="name", required=True, help="Module name, e.g. billing"),
        FlagSpec(name="app", help="Application namespace (defaults to the 'app' config value)"),
        FlagSpec(name="lib-dir", default="lib", help="Directory holding source modules (empty for the project root)"),
    ],
    composes=[ComposeRequest("scaffold.register")],
)
def module(ctx: GeneratorContext) -> list[PatchOperation]:
    """Create a source module from the module template."""
    name = ctx.option("name")
    app = ctx.option("app") or ctx.config_value(DEFAULT_REGISTRY_FILE, ["app"], default="App")
    lib_dir = ctx.option("lib-dir").rstrip("/")
    filename = f"{snake_case(name)}.ex"
    return [
        create_file(
            f"{lib_dir}/{filename}" if lib_dir else filename,
            template="module/module.ex.j2",
            context={"app": app, "name": name, "description": f"The {name} module."},
        )
    ]


@generator(
    "scaffold.register",
    group=GROUP,
    flags=[
        FlagSpec(name="name", required=True, help="Module name to register"),
        FlagSpec(name="registry-file", default=DEFAULT_REGISTRY_FILE),
        FlagSpec(name="registry-key", default=DEFAULT_REGISTRY_KEY),
    ],
)
def register_module(ctx: GeneratorContext) -> list[PatchOperation]:
    """Add the module to the project's module list."""
    key_path = ctx.option("registry-key").split(".")
    return [list_insert(ctx.option("registry-file"), key_path, pascal_case(ctx.option("name")))]


GENERATORS = [readme, env_example, module, register_module]
