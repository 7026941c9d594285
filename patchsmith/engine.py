"""patchsmith engine facade.

Ties the pieces of a run together:

1. LOAD   -- read and parse the target project into a ``ProjectSnapshot``.
2. PLAN   -- expand composition, bind flags, run generators, merge operations.
3. RENDER -- turn the merged change set into unified diffs.
4. APPLY  -- write every changed file, all or nothing.

Usage::

    engine = Engine(Config(project_root=Path("my_app")))
    changeset = await engine.plan([("scaffold.module", ["--name", "billing"])])
    for path, diff in engine.render(changeset):
        print(diff)
    await engine.apply(changeset)
"""

from __future__ import annotations

import time
from dataclasses import dataclass
from typing import Iterable, Sequence, Union

from patchsmith.composer import (
    ChangeSetBuilder,
    ComposeRequest,
    CompositionGraph,
    GeneratorRegistry,
    MergedChangeSet,
)
from patchsmith.config import Config
from patchsmith.errors import ConflictError
from patchsmith.executor import ApplyResult, ChangeSetWriter, ConfirmCallback, render_changeset
from patchsmith.flags import FlagNamespace, resolve_flags
from patchsmith.parsers import ParserRegistry
from patchsmith.patch import OperationApplier
from patchsmith.scaffolder.templates import TemplateRenderer
from patchsmith.snapshot import ProjectLoader, ProjectSnapshot
from patchsmith.utils import (
    confirm_changes,
    console,
    create_progress,
    format_duration,
    pluralize,
    print_conflict_report,
    print_diffs,
    print_error,
    print_flag_report,
    print_stage_header,
    print_success,
    print_summary_table,
    print_warning,
)


@dataclass(frozen=True)
class GeneratorRequest:
    """One requested generator and the raw arguments passed for the run."""

    generator: str
    args: tuple[str, ...] = ()


RequestLike = Union[GeneratorRequest, str, tuple[str, Sequence[str]]]


def as_request(request: RequestLike) -> GeneratorRequest:
    if isinstance(request, GeneratorRequest):
        return request
    if isinstance(request, str):
        return GeneratorRequest(request)
    generator_id, args = request
    return GeneratorRequest(generator_id, tuple(args))


class Engine:
    """Plans, renders, and applies generator runs against one project.

    Engines share no mutable state, so independent runs against unrelated
    projects can use separate instances concurrently.
    """

    def __init__(
        self,
        config: Config | None = None,
        registry: GeneratorRegistry | None = None,
        parsers: ParserRegistry | None = None,
        renderer: TemplateRenderer | None = None,
    ) -> None:
        self.config = config or Config()
        self.registry = registry if registry is not None else GeneratorRegistry.default()
        self.parsers = parsers or ParserRegistry.default_registry()
        self.renderer = renderer or TemplateRenderer(self.config.resolved_template_dirs)
        self.applier = OperationApplier(self.parsers, self.renderer)

    # ------------------------------------------------------------------
    # Load
    # ------------------------------------------------------------------

    async def load_snapshot(self) -> ProjectSnapshot:
        """Read and parse the target project."""
        loader = ProjectLoader(self.config.resolved_root, self.config.loader, self.parsers)
        if not self.config.verbose:
            return await loader.load()

        start = time.monotonic()
        with create_progress() as progress:
            progress.add_task("Reading project files...", total=None)
            snapshot = await loader.load()
        console.print(
            f"  [dim]Loaded {pluralize(len(snapshot), 'file')} from "
            f"{self.config.resolved_root} in {format_duration(time.monotonic() - start)}[/dim]"
        )
        if snapshot.skipped:
            print_warning(f"Skipped {pluralize(len(snapshot.skipped), 'unreadable or oversized file')}")
        return snapshot

    # ------------------------------------------------------------------
    # Flags
    # ------------------------------------------------------------------

    def resolve_flags(self, generator_ids: Iterable[str], *, strict: bool = False) -> FlagNamespace:
        """Merge the flags of *generator_ids* and everything they compose.

        Raises:
            UnknownGeneratorError / CompositionCycleError: From composition.
            AmbiguousFlagError: Only when *strict* and a name is ambiguous.
        """
        graph = CompositionGraph.build(self.registry, list(generator_ids))
        namespace = resolve_flags(graph.descriptors(), strict=strict)
        if self.config.verbose and namespace.report is not None:
            print_flag_report(namespace.report)
        return namespace

    # ------------------------------------------------------------------
    # Plan
    # ------------------------------------------------------------------

    async def plan(
        self,
        requests: Sequence[RequestLike],
        snapshot: ProjectSnapshot | None = None,
    ) -> MergedChangeSet:
        """Run the requested generators and merge their operations.

        Raw arguments of all requests are bound together against the flag
        namespace of the whole run.  Conflicts and failed operations are
        returned on the change set (see ``MergedChangeSet.report``), not
        raised.

        Raises:
            UnknownGeneratorError: A generator id is not registered.
            CompositionCycleError: Composition loops; nothing has run.
            AmbiguousFlagError: A bare ambiguous flag was passed.
            FlagBindingError: Unknown, malformed, or missing required flags.
            GeneratorError: A generator crashed.
        """
        normalized = [as_request(r) for r in requests]
        graph = CompositionGraph.build(
            self.registry, [ComposeRequest(r.generator) for r in normalized]
        )
        namespace = resolve_flags(graph.descriptors())
        explicit = namespace.bind([arg for r in normalized for arg in r.args])
        invocations = graph.bind(namespace, explicit)

        if snapshot is None:
            snapshot = await self.load_snapshot()

        if self.config.verbose:
            print_stage_header("plan", " -> ".join(graph.order()))
        builder = ChangeSetBuilder(snapshot, self.applier)
        for invocation in invocations:
            builder.run(invocation)
        changeset = builder.build()

        if self.config.verbose:
            self._print_plan_summary(changeset)
        return changeset

    # ------------------------------------------------------------------
    # Render / apply
    # ------------------------------------------------------------------

    def render(self, changeset: MergedChangeSet) -> list[tuple[str, str]]:
        """Return ``(path, unified diff)`` for every changed file.

        Raises:
            ConflictError: The change set has unresolved conflicts.
        """
        diffs = render_changeset(changeset, self.config.diff.context_lines)
        return [(diff.path, diff.text) for diff in diffs]

    async def apply(
        self,
        changeset: MergedChangeSet,
        confirm: ConfirmCallback | None = None,
    ) -> ApplyResult:
        """Write *changeset* to the project, all or nothing.

        Raises:
            ConflictError: The change set has unresolved conflicts.
            ApplyError: Nothing was written.
        """
        writer = ChangeSetWriter(
            self.config.resolved_root,
            context_lines=self.config.diff.context_lines,
            check_drift=self.config.check_drift,
        )
        result = await writer.apply(changeset, confirm)
        if self.config.verbose:
            if result.applied:
                print_success(f"Wrote {pluralize(len(result.written), 'file')}")
            else:
                print_warning("Changes discarded; nothing was written.")
        return result

    async def run(
        self,
        requests: Sequence[RequestLike],
        confirm: ConfirmCallback | None = None,
    ) -> ApplyResult:
        """Plan, show the diff, and apply in one call.

        Without *confirm*, the user is asked on the console unless
        ``Config.assume_yes`` is set.

        Raises:
            ConflictError: Planning produced conflicts (they are printed first).
        """
        start = time.monotonic()
        if self.config.verbose:
            print_stage_header("load", str(self.config.resolved_root))
        changeset = await self.plan(requests)

        report = changeset.report()
        if not report.ok:
            print_error(
                f"Refusing to apply: {pluralize(len(report.conflicts), 'conflict')}, "
                f"{pluralize(len(report.failures), 'failed operation')}"
            )
            print_conflict_report(report)
            raise ConflictError(report)

        if confirm is None:
            if self.config.assume_yes:
                print_diffs(render_changeset(changeset, self.config.diff.context_lines))
            else:
                confirm = confirm_changes

        if self.config.verbose:
            print_stage_header("apply")
        result = await self.apply(changeset, confirm)
        if self.config.verbose:
            console.print(f"  [dim]Finished in {format_duration(time.monotonic() - start)}[/dim]")
        return result

    def _print_plan_summary(self, changeset: MergedChangeSet) -> None:
        new_files = [c.path for c in changeset.files if c.is_new]
        print_summary_table(
            {
                "Generators": ", ".join(changeset.invocations) or "-",
                "Files changed": str(len(changeset.files)),
                "New files": ", ".join(new_files) or "-",
                "Operations": str(len(changeset.operations)),
                "Conflicts": str(len(changeset.conflicts)),
                "Failed operations": str(len(changeset.failures)),
            },
            title="Plan",
        )
        print_conflict_report(changeset.report())
