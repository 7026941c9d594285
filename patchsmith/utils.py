"""Console output helpers for patchsmith.

Everything user-facing goes through the module-level Rich ``console``: stage
headers, summary tables, coloured diffs, conflict and flag reports, and the
confirmation prompt shown before apply.  Core modules return their results as
data and only call these helpers when ``Config.verbose`` is set.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Sequence

from rich.console import Console
from rich.panel import Panel
from rich.progress import Progress, SpinnerColumn, TextColumn, TimeElapsedColumn
from rich.prompt import Confirm
from rich.rule import Rule
from rich.syntax import Syntax
from rich.table import Table

if TYPE_CHECKING:
    from patchsmith.executor.diff import FileDiff
    from patchsmith.flags.resolver import AmbiguousFlagReport
    from patchsmith.patch.conflicts import ConflictReport

console = Console()


# ---------------------------------------------------------------------------
# Formatting helpers
# ---------------------------------------------------------------------------


def format_duration(seconds: float) -> str:
    """Format a duration in seconds to a human-readable string.

    Examples::

        format_duration(0.25)  -> "250ms"
        format_duration(3.7)   -> "3.7s"
        format_duration(65.2)  -> "1m 5s"
    """
    if seconds < 0:
        return "0ms"
    if seconds < 1:
        return f"{int(seconds * 1000)}ms"
    minutes, secs = divmod(seconds, 60)
    if minutes >= 1:
        return f"{int(minutes)}m {int(secs)}s"
    return f"{secs:.1f}s"


def pluralize(count: int, word: str) -> str:
    return f"{count} {word}" if count == 1 else f"{count} {word}s"


# ---------------------------------------------------------------------------
# Rich output helpers
# ---------------------------------------------------------------------------


STAGE_COLORS: dict[str, str] = {
    "load": "bright_cyan",
    "plan": "bright_green",
    "render": "bright_yellow",
    "apply": "bright_magenta",
}


def print_stage_header(stage: str, detail: str = "") -> None:
    """Print a full-width rule announcing one stage of a run."""
    color = STAGE_COLORS.get(stage, "white")
    title = stage.upper() + (f": {detail}" if detail else "")
    console.print()
    console.print(Rule(f"[bold {color}] {title} [/bold {color}]", style=color))
    console.print()


def print_summary_table(data: dict[str, str], title: str = "Summary") -> None:
    """Print a two-column key/value summary table."""
    table = Table(title=title, show_header=True, header_style="bold cyan")
    table.add_column("Item", style="dim", no_wrap=True)
    table.add_column("Value")

    for key, value in data.items():
        table.add_row(key, str(value))

    console.print(table)
    console.print()


def print_success(message: str) -> None:
    """Print a green success message."""
    console.print(f"[bold green]{message}[/bold green]")


def print_error(message: str) -> None:
    """Print a red error message."""
    console.print(f"[bold red]{message}[/bold red]")


def print_warning(message: str) -> None:
    """Print a yellow warning message."""
    console.print(f"[bold yellow]{message}[/bold yellow]")


def create_progress() -> Progress:
    """Create a Rich progress display for loading and applying."""
    return Progress(
        SpinnerColumn(),
        TextColumn("[progress.description]{task.description}"),
        TimeElapsedColumn(),
        console=console,
    )


# ---------------------------------------------------------------------------
# Domain reports
# ---------------------------------------------------------------------------


def print_diff(diff: "FileDiff") -> None:
    """Print one file's unified diff with diff syntax highlighting."""
    status = "new file" if diff.is_new else "modified"
    console.print(
        f"[bold]{diff.path}[/bold] [dim]({status}, "
        f"[green]+{diff.added}[/green] [red]-{diff.removed}[/red])[/dim]"
    )
    console.print(Syntax(diff.text.rstrip("\n"), "diff", theme="ansi_dark", word_wrap=True))
    console.print()


def print_diffs(diffs: Sequence["FileDiff"]) -> None:
    if not diffs:
        print_success("Nothing to change.")
        return
    for diff in diffs:
        print_diff(diff)


def print_conflict_report(report: "ConflictReport") -> None:
    """Print every conflict and failed operation as one table."""
    if report.ok:
        return
    table = Table(title="Unresolved conflicts", show_header=True, header_style="bold red")
    table.add_column("Kind", no_wrap=True)
    table.add_column("File", style="cyan")
    table.add_column("Generators")
    table.add_column("Detail")

    for conflict in report.conflicts:
        table.add_row(conflict.kind, conflict.path, " vs ".join(conflict.generators), conflict.message())
    for failure in report.failures:
        where = f"{failure.path}:{failure.location}" if failure.location else failure.path
        table.add_row("failure", where, failure.generator, f"{failure.operation}: {failure.message}")

    console.print(table)
    console.print()


def print_flag_report(report: "AmbiguousFlagReport") -> None:
    """Print ambiguous flags and the qualified spellings that replace them."""
    lines = []
    for flag in report.flags:
        owners = ", ".join(f"{o.generator} [dim](group {o.group})[/dim]" for o in flag.owners)
        forms = "  ".join(f"[bold]{form}[/bold]" for form in flag.qualified_forms)
        lines.append(f"[yellow]--{flag.name}[/yellow]: {flag.reason}\n  owners: {owners}\n  use: {forms}")
    console.print(
        Panel(
            "\n".join(lines),
            title=f"{pluralize(len(report.flags), 'ambiguous flag')}",
            border_style="yellow",
        )
    )


def confirm_changes(diffs: Sequence["FileDiff"]) -> bool:
    """Show *diffs* and ask whether to write them."""
    print_diffs(diffs)
    if not diffs:
        return True
    return Confirm.ask(f"Apply changes to {pluralize(len(diffs), 'file')}?", default=False, console=console)
