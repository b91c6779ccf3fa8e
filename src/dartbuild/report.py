"""Rich-based rendering of per-candidate outcomes and the aggregate verdict.

Orchestrators only return structured results; this module is where
captured subprocess output and the outcome table reach the terminal.
The CLI renders the full outcome list before it signals any failure, so
partial successes stay visible in a failed batch.

    ┏━━━━━━━━┳━━━━━━━━━━━━━━━━━━━┳━━━━━━┓
    ┃ Status ┃ File              ┃ Exit ┃
    ┡━━━━━━━━╇━━━━━━━━━━━━━━━━━━━╇━━━━━━┩
    │   ok   │ web/main.dart     │    0 │
    │ FAILED │ web/broken.dart   │    1 │
    └────────┴───────────────────┴──────┘
    compile: 2 processed, 1 succeeded, 1 failed - FAILURE
"""

from pathlib import Path
from typing import Iterable, Optional, Sequence

from rich.console import Console
from rich.table import Table
from rich.text import Text

from .build.orchestrator import AggregateVerdict, RunOutcome


def _display_path(path: Path, base: Optional[Path]) -> str:
    if base is not None:
        try:
            return path.relative_to(base.absolute()).as_posix()
        except ValueError:
            pass
    return str(path)


def build_outcome_table(outcomes: Sequence[RunOutcome], base: Optional[Path] = None, title: Optional[str] = None) -> Table:
    """Build a table with one row per outcome, in execution order."""
    table = Table(title=title)
    table.add_column("Status", justify="center")
    table.add_column("File", overflow="fold")
    table.add_column("Exit", justify="right")

    for outcome in outcomes:
        if outcome.succeeded:
            status = Text("ok", style="green")
        elif outcome.launch_error is not None:
            status = Text("LAUNCH", style="bold red")
        else:
            status = Text("FAILED", style="bold red")
        exit_code = "-" if outcome.exit_code is None else str(outcome.exit_code)
        table.add_row(status, _display_path(outcome.candidate, base), exit_code)
    return table


def _render_streams(console: Console, outcomes: Iterable[RunOutcome], base: Optional[Path]) -> None:
    for outcome in outcomes:
        streams = [
            ("stdout", outcome.stdout),
            ("stderr", outcome.stderr),
        ]
        for name, data in streams:
            text = data.decode("utf-8", errors="replace").rstrip()
            if not text:
                continue
            console.rule(f"{_display_path(outcome.candidate, base)} ({name})", style="dim")
            console.print(text, markup=False, highlight=False)
        if outcome.launch_error is not None:
            console.print(Text(f"{_display_path(outcome.candidate, base)}: {outcome.launch_error}", style="red"))


def render_outcomes(
    outcomes: Sequence[RunOutcome],
    console: Optional[Console] = None,
    base: Optional[Path] = None,
    show_output: bool = False,
) -> None:
    """Print captured output and the outcome table.

    Args:
        outcomes: Outcomes to render
        console: Rich console (a new stdout console if None)
        base: Directory file names are shown relative to
        show_output: Print captured streams of every outcome, not only failures
    """
    console = console if console is not None else Console()
    if not outcomes:
        return
    shown = outcomes if show_output else [o for o in outcomes if not o.succeeded]
    _render_streams(console, shown, base)
    console.print(build_outcome_table(outcomes, base))


def render_verdict(
    verdict: AggregateVerdict,
    console: Optional[Console] = None,
    base: Optional[Path] = None,
    show_output: bool = False,
) -> None:
    """Render every outcome of a verdict followed by its summary line."""
    console = console if console is not None else Console()
    render_outcomes(verdict.outcomes, console, base, show_output)
    style = "bold green" if verdict.success else "bold red"
    console.print(Text(verdict.summary(), style=style))
