"""Console rendering for review runs.

Severity colours come from one table so finding rows, the verdict panel and
the theme never disagree. Commands import `console` from here instead of
building their own.
"""

import sys

from rich.console import Console
from rich.panel import Panel
from rich.table import Table
from rich.text import Text
from rich.theme import Theme

from thereviewer.rules.base import Severity

SEVERITY_STYLES = {
    Severity.CRITICAL: ("bold red", "red"),
    Severity.HIGH: ("bold yellow", "yellow"),
    Severity.MEDIUM: ("bold blue", "blue"),
    Severity.LOW: ("cyan", "cyan"),
}

REVIEWER_THEME = Theme({
    **{severity.value: text for severity, (text, _) in SEVERITY_STYLES.items()},
    "error": "bold red",
    "warning": "bold yellow",
    "success": "bold green",
    "check": "bold magenta",
    "path": "bold cyan",
    "dim": "dim white",
})

console = Console(theme=REVIEWER_THEME, force_terminal=sys.stdout.isatty())


def severity_label(severity: Severity) -> str:
    return f"[{severity.value}]{severity.value.upper()}[/{severity.value}]"


def print_header(title: str) -> None:
    console.rule(f"[bold]{title}[/bold]")


def print_error(msg: str) -> None:
    console.print(f"[error]ERROR:[/error] {msg}")


def print_warning(msg: str) -> None:
    console.print(f"[warning]WARNING:[/warning] {msg}")


def print_success(msg: str) -> None:
    console.print(f"[success]OK:[/success] {msg}")


def render_findings(title: str, entries, max_rows: int) -> None:
    """One report section as a table, truncated to max_rows."""
    if not entries:
        return

    table = Table(title=title, show_lines=False, title_justify="left")
    table.add_column("Severity", width=9)
    table.add_column("Location", style="path")
    table.add_column("Dimension", style="dim")
    table.add_column("Finding")

    for entry in entries[:max_rows]:
        table.add_row(
            severity_label(entry.severity),
            f"{entry.location.artifact}:{entry.location.line}",
            entry.dimension,
            entry.description,
        )

    console.print(table)
    if len(entries) > max_rows:
        console.print(f"[dim]... and {len(entries) - max_rows} more[/dim]")


def render_statuses(statuses) -> None:
    for status in statuses:
        target = status.artifact or status.dimension or "-"
        print_warning(f"{status.kind} ({target}): {status.message}")


def print_verdict(report) -> None:
    """Closing panel coloured by the report's worst severity.

    A run that analyzed nothing is INCOMPLETE regardless of findings. The
    second line says whether memory was updated.
    """
    summary = report.summary
    severity = report.max_severity

    if not summary.artifacts_analyzed:
        label, (text_style, border_style) = "INCOMPLETE", SEVERITY_STYLES[Severity.CRITICAL]
        message = "No artifact could be analyzed."
    elif severity is None:
        label, text_style, border_style = "CLEAN", "bold green", "green"
        message = summary.headline
    else:
        label, (text_style, border_style) = severity.value.upper(), SEVERITY_STYLES[severity]
        counts = ", ".join(
            f"{summary.by_severity[s.value]} {s.value}"
            for s in Severity
            if summary.by_severity.get(s.value)
        )
        message = f"{summary.total_findings} finding(s): {counts}"

    if summary.reconciliation_note:
        detail = f"Results are {summary.reconciliation_note}"
    else:
        detail = f"Memory updated for {len(summary.artifacts_analyzed)} artifact(s)"

    console.print(
        Panel(
            Text.assemble(
                (f"STATUS: [{label}]\n", text_style),
                (f"{message}\n", border_style),
                (detail, border_style),
            ),
            border_style=border_style,
            expand=False,
        )
    )
