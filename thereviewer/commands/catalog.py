"""Show the rule catalog in evaluation order."""

import click
from rich.table import Table

from thereviewer.commands.analyze import load_catalog
from thereviewer.config_runtime import load_runtime_config
from thereviewer.ui import console, print_header, severity_label
from thereviewer.utils.error_handler import handle_exceptions


@click.command("catalog")
@click.option("--project-path", default=".", help="Root directory of the reviewed project")
@click.option("--catalog", "catalog_path", help="YAML rule catalog (default: built-in)")
@handle_exceptions
def catalog_command(project_path, catalog_path):
    """List dimensions and checks in the order the engine evaluates them.

    Earlier dimensions win: a CRITICAL finding suppresses lower-severity
    findings at the same site from later dimensions.
    """
    catalog = load_catalog(catalog_path, load_runtime_config(project_path))

    print_header(f"CATALOG: {catalog.name}")
    for index, dimension in enumerate(catalog.dimensions_in_order(), start=1):
        console.print(
            f"\n[bold cyan]{index}. {dimension.name}[/bold cyan] "
            f"[dim]{dimension.description}[/dim]"
        )

        table = Table(show_header=True, box=None, padding=(0, 2, 0, 2))
        table.add_column("Check", style="check")
        table.add_column("Default", width=9)
        table.add_column("Kind", style="dim")
        table.add_column("Likelihood", justify="right")
        table.add_column("Description")

        for chk in dimension.checks:
            table.add_row(
                chk.check_id,
                severity_label(chk.default_severity),
                chk.kind,
                f"{chk.likelihood:.2f}",
                chk.description,
            )
        console.print(table)
