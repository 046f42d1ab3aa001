"""Inspect and annotate the finding memory of a project."""

from pathlib import Path

import click
from rich.table import Table

from thereviewer.config_runtime import load_runtime_config
from thereviewer.memory import MemoryStatus, MemoryStore
from thereviewer.profile import ProfileLoader
from thereviewer.ui import console, print_header, print_success
from thereviewer.utils.error_handler import handle_exceptions


def _open(project_path: str) -> tuple[MemoryStore, str]:
    root = Path(project_path).resolve()
    config = load_runtime_config(root)
    project_id = ProfileLoader(root, Path(config["paths"]["profile_json"])).load().project_id
    return MemoryStore(config["paths"]["memory_db"]), project_id


@click.group("memory")
def memory_group():
    """Finding memory: what was seen, when, and how it was resolved."""


@memory_group.command("show")
@click.option("--project-path", default=".", help="Root directory of the reviewed project")
@click.option(
    "--status",
    type=click.Choice([s.value for s in MemoryStatus]),
    help="Only show records with this status",
)
@handle_exceptions
def show(project_path, status):
    """List remembered findings."""
    store, project_id = _open(project_path)
    records = store.records(project_id, MemoryStatus(status) if status else None)

    print_header(f"MEMORY: {project_id}")
    if not records:
        console.print("[dim]No records[/dim]")
        return

    table = Table(show_header=True)
    table.add_column("Key", style="path")
    table.add_column("Status")
    table.add_column("First seen", style="dim")
    table.add_column("Last confirmed", style="dim")
    for record in records:
        table.add_row(
            record.dedupe_key, record.status.value, record.first_seen, record.last_confirmed
        )
    console.print(table)


@memory_group.command("history")
@click.argument("dedupe_key")
@click.option("--project-path", default=".", help="Root directory of the reviewed project")
@handle_exceptions
def history(dedupe_key, project_path):
    """Show the status transitions of one finding."""
    store, project_id = _open(project_path)
    events = store.history(project_id, dedupe_key)

    if not events:
        raise click.ClickException(f"No history for {dedupe_key}")

    print_header(dedupe_key)
    for event in events:
        console.print(f"  {event.at}  {event.from_status or '(new)'} -> {event.to_status}")


@memory_group.command("accept")
@click.argument("dedupe_key")
@click.option("--project-path", default=".", help="Root directory of the reviewed project")
@click.option("--revoke", is_flag=True, help="Return an accepted-risk finding to open")
@handle_exceptions
def accept(dedupe_key, project_path, revoke):
    """Mark a finding accepted-risk; later runs report it one severity lower."""
    store, project_id = _open(project_path)
    try:
        if revoke:
            record = store.revoke_acceptance(project_id, dedupe_key)
        else:
            record = store.accept_risk(project_id, dedupe_key)
    except KeyError as e:
        raise click.ClickException(str(e.args[0])) from e

    print_success(f"{record.dedupe_key} is now {record.status.value}")
