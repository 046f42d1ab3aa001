"""Show the detected project profile."""

import json
from pathlib import Path

import click

from thereviewer.config_runtime import load_runtime_config
from thereviewer.exceptions import ProfileError
from thereviewer.profile import ProfileLoader
from thereviewer.ui import console, print_header
from thereviewer.utils.error_handler import handle_exceptions


@click.command("profile")
@click.option("--project-path", default=".", help="Root directory of the reviewed project")
@click.option("--json", "as_json", is_flag=True, help="Print the profile as JSON")
@handle_exceptions
def profile_command(project_path, as_json):
    """Detect runtime, error strategy, test framework and strictness flags.

    Values come from project manifests and can be overridden in
    .pf/profile.json, e.g. {"strictness": ["strict-errors"]}.
    """
    root = Path(project_path).resolve()
    config = load_runtime_config(root)

    try:
        profile = ProfileLoader(root, Path(config["paths"]["profile_json"])).load()
    except ProfileError as e:
        raise click.ClickException(f"Invalid profile overrides: {e.message}") from e

    if as_json:
        click.echo(json.dumps(profile.to_dict(), indent=2))
        return

    print_header("PROJECT PROFILE")
    data = profile.to_dict()
    console.print(f"  Project:         [bold]{data['project_id']}[/bold]")
    console.print(f"  Runtime tags:    {', '.join(data['runtime_tags']) or '-'}")
    console.print(f"  Error strategy:  {data['error_strategy']}")
    console.print(f"  Test framework:  {data['test_framework'] or '-'}")
    console.print(f"  Strictness:      {', '.join(data['strictness']) or '-'}")
