"""TheReviewer CLI - Main entry point and command registration hub."""
# ruff: noqa: E402 - Intentional lazy loading: commands imported after cli group definition

import click

from thereviewer import __version__


@click.group()
@click.version_option(version=__version__, prog_name="rev")
@click.help_option("-h", "--help")
def cli():
    """TheReviewer - rule-based code review with finding memory.

    \b
    QUICK START:
      rev profile                          # What the engine assumes about the project
      rev catalog                          # Dimensions and checks, in order
      rev analyze --artifacts .pf/facts/   # Review extractor output
      rev memory show --status open        # Findings still open across runs
    """
    pass


from thereviewer.commands.analyze import analyze
from thereviewer.commands.catalog import catalog_command
from thereviewer.commands.memory import memory_group
from thereviewer.commands.profile import profile_command

cli.add_command(analyze)
cli.add_command(catalog_command, name="catalog")
cli.add_command(profile_command, name="profile")
cli.add_command(memory_group, name="memory")


def main():
    """Main entry point for console script."""
    cli()


if __name__ == "__main__":
    main()
