"""Run the review engine over extractor output and write the report."""

import os
import sys
from pathlib import Path

import click

from thereviewer.config_runtime import load_runtime_config
from thereviewer.engine import CancelToken, interrupt_cancels
from thereviewer.exceptions import AnalysisCancelled, MemoryStoreUnavailable, ProfileError
from thereviewer.extraction import JsonArtifactLoader, discover_artifact_files
from thereviewer.memory import MemoryStore
from thereviewer.pipeline import ReviewPipeline
from thereviewer.profile import ProfileLoader
from thereviewer.rules.base import Severity
from thereviewer.rules.catalog import RuleCatalog, default_catalog
from thereviewer.ui import (
    console,
    print_error,
    print_header,
    print_verdict,
    print_warning,
    render_findings,
    render_statuses,
)
from thereviewer.utils.error_handler import handle_exceptions
from thereviewer.utils.constants import ENV_DEBUG
from thereviewer.utils.exit_codes import ExitCodes
from thereviewer.utils.helpers import save_json_file
from thereviewer.utils.logging import configure_file_logging, logger


def load_catalog(catalog_path: str | None, config: dict) -> RuleCatalog:
    """Catalog from --catalog, then config paths.catalog, then the built-in one."""
    path = catalog_path or config["paths"]["catalog"]
    if path:
        return RuleCatalog.from_yaml(path)
    return default_catalog()


@click.command("analyze")
@click.option("--project-path", default=".", help="Root directory of the reviewed project")
@click.option(
    "--artifacts",
    "artifact_paths",
    multiple=True,
    required=True,
    help="Extractor output: a JSON artifact model or a directory of them",
)
@click.option("--catalog", "catalog_path", help="YAML rule catalog (default: built-in)")
@click.option("--no-memory", is_flag=True, help="Do not consult or update finding memory")
@click.option("--output-json", help="Report path (default: .pf/raw/review.json)")
@click.option("--format", "output_format", type=click.Choice(["text", "json"]), default="text")
@click.option("--max-rows", default=25, type=int, help="Maximum rows per section in text output")
@handle_exceptions
def analyze(
    project_path, artifact_paths, catalog_path, no_memory, output_json, output_format, max_rows
):
    """Review extracted artifact models against the rule catalog.

    Loads the project profile, applies every dimension of the catalog to each
    artifact, reconciles the findings with the project's memory and writes a
    report with four sections: critical gaps, weak findings, structural
    issues and prioritized suggested fixes.

    Examples:
      rev analyze --artifacts .pf/facts/
      rev analyze --artifacts src_db.json --format json
      rev analyze --artifacts .pf/facts/ --catalog rules/rust.yml

    Exit Codes:
      0 - No critical or high findings
      1 - High severity findings
      2 - Critical findings
      3 - No artifact could be analyzed
    """
    project_root = Path(project_path).resolve()
    config = load_runtime_config(project_root)

    if os.environ.get(ENV_DEBUG):
        configure_file_logging(Path(config["paths"]["pf_dir"]))

    try:
        profile = ProfileLoader(project_root, Path(config["paths"]["profile_json"])).load()
    except ProfileError as e:
        raise click.ClickException(f"Invalid profile overrides: {e.message}") from e

    catalog = load_catalog(catalog_path, config)

    memory = None
    memory_error = None
    if not no_memory:
        try:
            memory = MemoryStore(config["paths"]["memory_db"])
        except MemoryStoreUnavailable as e:
            # Review still runs; the report carries the not-reconciled flag
            logger.error(str(e))
            memory_error = str(e)

    sources: list[str] = []
    for artifact_path in artifact_paths:
        found = discover_artifact_files(artifact_path)
        if not found:
            print_warning(f"No artifact models found at {artifact_path}")
        sources.extend(found)

    pipeline = ReviewPipeline.from_config(
        catalog, JsonArtifactLoader(project_root), memory, config, memory_error=memory_error
    )

    try:
        with interrupt_cancels(CancelToken()) as cancel:
            report = pipeline.run(profile, sources, cancel=cancel)
    except AnalysisCancelled:
        print_error("Review cancelled; no results were recorded")
        sys.exit(ExitCodes.INTERRUPTED)

    report_path = Path(output_json) if output_json else Path(config["paths"]["report_json"])
    save_json_file(report.to_dict(), report_path)

    if output_format == "json":
        click.echo(report.to_json())
    else:
        summary = report.summary
        print_header("REVIEW RESULTS")
        console.print(f"Project: [bold]{profile.project_id}[/bold]  Catalog: {catalog.name}")
        console.print(summary.headline)

        render_findings("Critical Gaps", report.critical_gaps, max_rows)
        render_findings("Weak Findings", report.weak_findings, max_rows)
        render_findings("Structural Issues", report.structural_issues, max_rows)
        render_findings("Suggested Fixes", report.suggested_fixes, max_rows)

        render_statuses(report.statuses)
        console.print(f"\nReport written to [path]{report_path}[/path]")
        print_verdict(report)

    exit_code = ExitCodes.SUCCESS
    if not report.summary.artifacts_analyzed:
        exit_code = ExitCodes.TASK_INCOMPLETE
    elif report.max_severity == Severity.CRITICAL:
        exit_code = ExitCodes.CRITICAL_SEVERITY
    elif report.max_severity == Severity.HIGH:
        exit_code = ExitCodes.HIGH_SEVERITY

    if exit_code != ExitCodes.SUCCESS:
        if output_format == "text":
            console.print(f"[dim]Exit {exit_code}: {ExitCodes.get_description(exit_code)}[/dim]")
        sys.exit(exit_code)
