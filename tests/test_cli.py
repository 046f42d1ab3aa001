"""CLI tests using click's CliRunner against a temporary project."""

import json
import signal

import pytest
from click.testing import CliRunner

from thereviewer.cli import cli
from thereviewer.memory import MemoryStore
from thereviewer.pipeline import ReviewPipeline
from thereviewer.utils.constants import ENV_PROJECT_ID
from thereviewer.utils.exit_codes import ExitCodes

LEAK_KEY = "src/db.py#r1::resources/unreleased-resource"


@pytest.fixture
def runner(monkeypatch):
    monkeypatch.delenv(ENV_PROJECT_ID, raising=False)
    return CliRunner()


def _analyze(runner, project, *args):
    return runner.invoke(cli, ["analyze", "--project-path", str(project), *args])


def _report(project):
    return json.loads((project / ".pf" / "raw" / "review.json").read_text())


class TestAnalyzeCommand:
    def test_critical_findings_exit_code(self, runner, sample_project, artifact_dir):
        """Verify a critical finding fails the run with exit code 2 and writes the report."""
        result = _analyze(runner, sample_project, "--artifacts", str(artifact_dir))

        assert result.exit_code == ExitCodes.CRITICAL_SEVERITY, result.output
        assert "REVIEW RESULTS" in result.output
        report = _report(sample_project)
        assert report["summary"]["reconciled"] is True
        assert any(f["dedupeKey"] == LEAK_KEY for f in report["criticalGaps"])

    def test_json_format(self, runner, sample_project, artifact_dir, tmp_path):
        out = tmp_path / "out" / "report.json"

        result = _analyze(
            runner,
            sample_project,
            "--artifacts",
            str(artifact_dir / "db.json"),
            "--format",
            "json",
            "--output-json",
            str(out),
        )

        assert result.exit_code == ExitCodes.CRITICAL_SEVERITY
        printed = json.loads(result.stdout)
        assert printed == json.loads(out.read_text())
        assert printed["summary"]["artifactsAnalyzed"] == ["src/db.py"]

    def test_no_memory_flag(self, runner, sample_project, artifact_dir):
        result = _analyze(
            runner, sample_project, "--artifacts", str(artifact_dir), "--no-memory"
        )

        assert result.exit_code == ExitCodes.CRITICAL_SEVERITY
        summary = _report(sample_project)["summary"]
        assert summary["reconciled"] is False
        assert summary["reconciliationNote"] == "not reconciled against history"
        assert not (sample_project / ".pf" / "review_memory.db").exists()

    def test_nothing_analyzable_exit_code(self, runner, sample_project, tmp_path):
        broken = tmp_path / "broken.json"
        broken.write_text("{")

        result = _analyze(runner, sample_project, "--artifacts", str(broken))

        assert result.exit_code == ExitCodes.TASK_INCOMPLETE
        assert "ExtractionFailure" in result.output

    def test_clean_run_exits_zero(self, runner, sample_project, tmp_path):
        clean = tmp_path / "clean.json"
        clean.write_text(json.dumps({"artifact_id": "src/ok.py"}))

        result = _analyze(runner, sample_project, "--artifacts", str(clean))

        assert result.exit_code == ExitCodes.SUCCESS, result.output
        assert "No findings" in result.output

    def test_invalid_profile_overrides(self, runner, sample_project, artifact_dir):
        (sample_project / ".pf" / "profile.json").write_text('{"strictness": ["nope"]}')

        result = _analyze(runner, sample_project, "--artifacts", str(artifact_dir))

        assert result.exit_code == 1
        assert "Invalid profile overrides" in result.output

    def test_custom_catalog(self, runner, sample_project, artifact_dir, tmp_path):
        """Verify --catalog replaces the built-in dimensions."""
        catalog = tmp_path / "catalog.yml"
        catalog.write_text(
            "dimensions:\n"
            "  - name: logic\n"
            "    checks:\n"
            "      - ref: thereviewer.rules.logic:unbounded_loop\n"
        )

        result = _analyze(
            runner, sample_project, "--artifacts", str(artifact_dir), "--catalog", str(catalog)
        )

        assert result.exit_code == ExitCodes.SUCCESS, result.output
        report = _report(sample_project)
        assert {f["dimension"] for f in report["suggestedFixes"]} == {"logic"}


class TestMemoryCommands:
    def test_accept_risk_lowers_next_run(self, runner, sample_project, artifact_dir):
        """Verify accepting the leak turns the next run from critical into high."""
        db_facts = str(artifact_dir / "db.json")
        assert _analyze(runner, sample_project, "--artifacts", db_facts).exit_code == 2

        result = runner.invoke(
            cli, ["memory", "accept", LEAK_KEY, "--project-path", str(sample_project)]
        )
        assert result.exit_code == 0, result.output
        assert "accepted-risk" in result.output

        result = _analyze(runner, sample_project, "--artifacts", db_facts)
        assert result.exit_code == ExitCodes.HIGH_SEVERITY

    def test_accept_unknown_key(self, runner, sample_project):
        result = runner.invoke(
            cli, ["memory", "accept", "nope#x::logic/y", "--project-path", str(sample_project)]
        )

        assert result.exit_code == 1
        assert "No memory record" in result.output

    def test_show_and_history(self, runner, sample_project, artifact_dir):
        _analyze(runner, sample_project, "--artifacts", str(artifact_dir / "db.json"))

        show = runner.invoke(
            cli, ["memory", "show", "--project-path", str(sample_project), "--status", "open"]
        )
        history = runner.invoke(
            cli, ["memory", "history", LEAK_KEY, "--project-path", str(sample_project)]
        )

        assert show.exit_code == 0
        assert "src/db.py" in show.output
        assert history.exit_code == 0
        assert "(new) -> open" in history.output

    def test_history_of_unknown_key(self, runner, sample_project):
        result = runner.invoke(
            cli, ["memory", "history", "nope#x::logic/y", "--project-path", str(sample_project)]
        )

        assert result.exit_code == 1


class TestInfoCommands:
    def test_profile_json(self, runner, sample_project):
        result = runner.invoke(cli, ["profile", "--project-path", str(sample_project), "--json"])

        assert result.exit_code == 0
        data = json.loads(result.stdout)
        assert data["project_id"] == "project"
        assert data["strictness"] == ["strict-errors"]
        assert data["test_framework"] == "pytest"

    def test_catalog_lists_dimensions_in_order(self, runner, sample_project):
        result = runner.invoke(cli, ["catalog", "--project-path", str(sample_project)])

        assert result.exit_code == 0
        names = ("soundness", "data-flow", "test-coverage")
        positions = [result.output.index(name) for name in names]
        assert positions == sorted(positions)

    def test_version(self, runner):
        result = runner.invoke(cli, ["--version"])

        assert result.exit_code == 0
        assert "rev" in result.output


class TestInterruptAndErrors:
    def test_interrupt_cancels_review(self, runner, sample_project, artifact_dir, monkeypatch):
        """Verify Ctrl+C during a run exits 130 and records nothing."""
        original_run = ReviewPipeline.run
        handler_before = signal.getsignal(signal.SIGINT)

        def run_with_interrupt(self, profile, sources, cancel=None):
            signal.raise_signal(signal.SIGINT)
            return original_run(self, profile, sources, cancel=cancel)

        monkeypatch.setattr(ReviewPipeline, "run", run_with_interrupt)

        result = _analyze(runner, sample_project, "--artifacts", str(artifact_dir))

        assert result.exit_code == ExitCodes.INTERRUPTED, result.output
        assert "no results were recorded" in result.output
        assert signal.getsignal(signal.SIGINT) is handler_before
        assert MemoryStore(sample_project / ".pf" / "review_memory.db").records("project") == []

    def test_unexpected_error_logged_under_project(
        self, runner, sample_project, artifact_dir, tmp_path, monkeypatch
    ):
        """Verify the traceback lands in the project's .pf, not the working directory."""
        elsewhere = tmp_path / "elsewhere"
        elsewhere.mkdir()
        monkeypatch.chdir(elsewhere)

        def crash(self, profile, sources, cancel=None):
            raise RuntimeError("engine bug")

        monkeypatch.setattr(ReviewPipeline, "run", crash)

        result = _analyze(runner, sample_project, "--artifacts", str(artifact_dir))

        log_path = sample_project.resolve() / ".pf" / "error.log"
        assert result.exit_code == 1
        assert str(log_path) in result.output
        assert "RuntimeError: engine bug" in log_path.read_text()
        assert not (elsewhere / ".pf").exists()

    def test_invalid_catalog_is_a_plain_error(self, runner, sample_project, artifact_dir, tmp_path):
        catalog = tmp_path / "catalog.yml"
        catalog.write_text("dimensions: nope\n")

        result = _analyze(
            runner, sample_project, "--artifacts", str(artifact_dir), "--catalog", str(catalog)
        )

        assert result.exit_code == 1
        assert "CatalogError" in result.output
        assert not (sample_project / ".pf" / "error.log").exists()


class TestVerdictPanel:
    def test_critical_verdict(self, runner, sample_project, artifact_dir):
        result = _analyze(runner, sample_project, "--artifacts", str(artifact_dir))

        assert "STATUS: [CRITICAL]" in result.output
        assert "Memory updated for 2 artifact(s)" in result.output

    def test_unreconciled_verdict(self, runner, sample_project, artifact_dir):
        result = _analyze(
            runner, sample_project, "--artifacts", str(artifact_dir / "db.json"), "--no-memory"
        )

        assert "Results are not reconciled against history" in result.output

    def test_incomplete_verdict(self, runner, sample_project, tmp_path):
        broken = tmp_path / "broken.json"
        broken.write_text("{")

        result = _analyze(runner, sample_project, "--artifacts", str(broken))

        assert "STATUS: [INCOMPLETE]" in result.output
