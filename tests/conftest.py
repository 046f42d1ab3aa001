"""Pytest configuration and fixtures."""
import copy
import json
from pathlib import Path

import pytest

from thereviewer.memory import MemoryStore
from thereviewer.model import ArtifactModel
from thereviewer.profile import ErrorStrategy, ProjectProfile


class FakeClock:
    """Deterministic, strictly increasing ISO timestamps."""

    def __init__(self):
        self.tick = 0

    def __call__(self) -> str:
        self.tick += 1
        return f"2026-01-01T00:{self.tick // 60:02d}:{self.tick % 60:02d}+00:00"


LEAKY_ARTIFACT = {
    "artifact_id": "src/db.py",
    "language": "python",
    "resource_sites": [
        {
            "id": "r1",
            "kind": "connection",
            "line": 12,
            "column": 4,
            "exit_paths": ["normal", "error"],
            "released_on": ["normal"],
        }
    ],
}


MIXED_ARTIFACT = {
    "artifact_id": "src/api.py",
    "language": "python",
    "declarations": [
        {"id": "d1", "kind": "function", "name": "parse", "line": 3, "exported": True,
         "tags": ["unchecked-cast"]},
        {"id": "d2", "kind": "route", "name": "create_user", "line": 20, "exported": True,
         "documented": False, "tags": ["unvalidated-input"]},
        {"id": "d3", "kind": "function", "name": "save", "line": 40, "exported": True,
         "documented": False},
        {"id": "t1", "kind": "test", "name": "test_parse", "line": 80, "refs": ["parse"],
         "tags": ["no-assertions"]},
    ],
    "control_edges": [
        {"id": "c1", "kind": "loop", "line": 25, "owner": "d2", "tags": ["unbounded"]},
        {"id": "c2", "kind": "handler", "line": 44, "owner": "d3", "tags": ["catch-all"]},
    ],
    "resource_sites": [
        {"id": "r1", "kind": "file", "line": 42, "owner": "d3",
         "exit_paths": ["normal", "error"], "released_on": ["normal", "error"]},
    ],
    "error_sites": [
        {"id": "e1", "kind": "throw", "line": 46, "owner": "d3", "handled": False,
         "tags": ["swallowed"]},
    ],
}


@pytest.fixture
def profile():
    """Default, non-strict profile."""
    return ProjectProfile(
        project_id="demo",
        runtime_tags=frozenset(["python"]),
        error_strategy=ErrorStrategy.EXCEPTION,
        test_framework="pytest",
    )


@pytest.fixture
def strict_profile(profile):
    """Profile with strict error handling enabled."""
    return ProjectProfile(
        project_id=profile.project_id,
        runtime_tags=profile.runtime_tags,
        error_strategy=profile.error_strategy,
        test_framework=profile.test_framework,
        strictness=frozenset(["strict-errors"]),
    )


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def memory_store(tmp_path, clock):
    """Memory store in a temporary directory with a deterministic clock."""
    return MemoryStore(tmp_path / ".pf" / "review_memory.db", clock=clock)


@pytest.fixture
def leaky_artifact_data():
    return copy.deepcopy(LEAKY_ARTIFACT)


@pytest.fixture
def mixed_artifact_data():
    return copy.deepcopy(MIXED_ARTIFACT)


@pytest.fixture
def leaky_artifact():
    return ArtifactModel.from_dict(LEAKY_ARTIFACT)


@pytest.fixture
def mixed_artifact():
    return ArtifactModel.from_dict(MIXED_ARTIFACT)


@pytest.fixture
def artifact_dir(tmp_path):
    """Directory of extractor output files for pipeline and CLI tests."""
    facts = tmp_path / "facts"
    facts.mkdir()
    (facts / "db.json").write_text(json.dumps(LEAKY_ARTIFACT))
    (facts / "api.json").write_text(json.dumps(MIXED_ARTIFACT))
    return facts


@pytest.fixture
def sample_project(tmp_path):
    """Minimal Python project with strict error handling configured."""
    project_path = tmp_path / "project"
    project_path.mkdir()
    (project_path / "pyproject.toml").write_text(
        '[project]\nname = "sample"\ndependencies = ["flask>=3"]\n\n'
        "[tool.pytest.ini_options]\ntestpaths = [\"tests\"]\n"
    )
    pf = project_path / ".pf"
    pf.mkdir()
    (pf / "profile.json").write_text(json.dumps({"strictness": ["strict-errors"]}))
    yield Path(project_path)
