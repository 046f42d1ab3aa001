"""
Artifact model and extraction boundary tests.

A malformed model must surface as ExtractionFailure so the pipeline can mark
the artifact unanalyzable instead of crashing.
"""

import json
import threading

import pytest

from thereviewer.exceptions import ExtractionFailure
from thereviewer.extraction import (
    JsonArtifactLoader,
    discover_artifact_files,
    extract_with_timeout,
)
from thereviewer.model import ArtifactModel
from thereviewer.rules.base import Position


class TestFromDict:
    def test_parses_every_section(self, mixed_artifact_data):
        model = ArtifactModel.from_dict(mixed_artifact_data)

        assert model.artifact_id == "src/api.py"
        assert model.path == "src/api.py"
        assert len(model.declarations) == 4
        assert len(model.control_edges) == 2
        assert len(model.resource_sites) == 1
        assert len(model.error_sites) == 1
        assert model.declaration("t1").refs == ("parse",)
        assert [d.id for d in model.declarations_of("test")] == ["t1"]
        assert model.error_sites[0].handled is False

    def test_resource_leaking_paths(self, leaky_artifact_data):
        site = ArtifactModel.from_dict(leaky_artifact_data).resource_sites[0]

        assert site.position == Position(12, 4)
        assert site.leaking_paths == frozenset(["error"])
        assert site.is_leaking

    def test_incomplete_site_is_leaking(self):
        model = ArtifactModel.from_dict(
            {
                "artifact_id": "a.go",
                "resource_sites": [
                    {"id": "r1", "line": 3, "released_on": ["normal"], "complete": False}
                ],
            }
        )

        assert model.resource_sites[0].leaking_paths == frozenset()
        assert model.resource_sites[0].is_leaking

    def test_defaults(self):
        model = ArtifactModel.from_dict({"artifact_id": "empty.py"})

        assert model.language == "unknown"
        assert model.declarations == ()

    @pytest.mark.parametrize(
        "data",
        [
            [],
            {},
            {"artifact_id": ""},
            {"artifact_id": "a.py", "declarations": [{"id": "d1", "kind": "macro", "line": 1}]},
            {"artifact_id": "a.py", "declarations": [{"id": "d1", "kind": "function"}]},
            {"artifact_id": "a.py", "control_edges": [{"id": "c1", "kind": "loop", "line": 0}]},
            {"artifact_id": "a.py", "error_sites": [{"id": "", "kind": "throw", "line": 2}]},
            {
                "artifact_id": "a.py",
                "resource_sites": [{"id": "r1", "line": 2, "exit_paths": ["panic"]}],
            },
        ],
    )
    def test_malformed_models_raise_extraction_failure(self, data):
        with pytest.raises(ExtractionFailure):
            ArtifactModel.from_dict(data, source="facts/a.json")

    def test_failure_names_source(self):
        with pytest.raises(ExtractionFailure) as exc_info:
            ArtifactModel.from_dict({}, source="facts/a.json")

        assert exc_info.value.artifact == "facts/a.json"


class TestJsonArtifactLoader:
    def test_loads_file(self, artifact_dir):
        model = JsonArtifactLoader().extract(str(artifact_dir / "db.json"))

        assert model.artifact_id == "src/db.py"

    def test_artifact_id_derived_from_path(self, tmp_path):
        """Verify absolute paths under the project root become relative ids."""
        path = tmp_path / "facts.json"
        path.write_text(json.dumps({"path": str(tmp_path / "src" / "db.py")}))

        model = JsonArtifactLoader(tmp_path).extract(str(path))

        assert model.artifact_id == "src/db.py"

    def test_invalid_json(self, tmp_path):
        path = tmp_path / "broken.json"
        path.write_text("{")

        with pytest.raises(ExtractionFailure, match="Cannot read"):
            JsonArtifactLoader().extract(str(path))

    def test_discovery_is_sorted(self, artifact_dir):
        (artifact_dir / "nested").mkdir()
        (artifact_dir / "nested" / "x.json").write_text("{}")
        (artifact_dir / "notes.txt").write_text("ignored")

        files = discover_artifact_files(artifact_dir)

        assert files == sorted(files)
        assert len(files) == 3
        assert discover_artifact_files(artifact_dir / "db.json") == [
            str(artifact_dir / "db.json")
        ]


class TestExtractWithTimeout:
    def test_hung_extractor_times_out(self):
        release = threading.Event()

        class HungExtractor:
            def extract(self, source):
                release.wait(timeout=10)
                return ArtifactModel(artifact_id=source)

        try:
            with pytest.raises(ExtractionFailure, match="timed out"):
                extract_with_timeout(HungExtractor(), "slow.json", 0.1)
        finally:
            release.set()

    def test_crashing_extractor_is_wrapped(self):
        class CrashingExtractor:
            def extract(self, source):
                raise RecursionError("parser blew the stack")

        with pytest.raises(ExtractionFailure, match="RecursionError"):
            extract_with_timeout(CrashingExtractor(), "deep.json", 5)

    def test_no_timeout_runs_inline(self, artifact_dir):
        model = extract_with_timeout(JsonArtifactLoader(), str(artifact_dir / "api.json"), None)

        assert model.artifact_id == "src/api.py"
