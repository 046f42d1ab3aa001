"""Project profile detection tests."""

import json

import pytest

from thereviewer.exceptions import ProfileError
from thereviewer.profile import ErrorStrategy, ProfileLoader, ProjectProfile, load_profile
from thereviewer.utils.constants import ENV_PROJECT_ID


@pytest.fixture(autouse=True)
def _no_project_id_env(monkeypatch):
    monkeypatch.delenv(ENV_PROJECT_ID, raising=False)


class TestManifestDetection:
    def test_python_project(self, sample_project):
        """Verify pyproject.toml implies python, exceptions and pytest."""
        profile = ProfileLoader(sample_project).load()

        assert profile.project_id == "project"
        assert profile.has_runtime("python")
        assert profile.has_runtime("flask")
        assert profile.error_strategy == ErrorStrategy.EXCEPTION
        assert profile.test_framework == "pytest"

    def test_rust_project(self, tmp_path):
        """Verify Cargo.toml implies result types and cargo test."""
        (tmp_path / "Cargo.toml").write_text(
            '[package]\nname = "svc"\n\n[dependencies]\ntokio = "1"\n'
        )

        profile = ProfileLoader(tmp_path).load()

        assert profile.runtime_tags == frozenset(["rust", "tokio"])
        assert profile.error_strategy == ErrorStrategy.RESULT_TYPE
        assert profile.test_framework == "cargo-test"

    def test_go_project(self, tmp_path):
        (tmp_path / "go.mod").write_text("module example.com/svc\n\ngo 1.22\n")

        profile = ProfileLoader(tmp_path).load()

        assert profile.error_strategy == ErrorStrategy.ERROR_CODE
        assert profile.test_framework == "go-test"

    def test_typescript_strict(self, tmp_path):
        """Verify tsconfig strict mode enables strict-types."""
        (tmp_path / "package.json").write_text(
            json.dumps({"dependencies": {"express": "^4"}, "devDependencies": {"vitest": "^1"}})
        )
        (tmp_path / "tsconfig.json").write_text(json.dumps({"compilerOptions": {"strict": True}}))

        profile = ProfileLoader(tmp_path).load()

        assert {"node", "typescript", "express"} <= profile.runtime_tags
        assert profile.test_framework == "vitest"
        assert profile.is_strict("strict-types")

    @pytest.mark.parametrize(
        "name, content, runtime",
        [
            ("package.json", b"{not json", "node"),
            ("package.json", b'{"name": "\xff\xfe"}', "node"),
            ("package.json", b'{"dependencies": ["express"], "devDependencies": 3}', "node"),
            ("pyproject.toml", b'[project]\nname = "\xff"\n', "python"),
            ("pyproject.toml", b'project = "flat"\ntool = ["mypy"]\n', "python"),
            ("Cargo.toml", b'dependencies = "serde"\n', "rust"),
            ("tsconfig.json", b'{"compilerOptions": "strict"}', "typescript"),
        ],
    )
    def test_unparseable_manifest_still_counts(self, tmp_path, name, content, runtime):
        """Verify a broken or oddly shaped manifest still yields its runtime."""
        (tmp_path / name).write_bytes(content)

        profile = ProfileLoader(tmp_path).load()

        assert profile.has_runtime(runtime)
        assert profile.strictness == frozenset()

    def test_empty_directory(self, tmp_path):
        profile = load_profile(tmp_path)

        assert profile.runtime_tags == frozenset()
        assert profile.error_strategy == ErrorStrategy.EXCEPTION
        assert profile.test_framework is None
        assert profile.strictness == frozenset()

    def test_project_id_from_environment(self, tmp_path, monkeypatch):
        monkeypatch.setenv(ENV_PROJECT_ID, "billing-service")

        assert ProfileLoader(tmp_path).load().project_id == "billing-service"


class TestOverrides:
    """.pf/profile.json overrides detected values."""

    def test_strictness_override(self, sample_project):
        profile = ProfileLoader(sample_project).load()

        assert profile.is_strict("strict-errors")
        assert not profile.is_strict("strict-types")

    def test_full_override(self, sample_project):
        (sample_project / ".pf" / "profile.json").write_text(
            json.dumps(
                {
                    "project_id": "custom",
                    "error_strategy": "result-type",
                    "test_framework": "hypothesis",
                    "runtime_tags": ["python", "worker"],
                }
            )
        )

        profile = ProfileLoader(sample_project).load()

        assert profile.project_id == "custom"
        assert profile.error_strategy == ErrorStrategy.RESULT_TYPE
        assert profile.test_framework == "hypothesis"
        assert profile.runtime_tags == frozenset(["python", "worker"])

    def test_unknown_strictness_flag(self, sample_project):
        (sample_project / ".pf" / "profile.json").write_text(
            json.dumps({"strictness": ["strict-everything"]})
        )

        with pytest.raises(ProfileError, match="strict-everything"):
            ProfileLoader(sample_project).load()

    def test_unknown_error_strategy(self, sample_project):
        (sample_project / ".pf" / "profile.json").write_text(
            json.dumps({"error_strategy": "panic"})
        )

        with pytest.raises(ProfileError):
            ProfileLoader(sample_project).load()

    def test_invalid_json(self, sample_project):
        (sample_project / ".pf" / "profile.json").write_text("[broken")

        with pytest.raises(ProfileError, match="Cannot read"):
            ProfileLoader(sample_project).load()

    def test_explicit_overrides_path(self, sample_project, tmp_path):
        overrides = tmp_path / "ci-profile.json"
        overrides.write_text(json.dumps({"strictness": ["strict-tests"]}))

        profile = ProfileLoader(sample_project, overrides).load()

        assert profile.strictness == frozenset(["strict-tests"])


class TestProjectProfile:
    def test_profile_is_immutable(self):
        profile = ProjectProfile(project_id="demo")

        with pytest.raises(AttributeError):
            profile.project_id = "other"

    def test_to_dict_is_sorted(self):
        profile = ProjectProfile(
            project_id="demo",
            runtime_tags=frozenset(["rust", "actix"]),
            strictness=frozenset(["strict-types", "strict-errors"]),
        )

        assert profile.to_dict() == {
            "project_id": "demo",
            "runtime_tags": ["actix", "rust"],
            "error_strategy": "exception",
            "test_framework": None,
            "strictness": ["strict-errors", "strict-types"],
        }
