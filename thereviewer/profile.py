"""Project profile detection.

Reads build/test metadata from the project root and produces the immutable
ProjectProfile that parameterizes checks. Detection order:

1. Manifests (pyproject.toml, package.json, Cargo.toml, go.mod, tsconfig.json)
2. Test framework config files and manifest sections
3. Overrides from .pf/profile.json (highest priority)
"""

import json
import os
import tomllib
from dataclasses import dataclass, field, replace
from enum import Enum
from pathlib import Path
from typing import Any

from thereviewer.exceptions import ProfileError
from thereviewer.utils.constants import ENV_PROJECT_ID, PROFILE_OVERRIDES_FILE
from thereviewer.utils.logging import logger


class ErrorStrategy(str, Enum):
    """Declared error-handling strategy of the project."""

    RESULT_TYPE = "result-type"
    EXCEPTION = "exception"
    ERROR_CODE = "error-code"


KNOWN_STRICTNESS_FLAGS = frozenset(["strict-errors", "strict-types", "strict-tests"])


# manifest file -> runtime tags and the error strategy the ecosystem implies
RUNTIME_REGISTRY: dict[str, dict[str, Any]] = {
    "Cargo.toml": {"tags": ["rust"], "error_strategy": ErrorStrategy.RESULT_TYPE},
    "go.mod": {"tags": ["go"], "error_strategy": ErrorStrategy.ERROR_CODE},
    "pyproject.toml": {"tags": ["python"], "error_strategy": ErrorStrategy.EXCEPTION},
    "setup.py": {"tags": ["python"], "error_strategy": ErrorStrategy.EXCEPTION},
    "requirements.txt": {"tags": ["python"], "error_strategy": ErrorStrategy.EXCEPTION},
    "package.json": {"tags": ["node"], "error_strategy": ErrorStrategy.EXCEPTION},
    "tsconfig.json": {"tags": ["typescript"], "error_strategy": ErrorStrategy.EXCEPTION},
}


# package.json / pyproject dependency name -> framework tag
FRAMEWORK_DEPENDENCIES = {
    "react": "react",
    "vue": "vue",
    "express": "express",
    "next": "nextjs",
    "django": "django",
    "flask": "flask",
    "fastapi": "fastapi",
    "tokio": "tokio",
    "actix-web": "actix",
}


# Checked in order, first match wins
TEST_FRAMEWORK_REGISTRY: dict[str, dict[str, Any]] = {
    "pytest": {
        "config_files": ["pytest.ini", "conftest.py"],
        "pyproject_section": ["tool", "pytest"],
        "dependency": "pytest",
    },
    "vitest": {"config_files": ["vitest.config.ts", "vitest.config.js"], "dependency": "vitest"},
    "jest": {"config_files": ["jest.config.js", "jest.config.ts"], "dependency": "jest"},
    "cargo-test": {"config_files": ["Cargo.toml"]},
    "go-test": {"config_files": ["go.mod"]},
}


@dataclass(frozen=True)
class ProjectProfile:
    """Project conventions, created once per invocation and read-only thereafter."""

    project_id: str
    runtime_tags: frozenset[str] = frozenset()
    error_strategy: ErrorStrategy = ErrorStrategy.EXCEPTION
    test_framework: str | None = None
    strictness: frozenset[str] = field(default_factory=frozenset)

    def is_strict(self, flag: str) -> bool:
        return flag in self.strictness

    def has_runtime(self, tag: str) -> bool:
        return tag in self.runtime_tags

    def to_dict(self) -> dict[str, Any]:
        return {
            "project_id": self.project_id,
            "runtime_tags": sorted(self.runtime_tags),
            "error_strategy": self.error_strategy.value,
            "test_framework": self.test_framework,
            "strictness": sorted(self.strictness),
        }


def _table(node: Any, *keys: str) -> dict:
    """Nested manifest table, or {} when any level is missing or not a mapping."""
    for key in keys:
        node = node.get(key) if isinstance(node, dict) else None
    return node if isinstance(node, dict) else {}


def _list(value: Any) -> list:
    return list(value) if isinstance(value, list) else []


class ProfileLoader:
    """Detects a ProjectProfile from a project directory."""

    def __init__(self, project_path: Path, overrides_path: Path | None = None):
        self.project_path = Path(project_path)
        self.overrides_path = (
            Path(overrides_path)
            if overrides_path
            else self.project_path / PROFILE_OVERRIDES_FILE
        )
        self._manifests: dict[str, Any] = {}

    def load(self) -> ProjectProfile:
        self._manifests = self._parse_manifests()

        tags: set[str] = set()
        strategies: list[ErrorStrategy] = []
        for name, entry in RUNTIME_REGISTRY.items():
            if name in self._manifests:
                tags.update(entry["tags"])
                strategies.append(entry["error_strategy"])

        tags.update(self._detect_frameworks())

        profile = ProjectProfile(
            project_id=os.environ.get(ENV_PROJECT_ID) or self.project_path.resolve().name,
            runtime_tags=frozenset(tags),
            # Registry order puts result/error-code ecosystems first
            error_strategy=strategies[0] if strategies else ErrorStrategy.EXCEPTION,
            test_framework=self._detect_test_framework(),
            strictness=frozenset(self._detect_strictness()),
        )

        profile = self._apply_overrides(profile)
        logger.debug(f"Detected project profile: {profile.to_dict()}")
        return profile

    def _parse_manifests(self) -> dict[str, Any]:
        manifests: dict[str, Any] = {}
        for name in RUNTIME_REGISTRY:
            path = self.project_path / name
            if not path.exists():
                continue
            try:
                if name.endswith(".toml"):
                    with open(path, "rb") as f:
                        manifests[name] = tomllib.load(f)
                elif name.endswith(".json"):
                    with open(path, encoding="utf-8") as f:
                        manifests[name] = json.load(f)
                else:
                    manifests[name] = path.read_text(encoding="utf-8", errors="ignore")
            except (
                OSError,
                UnicodeDecodeError,
                json.JSONDecodeError,
                tomllib.TOMLDecodeError,
            ) as e:
                # Presence alone still tells us the runtime
                logger.warning(f"Could not parse {path}: {e}")
                manifests[name] = {}
        return manifests

    def _dependency_names(self) -> set[str]:
        names: set[str] = set()

        package_json = self._manifests.get("package.json")
        if isinstance(package_json, dict):
            for section in ("dependencies", "devDependencies"):
                names.update(_table(package_json, section))

        pyproject = self._manifests.get("pyproject.toml")
        if isinstance(pyproject, dict):
            project = _table(pyproject, "project")
            requirements = _list(project.get("dependencies"))
            for extra in _table(project, "optional-dependencies").values():
                requirements.extend(_list(extra))
            for requirement in requirements:
                if not isinstance(requirement, str):
                    continue
                name = requirement.split(";")[0]
                for sep in ("[", "=", ">", "<", "~", "!", " "):
                    name = name.split(sep)[0]
                names.add(name.strip().lower())

        cargo = self._manifests.get("Cargo.toml")
        if isinstance(cargo, dict):
            names.update(_table(cargo, "dependencies"))

        return names

    def _detect_frameworks(self) -> set[str]:
        deps = self._dependency_names()
        return {tag for dep, tag in FRAMEWORK_DEPENDENCIES.items() if dep in deps}

    def _detect_test_framework(self) -> str | None:
        deps = self._dependency_names()
        pyproject = self._manifests.get("pyproject.toml")

        for name, config in TEST_FRAMEWORK_REGISTRY.items():
            for config_file in config.get("config_files", []):
                if (self.project_path / config_file).exists():
                    return name

            section = config.get("pyproject_section")
            if section and isinstance(pyproject, dict):
                node: Any = pyproject
                for key in section:
                    node = node.get(key) if isinstance(node, dict) else None
                if node is not None:
                    return name

            if config.get("dependency") in deps:
                return name

        return None

    def _detect_strictness(self) -> set[str]:
        flags: set[str] = set()

        tsconfig = self._manifests.get("tsconfig.json")
        if isinstance(tsconfig, dict):
            if _table(tsconfig, "compilerOptions").get("strict") is True:
                flags.add("strict-types")

        pyproject = self._manifests.get("pyproject.toml")
        if isinstance(pyproject, dict):
            if _table(pyproject, "tool", "mypy").get("strict") is True:
                flags.add("strict-types")

        return flags

    def _apply_overrides(self, profile: ProjectProfile) -> ProjectProfile:
        """Merge .pf/profile.json on top of the detected profile.

        Raises:
            ProfileError: If the overrides file exists but is invalid. Silently
                ignoring a user's strictness settings would change severities.
        """
        if not self.overrides_path.exists():
            return profile

        try:
            with open(self.overrides_path, encoding="utf-8") as f:
                data = json.load(f)
        except (OSError, UnicodeDecodeError, json.JSONDecodeError) as e:
            raise ProfileError(f"Cannot read profile overrides {self.overrides_path}: {e}") from e

        if not isinstance(data, dict):
            raise ProfileError(f"Profile overrides in {self.overrides_path} must be an object")

        changes: dict[str, Any] = {}
        if "project_id" in data:
            changes["project_id"] = str(data["project_id"])
        if "runtime_tags" in data:
            changes["runtime_tags"] = frozenset(data["runtime_tags"])
        if "test_framework" in data:
            changes["test_framework"] = data["test_framework"]
        if "error_strategy" in data:
            try:
                changes["error_strategy"] = ErrorStrategy(data["error_strategy"])
            except ValueError as e:
                raise ProfileError(
                    f"Unknown error_strategy {data['error_strategy']!r}",
                    {"allowed": [s.value for s in ErrorStrategy]},
                ) from e
        if "strictness" in data:
            flags = frozenset(data["strictness"])
            unknown = flags - KNOWN_STRICTNESS_FLAGS
            if unknown:
                raise ProfileError(
                    f"Unknown strictness flags: {sorted(unknown)}",
                    {"allowed": sorted(KNOWN_STRICTNESS_FLAGS)},
                )
            changes["strictness"] = flags

        return replace(profile, **changes)


def load_profile(project_path: Path | str = ".") -> ProjectProfile:
    """Convenience wrapper used by the CLI and the pipeline."""
    return ProfileLoader(Path(project_path)).load()
