"""Rule catalog: the ordered dimensions the engine walks.

The engine never names a dimension or a check; everything it knows comes from
the catalog. Catalogs are validated once at construction so that key
collisions surface as configuration errors instead of silently merged
findings at analysis time.

Catalog YAML format:

    dimensions:
      - name: soundness
        description: Type and memory soundness
        checks:
          - ref: thereviewer.rules.soundness:unchecked_cast
          - ref: mypkg.rules:find_unsafe_blocks
            id: unsafe-block
            severity: high
            kind: gap
            likelihood: 0.7
"""

import dataclasses
import importlib
from collections.abc import Iterable
from pathlib import Path
from typing import Any

import yaml

from thereviewer.exceptions import CatalogError
from thereviewer.rules.base import ARTIFACT_SECTIONS, Check, Dimension, Severity
from thereviewer.utils.finding_priority import normalize_severity
from thereviewer.utils.logging import logger

CHECK_KINDS = ("gap", "weakness", "structural")

BUILTIN_DIMENSION_ORDER = (
    "soundness",
    "error-handling",
    "data-flow",
    "logic",
    "resources",
    "architecture",
    "test-coverage",
)


class RuleCatalog:
    """An ordered, validated collection of dimensions."""

    def __init__(self, dimensions: Iterable[Dimension], name: str = "custom"):
        self.name = name
        self._dimensions = tuple(dimensions)
        self._validate()

    def dimensions_in_order(self) -> tuple[Dimension, ...]:
        return self._dimensions

    def dimension_index(self) -> dict[str, int]:
        return {dim.name: i for i, dim in enumerate(self._dimensions)}

    def check_count(self) -> int:
        return sum(len(dim.checks) for dim in self._dimensions)

    def _validate(self) -> None:
        seen_dimensions: set[str] = set()

        for dim in self._dimensions:
            if not dim.name:
                raise CatalogError("Dimension with empty name")
            if dim.name in seen_dimensions:
                raise CatalogError(f"Duplicate dimension: {dim.name}")
            seen_dimensions.add(dim.name)

            # key identity -> (check_id, dedupe_group) of the first check using it
            identities: dict[str, tuple[str, str | None]] = {}
            check_ids: set[str] = set()

            for chk in dim.checks:
                where = f"{dim.name}/{chk.check_id}"

                if not callable(chk.function):
                    raise CatalogError(f"Check {where} is not callable")
                if chk.kind not in CHECK_KINDS:
                    raise CatalogError(f"Check {where} has unknown kind {chk.kind!r}")
                if not 0.0 < chk.likelihood <= 1.0:
                    raise CatalogError(
                        f"Check {where} likelihood must be in (0, 1], got {chk.likelihood}"
                    )
                unknown = set(chk.requires) - set(ARTIFACT_SECTIONS)
                if unknown:
                    raise CatalogError(f"Check {where} requires unknown sections {sorted(unknown)}")

                if chk.check_id in check_ids:
                    raise CatalogError(
                        f"Duplicate check id {chk.check_id!r} in dimension {dim.name}"
                    )
                check_ids.add(chk.check_id)

                identity = chk.key_identity
                previous = identities.get(identity)
                if previous is not None:
                    # Sharing a key is only legal when both checks opted into the same group
                    if not (chk.dedupe_group and previous[1] == chk.dedupe_group):
                        raise CatalogError(
                            f"Checks {previous[0]!r} and {chk.check_id!r} in dimension "
                            f"{dim.name} would generate colliding dedupe keys",
                            {"identity": identity},
                        )
                else:
                    identities[identity] = (chk.check_id, chk.dedupe_group)

    @classmethod
    def from_yaml(cls, path: Path | str) -> "RuleCatalog":
        """Load a catalog from a YAML file.

        Raises:
            CatalogError: On unreadable files, bad references or invalid metadata.
        """
        path = Path(path)
        try:
            with open(path, encoding="utf-8") as f:
                data = yaml.safe_load(f)
        except (OSError, yaml.YAMLError) as e:
            raise CatalogError(f"Cannot read catalog {path}: {e}") from e

        if not isinstance(data, dict) or not isinstance(data.get("dimensions"), list):
            raise CatalogError(f"Catalog {path} must contain a 'dimensions' list")

        dimensions = []
        for entry in data["dimensions"]:
            if not isinstance(entry, dict) or "name" not in entry:
                raise CatalogError(f"Invalid dimension entry in {path}: {entry!r}")
            checks = tuple(_load_check(item, entry["name"]) for item in entry.get("checks") or [])
            dimensions.append(
                Dimension(
                    name=str(entry["name"]),
                    checks=checks,
                    description=str(entry.get("description", "")),
                )
            )

        catalog = cls(dimensions, name=str(data.get("name", path.stem)))
        logger.info(
            f"Loaded catalog '{catalog.name}': {len(dimensions)} dimensions, "
            f"{catalog.check_count()} checks"
        )
        return catalog


def _resolve(ref: str) -> Any:
    module_name, _, attr = ref.partition(":")
    if not module_name or not attr:
        raise CatalogError(f"Check reference must look like 'module:name', got {ref!r}")
    try:
        module = importlib.import_module(module_name)
    except ImportError as e:
        raise CatalogError(f"Cannot import {module_name} for check {ref!r}: {e}") from e
    try:
        return getattr(module, attr)
    except AttributeError as e:
        raise CatalogError(f"{module_name} has no attribute {attr!r}") from e


def _load_check(item: Any, dimension: str) -> Check:
    if isinstance(item, str):
        item = {"ref": item}
    if not isinstance(item, dict) or "ref" not in item:
        raise CatalogError(f"Invalid check entry in dimension {dimension}: {item!r}")

    target = _resolve(item["ref"])
    overrides: dict[str, Any] = {}

    if "id" in item:
        overrides["check_id"] = str(item["id"])
    if "severity" in item:
        try:
            overrides["default_severity"] = Severity(normalize_severity(item["severity"]))
        except ValueError as e:
            raise CatalogError(f"Check {item['ref']}: {e}") from e
    for key in ("kind", "dedupe_group", "description"):
        if key in item:
            overrides[key] = item[key]
    if "likelihood" in item:
        try:
            overrides["likelihood"] = float(item["likelihood"])
        except (TypeError, ValueError) as e:
            raise CatalogError(f"Check {item['ref']}: invalid likelihood: {e}") from e
    if "requires" in item:
        overrides["requires"] = tuple(item["requires"])

    if isinstance(target, Check):
        return dataclasses.replace(target, **overrides)

    if not callable(target):
        raise CatalogError(f"Check reference {item['ref']!r} is neither a Check nor callable")

    overrides.setdefault("check_id", target.__name__)
    return Check(function=target, **overrides)


def default_catalog() -> RuleCatalog:
    """The built-in catalog, in soundness-first order."""
    from thereviewer.rules import (
        architecture,
        data_flow,
        error_handling,
        logic,
        resources,
        soundness,
        test_coverage,
    )

    modules = {
        "soundness": soundness,
        "error-handling": error_handling,
        "data-flow": data_flow,
        "logic": logic,
        "resources": resources,
        "architecture": architecture,
        "test-coverage": test_coverage,
    }

    return RuleCatalog(
        (
            Dimension(
                name=name,
                checks=tuple(modules[name].CHECKS),
                description=(modules[name].__doc__ or "").strip().splitlines()[0],
            )
            for name in BUILTIN_DIMENSION_ORDER
        ),
        name="builtin",
    )
