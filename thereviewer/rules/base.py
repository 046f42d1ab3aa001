"""Base contracts for checks, dimensions and findings."""

import functools
from collections.abc import Callable
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Literal

from thereviewer.utils.finding_priority import PRIORITY_ORDER, SEVERITY_WEIGHTS


@functools.total_ordering
class Severity(Enum):
    """Standardized severity levels, totally ordered (CRITICAL is greatest)."""

    CRITICAL = "critical"
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"

    @property
    def rank(self) -> int:
        """0 for CRITICAL, 3 for LOW."""
        return PRIORITY_ORDER[self.value]

    @property
    def weight(self) -> int:
        return SEVERITY_WEIGHTS[self.value]

    def downgrade(self) -> "Severity":
        """One level lower; LOW stays LOW."""
        members = list(Severity)
        return members[min(self.rank + 1, len(members) - 1)]

    def __lt__(self, other):
        if not isinstance(other, Severity):
            return NotImplemented
        return self.rank > other.rank


CheckKind = Literal["gap", "weakness", "structural"]

ARTIFACT_SECTIONS = ("declarations", "control_edges", "resource_sites", "error_sites")


@dataclass(frozen=True, order=True)
class Position:
    """1-based line/column inside an artifact."""

    line: int
    column: int = 0

    def to_dict(self) -> dict[str, int]:
        return {"line": self.line, "column": self.column}


@dataclass(frozen=True, order=True)
class Location:
    """Artifact id plus position; orders by artifact then position."""

    artifact_id: str
    position: Position

    def to_dict(self) -> dict[str, Any]:
        return {"artifact": self.artifact_id, **self.position.to_dict()}


@dataclass(frozen=True)
class RawFinding:
    """What a check reports before the engine calibrates and keys it.

    site_id identifies the fact the finding is about (a declaration, edge,
    resource or error site id). It is part of the dedupe key, so two raw
    findings for the same site from the same check collapse into one.
    """

    site_id: str
    position: Position
    description: str
    rationale: str
    suggested_fix: str
    severity: Severity | None = None


@dataclass(frozen=True)
class Finding:
    """The engine's atomic output unit. Immutable once created."""

    severity: Severity
    location: Location
    description: str
    rationale: str
    suggested_fix: str
    dimension: str
    dedupe_key: str

    check_id: str = ""
    kind: CheckKind = "weakness"
    likelihood: float = 1.0
    calibrated: bool = False

    @property
    def site_prefix(self) -> str:
        """Key part identifying the site, shared across dimensions."""
        return site_prefix(self.dedupe_key)

    @property
    def priority(self) -> float:
        """severity weight x likelihood, used to rank suggested fixes."""
        return self.severity.weight * self.likelihood

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return {
            "severity": self.severity.value,
            "location": self.location.to_dict(),
            "description": self.description,
            "rationale": self.rationale,
            "suggestedFix": self.suggested_fix,
            "dimension": self.dimension,
            "dedupeKey": self.dedupe_key,
            "check": self.check_id,
            "kind": self.kind,
            "likelihood": self.likelihood,
            "calibrated": self.calibrated,
        }


CheckFunction = Callable[[Any, Any], list[RawFinding]]


@dataclass(frozen=True)
class Check:
    """A pure check function plus the metadata the engine needs.

    The function receives (ArtifactModel, ProjectProfile) and returns raw
    findings. It must not perform I/O and must not depend on other checks.
    """

    check_id: str
    function: CheckFunction
    default_severity: Severity = Severity.MEDIUM
    kind: CheckKind = "weakness"
    likelihood: float = 0.5
    dedupe_group: str | None = None
    requires: tuple[str, ...] = ()
    description: str = ""

    @property
    def key_identity(self) -> str:
        """Identity embedded in dedupe keys."""
        return self.dedupe_group or self.check_id

    def applies_to(self, artifact) -> bool:
        """False when every artifact section the check reads is empty."""
        if not self.requires:
            return True
        return any(getattr(artifact, section, ()) for section in self.requires)


@dataclass(frozen=True)
class Dimension:
    """Named, ordered group of checks."""

    name: str
    checks: tuple[Check, ...] = field(default_factory=tuple)
    description: str = ""


def make_dedupe_key(artifact_id: str, site_id: str, dimension: str, identity: str) -> str:
    """Deterministic key: '<artifact>#<site>::<dimension>/<check>'."""
    return f"{artifact_id}#{site_id}::{dimension}/{identity}"


def site_prefix(dedupe_key: str) -> str:
    return dedupe_key.split("::", 1)[0]


def check(
    check_id: str,
    *,
    severity: Severity = Severity.MEDIUM,
    kind: CheckKind = "weakness",
    likelihood: float = 0.5,
    dedupe_group: str | None = None,
    requires: tuple[str, ...] = (),
) -> Callable[[CheckFunction], Check]:
    """Decorator turning a plain function into a Check.

    The function's docstring first line becomes the check description.
    """

    def decorator(func: CheckFunction) -> Check:
        doc = (func.__doc__ or "").strip().splitlines()
        return Check(
            check_id=check_id,
            function=func,
            default_severity=severity,
            kind=kind,
            likelihood=likelihood,
            dedupe_group=dedupe_group,
            requires=requires,
            description=doc[0] if doc else "",
        )

    return decorator
