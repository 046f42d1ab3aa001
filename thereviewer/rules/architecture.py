"""Architecture and documentation checks over a whole module."""

from thereviewer.rules.base import Position, RawFinding, Severity, check
from thereviewer.utils.constants import DEFAULT_MAX_DECLARATIONS

MODULE_SITE = "module"


@check(
    "oversized-module",
    severity=Severity.LOW,
    kind="structural",
    likelihood=0.3,
    requires=("declarations",),
)
def oversized_module(artifact, profile):
    """Modules declaring too many functions and types."""
    count = len(artifact.declarations)
    if count <= DEFAULT_MAX_DECLARATIONS:
        return []
    return [
        RawFinding(
            site_id=MODULE_SITE,
            position=Position(1, 0),
            description=f"Module declares {count} items (limit {DEFAULT_MAX_DECLARATIONS})",
            rationale="Unrelated responsibilities change together and reviews miss interactions.",
            suggested_fix="Split the module along its responsibilities.",
        )
    ]


@check(
    "undocumented-api",
    severity=Severity.LOW,
    kind="structural",
    likelihood=0.4,
    requires=("declarations",),
)
def undocumented_api(artifact, profile):
    """Modules whose exported API is mostly undocumented."""
    exported = [d for d in artifact.declarations if d.exported and d.kind != "test"]
    missing = [d for d in exported if not d.documented]
    if not exported or len(missing) * 2 <= len(exported):
        return []

    names = ", ".join(d.name for d in missing[:5])
    return [
        RawFinding(
            site_id=MODULE_SITE,
            position=Position(1, 0),
            description=f"{len(missing)} of {len(exported)} exported items lack documentation",
            rationale="Callers guess at contracts and edge cases, e.g. " + names,
            suggested_fix="Document the purpose, parameters and failure modes of the exported API.",
        )
    ]


CHECKS = [oversized_module, undocumented_api]
