"""Type and memory soundness checks.

Runs first: a site that is unsound makes any later finding at the same site a
symptom rather than a cause.
"""

from thereviewer.rules.base import RawFinding, Severity, check


@check(
    "unchecked-cast",
    severity=Severity.HIGH,
    kind="gap",
    likelihood=0.6,
    requires=("declarations",),
)
def unchecked_cast(artifact, profile):
    """Declarations that bypass the type system with an unchecked cast."""
    findings = []
    strict = profile.is_strict("strict-types")

    for decl in artifact.declarations:
        if "unchecked-cast" not in decl.tags and "unsafe" not in decl.tags:
            continue
        findings.append(
            RawFinding(
                site_id=decl.id,
                position=decl.position,
                description=f"{decl.name} bypasses type checking",
                rationale=(
                    f"A value reaching {decl.name} with an unexpected shape is used "
                    "as if it were valid, so the failure surfaces far from the cast."
                ),
                suggested_fix="Validate the value at the boundary or narrow it at runtime.",
                severity=Severity.CRITICAL if strict else None,
            )
        )
    return findings


@check(
    "dynamic-public-type",
    severity=Severity.MEDIUM,
    kind="weakness",
    likelihood=0.4,
    requires=("declarations",),
)
def dynamic_public_type(artifact, profile):
    """Exported declarations typed as dynamic/any."""
    return [
        RawFinding(
            site_id=decl.id,
            position=decl.position,
            description=f"Exported {decl.kind} {decl.name} exposes a dynamic type",
            rationale="Callers lose all type guarantees and errors move to runtime.",
            suggested_fix="Replace the dynamic type with a concrete or generic type.",
        )
        for decl in artifact.declarations
        if decl.exported and "dynamic-type" in decl.tags
    ]


CHECKS = [unchecked_cast, dynamic_public_type]
