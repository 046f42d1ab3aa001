"""Data flow checks for untrusted input reaching handlers."""

from thereviewer.rules.base import RawFinding, Severity, check


@check(
    "unvalidated-input",
    severity=Severity.HIGH,
    kind="gap",
    likelihood=0.8,
    requires=("declarations",),
)
def unvalidated_input(artifact, profile):
    """Routes that consume request input without validation."""
    return [
        RawFinding(
            site_id=decl.id,
            position=decl.position,
            description=f"Route {decl.name} uses request input without validation",
            rationale="Malformed or hostile input reaches business logic unchecked.",
            suggested_fix="Validate the request against a schema before using it.",
        )
        for decl in artifact.declarations
        if decl.kind == "route" and "unvalidated-input" in decl.tags
    ]


CHECKS = [unvalidated_input]
