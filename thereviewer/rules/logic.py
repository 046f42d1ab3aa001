"""Logic checks on control flow."""

from thereviewer.rules.base import RawFinding, Severity, check


@check(
    "unbounded-loop",
    severity=Severity.MEDIUM,
    kind="weakness",
    likelihood=0.3,
    requires=("control_edges",),
)
def unbounded_loop(artifact, profile):
    """Loops with no reachable exit condition."""
    return [
        RawFinding(
            site_id=edge.id,
            position=edge.position,
            description="Loop has no reachable exit condition",
            rationale="Unexpected input keeps the loop spinning and the caller hangs.",
            suggested_fix="Add an explicit bound or a termination condition.",
        )
        for edge in artifact.control_edges
        if edge.kind == "loop" and "unbounded" in edge.tags
    ]


@check(
    "dead-branch",
    severity=Severity.LOW,
    kind="weakness",
    likelihood=0.2,
    requires=("control_edges",),
)
def dead_branch(artifact, profile):
    """Branches or early returns that make following code unreachable."""
    return [
        RawFinding(
            site_id=edge.id,
            position=edge.position,
            description=f"{edge.kind} makes the following code unreachable",
            rationale="The unreachable code looks live, so fixes applied there have no effect.",
            suggested_fix="Remove the unreachable code or fix the condition.",
        )
        for edge in artifact.control_edges
        if edge.kind in ("branch", "early-return") and "unreachable-after" in edge.tags
    ]


CHECKS = [unbounded_loop, dead_branch]
