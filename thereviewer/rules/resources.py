"""Resource management checks.

Relies on the extractor's matching of acquire/release pairs: every resource
site lists the exit paths it reaches and the paths where it is released, or
is flagged incomplete.
"""

from thereviewer.rules.base import RawFinding, Severity, check


@check(
    "unreleased-resource",
    severity=Severity.HIGH,
    kind="gap",
    likelihood=0.7,
    requires=("resource_sites",),
)
def unreleased_resource(artifact, profile):
    """Resources not released on every reachable exit path."""
    findings = []
    strict = profile.is_strict("strict-errors")

    for site in artifact.resource_sites:
        if not site.is_leaking:
            continue

        leaking = sorted(site.leaking_paths)
        paths = ", ".join(leaking) if leaking else "an unmatched path"

        severity = None
        if strict and ("error" in leaking or not site.complete):
            severity = Severity.CRITICAL

        findings.append(
            RawFinding(
                site_id=site.id,
                position=site.position,
                description=f"{site.kind} acquired here is not released on {paths}",
                rationale=(
                    f"Each time the function exits via {paths} one {site.kind} leaks; "
                    "under sustained failures the pool or handle table is exhausted."
                ),
                suggested_fix=(
                    "Acquire the resource with a scoped construct (context manager, "
                    "defer, RAII guard) so every exit path releases it."
                ),
                severity=severity,
            )
        )
    return findings


CHECKS = [unreleased_resource]
