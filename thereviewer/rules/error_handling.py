"""Error handling checks: swallowed errors and strategy mismatches."""

from thereviewer.profile import ErrorStrategy
from thereviewer.rules.base import RawFinding, Severity, check


@check(
    "swallowed-error",
    severity=Severity.HIGH,
    kind="gap",
    likelihood=0.7,
    requires=("error_sites",),
)
def swallowed_error(artifact, profile):
    """Errors that are caught or returned and then dropped."""
    findings = []
    strict = profile.is_strict("strict-errors")

    for site in artifact.error_sites:
        if "swallowed" not in site.tags and "discarded" not in site.tags:
            continue
        findings.append(
            RawFinding(
                site_id=site.id,
                position=site.position,
                description=f"Error from {site.kind} site is silently dropped",
                rationale=(
                    "The operation fails without any signal, so callers continue "
                    "with partial or corrupt state."
                ),
                suggested_fix="Propagate the error or handle it explicitly and log the failure.",
                severity=Severity.CRITICAL if strict else None,
            )
        )
    return findings


@check(
    "strategy-mismatch",
    severity=Severity.MEDIUM,
    kind="weakness",
    likelihood=0.5,
    requires=("error_sites",),
)
def strategy_mismatch(artifact, profile):
    """Error sites that contradict the project's declared error strategy."""
    findings = []

    for site in artifact.error_sites:
        if profile.error_strategy == ErrorStrategy.EXCEPTION:
            mismatch = site.kind == "return-error" and not site.handled
            expected = "raise an exception"
        else:
            mismatch = site.kind == "throw" and "panic" not in site.tags
            expected = f"return an error ({profile.error_strategy.value})"

        if mismatch:
            findings.append(
                RawFinding(
                    site_id=site.id,
                    position=site.position,
                    description=f"{site.kind} site does not follow the project error strategy",
                    rationale=(
                        "Callers written for the declared strategy will not see this "
                        "failure mode and will not handle it."
                    ),
                    suggested_fix=f"Make this site {expected}.",
                )
            )
    return findings


@check(
    "catch-all-handler",
    severity=Severity.MEDIUM,
    kind="weakness",
    likelihood=0.5,
    requires=("control_edges",),
)
def catch_all_handler(artifact, profile):
    """Handlers that catch every error type."""
    return [
        RawFinding(
            site_id=edge.id,
            position=edge.position,
            description="Handler catches all error types",
            rationale="Programming errors are caught together with expected failures and hidden.",
            suggested_fix="Catch only the error types this block can recover from.",
        )
        for edge in artifact.control_edges
        if edge.kind == "handler" and "catch-all" in edge.tags
    ]


CHECKS = [swallowed_error, strategy_mismatch, catch_all_handler]
