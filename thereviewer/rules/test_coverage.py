"""Test suite coverage checks: missing coverage and weak tests."""

from thereviewer.rules.base import RawFinding, Severity, check


def _tested_names(artifact) -> set[str]:
    tested = set()
    for decl in artifact.declarations_of("test"):
        tested.update(decl.refs)
    return tested


@check(
    "untested-public-function",
    severity=Severity.MEDIUM,
    kind="gap",
    likelihood=0.6,
    requires=("declarations",),
)
def untested_public_function(artifact, profile):
    """Exported functions no test references."""
    tested = _tested_names(artifact)
    strict = profile.is_strict("strict-tests")
    findings = []

    for decl in artifact.declarations:
        if decl.kind != "function" or not decl.exported:
            continue
        if "tested" in decl.tags or decl.id in tested or decl.name in tested:
            continue
        findings.append(
            RawFinding(
                site_id=decl.id,
                position=decl.position,
                description=f"No test exercises exported function {decl.name}",
                rationale="A regression in this function ships without any failing test.",
                suggested_fix=f"Add tests for {decl.name} covering normal and failure inputs.",
                severity=Severity.HIGH if strict else None,
            )
        )
    return findings


@check(
    "assertion-free-test",
    severity=Severity.MEDIUM,
    kind="weakness",
    likelihood=0.5,
    requires=("declarations",),
)
def assertion_free_test(artifact, profile):
    """Tests that execute code but assert nothing."""
    return [
        RawFinding(
            site_id=decl.id,
            position=decl.position,
            description=f"Test {decl.name} makes no assertions",
            rationale="The test passes for any behavior short of a crash.",
            suggested_fix="Assert on the returned value or the observable side effect.",
        )
        for decl in artifact.declarations_of("test")
        if "no-assertions" in decl.tags
    ]


@check(
    "untested-error-path",
    severity=Severity.MEDIUM,
    kind="gap",
    likelihood=0.5,
    requires=("error_sites",),
)
def untested_error_path(artifact, profile):
    """Error sites no test drives, in artifacts that have tests."""
    if not artifact.declarations_of("test"):
        return []
    tested = _tested_names(artifact)
    return [
        RawFinding(
            site_id=site.id,
            position=site.position,
            description=f"Error path at line {site.position.line} is never exercised",
            rationale="The failure branch has never run, so it may itself be broken.",
            suggested_fix="Add a test that forces this error and asserts on the outcome.",
        )
        for site in artifact.error_sites
        if "tested" not in site.tags and site.id not in tested
    ]


CHECKS = [untested_public_function, assertion_free_test, untested_error_path]
