"""Report assembly and JSON schema.

Groups engine findings into the four fixed report sections and computes the
summary. The assembler is deterministic: identical findings and statuses in,
identical report out (field for field, list order included).

Text rendering is done in the CLI with Rich; this module only builds the
pydantic models and serializes them.
"""

from collections import Counter
from collections.abc import Iterable
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field

from thereviewer.engine import Diagnostic, finding_sort_key
from thereviewer.rules.base import Finding, Severity

StatusKind = Literal[
    "ExtractionFailure",
    "CheckFailure",
    "MemoryStoreUnavailable",
    "MemoryNotConfigured",
]

NOT_RECONCILED = "not reconciled against history"


class _ReportModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True, frozen=True)


class LocationEntry(_ReportModel):
    artifact: str
    line: int
    column: int = 0


class FindingEntry(_ReportModel):
    """A Finding as it appears in every report section."""

    severity: Severity
    location: LocationEntry
    description: str
    rationale: str
    suggested_fix: str = Field(alias="suggestedFix")
    dimension: str
    dedupe_key: str = Field(alias="dedupeKey")
    check: str = ""
    kind: str = "weakness"
    likelihood: float = 1.0
    calibrated: bool = False
    priority: float | None = None

    @classmethod
    def from_finding(cls, finding: Finding, with_priority: bool = False) -> "FindingEntry":
        data = finding.to_dict()
        if with_priority:
            data["priority"] = round(finding.priority, 4)
        return cls.model_validate(data)


class StatusEntry(_ReportModel):
    """Something the run skipped or could not do, with the reason."""

    kind: StatusKind
    message: str
    artifact: str | None = None
    dimension: str | None = None
    check: str | None = None


class ReportSummary(_ReportModel):
    most_critical_pattern: str | None = Field(default=None, alias="mostCriticalPattern")
    headline: str
    total_findings: int = Field(alias="totalFindings")
    by_severity: dict[str, int] = Field(alias="bySeverity")
    artifacts_analyzed: list[str] = Field(alias="artifactsAnalyzed")
    artifacts_skipped: list[str] = Field(alias="artifactsSkipped")
    suppressed: int = 0
    reconciled: bool
    reconciliation_note: str | None = Field(default=None, alias="reconciliationNote")


class Report(_ReportModel):
    """The structured review report."""

    summary: ReportSummary
    critical_gaps: list[FindingEntry] = Field(alias="criticalGaps")
    weak_findings: list[FindingEntry] = Field(alias="weakFindings")
    structural_issues: list[FindingEntry] = Field(alias="structuralIssues")
    suggested_fixes: list[FindingEntry] = Field(alias="suggestedFixes")
    statuses: list[StatusEntry] = Field(default_factory=list)

    def to_dict(self) -> dict:
        return self.model_dump(mode="json", by_alias=True)

    def to_json(self) -> str:
        return self.model_dump_json(by_alias=True, indent=2)

    @property
    def max_severity(self) -> Severity | None:
        if not self.summary.total_findings:
            return None
        for severity in Severity:
            if self.summary.by_severity.get(severity.value):
                return severity
        return None


def diagnostic_status(diagnostic: Diagnostic) -> StatusEntry:
    return StatusEntry(
        kind=diagnostic.kind,
        message=diagnostic.message,
        artifact=diagnostic.artifact_id,
        dimension=diagnostic.dimension,
        check=diagnostic.check_id,
    )


class ReportAssembler:
    """Builds a Report from engine findings."""

    def __init__(self, dimension_order: dict[str, int]):
        self.dimension_order = dimension_order

    def assemble(
        self,
        findings: Iterable[Finding],
        artifacts_analyzed: Iterable[str] = (),
        statuses: Iterable[StatusEntry] = (),
        reconciled: bool = True,
        suppressed: int = 0,
    ) -> Report:
        """Assemble the report.

        Args:
            findings: Findings from every analyzed artifact, in any order
            artifacts_analyzed: Ids of artifacts the engine ran on
            statuses: Skipped artifacts, failed checks and memory problems
            reconciled: False when the run could not be reconciled with memory
            suppressed: Number of symptom findings dropped by the engine
        """
        ordered = sorted(findings, key=lambda f: finding_sort_key(f, self.dimension_order))
        statuses = list(statuses)

        critical_gaps = [
            f
            for f in ordered
            if f.kind == "gap" and f.severity in (Severity.CRITICAL, Severity.HIGH)
        ]
        weak = [f for f in ordered if f.kind == "weakness"]
        structural = [f for f in ordered if f.kind == "structural"]

        # sorted() is stable, so equal priorities keep the engine order
        suggested = sorted(ordered, key=lambda f: -f.priority)

        counts = Counter(f.severity.value for f in ordered)
        by_severity = {severity.value: counts.get(severity.value, 0) for severity in Severity}

        skipped = sorted(
            {s.artifact for s in statuses if s.kind == "ExtractionFailure" and s.artifact}
        )

        summary = ReportSummary(
            most_critical_pattern=ordered[0].dimension if ordered else None,
            headline=self._headline(ordered, skipped),
            total_findings=len(ordered),
            by_severity=by_severity,
            artifacts_analyzed=sorted(set(artifacts_analyzed)),
            artifacts_skipped=skipped,
            suppressed=suppressed,
            reconciled=reconciled,
            reconciliation_note=None if reconciled else NOT_RECONCILED,
        )

        return Report(
            summary=summary,
            critical_gaps=[FindingEntry.from_finding(f) for f in critical_gaps],
            weak_findings=[FindingEntry.from_finding(f) for f in weak],
            structural_issues=[FindingEntry.from_finding(f) for f in structural],
            suggested_fixes=[FindingEntry.from_finding(f, with_priority=True) for f in suggested],
            statuses=statuses,
        )

    @staticmethod
    def _headline(ordered: list[Finding], skipped: list[str]) -> str:
        if ordered:
            top = ordered[0]
            return (
                f"Most critical gap pattern: {top.dimension} "
                f"({top.severity.value}: {top.description})"
            )
        if skipped:
            return f"No findings; {len(skipped)} artifact(s) could not be analyzed"
        return "No findings"
