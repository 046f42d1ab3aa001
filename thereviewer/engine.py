"""Analysis engine: walks a rule catalog over one artifact.

The engine is generic over the catalog. For each dimension in order it runs
every applicable check, keys and calibrates the raw findings, suppresses
symptoms of earlier critical findings, deduplicates and sorts.

Output ordering is a pure function of the inputs: re-running over an
unchanged artifact, profile, catalog and memory snapshot yields the same
findings in the same order, whether or not checks ran in parallel.
"""

import dataclasses
import signal
import sys
import threading
from collections.abc import Iterator
from concurrent.futures import ThreadPoolExecutor
from contextlib import contextmanager
from dataclasses import dataclass
from typing import Any, Literal

from thereviewer.exceptions import AnalysisCancelled, MemoryStoreUnavailable
from thereviewer.memory import MemoryStatus
from thereviewer.rules.base import (
    Check,
    Dimension,
    Finding,
    Location,
    RawFinding,
    make_dedupe_key,
)
from thereviewer.utils.logging import logger

DiagnosticKind = Literal["CheckFailure", "MemoryStoreUnavailable"]


@dataclass(frozen=True)
class Diagnostic:
    """Engine-level note about something that did not run normally."""

    kind: DiagnosticKind
    artifact_id: str
    message: str
    dimension: str | None = None
    check_id: str | None = None
    key_identity: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "kind": self.kind,
            "artifact": self.artifact_id,
            "dimension": self.dimension,
            "check": self.check_id,
            "message": self.message,
        }


@dataclass(frozen=True)
class AnalysisResult:
    """Ordered findings of one artifact plus engine diagnostics.

    Behaves as a read-only sequence of Finding.
    """

    artifact_id: str
    findings: tuple[Finding, ...] = ()
    diagnostics: tuple[Diagnostic, ...] = ()
    suppressed: int = 0
    memory_available: bool = True

    def __iter__(self):
        return iter(self.findings)

    def __len__(self) -> int:
        return len(self.findings)

    def __getitem__(self, index):
        return self.findings[index]

    @property
    def dedupe_keys(self) -> set[str]:
        return {f.dedupe_key for f in self.findings}

    @property
    def unobserved(self) -> set[tuple[str, str, str]]:
        """(artifact, dimension, key identity) of every check that failed to run."""
        return {
            (d.artifact_id, d.dimension, d.key_identity)
            for d in self.diagnostics
            if d.kind == "CheckFailure"
        }


class CancelToken:
    """Cooperative cancellation, checked between dimensions."""

    def __init__(self):
        self._event = threading.Event()

    def cancel(self) -> None:
        self._event.set()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()


@contextmanager
def interrupt_cancels(token: CancelToken) -> Iterator[CancelToken]:
    """Route Ctrl+C (and SIGTERM off Windows) to token.cancel() while the block runs.

    Must be entered from the main thread. Previous handlers are restored on exit.
    """

    def handler(signum, frame):
        print("\n[INFO] Interrupt received, stopping review...", file=sys.stderr)
        token.cancel()

    signums = [signal.SIGINT]
    if sys.platform != "win32":
        signums.append(signal.SIGTERM)

    previous = {signum: signal.signal(signum, handler) for signum in signums}
    try:
        yield token
    finally:
        for signum, original in previous.items():
            signal.signal(signum, original)


def finding_sort_key(finding: Finding, dimension_order: dict[str, int]) -> tuple:
    """Severity desc, location asc, dimension order, then check and key."""
    return (
        finding.severity.rank,
        finding.location.artifact_id,
        finding.location.position,
        dimension_order.get(finding.dimension, len(dimension_order)),
        finding.check_id,
        finding.dedupe_key,
    )


class AnalysisEngine:
    """Runs a RuleCatalog against ArtifactModels."""

    def __init__(self, catalog, check_workers: int = 1):
        """Initialize the engine.

        Args:
            catalog: RuleCatalog providing dimensions_in_order()
            check_workers: Threads per dimension; 1 runs checks sequentially
        """
        self.catalog = catalog
        self.check_workers = max(1, int(check_workers))
        self._dimension_order = catalog.dimension_index()

    def analyze(
        self,
        artifact,
        profile,
        memory=None,
        cancel: CancelToken | None = None,
    ) -> AnalysisResult:
        """Analyze one artifact.

        Args:
            artifact: ArtifactModel from the fact extractor
            profile: ProjectProfile of the run
            memory: Object with get(project_id, key) -> MemoryRecord | None, or None
            cancel: Optional token; checked before each dimension

        Raises:
            AnalysisCancelled: If cancel was triggered. Nothing is returned and
                nothing has been persisted.
        """
        diagnostics: list[Diagnostic] = []
        kept: dict[str, tuple[Finding, int]] = {}
        # site prefix -> location of a CRITICAL finding from an earlier dimension
        critical_sites: dict[str, set[Location]] = {}
        suppressed = 0
        memory_ok = memory is not None

        for dim_index, dimension in enumerate(self.catalog.dimensions_in_order()):
            if cancel is not None and cancel.cancelled:
                logger.warning(
                    f"Analysis of {artifact.artifact_id} cancelled before dimension "
                    f"{dimension.name}"
                )
                raise AnalysisCancelled(
                    f"Analysis of {artifact.artifact_id} cancelled",
                    {"artifact": artifact.artifact_id, "next_dimension": dimension.name},
                )

            dimension_findings: list[Finding] = []

            for chk, raw_findings, error in self._run_dimension(dimension, artifact, profile):
                if error is not None:
                    logger.opt(exception=error).warning(
                        f"Check {dimension.name}/{chk.check_id} failed on "
                        f"{artifact.artifact_id}: {error}"
                    )
                    diagnostics.append(
                        Diagnostic(
                            kind="CheckFailure",
                            artifact_id=artifact.artifact_id,
                            dimension=dimension.name,
                            check_id=chk.check_id,
                            key_identity=chk.key_identity,
                            message=f"{type(error).__name__}: {error}",
                        )
                    )
                    continue

                for raw in raw_findings:
                    finding = self._make_finding(artifact, dimension, chk, raw)
                    if memory_ok:
                        try:
                            finding = self._calibrate(finding, profile, memory)
                        except MemoryStoreUnavailable as e:
                            memory_ok = False
                            logger.warning(f"Memory unavailable, severities not calibrated: {e}")
                            diagnostics.append(
                                Diagnostic(
                                    kind="MemoryStoreUnavailable",
                                    artifact_id=artifact.artifact_id,
                                    message=str(e),
                                )
                            )
                    dimension_findings.append(finding)

            for finding in dimension_findings:
                if self._is_symptom(finding, critical_sites):
                    suppressed += 1
                    logger.debug(f"Suppressed {finding.dedupe_key}: root cause already reported")
                    continue

                previous = kept.get(finding.dedupe_key)
                if previous is None or finding.severity > previous[0].severity:
                    kept[finding.dedupe_key] = (finding, dim_index)

            # Suppression only applies to later dimensions
            for finding, index in kept.values():
                if index == dim_index and finding.severity.rank == 0:
                    critical_sites.setdefault(finding.site_prefix, set()).add(finding.location)

        ordered = sorted(
            (finding for finding, _ in kept.values()),
            key=lambda f: finding_sort_key(f, self._dimension_order),
        )

        logger.debug(
            f"{artifact.artifact_id}: {len(ordered)} findings, {suppressed} suppressed, "
            f"{len(diagnostics)} diagnostics"
        )

        return AnalysisResult(
            artifact_id=artifact.artifact_id,
            findings=tuple(ordered),
            diagnostics=tuple(diagnostics),
            suppressed=suppressed,
            memory_available=memory is None or memory_ok,
        )

    def _run_dimension(self, dimension: Dimension, artifact, profile):
        """Yield (check, raw findings, error) in declared check order."""
        checks = [chk for chk in dimension.checks if chk.applies_to(artifact)]

        if self.check_workers > 1 and len(checks) > 1:
            with ThreadPoolExecutor(max_workers=self.check_workers) as executor:
                futures = [
                    executor.submit(self._invoke, chk, artifact, profile) for chk in checks
                ]
                # Results gathered in submission order, not completion order
                results = [future.result() for future in futures]
        else:
            results = [self._invoke(chk, artifact, profile) for chk in checks]

        for chk, (raw_findings, error) in zip(checks, results):
            yield chk, raw_findings, error

    @staticmethod
    def _invoke(chk: Check, artifact, profile) -> tuple[list[RawFinding], Exception | None]:
        """Run one check, isolating any fault at the check boundary."""
        try:
            raw_findings = list(chk.function(artifact, profile) or [])
            for raw in raw_findings:
                if not isinstance(raw, RawFinding):
                    raise TypeError(f"check returned {type(raw).__name__}, expected RawFinding")
            return raw_findings, None
        except Exception as e:
            return [], e

    @staticmethod
    def _make_finding(artifact, dimension: Dimension, chk: Check, raw: RawFinding) -> Finding:
        return Finding(
            severity=raw.severity or chk.default_severity,
            location=Location(artifact.artifact_id, raw.position),
            description=raw.description,
            rationale=raw.rationale,
            suggested_fix=raw.suggested_fix,
            dimension=dimension.name,
            dedupe_key=make_dedupe_key(
                artifact.artifact_id, raw.site_id, dimension.name, chk.key_identity
            ),
            check_id=chk.check_id,
            kind=chk.kind,
            likelihood=chk.likelihood,
        )

    @staticmethod
    def _calibrate(finding: Finding, profile, memory) -> Finding:
        """Downgrade one level when the key is accepted-risk. Never upgrades."""
        record = memory.get(profile.project_id, finding.dedupe_key)
        if record is None or record.status != MemoryStatus.ACCEPTED_RISK:
            return finding

        downgraded = finding.severity.downgrade()
        if downgraded == finding.severity:
            return finding

        return dataclasses.replace(finding, severity=downgraded, calibrated=True)

    @staticmethod
    def _is_symptom(finding: Finding, critical_sites: dict[str, set[Location]]) -> bool:
        if finding.severity.rank == 0:
            return False
        return finding.location in critical_sites.get(finding.site_prefix, ())


def analyze(
    artifact, profile, catalog, memory=None, cancel: CancelToken | None = None
) -> AnalysisResult:
    """Module-level convenience wrapper around AnalysisEngine.analyze()."""
    return AnalysisEngine(catalog).analyze(artifact, profile, memory, cancel)
