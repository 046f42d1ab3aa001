"""Review pipeline: extraction, analysis, reconciliation and reporting.

Artifacts are independent, so they are extracted and analyzed in parallel.
The only shared mutable state is the memory store, which is written once per
run after every artifact has been analyzed. A cancelled run raises before
that write, so partial results never reach memory.
"""

import contextvars
from collections.abc import Iterable
from concurrent.futures import ThreadPoolExecutor

from thereviewer.engine import AnalysisEngine, AnalysisResult, CancelToken
from thereviewer.exceptions import (
    AnalysisCancelled,
    ExtractionFailure,
    MemoryStoreUnavailable,
)
from thereviewer.extraction import FactExtractor, extract_with_timeout
from thereviewer.model import ArtifactModel
from thereviewer.report import Report, ReportAssembler, StatusEntry, diagnostic_status
from thereviewer.utils.constants import (
    DEFAULT_CHECK_WORKERS,
    DEFAULT_EXTRACTION_TIMEOUT,
    DEFAULT_MAX_WORKERS,
)
from thereviewer.utils.logging import logger, review_context


class ReviewPipeline:
    """Runs a full review over many artifacts."""

    def __init__(
        self,
        catalog,
        extractor: FactExtractor,
        memory=None,
        max_workers: int = DEFAULT_MAX_WORKERS,
        check_workers: int = DEFAULT_CHECK_WORKERS,
        extraction_timeout: float | None = DEFAULT_EXTRACTION_TIMEOUT,
        memory_error: str | None = None,
    ):
        """Initialize the pipeline.

        Args:
            memory: MemoryStore, or None to run without history
            memory_error: Why the store could not be opened, if that is why memory is None
        """
        self.catalog = catalog
        self.extractor = extractor
        self.memory = memory
        self.memory_error = memory_error
        self.max_workers = max(1, int(max_workers))
        self.extraction_timeout = extraction_timeout
        self.engine = AnalysisEngine(catalog, check_workers=check_workers)
        self.assembler = ReportAssembler(catalog.dimension_index())

    @classmethod
    def from_config(
        cls,
        catalog,
        extractor: FactExtractor,
        memory,
        config: dict,
        memory_error: str | None = None,
    ) -> "ReviewPipeline":
        return cls(
            catalog,
            extractor,
            memory=memory,
            max_workers=config["limits"]["max_workers"],
            check_workers=config["limits"]["check_workers"],
            extraction_timeout=config["timeouts"]["extraction"],
            memory_error=memory_error,
        )

    def run(
        self,
        profile,
        sources: Iterable[str],
        cancel: CancelToken | None = None,
    ) -> Report:
        """Review every source and return the assembled report.

        Raises:
            AnalysisCancelled: If cancel fired. Nothing is persisted.
        """
        cancel = cancel or CancelToken()
        with review_context(profile.project_id):
            return self._run(profile, list(sources), cancel)

    def _run(self, profile, sources: list[str], cancel: CancelToken) -> Report:
        statuses: list[StatusEntry] = []

        models = self._extract_all(sources, statuses)
        logger.info(f"Analyzing {len(models)} artifact(s) for project {profile.project_id}")

        results = self._analyze_all(models, profile, cancel)

        findings = []
        suppressed = 0
        lookups_ok = True
        for result in results:
            findings.extend(result.findings)
            suppressed += result.suppressed
            lookups_ok = lookups_ok and result.memory_available
            statuses.extend(diagnostic_status(d) for d in result.diagnostics)

        if cancel.cancelled:
            raise AnalysisCancelled("Review cancelled before reconciliation")

        reconciled = self._reconcile(profile, results, lookups_ok, statuses)

        report = self.assembler.assemble(
            findings,
            artifacts_analyzed=[r.artifact_id for r in results],
            statuses=statuses,
            reconciled=reconciled,
            suppressed=suppressed,
        )
        logger.info(report.summary.headline)
        return report

    def _extract_all(self, sources: list[str], statuses: list[StatusEntry]) -> list[ArtifactModel]:
        def extract(source: str) -> ArtifactModel | ExtractionFailure:
            try:
                return extract_with_timeout(self.extractor, source, self.extraction_timeout)
            except ExtractionFailure as e:
                return e

        with ThreadPoolExecutor(max_workers=self.max_workers) as executor:
            futures = [
                executor.submit(contextvars.copy_context().run, extract, source)
                for source in sources
            ]
            outcomes = [future.result() for future in futures]

        models: list[ArtifactModel] = []
        seen: dict[str, str] = {}
        for source, outcome in zip(sources, outcomes):
            if isinstance(outcome, ExtractionFailure):
                logger.warning(f"Artifact unanalyzable: {outcome.artifact}: {outcome.message}")
                statuses.append(
                    StatusEntry(
                        kind="ExtractionFailure",
                        artifact=outcome.artifact,
                        message=outcome.message,
                    )
                )
                continue

            if outcome.artifact_id in seen:
                # Two models with one id would collide in memory keys
                message = (
                    f"Duplicate artifact id {outcome.artifact_id} "
                    f"(already from {seen[outcome.artifact_id]})"
                )
                logger.warning(message)
                statuses.append(
                    StatusEntry(kind="ExtractionFailure", artifact=source, message=message)
                )
                continue

            seen[outcome.artifact_id] = source
            models.append(outcome)

        return models

    def _analyze_all(
        self, models: list[ArtifactModel], profile, cancel: CancelToken
    ) -> list[AnalysisResult]:
        def analyze(model: ArtifactModel) -> AnalysisResult:
            return self.engine.analyze(model, profile, self.memory, cancel)

        with ThreadPoolExecutor(max_workers=self.max_workers) as executor:
            futures = [
                executor.submit(contextvars.copy_context().run, analyze, model)
                for model in models
            ]
            results = []
            try:
                for future in futures:
                    results.append(future.result())
            except AnalysisCancelled:
                cancel.cancel()
                raise

        return results

    def _reconcile(
        self,
        profile,
        results: list[AnalysisResult],
        lookups_ok: bool,
        statuses: list[StatusEntry],
    ) -> bool:
        if self.memory is None:
            if self.memory_error:
                statuses.append(
                    StatusEntry(kind="MemoryStoreUnavailable", message=self.memory_error)
                )
            else:
                statuses.append(
                    StatusEntry(kind="MemoryNotConfigured", message="No memory store configured")
                )
            return False

        if not lookups_ok:
            # Severities were computed without history; do not record them as confirmed
            return False

        if not results:
            return False

        keys = set()
        unobserved = set()
        for result in results:
            keys.update(result.dedupe_keys)
            unobserved.update(result.unobserved)

        if unobserved:
            logger.info(f"{len(unobserved)} failed check(s) keep their remembered findings open")

        try:
            self.memory.reconcile(
                profile.project_id,
                keys,
                artifacts=[r.artifact_id for r in results],
                unobserved=unobserved,
            )
        except MemoryStoreUnavailable as e:
            logger.error(f"Could not reconcile findings with memory: {e}")
            statuses.append(StatusEntry(kind="MemoryStoreUnavailable", message=str(e)))
            return False

        return True
