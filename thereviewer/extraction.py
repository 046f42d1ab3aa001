"""Boundary with the external fact extractor.

The extractor owns parsing and type analysis. The engine only needs an
ArtifactModel per artifact; this module defines that seam, ships a loader for
extractor output written as JSON files, and enforces the extraction timeout.
A failed or timed-out extraction is reported once and never retried.
"""

import json
from concurrent.futures import ThreadPoolExecutor
from concurrent.futures import TimeoutError as FutureTimeout
from pathlib import Path
from typing import Protocol

from thereviewer.exceptions import ExtractionFailure
from thereviewer.model import ArtifactModel
from thereviewer.utils.helpers import normalize_artifact_path
from thereviewer.utils.logging import logger


class FactExtractor(Protocol):
    """Turns one source artifact into an ArtifactModel.

    Implementations raise ExtractionFailure when they cannot.
    """

    def extract(self, source: str) -> ArtifactModel: ...


class JsonArtifactLoader:
    """Reads ArtifactModels an extractor has already written to disk."""

    def __init__(self, project_root: Path | str | None = None):
        self.project_root = Path(project_root) if project_root else None

    def extract(self, source: str) -> ArtifactModel:
        path = Path(source)
        try:
            with open(path, encoding="utf-8") as f:
                data = json.load(f)
        except (OSError, json.JSONDecodeError) as e:
            raise ExtractionFailure(str(source), f"Cannot read artifact model {path}: {e}") from e

        if isinstance(data, dict) and not data.get("artifact_id") and data.get("path"):
            data = {
                **data,
                "artifact_id": normalize_artifact_path(data["path"], self.project_root),
            }

        return ArtifactModel.from_dict(data, source=str(source))


def discover_artifact_files(directory: Path | str) -> list[str]:
    """Extractor output files under a directory, sorted for stable runs."""
    root = Path(directory)
    if root.is_file():
        return [str(root)]
    return sorted(str(p) for p in root.rglob("*.json") if p.is_file())


def extract_with_timeout(
    extractor: FactExtractor, source: str, timeout: float | None
) -> ArtifactModel:
    """Run the extractor with a deadline.

    Raises:
        ExtractionFailure: If the extractor fails, times out, or raises anything
            unexpected. The caller marks the artifact unanalyzable.
    """
    if not timeout:
        return _guarded_extract(extractor, source)

    executor = ThreadPoolExecutor(max_workers=1)
    future = executor.submit(_guarded_extract, extractor, source)
    try:
        return future.result(timeout=timeout)
    except FutureTimeout as e:
        logger.warning(f"Extraction of {source} timed out after {timeout}s")
        raise ExtractionFailure(
            source, f"Extraction timed out after {timeout}s", {"timeout": timeout}
        ) from e
    finally:
        # A hung extractor thread cannot be interrupted; do not wait for it
        executor.shutdown(wait=False, cancel_futures=True)


def _guarded_extract(extractor: FactExtractor, source: str) -> ArtifactModel:
    try:
        return extractor.extract(source)
    except ExtractionFailure:
        raise
    except Exception as e:
        raise ExtractionFailure(source, f"Extractor crashed: {type(e).__name__}: {e}") from e
