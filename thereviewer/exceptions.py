"""Exception taxonomy for the review engine.

Local faults (a single check raising) never escape the engine; they become
diagnostics. Structural faults (extraction, memory) are caught by the
pipeline and attached to the report as statuses.
"""


class ReviewerError(Exception):
    """Base class for all engine errors.

    Attributes:
        message: Human-readable error description
        details: Dict with structured context for logs and report statuses
    """

    def __init__(self, message: str, details: dict | None = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}


class CatalogError(ReviewerError):
    """Raised at catalog construction when the configuration is invalid."""


class ProfileError(ReviewerError):
    """Raised when project profile overrides cannot be interpreted."""


class ExtractionFailure(ReviewerError):
    """Raised when the fact extractor cannot produce an ArtifactModel.

    The artifact is marked unanalyzable, surfaced once and never retried.
    """

    def __init__(self, artifact: str, message: str, details: dict | None = None):
        super().__init__(message, details)
        self.artifact = artifact


class MemoryStoreUnavailable(ReviewerError):
    """Raised when the memory store cannot be read or written."""


class AnalysisCancelled(ReviewerError):
    """Raised when a run is aborted at a dimension checkpoint."""
