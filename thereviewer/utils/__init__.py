"""TheReviewer utilities package."""

from .constants import (
    DEFAULT_CHECK_WORKERS,
    DEFAULT_EXTRACTION_TIMEOUT,
    DEFAULT_MAX_DECLARATIONS,
    DEFAULT_MAX_WORKERS,
    ERROR_LOG_FILE,
    MEMORY_DB_FILE,
    PF_DIR,
    RAW_DIR,
    REPORT_FILE,
)
from .exit_codes import ExitCodes
from .finding_priority import (
    PRIORITY_ORDER,
    SEVERITY_MAPPINGS,
    SEVERITY_WEIGHTS,
    normalize_severity,
)
from .helpers import normalize_artifact_path, save_json_file
from .logging import logger

__all__ = [
    "PF_DIR",
    "ERROR_LOG_FILE",
    "RAW_DIR",
    "MEMORY_DB_FILE",
    "REPORT_FILE",
    "DEFAULT_EXTRACTION_TIMEOUT",
    "DEFAULT_MAX_WORKERS",
    "DEFAULT_CHECK_WORKERS",
    "DEFAULT_MAX_DECLARATIONS",
    "ExitCodes",
    "normalize_severity",
    "PRIORITY_ORDER",
    "SEVERITY_MAPPINGS",
    "SEVERITY_WEIGHTS",
    "save_json_file",
    "normalize_artifact_path",
    "logger",
]
