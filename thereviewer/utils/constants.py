"""Centralized constants for TheReviewer utils package.

Single source of truth for paths and environment variable names used
across the engine, the memory store and the CLI.
"""

from pathlib import Path

# ============================================================================
# OUTPUT DIRECTORIES
# ============================================================================

# Primary output directory for all review artifacts
PF_DIR = Path("./.pf")

ERROR_LOG_FILE = PF_DIR / "error.log"

RAW_DIR = PF_DIR / "raw"
MEMORY_DB_FILE = PF_DIR / "review_memory.db"
REPORT_FILE = RAW_DIR / "review.json"
PROFILE_OVERRIDES_FILE = PF_DIR / "profile.json"

# ============================================================================
# ENGINE LIMITS
# ============================================================================

# Seconds the external extractor may spend on one artifact
DEFAULT_EXTRACTION_TIMEOUT = 30.0

# Worker counts (1 = sequential)
DEFAULT_MAX_WORKERS = 4
DEFAULT_CHECK_WORKERS = 1

# Declarations per module before the architecture dimension complains
DEFAULT_MAX_DECLARATIONS = 40

# ============================================================================
# ENVIRONMENT VARIABLES
# ============================================================================

ENV_PREFIX = "THEREVIEWER"
ENV_DEBUG = "THEREVIEWER_DEBUG"
ENV_PROJECT_ID = "THEREVIEWER_PROJECT_ID"
