"""Runtime configuration for TheReviewer - centralized configuration management."""

import copy
import json
import os
from pathlib import Path
from typing import Any

from thereviewer.utils.constants import (
    DEFAULT_CHECK_WORKERS,
    DEFAULT_EXTRACTION_TIMEOUT,
    DEFAULT_MAX_WORKERS,
    ENV_PREFIX,
    ERROR_LOG_FILE,
    MEMORY_DB_FILE,
    PF_DIR,
    PROFILE_OVERRIDES_FILE,
    REPORT_FILE,
)
from thereviewer.utils.logging import logger

DEFAULTS = {
    "paths": {
        "pf_dir": str(PF_DIR),
        "memory_db": str(MEMORY_DB_FILE),
        "report_json": str(REPORT_FILE),
        "profile_json": str(PROFILE_OVERRIDES_FILE),
        "error_log": str(ERROR_LOG_FILE),
        "catalog": "",
    },
    "limits": {
        "max_workers": DEFAULT_MAX_WORKERS,
        "check_workers": DEFAULT_CHECK_WORKERS,
    },
    "timeouts": {
        "extraction": DEFAULT_EXTRACTION_TIMEOUT,
    },
}


def _accepts(default: Any, value: Any) -> bool:
    """Config values must match the default's type; ints are accepted for floats."""
    if isinstance(value, bool) != isinstance(default, bool):
        return False
    if isinstance(default, float):
        return isinstance(value, (int, float))
    return isinstance(value, type(default))


def load_runtime_config(root: str | Path = ".") -> dict[str, Any]:
    """
    Load runtime configuration from .pf/config.json and environment variables.

    Config priority (highest to lowest):
    1. Environment variables (THEREVIEWER_<SECTION>_<KEY>)
    2. .pf/config.json file
    3. Built-in defaults

    Relative paths are resolved against root.
    """

    cfg = copy.deepcopy(DEFAULTS)
    root = Path(root)

    path = root / ".pf" / "config.json"
    try:
        if path.exists():
            with open(path, encoding="utf-8") as f:
                user = json.load(f)

            if isinstance(user, dict):
                for section in cfg:
                    if section in user and isinstance(user[section], dict):
                        for key, value in user[section].items():
                            if key in cfg[section] and _accepts(cfg[section][key], value):
                                cfg[section][key] = type(cfg[section][key])(value)
    except (json.JSONDecodeError, UnicodeDecodeError, OSError) as e:
        logger.warning(f"Could not load config file from {path}: {e}")
        logger.info("Continuing with default configuration")

    for section in cfg:
        for key in cfg[section]:
            env_var = f"{ENV_PREFIX}_{section.upper()}_{key.upper()}"
            if env_var in os.environ:
                value = os.environ[env_var]
                try:
                    default_value = cfg[section][key]
                    if isinstance(default_value, int):
                        cfg[section][key] = int(value)
                    elif isinstance(default_value, float):
                        cfg[section][key] = float(value)
                    else:
                        cfg[section][key] = value
                except ValueError as e:
                    logger.warning(
                        f"Invalid value for environment variable {env_var}: '{value}' - {e}"
                    )
                    logger.info(f"Using default value: {cfg[section][key]}")

    for key, value in cfg["paths"].items():
        if value and not Path(value).is_absolute():
            cfg["paths"][key] = str(root / value)

    return cfg
