"""Logging for review runs, built on Loguru with Pino-compatible output.

Usage:
    from thereviewer.utils.logging import logger, review_context
    with review_context("my-project"):
        logger.info("Message")  # carries project=my-project in every sink

Environment Variables (prefix THEREVIEWER_):
    LOG_LEVEL: DEBUG|INFO|WARNING|ERROR (default: INFO)
    LOG_JSON: 0|1 (default: 0, human-readable on stderr)
    LOG_FILE: path to an extra NDJSON log file (optional)
    REQUEST_ID: correlation ID shared with the calling process
"""

import json
import os
import sys
import uuid
from collections.abc import Iterator
from contextlib import contextmanager
from pathlib import Path

from loguru import logger

from .constants import ENV_PREFIX

logger.remove()

PINO_LEVELS = {
    "TRACE": 10,
    "DEBUG": 20,
    "INFO": 30,
    "SUCCESS": 30,
    "WARNING": 40,
    "ERROR": 50,
    "CRITICAL": 60,
}

REVIEW_LOG_NAME = "review.log"

_log_level = os.environ.get(f"{ENV_PREFIX}_LOG_LEVEL", "INFO").upper()
_json_mode = os.environ.get(f"{ENV_PREFIX}_LOG_JSON", "0") == "1"
_log_file = os.environ.get(f"{ENV_PREFIX}_LOG_FILE")
_request_id = os.environ.get(f"{ENV_PREFIX}_REQUEST_ID") or str(uuid.uuid4())


def _pino_line(record) -> str:
    """One Pino NDJSON line. Bound extras such as project and artifact become fields."""
    pino_log = {
        "level": PINO_LEVELS.get(record["level"].name, 30),
        "time": int(record["time"].timestamp() * 1000),
        "msg": record["message"],
        "pid": record["process"].id,
        "request_id": record["extra"].get("request_id", _request_id),
    }

    for key, value in record["extra"].items():
        if key != "request_id" and not key.startswith("_"):
            pino_log[key] = value

    if record["exception"]:
        pino_log["err"] = {
            "type": record["exception"].type.__name__ if record["exception"].type else "Error",
            "message": str(record["exception"].value) if record["exception"].value else "",
        }

    return json.dumps(pino_log, default=str)


def _pino_format(record) -> str:
    # Rendered JSON goes through extra so its braces are not parsed as a template
    record["extra"]["_pino"] = _pino_line(record)
    return "{extra[_pino]}\n"


def _human_format(record) -> str:
    project = "<magenta>{extra[project]}</magenta> | " if "project" in record["extra"] else ""
    return (
        "<green>{time:HH:mm:ss}</green> | "
        "<level>{level: <8}</level> | "
        + project
        + "<cyan>{name}:{function}:{line}</cyan> - "
        "<level>{message}</level>\n{exception}"
    )


logger.level("DEBUG", color="<blue>")
logger.level("INFO", color="<white>")
logger.level("WARNING", color="<yellow>")
logger.level("ERROR", color="<red>")
logger.level("CRITICAL", color="<red><bold>")

if _json_mode:
    logger.add(sys.stdout, level=_log_level, format=_pino_format, colorize=False)
else:
    logger.add(sys.stderr, level=_log_level, format=_human_format, colorize=None)

if _log_file:
    logger.add(_log_file, level="DEBUG", format=_pino_format, colorize=False)


def configure_file_logging(pf_dir: Path, level: str = "DEBUG") -> int:
    """Persist NDJSON logs under the project's output directory.

    Args:
        pf_dir: Resolved paths.pf_dir of the reviewed project
        level: Minimum log level for file output

    Returns:
        Loguru handler id, for logger.remove()
    """
    pf_dir.mkdir(parents=True, exist_ok=True)

    return logger.add(
        pf_dir / REVIEW_LOG_NAME,
        rotation="10 MB",
        retention="7 days",
        level=level,
        format=_pino_format,
        colorize=False,
    )


@contextmanager
def review_context(project_id: str, **fields) -> Iterator[None]:
    """Tag every record logged inside the block with the project under review.

    Context is per thread; worker pools must run tasks in a copied context
    to inherit it.
    """
    with logger.contextualize(project=project_id, request_id=_request_id, **fields):
        yield


def get_request_id() -> str:
    """Get the current request ID for correlation."""
    return _request_id


__all__ = [
    "logger",
    "configure_file_logging",
    "get_request_id",
    "review_context",
]
