"""Command error handling.

Engine errors (bad catalog, unreadable memory, invalid profile) are the
user's to fix and become a one-line CLI error. Anything else is a bug: its
traceback goes to the error log of the project named by --project-path.
"""

import traceback
from collections.abc import Callable
from datetime import datetime
from functools import wraps
from pathlib import Path
from typing import Any

import click

from thereviewer.config_runtime import load_runtime_config
from thereviewer.exceptions import ReviewerError
from thereviewer.utils.logging import get_request_id, logger


def error_log_path(project_path: str | Path = ".") -> Path:
    """Error log location after config layering, resolved against the project root."""
    config = load_runtime_config(Path(project_path).resolve())
    return Path(config["paths"]["error_log"])


def _write_error_log(command: str, error: Exception, project_path: str | Path) -> Path:
    log_path = error_log_path(project_path)
    log_path.parent.mkdir(parents=True, exist_ok=True)

    with open(log_path, "a", encoding="utf-8") as f:
        f.write("\n" + "=" * 80 + "\n")
        f.write(
            f"[{datetime.now().isoformat()}] Error in command: {command} "
            f"(request {get_request_id()})\n"
        )
        f.write(f"Project: {Path(project_path).resolve()}\n")
        f.write("=" * 80 + "\n")
        f.write(f"{type(error).__name__}: {error}\n\n")
        f.write(traceback.format_exc())
        f.write("=" * 80 + "\n\n")

    return log_path


def handle_exceptions(func: Callable[..., Any]) -> Callable[..., Any]:
    """Decorator for click commands that take a --project-path option."""

    @wraps(func)
    def wrapper(*args: Any, **kwargs: Any) -> Any:
        try:
            return func(*args, **kwargs)
        except (click.ClickException, click.exceptions.Exit, click.Abort):
            raise
        except ReviewerError as e:
            logger.error(f"Command '{func.__name__}' failed: {e.message}")
            raise click.ClickException(f"{type(e).__name__}: {e.message}") from e
        except Exception as e:
            logger.opt(exception=True).error(f"Command '{func.__name__}' failed: {e}")
            log_path = _write_error_log(func.__name__, e, kwargs.get("project_path") or ".")
            raise click.ClickException(
                f"{type(e).__name__}: {e}\n\nFull traceback logged to: {log_path}"
            ) from e

    return wrapper
