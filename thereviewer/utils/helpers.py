"""Helper utility functions for TheReviewer.

IMPORTANT UTILITIES:
- normalize_artifact_path(): Use this for ANY artifact id derived from a path.
  Dedupe keys embed the artifact id, so the same file must always produce the
  same id regardless of platform or whether an absolute path was passed.
"""

import json
from pathlib import Path
from typing import Any


def normalize_artifact_path(file_path: str, project_root: Path | str | None = None) -> str:
    """Normalize a file path into a stable artifact id.

    Transformations:
    1. Convert backslashes to forward slashes (Windows -> Unix)
    2. Strip project root prefix if provided (absolute -> relative)
    3. Strip leading slashes and "./"

    Examples:
        >>> normalize_artifact_path("src\\\\auth\\\\login.py")
        'src/auth/login.py'

        >>> normalize_artifact_path("/work/app/src/db.py", project_root="/work/app")
        'src/db.py'
    """

    normalized = str(file_path).replace("\\", "/")

    if project_root is not None:
        root_str = str(project_root).replace("\\", "/").rstrip("/")

        if normalized.startswith(root_str + "/"):
            normalized = normalized[len(root_str) + 1 :]
        elif normalized == root_str:
            normalized = ""

    while normalized.startswith("./"):
        normalized = normalized[2:]

    return normalized.lstrip("/")


def save_json_file(data: Any, file_path: str | Path) -> None:
    """Save data as JSON to file, creating parent directories."""
    path = Path(file_path)
    path.parent.mkdir(parents=True, exist_ok=True)
    with open(path, "w", encoding="utf-8") as f:
        json.dump(data, f, indent=2)
        f.write("\n")
