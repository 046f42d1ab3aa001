"""Centralized severity normalization and prioritization weights."""

PRIORITY_ORDER = {
    "critical": 0,
    "high": 1,
    "medium": 2,
    "low": 3,
}


# Multiplied by a check's likelihood to rank suggested fixes
SEVERITY_WEIGHTS = {
    "critical": 4,
    "high": 3,
    "medium": 2,
    "low": 1,
}


SEVERITY_MAPPINGS = {
    4: "critical",
    3: "high",
    2: "medium",
    1: "low",
    "error": "high",
    "warning": "medium",
    "warn": "medium",
    "info": "low",
    "note": "low",
    "fatal": "critical",
    "blocker": "critical",
    "major": "high",
    "minor": "low",
    "trivial": "low",
    "critical": "critical",
    "high": "high",
    "medium": "medium",
    "low": "low",
}


def normalize_severity(severity_value) -> str:
    """Normalize severity from various formats to one of the four standard names.

    Raises:
        ValueError: If the value cannot be mapped. Catalog configuration must
            fail fast rather than guess a severity.
    """
    if isinstance(severity_value, bool) or severity_value is None:
        raise ValueError(f"Unrecognized severity: {severity_value!r}")

    if isinstance(severity_value, (int, float)):
        mapped = SEVERITY_MAPPINGS.get(int(severity_value))
    else:
        mapped = SEVERITY_MAPPINGS.get(str(severity_value).lower().strip())

    if mapped is None:
        raise ValueError(f"Unrecognized severity: {severity_value!r}")
    return mapped
