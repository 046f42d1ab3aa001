"""Rule contracts and built-in check dimensions."""

from .base import (
    Check,
    Dimension,
    Finding,
    Location,
    Position,
    RawFinding,
    Severity,
    check,
    make_dedupe_key,
)

__all__ = [
    "Check",
    "Dimension",
    "Finding",
    "Location",
    "Position",
    "RawFinding",
    "Severity",
    "check",
    "make_dedupe_key",
]
