"""Centralized exit codes for TheReviewer CLI."""


class ExitCodes:
    """Standard exit codes for TheReviewer CLI commands."""

    SUCCESS = 0

    HIGH_SEVERITY = 1
    CRITICAL_SEVERITY = 2

    TASK_INCOMPLETE = 3

    INTERRUPTED = 130

    @classmethod
    def get_description(cls, code: int) -> str:
        """Get human-readable description for an exit code."""
        descriptions = {
            cls.SUCCESS: "Success - No blocking findings",
            cls.HIGH_SEVERITY: "High severity findings detected",
            cls.CRITICAL_SEVERITY: "Critical findings detected",
            cls.TASK_INCOMPLETE: "No artifact could be analyzed",
            cls.INTERRUPTED: "Review cancelled by interrupt",
        }
        return descriptions.get(code, f"Unknown exit code: {code}")

