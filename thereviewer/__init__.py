"""TheReviewer - rule-based review engine with cross-run finding memory."""

__version__ = "0.3.0"
