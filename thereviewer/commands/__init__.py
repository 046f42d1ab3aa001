"""CLI commands for TheReviewer."""
