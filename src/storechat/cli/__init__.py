"""Command-line interface for storechat."""
