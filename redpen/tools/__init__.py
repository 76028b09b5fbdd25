"""Command-line tools for redpen."""
