"""Command-line interface for BuildForge."""
