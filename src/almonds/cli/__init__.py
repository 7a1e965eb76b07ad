"""Command-line interface for almonds."""
