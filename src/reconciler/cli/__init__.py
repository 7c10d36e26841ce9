"""Command-line interface for reconciler."""
