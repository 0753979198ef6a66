"""Command-line interface for mobiquo."""
