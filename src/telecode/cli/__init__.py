"""Command-line entry points for telecode."""
