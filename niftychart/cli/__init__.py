"""Command-line interface for NiftyChart."""

from niftychart.cli.main import cli, main

__all__ = ["cli", "main"]
