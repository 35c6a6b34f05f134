"""
Jex CLI Module.

Provides the command-line entry point for Jex.
"""

from jex.cli.main import cli, main, run

__all__ = ["cli", "main", "run"]
