"""
Command-line interface for hmmkit.
"""

from .main import app, cli_main

__all__ = ["app", "cli_main"]
