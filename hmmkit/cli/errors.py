"""
Error handling for CLI commands.

Maps hmmkit exceptions to exit codes and prints them with rich formatting.
"""

import json
import traceback
from pathlib import Path
from typing import Any, List, Optional
import logging

import typer
from rich.console import Console

from ..exceptions import HMMKitError, InvalidModelError, InvalidSequenceError, NumericalDegeneracyError

console = Console(stderr=True)
logger = logging.getLogger(__name__)


EXIT_CODES = {
    "success": 0,
    "general_error": 1,
    "invalid_usage": 2,
    "input_error": 10,
    "model_error": 11,
    "numerical_error": 12
}


class HMMKitCLIError(Exception):
    """Base exception for CLI-specific errors."""

    def __init__(self, message: str, exit_code: int = 1, suggestions: Optional[list] = None):
        self.message = message
        self.exit_code = exit_code
        self.suggestions = suggestions or []
        super().__init__(message)


class InputFileError(HMMKitCLIError):
    """Unreadable or malformed sequence files."""

    def __init__(self, message: str, suggestions: Optional[list] = None):
        super().__init__(message, EXIT_CODES["input_error"], suggestions)


def exit_code_for(error: Exception) -> int:
    if isinstance(error, HMMKitCLIError):
        return error.exit_code
    if isinstance(error, InvalidSequenceError):
        return EXIT_CODES["input_error"]
    if isinstance(error, InvalidModelError):
        return EXIT_CODES["model_error"]
    if isinstance(error, NumericalDegeneracyError):
        return EXIT_CODES["numerical_error"]
    return EXIT_CODES["general_error"]


def format_error_message(error: Exception, operation: str, debug: bool = False) -> str:
    """Format error message with context and suggestions."""
    message_parts = [
        f"[red]Error during {operation}:[/red]",
        f"[red]{type(error).__name__}: {error}[/red]"
    ]

    if getattr(error, 'suggestions', None):
        message_parts.append("")
        message_parts.append("[yellow]Suggestions:[/yellow]")
        for suggestion in error.suggestions:
            message_parts.append(f"  • {suggestion}")

    if debug:
        message_parts.append("")
        message_parts.append("[dim]Debug information:[/dim]")
        message_parts.append(f"[dim]{traceback.format_exc()}[/dim]")

    return "\n".join(message_parts)


def handle_cli_error(error: Exception, operation: str, debug: bool = False) -> None:
    """Display an error and exit with the matching exit code."""
    console.print(format_error_message(error, operation, debug))
    logger.error(f"CLI error in {operation}: {error}", exc_info=debug)

    raise typer.Exit(exit_code_for(error))


def load_sequences(path: Path) -> List[List[Any]]:
    """
    Read a JSON file holding a list of observation sequences.

    Raises:
        InputFileError: If the file is missing, not JSON, or not a list of non-empty lists
    """
    if not path.exists():
        raise InputFileError(f"Sequence file not found: {path}")

    try:
        with open(path, 'r') as f:
            data = json.load(f)
    except json.JSONDecodeError as e:
        raise InputFileError(
            f"Sequence file is not valid JSON: {e}",
            suggestions=["Expected a list of sequences, e.g. [[0, 1, 2], [2, 1]]"]
        )

    if not isinstance(data, list) or not data:
        raise InputFileError("Sequence file must hold a non-empty list of sequences")
    for idx, seq in enumerate(data):
        if not isinstance(seq, list) or not seq:
            raise InputFileError(f"Sequence {idx} must be a non-empty list")

    return data
