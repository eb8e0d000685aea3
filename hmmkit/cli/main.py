"""
Main CLI application for hmmkit.

Fits an HMM to observation sequences read from JSON (k-means seeding
followed by Baum-Welch) and reports parameters, likelihoods and Viterbi paths.
"""

import sys
from enum import Enum
from pathlib import Path
from typing import Any, List, Optional

import numpy as np
import typer
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from ..config import get_config, load_config_file
from ..hmm.model import Hmm
from ..learn.baum_welch import BaumWelchLearner
from ..logger import enable_file_logging, set_log_level
from ..opdf import (
    DiscreteOpdfFactory,
    GaussianOpdfFactory,
    GaussianMixtureOpdfFactory,
    MultiGaussianOpdfFactory,
)
from .errors import EXIT_CODES, handle_cli_error, load_sequences, InputFileError

console = Console()

app = typer.Typer(
    name="hmmkit",
    help="Hidden Markov Model inference and learning",
    add_completion=False,
    rich_markup_mode="rich",
    no_args_is_help=True
)


class Family(str, Enum):
    discrete = "discrete"
    gaussian = "gaussian"
    multigaussian = "multigaussian"
    mixture = "mixture"


def build_factory(family: Family, sequences: List[List[Any]],
                  symbols: Optional[int] = None, components: Optional[int] = None):
    """Emission model factory matching the family and the data; unset sizes come from the hmm config."""
    if symbols is None:
        symbols = get_config('hmm', 'n_symbols')
    if components is None:
        components = get_config('hmm', 'n_components') or 2

    if family == Family.discrete:
        if symbols is None:
            symbols = int(max(max(seq) for seq in sequences)) + 1
        return DiscreteOpdfFactory(symbols)
    if family == Family.gaussian:
        return GaussianOpdfFactory()
    if family == Family.multigaussian:
        first = sequences[0][0]
        if not isinstance(first, list):
            raise InputFileError("multigaussian observations must be lists of numbers")
        return MultiGaussianOpdfFactory(len(first))
    return GaussianMixtureOpdfFactory(components)


def _prepare(sequences: List[List[Any]], family: Family) -> List[List[Any]]:
    if family == Family.multigaussian:
        return [[np.asarray(o, dtype=float) for o in seq] for seq in sequences]
    return sequences


def _fit(sequences_file: Path, n_states: Optional[int], family: Family, symbols: Optional[int],
         components: Optional[int], max_iterations: Optional[int], tolerance: Optional[float]):
    if n_states is None:
        n_states = get_config('hmm', 'n_states')

    sequences = load_sequences(sequences_file)
    factory = build_factory(family, sequences, symbols, components)
    sequences = _prepare(sequences, family)

    hmm = Hmm.from_kmeans(sequences, n_states, factory)
    learner = BaumWelchLearner(max_iterations=max_iterations, tolerance=tolerance)
    stats = learner.learn(hmm, sequences)
    return hmm, sequences, stats


def _is_debug(ctx: typer.Context) -> bool:
    return bool(ctx.meta.get("debug", False))


def _parameters_table(hmm: Hmm) -> Table:
    table = Table(title="Model parameters")
    table.add_column("State", style="cyan")
    table.add_column("Pi", style="magenta")
    table.add_column("Transitions", style="green")
    table.add_column("Emission model")
    for i in range(hmm.n_states):
        table.add_row(
            str(i),
            f"{hmm.get_pi(i):.4f}",
            " ".join(f"{a:.4f}" for a in hmm.A[i]),
            hmm.opdf(i).describe()
        )
    return table


def _paths_table(hmm: Hmm, sequences: List[List[Any]]) -> Table:
    table = Table(title="Decoded sequences")
    table.add_column("Sequence", style="cyan")
    table.add_column("Log-likelihood", style="magenta")
    table.add_column("Viterbi path")
    for idx, seq in enumerate(sequences):
        path = hmm.most_likely_state_sequence(seq)
        table.add_row(str(idx), f"{hmm.ln_probability(seq):.6f}", " ".join(map(str, path)))
    return table


# Shared option definitions
STATES_OPTION = typer.Option(None, "--states", "-s", help="Number of hidden states (default: hmm.n_states, 3)")
FAMILY_OPTION = typer.Option(Family.discrete, "--family", "-f", help="Emission model family")
SYMBOLS_OPTION = typer.Option(None, "--symbols", help="Discrete alphabet size (default: hmm.n_symbols, else largest symbol + 1)")
COMPONENTS_OPTION = typer.Option(None, "--components", help="Mixture components per state (default: hmm.n_components, 2)")
MAX_ITER_OPTION = typer.Option(None, "--max-iter", "-i", help="Maximum Baum-Welch iterations (default: learning.max_iterations, 100)")
TOLERANCE_OPTION = typer.Option(None, "--tolerance", "-t", help="Convergence tolerance on log-likelihood (default: learning.tolerance, 1e-6)")


@app.command("fit")
def fit_command(
    ctx: typer.Context,
    sequences_file: Path = typer.Argument(..., help="JSON file holding a list of observation sequences"),
    n_states: Optional[int] = STATES_OPTION,
    family: Family = FAMILY_OPTION,
    symbols: Optional[int] = SYMBOLS_OPTION,
    components: Optional[int] = COMPONENTS_OPTION,
    max_iterations: Optional[int] = MAX_ITER_OPTION,
    tolerance: Optional[float] = TOLERANCE_OPTION,
    paths: bool = typer.Option(False, "--paths", "-p", help="Also print the Viterbi path of every sequence")
):
    """
    Fit an HMM: k-means initialization followed by Baum-Welch.

    Examples:
    ```
    hmmkit fit sequences.json --states 2
    hmmkit fit readings.json --family gaussian --states 3 --max-iter 50 --paths
    ```
    """
    try:
        hmm, sequences, stats = _fit(sequences_file, n_states, family, symbols, components,
                                     max_iterations, tolerance)
        decoded = _paths_table(hmm, sequences) if paths else None
    except typer.Exit:
        raise
    except Exception as e:
        handle_cli_error(e, "fit", _is_debug(ctx))

    console.print(_parameters_table(hmm))
    console.print(Panel.fit(
        f"[bold]Training summary[/bold]\n"
        f"Stop reason: {stats['stop_reason']}\n"
        f"Iterations: {stats['iterations']}\n"
        f"Final log-likelihood: {stats['final_log_likelihood']:.6f}",
        border_style="blue"
    ))
    if decoded is not None:
        console.print(decoded)


@app.command("decode")
def decode_command(
    ctx: typer.Context,
    sequences_file: Path = typer.Argument(..., help="JSON file holding a list of observation sequences"),
    n_states: Optional[int] = STATES_OPTION,
    family: Family = FAMILY_OPTION,
    symbols: Optional[int] = SYMBOLS_OPTION,
    components: Optional[int] = COMPONENTS_OPTION,
    max_iterations: Optional[int] = MAX_ITER_OPTION,
    tolerance: Optional[float] = TOLERANCE_OPTION
):
    """Fit an HMM, then print the Viterbi path and log-likelihood of every sequence."""
    try:
        hmm, sequences, _ = _fit(sequences_file, n_states, family, symbols, components,
                                 max_iterations, tolerance)
        table = _paths_table(hmm, sequences)
    except typer.Exit:
        raise
    except Exception as e:
        handle_cli_error(e, "decode", _is_debug(ctx))

    console.print(table)


@app.command("score")
def score_command(
    ctx: typer.Context,
    sequences_file: Path = typer.Argument(..., help="JSON file holding a list of observation sequences"),
    n_states: Optional[int] = STATES_OPTION,
    family: Family = FAMILY_OPTION,
    symbols: Optional[int] = SYMBOLS_OPTION,
    components: Optional[int] = COMPONENTS_OPTION,
    max_iterations: Optional[int] = MAX_ITER_OPTION,
    tolerance: Optional[float] = TOLERANCE_OPTION
):
    """Fit an HMM, then print the log-likelihood of every sequence and their total."""
    try:
        hmm, sequences, _ = _fit(sequences_file, n_states, family, symbols, components,
                                 max_iterations, tolerance)
        scores = [hmm.ln_probability(seq) for seq in sequences]
    except typer.Exit:
        raise
    except Exception as e:
        handle_cli_error(e, "score", _is_debug(ctx))

    table = Table(title="Sequence scores")
    table.add_column("Sequence", style="cyan")
    table.add_column("Length")
    table.add_column("Log-likelihood", style="magenta")
    for idx, (seq, score) in enumerate(zip(sequences, scores)):
        table.add_row(str(idx), str(len(seq)), f"{score:.6f}")
    console.print(table)
    console.print(f"Total log-likelihood: {sum(scores):.6f}")


@app.command("version")
def show_version():
    """Show hmmkit version information."""
    from .. import __version__

    console.print(Panel.fit(
        f"[bold]hmmkit Version {__version__}[/bold]\n"
        f"Hidden Markov Model inference and learning\n"
        f"Python {sys.version_info.major}.{sys.version_info.minor}.{sys.version_info.micro}",
        border_style="blue"
    ))


# Global options
@app.callback()
def main(
    ctx: typer.Context,
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable debug logging"),
    quiet: bool = typer.Option(False, "--quiet", "-q", help="Suppress all output except errors"),
    debug: bool = typer.Option(False, "--debug", help="Enable debug mode with detailed error traces"),
    config_file: Optional[Path] = typer.Option(
        None,
        "--config",
        "-c",
        help="Path to JSON configuration file",
        exists=True,
        file_okay=True,
        dir_okay=False
    ),
    log_file: Optional[Path] = typer.Option(
        None,
        "--log-file",
        help="Also write log records to this file",
        dir_okay=False
    )
):
    """
    hmmkit: Hidden Markov Model inference and learning.

    Sequence files are JSON lists of sequences: integers for discrete
    models, numbers for Gaussian ones, lists of numbers for multigaussian.
    """
    # Read back by the commands' error handlers
    ctx.meta["debug"] = debug

    if quiet:
        set_log_level('ERROR')
    elif verbose or debug:
        set_log_level('DEBUG')
    else:
        set_log_level('WARNING')

    if config_file:
        try:
            load_config_file(str(config_file))
        except ValueError as e:
            handle_cli_error(InputFileError(str(e)), "configuration loading", debug)

    if log_file:
        try:
            enable_file_logging(str(log_file))
        except OSError as e:
            handle_cli_error(InputFileError(f"Cannot open log file {log_file}: {e}"), "logging setup", debug)


def cli_main():
    """Entry point of the hmmkit console script."""
    try:
        app()
    except KeyboardInterrupt:
        console.print("\n[yellow]Operation cancelled by user[/yellow]")
        sys.exit(EXIT_CODES["general_error"])


if __name__ == "__main__":
    cli_main()
