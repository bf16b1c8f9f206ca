"""
Command-line interface for NCA distance learning.
"""

import json
import logging
import sys
from pathlib import Path
from typing import Any, Dict, Optional, Tuple

import click
import numpy as np
from click.core import ParameterSource
from rich.console import Console
from rich.markup import escape
from rich.table import Table

from . import __version__
from .config import (
    ConfigurationError,
    NCAConfig,
    build_config,
    create_default_config,
    load_raw_config,
    resolve_seed,
)
from .evaluate import neighbor_metrics
from .io import load_labels, load_matrix, save_matrix, split_labels
from .labels import normalize_labels
from .manifest import RunManifest
from .nca import NCA
from .preprocess import fit_whitening, save_whitening, transform_whitening
from .utils import configure_logging, section

console = Console()
logger = logging.getLogger(__name__)

# Command-line option -> location in the nested configuration.
OPTION_PATHS: Dict[str, Tuple[str, ...]] = {
    "optimizer": ("optimizer",),
    "normalize": ("normalize",),
    "max_iterations": ("max_iterations",),
    "tolerance": ("tolerance",),
    "seed": ("seed",),
    "step_size": ("sgd", "step_size"),
    "linear_scan": ("sgd", "linear_scan"),
    "batch_size": ("sgd", "batch_size"),
    "num_basis": ("lbfgs", "num_basis"),
    "armijo_constant": ("lbfgs", "armijo_constant"),
    "wolfe": ("lbfgs", "wolfe"),
    "max_line_search_trials": ("lbfgs", "max_line_search_trials"),
    "min_step": ("lbfgs", "min_step"),
    "max_step": ("lbfgs", "max_step"),
}


def print_banner():
    """Print banner."""
    console.print(f"""
[bold blue]nca-metric[/bold blue] [dim]v{__version__}[/dim]
[italic]Neighborhood Components Analysis distance learning[/italic]
""")


def _resolve_config(ctx: click.Context, config_path: Optional[str]) -> NCAConfig:
    """Merge the YAML config with options given on the command line."""
    raw: Dict[str, Any] = load_raw_config(config_path) if config_path else {}
    for name, path in OPTION_PATHS.items():
        if ctx.get_parameter_source(name) is not ParameterSource.COMMANDLINE:
            continue
        node = raw
        for key in path[:-1]:
            node = node.setdefault(key, {})
        node[path[-1]] = ctx.params[name]
    return build_config(raw)


def _load_dataset(input_path: str, labels_path: Optional[str]) -> Tuple[np.ndarray, np.ndarray]:
    matrix = load_matrix(input_path)
    if labels_path:
        return matrix, load_labels(labels_path)
    return split_labels(matrix)


def _fail(message: str) -> None:
    console.print(f"[red]{escape(message)}[/red]")
    sys.exit(1)


@click.group(invoke_without_command=True)
@click.option("--version", is_flag=True, help="Show version and exit")
@click.pass_context
def main(ctx, version):
    """nca-metric: learn a Mahalanobis distance with Neighborhood Components Analysis."""
    if version:
        click.echo(f"nca-metric v{__version__}")
        sys.exit(0)

    if ctx.invoked_subcommand is None:
        print_banner()
        click.echo(ctx.get_help())


@main.command()
@click.option("--config", "-c", default="nca.config.yaml",
              help="Configuration file path", type=click.Path())
@click.option("--force", is_flag=True, help="Overwrite existing files")
def init(config: str, force: bool):
    """Write a default configuration file."""
    config_path = Path(config)
    if config_path.exists() and not force:
        console.print(f"[red]Configuration file already exists: {config_path}[/red]")
        console.print("Use --force to overwrite")
        sys.exit(1)

    create_default_config(config_path)
    console.print(f"✓ Created configuration: [green]{config_path}[/green]")


@main.command()
@click.argument("input_path", type=click.Path(exists=True, dir_okay=False))
@click.option("--labels", "-l", "labels_path", type=click.Path(exists=True, dir_okay=False),
              help="Labels for the input dataset (default: last column of INPUT)")
@click.option("--output", "-o", type=click.Path(dir_okay=False),
              help="Output matrix for the learned distance transform")
@click.option("--config", "-c", "config_path", type=click.Path(exists=True, dir_okay=False),
              help="Configuration file")
@click.option("--optimizer", "-O", type=str, default="sgd", help="Optimizer to use; 'sgd' or 'lbfgs'")
@click.option("--normalize", "-N", is_flag=True,
              help="Use a normalized starting point (useful when points are far apart or SGD returns NaN)")
@click.option("--max-iterations", "-n", type=int, default=500000,
              help="Maximum iterations for SGD or L-BFGS (0 indicates no limit)")
@click.option("--tolerance", "-t", type=float, default=1e-7,
              help="Maximum tolerance for termination of SGD or L-BFGS")
@click.option("--step-size", "-a", type=float, default=0.01, help="Step size for SGD (alpha)")
@click.option("--linear-scan", "-L", is_flag=True,
              help="Don't shuffle the order in which data points are visited for SGD")
@click.option("--batch-size", "-b", type=int, default=50, help="Batch size for mini-batch SGD")
@click.option("--num-basis", "-B", type=int, default=5, help="Number of memory points for L-BFGS")
@click.option("--armijo-constant", "-A", type=float, default=1e-4, help="Armijo constant for L-BFGS")
@click.option("--wolfe", "-w", type=float, default=0.9, help="Wolfe condition parameter for L-BFGS")
@click.option("--max-line-search-trials", "-T", type=int, default=50,
              help="Maximum number of line search trials for L-BFGS")
@click.option("--min-step", "-m", type=float, default=1e-20, help="Minimum line search step for L-BFGS")
@click.option("--max-step", "-M", type=float, default=1e20, help="Maximum line search step for L-BFGS")
@click.option("--seed", "-s", type=int, default=0, help="Random seed; 0 uses the current time")
@click.option("--verbose", "-v", is_flag=True, help="Log optimizer progress")
@click.pass_context
def learn(ctx, input_path: str, labels_path: Optional[str], output: Optional[str],
          config_path: Optional[str], verbose: bool, **_options):
    """Learn a distance transform from a labeled dataset.

    INPUT_PATH holds one point per row. Unless --labels is given, its last column
    is used as the labels. SGD counts one iteration per visited point, so
    --max-iterations equal to the number of points is a single pass.
    """
    configure_logging(verbose, console)

    try:
        config = _resolve_config(ctx, config_path)
        for notice in config.ignored_options():
            logger.warning(notice)
        if output is None:
            logger.warning("--output is not specified; no output will be saved")

        data, raw_labels = _load_dataset(input_path, labels_path)
        labels, mapping = normalize_labels(raw_labels)
        seed = resolve_seed(config.seed)
        model = NCA.from_config(data, labels, config, np.random.default_rng(seed))
        start = model.initial_transform(config.normalize)
    except (ConfigurationError, FileNotFoundError, ValueError) as exc:
        _fail(f"Error: {exc}")

    logger.info("%d points, %d features, %d classes", data.shape[0], data.shape[1], len(mapping))

    with section(f"NCA optimization ({config.optimizer})"):
        distance = model.learn_distance(start)
    result = model.result_

    table = Table(title="NCA result")
    table.add_column("Metric")
    table.add_column("Value", justify="right")
    table.add_row("Optimizer", config.optimizer)
    table.add_row("Termination", result.termination.value)
    table.add_row("Iterations", f"{result.iterations:,}")
    table.add_row("Objective", f"{result.objective:.6g}")
    table.add_row("Soft neighbor accuracy", f"{-result.objective / data.shape[0]:.4f}")
    table.add_row("Gradient norm", f"{result.gradient_norm:.3g}")
    console.print(table)

    if output is not None:
        output_path = save_matrix(distance, output)
        manifest = RunManifest(output_path.parent)
        manifest.set_config(config, seed=seed)
        manifest.register_artifact(
            "distance", output_path, "learn",
            metadata={"shape": list(distance.shape), "input": str(Path(input_path).resolve())},
        )
        manifest.record_result(result, config.optimizer, data.shape[0])
        console.print(f"✓ Saved learned distance to [green]{output_path}[/green]")


@main.command()
@click.argument("input_path", type=click.Path(exists=True, dir_okay=False))
@click.option("--output", "-o", required=True, type=click.Path(dir_okay=False),
              help="Output matrix for the whitened dataset")
@click.option("--artifacts", type=click.Path(dir_okay=False),
              help="Where to store the fitted whitening (joblib)")
@click.option("--epsilon", "-e", type=float, default=None,
              help="Eigenvalue regularization (overrides config)")
@click.option("--config", "-c", "config_path", type=click.Path(exists=True, dir_okay=False),
              help="Configuration file")
def whiten(input_path: str, output: str, artifacts: Optional[str],
           epsilon: Optional[float], config_path: Optional[str]):
    """PCA-whiten a dataset (one point per row)."""
    configure_logging(False, console)

    try:
        config = build_config(load_raw_config(config_path) if config_path else {})
        eps = config.whitening.epsilon if epsilon is None else epsilon
        data = load_matrix(input_path)
        fitted = fit_whitening(data, epsilon=eps)
    except (ConfigurationError, FileNotFoundError, ValueError) as exc:
        _fail(f"Error: {exc}")

    output_path = save_matrix(transform_whitening(data, fitted), output)
    console.print(f"✓ Saved whitened data to [green]{output_path}[/green]")
    if artifacts:
        artifact_path = save_whitening(fitted, artifacts)
        console.print(f"✓ Saved whitening artifacts to [green]{artifact_path}[/green]")


@main.command()
@click.argument("input_path", type=click.Path(exists=True, dir_okay=False))
@click.option("--labels", "-l", "labels_path", type=click.Path(exists=True, dir_okay=False),
              help="Labels for the input dataset (default: last column of INPUT)")
@click.option("--distance", "-d", type=click.Path(exists=True, dir_okay=False),
              help="Learned distance transform (default: Euclidean distance)")
@click.option("--output", "-o", type=click.Path(dir_okay=False), help="Write the report as JSON")
def evaluate(input_path: str, labels_path: Optional[str], distance: Optional[str],
             output: Optional[str]):
    """Report nearest-neighbor quality of a distance transform."""
    configure_logging(False, console)

    try:
        data, labels = _load_dataset(input_path, labels_path)
        transform = load_matrix(distance) if distance else None
        report = neighbor_metrics(data, labels, transform)
    except (ConfigurationError, FileNotFoundError, ValueError) as exc:
        _fail(f"Error: {exc}")

    table = Table(title="Neighbor metrics")
    table.add_column("Metric")
    table.add_column("Value", justify="right")
    for key, value in report.items():
        table.add_row(key, f"{value:.4f}" if not float(value).is_integer() else f"{int(value)}")
    console.print(table)

    if output:
        with open(output, "w", encoding="utf-8") as handle:
            json.dump(report, handle, indent=2)
        console.print(f"✓ Saved report to [green]{output}[/green]")


if __name__ == "__main__":
    main()
