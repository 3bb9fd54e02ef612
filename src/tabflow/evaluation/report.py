"""
Reporting: console tables, prediction exports and plots.
"""

from pathlib import Path

import matplotlib

matplotlib.use("Agg")

import matplotlib.pyplot as plt  # noqa: E402
import pandas as pd  # noqa: E402
from rich.console import Console  # noqa: E402
from rich.table import Table  # noqa: E402

from tabflow.evaluation.metrics import rmse, rsq  # noqa: E402
from tabflow.utils.logging import get_logger  # noqa: E402

log = get_logger(__name__)


def _format_cell(value: object) -> str:
    if isinstance(value, float):
        return f"{value:.4f}" if abs(value) < 1000 else f"{value:,.1f}"
    return str(value)


def print_metrics_table(
    df: pd.DataFrame,
    title: str = "Metrics",
    console: Console | None = None,
) -> None:
    """
    Print a metrics (or any small) DataFrame as a rich table.

    Metric columns ('.metric', '.estimate', 'mean') are highlighted.

    Args:
        df: Table to print.
        title: Table title.
        console: Rich console; a new one is created if not given.
    """
    if console is None:
        console = Console()

    table = Table(title=title)
    for col in df.columns:
        if col in (".metric", "id", "id2"):
            style = "cyan"
        elif col in (".estimate", "mean"):
            style = "green"
        elif col == "std_err":
            style = "yellow"
        else:
            style = None
        table.add_column(str(col), style=style)

    for row in df.itertuples(index=False):
        table.add_row(*(_format_cell(v) for v in row))

    console.print(table)


def save_predictions(df: pd.DataFrame, path: Path) -> Path:
    """
    Save a predictions table as CSV.

    Args:
        df: Predictions, e.g. from ``collect_predictions()``.
        path: Output CSV path; parent directories are created.

    Returns:
        The written path.
    """
    path.parent.mkdir(parents=True, exist_ok=True)
    df.to_csv(path, index=False)
    log.info("Saved predictions", path=str(path), n_rows=len(df))
    return path


def plot_predictions(
    predictions: pd.DataFrame,
    outcome: str,
    path: Path,
    *,
    title: str | None = None,
) -> Path:
    """
    Save an observed-versus-predicted scatterplot.

    Args:
        predictions: Table with '.pred' and the outcome column.
        outcome: Outcome column name.
        path: Output image path (PNG).
        title: Plot title.

    Returns:
        The written path.
    """
    if ".pred" not in predictions.columns or outcome not in predictions.columns:
        msg = f"Predictions need '.pred' and '{outcome}' columns"
        raise ValueError(msg)

    y_true = predictions[outcome].to_numpy(dtype=float)
    y_pred = predictions[".pred"].to_numpy(dtype=float)

    fig, ax = plt.subplots(figsize=(8, 6))
    ax.scatter(y_true, y_pred, alpha=0.5, s=20, c="steelblue", edgecolors="none")

    # Identity line
    lo = min(y_true.min(), y_pred.min())
    hi = max(y_true.max(), y_pred.max())
    ax.plot([lo, hi], [lo, hi], "r--", alpha=0.8, linewidth=2, label="Identity (y=x)")

    ax.text(
        0.05,
        0.95,
        f"RMSE = {rmse(y_true, y_pred):.3f}\nR² = {rsq(y_true, y_pred):.4f}",
        transform=ax.transAxes,
        fontsize=10,
        verticalalignment="top",
        bbox={"boxstyle": "round", "facecolor": "white", "alpha": 0.8},
    )
    ax.set_xlabel(f"Observed {outcome}", fontsize=11)
    ax.set_ylabel(f"Predicted {outcome}", fontsize=11)
    ax.set_title(title or f"Observed vs predicted {outcome}", fontsize=12)
    ax.set_aspect("equal", adjustable="datalim")
    ax.legend(loc="lower right")
    ax.grid(True, alpha=0.3)

    path.parent.mkdir(parents=True, exist_ok=True)
    fig.tight_layout()
    fig.savefig(path, dpi=100)
    plt.close(fig)

    log.info("Saved prediction plot", path=str(path))
    return path
