"""
Regression metrics and metric sets.

Metrics are plain functions of (y_true, y_pred) with a known
optimization direction. A MetricSet bundles several of them and
returns one tidy row per metric.
"""

from collections.abc import Callable
from dataclasses import dataclass
from typing import Any

import numpy as np
import pandas as pd
from sklearn.metrics import (
    max_error as sklearn_max_error,
)
from sklearn.metrics import (
    make_scorer,
    mean_absolute_error,
    mean_squared_error,
    r2_score,
)

from tabflow.schemas.output import MetricSummarySchema, MetricTableSchema
from tabflow.utils.logging import get_logger

log = get_logger(__name__)

DEFAULT_METRICS = ("rmse", "rsq")


def _as_arrays(y_true: np.ndarray, y_pred: np.ndarray) -> tuple[np.ndarray, np.ndarray]:
    return np.asarray(y_true, dtype=float).ravel(), np.asarray(y_pred, dtype=float).ravel()


def rmse(y_true: np.ndarray, y_pred: np.ndarray) -> float:
    """Root mean squared error."""
    y_true, y_pred = _as_arrays(y_true, y_pred)
    return float(np.sqrt(mean_squared_error(y_true, y_pred)))


def rsq(y_true: np.ndarray, y_pred: np.ndarray) -> float:
    """
    R² as the squared Pearson correlation of truth and prediction.

    Always in [0, 1]. NaN when either side is constant.
    """
    y_true, y_pred = _as_arrays(y_true, y_pred)
    if len(y_true) < 2 or np.std(y_true) == 0 or np.std(y_pred) == 0:
        log.warning("rsq undefined for constant truth or prediction")
        return float("nan")
    return float(np.corrcoef(y_true, y_pred)[0, 1] ** 2)


def rsq_trad(y_true: np.ndarray, y_pred: np.ndarray) -> float:
    """Traditional R²: 1 - SSE / SST. Can be negative."""
    y_true, y_pred = _as_arrays(y_true, y_pred)
    return float(r2_score(y_true, y_pred))


def mae(y_true: np.ndarray, y_pred: np.ndarray) -> float:
    """Mean absolute error."""
    y_true, y_pred = _as_arrays(y_true, y_pred)
    return float(mean_absolute_error(y_true, y_pred))


def mape(y_true: np.ndarray, y_pred: np.ndarray) -> float:
    """
    Mean absolute percentage error, in percent.

    A zero truth value with a nonzero error makes the result infinite.
    """
    y_true, y_pred = _as_arrays(y_true, y_pred)
    with np.errstate(divide="ignore", invalid="ignore"):
        return float(np.mean(np.abs((y_true - y_pred) / y_true)) * 100.0)


def huber_loss(y_true: np.ndarray, y_pred: np.ndarray, delta: float = 1.0) -> float:
    """Huber loss: quadratic for small errors, linear beyond delta."""
    y_true, y_pred = _as_arrays(y_true, y_pred)
    err = np.abs(y_true - y_pred)
    loss = np.where(err <= delta, 0.5 * err**2, delta * (err - 0.5 * delta))
    return float(np.mean(loss))


def ccc(y_true: np.ndarray, y_pred: np.ndarray) -> float:
    """Concordance correlation coefficient."""
    y_true, y_pred = _as_arrays(y_true, y_pred)
    if len(y_true) < 2:
        return float("nan")
    mean_t, mean_p = y_true.mean(), y_pred.mean()
    var_t, var_p = y_true.var(ddof=1), y_pred.var(ddof=1)
    cov = np.cov(y_true, y_pred, ddof=1)[0, 1]
    denom = var_t + var_p + (mean_t - mean_p) ** 2
    if denom == 0:
        return float("nan")
    return float(2 * cov / denom)


def max_error(y_true: np.ndarray, y_pred: np.ndarray) -> float:
    """Largest absolute error."""
    y_true, y_pred = _as_arrays(y_true, y_pred)
    return float(sklearn_max_error(y_true, y_pred))


@dataclass(frozen=True)
class Metric:
    """
    A named regression metric.

    Attributes:
        name: Metric name, e.g. 'rmse'.
        fn: Callable of (y_true, y_pred) -> float.
        direction: 'minimize' or 'maximize'.
    """

    name: str
    fn: Callable[[np.ndarray, np.ndarray], float]
    direction: str

    def __call__(self, y_true: np.ndarray, y_pred: np.ndarray) -> float:
        return self.fn(y_true, y_pred)

    @property
    def greater_is_better(self) -> bool:
        """Whether larger values are better."""
        return self.direction == "maximize"


METRIC_REGISTRY: dict[str, Metric] = {
    m.name: m
    for m in (
        Metric("rmse", rmse, "minimize"),
        Metric("rsq", rsq, "maximize"),
        Metric("rsq_trad", rsq_trad, "maximize"),
        Metric("mae", mae, "minimize"),
        Metric("mape", mape, "minimize"),
        Metric("huber_loss", huber_loss, "minimize"),
        Metric("ccc", ccc, "maximize"),
        Metric("max_error", max_error, "minimize"),
    )
}


def get_metric(name: str) -> Metric:
    """
    Look up a metric by name.

    Raises:
        KeyError: If the metric is unknown.
    """
    if name not in METRIC_REGISTRY:
        available = ", ".join(METRIC_REGISTRY)
        msg = f"Unknown metric '{name}'. Available: {available}"
        raise KeyError(msg)
    return METRIC_REGISTRY[name]


@dataclass(frozen=True)
class MetricSet:
    """An ordered set of metrics evaluated together."""

    metrics: tuple[Metric, ...]

    @property
    def names(self) -> list[str]:
        """Metric names in order."""
        return [m.name for m in self.metrics]

    def __call__(self, y_true: np.ndarray, y_pred: np.ndarray) -> pd.DataFrame:
        """
        Evaluate every metric.

        Returns:
            DataFrame with columns '.metric', '.estimator', '.estimate'.
        """
        y_true, y_pred = _as_arrays(y_true, y_pred)
        if len(y_true) == 0:
            log.warning("Empty arrays provided for metrics")
        table = pd.DataFrame(
            {
                ".metric": self.names,
                ".estimator": "standard",
                ".estimate": [
                    m(y_true, y_pred) if len(y_true) else float("nan")
                    for m in self.metrics
                ],
            }
        )
        return MetricTableSchema.validate(table)

    def to_dict(self, y_true: np.ndarray, y_pred: np.ndarray) -> dict[str, float]:
        """Evaluate every metric into a name -> value dict."""
        table = self(y_true, y_pred)
        return dict(zip(table[".metric"], table[".estimate"], strict=True))


def metric_set(*names: str) -> MetricSet:
    """
    Bundle metrics by name: ``metric_set("rmse", "rsq", "mae")``.

    With no names, the default set (rmse, rsq) is returned.

    Raises:
        KeyError: If a name is unknown.
        ValueError: If a name is repeated.
    """
    names = names or DEFAULT_METRICS
    if len(set(names)) != len(names):
        msg = f"Duplicate metrics in set: {list(names)}"
        raise ValueError(msg)
    return MetricSet(tuple(get_metric(n) for n in names))


def as_metric_set(metrics: "MetricSet | list[str] | tuple[str, ...] | None") -> MetricSet:
    """Coerce None, a list of names or a MetricSet into a MetricSet."""
    if isinstance(metrics, MetricSet):
        return metrics
    return metric_set(*(metrics or ()))


def build_scorers(metrics: MetricSet) -> dict[str, Any]:
    """
    Build one scikit-learn scorer per metric.

    Scorers keep the raw metric value (no sign flip), so minimized
    metrics such as rmse are reported as-is.
    """
    return {m.name: make_scorer(m.fn, greater_is_better=True) for m in metrics.metrics}


def summarize_metrics(
    metrics: pd.DataFrame,
    group_cols: list[str] | None = None,
) -> pd.DataFrame:
    """
    Summarize per-resample metrics into mean, count and standard error.

    Args:
        metrics: Long-format metrics with '.metric', '.estimator',
            '.estimate' and '.config' columns.
        group_cols: Extra grouping columns placed before '.metric'.

    Returns:
        DataFrame with '.metric', '.estimator', 'mean', 'n', 'std_err'
        and '.config'.
    """
    group_cols = group_cols or []
    keys = [*group_cols, ".metric", ".estimator", ".config"]
    summary = (
        metrics.groupby(keys, sort=False)[".estimate"]
        .agg(mean="mean", n="count", std="std")
        .reset_index()
    )
    summary["std_err"] = summary["std"] / np.sqrt(summary["n"])

    columns = [*group_cols, ".metric", ".estimator", "mean", "n", "std_err", ".config"]
    return MetricSummarySchema.validate(summary[columns])
