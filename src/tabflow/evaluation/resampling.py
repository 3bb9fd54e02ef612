"""
Performance estimation by resampling.

Each resample's analysis set is used to fit the workflow and its
assessment set to compute metrics. Results are kept in long (tidy)
format with one row per resample and metric.
"""

import time
from dataclasses import dataclass

import numpy as np
import pandas as pd
from sklearn.model_selection import cross_validate

from tabflow.data.splitting import ResampleSet
from tabflow.evaluation.metrics import (
    MetricSet,
    as_metric_set,
    build_scorers,
    summarize_metrics,
)
from tabflow.modeling.workflow import Workflow
from tabflow.utils.logging import get_logger

log = get_logger(__name__)

DEFAULT_CONFIG = "Preprocessor1_Model1"


def _long_metrics(
    scores: dict[str, np.ndarray],
    resamples: ResampleSet,
    metrics: MetricSet,
    config: str,
) -> pd.DataFrame:
    ids = resamples.ids
    frames = []
    for name in metrics.names:
        frame = ids.copy()
        frame[".metric"] = name
        frame[".estimator"] = "standard"
        frame[".estimate"] = np.asarray(scores[f"test_{name}"], dtype=float)
        frame[".config"] = config
        frames.append(frame)
    return pd.concat(frames, ignore_index=True)


@dataclass(frozen=True, eq=False)
class ResampleResults:
    """
    Metrics (and optionally predictions) from fitting a workflow to resamples.

    Attributes:
        workflow: The evaluated workflow.
        metrics: Per-resample metrics in long format.
        predictions: Assessment-set predictions, when saved.
        metric_set: Metrics that were computed.
        fit_time_s: Total wall time in seconds.
    """

    workflow: Workflow
    metrics: pd.DataFrame
    predictions: pd.DataFrame | None
    metric_set: MetricSet
    fit_time_s: float = 0.0

    def collect_metrics(self, summarize: bool = True) -> pd.DataFrame:
        """
        Collect resampled metrics.

        Args:
            summarize: If True, average over resamples; otherwise return
                one row per resample and metric.
        """
        if not summarize:
            return self.metrics.copy()
        return summarize_metrics(self.metrics)

    def collect_predictions(self) -> pd.DataFrame:
        """
        Collect assessment-set predictions.

        Raises:
            ValueError: If predictions were not saved.
        """
        if self.predictions is None:
            msg = "Predictions were not saved; rerun with save_pred=True"
            raise ValueError(msg)
        return self.predictions.copy()

    def mean_metrics(self) -> dict[str, float]:
        """Metric name -> mean over resamples."""
        summary = self.collect_metrics()
        return dict(zip(summary[".metric"], summary["mean"], strict=True))


def _assessment_predictions(
    estimators: list,
    resamples: ResampleSet,
    X: pd.DataFrame,
    y: pd.Series,
    config: str,
) -> pd.DataFrame:
    frames = []
    for estimator, resample in zip(estimators, resamples, strict=True):
        rows = resample.assessment_id
        frame = pd.DataFrame(
            {
                "id": resample.id,
                ".row": rows,
                ".pred": estimator.predict(X.iloc[rows]),
                y.name: y.iloc[rows].to_numpy(),
                ".config": config,
            }
        )
        if resample.id2:
            frame.insert(1, "id2", resample.id2)
        frames.append(frame)
    return pd.concat(frames, ignore_index=True)


def fit_resamples(
    workflow: Workflow,
    resamples: ResampleSet,
    metrics: MetricSet | list[str] | None = None,
    *,
    save_pred: bool = False,
    config: str = DEFAULT_CONFIG,
) -> ResampleResults:
    """
    Fit a workflow to every resample and compute assessment-set metrics.

    Preprocessing is re-estimated within each resample, so no information
    from an assessment set leaks into the fitted recipe.

    Args:
        workflow: Workflow with recipe and finalized model.
        resamples: Resampling set, e.g. from vfold_cv().
        metrics: Metric set or metric names (default rmse, rsq).
        save_pred: Keep the assessment-set predictions.
        config: Label for the '.config' column.

    Returns:
        ResampleResults.

    Raises:
        ValueError: If the workflow is incomplete or still has tuning
            placeholders.
    """
    metric_set = as_metric_set(metrics)
    X, y = workflow.xy(resamples.data)
    clip_max = float(y.max()) * 2.0 if workflow.target_transform else None
    estimator = workflow.build_pipeline(clip_max=clip_max)

    log.info(
        "Fitting resamples",
        method=resamples.method,
        n_resamples=len(resamples),
        metrics=metric_set.names,
    )

    start = time.perf_counter()
    scores = cross_validate(
        estimator,
        X,
        y,
        cv=resamples.splits(),
        scoring=build_scorers(metric_set),
        return_estimator=save_pred,
        error_score="raise",
    )
    elapsed = time.perf_counter() - start

    long_metrics = _long_metrics(scores, resamples, metric_set, config)
    predictions = (
        _assessment_predictions(scores["estimator"], resamples, X, y, config)
        if save_pred
        else None
    )

    results = ResampleResults(
        workflow=workflow,
        metrics=long_metrics,
        predictions=predictions,
        metric_set=metric_set,
        fit_time_s=elapsed,
    )
    log.info(
        "Resampling complete",
        fit_time_s=round(elapsed, 2),
        **{k: round(v, 4) for k, v in results.mean_metrics().items()},
    )
    return results
