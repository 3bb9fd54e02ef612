"""
Grid search over model arguments marked with ``tune()``.

Every candidate in the grid is evaluated on every resample with
scikit-learn's GridSearchCV (no refit). Results keep one ``.config``
label per candidate so they can be summarized, ranked and finalized.
"""

import time
from dataclasses import dataclass, replace
from typing import Any

import numpy as np
import pandas as pd
from sklearn.compose import TransformedTargetRegressor
from sklearn.model_selection import GridSearchCV, ParameterGrid

from tabflow.data.splitting import ResampleSet
from tabflow.evaluation.metrics import (
    MetricSet,
    as_metric_set,
    build_scorers,
    get_metric,
    summarize_metrics,
)
from tabflow.modeling.models import ModelSpec, is_tune, translate
from tabflow.modeling.workflow import Workflow
from tabflow.utils.logging import get_logger

log = get_logger(__name__)


def _tune_names(spec: ModelSpec) -> dict[str, tuple[str, str]]:
    """Tuning name -> (section, argument); the name is the tune id if given."""
    names: dict[str, tuple[str, str]] = {}
    for section in ("args", "engine_args"):
        for arg, value in getattr(spec, section).items():
            if is_tune(value):
                name = getattr(value, "id", None) or arg
                names[name] = (section, arg)
    return names


def _config_labels(n: int) -> list[str]:
    width = len(str(n))
    return [f"Preprocessor1_Model{i:0{width}d}" for i in range(1, n + 1)]


def _plain(value: Any) -> Any:
    # numpy scalars from DataFrame grids
    return value.item() if isinstance(value, np.generic) else value


def finalize_model(spec: ModelSpec, params: dict[str, Any]) -> ModelSpec:
    """
    Replace ``tune()`` placeholders in a model spec with values.

    Keys starting with '.' (such as '.config') are ignored.

    Raises:
        ValueError: If a key does not name a tuning placeholder.
    """
    names = _tune_names(spec)
    args = dict(spec.args)
    engine_args = dict(spec.engine_args)
    for key, value in params.items():
        if key.startswith("."):
            continue
        if key not in names:
            msg = (
                f"'{key}' is not marked for tuning in the {spec.model_type} spec. "
                f"Tunable: {sorted(names)}"
            )
            raise ValueError(msg)
        section, arg = names[key]
        target = args if section == "args" else engine_args
        target[arg] = _plain(value)
    return replace(spec, args=args, engine_args=engine_args)


def finalize_workflow(workflow: Workflow, params: dict[str, Any]) -> Workflow:
    """
    Return a workflow whose model has its tuning placeholders filled in.

    Args:
        workflow: Workflow with a tunable model.
        params: Argument values, e.g. the output of ``select_best()``.
    """
    if workflow.model is None:
        msg = "Workflow has no model; call add_model() first"
        raise ValueError(msg)
    model = finalize_model(workflow.model, params)
    log.info("Finalized workflow", model=workflow.model.model_type, params=params)
    return workflow.update_model(model)


def expand_grid(grid: dict[str, list[Any]] | pd.DataFrame) -> list[dict[str, Any]]:
    """
    Turn a grid into a list of candidates.

    A dict of name -> values is expanded to all combinations; a DataFrame
    is taken as one candidate per row.
    """
    if isinstance(grid, pd.DataFrame):
        return [
            {k: _plain(v) for k, v in row.items()} for row in grid.to_dict(orient="records")
        ]
    return [dict(candidate) for candidate in ParameterGrid(grid)]


@dataclass(frozen=True, eq=False)
class TuneResults:
    """
    Resampled metrics for every candidate of a tuning grid.

    Attributes:
        workflow: The tunable workflow.
        params: One row per candidate: parameter columns and '.config'.
        metrics: Long-format metrics per candidate, resample and metric.
        metric_set: Metrics that were computed.
        fit_time_s: Total wall time in seconds.
    """

    workflow: Workflow
    params: pd.DataFrame
    metrics: pd.DataFrame
    metric_set: MetricSet
    fit_time_s: float = 0.0

    @property
    def param_names(self) -> list[str]:
        """Names of the tuned parameters."""
        return [c for c in self.params.columns if c != ".config"]

    def collect_metrics(self, summarize: bool = True) -> pd.DataFrame:
        """
        Collect metrics for all candidates.

        Args:
            summarize: If True, average over resamples.

        Returns:
            Parameter columns followed by metric columns.
        """
        if not summarize:
            return self.metrics.copy()
        summary = summarize_metrics(self.metrics)
        merged = self.params.merge(summary, on=".config", how="right")
        columns = [*self.param_names, ".metric", ".estimator", "mean", "n", "std_err", ".config"]
        return merged[columns]

    def _metric_name(self, metric: str | None) -> str:
        if metric is None:
            metric = self.metric_set.names[0]
            log.warning("No metric given, ranking by the first metric", metric=metric)
        if metric not in self.metric_set.names:
            msg = f"Metric '{metric}' was not computed. Available: {self.metric_set.names}"
            raise ValueError(msg)
        return metric

    def show_best(self, metric: str | None = None, n: int = 5) -> pd.DataFrame:
        """
        Top candidates for a metric, best first.

        Ranking respects the metric direction: smallest mean first for
        minimized metrics, largest first for maximized ones.
        """
        metric = self._metric_name(metric)
        summary = self.collect_metrics()
        summary = summary[summary[".metric"] == metric]
        ascending = not get_metric(metric).greater_is_better
        ranked = summary.sort_values("mean", ascending=ascending, kind="stable")
        return ranked.head(n).reset_index(drop=True)

    def select_best(self, metric: str | None = None) -> dict[str, Any]:
        """
        Parameter values of the best candidate, with its '.config'.

        Raises:
            ValueError: If the metric was not computed.
        """
        best = self.show_best(metric, n=1).iloc[0]
        return {name: _plain(best[name]) for name in [*self.param_names, ".config"]}


def tune_grid(
    workflow: Workflow,
    resamples: ResampleSet,
    grid: dict[str, list[Any]] | pd.DataFrame,
    metrics: MetricSet | list[str] | None = None,
) -> TuneResults:
    """
    Evaluate a grid of candidate arguments over resamples.

    Args:
        workflow: Workflow whose model has ``tune()`` placeholders.
        resamples: Resampling set.
        grid: Dict of name -> values, or DataFrame with one candidate per row.
        metrics: Metric set or metric names (default rmse, rsq).

    Returns:
        TuneResults.

    Raises:
        ValueError: If the model has nothing to tune, the grid names an
            argument that is not marked for tuning, or leaves a
            placeholder without values.
    """
    if workflow.model is None:
        msg = "Workflow has no model; call add_model() first"
        raise ValueError(msg)
    tunable = _tune_names(workflow.model)
    if not tunable:
        msg = "Model has no arguments marked with tune()"
        raise ValueError(msg)

    candidates = expand_grid(grid)
    # ParameterGrid({}) yields a single empty candidate
    if not candidates or not candidates[0]:
        msg = "Tuning grid is empty"
        raise ValueError(msg)
    names = list(candidates[0])
    unknown = sorted(set(names) - set(tunable))
    if unknown:
        msg = f"Grid arguments {unknown} are not marked for tuning. Tunable: {sorted(tunable)}"
        raise ValueError(msg)
    missing = sorted(set(tunable) - set(names))
    if missing:
        msg = f"No grid values for tuning arguments {missing}"
        raise ValueError(msg)

    metric_set = as_metric_set(metrics)
    X, y = workflow.xy(resamples.data)
    clip_max = float(y.max()) * 2.0 if workflow.target_transform else None
    estimators = [
        translate(finalize_model(workflow.model, c), seed=workflow.seed) for c in candidates
    ]
    estimator = workflow.build_pipeline(clip_max=clip_max, estimator=estimators[0])
    step = "regressor__model" if isinstance(estimator, TransformedTargetRegressor) else "model"

    # One single-point grid per candidate keeps the candidate order in cv_results_
    param_grid = [{step: [e]} for e in estimators]
    configs = _config_labels(len(candidates))

    log.info(
        "Tuning grid",
        n_candidates=len(candidates),
        n_resamples=len(resamples),
        params=names,
    )
    start = time.perf_counter()
    search = GridSearchCV(
        estimator,
        param_grid=param_grid,
        scoring=build_scorers(metric_set),
        cv=resamples.splits(),
        refit=False,
        error_score="raise",
    )
    search.fit(X, y)
    elapsed = time.perf_counter() - start

    params = pd.DataFrame(candidates, columns=names)
    params[".config"] = configs

    results = search.cv_results_
    ids = resamples.ids
    frames = []
    for c, config in enumerate(configs):
        for name in metric_set.names:
            frame = ids.copy()
            frame[".metric"] = name
            frame[".estimator"] = "standard"
            frame[".estimate"] = [
                float(results[f"split{i}_test_{name}"][c]) for i in range(len(resamples))
            ]
            frame[".config"] = config
            frames.append(frame)
    long_metrics = pd.concat(frames, ignore_index=True)

    tuned = TuneResults(
        workflow=workflow,
        params=params,
        metrics=long_metrics,
        metric_set=metric_set,
        fit_time_s=elapsed,
    )
    log.info("Tuning complete", fit_time_s=round(elapsed, 2))
    return tuned
