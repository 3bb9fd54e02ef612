"""
Model comparison experiment.

Question: Which model type gives the lowest resampled RMSE for the
configured dataset and recipe?

Every candidate model is paired with the same recipe and evaluated on
the same resamples of the training set, so differences come from the
model alone. The test set is not touched.
"""

from pathlib import Path

import mlflow
import pandas as pd
from rich.console import Console

from tabflow.config import load_config
from tabflow.evaluation.experiment import ExperimentTracker
from tabflow.evaluation.report import print_metrics_table
from tabflow.evaluation.resampling import fit_resamples
from tabflow.modeling.models import (
    ModelSpec,
    boost_tree,
    linear_reg,
    nearest_neighbor,
    rand_forest,
)
from tabflow.pipeline import ModelingPipeline

CANDIDATES: dict[str, ModelSpec] = {
    "linear_reg": linear_reg(),
    "lasso": linear_reg(penalty=0.01, mixture=1.0),
    "rand_forest": rand_forest(trees=200),
    "boost_tree": boost_tree(trees=200, learn_rate=0.1),
    "knn": nearest_neighbor(neighbors=10),
}


def run_model_comparison(
    config_path: Path,
    candidates: dict[str, ModelSpec] | None = None,
    *,
    track: bool = False,
) -> pd.DataFrame:
    """
    Run model comparison experiment.

    Args:
        config_path: Path to configuration file.
        candidates: Name -> model spec; defaults to CANDIDATES.
        track: Log one nested MLflow run per candidate.

    Returns:
        Summarized resampled metrics with a 'model' column.
    """
    config = load_config(config_path)
    candidates = candidates or CANDIDATES
    pipeline = ModelingPipeline(config)

    data_split = pipeline.split(pipeline.load_data())
    training = data_split.training()
    resamples = pipeline.resample(training)
    base = pipeline.build_workflow(training)

    tracker = ExperimentTracker(config) if track else None
    if tracker is not None:
        tracker.start_run(f"{config.project}-model-comparison")

    summaries = []
    try:
        for name, spec in candidates.items():
            results = fit_resamples(base.update_model(spec), resamples, metrics=pipeline.metrics)
            summary = results.collect_metrics()
            summary.insert(0, "model", name)
            summaries.append(summary)

            if tracker is not None:
                with mlflow.start_run(run_name=f"eval-{name}", nested=True):
                    mlflow.set_tag("model_name", name)
                    tracker.log_metrics({f"cv_{k}": v for k, v in results.mean_metrics().items()})
    finally:
        if tracker is not None:
            tracker.end_run()

    comparison = pd.concat(summaries, ignore_index=True)
    rmse = comparison[comparison[".metric"] == "rmse"].sort_values("mean")
    print_metrics_table(rmse, title=f"{config.project}: resampled RMSE by model", console=Console())
    return comparison


if __name__ == "__main__":
    import sys

    if len(sys.argv) < 2:
        print("Usage: python model_comparison.py <config_path> [--mlflow]")
        sys.exit(1)

    run_model_comparison(Path(sys.argv[1]), track="--mlflow" in sys.argv[2:])
