"""Final fit: train on the full training set, evaluate once on the test set."""

from dataclasses import dataclass

import pandas as pd

from tabflow.data.splitting import DataSplit
from tabflow.evaluation.metrics import MetricSet, as_metric_set
from tabflow.modeling.workflow import FittedWorkflow, Workflow
from tabflow.utils.logging import get_logger

log = get_logger(__name__)


@dataclass(frozen=True, eq=False)
class LastFitResult:
    """
    Result of fitting on the training set and evaluating on the test set.

    Attributes:
        fitted: Workflow fitted on the training set.
        metrics: Test-set metrics ('.metric', '.estimator', '.estimate', '.config').
        predictions: Test-set predictions with '.row', '.pred' and the outcome.
        split: The initial split.
    """

    fitted: FittedWorkflow
    metrics: pd.DataFrame
    predictions: pd.DataFrame
    split: DataSplit

    def collect_metrics(self) -> pd.DataFrame:
        """Test-set metrics."""
        return self.metrics.copy()

    def collect_predictions(self) -> pd.DataFrame:
        """Test-set predictions."""
        return self.predictions.copy()

    def extract_workflow(self) -> FittedWorkflow:
        """The workflow fitted on the training set."""
        return self.fitted

    def metrics_dict(self) -> dict[str, float]:
        """Metric name -> test-set estimate."""
        return dict(zip(self.metrics[".metric"], self.metrics[".estimate"], strict=True))


def last_fit(
    workflow: Workflow,
    split: DataSplit,
    metrics: MetricSet | list[str] | None = None,
) -> LastFitResult:
    """
    Fit a finalized workflow on the training set and evaluate it on the test set.

    Args:
        workflow: Workflow with recipe and finalized model.
        split: Initial train/test split.
        metrics: Metric set or metric names (default rmse, rsq).

    Returns:
        LastFitResult.
    """
    metric_set = as_metric_set(metrics)
    fitted = workflow.fit(split.training())

    testing = split.testing()
    outcome = fitted.outcome
    preds = fitted.predict(testing)

    predictions = pd.DataFrame(
        {
            ".row": split.out_id,
            ".pred": preds[".pred"].to_numpy(),
            outcome: testing[outcome].to_numpy(),
        }
    )
    predictions[".config"] = "Preprocessor1_Model1"

    table = metric_set(testing[outcome].to_numpy(), preds[".pred"].to_numpy())
    table[".config"] = "Preprocessor1_Model1"

    log.info(
        "Last fit complete",
        n_train=split.n_train,
        n_test=split.n_test,
        **dict(zip(table[".metric"], table[".estimate"].round(4), strict=True)),
    )
    return LastFitResult(fitted=fitted, metrics=table, predictions=predictions, split=split)
