"""
Evaluation layer: metrics, resampled performance and the final test-set fit.
"""

from tabflow.evaluation.metrics import METRIC_REGISTRY, Metric, MetricSet, metric_set
from tabflow.evaluation.resampling import ResampleResults, fit_resamples
from tabflow.evaluation.final import LastFitResult, last_fit

__all__ = [
    "METRIC_REGISTRY",
    "LastFitResult",
    "Metric",
    "MetricSet",
    "ResampleResults",
    "fit_resamples",
    "last_fit",
    "metric_set",
]
