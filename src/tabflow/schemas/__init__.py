"""
Schema definitions using Pandera for data validation.

Data contracts for the frames that flow between workflow steps:
input datasets, predictions and metric tables.
"""

from tabflow.schemas.dataset import build_dataset_schema
from tabflow.schemas.output import (
    MetricSummarySchema,
    MetricTableSchema,
    PredictionSchema,
)

__all__ = [
    "MetricSummarySchema",
    "MetricTableSchema",
    "PredictionSchema",
    "build_dataset_schema",
]
