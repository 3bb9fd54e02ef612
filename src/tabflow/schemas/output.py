"""
Pandera schemas for workflow outputs.

Column names follow the tidy conventions used throughout the package:
a leading dot marks columns that the package adds (``.pred``, ``.metric``).
"""

import pandera.pandas as pa
from pandera.typing import Series


class PredictionSchema(pa.DataFrameModel):
    """Schema for numeric predictions returned by a fitted workflow."""

    pred: Series[float] = pa.Field(
        alias=".pred",
        nullable=False,
        description="Predicted outcome on the original scale",
    )

    class Config:
        """Schema configuration."""

        name = "PredictionSchema"
        strict = False
        coerce = True


class MetricTableSchema(pa.DataFrameModel):
    """Schema for one-row-per-metric tables produced by a metric set."""

    metric: Series[str] = pa.Field(alias=".metric")
    estimator: Series[str] = pa.Field(alias=".estimator", isin=["standard"])
    estimate: Series[float] = pa.Field(alias=".estimate", nullable=True)

    class Config:
        """Schema configuration."""

        name = "MetricTableSchema"
        strict = False
        coerce = True


class MetricSummarySchema(pa.DataFrameModel):
    """Schema for resampled metrics summarized across folds."""

    metric: Series[str] = pa.Field(alias=".metric")
    estimator: Series[str] = pa.Field(alias=".estimator")
    mean: Series[float] = pa.Field(nullable=True)
    n: Series[int] = pa.Field(ge=0)
    std_err: Series[float] = pa.Field(nullable=True)
    config_label: Series[str] = pa.Field(alias=".config")

    class Config:
        """Schema configuration."""

        name = "MetricSummarySchema"
        strict = False
        coerce = True
