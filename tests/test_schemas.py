"""Tests for Pandera schema definitions."""

import pandas as pd
import pandera.pandas as pa
import pytest

from tabflow.schemas import (
    MetricSummarySchema,
    MetricTableSchema,
    PredictionSchema,
    build_dataset_schema,
)


class TestDatasetSchema:
    """Tests for the runtime-built dataset schema."""

    def test_valid_data(self) -> None:
        """Test that numeric outcomes pass and are coerced to float."""
        df = pd.DataFrame({"x": ["a", "b"], "y": [1, 2]})
        result = build_dataset_schema("y").validate(df)
        assert result["y"].dtype == float

    def test_missing_target(self) -> None:
        """Test that a missing outcome column fails."""
        df = pd.DataFrame({"x": [1, 2], "z": [3, 4]})
        with pytest.raises(pa.errors.SchemaError):
            build_dataset_schema("y").validate(df)

    def test_non_numeric_target(self) -> None:
        """Test that a non-numeric outcome fails coercion."""
        df = pd.DataFrame({"x": [1, 2], "y": ["cheap", "expensive"]})
        with pytest.raises(pa.errors.SchemaError):
            build_dataset_schema("y").validate(df)

    def test_outcome_only(self) -> None:
        """Test that data without any predictor fails."""
        df = pd.DataFrame({"y": [1.0, 2.0]})
        with pytest.raises(pa.errors.SchemaError):
            build_dataset_schema("y").validate(df)


class TestPredictionSchema:
    """Tests for PredictionSchema."""

    def test_valid_predictions(self) -> None:
        """Test that a '.pred' column passes."""
        df = pd.DataFrame({".pred": [1.0, 2.5]})
        assert len(PredictionSchema.validate(df)) == 2

    def test_missing_pred(self) -> None:
        """Test that a frame without '.pred' fails."""
        with pytest.raises(pa.errors.SchemaError):
            PredictionSchema.validate(pd.DataFrame({"pred": [1.0]}))

    def test_null_pred(self) -> None:
        """Test that missing predictions fail."""
        with pytest.raises(pa.errors.SchemaError):
            PredictionSchema.validate(pd.DataFrame({".pred": [1.0, None]}))


class TestMetricSchemas:
    """Tests for metric table schemas."""

    def test_metric_table(self) -> None:
        """Test a valid metric table, NaN estimates allowed."""
        df = pd.DataFrame(
            {
                ".metric": ["rmse", "rsq"],
                ".estimator": ["standard", "standard"],
                ".estimate": [0.5, float("nan")],
            }
        )
        assert len(MetricTableSchema.validate(df)) == 2

    def test_metric_table_bad_estimator(self) -> None:
        """Test that only the 'standard' estimator is accepted."""
        df = pd.DataFrame({".metric": ["rmse"], ".estimator": ["macro"], ".estimate": [0.5]})
        with pytest.raises(pa.errors.SchemaError):
            MetricTableSchema.validate(df)

    def test_summary_negative_n(self) -> None:
        """Test that counts must be non-negative."""
        df = pd.DataFrame(
            {
                ".metric": ["rmse"],
                ".estimator": ["standard"],
                "mean": [0.5],
                "n": [-1],
                "std_err": [0.1],
                ".config": ["Preprocessor1_Model1"],
            }
        )
        with pytest.raises(pa.errors.SchemaError):
            MetricSummarySchema.validate(df)
