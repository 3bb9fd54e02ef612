"""
Pandera schema for input datasets.

The dataset layout is only known at runtime (the outcome column comes
from configuration), so the schema is built per call instead of being
declared as a DataFrameModel.
"""

import pandera.pandas as pa


def build_dataset_schema(
    target: str,
    columns: list[str] | None = None,
) -> pa.DataFrameSchema:
    """
    Build the validation schema for a modeling dataset.

    Args:
        target: Outcome column. Must be present, numeric and non-null.
        columns: Optional predictor columns that must also be present.

    Returns:
        DataFrameSchema that coerces the outcome to float.
    """
    schema_columns: dict[str, pa.Column] = {
        target: pa.Column(
            float,
            nullable=False,
            coerce=True,
            description="Numeric outcome",
        ),
    }
    for col in columns or []:
        if col != target:
            schema_columns[col] = pa.Column(nullable=True, required=True)

    return pa.DataFrameSchema(
        schema_columns,
        name="DatasetSchema",
        strict=False,  # Predictors are free-form
        checks=pa.Check(lambda df: len(df.columns) >= 2, error="needs a predictor"),
    )
