"""
Dataset loading and description.

Reads a CSV from a URL or local path, caches remote downloads, and
validates the result against the dataset schema.
"""

from dataclasses import dataclass, field
from pathlib import Path

import numpy as np
import pandas as pd
from pandera.errors import SchemaError

from tabflow.schemas.dataset import build_dataset_schema
from tabflow.utils.hashing import hash_dataframe, hash_string
from tabflow.utils.logging import get_logger

log = get_logger(__name__)


@dataclass(frozen=True)
class DatasetSummary:
    """
    Summary of a modeling dataset.

    Attributes:
        n_rows: Number of observations.
        target: Outcome column name.
        numeric_predictors: Numeric predictor columns.
        nominal_predictors: Categorical/string/boolean predictor columns.
        target_stats: Statistics about the outcome.
    """

    n_rows: int
    target: str
    numeric_predictors: list[str] = field(default_factory=list)
    nominal_predictors: list[str] = field(default_factory=list)
    target_stats: dict[str, float] = field(default_factory=dict)

    @property
    def n_predictors(self) -> int:
        """Total number of predictor columns."""
        return len(self.numeric_predictors) + len(self.nominal_predictors)


def _is_remote(source: str) -> bool:
    return source.startswith(("http://", "https://"))


def _read_source(source: str, cache_dir: Path | None, *, refresh: bool) -> pd.DataFrame:
    """Read CSV from a local path or URL, going through the download cache."""
    if not _is_remote(source):
        path = Path(source)
        if not path.exists():
            msg = f"Dataset file not found: {path}"
            raise FileNotFoundError(msg)
        return pd.read_csv(path)

    if cache_dir is None:
        log.info("Fetching remote dataset", url=source)
        return pd.read_csv(source)

    cache_path = cache_dir / f"{hash_string(source)}.csv"
    if cache_path.exists() and not refresh:
        log.info("Using cached dataset", url=source, path=str(cache_path))
        return pd.read_csv(cache_path)

    log.info("Fetching remote dataset", url=source)
    df = pd.read_csv(source)
    cache_dir.mkdir(parents=True, exist_ok=True)
    df.to_csv(cache_path, index=False)
    log.debug("Cached remote dataset", path=str(cache_path))
    return df


def load_dataset(
    source: str | Path,
    target: str,
    *,
    columns: list[str] | None = None,
    cache_dir: Path | None = None,
    refresh: bool = False,
) -> pd.DataFrame:
    """
    Load a modeling dataset from a CSV URL or path.

    String columns are converted to pandas categoricals so that
    nominal selectors pick them up. Rows with a missing outcome are
    dropped.

    Args:
        source: HTTP(S) URL or local file path.
        target: Numeric outcome column.
        columns: Optional subset of predictor columns to keep.
        cache_dir: Directory to cache remote downloads in. None disables caching.
        refresh: Re-download even if a cached copy exists.

    Returns:
        Validated DataFrame.

    Raises:
        FileNotFoundError: If a local source does not exist.
        ValueError: If the outcome is missing or not numeric, or a
            requested column does not exist.
    """
    df = _read_source(str(source), cache_dir, refresh=refresh)
    log.info("Loaded raw data", rows=len(df), columns=len(df.columns))

    if target not in df.columns:
        msg = f"Target column '{target}' not found. Available: {list(df.columns)}"
        raise ValueError(msg)

    if columns is not None:
        missing = [c for c in columns if c not in df.columns]
        if missing:
            msg = f"Requested columns not found: {missing}"
            raise ValueError(msg)
        keep = list(dict.fromkeys([*columns, target]))
        df = df[keep]

    # Drop unnamed index columns written by R/pandas exports
    unnamed = [c for c in df.columns if str(c).startswith("Unnamed:")]
    if unnamed:
        df = df.drop(columns=unnamed)

    before = len(df)
    df = df[df[target].notna()]
    if len(df) < before:
        log.info("Dropped rows with missing target", dropped=before - len(df))

    try:
        df = build_dataset_schema(target).validate(df)
    except SchemaError as e:
        msg = f"Dataset failed validation: {e}"
        raise ValueError(msg) from e

    df = _as_categoricals(df, exclude={target})
    return df.reset_index(drop=True)


def _as_categoricals(df: pd.DataFrame, exclude: set[str]) -> pd.DataFrame:
    """Convert string columns to categoricals."""
    object_cols = [
        col
        for col in df.columns
        if col not in exclude
        and (pd.api.types.is_object_dtype(df[col]) or pd.api.types.is_string_dtype(df[col]))
    ]
    if object_cols:
        df = df.copy()
        for col in object_cols:
            df[col] = df[col].astype("category")
        log.debug("Converted string columns to categoricals", columns=object_cols)
    return df


def describe_dataset(df: pd.DataFrame, target: str) -> DatasetSummary:
    """
    Describe predictors and outcome of a dataset.

    Args:
        df: Dataset.
        target: Outcome column.

    Returns:
        DatasetSummary.
    """
    predictors = [c for c in df.columns if c != target]
    numeric = [
        c
        for c in predictors
        if pd.api.types.is_numeric_dtype(df[c]) and not pd.api.types.is_bool_dtype(df[c])
    ]
    nominal = [c for c in predictors if c not in numeric]

    return DatasetSummary(
        n_rows=len(df),
        target=target,
        numeric_predictors=numeric,
        nominal_predictors=nominal,
        target_stats=_compute_target_stats(df[target]),
    )


def _compute_target_stats(y: pd.Series) -> dict[str, float]:
    """Compute statistics about the target variable."""
    if len(y) == 0:
        return {}
    return {
        "mean": float(y.mean()),
        "std": float(y.std()),
        "min": float(y.min()),
        "max": float(y.max()),
        "median": float(y.median()),
        "q25": float(np.percentile(y, 25)),
        "q75": float(np.percentile(y, 75)),
    }


def fingerprint_dataset(df: pd.DataFrame) -> str:
    """Deterministic content hash of a dataset, for experiment tracking."""
    return hash_dataframe(df)
