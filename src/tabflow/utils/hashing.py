"""
Deterministic hashing utilities.

Used to fingerprint datasets for experiment tracking and to derive
cache file names for remote sources.
"""

from typing import Any

import pandas as pd
import xxhash


def hash_dataframe(
    df: pd.DataFrame,
    columns: list[str] | None = None,
) -> str:
    """
    Compute a deterministic hash of a DataFrame.

    Row order, column order, column names and values all contribute.

    Args:
        df: DataFrame to hash.
        columns: Optional subset of columns to include.

    Returns:
        Hex digest string.
    """
    if columns:
        df = df[columns]

    hasher = xxhash.xxh64()
    hasher.update(f"{df.shape}".encode())
    hasher.update(",".join(map(str, df.columns)).encode())
    hasher.update(pd.util.hash_pandas_object(df, index=False).to_numpy().tobytes())
    return hasher.hexdigest()


def hash_string(value: str) -> str:
    """Hash a string (e.g. a URL) into a short filesystem-safe key."""
    return xxhash.xxh64(value.encode()).hexdigest()[:16]


def hash_config(config: Any) -> str:
    """
    Compute a short hash of a configuration object.

    Args:
        config: Pydantic model or any object with a stable ``str``.

    Returns:
        Hex digest string.
    """
    config_str = str(config.model_dump()) if hasattr(config, "model_dump") else str(config)
    return xxhash.xxh64(config_str.encode()).hexdigest()[:12]
