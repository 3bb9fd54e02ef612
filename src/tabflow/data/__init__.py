"""
Data layer: loading, splitting and resampling.

Provides dataset loading from CSV URLs or paths, the initial
train/test split and resampling sets for performance estimation.
"""

from tabflow.data.loading import (
    DatasetSummary,
    describe_dataset,
    fingerprint_dataset,
    load_dataset,
)
from tabflow.data.splitting import (
    DataSplit,
    Resample,
    ResampleSet,
    bootstraps,
    initial_split,
    make_strata,
    vfold_cv,
)

__all__ = [
    "DataSplit",
    "DatasetSummary",
    "Resample",
    "ResampleSet",
    "bootstraps",
    "describe_dataset",
    "fingerprint_dataset",
    "initial_split",
    "load_dataset",
    "make_strata",
    "vfold_cv",
]
