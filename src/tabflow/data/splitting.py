"""
Train/test splitting and resampling.

Builds an initial train/test split and resampling sets (V-fold
cross-validation, bootstraps) on top of scikit-learn's splitters.
All splits hold row positions into the data they were built from;
the rows themselves are materialized on demand.

Stratification on a numeric column uses quantile bins; on a nominal
column it uses the levels, with rare levels pooled together.
"""

from collections.abc import Iterator
from dataclasses import dataclass, field

import numpy as np
import pandas as pd
from sklearn.model_selection import (
    KFold,
    RepeatedKFold,
    RepeatedStratifiedKFold,
    StratifiedKFold,
    train_test_split,
)
from sklearn.utils import resample as sk_resample

from tabflow.utils.logging import get_logger

log = get_logger(__name__)

# Bootstrap draws tried per resample before giving up on out-of-bag rows
_MAX_REDRAWS = 100

# Minimum rows per quantile bin before the number of bins is reduced
STRATA_DEPTH = 20


def _names0(n: int, prefix: str) -> list[str]:
    """Zero-padded ids: Fold01..Fold10 for n=10, Fold1..Fold5 for n=5."""
    width = len(str(n))
    return [f"{prefix}{i:0{width}d}" for i in range(1, n + 1)]


def _pool_strata(labels: pd.Series, pool: float) -> pd.Series:
    """Merge the smallest stratum into the next smallest until all hold >= pool."""
    labels = labels.astype(str)
    n = len(labels)
    while True:
        counts = labels.value_counts().sort_values(kind="stable")
        if len(counts) < 2 or counts.iloc[0] / n >= pool:
            return labels
        smallest, next_smallest = counts.index[0], counts.index[1]
        labels = labels.replace({smallest: next_smallest})


def make_strata(
    values: pd.Series,
    breaks: int = 4,
    pool: float = 0.1,
    depth: int = STRATA_DEPTH,
) -> np.ndarray | None:
    """
    Turn a column into stratum labels.

    Numeric columns are cut into ``min(breaks, n // depth)`` quantile bins.
    Nominal columns use their levels. In both cases strata holding less
    than ``pool`` of the rows are merged into the next smallest stratum.

    Args:
        values: Column to stratify on.
        breaks: Desired number of quantile bins for numeric columns.
        pool: Minimum share of rows per stratum.
        depth: Minimum rows per quantile bin.

    Returns:
        Array of string labels, or None if the data is too small to stratify.
    """
    values = pd.Series(values).reset_index(drop=True)
    n = len(values)

    if pd.api.types.is_numeric_dtype(values) and not pd.api.types.is_bool_dtype(values):
        n_bins = min(breaks, n // depth)
        if n_bins < 2:
            log.warning(
                "Too little data to stratify, using unstratified sampling",
                n_rows=n,
                breaks=breaks,
                depth=depth,
            )
            return None
        bins = pd.qcut(values, q=n_bins, labels=False, duplicates="drop")
        labels = bins.fillna(-1).astype(int)
    else:
        labels = values.astype(object).where(values.notna(), "<missing>")

    pooled = _pool_strata(pd.Series(labels), pool)
    n_strata = pooled.nunique()
    if n_strata < 2:
        log.warning("Only one stratum left after pooling, using unstratified sampling")
        return None

    log.debug("Built strata", n_strata=n_strata)
    return pooled.to_numpy()


def _strata_for(
    data: pd.DataFrame,
    strata: str | None,
    breaks: int,
    pool: float,
) -> np.ndarray | None:
    if strata is None:
        return None
    if strata not in data.columns:
        msg = f"Strata column '{strata}' not found in data"
        raise ValueError(msg)
    return make_strata(data[strata], breaks=breaks, pool=pool)


@dataclass(frozen=True, eq=False)
class DataSplit:
    """
    An initial train/test partition of a dataset.

    Attributes:
        data: The full dataset.
        in_id: Row positions of the training set.
        out_id: Row positions of the test set.
        strata: Stratification column, if any.
    """

    data: pd.DataFrame = field(repr=False)
    in_id: np.ndarray = field(repr=False)
    out_id: np.ndarray = field(repr=False)
    strata: str | None = None

    def training(self) -> pd.DataFrame:
        """Rows of the training set."""
        return self.data.iloc[self.in_id]

    def testing(self) -> pd.DataFrame:
        """Rows of the test set."""
        return self.data.iloc[self.out_id]

    @property
    def n_train(self) -> int:
        """Number of training rows."""
        return len(self.in_id)

    @property
    def n_test(self) -> int:
        """Number of test rows."""
        return len(self.out_id)

    def __str__(self) -> str:
        """Training/Testing/Total summary."""
        return f"<Training/Testing/Total> <{self.n_train}/{self.n_test}/{len(self.data)}>"


def initial_split(
    data: pd.DataFrame,
    prop: float = 0.75,
    strata: str | None = None,
    *,
    breaks: int = 4,
    pool: float = 0.1,
    seed: int | None = None,
) -> DataSplit:
    """
    Split data into a training and a test set.

    Args:
        data: Dataset to split.
        prop: Share of rows that go to the training set.
        strata: Optional column to stratify on.
        breaks: Quantile bins for a numeric strata column.
        pool: Minimum share per stratum.
        seed: Random seed.

    Returns:
        DataSplit.

    Raises:
        ValueError: If prop is not in (0, 1) or the strata column is missing.
    """
    if not 0.0 < prop < 1.0:
        msg = f"prop must be strictly between 0 and 1, got: {prop}"
        raise ValueError(msg)
    if len(data) < 2:
        msg = f"Need at least 2 rows to split, got: {len(data)}"
        raise ValueError(msg)

    labels = _strata_for(data, strata, breaks, pool)
    positions = np.arange(len(data))
    in_id, out_id = train_test_split(
        positions,
        train_size=prop,
        stratify=labels,
        random_state=seed,
    )

    split = DataSplit(
        data=data,
        in_id=np.sort(in_id),
        out_id=np.sort(out_id),
        strata=strata if labels is not None else None,
    )
    log.info(
        "Created initial split",
        n_train=split.n_train,
        n_test=split.n_test,
        strata=split.strata,
    )
    return split


@dataclass(frozen=True, eq=False)
class Resample:
    """
    One analysis/assessment split of a resampling set.

    Attributes:
        data: The data the resample was drawn from (usually a training set).
        analysis_id: Row positions used for fitting (may repeat for bootstraps).
        assessment_id: Row positions held out for evaluation.
        id: Resample id, e.g. 'Fold01', 'Bootstrap03', 'Repeat2'.
        id2: Secondary id for repeated V-fold ('Fold01'), else None.
    """

    data: pd.DataFrame = field(repr=False)
    analysis_id: np.ndarray = field(repr=False)
    assessment_id: np.ndarray = field(repr=False)
    id: str = ""
    id2: str | None = None

    def analysis(self) -> pd.DataFrame:
        """Rows used to fit the model."""
        return self.data.iloc[self.analysis_id]

    def assessment(self) -> pd.DataFrame:
        """Rows used to evaluate the model."""
        return self.data.iloc[self.assessment_id]

    @property
    def label(self) -> str:
        """Combined id, e.g. 'Repeat1/Fold03'."""
        return f"{self.id}/{self.id2}" if self.id2 else self.id


@dataclass(frozen=True, eq=False)
class ResampleSet:
    """
    An ordered, immutable collection of resamples over one dataset.

    Attributes:
        data: The data the resamples were drawn from.
        resamples: Tuple of Resample objects.
        method: 'vfold' or 'bootstrap'.
        strata: Stratification column, if any.
    """

    data: pd.DataFrame = field(repr=False)
    resamples: tuple[Resample, ...] = field(repr=False)
    method: str = "vfold"
    strata: str | None = None

    def __iter__(self) -> Iterator[Resample]:
        return iter(self.resamples)

    def __len__(self) -> int:
        return len(self.resamples)

    def __getitem__(self, i: int) -> Resample:
        return self.resamples[i]

    @property
    def ids(self) -> pd.DataFrame:
        """Resample ids as a DataFrame with 'id' (and 'id2' if repeated)."""
        ids = pd.DataFrame({"id": [r.id for r in self.resamples]})
        if any(r.id2 is not None for r in self.resamples):
            ids["id2"] = [r.id2 for r in self.resamples]
        return ids

    def splits(self) -> list[tuple[np.ndarray, np.ndarray]]:
        """(analysis, assessment) position pairs, usable as a sklearn ``cv``."""
        return [(r.analysis_id, r.assessment_id) for r in self.resamples]


def vfold_cv(
    data: pd.DataFrame,
    v: int = 10,
    repeats: int = 1,
    strata: str | None = None,
    *,
    breaks: int = 4,
    pool: float = 0.1,
    seed: int | None = None,
) -> ResampleSet:
    """
    V-fold (optionally repeated, optionally stratified) cross-validation.

    Each row appears in exactly one assessment set per repeat.

    Args:
        data: Data to resample (usually the training set).
        v: Number of folds.
        repeats: Number of repeats.
        strata: Optional column to stratify on.
        breaks: Quantile bins for a numeric strata column.
        pool: Minimum share per stratum.
        seed: Random seed.

    Returns:
        ResampleSet with ids 'Fold01'.. (and 'Repeat1'.. for repeats > 1).

    Raises:
        ValueError: If v < 2, v exceeds the row count, or repeats < 1.
    """
    if v < 2:
        msg = f"v must be at least 2, got: {v}"
        raise ValueError(msg)
    if v > len(data):
        msg = f"v ({v}) cannot exceed the number of rows ({len(data)})"
        raise ValueError(msg)
    if repeats < 1:
        msg = f"repeats must be at least 1, got: {repeats}"
        raise ValueError(msg)

    labels = _strata_for(data, strata, breaks, pool)

    if labels is not None:
        splitter = (
            StratifiedKFold(n_splits=v, shuffle=True, random_state=seed)
            if repeats == 1
            else RepeatedStratifiedKFold(
                n_splits=v, n_repeats=repeats, random_state=seed
            )
        )
    else:
        splitter = (
            KFold(n_splits=v, shuffle=True, random_state=seed)
            if repeats == 1
            else RepeatedKFold(n_splits=v, n_repeats=repeats, random_state=seed)
        )

    fold_ids = _names0(v, "Fold")
    repeat_ids = _names0(repeats, "Repeat")
    dummy_x = np.zeros(len(data))

    resamples = []
    for i, (analysis_id, assessment_id) in enumerate(splitter.split(dummy_x, labels)):
        if repeats == 1:
            rid, rid2 = fold_ids[i], None
        else:
            rid, rid2 = repeat_ids[i // v], fold_ids[i % v]
        resamples.append(
            Resample(
                data=data,
                analysis_id=analysis_id,
                assessment_id=assessment_id,
                id=rid,
                id2=rid2,
            )
        )

    log.info(
        "Created V-fold resamples",
        v=v,
        repeats=repeats,
        strata=strata if labels is not None else None,
    )
    return ResampleSet(
        data=data,
        resamples=tuple(resamples),
        method="vfold",
        strata=strata if labels is not None else None,
    )


def bootstraps(
    data: pd.DataFrame,
    times: int = 25,
    strata: str | None = None,
    *,
    breaks: int = 4,
    pool: float = 0.1,
    seed: int | None = None,
) -> ResampleSet:
    """
    Bootstrap resamples: analysis rows drawn with replacement, assessed out-of-bag.

    Args:
        data: Data to resample.
        times: Number of bootstrap samples.
        strata: Optional column to stratify on.
        breaks: Quantile bins for a numeric strata column.
        pool: Minimum share per stratum.
        seed: Random seed.

    Returns:
        ResampleSet with ids 'Bootstrap01'..

    Raises:
        ValueError: If times < 1, data has fewer than 2 rows, or a sample
            keeps drawing every row.
    """
    if times < 1:
        msg = f"times must be at least 1, got: {times}"
        raise ValueError(msg)
    if len(data) < 2:
        msg = f"Need at least 2 rows to bootstrap, got: {len(data)}"
        raise ValueError(msg)

    labels = _strata_for(data, strata, breaks, pool)
    positions = np.arange(len(data))
    rng = np.random.RandomState(seed)

    resamples = []
    for rid in _names0(times, "Bootstrap"):
        for _ in range(_MAX_REDRAWS):
            analysis_id = sk_resample(
                positions,
                replace=True,
                n_samples=len(data),
                stratify=labels,
                random_state=rng,
            )
            assessment_id = np.setdiff1d(positions, analysis_id)
            if len(assessment_id) > 0:
                break
            log.debug("Redrawing bootstrap sample without out-of-bag rows", id=rid)
        else:
            msg = f"Could not draw {rid} with out-of-bag rows in {_MAX_REDRAWS} attempts"
            raise ValueError(msg)
        resamples.append(
            Resample(
                data=data,
                analysis_id=np.asarray(analysis_id),
                assessment_id=assessment_id,
                id=rid,
            )
        )

    log.info("Created bootstrap resamples", times=times)
    return ResampleSet(
        data=data,
        resamples=tuple(resamples),
        method="bootstrap",
        strata=strata if labels is not None else None,
    )
