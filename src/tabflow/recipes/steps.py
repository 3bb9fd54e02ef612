"""
Recipe steps.

Each step is an immutable declaration: which columns to touch and
how. ``fit`` learns whatever the step needs from training data and
returns it as opaque state; ``apply`` uses that state to transform
any data frame. Estimation is delegated to scikit-learn primitives
(OneHotEncoder, StandardScaler, SimpleImputer, MinMaxScaler,
PowerTransformer) wherever one exists.
"""

import math
from dataclasses import dataclass, field
from typing import Any, ClassVar

import numpy as np
import pandas as pd
from sklearn.impute import SimpleImputer
from sklearn.preprocessing import (
    MinMaxScaler,
    OneHotEncoder,
    PowerTransformer,
    StandardScaler,
)

from tabflow.recipes.selectors import Selector, is_numeric


def _require_numeric(df: pd.DataFrame, columns: list[str], operation: str) -> None:
    bad = [c for c in columns if not is_numeric(df[c])]
    if bad:
        msg = f"{operation} requires numeric columns, got non-numeric: {bad}"
        raise ValueError(msg)


@dataclass(frozen=True)
class Step:
    """
    Base class for recipe steps.

    Attributes:
        selectors: Columns the step applies to.
        skip: If True, the step is applied while prepping but not when
            baking new data.
    """

    operation: ClassVar[str] = "step"

    selectors: tuple[Selector, ...] = ()
    skip: bool = False

    def fit(self, df: pd.DataFrame, columns: list[str]) -> Any:
        """Learn step state from training data."""
        return None

    def apply(self, df: pd.DataFrame, columns: list[str], state: Any) -> pd.DataFrame:
        """Transform data with learned state."""
        raise NotImplementedError


@dataclass(frozen=True)
class StepDummy(Step):
    """Convert nominal columns into numeric indicator (dummy) columns."""

    operation: ClassVar[str] = "dummy"

    one_hot: bool = False

    def fit(self, df: pd.DataFrame, columns: list[str]) -> OneHotEncoder | None:
        if not columns:
            return None
        encoder = OneHotEncoder(
            drop=None if self.one_hot else "first",
            handle_unknown="ignore",
            sparse_output=False,
            dtype=float,
        )
        encoder.fit(df[columns].astype(str))
        return encoder

    def apply(
        self, df: pd.DataFrame, columns: list[str], state: OneHotEncoder | None
    ) -> pd.DataFrame:
        if state is None:
            return df
        encoded = pd.DataFrame(
            state.transform(df[columns].astype(str)),
            columns=state.get_feature_names_out(columns),
            index=df.index,
        )
        return pd.concat([df.drop(columns=columns), encoded], axis=1)


@dataclass(frozen=True)
class StepNormalize(Step):
    """Center and scale numeric columns to mean zero and unit variance."""

    operation: ClassVar[str] = "normalize"

    def fit(self, df: pd.DataFrame, columns: list[str]) -> StandardScaler | None:
        if not columns:
            return None
        _require_numeric(df, columns, "step_normalize")
        return StandardScaler().fit(df[columns])

    def apply(
        self, df: pd.DataFrame, columns: list[str], state: StandardScaler | None
    ) -> pd.DataFrame:
        if state is None:
            return df
        out = df.copy()
        out[columns] = state.transform(df[columns])
        return out


@dataclass(frozen=True)
class StepRange(Step):
    """Rescale numeric columns to [min, max], clipping new data to the range."""

    operation: ClassVar[str] = "range"

    min: float = 0.0
    max: float = 1.0

    def fit(self, df: pd.DataFrame, columns: list[str]) -> MinMaxScaler | None:
        if not columns:
            return None
        if self.min >= self.max:
            msg = f"step_range needs min < max, got min={self.min}, max={self.max}"
            raise ValueError(msg)
        _require_numeric(df, columns, "step_range")
        scaler = MinMaxScaler(feature_range=(self.min, self.max), clip=True)
        return scaler.fit(df[columns])

    def apply(
        self, df: pd.DataFrame, columns: list[str], state: MinMaxScaler | None
    ) -> pd.DataFrame:
        if state is None:
            return df
        out = df.copy()
        out[columns] = state.transform(df[columns])
        return out


@dataclass(frozen=True)
class StepZv(Step):
    """Remove columns that hold a single distinct value in the training data."""

    operation: ClassVar[str] = "zv"

    def fit(self, df: pd.DataFrame, columns: list[str]) -> list[str]:
        return [c for c in columns if df[c].nunique(dropna=True) < 2]

    def apply(self, df: pd.DataFrame, columns: list[str], state: list[str]) -> pd.DataFrame:
        return df.drop(columns=[c for c in state if c in df.columns])


@dataclass(frozen=True)
class StepNzv(Step):
    """
    Remove near-zero-variance columns.

    A column is removed when it has a single value, or when the ratio of
    the most common to the second most common value exceeds ``freq_cut``
    while the share of distinct values (in percent) is below ``unique_cut``.
    """

    operation: ClassVar[str] = "nzv"

    freq_cut: float = 95 / 5
    unique_cut: float = 10.0

    def fit(self, df: pd.DataFrame, columns: list[str]) -> list[str]:
        removed = []
        for col in columns:
            counts = df[col].value_counts(dropna=True)
            if len(counts) < 2:
                removed.append(col)
                continue
            freq_ratio = counts.iloc[0] / counts.iloc[1]
            pct_unique = 100.0 * len(counts) / max(df[col].notna().sum(), 1)
            if freq_ratio > self.freq_cut and pct_unique < self.unique_cut:
                removed.append(col)
        return removed

    def apply(self, df: pd.DataFrame, columns: list[str], state: list[str]) -> pd.DataFrame:
        return df.drop(columns=[c for c in state if c in df.columns])


@dataclass(frozen=True)
class StepImputeMedian(Step):
    """Fill missing numeric values with the training median."""

    operation: ClassVar[str] = "impute_median"

    def fit(self, df: pd.DataFrame, columns: list[str]) -> SimpleImputer | None:
        if not columns:
            return None
        _require_numeric(df, columns, "step_impute_median")
        imputer = SimpleImputer(strategy="median", keep_empty_features=True)
        return imputer.fit(df[columns])

    def apply(
        self, df: pd.DataFrame, columns: list[str], state: SimpleImputer | None
    ) -> pd.DataFrame:
        if state is None:
            return df
        out = df.copy()
        out[columns] = state.transform(df[columns])
        return out


@dataclass(frozen=True)
class StepImputeMode(Step):
    """Fill missing nominal values with the most frequent training value."""

    operation: ClassVar[str] = "impute_mode"

    def fit(self, df: pd.DataFrame, columns: list[str]) -> dict[str, Any]:
        modes = {}
        for col in columns:
            mode = df[col].mode(dropna=True)
            if mode.empty:
                msg = f"step_impute_mode: column '{col}' has no non-missing values"
                raise ValueError(msg)
            modes[col] = mode.iloc[0]
        return modes

    def apply(
        self, df: pd.DataFrame, columns: list[str], state: dict[str, Any]
    ) -> pd.DataFrame:
        out = df.copy()
        for col, mode in state.items():
            series = out[col]
            if isinstance(series.dtype, pd.CategoricalDtype) and mode not in series.cat.categories:
                series = series.cat.add_categories([mode])
            out[col] = series.fillna(mode)
        return out


@dataclass(frozen=True)
class StepLog(Step):
    """Log-transform numeric columns: log(x + offset) in the given base."""

    operation: ClassVar[str] = "log"

    base: float = math.e
    offset: float = 0.0

    def fit(self, df: pd.DataFrame, columns: list[str]) -> None:
        if self.base <= 0 or self.base == 1:
            msg = f"step_log base must be positive and not 1, got: {self.base}"
            raise ValueError(msg)
        _require_numeric(df, columns, "step_log")

    def apply(self, df: pd.DataFrame, columns: list[str], state: None) -> pd.DataFrame:
        out = df.copy()
        for col in columns:
            out[col] = np.log(df[col].astype(float) + self.offset) / np.log(self.base)
        return out


@dataclass(frozen=True)
class StepOther(Step):
    """
    Pool infrequent levels of nominal columns into an 'other' level.

    A level is kept when its training share is at least ``threshold``
    (or, for ``threshold >= 1``, its training count is at least that).
    Levels unseen in training are pooled as well.
    """

    operation: ClassVar[str] = "other"

    threshold: float = 0.05
    other: str = "other"

    def fit(self, df: pd.DataFrame, columns: list[str]) -> dict[str, set[str]]:
        keep = {}
        for col in columns:
            counts = df[col].astype(str).value_counts(dropna=True)
            if self.threshold < 1:
                counts = counts / counts.sum()
            kept = set(counts[counts >= self.threshold].index)
            if self.other in kept:
                msg = f"step_other: level '{self.other}' already exists in '{col}'"
                raise ValueError(msg)
            keep[col] = kept
        return keep

    def apply(
        self, df: pd.DataFrame, columns: list[str], state: dict[str, set[str]]
    ) -> pd.DataFrame:
        out = df.copy()
        for col, kept in state.items():
            values = df[col].astype(str)
            pooled = values.where(values.isin(kept) | df[col].isna(), self.other)
            pooled = pooled.where(df[col].notna(), None)
            out[col] = pooled.astype("category")
        return out


@dataclass(frozen=True)
class StepYeoJohnson(Step):
    """Yeo-Johnson power transform of numeric columns."""

    operation: ClassVar[str] = "yeojohnson"

    def fit(self, df: pd.DataFrame, columns: list[str]) -> PowerTransformer | None:
        if not columns:
            return None
        _require_numeric(df, columns, "step_yeojohnson")
        return PowerTransformer(method="yeo-johnson", standardize=False).fit(df[columns])

    def apply(
        self, df: pd.DataFrame, columns: list[str], state: PowerTransformer | None
    ) -> pd.DataFrame:
        if state is None:
            return df
        out = df.copy()
        out[columns] = state.transform(df[columns])
        return out


# Step name -> class, used by config-driven recipes
STEP_REGISTRY: dict[str, type[Step]] = {
    cls.operation: cls
    for cls in (
        StepDummy,
        StepNormalize,
        StepRange,
        StepZv,
        StepNzv,
        StepImputeMedian,
        StepImputeMode,
        StepLog,
        StepOther,
        StepYeoJohnson,
    )
}


@dataclass(frozen=True)
class PreparedStep:
    """
    A step together with its resolved columns and learned state.

    Attributes:
        step: The step declaration.
        columns: Columns the selectors resolved to at prep time.
        state: Whatever ``step.fit`` learned.
    """

    step: Step
    columns: list[str] = field(default_factory=list)
    state: Any = None

    @property
    def removed(self) -> list[str]:
        """Columns removed by a filter step (zv, nzv)."""
        return list(self.state) if isinstance(self.step, StepZv | StepNzv) else []

    def bake(self, df: pd.DataFrame) -> pd.DataFrame:
        """Apply the learned step to data."""
        missing = [c for c in self.columns if c not in df.columns]
        if missing:
            msg = f"step_{self.step.operation}: columns missing from new data: {missing}"
            raise ValueError(msg)
        return self.step.apply(df, self.columns, self.state)
