"""
Column selectors for recipe steps.

A selector is resolved against the data as it looks when its step is
prepped, so columns created by earlier steps (e.g. dummy variables)
are visible to later ones.
"""

from collections.abc import Iterable
from dataclasses import dataclass

import pandas as pd

SELECTOR_KINDS = (
    "all_predictors",
    "all_numeric_predictors",
    "all_nominal_predictors",
    "all_outcomes",
)


@dataclass(frozen=True)
class Selector:
    """
    A column selector.

    Attributes:
        kind: One of SELECTOR_KINDS, or 'name' for a single column.
        name: Column name when kind is 'name'.
        negate: If True, the selected columns are removed from the selection.
    """

    kind: str
    name: str | None = None
    negate: bool = False

    def __str__(self) -> str:
        text = self.name if self.kind == "name" else f"{self.kind}()"
        return f"-{text}" if self.negate else str(text)

    def __neg__(self) -> "Selector":
        return Selector(self.kind, self.name, negate=not self.negate)

    def select(self, df: pd.DataFrame, outcomes: Iterable[str]) -> list[str]:
        """Columns of df matched by this selector, ignoring negation."""
        outcome_set = set(outcomes)
        if self.kind == "name":
            if self.name not in df.columns:
                msg = f"Column '{self.name}' not found. Available: {list(df.columns)}"
                raise ValueError(msg)
            return [self.name]
        if self.kind == "all_outcomes":
            return [c for c in df.columns if c in outcome_set]

        predictors = [c for c in df.columns if c not in outcome_set]
        if self.kind == "all_predictors":
            return predictors
        if self.kind == "all_numeric_predictors":
            return [c for c in predictors if is_numeric(df[c])]
        if self.kind == "all_nominal_predictors":
            return [c for c in predictors if not is_numeric(df[c])]

        msg = f"Unknown selector kind '{self.kind}'"
        raise ValueError(msg)


def is_numeric(s: pd.Series) -> bool:
    """Numeric and not boolean."""
    return pd.api.types.is_numeric_dtype(s) and not pd.api.types.is_bool_dtype(s)


def all_predictors() -> Selector:
    """Select every non-outcome column."""
    return Selector("all_predictors")


def all_numeric_predictors() -> Selector:
    """Select numeric non-outcome columns."""
    return Selector("all_numeric_predictors")


def all_nominal_predictors() -> Selector:
    """Select categorical, string and boolean non-outcome columns."""
    return Selector("all_nominal_predictors")


def all_outcomes() -> Selector:
    """Select outcome columns."""
    return Selector("all_outcomes")


def as_selector(value: "str | Selector") -> Selector:
    """
    Coerce a string into a Selector.

    ``"all_numeric_predictors"`` maps to the selector of that name, a
    leading ``-`` negates, and anything else is a column name.
    """
    if isinstance(value, Selector):
        return value
    negate = value.startswith("-")
    text = value[1:] if negate else value
    text = text.removesuffix("()")
    if text in SELECTOR_KINDS:
        return Selector(text, negate=negate)
    return Selector("name", name=text, negate=negate)


def resolve_selectors(
    selectors: Iterable[Selector],
    df: pd.DataFrame,
    outcomes: Iterable[str],
) -> list[str]:
    """
    Resolve selectors to a list of columns in data order.

    Negated selectors remove columns from the union of the others. If
    only negated selectors are given they apply to all predictors.
    """
    outcomes = list(outcomes)
    selectors = list(selectors)
    positive = [s for s in selectors if not s.negate]
    negative = [s for s in selectors if s.negate]

    if not positive and negative:
        positive = [all_predictors()]

    chosen: set[str] = set()
    for sel in positive:
        chosen.update(sel.select(df, outcomes))
    for sel in negative:
        chosen.difference_update(sel.select(df, outcomes))

    return [c for c in df.columns if c in chosen]
