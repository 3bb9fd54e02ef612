"""
Preprocessing recipes.

A recipe is a declarative, ordered list of preprocessing steps plus
the roles (outcome vs. predictor) of the data's columns. It is built
once and never mutated: every ``step_*`` call returns a new recipe.

    rec = (
        recipe("price ~ .", data=train)
        .step_dummy(all_nominal_predictors())
        .step_zv(all_predictors())
        .step_normalize(all_numeric_predictors())
    )
    prepped = rec.prep()
    baked = prepped.bake(test)

``RecipeTransformer`` adapts a recipe to the scikit-learn transformer
API so it can be the first stage of a Pipeline.
"""

import re
from dataclasses import dataclass, field, replace
from typing import Any

import numpy as np
import pandas as pd
from sklearn.base import BaseEstimator, TransformerMixin

from tabflow.recipes.selectors import Selector, as_selector, resolve_selectors
from tabflow.recipes.steps import (
    STEP_REGISTRY,
    PreparedStep,
    Step,
    StepDummy,
    StepImputeMedian,
    StepImputeMode,
    StepLog,
    StepNormalize,
    StepNzv,
    StepOther,
    StepRange,
    StepYeoJohnson,
    StepZv,
)
from tabflow.utils.logging import get_logger

log = get_logger(__name__)

_TERM_PATTERN = re.compile(r"\s*([+-])\s*")


def _parse_terms(text: str) -> tuple[list[str], list[str]]:
    """Split 'a + b - c' into ([a, b], [c])."""
    text = text.strip()
    if not text:
        return [], []
    if text[0] not in "+-":
        text = "+" + text
    parts = _TERM_PATTERN.split(text)[1:]
    include, exclude = [], []
    for sign, term in zip(parts[::2], parts[1::2], strict=True):
        term = term.strip().strip("`")
        if not term:
            msg = f"Empty term in formula: {text!r}"
            raise ValueError(msg)
        (include if sign == "+" else exclude).append(term)
    return include, exclude


def parse_formula(formula: str, columns: list[str]) -> tuple[list[str], list[str]]:
    """
    Parse a model formula into outcome and predictor columns.

    Supports ``y ~ .``, ``y ~ a + b`` and ``y ~ . - c``.

    Args:
        formula: Formula string.
        columns: Columns available in the data.

    Returns:
        Tuple of (outcomes, predictors).

    Raises:
        ValueError: If the formula is malformed or names unknown columns.
    """
    if formula.count("~") != 1:
        msg = f"Formula must contain exactly one '~', got: {formula!r}"
        raise ValueError(msg)

    lhs, rhs = formula.split("~")
    outcomes, _ = _parse_terms(lhs)
    if not outcomes:
        msg = f"Formula has no outcome: {formula!r}"
        raise ValueError(msg)

    include, exclude = _parse_terms(rhs)
    if not include:
        msg = f"Formula has no predictors: {formula!r}"
        raise ValueError(msg)

    if "." in include:
        predictors = [c for c in columns if c not in outcomes]
        include = [t for t in include if t != "."]
    else:
        predictors = []
    predictors += [t for t in include if t not in predictors]
    predictors = [c for c in predictors if c not in exclude]

    unknown = [c for c in [*outcomes, *predictors, *exclude] if c not in columns]
    if unknown:
        msg = f"Formula references unknown columns: {unknown}"
        raise ValueError(msg)

    return outcomes, predictors


@dataclass(frozen=True, eq=False)
class Recipe:
    """
    Declarative preprocessing specification.

    Attributes:
        outcomes: Outcome column names.
        predictors: Predictor column names (before any step runs).
        steps: Ordered step declarations.
        template: Data the recipe was declared on; used by ``prep()``
            when no training data is given.
    """

    outcomes: tuple[str, ...]
    predictors: tuple[str, ...]
    steps: tuple[Step, ...] = ()
    template: pd.DataFrame | None = field(default=None, repr=False)

    @classmethod
    def from_formula(cls, formula: str, data: pd.DataFrame) -> "Recipe":
        """Declare a recipe from a formula such as ``'price ~ .'``."""
        outcomes, predictors = parse_formula(formula, list(data.columns))
        return cls(outcomes=tuple(outcomes), predictors=tuple(predictors), template=data)

    @property
    def outcome(self) -> str:
        """The single outcome column."""
        if len(self.outcomes) != 1:
            msg = f"Expected a single outcome, recipe has: {list(self.outcomes)}"
            raise ValueError(msg)
        return self.outcomes[0]

    def add_step(self, step: Step) -> "Recipe":
        """Return a new recipe with the step appended."""
        return replace(self, steps=(*self.steps, step))

    def add_named_step(
        self,
        name: str,
        *selectors: str | Selector,
        skip: bool = False,
        **options: Any,
    ) -> "Recipe":
        """
        Append a step by its registry name (e.g. 'dummy', 'zv').

        Raises:
            ValueError: If the step name is unknown or an option is invalid.
        """
        step_name = name.removeprefix("step_")
        if step_name not in STEP_REGISTRY:
            available = ", ".join(sorted(STEP_REGISTRY))
            msg = f"Unknown recipe step '{name}'. Available: {available}"
            raise ValueError(msg)
        try:
            step = STEP_REGISTRY[step_name](
                selectors=tuple(as_selector(s) for s in selectors),
                skip=skip,
                **options,
            )
        except TypeError as e:
            msg = f"Invalid options for step '{step_name}': {options}"
            raise ValueError(msg) from e
        return self.add_step(step)

    def step_dummy(
        self, *selectors: str | Selector, one_hot: bool = False, skip: bool = False
    ) -> "Recipe":
        """Dummy-encode nominal columns."""
        return self.add_step(
            StepDummy(_selectors(selectors), skip=skip, one_hot=one_hot)
        )

    def step_normalize(self, *selectors: str | Selector, skip: bool = False) -> "Recipe":
        """Center and scale numeric columns."""
        return self.add_step(StepNormalize(_selectors(selectors), skip=skip))

    def step_range(
        self,
        *selectors: str | Selector,
        min: float = 0.0,  # noqa: A002
        max: float = 1.0,  # noqa: A002
        skip: bool = False,
    ) -> "Recipe":
        """Rescale numeric columns to a range."""
        return self.add_step(StepRange(_selectors(selectors), skip=skip, min=min, max=max))

    def step_zv(self, *selectors: str | Selector, skip: bool = False) -> "Recipe":
        """Remove zero-variance columns."""
        return self.add_step(StepZv(_selectors(selectors), skip=skip))

    def step_nzv(
        self,
        *selectors: str | Selector,
        freq_cut: float = 95 / 5,
        unique_cut: float = 10.0,
        skip: bool = False,
    ) -> "Recipe":
        """Remove near-zero-variance columns."""
        return self.add_step(
            StepNzv(_selectors(selectors), skip=skip, freq_cut=freq_cut, unique_cut=unique_cut)
        )

    def step_impute_median(self, *selectors: str | Selector, skip: bool = False) -> "Recipe":
        """Impute numeric columns with the training median."""
        return self.add_step(StepImputeMedian(_selectors(selectors), skip=skip))

    def step_impute_mode(self, *selectors: str | Selector, skip: bool = False) -> "Recipe":
        """Impute nominal columns with the training mode."""
        return self.add_step(StepImputeMode(_selectors(selectors), skip=skip))

    def step_log(
        self,
        *selectors: str | Selector,
        base: float | None = None,
        offset: float = 0.0,
        skip: bool = False,
    ) -> "Recipe":
        """Log-transform numeric columns (natural log by default)."""
        kwargs: dict[str, Any] = {"offset": offset}
        if base is not None:
            kwargs["base"] = base
        return self.add_step(StepLog(_selectors(selectors), skip=skip, **kwargs))

    def step_other(
        self,
        *selectors: str | Selector,
        threshold: float = 0.05,
        other: str = "other",
        skip: bool = False,
    ) -> "Recipe":
        """Pool infrequent levels of nominal columns."""
        return self.add_step(
            StepOther(_selectors(selectors), skip=skip, threshold=threshold, other=other)
        )

    def step_yeojohnson(self, *selectors: str | Selector, skip: bool = False) -> "Recipe":
        """Yeo-Johnson transform numeric columns."""
        return self.add_step(StepYeoJohnson(_selectors(selectors), skip=skip))

    def detached(self) -> "Recipe":
        """Copy of the recipe without its template data."""
        return replace(self, template=None)

    def prep(self, training: pd.DataFrame | None = None) -> "PreparedRecipe":
        """
        Estimate every step on training data.

        Steps run in order; each sees the output of the previous one.
        Skipped steps are still applied to the training data.

        Args:
            training: Training data. Defaults to the recipe's template data.

        Returns:
            PreparedRecipe.

        Raises:
            ValueError: If no data is available or columns are missing.
        """
        if training is None:
            training = self.template
        if training is None:
            msg = "prep() needs training data: the recipe has no template data"
            raise ValueError(msg)

        required = [*self.outcomes, *self.predictors]
        missing = [c for c in required if c not in training.columns]
        if missing:
            msg = f"Training data is missing recipe columns: {missing}"
            raise ValueError(msg)

        df = training[required].copy()
        prepared = []
        for step in self.steps:
            columns = resolve_selectors(step.selectors, df, self.outcomes)
            state = step.fit(df, columns)
            df = step.apply(df, columns, state)
            prepared_step = PreparedStep(step=step, columns=columns, state=state)
            prepared.append(prepared_step)
            log.debug(
                "Prepped step",
                operation=step.operation,
                n_columns=len(columns),
                removed=prepared_step.removed or None,
            )

        log.info(
            "Prepped recipe",
            n_steps=len(prepared),
            n_rows=len(df),
            n_columns_out=len(df.columns),
        )
        return PreparedRecipe(
            recipe=self,
            steps=tuple(prepared),
            processed=df,
        )

    def tidy(self) -> pd.DataFrame:
        """One row per declared step: number, operation, selectors, skip."""
        return pd.DataFrame(
            {
                "number": range(1, len(self.steps) + 1),
                "operation": [f"step_{s.operation}" for s in self.steps],
                "columns": [", ".join(str(sel) for sel in s.selectors) for s in self.steps],
                "skip": [s.skip for s in self.steps],
            }
        )

    def __str__(self) -> str:
        lines = [
            f"Recipe: outcome {', '.join(self.outcomes)}; "
            f"{len(self.predictors)} predictors"
        ]
        for s in self.steps:
            sel = ", ".join(str(x) for x in s.selectors) or "<none>"
            lines.append(f"  step_{s.operation}: {sel}")
        return "\n".join(lines)


def _selectors(values: tuple[str | Selector, ...]) -> tuple[Selector, ...]:
    return tuple(as_selector(v) for v in values)


def recipe(formula: str, data: pd.DataFrame) -> Recipe:
    """Declare a recipe from a formula and data (``recipe("y ~ .", df)``)."""
    return Recipe.from_formula(formula, data)


@dataclass(frozen=True, eq=False)
class PreparedRecipe:
    """
    A recipe whose steps have been estimated on training data.

    Attributes:
        recipe: The declaration this was prepped from.
        steps: Prepared steps with resolved columns and state.
        processed: The processed training data.
    """

    recipe: Recipe
    steps: tuple[PreparedStep, ...]
    processed: pd.DataFrame = field(repr=False)

    @property
    def outcomes(self) -> tuple[str, ...]:
        """Outcome columns."""
        return self.recipe.outcomes

    @property
    def output_predictors(self) -> list[str]:
        """Predictor columns after all steps ran."""
        return [c for c in self.processed.columns if c not in self.outcomes]

    def bake(self, new_data: pd.DataFrame | None = None) -> pd.DataFrame:
        """
        Apply the prepped steps to data.

        Args:
            new_data: Data to process. None returns the processed training data.
                Outcome columns are optional; predictor columns are required.

        Returns:
            Processed DataFrame (predictors first, outcomes last if present).

        Raises:
            ValueError: If predictor columns are missing.
        """
        if new_data is None:
            return self.processed.copy()

        missing = [c for c in self.recipe.predictors if c not in new_data.columns]
        if missing:
            msg = f"New data is missing predictor columns: {missing}"
            raise ValueError(msg)

        present_outcomes = [c for c in self.outcomes if c in new_data.columns]
        df = new_data[[*self.recipe.predictors, *present_outcomes]].copy()
        for prepared in self.steps:
            if prepared.step.skip:
                continue
            df = prepared.bake(df)

        predictors = [c for c in df.columns if c not in self.outcomes]
        return df[[*predictors, *present_outcomes]]

    def tidy(self) -> pd.DataFrame:
        """One row per step with the columns it resolved to."""
        return pd.DataFrame(
            {
                "number": range(1, len(self.steps) + 1),
                "operation": [f"step_{p.step.operation}" for p in self.steps],
                "columns": [", ".join(p.columns) for p in self.steps],
                "skip": [p.step.skip for p in self.steps],
            }
        )


class RecipeTransformer(TransformerMixin, BaseEstimator):
    """
    scikit-learn adapter for a recipe.

    ``fit`` preps the recipe (re-attaching ``y`` as the outcome column
    when it is passed separately) and ``transform`` bakes and returns
    only the processed predictors. ``fit_transform`` returns the
    processed training predictors, so skipped steps shape what the
    model is trained on.

    The estimator only sees ``y`` as given, so steps that select the
    outcome are rejected; outcome transforms belong to the workflow's
    ``target_transform``.
    """

    def __init__(self, recipe: Recipe | None = None) -> None:
        self.recipe = recipe

    def fit(self, X: pd.DataFrame, y: Any = None) -> "RecipeTransformer":
        if self.recipe is None:
            msg = "RecipeTransformer needs a recipe"
            raise ValueError(msg)
        data = X.copy()
        outcome = self.recipe.outcome
        if y is not None and outcome not in data.columns:
            data[outcome] = np.asarray(y)
        self.prepared_ = self.recipe.prep(data)

        outcome_steps = [
            f"step_{p.step.operation}"
            for p in self.prepared_.steps
            if any(c in self.recipe.outcomes for c in p.columns)
        ]
        if outcome_steps:
            msg = (
                f"Recipe steps {outcome_steps} select the outcome '{outcome}'. "
                "Transform the outcome with the workflow's target_transform instead"
            )
            raise ValueError(msg)

        self.feature_names_out_ = self.prepared_.output_predictors
        return self

    def fit_transform(self, X: pd.DataFrame, y: Any = None, **fit_params: Any) -> pd.DataFrame:
        return self.fit(X, y).prepared_.bake(None)[self.feature_names_out_]

    def transform(self, X: pd.DataFrame) -> pd.DataFrame:
        baked = self.prepared_.bake(X)
        return baked[self.feature_names_out_]

    def get_feature_names_out(self, input_features: Any = None) -> list[str]:
        return list(self.feature_names_out_)


def build_recipe(
    data: pd.DataFrame,
    formula: str,
    steps: list[Any],
) -> Recipe:
    """
    Build a recipe from config step declarations.

    Args:
        data: Data to declare the recipe on (usually the training set).
        formula: Model formula.
        steps: StepConfig objects (anything with step/selectors/options/skip).

    Returns:
        Recipe.
    """
    rec = recipe(formula, data)
    for step_config in steps:
        rec = rec.add_named_step(
            step_config.step,
            *step_config.selectors,
            skip=step_config.skip,
            **step_config.options,
        )
    log.debug("Built recipe from config", n_steps=len(rec.steps))
    return rec
