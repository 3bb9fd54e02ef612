"""
Workflows: a recipe and a model specification bundled for joint fitting.

Fitting a workflow builds a scikit-learn Pipeline of the recipe
(through RecipeTransformer) and the translated estimator, optionally
wrapped in a TransformedTargetRegressor, and fits it on the predictors
and outcome of the given data.
"""

import time
from dataclasses import dataclass, field, replace
from pathlib import Path
from typing import Any

import joblib
import pandas as pd
from sklearn.base import BaseEstimator
from sklearn.compose import TransformedTargetRegressor
from sklearn.pipeline import Pipeline

from tabflow.modeling.models import ModelSpec, translate
from tabflow.modeling.targets import build_target_transformer
from tabflow.recipes.recipe import PreparedRecipe, Recipe, RecipeTransformer
from tabflow.schemas.output import PredictionSchema
from tabflow.utils.logging import get_logger

log = get_logger(__name__)


@dataclass(frozen=True, eq=False)
class Workflow:
    """
    A preprocessing recipe paired with a model specification.

    Attributes:
        recipe: Preprocessing recipe.
        model: Model specification.
        target_transform: Optional outcome transform ('log1p').
        seed: Random seed for estimators that take one.
    """

    recipe: Recipe | None = None
    model: ModelSpec | None = None
    target_transform: str | None = None
    seed: int | None = None

    def add_recipe(self, recipe: Recipe) -> "Workflow":
        """Return a copy with a recipe; fails if one is already present."""
        if self.recipe is not None:
            msg = "Workflow already has a recipe; use update_recipe()"
            raise ValueError(msg)
        return replace(self, recipe=recipe)

    def update_recipe(self, recipe: Recipe) -> "Workflow":
        """Return a copy with the recipe replaced."""
        return replace(self, recipe=recipe)

    def add_model(self, model: ModelSpec) -> "Workflow":
        """Return a copy with a model; fails if one is already present."""
        if self.model is not None:
            msg = "Workflow already has a model; use update_model()"
            raise ValueError(msg)
        return replace(self, model=model)

    def update_model(self, model: ModelSpec) -> "Workflow":
        """Return a copy with the model replaced."""
        return replace(self, model=model)

    @property
    def outcome(self) -> str:
        """Outcome column of the recipe."""
        self._check_complete()
        return self.recipe.outcome  # type: ignore[union-attr]

    def _check_complete(self) -> None:
        if self.recipe is None:
            msg = "Workflow has no recipe; call add_recipe() first"
            raise ValueError(msg)
        if self.model is None:
            msg = "Workflow has no model; call add_model() first"
            raise ValueError(msg)

    def build_pipeline(
        self,
        *,
        clip_max: float | None = None,
        estimator: BaseEstimator | None = None,
    ) -> BaseEstimator:
        """
        Build the unfitted estimator for this workflow.

        Args:
            clip_max: Upper bound for predictions when an outcome
                transform is used.
            estimator: Use this estimator instead of translating the
                model spec (used when tuning).

        Returns:
            Pipeline of ('recipe', 'model'), wrapped in a
            TransformedTargetRegressor when an outcome transform is set.
        """
        self._check_complete()
        if estimator is None:
            estimator = translate(self.model, seed=self.seed)  # type: ignore[arg-type]
        pipeline: BaseEstimator = Pipeline(
            steps=[
                ("recipe", RecipeTransformer(self.recipe.detached())),  # type: ignore[union-attr]
                ("model", estimator),
            ]
        )

        transform_func, inverse_func = build_target_transformer(
            self.target_transform, clip_max=clip_max
        )
        if transform_func is not None:
            pipeline = TransformedTargetRegressor(
                regressor=pipeline,
                func=transform_func,
                inverse_func=inverse_func,
                check_inverse=False,
            )
        return pipeline

    def xy(self, data: pd.DataFrame) -> tuple[pd.DataFrame, pd.Series]:
        """Split data into predictors (everything but the outcome) and outcome."""
        outcome = self.outcome
        if outcome not in data.columns:
            msg = f"Outcome column '{outcome}' not found in data"
            raise ValueError(msg)
        return data.drop(columns=[outcome]), data[outcome]

    def fit(self, data: pd.DataFrame) -> "FittedWorkflow":
        """
        Fit the workflow on data.

        Args:
            data: Training data with predictors and outcome.

        Returns:
            FittedWorkflow.

        Raises:
            ValueError: If the recipe or model is missing, or the model
                still has tuning placeholders.
        """
        X, y = self.xy(data)
        clip_max = float(y.max()) * 2.0 if self.target_transform else None
        pipeline = self.build_pipeline(clip_max=clip_max)

        start = time.perf_counter()
        pipeline.fit(X, y)
        fit_time_s = time.perf_counter() - start

        log.info(
            "Fitted workflow",
            model=self.model.model_type,  # type: ignore[union-attr]
            engine=self.model.engine,  # type: ignore[union-attr]
            n_rows=len(data),
            fit_time_s=round(fit_time_s, 3),
        )
        return FittedWorkflow(
            workflow=replace(self, recipe=self.recipe.detached()),  # type: ignore[union-attr]
            pipeline=pipeline,
            fit_time_s=fit_time_s,
        )


def workflow(
    recipe: Recipe | None = None,
    model: ModelSpec | None = None,
    **kwargs: Any,
) -> Workflow:
    """Create a workflow, optionally with a recipe and model."""
    return Workflow(recipe=recipe, model=model, **kwargs)


@dataclass(frozen=True, eq=False)
class FittedWorkflow:
    """
    A workflow fitted on training data.

    Attributes:
        workflow: The (data-free) workflow declaration.
        pipeline: Fitted scikit-learn estimator.
        fit_time_s: Fitting time in seconds.
    """

    workflow: Workflow
    pipeline: BaseEstimator = field(repr=False)
    fit_time_s: float = 0.0

    @property
    def outcome(self) -> str:
        """Outcome column."""
        return self.workflow.outcome

    def _inner_pipeline(self) -> Pipeline:
        if isinstance(self.pipeline, TransformedTargetRegressor):
            return self.pipeline.regressor_
        return self.pipeline  # type: ignore[return-value]

    def predict(self, new_data: pd.DataFrame) -> pd.DataFrame:
        """
        Predict the outcome for new data.

        Returns:
            DataFrame with a '.pred' column, indexed like new_data.
        """
        X = new_data.drop(columns=[self.outcome], errors="ignore")
        preds = pd.DataFrame({".pred": self.pipeline.predict(X)}, index=new_data.index)
        return PredictionSchema.validate(preds)

    def augment(self, new_data: pd.DataFrame) -> pd.DataFrame:
        """Return new_data with a '.pred' column added."""
        out = new_data.copy()
        out[".pred"] = self.predict(new_data)[".pred"]
        return out

    def extract_fit(self) -> BaseEstimator:
        """The fitted model estimator."""
        return self._inner_pipeline().named_steps["model"]

    def extract_recipe(self) -> PreparedRecipe:
        """The prepped recipe."""
        return self._inner_pipeline().named_steps["recipe"].prepared_

    def extract_pipeline(self) -> BaseEstimator:
        """The full fitted scikit-learn estimator."""
        return self.pipeline

    def save(self, path: Path) -> Path:
        """Persist the fitted workflow with joblib."""
        path.parent.mkdir(parents=True, exist_ok=True)
        joblib.dump(self, path)
        log.info("Saved fitted workflow", path=str(path))
        return path


def load_workflow(path: Path) -> FittedWorkflow:
    """
    Load a fitted workflow saved with ``FittedWorkflow.save``.

    Raises:
        FileNotFoundError: If the file does not exist.
        ValueError: If the file does not hold a fitted workflow.
    """
    if not path.exists():
        msg = f"Model file not found: {path}"
        raise FileNotFoundError(msg)
    obj = joblib.load(path)
    if not isinstance(obj, FittedWorkflow):
        msg = f"{path} does not contain a fitted workflow (got {type(obj).__name__})"
        raise ValueError(msg)
    return obj
