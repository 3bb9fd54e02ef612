"""
Preprocessing recipes.

Declarative, ordered preprocessing specifications built from
scikit-learn primitives, plus column selectors for their steps.
"""

from tabflow.recipes.recipe import (
    PreparedRecipe,
    Recipe,
    RecipeTransformer,
    build_recipe,
    parse_formula,
    recipe,
)
from tabflow.recipes.selectors import (
    Selector,
    all_nominal_predictors,
    all_numeric_predictors,
    all_outcomes,
    all_predictors,
)
from tabflow.recipes.steps import STEP_REGISTRY

__all__ = [
    "STEP_REGISTRY",
    "PreparedRecipe",
    "Recipe",
    "RecipeTransformer",
    "Selector",
    "all_nominal_predictors",
    "all_numeric_predictors",
    "all_outcomes",
    "all_predictors",
    "build_recipe",
    "parse_formula",
    "recipe",
]
