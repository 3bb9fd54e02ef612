"""Tests for recipes, steps and selectors."""

import numpy as np
import pandas as pd
import pytest

from tabflow.recipes import (
    RecipeTransformer,
    all_nominal_predictors,
    all_numeric_predictors,
    all_predictors,
    parse_formula,
    recipe,
)
from tabflow.recipes.selectors import as_selector, resolve_selectors


class TestParseFormula:
    """Tests for formula parsing."""

    COLUMNS = ["y", "a", "b", "c"]

    def test_dot(self) -> None:
        """Test that '.' expands to every non-outcome column."""
        assert parse_formula("y ~ .", self.COLUMNS) == (["y"], ["a", "b", "c"])

    def test_explicit_terms(self) -> None:
        """Test an explicit predictor list."""
        assert parse_formula("y ~ a + c", self.COLUMNS) == (["y"], ["a", "c"])

    def test_dot_minus(self) -> None:
        """Test removing a column from '.'."""
        assert parse_formula("y ~ . - b", self.COLUMNS) == (["y"], ["a", "c"])

    @pytest.mark.parametrize("formula", ["y a", "y ~ a ~ b", "~ a", "y ~ "])
    def test_malformed(self, formula: str) -> None:
        """Test that malformed formulas raise."""
        with pytest.raises(ValueError):
            parse_formula(formula, self.COLUMNS)

    def test_unknown_column(self) -> None:
        """Test that unknown columns raise."""
        with pytest.raises(ValueError, match="unknown columns"):
            parse_formula("y ~ a + z", self.COLUMNS)


class TestSelectors:
    """Tests for column selectors."""

    def test_typed_selectors(self, regression_data: pd.DataFrame) -> None:
        """Test numeric and nominal predictor selection."""
        outcomes = ["y"]
        assert all_numeric_predictors().select(regression_data, outcomes) == [
            "x1",
            "x2",
            "const",
        ]
        assert all_nominal_predictors().select(regression_data, outcomes) == ["color"]
        assert "y" not in all_predictors().select(regression_data, outcomes)

    def test_string_coercion(self) -> None:
        """Test that strings map to selector kinds, names and negations."""
        assert as_selector("all_predictors()").kind == "all_predictors"
        assert as_selector("x1").name == "x1"
        negated = as_selector("-x1")
        assert negated.negate
        assert str(negated) == "-x1"

    def test_negation_only(self, regression_data: pd.DataFrame) -> None:
        """Test that a lone negated selector removes from all predictors."""
        columns = resolve_selectors([as_selector("-color")], regression_data, ["y"])
        assert columns == ["x1", "x2", "const"]

    def test_unknown_name(self, regression_data: pd.DataFrame) -> None:
        """Test that an unknown column name raises."""
        with pytest.raises(ValueError, match="not found"):
            as_selector("nope").select(regression_data, ["y"])


class TestRecipe:
    """Tests for recipe declaration, prep and bake."""

    def test_immutable_steps(self, regression_data: pd.DataFrame) -> None:
        """Test that adding a step returns a new recipe."""
        base = recipe("y ~ .", regression_data)
        extended = base.step_zv(all_predictors())
        assert len(base.steps) == 0
        assert len(extended.steps) == 1

    def test_standard_pipeline(self, regression_data: pd.DataFrame) -> None:
        """Test dummy, zero-variance and normalize steps together."""
        prepped = (
            recipe("y ~ .", regression_data)
            .step_dummy(all_nominal_predictors())
            .step_zv(all_predictors())
            .step_normalize(all_numeric_predictors())
            .prep()
        )
        assert prepped.output_predictors == ["x1", "x2", "color_green", "color_red"]
        baked = prepped.bake(regression_data)
        assert list(baked.columns) == [*prepped.output_predictors, "y"]
        np.testing.assert_allclose(baked[prepped.output_predictors].mean(), 0.0, atol=1e-10)
        # The outcome is untouched
        np.testing.assert_allclose(baked["y"], regression_data["y"])

    def test_bake_uses_training_estimates(self, regression_data: pd.DataFrame) -> None:
        """Test that new data is scaled with the training mean and sd."""
        train = regression_data.iloc[:100]
        test = regression_data.iloc[100:]
        prepped = recipe("y ~ x1", train).step_normalize("x1").prep()
        baked = prepped.bake(test)
        expected = (test["x1"] - train["x1"].mean()) / train["x1"].std(ddof=0)
        np.testing.assert_allclose(baked["x1"], expected)

    def test_bake_without_outcome(self, regression_data: pd.DataFrame) -> None:
        """Test that new data may omit the outcome."""
        prepped = recipe("y ~ .", regression_data).step_dummy(all_nominal_predictors()).prep()
        baked = prepped.bake(regression_data.drop(columns=["y"]).head(5))
        assert "y" not in baked.columns
        assert len(baked) == 5

    def test_bake_missing_predictor(self, regression_data: pd.DataFrame) -> None:
        """Test that new data without a predictor fails."""
        prepped = recipe("y ~ .", regression_data).prep()
        with pytest.raises(ValueError, match="missing predictor"):
            prepped.bake(regression_data.drop(columns=["x1"]))

    def test_unseen_level_dummies_to_zero(self, regression_data: pd.DataFrame) -> None:
        """Test that levels unseen in training give all-zero indicators."""
        prepped = recipe("y ~ .", regression_data).step_dummy("color").prep()
        new = regression_data.head(1).copy()
        new["color"] = pd.Categorical(["purple"])
        baked = prepped.bake(new)
        assert baked[["color_green", "color_red"]].to_numpy().sum() == 0

    def test_skip_step(self, regression_data: pd.DataFrame) -> None:
        """Test that skipped steps run on training data but not on new data."""
        prepped = recipe("y ~ x1", regression_data).step_log("x1", offset=10.0, skip=True).prep()
        assert not np.allclose(prepped.bake(None)["x1"], regression_data["x1"])
        np.testing.assert_allclose(prepped.bake(regression_data)["x1"], regression_data["x1"])

    def test_prep_missing_data(self, regression_data: pd.DataFrame) -> None:
        """Test that a detached recipe needs training data."""
        with pytest.raises(ValueError, match="training data"):
            recipe("y ~ .", regression_data).detached().prep()

    def test_tidy(self, regression_data: pd.DataFrame) -> None:
        """Test declared and prepped step summaries."""
        rec = recipe("y ~ .", regression_data).step_dummy(all_nominal_predictors()).step_zv(
            all_predictors()
        )
        tidy = rec.tidy()
        assert list(tidy["operation"]) == ["step_dummy", "step_zv"]
        prepped_tidy = rec.prep().tidy()
        assert prepped_tidy.loc[0, "columns"] == "color"

    def test_add_named_step(self, regression_data: pd.DataFrame) -> None:
        """Test config-style step declaration and its errors."""
        rec = recipe("y ~ .", regression_data).add_named_step("step_range", "x1", max=2.0)
        baked = rec.prep().bake(None)
        assert baked["x1"].max() == pytest.approx(2.0)
        with pytest.raises(ValueError, match="Unknown recipe step"):
            rec.add_named_step("pca", "x1")
        with pytest.raises(ValueError, match="Invalid options"):
            rec.add_named_step("zv", "x1", bogus=1)


class TestSteps:
    """Tests for individual step behavior."""

    def test_zv_removes_constant(self, regression_data: pd.DataFrame) -> None:
        """Test that the constant column is removed."""
        prepped = recipe("y ~ .", regression_data).step_zv(all_predictors()).prep()
        assert "const" not in prepped.output_predictors
        assert prepped.steps[0].removed == ["const"]

    def test_nzv(self) -> None:
        """Test near-zero-variance detection."""
        df = pd.DataFrame({"rare": [0.0] * 99 + [1.0], "x": np.arange(100.0), "y": 1.0})
        prepped = recipe("y ~ .", df).step_nzv(all_predictors()).prep()
        assert prepped.output_predictors == ["x"]

    def test_impute(self) -> None:
        """Test median and mode imputation."""
        df = pd.DataFrame(
            {
                "num": [1.0, np.nan, 3.0, 10.0],
                "cat": pd.Categorical(["a", "a", None, "b"]),
                "y": [1.0, 2.0, 3.0, 4.0],
            }
        )
        baked = (
            recipe("y ~ .", df)
            .step_impute_median("num")
            .step_impute_mode("cat")
            .prep()
            .bake(None)
        )
        assert baked["num"].tolist() == [1.0, 3.0, 3.0, 10.0]
        assert baked["cat"].tolist() == ["a", "a", "a", "b"]

    def test_other_pools_rare_levels(self) -> None:
        """Test pooling infrequent levels."""
        df = pd.DataFrame({"g": ["a"] * 18 + ["b", "c"], "y": np.arange(20.0)})
        baked = recipe("y ~ .", df).step_other("g", threshold=0.1).prep().bake(None)
        assert set(baked["g"]) == {"a", "other"}

    def test_log_base(self) -> None:
        """Test log with a base."""
        df = pd.DataFrame({"x": [1.0, 10.0, 100.0], "y": [1.0, 2.0, 3.0]})
        baked = recipe("y ~ x", df).step_log("x", base=10).prep().bake(None)
        np.testing.assert_allclose(baked["x"], [0.0, 1.0, 2.0])

    def test_normalize_rejects_nominal(self, regression_data: pd.DataFrame) -> None:
        """Test that numeric steps refuse nominal columns."""
        with pytest.raises(ValueError, match="requires numeric"):
            recipe("y ~ .", regression_data).step_normalize("color").prep()

    def test_yeojohnson(self, regression_data: pd.DataFrame) -> None:
        """Test that Yeo-Johnson keeps shape and finiteness."""
        baked = recipe("y ~ x1", regression_data).step_yeojohnson("x1").prep().bake(None)
        assert np.isfinite(baked["x1"]).all()


class TestRecipeTransformer:
    """Tests for the scikit-learn adapter."""

    def test_fit_transform_with_separate_y(self, regression_data: pd.DataFrame) -> None:
        """Test fitting with X and y passed separately."""
        rec = (
            recipe("y ~ .", regression_data)
            .step_dummy(all_nominal_predictors())
            .step_zv(all_predictors())
            .detached()
        )
        X = regression_data.drop(columns=["y"])
        transformer = RecipeTransformer(rec).fit(X, regression_data["y"])
        out = transformer.transform(X)
        assert list(out.columns) == ["x1", "x2", "color_green", "color_red"]
        assert transformer.get_feature_names_out() == list(out.columns)

    def test_requires_recipe(self, regression_data: pd.DataFrame) -> None:
        """Test that fitting without a recipe fails."""
        with pytest.raises(ValueError, match="needs a recipe"):
            RecipeTransformer().fit(regression_data)

    def test_fit_transform_applies_skipped_steps(self, regression_data: pd.DataFrame) -> None:
        """Test that fit_transform returns the prepped training data, skipped steps included."""
        rec = recipe("y ~ x1 + x2", regression_data).step_normalize(
            all_numeric_predictors(), skip=True
        )
        X = regression_data.drop(columns=["y"])
        transformer = RecipeTransformer(rec.detached())
        out = transformer.fit_transform(X, regression_data["y"])

        expected = transformer.prepared_.bake(None)[["x1", "x2"]]
        pd.testing.assert_frame_equal(out, expected)
        np.testing.assert_allclose(out.mean(), 0.0, atol=1e-12)
        # New data is baked without the skipped step
        pd.testing.assert_frame_equal(transformer.transform(X), X[["x1", "x2"]])

    def test_rejects_outcome_steps(self, positive_data: pd.DataFrame) -> None:
        """Test that steps selecting the outcome are refused."""
        rec = recipe("y ~ x1", positive_data).step_log("y", skip=True).detached()
        with pytest.raises(ValueError, match="select the outcome 'y'"):
            RecipeTransformer(rec).fit(positive_data[["x1"]], positive_data["y"])
