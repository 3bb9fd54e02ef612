"""Tests for model specifications and engine translation."""

import pytest
from sklearn.ensemble import RandomForestRegressor
from sklearn.linear_model import ElasticNet, LinearRegression
from sklearn.neighbors import KNeighborsRegressor
from xgboost import XGBRegressor

from tabflow.config import ModelSpecConfig
from tabflow.modeling import (
    boost_tree,
    linear_reg,
    list_engines,
    mlp,
    nearest_neighbor,
    rand_forest,
    translate,
    tune,
)
from tabflow.modeling.models import ModelSpec, build_model_spec, is_tune


class TestModelSpec:
    """Tests for ModelSpec construction."""

    def test_default_engine(self) -> None:
        """Test that each model type gets its default engine."""
        assert linear_reg().engine == "sklearn"
        assert boost_tree().engine == "xgboost"

    def test_set_engine(self) -> None:
        """Test switching engines returns a new spec."""
        spec = boost_tree(trees=50)
        other = spec.set_engine("sklearn", verbose=0)
        assert spec.engine == "xgboost"
        assert other.engine == "sklearn"
        assert other.engine_args == {"verbose": 0}

    def test_unknown_engine(self) -> None:
        """Test that unknown engines raise KeyError."""
        with pytest.raises(KeyError, match="Unknown engine"):
            rand_forest().set_engine("ranger")

    def test_unknown_model_type(self) -> None:
        """Test that unknown model types raise KeyError."""
        with pytest.raises(KeyError, match="Unknown model type"):
            translate(ModelSpec(model_type="logistic_reg"))

    def test_set_mode(self) -> None:
        """Test that only regression is supported."""
        assert linear_reg().set_mode("regression").mode == "regression"
        with pytest.raises(ValueError, match="Unsupported mode"):
            linear_reg().set_mode("classification")

    def test_tunable_args(self) -> None:
        """Test that tune() placeholders are reported."""
        spec = rand_forest(trees=100, min_n=tune())
        assert spec.tunable_args() == ["min_n"]
        assert is_tune("tune()")
        assert tune("depth") != tune()

    def test_str(self) -> None:
        """Test the printed specification."""
        text = str(rand_forest(trees=100))
        assert "rand_forest Model Specification (regression)" in text
        assert "trees=100" in text

    def test_list_engines(self) -> None:
        """Test the registry listing."""
        engines = list_engines()
        assert ("linear_reg", "sklearn") in engines
        assert ("boost_tree", "xgboost") in engines


class TestTranslate:
    """Tests for translate."""

    def test_linear_reg_unpenalized(self) -> None:
        """Test that no penalty gives ordinary least squares."""
        assert isinstance(translate(linear_reg()), LinearRegression)

    def test_linear_reg_penalized(self) -> None:
        """Test that a penalty gives an elastic net with lasso mixing by default."""
        model = translate(linear_reg(penalty=0.1))
        assert isinstance(model, ElasticNet)
        assert model.alpha == 0.1
        assert model.l1_ratio == 1.0

    def test_rand_forest_args_and_seed(self) -> None:
        """Test argument mapping and seeding."""
        model = translate(rand_forest(trees=20, min_n=5), seed=7)
        assert isinstance(model, RandomForestRegressor)
        assert model.n_estimators == 20
        assert model.min_samples_split == 5
        assert model.random_state == 7

    def test_engine_defaults(self) -> None:
        """Test engine defaults when arguments are left unset."""
        assert translate(rand_forest()).n_estimators == 500
        model = translate(boost_tree())
        assert isinstance(model, XGBRegressor)
        assert model.n_estimators == 15

    def test_engine_args_passed_through(self) -> None:
        """Test that engine arguments reach the estimator."""
        model = translate(rand_forest(trees=10).set_engine("sklearn", max_depth=3))
        assert model.max_depth == 3

    def test_converters(self) -> None:
        """Test value conversion for knn weights and mlp layers."""
        knn = translate(nearest_neighbor(neighbors=3, weight_func="inv"))
        assert isinstance(knn, KNeighborsRegressor)
        assert knn.weights == "distance"
        assert translate(mlp(hidden_units=8)).hidden_layer_sizes == (8,)

    def test_tune_placeholder_rejected(self) -> None:
        """Test that unfinalized specs cannot be translated."""
        with pytest.raises(ValueError, match="marked for tuning"):
            translate(rand_forest(min_n=tune()))

    def test_unsupported_argument(self) -> None:
        """Test that unknown main arguments raise."""
        spec = linear_reg().set_args(trees=10)
        with pytest.raises(ValueError, match="not supported"):
            translate(spec)


class TestBuildModelSpec:
    """Tests for config-driven specs."""

    def test_from_config(self) -> None:
        """Test building a spec with a tune() string."""
        config = ModelSpecConfig.model_validate(
            {"type": "rand_forest", "args": {"trees": 50, "min_n": "tune()"}}
        )
        spec = build_model_spec(config)
        assert spec.engine == "sklearn"
        assert spec.args["trees"] == 50
        assert spec.tunable_args() == ["min_n"]

    def test_unknown_type(self) -> None:
        """Test that unknown model types in config raise."""
        config = ModelSpecConfig.model_validate({"type": "nope"})
        with pytest.raises(KeyError):
            build_model_spec(config)
