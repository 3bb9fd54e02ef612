"""Tests for grid tuning, candidate ranking and finalization."""

import pandas as pd
import pytest

from tabflow.data import ResampleSet, vfold_cv
from tabflow.modeling import (
    TuneResults,
    Workflow,
    decision_tree,
    finalize_workflow,
    linear_reg,
    nearest_neighbor,
    tune,
    tune_grid,
    workflow,
)
from tabflow.modeling.tuning import expand_grid, finalize_model
from tabflow.recipes import all_nominal_predictors, all_numeric_predictors, recipe


@pytest.fixture
def folds(regression_data: pd.DataFrame) -> ResampleSet:
    """Three folds over the regression data."""
    return vfold_cv(regression_data, v=3, seed=11)


@pytest.fixture
def knn_workflow(regression_data: pd.DataFrame) -> Workflow:
    """Nearest neighbors with a tunable neighbor count."""
    rec = (
        recipe("y ~ .", regression_data)
        .step_dummy(all_nominal_predictors())
        .step_zv(all_numeric_predictors())
        .step_normalize(all_numeric_predictors())
    )
    return workflow(rec, nearest_neighbor(neighbors=tune()))


@pytest.fixture
def knn_results(knn_workflow: Workflow, folds: ResampleSet) -> TuneResults:
    """Tuning results for three neighbor counts."""
    return tune_grid(knn_workflow, folds, {"neighbors": [1, 5, 15]}, metrics=["rmse", "rsq"])


class TestExpandGrid:
    """Tests for grid expansion."""

    def test_dict_grid(self) -> None:
        """Test that a dict expands to all combinations."""
        candidates = expand_grid({"a": [1, 2], "b": [3]})
        assert len(candidates) == 2
        assert {"a": 1, "b": 3} in candidates

    def test_dataframe_grid(self) -> None:
        """Test that a DataFrame is taken row by row with plain Python values."""
        candidates = expand_grid(pd.DataFrame({"a": [1, 2]}))
        assert candidates == [{"a": 1}, {"a": 2}]
        assert type(candidates[0]["a"]) is int


class TestTuneGrid:
    """Tests for tune_grid."""

    def test_metrics_per_candidate(self, knn_results: TuneResults) -> None:
        """Test one row per candidate, resample and metric."""
        raw = knn_results.collect_metrics(summarize=False)
        assert len(raw) == 3 * 3 * 2
        assert sorted(raw[".config"].unique()) == [
            "Preprocessor1_Model1",
            "Preprocessor1_Model2",
            "Preprocessor1_Model3",
        ]

    def test_summary_has_params(self, knn_results: TuneResults) -> None:
        """Test that summarized metrics carry the parameter values."""
        summary = knn_results.collect_metrics()
        assert list(summary.columns) == [
            "neighbors",
            ".metric",
            ".estimator",
            "mean",
            "n",
            "std_err",
            ".config",
        ]
        assert len(summary) == 6
        assert (summary["n"] == 3).all()
        config_to_k = dict(zip(knn_results.params[".config"], knn_results.params["neighbors"]))
        assert config_to_k == {
            "Preprocessor1_Model1": 1,
            "Preprocessor1_Model2": 5,
            "Preprocessor1_Model3": 15,
        }

    def test_candidate_scores_differ(self, knn_results: TuneResults) -> None:
        """Test that each candidate was actually fitted with its own value."""
        rmse = knn_results.collect_metrics()
        rmse = rmse[rmse[".metric"] == "rmse"]
        assert rmse["mean"].nunique() == 3

    def test_zero_padded_configs(self, knn_workflow: Workflow, folds: ResampleSet) -> None:
        """Test config labels for ten or more candidates."""
        results = tune_grid(knn_workflow, folds, {"neighbors": list(range(1, 11))}, ["rmse"])
        assert results.params[".config"].iloc[0] == "Preprocessor1_Model01"
        assert results.params[".config"].iloc[-1] == "Preprocessor1_Model10"

    def test_tune_id(self, regression_data: pd.DataFrame, folds: ResampleSet) -> None:
        """Test grid names taken from tune ids."""
        rec = recipe("y ~ x1 + x2", regression_data)
        wf = workflow(rec, decision_tree(tree_depth=tune("depth")))
        results = tune_grid(wf, folds, {"depth": [2, 4]}, ["rmse"])
        assert results.param_names == ["depth"]
        assert set(results.select_best("rmse")) == {"depth", ".config"}

    def test_target_transform(self, positive_data: pd.DataFrame) -> None:
        """Test tuning a workflow fitted on a log-transformed outcome."""
        rec = recipe("y ~ x1 + x2", positive_data)
        wf = workflow(rec, decision_tree(min_n=tune()), target_transform="log1p")
        results = tune_grid(wf, vfold_cv(positive_data, v=3, seed=1), {"min_n": [2, 30]})
        assert len(results.collect_metrics()) == 4

    def test_nothing_to_tune(self, regression_data: pd.DataFrame, folds: ResampleSet) -> None:
        """Test that a model without tune() cannot be tuned."""
        wf = workflow(recipe("y ~ x1", regression_data), linear_reg())
        with pytest.raises(ValueError, match="no arguments marked"):
            tune_grid(wf, folds, {"penalty": [0.1]})

    @pytest.mark.parametrize(
        ("grid", "match"),
        [
            ({"trees": [10]}, "not marked for tuning"),
            ({}, "empty"),
        ],
    )
    def test_bad_grid(
        self, knn_workflow: Workflow, folds: ResampleSet, grid: dict, match: str
    ) -> None:
        """Test grid validation."""
        with pytest.raises(ValueError, match=match):
            tune_grid(knn_workflow, folds, grid)

    def test_missing_grid_values(
        self, regression_data: pd.DataFrame, folds: ResampleSet
    ) -> None:
        """Test that every tunable argument needs grid values."""
        rec = recipe("y ~ x1 + x2", regression_data)
        wf = workflow(rec, decision_tree(tree_depth=tune(), min_n=tune()))
        with pytest.raises(ValueError, match="No grid values"):
            tune_grid(wf, folds, {"tree_depth": [2]})


class TestSelection:
    """Tests for ranking and selecting candidates."""

    def test_show_best_minimized(self, knn_results: TuneResults) -> None:
        """Test that rmse is ranked smallest first."""
        best = knn_results.show_best("rmse", n=3)
        assert best["mean"].is_monotonic_increasing
        assert (best[".metric"] == "rmse").all()

    def test_show_best_maximized(self, knn_results: TuneResults) -> None:
        """Test that rsq is ranked largest first."""
        best = knn_results.show_best("rsq", n=2)
        assert len(best) == 2
        assert best["mean"].is_monotonic_decreasing

    def test_show_best_default_metric(self, knn_results: TuneResults) -> None:
        """Test that the first metric is used when none is given."""
        assert (knn_results.show_best()[".metric"] == "rmse").all()

    def test_unknown_metric(self, knn_results: TuneResults) -> None:
        """Test that ranking by an uncomputed metric fails."""
        with pytest.raises(ValueError, match="was not computed"):
            knn_results.show_best("mae")

    def test_select_best(self, knn_results: TuneResults) -> None:
        """Test that select_best matches the top of show_best."""
        best = knn_results.select_best("rmse")
        top = knn_results.show_best("rmse", n=1).iloc[0]
        assert best["neighbors"] == top["neighbors"]
        assert best[".config"] == top[".config"]
        assert type(best["neighbors"]) is int


class TestFinalize:
    """Tests for finalizing tunable workflows."""

    def test_finalize_workflow(
        self, regression_data: pd.DataFrame, knn_workflow: Workflow, knn_results: TuneResults
    ) -> None:
        """Test that the finalized workflow can be fitted."""
        final = finalize_workflow(knn_workflow, knn_results.select_best("rmse"))
        assert final.model.tunable_args() == []
        assert knn_workflow.model.tunable_args() == ["neighbors"]
        fitted = final.fit(regression_data)
        assert fitted.extract_fit().n_neighbors in (1, 5, 15)

    def test_finalize_unknown_key(self) -> None:
        """Test that only tunable arguments can be finalized."""
        with pytest.raises(ValueError, match="not marked for tuning"):
            finalize_model(nearest_neighbor(neighbors=tune()), {"weight_func": "inv"})
