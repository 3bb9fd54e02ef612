"""
End-to-end modeling pipeline.

Chains the workflow from a PipelineConfig: load data, split, resample,
declare the recipe and model, estimate performance by resampling,
optionally tune, then fit on the full training set and evaluate once
on the test set.
"""

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import pandas as pd

from tabflow.config.settings import PipelineConfig, ResamplingMethod
from tabflow.data.loading import (
    DatasetSummary,
    describe_dataset,
    fingerprint_dataset,
    load_dataset,
)
from tabflow.data.splitting import DataSplit, ResampleSet, bootstraps, initial_split, vfold_cv
from tabflow.evaluation.final import LastFitResult, last_fit
from tabflow.evaluation.metrics import MetricSet, metric_set
from tabflow.evaluation.report import plot_predictions, save_predictions
from tabflow.evaluation.resampling import ResampleResults, fit_resamples
from tabflow.modeling.models import build_model_spec
from tabflow.modeling.tuning import TuneResults, finalize_workflow, tune_grid
from tabflow.modeling.workflow import Workflow
from tabflow.recipes.recipe import build_recipe
from tabflow.utils.logging import get_logger, log_context

log = get_logger(__name__)


@dataclass(frozen=True, eq=False)
class PipelineResult:
    """
    Everything produced by a pipeline run.

    Attributes:
        config: Configuration used.
        summary: Dataset description.
        fingerprint: Dataset content hash.
        split: Initial train/test split.
        resamples: Resampling set over the training data.
        workflow: Final (finalized) workflow.
        resample_results: Resampled metrics of the final workflow.
        last_fit: Test-set evaluation.
        tune_results: Grid search results, if tuning ran.
        best_params: Selected tuning values, if tuning ran.
        artifacts: Name -> path of written files.
    """

    config: PipelineConfig
    summary: DatasetSummary
    fingerprint: str
    split: DataSplit
    resamples: ResampleSet
    workflow: Workflow
    resample_results: ResampleResults
    last_fit: LastFitResult
    tune_results: TuneResults | None = None
    best_params: dict[str, Any] | None = None
    artifacts: dict[str, Path] = field(default_factory=dict)


class ModelingPipeline:
    """
    Stepwise modeling pipeline driven by a PipelineConfig.

    Each step can be called on its own (the CLI does this for the
    ``split``, ``resample`` and ``tune`` commands); ``run`` chains them.
    """

    def __init__(self, config: PipelineConfig) -> None:
        """
        Initialize pipeline.

        Args:
            config: Pipeline configuration.
        """
        self.config = config
        self.metrics: MetricSet = metric_set(*config.metrics)

    def load_data(self) -> pd.DataFrame:
        """Load and validate the configured dataset."""
        data_config = self.config.data
        return load_dataset(
            data_config.source,
            data_config.target,
            columns=data_config.columns,
            cache_dir=self.config.cache_dir if data_config.is_remote else None,
            refresh=data_config.refresh,
        )

    def split(self, data: pd.DataFrame) -> DataSplit:
        """Create the initial train/test split."""
        split_config = self.config.split
        return initial_split(
            data,
            prop=split_config.prop,
            strata=split_config.strata,
            breaks=split_config.breaks,
            pool=split_config.pool,
            seed=self.config.seed,
        )

    def resample(self, training: pd.DataFrame) -> ResampleSet:
        """Create the resampling set over the training data."""
        rs = self.config.resampling
        if rs.method == ResamplingMethod.BOOTSTRAP:
            return bootstraps(
                training,
                times=rs.times,
                strata=rs.strata,
                breaks=rs.breaks,
                pool=rs.pool,
                seed=self.config.seed,
            )
        return vfold_cv(
            training,
            v=rs.v,
            repeats=rs.repeats,
            strata=rs.strata,
            breaks=rs.breaks,
            pool=rs.pool,
            seed=self.config.seed,
        )

    def build_workflow(self, training: pd.DataFrame) -> Workflow:
        """Declare the recipe on the training data and pair it with the model spec."""
        rec = build_recipe(training, self.config.formula, self.config.recipe.steps)
        spec = build_model_spec(self.config.model)
        return Workflow(
            recipe=rec,
            model=spec,
            target_transform=self.config.model.target_transform,
            seed=self.config.seed,
        )

    def tune(self, wf: Workflow, resamples: ResampleSet) -> tuple[TuneResults, dict[str, Any]]:
        """
        Grid-search the tunable arguments and select the best candidate.

        Returns:
            Tuple of (tune results, selected parameters).
        """
        tuning = self.config.tuning
        results = tune_grid(wf, resamples, tuning.grid, metrics=self.metrics)
        best = results.select_best(tuning.metric)
        log.info("Selected best candidate", metric=tuning.metric, params=best)
        return results, best

    def save(self, result_fit: LastFitResult, outcome: str) -> dict[str, Path]:
        """Write the fitted workflow, test predictions and plot."""
        artifacts = {
            "model": result_fit.extract_workflow().save(
                self.config.models_dir / f"{self.config.project}.joblib"
            ),
            "predictions": save_predictions(
                result_fit.collect_predictions(),
                self.config.predictions_dir / "test_predictions.csv",
            ),
            "plot": plot_predictions(
                result_fit.collect_predictions(),
                outcome,
                self.config.plots_dir / "test_predictions.png",
                title=f"{self.config.project}: test set",
            ),
        }
        return artifacts

    def run(self, *, tune: bool | None = None, save: bool = True) -> PipelineResult:
        """
        Run every step.

        Args:
            tune: Run grid search; defaults to ``tuning.enabled``.
            save: Write model, predictions and plot to the output directory.

        Returns:
            PipelineResult.

        Raises:
            ValueError: If tuning is requested but the model has nothing
                to tune or no grid is configured.
        """
        do_tune = self.config.tuning.enabled if tune is None else tune

        with log_context(project=self.config.project):
            log.info(
                "Starting pipeline",
                model=self.config.model.model_type,
                tune=do_tune,
            )
            data = self.load_data()
            summary = describe_dataset(data, self.config.data.target)
            fingerprint = fingerprint_dataset(data)

            split = self.split(data)
            training = split.training()
            resamples = self.resample(training)
            wf = self.build_workflow(training)

            tune_results: TuneResults | None = None
            best_params: dict[str, Any] | None = None
            if do_tune:
                if not self.config.tuning.grid:
                    msg = "Tuning requested but tuning.grid is empty"
                    raise ValueError(msg)
                tune_results, best_params = self.tune(wf, resamples)
                wf = finalize_workflow(wf, best_params)
            elif wf.model is not None and wf.model.tunable_args():
                msg = (
                    f"Model arguments {wf.model.tunable_args()} are marked for tuning; "
                    "enable tuning or set fixed values"
                )
                raise ValueError(msg)

            resample_results = fit_resamples(wf, resamples, metrics=self.metrics)
            final = last_fit(wf, split, metrics=self.metrics)

            artifacts = self.save(final, summary.target) if save else {}
            log.info("Pipeline complete", n_artifacts=len(artifacts))

        return PipelineResult(
            config=self.config,
            summary=summary,
            fingerprint=fingerprint,
            split=split,
            resamples=resamples,
            workflow=wf,
            resample_results=resample_results,
            last_fit=final,
            tune_results=tune_results,
            best_params=best_params,
            artifacts=artifacts,
        )


def run_pipeline(
    config: PipelineConfig,
    *,
    tune: bool | None = None,
    save: bool = True,
) -> PipelineResult:
    """
    Convenience function to run the modeling pipeline.

    Args:
        config: Pipeline configuration.
        tune: Run grid search; defaults to ``tuning.enabled``.
        save: Write artifacts to the output directory.

    Returns:
        PipelineResult.
    """
    return ModelingPipeline(config).run(tune=tune, save=save)
