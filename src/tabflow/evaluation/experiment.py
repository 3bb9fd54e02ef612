"""
MLflow experiment tracking.

Logs the parameters, metrics and artifacts of a pipeline run so that
runs with different recipes or models can be compared.
"""

from datetime import datetime
from pathlib import Path
from typing import TYPE_CHECKING, Any

import mlflow

from tabflow.config.settings import PipelineConfig
from tabflow.modeling.workflow import FittedWorkflow
from tabflow.utils.hashing import hash_config
from tabflow.utils.logging import get_logger

if TYPE_CHECKING:
    from tabflow.pipeline import PipelineResult

log = get_logger(__name__)


class ExperimentTracker:
    """
    Thin wrapper around an MLflow experiment.

    One tracker logs one pipeline run at a time.
    """

    def __init__(self, config: PipelineConfig) -> None:
        """
        Initialize tracker.

        Args:
            config: Pipeline configuration.
        """
        self.config = config
        self._run_id: str | None = None

    @property
    def run_id(self) -> str | None:
        """Current run id, if a run is active."""
        return self._run_id

    def setup(self) -> None:
        """Point MLflow at the tracking server and experiment."""
        mlflow.set_tracking_uri(self.config.mlflow.tracking_uri)
        mlflow.set_experiment(self.config.experiment_name)

        log.info(
            "Experiment setup",
            name=self.config.experiment_name,
            tracking_uri=self.config.mlflow.tracking_uri,
        )

    def start_run(self, run_name: str | None = None) -> str:
        """
        Start an MLflow run.

        Args:
            run_name: Optional run name; defaults to '<model>-<timestamp>'.

        Returns:
            Run ID.
        """
        self.setup()
        if run_name is None:
            run_name = f"{self.config.model.model_type}-{datetime.now():%Y%m%d-%H%M}"

        tags = {
            "project": self.config.project,
            "model_type": self.config.model.model_type,
            "engine": self.config.model.engine or "default",
            "config_hash": hash_config(self.config),
        }
        run = mlflow.start_run(run_name=run_name, tags=tags)
        self._run_id = run.info.run_id

        log.info("Started MLflow run", run_id=self._run_id)
        return self._run_id

    def end_run(self) -> None:
        """End the current MLflow run."""
        mlflow.end_run()
        log.info("Ended MLflow run", run_id=self._run_id)
        self._run_id = None

    def log_params(self, params: dict[str, Any]) -> None:
        """Log parameters; values are stringified by MLflow."""
        mlflow.log_params(params)

    def log_metrics(self, metrics: dict[str, float]) -> None:
        """Log metrics."""
        mlflow.log_metrics(metrics)

    def log_artifact(self, path: Path, artifact_path: str | None = None) -> None:
        """Log an artifact."""
        mlflow.log_artifact(str(path), artifact_path)

    def log_workflow(self, fitted: FittedWorkflow, artifact_path: str = "model") -> None:
        """Log the fitted scikit-learn pipeline of a workflow."""
        mlflow.sklearn.log_model(fitted.extract_pipeline(), artifact_path)

    def log_pipeline_result(self, result: "PipelineResult") -> None:
        """
        Log everything worth comparing from a pipeline run.

        Params: model spec, recipe steps, split sizes, resampling setup,
        dataset fingerprint and tuned values. Metrics: resampled means as
        ``cv_<metric>`` and test-set estimates as ``test_<metric>``.
        """
        model = result.workflow.model
        params: dict[str, Any] = {
            "model_type": model.model_type if model else None,
            "engine": model.engine if model else None,
            "recipe_steps": ",".join(s.operation for s in result.workflow.recipe.steps)
            if result.workflow.recipe
            else "",
            "n_train": result.split.n_train,
            "n_test": result.split.n_test,
            "resampling": result.resamples.method,
            "n_resamples": len(result.resamples),
            "dataset_hash": result.fingerprint,
            "seed": self.config.seed,
        }
        if model:
            params.update(
                {f"arg_{k}": v for k, v in model.args.items() if v is not None}
            )
        if result.best_params:
            params.update(
                {f"best_{k}": v for k, v in result.best_params.items() if not k.startswith(".")}
            )
        self.log_params(params)

        metrics = {f"cv_{k}": v for k, v in result.resample_results.mean_metrics().items()}
        metrics.update({f"test_{k}": v for k, v in result.last_fit.metrics_dict().items()})
        self.log_metrics(metrics)

        for path in result.artifacts.values():
            if path.exists():
                self.log_artifact(path)

        log.info("Logged pipeline result", run_id=self._run_id, n_metrics=len(metrics))
