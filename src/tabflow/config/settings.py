"""
Typed configuration models using Pydantic.

Every knob of the modeling workflow is declared here with explicit
typing and validation. Processing code never hardcodes a dataset,
split proportion or model choice.
"""

from enum import Enum
from pathlib import Path
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator


class ResamplingMethod(str, Enum):
    """Resampling scheme used to estimate out-of-sample performance."""

    VFOLD = "vfold"
    BOOTSTRAP = "bootstrap"


class DataConfig(BaseModel):
    """Dataset source configuration."""

    model_config = ConfigDict(frozen=True)

    source: str = Field(description="CSV URL (http/https) or local file path")
    target: str = Field(description="Numeric outcome column")
    columns: list[str] | None = Field(
        default=None,
        description="Optional subset of columns to keep (target is always kept)",
    )
    cache_dir: Path | None = Field(
        default=None,
        description="Directory for cached remote downloads (default: project cache)",
    )
    refresh: bool = Field(default=False, description="Re-download remote sources")

    @property
    def is_remote(self) -> bool:
        """Whether the source is fetched over HTTP."""
        return self.source.startswith(("http://", "https://"))


class SplitConfig(BaseModel):
    """Initial train/test split configuration."""

    model_config = ConfigDict(frozen=True)

    prop: float = Field(default=0.75, gt=0.0, lt=1.0, description="Training share")
    strata: str | None = Field(default=None, description="Column to stratify on")
    breaks: int = Field(default=4, ge=2, description="Quantile bins for numeric strata")
    pool: float = Field(
        default=0.1, ge=0.0, lt=0.5, description="Minimum share per stratum"
    )


class ResamplingConfig(BaseModel):
    """Resampling configuration applied to the training set."""

    model_config = ConfigDict(frozen=True)

    method: ResamplingMethod = Field(default=ResamplingMethod.VFOLD)
    v: int = Field(default=10, ge=2, description="Number of folds")
    repeats: int = Field(default=1, ge=1, description="Repeats of V-fold CV")
    times: int = Field(default=25, ge=1, description="Number of bootstrap samples")
    strata: str | None = Field(default=None)
    breaks: int = Field(default=4, ge=2)
    pool: float = Field(default=0.1, ge=0.0, lt=0.5)


class StepConfig(BaseModel):
    """A single declarative recipe step."""

    model_config = ConfigDict(frozen=True)

    step: str = Field(description="Step name, e.g. 'dummy', 'normalize', 'zv'")
    selectors: list[str] = Field(
        default_factory=lambda: ["all_predictors"],
        description="Column names or selector names (all_numeric_predictors, ...)",
    )
    options: dict[str, Any] = Field(default_factory=dict)
    skip: bool = Field(default=False, description="Skip this step when baking new data")


class RecipeConfig(BaseModel):
    """Preprocessing recipe configuration."""

    model_config = ConfigDict(frozen=True)

    formula: str | None = Field(
        default=None, description="Model formula, defaults to '<target> ~ .'"
    )
    steps: list[StepConfig] = Field(default_factory=list)


class ModelSpecConfig(BaseModel):
    """Model specification: algorithm, mode, engine and arguments."""

    model_config = ConfigDict(frozen=True, populate_by_name=True, protected_namespaces=())

    model_type: str = Field(alias="type", description="e.g. linear_reg, rand_forest")
    engine: str | None = Field(default=None, description="Computational backend")
    mode: str = Field(default="regression")
    args: dict[str, Any] = Field(default_factory=dict)
    engine_args: dict[str, Any] = Field(default_factory=dict)
    target_transform: str | None = Field(
        default=None, description="Outcome transform fitted on, e.g. 'log1p'"
    )


class TuningConfig(BaseModel):
    """Grid tuning configuration."""

    model_config = ConfigDict(frozen=True)

    enabled: bool = Field(default=False)
    grid: dict[str, list[Any]] = Field(
        default_factory=dict, description="Model argument -> candidate values"
    )
    metric: str = Field(default="rmse", description="Metric used to select the best")
    n_best: int = Field(default=5, ge=1)

    @model_validator(mode="after")
    def validate_grid(self) -> "TuningConfig":
        """Ensure an enabled tuning config carries a grid."""
        if self.enabled and not self.grid:
            msg = "tuning.enabled requires a non-empty tuning.grid"
            raise ValueError(msg)
        return self


class MLflowConfig(BaseModel):
    """MLflow experiment tracking configuration."""

    model_config = ConfigDict(frozen=True)

    enabled: bool = Field(default=False)
    tracking_uri: str = Field(default="http://127.0.0.1:5000")
    # experiment_name is optional; derived from project if not set
    experiment_name: str | None = Field(default=None)


class OutputConfig(BaseModel):
    """
    Output paths configuration.

    Structure: ./output/{project}/models, ./output/{project}/predictions, ...
    """

    model_config = ConfigDict(frozen=True)

    output_root: Path = Field(default=Path("./output"))


class LoggingConfig(BaseModel):
    """Logging configuration."""

    model_config = ConfigDict(frozen=True)

    level: str = Field(default="INFO")
    json_output: bool = Field(default=False)

    @field_validator("level")
    @classmethod
    def validate_level(cls, v: str) -> str:
        """Ensure the level is a standard logging level name."""
        allowed = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}
        if v.upper() not in allowed:
            msg = f"Log level must be one of {sorted(allowed)}, got: {v!r}"
            raise ValueError(msg)
        return v.upper()


class PipelineConfig(BaseModel):
    """
    Complete workflow configuration.

    The project name drives:
    - MLflow experiment name (if not explicitly set)
    - Output directory structure: ./output/{project}/
    """

    model_config = ConfigDict(frozen=True)

    project: str = Field(description="Project identifier (e.g., 'diamonds-lm')")
    seed: int = Field(default=1337)

    data: DataConfig
    split: SplitConfig = Field(default_factory=SplitConfig)
    resampling: ResamplingConfig = Field(default_factory=ResamplingConfig)
    recipe: RecipeConfig = Field(default_factory=RecipeConfig)
    model: ModelSpecConfig
    tuning: TuningConfig = Field(default_factory=TuningConfig)
    metrics: list[str] = Field(default_factory=lambda: ["rmse", "rsq"])
    mlflow: MLflowConfig = Field(default_factory=MLflowConfig)
    output: OutputConfig = Field(default_factory=OutputConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)

    @field_validator("metrics")
    @classmethod
    def validate_metrics(cls, v: list[str]) -> list[str]:
        """Ensure at least one metric is requested."""
        if not v:
            msg = "At least one metric is required"
            raise ValueError(msg)
        return v

    @property
    def formula(self) -> str:
        """Recipe formula (defaults to the target against all other columns)."""
        return self.recipe.formula or f"{self.data.target} ~ ."

    @property
    def experiment_name(self) -> str:
        """MLflow experiment name (derived from project if not set)."""
        return self.mlflow.experiment_name or self.project

    @property
    def project_dir(self) -> Path:
        """Root output directory for this project."""
        return self.output.output_root / self.project

    @property
    def models_dir(self) -> Path:
        """Path to fitted workflow output directory."""
        return self.project_dir / "models"

    @property
    def predictions_dir(self) -> Path:
        """Path to predictions output directory."""
        return self.project_dir / "predictions"

    @property
    def plots_dir(self) -> Path:
        """Path to plots output directory."""
        return self.project_dir / "plots"

    @property
    def cache_dir(self) -> Path:
        """Path to cache directory (remote downloads land here by default)."""
        return self.data.cache_dir or self.project_dir / "cache"
