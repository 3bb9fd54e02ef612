"""
Configuration management with typed Pydantic models.

Provides the dataset, split, resampling, recipe, model and tracking
settings of a workflow run, loaded from YAML.
"""

from tabflow.config.loader import load_config
from tabflow.config.settings import (
    DataConfig,
    LoggingConfig,
    MLflowConfig,
    ModelSpecConfig,
    OutputConfig,
    PipelineConfig,
    RecipeConfig,
    ResamplingConfig,
    ResamplingMethod,
    SplitConfig,
    StepConfig,
    TuningConfig,
)

__all__ = [
    "DataConfig",
    "LoggingConfig",
    "MLflowConfig",
    "ModelSpecConfig",
    "OutputConfig",
    "PipelineConfig",
    "RecipeConfig",
    "ResamplingConfig",
    "ResamplingMethod",
    "SplitConfig",
    "StepConfig",
    "TuningConfig",
    "load_config",
]
