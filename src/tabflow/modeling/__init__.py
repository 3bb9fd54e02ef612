"""
Modeling layer: model specifications, workflows and tuning.

Model specifications are engine independent; workflows pair them with
a preprocessing recipe and fit both as one scikit-learn pipeline.
"""

from tabflow.modeling.models import (
    MODEL_REGISTRY,
    ModelSpec,
    boost_tree,
    decision_tree,
    linear_reg,
    list_engines,
    mlp,
    nearest_neighbor,
    rand_forest,
    svm_rbf,
    translate,
    tune,
)
from tabflow.modeling.workflow import FittedWorkflow, Workflow, load_workflow, workflow
from tabflow.modeling.tuning import TuneResults, finalize_workflow, tune_grid

__all__ = [
    "MODEL_REGISTRY",
    "FittedWorkflow",
    "ModelSpec",
    "TuneResults",
    "Workflow",
    "boost_tree",
    "decision_tree",
    "finalize_workflow",
    "linear_reg",
    "list_engines",
    "load_workflow",
    "mlp",
    "nearest_neighbor",
    "rand_forest",
    "svm_rbf",
    "translate",
    "tune",
    "tune_grid",
    "workflow",
]
