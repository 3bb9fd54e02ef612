"""
tabflow: Predictive-Modeling Workflow.

This package provides data splitting, preprocessing recipes, model
specifications, workflows, resampling evaluation and final fitting
on top of scikit-learn.
"""

from importlib.metadata import version

__version__ = version("tabflow")

__all__ = ["__version__"]
