"""
Outcome transformations.

A workflow can fit its model on a transformed outcome (e.g. log1p of
a skewed price) while predicting on the original scale.
"""

from typing import Any

import numpy as np

from tabflow.utils.logging import get_logger

log = get_logger(__name__)

TARGET_TRANSFORMS = ("log1p", "none")


class ClippedExpm1:
    """
    Picklable inverse of log1p that clips predictions.

    Prevents extreme extrapolation from models fitted on the log scale.
    """

    def __init__(self, clip_max: float) -> None:
        self.clip_max = clip_max

    def __call__(self, x: np.ndarray) -> np.ndarray:
        # Clip the input first so expm1 cannot overflow
        max_input = np.log1p(self.clip_max)
        x_clipped = np.clip(x, None, max_input)
        return np.clip(np.expm1(x_clipped), 0, self.clip_max)


def build_target_transformer(
    method: str | None,
    *,
    clip_max: float | None = None,
) -> tuple[Any, Any]:
    """
    Build outcome transform/inverse function pair.

    Args:
        method: 'log1p', 'none' or None.
        clip_max: Upper bound for inverse-transformed predictions.

    Returns:
        Tuple of (transform_func, inverse_func); (None, None) for no transform.

    Raises:
        ValueError: If the method is unknown.
    """
    if method is None or method == "none":
        return None, None

    if method == "log1p":
        if clip_max is not None:
            return np.log1p, ClippedExpm1(clip_max)
        return np.log1p, np.expm1

    msg = f"Unknown target transform '{method}'. Available: {', '.join(TARGET_TRANSFORMS)}"
    raise ValueError(msg)
