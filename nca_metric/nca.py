"""Neighborhood Components Analysis driver."""

from __future__ import annotations

import logging
from typing import Optional

import numpy as np
from numpy.typing import ArrayLike

from .config import NCAConfig
from .objective import DimensionMismatchError, SoftNeighborObjective
from .optimizers import (
    GradientDescentStrategy,
    OptimizationResult,
    OptimizerStrategy,
    build_optimizer,
)

logger = logging.getLogger(__name__)

__all__ = ["NCA", "DimensionMismatchError", "initial_transform"]


def initial_transform(data: ArrayLike, normalize: bool = False) -> np.ndarray:
    """Starting point for the optimization.

    The identity, or with ``normalize`` the diagonal of inverse feature ranges.
    A zero range is replaced by 1 so constant features do not produce NaN.
    """
    points = np.asarray(data, dtype=np.float64)
    if points.ndim != 2:
        raise ValueError("data must be a 2-D array")
    num_features = points.shape[1]
    if not normalize:
        return np.eye(num_features)
    if points.shape[0] == 0:
        raise ValueError("Cannot compute feature ranges of an empty dataset")

    ranges = points.max(axis=0) - points.min(axis=0)
    ranges[ranges == 0.0] = 1.0
    logger.info("Using normalized starting point for optimization.")
    return np.diag(1.0 / ranges)


class NCA:
    """Learn a Mahalanobis distance ``L^T L`` with NCA.

    Labels are checked against the points as soon as the object is built, so
    a mismatch is reported before any optimizer iteration runs.
    """

    def __init__(
        self,
        data: ArrayLike,
        labels: ArrayLike,
        optimizer: Optional[OptimizerStrategy] = None,
    ) -> None:
        self.objective = SoftNeighborObjective(data, labels)
        self.optimizer = optimizer if optimizer is not None else GradientDescentStrategy()
        self.result_: Optional[OptimizationResult] = None

    @classmethod
    def from_config(
        cls,
        data: ArrayLike,
        labels: ArrayLike,
        config: NCAConfig,
        rng: Optional[np.random.Generator] = None,
    ) -> "NCA":
        """Build the driver with the optimizer selected in ``config``."""
        return cls(data, labels, optimizer=build_optimizer(config, rng))

    def initial_transform(self, normalize: bool = False) -> np.ndarray:
        return initial_transform(self.objective.data, normalize)

    def learn_distance(self, initial: Optional[ArrayLike] = None) -> np.ndarray:
        """Optimize from ``initial`` (identity when omitted) and return the transform."""
        num_features = self.objective.num_features
        if initial is None:
            start = np.eye(num_features)
        else:
            start = np.asarray(initial, dtype=np.float64)
        if start.shape != (num_features, num_features):
            raise DimensionMismatchError(
                f"Initial transform must be {num_features}x{num_features}, got {start.shape}"
            )

        logger.info(
            "Running NCA with %s on %d points, %d features",
            self.optimizer.name or type(self.optimizer).__name__,
            self.objective.num_points,
            num_features,
        )
        self.result_ = self.optimizer.optimize(self.objective, start)
        logger.info(
            "NCA finished (%s) after %d iterations, objective %.6g",
            self.result_.termination.value,
            self.result_.iterations,
            self.result_.objective,
        )
        return self.result_.transform

    @property
    def distance(self) -> np.ndarray:
        """The learned transform ``L``."""
        if self.result_ is None:
            raise RuntimeError("learn_distance() has not been run")
        return self.result_.transform

    def transform(self, vectors: ArrayLike) -> np.ndarray:
        """Project ``vectors`` (one per row) through the learned transform."""
        return np.asarray(vectors, dtype=np.float64) @ self.distance.T
