"""Shared helpers for the test-suite."""

from __future__ import annotations

from typing import List, Optional, Tuple

import numpy as np
from sklearn.datasets import make_blobs


def make_two_blobs(
    n_per_class: int, separation: float, seed: int, std: float = 0.6
) -> Tuple[np.ndarray, np.ndarray]:
    """Two isotropic 2-D clusters ``separation`` apart along the diagonal."""
    half = separation / (2.0 * np.sqrt(2.0))
    data, labels = make_blobs(
        n_samples=[n_per_class, n_per_class],
        centers=[[-half, -half], [half, half]],
        cluster_std=std,
        random_state=seed,
    )
    return data.astype(np.float64), labels.astype(np.int64)


def numerical_gradient(objective, transform: np.ndarray, indices=None, eps: float = 1e-6) -> np.ndarray:
    """Central finite differences of ``objective.evaluate``."""
    gradient = np.zeros_like(transform)
    for idx in np.ndindex(*transform.shape):
        step = np.zeros_like(transform)
        step[idx] = eps
        upper, _ = objective.evaluate(transform + step, indices)
        lower, _ = objective.evaluate(transform - step, indices)
        gradient[idx] = (upper - lower) / (2.0 * eps)
    return gradient


class QuadraticObjective:
    """``||L - target||^2``: a convex stand-in with a known minimizer."""

    num_points = 1

    def __init__(self, target: np.ndarray) -> None:
        self.target = target
        self.calls = 0

    def evaluate(self, transform: np.ndarray, indices=None):
        self.calls += 1
        residual = transform - self.target
        return float(np.sum(residual ** 2)), 2.0 * residual


class ConstantObjective:
    """Returns a fixed value and a zero gradient."""

    def __init__(self, value: float, num_points: int = 4, dim: int = 2) -> None:
        self.value = value
        self.num_points = num_points
        self.dim = dim

    def evaluate(self, transform: np.ndarray, indices=None):
        return self.value, np.zeros((self.dim, self.dim))


class RecordingObjective:
    """Wraps an objective and records the anchor indices of every call."""

    def __init__(self, inner) -> None:
        self.inner = inner
        self.batches: List[Optional[np.ndarray]] = []

    @property
    def num_points(self) -> int:
        return self.inner.num_points

    def evaluate(self, transform: np.ndarray, indices=None):
        self.batches.append(None if indices is None else np.array(indices))
        return self.inner.evaluate(transform, indices)
