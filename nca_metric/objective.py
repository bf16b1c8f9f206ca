"""Soft-neighbour objective of Neighborhood Components Analysis."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Optional, Tuple

import numpy as np
from numpy.typing import ArrayLike
from scipy.spatial.distance import cdist

from .config import ConfigurationError

logger = logging.getLogger(__name__)


class DimensionMismatchError(ConfigurationError):
    """Raised when labels and points are not aligned."""


@dataclass(slots=True)
class SoftAssignments:
    """Stochastic neighbour assignments of a set of anchor points."""

    indices: np.ndarray
    probabilities: np.ndarray  # (len(indices), n_points), rows sum to 1 or 0
    same_class: np.ndarray
    degenerate: np.ndarray

    @property
    def class_probabilities(self) -> np.ndarray:
        """``p_i``: probability that each anchor picks a neighbour of its own class."""
        return np.sum(self.probabilities * self.same_class, axis=1)


class SoftNeighborObjective:
    """Negated NCA objective ``-sum_i p_i`` and its gradient.

    The objective is separable over points: :meth:`evaluate` accepts the subset
    of anchor points to sum over, so the same object serves full-batch and
    mini-batch optimizers. The dataset is copied and write-protected; nothing
    is cached between calls.

    Parameters
    ----------
    data:
        ``(n_points, n_features)`` matrix, one point per row.
    labels:
        Integer class label of every point.
    """

    def __init__(self, data: ArrayLike, labels: ArrayLike) -> None:
        points = np.array(data, dtype=np.float64)
        if points.ndim != 2:
            raise ValueError("data must be a 2-D array")
        classes = np.array(labels).ravel()
        if classes.shape[0] != points.shape[0]:
            raise DimensionMismatchError(
                f"The number of labels ({classes.shape[0]}) must match the number "
                f"of points ({points.shape[0]})!"
            )
        points.setflags(write=False)
        classes.setflags(write=False)
        self._data = points
        self._labels = classes

    @property
    def data(self) -> np.ndarray:
        return self._data

    @property
    def labels(self) -> np.ndarray:
        return self._labels

    @property
    def num_points(self) -> int:
        return self._data.shape[0]

    @property
    def num_features(self) -> int:
        return self._data.shape[1]

    def evaluate(
        self, transform: np.ndarray, indices: Optional[ArrayLike] = None
    ) -> Tuple[float, np.ndarray]:
        """Return ``(objective, gradient)`` summed over the anchor ``indices``.

        Parameters
        ----------
        transform:
            Current ``(D, D)`` distance transform ``L``.
        indices:
            Anchor points to include; ``None`` selects the whole dataset.

        Anchors whose softmax denominator underflows to zero contribute
        nothing to either the objective or the gradient.
        """
        matrix = self._check_transform(transform)
        assignments = self.soft_assignments(matrix, indices)
        if assignments.indices.size == 0:
            return 0.0, np.zeros_like(matrix)

        probabilities = assignments.probabilities
        matched = probabilities * assignments.same_class
        p_i = matched.sum(axis=1)
        objective = -float(p_i.sum())

        # sum_i ( p_i sum_k p_ik x_ik x_ik^T - sum_{j in C_i} p_ij x_ij x_ij^T )
        # expanded over x_ik = x_i - x_k so no (B, N, D) tensor is formed.
        coefficients = p_i[:, np.newaxis] * probabilities - matched
        anchors = self._data[assignments.indices]
        row_weights = coefficients.sum(axis=1)
        col_weights = coefficients.sum(axis=0)
        weighted = coefficients @ self._data
        cross = anchors.T @ weighted
        scatter = (
            (anchors.T * row_weights) @ anchors
            - cross
            - cross.T
            + (self._data.T * col_weights) @ self._data
        )
        gradient = -2.0 * (matrix @ scatter)
        return objective, gradient

    def probabilities(self, transform: np.ndarray) -> np.ndarray:
        """``p_i`` for every point under ``transform``."""
        matrix = self._check_transform(transform)
        return self.soft_assignments(matrix).class_probabilities

    def soft_assignments(
        self, transform: np.ndarray, indices: Optional[ArrayLike] = None
    ) -> SoftAssignments:
        """Softmax neighbour probabilities of the anchor points."""
        transform = self._check_transform(transform)
        if indices is None:
            anchor_idx = np.arange(self.num_points)
        else:
            anchor_idx = np.asarray(indices, dtype=np.intp).ravel()
            if anchor_idx.size and (
                anchor_idx.min() < 0 or anchor_idx.max() >= self.num_points
            ):
                raise IndexError("point index out of range")

        n_anchors = anchor_idx.size
        rows = np.arange(n_anchors)
        if n_anchors == 0:
            empty = np.zeros((0, self.num_points))
            return SoftAssignments(anchor_idx, empty, empty.astype(bool), np.zeros(0, dtype=bool))

        projected = self._data @ transform.T
        sq_dist = cdist(projected[anchor_idx], projected, metric="sqeuclidean")
        sq_dist[rows, anchor_idx] = np.inf

        with np.errstate(over="ignore", under="ignore"):
            weights = np.exp(-sq_dist)
        denominators = weights.sum(axis=1)
        degenerate = denominators == 0.0
        if np.any(degenerate):
            logger.warning(
                "Denominator of p_i is 0 for %d of %d points; their contribution is skipped",
                int(degenerate.sum()),
                n_anchors,
            )
            logger.debug("Degenerate points: %s", anchor_idx[degenerate].tolist())
            denominators[degenerate] = 1.0

        probabilities = weights / denominators[:, np.newaxis]
        same_class = self._labels[anchor_idx][:, np.newaxis] == self._labels[np.newaxis, :]
        same_class[rows, anchor_idx] = False

        return SoftAssignments(
            indices=anchor_idx,
            probabilities=probabilities,
            same_class=same_class,
            degenerate=degenerate,
        )

    def _check_transform(self, transform: np.ndarray) -> np.ndarray:
        matrix = np.asarray(transform, dtype=np.float64)
        expected = (self.num_features, self.num_features)
        if matrix.shape != expected:
            raise ValueError(
                f"transform must have shape {expected}, got {matrix.shape}"
            )
        return matrix
