"""Evaluation helpers for learned distance transforms."""

from __future__ import annotations

from typing import Dict, Optional

import numpy as np
from numpy.typing import ArrayLike
from sklearn.neighbors import NearestNeighbors

from .objective import SoftNeighborObjective


def neighbor_metrics(
    data: ArrayLike,
    labels: ArrayLike,
    transform: Optional[np.ndarray] = None,
) -> Dict[str, float]:
    """Summarize how well ``transform`` separates the classes.

    Parameters
    ----------
    data:
        ``(n_points, n_features)`` matrix.
    labels:
        Class label per point.
    transform:
        Distance transform ``L``; the identity (plain Euclidean distance)
        when omitted.

    ``soft_neighbor_accuracy`` is the mean ``p_i`` maximised by NCA and
    ``knn_accuracy`` the leave-one-out 1-nearest-neighbour accuracy in the
    projected space.
    """

    objective = SoftNeighborObjective(data, labels)
    num_points = objective.num_points
    if transform is None:
        transform = np.eye(objective.num_features)

    classes = objective.labels
    report: Dict[str, float] = {
        "num_points": float(num_points),
        "num_classes": float(np.unique(classes).size),
    }
    if num_points < 2:
        report.update(
            {"soft_neighbor_accuracy": float("nan"), "knn_accuracy": float("nan"), "degenerate_points": 0.0}
        )
        return report

    assignments = objective.soft_assignments(np.asarray(transform, dtype=np.float64))
    report["soft_neighbor_accuracy"] = float(np.mean(assignments.class_probabilities))
    report["degenerate_points"] = float(int(assignments.degenerate.sum()))

    projected = objective.data @ np.asarray(transform, dtype=np.float64).T
    neighbours = NearestNeighbors(n_neighbors=2).fit(projected)
    _, indices = neighbours.kneighbors(projected)
    own = np.arange(num_points)
    # Duplicated points can rank another point ahead of the query itself.
    nearest = np.where(indices[:, 0] == own, indices[:, 1], indices[:, 0])
    report["knn_accuracy"] = float(np.mean(classes[nearest] == classes))

    return report
