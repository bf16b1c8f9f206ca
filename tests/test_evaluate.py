"""Tests for neighbor quality metrics."""

from __future__ import annotations

import numpy as np

from nca_metric.evaluate import neighbor_metrics


def test_separated_blobs_score_perfectly(two_blobs) -> None:
    data, labels = two_blobs
    report = neighbor_metrics(data, labels)

    assert report["num_points"] == len(labels)
    assert report["num_classes"] == 2
    assert report["knn_accuracy"] == 1.0
    assert report["soft_neighbor_accuracy"] > 0.95
    assert report["degenerate_points"] == 0


def test_transform_changes_the_neighborhoods() -> None:
    # Labels follow the first feature; the second one is noise at a larger scale.
    rng = np.random.default_rng(4)
    labels = np.repeat([0, 1], 15)
    data = np.column_stack([labels * 1.0 + rng.normal(scale=0.05, size=30), rng.normal(scale=20.0, size=30)])

    euclidean = neighbor_metrics(data, labels)
    projected = neighbor_metrics(data, labels, np.diag([1.0, 0.0]))

    assert projected["knn_accuracy"] == 1.0
    assert projected["knn_accuracy"] > euclidean["knn_accuracy"]
    assert projected["soft_neighbor_accuracy"] > euclidean["soft_neighbor_accuracy"]


def test_single_point_reports_nan() -> None:
    report = neighbor_metrics(np.ones((1, 2)), [0])
    assert np.isnan(report["knn_accuracy"])
    assert np.isnan(report["soft_neighbor_accuracy"])
