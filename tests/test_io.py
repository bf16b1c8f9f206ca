"""Tests for matrix input and output."""

from __future__ import annotations

import numpy as np
import pytest

from nca_metric.io import (
    DatasetNotFoundError,
    load_labels,
    load_matrix,
    save_matrix,
    split_labels,
)


@pytest.mark.parametrize("suffix", [".npy", ".npz", ".csv", ".txt", ".tsv"])
def test_save_then_load_preserves_values(tmp_path, suffix) -> None:
    matrix = np.random.default_rng(0).normal(size=(5, 3))
    path = save_matrix(matrix, tmp_path / f"matrix{suffix}")

    assert path.exists()
    np.testing.assert_array_equal(load_matrix(path), matrix)


def test_save_creates_parent_directories(tmp_path) -> None:
    path = save_matrix(np.eye(2), tmp_path / "nested" / "dir" / "distance.csv")
    assert path.parent.is_dir()


def test_missing_file(tmp_path) -> None:
    with pytest.raises(DatasetNotFoundError):
        load_matrix(tmp_path / "absent.csv")
    assert issubclass(DatasetNotFoundError, FileNotFoundError)


def test_unsupported_suffix(tmp_path) -> None:
    path = tmp_path / "matrix.json"
    path.write_text("[]")
    with pytest.raises(ValueError, match="Unsupported"):
        load_matrix(path)
    with pytest.raises(ValueError, match="Unsupported"):
        save_matrix(np.eye(2), path)


def test_single_column_file_loads_as_column(tmp_path) -> None:
    path = tmp_path / "column.txt"
    path.write_text("1\n2\n3\n")
    assert load_matrix(path).shape == (3, 1)


def test_load_labels_from_row_or_column(tmp_path) -> None:
    row = tmp_path / "row.csv"
    row.write_text("0,1,1,2\n")
    column = tmp_path / "column.csv"
    column.write_text("0\n1\n1\n2\n")

    expected = np.array([0, 1, 1, 2])
    np.testing.assert_array_equal(load_labels(row), expected)
    np.testing.assert_array_equal(load_labels(column), expected)
    assert load_labels(column).dtype == np.int64


def test_load_labels_rejects_matrices_and_fractions(tmp_path) -> None:
    matrix = tmp_path / "matrix.csv"
    matrix.write_text("0,1\n1,0\n")
    with pytest.raises(ValueError, match="single row or column"):
        load_labels(matrix)

    fractional = tmp_path / "fractional.csv"
    fractional.write_text("0.5\n1\n")
    with pytest.raises(ValueError, match="integer"):
        load_labels(fractional)


def test_split_labels_uses_last_column(caplog) -> None:
    matrix = np.array([[0.5, 1.5, 3.0], [2.0, 4.0, 7.0]])
    with caplog.at_level("INFO", logger="nca_metric.io"):
        data, labels = split_labels(matrix)

    np.testing.assert_array_equal(data, matrix[:, :2])
    np.testing.assert_array_equal(labels, [3, 7])
    assert "last column" in caplog.text


def test_split_labels_needs_a_feature_column() -> None:
    with pytest.raises(ValueError):
        split_labels(np.array([[1.0], [2.0]]))
