"""Matrix loading, saving and validation utilities."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Tuple

import numpy as np
import pandas as pd

logger = logging.getLogger(__name__)

TEXT_SUFFIXES = (".csv", ".txt", ".tsv")


class DatasetNotFoundError(FileNotFoundError):
    """Raised when required dataset resources are absent."""


def load_matrix(path: str | Path) -> np.ndarray:
    """Load a 2-D matrix stored as NPY, NPZ or delimited text (one point per row)."""
    resolved = Path(path).expanduser().resolve()
    if not resolved.exists():
        raise DatasetNotFoundError(f"Matrix file not found: {resolved}")

    suffix = resolved.suffix.lower()
    if suffix == ".npy":
        matrix = np.load(resolved)
    elif suffix == ".npz":
        with np.load(resolved) as archive:
            key = "data" if "data" in archive else archive.files[0]
            matrix = archive[key]
    elif suffix in TEXT_SUFFIXES:
        frame = pd.read_csv(resolved, header=None, sep=_separator(resolved), engine="python")
        matrix = frame.to_numpy()
    else:
        raise ValueError(f"Unsupported matrix format: {resolved.suffix}")

    matrix = np.asarray(matrix, dtype=np.float64)
    if matrix.ndim == 1:
        matrix = matrix[:, np.newaxis]
    if matrix.ndim != 2:
        raise ValueError(f"Expected a 2-D matrix in {resolved}, got {matrix.ndim} dimensions")
    return matrix


def load_labels(path: str | Path) -> np.ndarray:
    """Load an integer label vector stored as a single row or a single column."""
    matrix = load_matrix(path)
    if min(matrix.shape) != 1:
        raise ValueError(f"Labels must be a single row or column, got shape {matrix.shape}")
    labels = matrix.ravel()
    if not np.all(np.equal(np.mod(labels, 1), 0)):
        raise ValueError("Labels must be integer valued")
    return labels.astype(np.int64)


def split_labels(matrix: np.ndarray) -> Tuple[np.ndarray, np.ndarray]:
    """Use the last column of ``matrix`` as labels and return ``(data, labels)``."""
    matrix = np.asarray(matrix, dtype=np.float64)
    if matrix.ndim != 2 or matrix.shape[1] < 2:
        raise ValueError("Need at least one feature column plus a label column")
    logger.info("Using last column of input dataset as labels.")
    labels = matrix[:, -1]
    if not np.all(np.equal(np.mod(labels, 1), 0)):
        raise ValueError("Label column must be integer valued")
    return matrix[:, :-1].copy(), labels.astype(np.int64)


def save_matrix(matrix: np.ndarray, path: str | Path) -> Path:
    """Persist a matrix; the format follows the file suffix."""
    resolved = Path(path).expanduser().resolve()
    ensure_directory(resolved.parent)
    suffix = resolved.suffix.lower()
    array = np.asarray(matrix)
    if suffix == ".npy":
        np.save(resolved, array)
    elif suffix == ".npz":
        np.savez_compressed(resolved, data=array)
    elif suffix in TEXT_SUFFIXES:
        frame = pd.DataFrame(np.atleast_2d(array))
        sep = "\t" if suffix == ".tsv" else ("," if suffix == ".csv" else " ")
        frame.to_csv(resolved, header=False, index=False, sep=sep, float_format="%.17g")
    else:
        raise ValueError(f"Unsupported matrix format: {resolved.suffix}")
    return resolved


def ensure_directory(path: str | Path) -> Path:
    """Create a directory if it does not already exist."""
    resolved = Path(path).expanduser().resolve()
    resolved.mkdir(parents=True, exist_ok=True)
    return resolved


def _separator(path: Path) -> str:
    if path.suffix.lower() == ".csv":
        return ","
    return r"\s+"
