"""Map arbitrary class labels onto a dense ``[0, C)`` range and back."""

from __future__ import annotations

from typing import Tuple

import numpy as np
from numpy.typing import ArrayLike
from sklearn.preprocessing import LabelEncoder


def normalize_labels(raw: ArrayLike) -> Tuple[np.ndarray, np.ndarray]:
    """Return dense labels and the mapping ``mapping[dense] == original``."""
    values = np.asarray(raw)
    if values.ndim != 1:
        raise ValueError("labels must be a 1-D array")
    encoder = LabelEncoder()
    labels = encoder.fit_transform(values).astype(np.int64)
    return labels, encoder.classes_


def revert_labels(labels: ArrayLike, mapping: np.ndarray) -> np.ndarray:
    """Undo :func:`normalize_labels`."""
    dense = np.asarray(labels, dtype=np.int64)
    if dense.size and (dense.min() < 0 or dense.max() >= len(mapping)):
        raise ValueError("labels fall outside the range of the mapping")
    return np.asarray(mapping)[dense]
