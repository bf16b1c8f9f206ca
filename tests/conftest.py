"""Pytest configuration for the NCA distance-learning project."""

from __future__ import annotations

from pathlib import Path
import sys
from typing import Tuple

import numpy as np
import pytest

PROJECT_ROOT = Path(__file__).resolve().parents[1]
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

from tests._helpers import make_two_blobs  # noqa: E402


@pytest.fixture
def two_blobs() -> Tuple[np.ndarray, np.ndarray]:
    """Two well separated Gaussian blobs with distinct labels."""
    return make_two_blobs(n_per_class=20, separation=8.0, seed=0)


@pytest.fixture
def small_dataset() -> Tuple[np.ndarray, np.ndarray]:
    """A dozen points in three dimensions spread over three classes."""
    rng = np.random.default_rng(7)
    data = rng.normal(size=(12, 3))
    labels = np.array([0, 1, 2] * 4)
    return data, labels
