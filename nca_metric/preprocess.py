"""PCA whitening: decorrelate features and scale them to unit variance."""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict

import joblib
import numpy as np
from numpy.typing import ArrayLike

DEFAULT_EPSILON = 5e-5


@dataclass(slots=True)
class WhiteningArtifacts:
    """Container for fitted whitening state."""

    mean: np.ndarray
    eigenvalues: np.ndarray  # regularized by ``epsilon``
    eigenvectors: np.ndarray
    epsilon: float


def _validate_matrix(x: ArrayLike) -> np.ndarray:
    """Ensure input is a two-dimensional float64 matrix."""

    array = np.asarray(x, dtype=np.float64)
    if array.ndim != 2:
        raise ValueError("Input data must be a 2-D array")
    if array.shape[0] < 2:
        raise ValueError("Need at least two samples to fit whitening")
    return array


def fit_whitening(x: ArrayLike, epsilon: float = DEFAULT_EPSILON) -> WhiteningArtifacts:
    """Eigendecompose the sample covariance of ``x`` (one point per row)."""

    data = _validate_matrix(x)
    if epsilon < 0:
        raise ValueError("epsilon must be non-negative")

    mean = data.mean(axis=0)
    covariance = np.atleast_2d(np.cov(data - mean, rowvar=False))
    evals, evecs = np.linalg.eigh(covariance)
    adjusted = np.maximum(evals, 0.0) + epsilon
    if np.any(adjusted == 0.0):
        raise ValueError("Covariance is singular; use a positive epsilon")

    return WhiteningArtifacts(
        mean=mean,
        eigenvalues=adjusted,
        eigenvectors=evecs,
        epsilon=float(epsilon),
    )


def transform_whitening(x: ArrayLike, artifacts: WhiteningArtifacts) -> np.ndarray:
    """Apply fitted whitening to ``x``."""
    data = np.asarray(x, dtype=np.float64)
    _check_dimension(data, artifacts)
    return ((data - artifacts.mean) @ artifacts.eigenvectors) / np.sqrt(artifacts.eigenvalues)


def inverse_transform_whitening(y: ArrayLike, artifacts: WhiteningArtifacts) -> np.ndarray:
    """Recover the original features from whitened data."""
    data = np.asarray(y, dtype=np.float64)
    _check_dimension(data, artifacts)
    scaled = data * np.sqrt(artifacts.eigenvalues)
    return scaled @ np.linalg.inv(artifacts.eigenvectors) + artifacts.mean


def fit_transform_whitening(x: ArrayLike, epsilon: float = DEFAULT_EPSILON):
    """Fit on ``x`` and return ``(whitened, artifacts)``."""
    artifacts = fit_whitening(x, epsilon)
    return transform_whitening(x, artifacts), artifacts


def save_whitening(artifacts: WhiteningArtifacts, path: str | Path) -> Path:
    """Serialize artifacts with joblib."""
    resolved = Path(path).expanduser().resolve()
    resolved.parent.mkdir(parents=True, exist_ok=True)
    joblib.dump(_to_dict(artifacts), resolved)
    return resolved


def load_whitening(path: str | Path) -> WhiteningArtifacts:
    """Load artifacts produced by :func:`save_whitening`."""

    resolved = Path(path).expanduser().resolve()
    data = joblib.load(resolved)
    required = {"mean", "eigenvalues", "eigenvectors", "epsilon"}
    missing = required.difference(data)
    if missing:
        raise KeyError(f"Whitening file missing keys: {', '.join(sorted(missing))}")
    return WhiteningArtifacts(
        mean=np.asarray(data["mean"], dtype=np.float64),
        eigenvalues=np.asarray(data["eigenvalues"], dtype=np.float64),
        eigenvectors=np.asarray(data["eigenvectors"], dtype=np.float64),
        epsilon=float(data["epsilon"]),
    )


def _to_dict(artifacts: WhiteningArtifacts) -> Dict[str, Any]:
    return {
        "mean": artifacts.mean,
        "eigenvalues": artifacts.eigenvalues,
        "eigenvectors": artifacts.eigenvectors,
        "epsilon": artifacts.epsilon,
    }


def _check_dimension(data: np.ndarray, artifacts: WhiteningArtifacts) -> None:
    if data.ndim != 2:
        raise ValueError("Input data must be a 2-D array")
    if data.shape[1] != artifacts.mean.shape[0]:
        raise ValueError("Input dimensionality does not match fitted whitening")
