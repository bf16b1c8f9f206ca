"""Neighborhood Components Analysis distance-metric learning."""

__version__ = "0.1.0"

__all__ = [
    "config",
    "io",
    "labels",
    "objective",
    "optimizers",
    "nca",
    "preprocess",
    "evaluate",
    "manifest",
    "cli",
    "utils",
]
