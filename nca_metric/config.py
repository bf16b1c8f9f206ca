"""
Configuration for NCA runs with strict validation.
"""

from __future__ import annotations

import os
import time
from pathlib import Path
from typing import Any, Dict, List, Literal, Optional, Union

import numpy as np
import yaml  # type: ignore[import-untyped]
from pydantic import BaseModel, Field, ValidationError, field_validator


class ConfigurationError(ValueError):
    """Raised when a run is misconfigured; always reported before optimization."""


class SGDConfig(BaseModel):
    """Stochastic / mini-batch gradient descent parameters."""
    step_size: float = Field(default=0.01, description="Step size for SGD (alpha)")
    linear_scan: bool = Field(default=False, description="Visit points in order instead of shuffling")
    batch_size: int = Field(default=50, description="Batch size for mini-batch SGD")

    @field_validator("step_size")
    @classmethod
    def validate_step_size(cls, v):
        if v <= 0:
            raise ValueError("step_size must be positive")
        return v

    @field_validator("batch_size")
    @classmethod
    def validate_batch_size(cls, v):
        if v < 1:
            raise ValueError("batch_size must be at least 1")
        return v


class LBFGSConfig(BaseModel):
    """L-BFGS and line search parameters."""
    num_basis: int = Field(default=5, description="Number of memory points stored for L-BFGS")
    armijo_constant: float = Field(default=1e-4, description="Armijo constant for the line search")
    wolfe: float = Field(default=0.9, description="Wolfe condition parameter")
    max_line_search_trials: int = Field(default=50, description="Maximum number of line search trials")
    min_step: float = Field(default=1e-20, description="Minimum step of the line search")
    max_step: float = Field(default=1e20, description="Maximum step of the line search")

    @field_validator("num_basis", "max_line_search_trials")
    @classmethod
    def validate_positive_int(cls, v):
        if v < 1:
            raise ValueError("must be at least 1")
        return v

    @field_validator("armijo_constant", "wolfe")
    @classmethod
    def validate_unit_interval(cls, v):
        if not 0.0 < v < 1.0:
            raise ValueError("must lie strictly between 0 and 1")
        return v

    @field_validator("min_step", "max_step")
    @classmethod
    def validate_step_bound(cls, v):
        if v <= 0:
            raise ValueError("step bounds must be positive")
        return v


class WhiteningConfig(BaseModel):
    """PCA whitening preprocessing."""
    epsilon: float = Field(default=5e-5, description="Eigenvalue regularization")

    @field_validator("epsilon")
    @classmethod
    def validate_epsilon(cls, v):
        if v < 0:
            raise ValueError("epsilon must be non-negative")
        return v


class NCAConfig(BaseModel):
    """Complete NCA run configuration."""
    optimizer: Literal["sgd", "lbfgs"] = Field(default="sgd", description="Optimizer to use")
    normalize: bool = Field(default=False, description="Use a normalized starting point")
    max_iterations: int = Field(default=500000, description="Iteration budget (0 means no limit)")
    tolerance: float = Field(default=1e-7, description="Termination tolerance for SGD or L-BFGS")
    seed: int = Field(default=0, description="Random seed; 0 derives one from the clock")
    sgd: SGDConfig = Field(default_factory=SGDConfig)
    lbfgs: LBFGSConfig = Field(default_factory=LBFGSConfig)
    whitening: WhiteningConfig = Field(default_factory=WhiteningConfig)

    @field_validator("max_iterations", "seed")
    @classmethod
    def validate_non_negative(cls, v):
        if v < 0:
            raise ValueError("must be non-negative")
        return v

    @field_validator("tolerance")
    @classmethod
    def validate_tolerance(cls, v):
        if v < 0:
            raise ValueError("tolerance must be non-negative")
        return v

    def unused_section(self) -> str:
        """Name of the optimizer section the selected optimizer does not read."""
        return "lbfgs" if self.optimizer == "sgd" else "sgd"

    def ignored_options(self) -> List[str]:
        """Explicitly set options that the selected optimizer does not use."""
        section = self.unused_section()
        unused = getattr(self, section)
        reason = "L-BFGS optimizer is not being used" if section == "lbfgs" else "SGD optimizer is not being used"
        return [
            f"'{name}' ignored because {reason}"
            for name in type(unused).model_fields
            if name in unused.model_fields_set
        ]


def build_config(data: Optional[Dict[str, Any]] = None) -> NCAConfig:
    """Validate a raw mapping into an :class:`NCAConfig`."""
    try:
        return NCAConfig(**(data or {}))
    except ValidationError as exc:
        raise ConfigurationError(str(exc)) from exc


def load_config(path: Union[str, Path]) -> NCAConfig:
    """Load and validate configuration from a YAML file."""
    return build_config(load_raw_config(path))


def load_raw_config(path: Union[str, Path]) -> Dict[str, Any]:
    """Load a YAML file and expand environment variables, without validation."""
    resolved = Path(path).expanduser().resolve()
    if not resolved.exists():
        raise FileNotFoundError(f"Configuration file not found: {resolved}")
    with resolved.open("r", encoding="utf-8") as handle:
        try:
            data = yaml.safe_load(handle) or {}
        except yaml.YAMLError as exc:
            raise ConfigurationError(f"Invalid YAML in {resolved}: {exc}") from exc
    if not isinstance(data, dict):
        raise ConfigurationError(f"Configuration root must be a mapping: {resolved}")
    return _expand_env_vars(data)


def dump_config(config: NCAConfig, path: Union[str, Path]) -> None:
    """Persist configuration to disk.

    The section of the optimizer that is not selected is left out, so loading
    the file back does not report its options as ignored.
    """
    data = config.model_dump(mode="json", exclude={config.unused_section()})
    with Path(path).expanduser().resolve().open("w", encoding="utf-8") as handle:
        yaml.safe_dump(data, handle, sort_keys=False)


def create_default_config(output_path: Union[str, Path]) -> None:
    """Create a default configuration file."""
    dump_config(NCAConfig(), output_path)


def resolve_seed(seed: int) -> int:
    """Map the ``0`` sentinel to a seed derived from the wall clock."""
    return int(time.time()) if seed == 0 else int(seed)


def make_rng(seed: int) -> np.random.Generator:
    """Random generator owned by a single run."""
    return np.random.default_rng(resolve_seed(seed))


def _expand_env_vars(node: Any) -> Any:
    """Recursively expand environment variables in config values."""

    if isinstance(node, dict):
        return {key: _expand_env_vars(value) for key, value in node.items()}
    if isinstance(node, list):
        return [_expand_env_vars(value) for value in node]
    if isinstance(node, str):
        return os.path.expandvars(node)
    return node
