"""Optimizer strategies that drive the NCA objective to a terminal state."""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from collections import deque
from dataclasses import dataclass, field
from enum import Enum
from typing import Deque, List, Optional, Protocol, Tuple

import numpy as np
from numpy.typing import ArrayLike

from .config import ConfigurationError, NCAConfig

logger = logging.getLogger(__name__)

OPTIMIZER_NAMES = ("sgd", "lbfgs")


class SeparableObjective(Protocol):
    """What an optimizer needs from an objective."""

    @property
    def num_points(self) -> int: ...

    def evaluate(
        self, transform: np.ndarray, indices: Optional[ArrayLike] = None
    ) -> Tuple[float, np.ndarray]: ...


class TerminationReason(str, Enum):
    """Terminal states of an optimization run."""

    CONVERGED = "converged"
    MAX_ITERATIONS = "max_iterations"
    LINE_SEARCH_EXHAUSTED = "line_search_exhausted"
    DIVERGED = "diverged"


@dataclass(slots=True)
class OptimizationResult:
    """Outcome of :meth:`OptimizerStrategy.optimize`."""

    transform: np.ndarray
    objective: float
    iterations: int
    termination: TerminationReason
    gradient_norm: float
    history: List[float] = field(default_factory=list)


class OptimizerStrategy(ABC):
    """Minimizes a separable objective over a square distance transform."""

    name: str = ""

    @abstractmethod
    def optimize(
        self, objective: SeparableObjective, initial_transform: np.ndarray
    ) -> OptimizationResult:
        """Run to a terminal state starting from ``initial_transform``.

        The starting matrix is copied; the returned transform belongs to the
        caller.
        """


class GradientDescentStrategy(OptimizerStrategy):
    """Stochastic / mini-batch gradient descent.

    One iteration is one visited point, so ``max_iterations`` equal to the
    number of points is exactly one pass. Tolerance is only checked between
    passes, by comparing the summed batch objectives of consecutive passes.
    """

    name = "sgd"

    def __init__(
        self,
        step_size: float = 0.01,
        max_iterations: int = 500000,
        tolerance: float = 1e-7,
        shuffle: bool = True,
        batch_size: int = 50,
        rng: Optional[np.random.Generator] = None,
    ) -> None:
        if step_size <= 0:
            raise ValueError("step_size must be positive")
        if max_iterations < 0:
            raise ValueError("max_iterations must be non-negative")
        if batch_size < 1:
            raise ValueError("batch_size must be at least 1")
        self.step_size = step_size
        self.max_iterations = max_iterations
        self.tolerance = tolerance
        self.shuffle = shuffle
        self.batch_size = batch_size
        self.rng = rng if rng is not None else np.random.default_rng()

    def optimize(
        self, objective: SeparableObjective, initial_transform: np.ndarray
    ) -> OptimizationResult:
        transform = np.array(initial_transform, dtype=np.float64)
        num_points = objective.num_points
        if num_points == 0:
            raise ValueError("Cannot optimize over an empty dataset")

        order = self._visiting_order(num_points)
        limit = self.max_iterations or None
        history: List[float] = []
        visited = 0
        position = 0
        passes = 0
        pass_objective = 0.0
        last_objective = np.inf
        termination = TerminationReason.MAX_ITERATIONS

        while limit is None or visited < limit:
            if position == num_points:
                passes += 1
                if not np.isfinite(pass_objective):
                    logger.warning(
                        "SGD: objective diverged to %s during pass %d; terminating optimization.",
                        pass_objective,
                        passes,
                    )
                    termination = TerminationReason.DIVERGED
                    break
                logger.debug("SGD: pass %d objective %.10g", passes, pass_objective)
                if abs(last_objective - pass_objective) < self.tolerance:
                    logger.info(
                        "SGD: minimized within tolerance %g; terminating optimization.",
                        self.tolerance,
                    )
                    termination = TerminationReason.CONVERGED
                    break
                last_objective = pass_objective
                pass_objective = 0.0
                position = 0
                order = self._visiting_order(num_points)

            size = min(self.batch_size, num_points - position)
            if limit is not None:
                size = min(size, limit - visited)
            batch = order[position:position + size]

            value, gradient = objective.evaluate(transform, batch)
            transform -= self.step_size * gradient
            pass_objective += value
            history.append(value)
            position += size
            visited += size

        if termination is TerminationReason.MAX_ITERATIONS:
            logger.info(
                "SGD: maximum iterations (%d) reached; terminating optimization.",
                self.max_iterations,
            )

        final_objective, final_gradient = objective.evaluate(transform)
        return OptimizationResult(
            transform=transform,
            objective=final_objective,
            iterations=visited,
            termination=termination,
            gradient_norm=float(np.linalg.norm(final_gradient)),
            history=history,
        )

    def _visiting_order(self, num_points: int) -> np.ndarray:
        if self.shuffle:
            return self.rng.permutation(num_points)
        return np.arange(num_points)


@dataclass(slots=True)
class _LineSearchResult:
    step: float
    value: float
    gradient: np.ndarray
    accepted: bool


class QuasiNewtonStrategy(OptimizerStrategy):
    """L-BFGS with a backtracking line search under Armijo and Wolfe conditions.

    The run converges once the gradient norm drops below ``min_gradient_norm``.
    An exactly zero gradient is a stationary point and also ends the run as
    converged, which matters when ``min_gradient_norm`` is 0.
    """

    name = "lbfgs"

    STEP_DECREASE = 0.5
    STEP_INCREASE = 2.1

    def __init__(
        self,
        num_basis: int = 5,
        max_iterations: int = 500000,
        armijo_constant: float = 1e-4,
        wolfe: float = 0.9,
        min_gradient_norm: float = 1e-7,
        max_line_search_trials: int = 50,
        min_step: float = 1e-20,
        max_step: float = 1e20,
    ) -> None:
        if num_basis < 1:
            raise ValueError("num_basis must be at least 1")
        if max_iterations < 0:
            raise ValueError("max_iterations must be non-negative")
        if max_line_search_trials < 1:
            raise ValueError("max_line_search_trials must be at least 1")
        if not 0.0 < min_step <= max_step:
            raise ValueError("step bounds must satisfy 0 < min_step <= max_step")
        self.num_basis = num_basis
        self.max_iterations = max_iterations
        self.armijo_constant = armijo_constant
        self.wolfe = wolfe
        self.min_gradient_norm = min_gradient_norm
        self.max_line_search_trials = max_line_search_trials
        self.min_step = min_step
        self.max_step = max_step

    def optimize(
        self, objective: SeparableObjective, initial_transform: np.ndarray
    ) -> OptimizationResult:
        iterate = np.array(initial_transform, dtype=np.float64)
        value, gradient = objective.evaluate(iterate)
        history: List[float] = [value]
        basis: Deque[Tuple[np.ndarray, np.ndarray]] = deque(maxlen=self.num_basis)
        iteration = 0

        while True:
            if not (np.isfinite(value) and np.all(np.isfinite(gradient))):
                logger.warning("L-BFGS: objective or gradient is not finite; terminating optimization.")
                termination = TerminationReason.DIVERGED
                break

            gradient_norm = float(np.linalg.norm(gradient))
            if gradient_norm < self.min_gradient_norm or gradient_norm == 0.0:
                logger.info(
                    "L-BFGS: gradient norm %g below %g; terminating successfully.",
                    gradient_norm,
                    self.min_gradient_norm,
                )
                termination = TerminationReason.CONVERGED
                break

            if self.max_iterations and iteration >= self.max_iterations:
                logger.info(
                    "L-BFGS: maximum iterations (%d) reached; terminating optimization.",
                    self.max_iterations,
                )
                termination = TerminationReason.MAX_ITERATIONS
                break

            direction = self._search_direction(gradient, basis)
            slope = float(np.vdot(gradient, direction))
            if not slope < 0.0:
                logger.debug("L-BFGS: not a descent direction; resetting history")
                basis.clear()
                direction = self._search_direction(gradient, basis)
                slope = float(np.vdot(gradient, direction))

            search = self._line_search(objective, iterate, value, gradient, direction, slope)
            if not search.accepted:
                if search.step > 0.0:
                    iterate = iterate + search.step * direction
                    value, gradient = search.value, search.gradient
                    history.append(value)
                    iteration += 1
                logger.info(
                    "L-BFGS: line search exhausted at iteration %d; terminating optimization.",
                    iteration,
                )
                termination = TerminationReason.LINE_SEARCH_EXHAUSTED
                break

            step = search.step * direction
            change = search.gradient - gradient
            if np.vdot(step, change) > 0.0:
                basis.append((step, change))

            iterate = iterate + step
            value, gradient = search.value, search.gradient
            history.append(value)
            iteration += 1
            logger.debug("L-BFGS: iteration %d objective %.10g", iteration, value)

        return OptimizationResult(
            transform=iterate,
            objective=float(value),
            iterations=iteration,
            termination=termination,
            gradient_norm=float(np.linalg.norm(gradient)),
            history=history,
        )

    @staticmethod
    def _search_direction(
        gradient: np.ndarray, basis: Deque[Tuple[np.ndarray, np.ndarray]]
    ) -> np.ndarray:
        """Two-loop recursion: ``-H g`` for the inverse Hessian approximation ``H``."""
        q = gradient.copy()
        coefficients = []
        for step, change in reversed(basis):
            rho = 1.0 / np.vdot(change, step)
            alpha = rho * np.vdot(step, q)
            q -= alpha * change
            coefficients.append((rho, alpha))

        if basis:
            step, change = basis[-1]
            scaling = np.vdot(step, change) / np.vdot(change, change)
        else:
            scaling = 1.0 / np.linalg.norm(gradient)

        r = scaling * q
        for (step, change), (rho, alpha) in zip(basis, reversed(coefficients)):
            beta = rho * np.vdot(change, r)
            r += step * (alpha - beta)
        return -r

    def _line_search(
        self,
        objective: SeparableObjective,
        iterate: np.ndarray,
        value: float,
        gradient: np.ndarray,
        direction: np.ndarray,
        slope: float,
    ) -> _LineSearchResult:
        best = _LineSearchResult(step=0.0, value=value, gradient=gradient, accepted=False)
        sufficient_decrease = self.armijo_constant * slope
        step = 1.0

        for _ in range(self.max_line_search_trials):
            trial_value, trial_gradient = objective.evaluate(iterate + step * direction)
            finite = np.isfinite(trial_value) and np.all(np.isfinite(trial_gradient))
            if finite and trial_value < best.value:
                best = _LineSearchResult(step, trial_value, trial_gradient, accepted=False)

            if not finite or trial_value > value + step * sufficient_decrease:
                width = self.STEP_DECREASE
            else:
                trial_slope = float(np.vdot(trial_gradient, direction))
                if trial_slope < self.wolfe * slope:
                    width = self.STEP_INCREASE
                elif trial_slope > -self.wolfe * slope:
                    width = self.STEP_DECREASE
                else:
                    return _LineSearchResult(step, trial_value, trial_gradient, accepted=True)

            step *= width
            if step < self.min_step or step > self.max_step:
                break

        return best


def build_optimizer(
    config: NCAConfig, rng: Optional[np.random.Generator] = None
) -> OptimizerStrategy:
    """Instantiate the strategy named by ``config.optimizer``."""
    if config.optimizer == "sgd":
        return GradientDescentStrategy(
            step_size=config.sgd.step_size,
            max_iterations=config.max_iterations,
            tolerance=config.tolerance,
            shuffle=not config.sgd.linear_scan,
            batch_size=config.sgd.batch_size,
            rng=rng,
        )
    if config.optimizer == "lbfgs":
        return QuasiNewtonStrategy(
            num_basis=config.lbfgs.num_basis,
            max_iterations=config.max_iterations,
            armijo_constant=config.lbfgs.armijo_constant,
            wolfe=config.lbfgs.wolfe,
            min_gradient_norm=config.tolerance,
            max_line_search_trials=config.lbfgs.max_line_search_trials,
            min_step=config.lbfgs.min_step,
            max_step=config.lbfgs.max_step,
        )
    raise ConfigurationError(
        f"unknown optimizer type '{config.optimizer}'; must be one of: {', '.join(OPTIMIZER_NAMES)}"
    )
