"""Drives scipy's L-BFGS-B solver over the CRF objective."""
from __future__ import annotations
import time
from typing import Callable, Tuple
import numpy as np
from scipy import optimize


class TrainingError(RuntimeError):
    """Raised when the optimizer cannot produce a parameter vector."""


def starting_point(size: int, seed: int, scale: float = 1.0) -> np.ndarray:
    """Draws a reproducible Gaussian starting point for the weights."""
    rng = np.random.default_rng(seed)
    return rng.standard_normal(size) * scale


class ProgressReporter:
    """Prints one line per optimizer iteration; never alters control flow."""

    def __init__(self, verbose: bool = True):
        self.verbose = verbose
        self.iteration = 0
        self.start_time = time.time()
        self.last_value = None

    def __call__(self, intermediate_result) -> None:
        self.iteration += 1
        # scipy passes an OptimizeResult carrying `fun`, already the negated log-likelihood.
        self.last_value = -float(intermediate_result.fun)
        if self.verbose:
            elapsed = time.time() - self.start_time
            print(f"Iteration {self.iteration}: {self.last_value:.3f}, elapsed time {elapsed:.3f}s")


def minimize(
    objective: Callable[[np.ndarray], Tuple[float, np.ndarray]],
    start: np.ndarray,
    max_iterations: int = 100,
    tolerance: float = 1e-5,
    verbose: bool = True,
) -> optimize.OptimizeResult:
    """
    Minimizes ``objective`` from ``start`` with L-BFGS-B and no bounds.

    Args:
        objective: Returns `(value, gradient)` for a point.
        start: The starting point.
        max_iterations: Iteration budget. Running out is not a failure.
        tolerance: Passed to the solver as `ftol`.
        verbose: Whether to print per-iteration progress.

    Returns:
        The scipy `OptimizeResult`; the solution is in `x`.

    Raises:
        TrainingError: If the solver or the objective fails, or L-BFGS-B
                       reports an abnormal termination.
    """
    reporter = ProgressReporter(verbose=verbose)
    try:
        result = optimize.minimize(
            objective,
            np.asarray(start, dtype=float),
            jac=True,
            method="L-BFGS-B",
            callback=reporter,
            options={"maxiter": max_iterations, "ftol": tolerance},
        )
    except (ArithmeticError, ValueError, FloatingPointError) as e:
        raise TrainingError(f"Optimization failed after {reporter.iteration} iterations: {e}") from e

    message = str(result.message)
    if not result.success and "ABNORMAL" in message.upper():
        raise TrainingError(f"Optimization failed after {result.nit} iterations: {message}")
    if not np.all(np.isfinite(result.x)):
        raise TrainingError("Optimization produced non-finite weights.")
    if verbose:
        print(f"Optimizer finished after {result.nit} iterations: {message}")
    return result
