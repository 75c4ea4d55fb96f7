"""Forward, backward and Viterbi passes over a tag lattice.

All three dynamic programs share one routine, `fill_lattice`, parameterized by
the direction of the sweep and by an accumulator that combines the candidate
values reaching a cell. Summing gives the forward/backward marginals used in
training; taking the maximum (and remembering where it came from) gives the
Viterbi lattice used in decoding.

The lattice has one row per token plus a START row at the top and an END row
at the bottom. Cells hold raw, unnormalized scores: every transition
multiplies by `exp(potential)`. Candidates for transitions the boundary
tables forbid are NaN and are skipped by both accumulators.

The sum-product lattices are not rescaled, so long sequences or large weights
can overflow to infinity or underflow to zero; callers check the partition
value for finiteness. The Viterbi lattice is filled with log-scores instead,
which leaves the best path unchanged and keeps every reachable cell finite for
finite potentials.
"""
from __future__ import annotations
from dataclasses import dataclass
from enum import Enum
from typing import Optional, Tuple
import numpy as np

from .vocabulary import TagIndex


class NumericalInstabilityError(ArithmeticError):
    """Raised when a lattice produces a non-finite or non-positive score."""


class Direction(Enum):
    FORWARD = 1
    BACKWARD = -1


@dataclass(frozen=True)
class Combined:
    value: float
    argmax: int = -1


class SumAccumulator:
    """Sums the candidates, ignoring NaN. An all-NaN row sums to zero."""

    def combine(self, candidates: np.ndarray) -> Combined:
        return Combined(float(np.nansum(candidates)))


class MaxAccumulator:
    """Takes the maximum candidate, ignoring NaN, and reports its index."""

    def combine(self, candidates: np.ndarray) -> Combined:
        valid = ~np.isnan(candidates)
        if not valid.any():
            return Combined(float("-inf"), -1)
        masked = np.where(valid, candidates, -np.inf)
        idx = int(np.argmax(masked))
        return Combined(float(masked[idx]), idx)


SUM = SumAccumulator()
MAX = MaxAccumulator()


def new_lattice(n_rows: int, tags: TagIndex, direction: Direction, log_space: bool = False) -> np.ndarray:
    """
    Allocates a lattice and places unit mass on its anchor.

    Forward lattices start with mass 1 at START in row 0; backward lattices
    start with mass 1 at END in the last row. In log space the empty cells
    hold -inf and the anchor holds 0.
    """
    empty, unit = (-np.inf, 0.0) if log_space else (0.0, 1.0)
    lattice = np.full((n_rows, len(tags)), empty)
    if direction is Direction.FORWARD:
        lattice[0, tags.start] = unit
    else:
        lattice[n_rows - 1, tags.end] = unit
    return lattice


def fill_lattice(
    lattice: np.ndarray,
    potentials: np.ndarray,
    direction: Direction,
    accumulator,
    tags: TagIndex,
    backpointers: Optional[np.ndarray] = None,
    log_space: bool = False,
) -> np.ndarray:
    """
    Fills every row of ``lattice`` from its anchor row.

    Going forward, row `i` (1 to n-1) is computed from row `i-1` through the
    potentials at position `i-1`. Going backward, row `i` (n-2 down to 0) is
    computed from row `i+1` through the potentials at position `i`. In both
    cases only the neighbouring tags allowed by the boundary tables are
    considered.

    Args:
        lattice: An `(n, T)` array with its anchor row already set.
        potentials: An `(n-1, T, T)` array of summed feature weights, indexed
                    by `[position, previous tag, current tag]`.
        direction: Which way to sweep.
        accumulator: Combines the candidate values of a cell, see
                     `SumAccumulator` and `MaxAccumulator`.
        tags: The tag index carrying the boundary tables.
        backpointers: Optional `(n, T)` integer array receiving, for every
                      cell, the index of the neighbouring tag that produced
                      its value.
        log_space: Whether cells hold log-scores, in which case transitions
                   add the potential instead of multiplying by its exp.

    Returns:
        The filled lattice (the same array that was passed in).
    """
    n, n_tags = lattice.shape
    forward = direction is Direction.FORWARD
    rows = range(1, n) if forward else range(n - 2, -1, -1)
    step = direction.value
    candidates = np.empty(n_tags)

    for i in rows:
        source = lattice[i - step]
        for tag in range(n_tags):
            candidates.fill(np.nan)
            if forward:
                reachable = tags.previous_tags(tag, i, n)
                potential = potentials[i - 1, reachable, tag]
            else:
                reachable = tags.next_tags(tag, i, n)
                potential = potentials[i, tag, reachable]
            if len(reachable):
                if log_space:
                    candidates[reachable] = source[reachable] + potential
                else:
                    candidates[reachable] = source[reachable] * np.exp(potential)
            result = accumulator.combine(candidates)
            lattice[i, tag] = result.value
            if backpointers is not None:
                backpointers[i, tag] = result.argmax
    return lattice


def forward_backward(potentials: np.ndarray, tags: TagIndex) -> Tuple[np.ndarray, np.ndarray]:
    """Runs the sum-product forward and backward passes for one instance."""
    n = potentials.shape[0] + 1
    forward = fill_lattice(new_lattice(n, tags, Direction.FORWARD), potentials, Direction.FORWARD, SUM, tags)
    backward = fill_lattice(new_lattice(n, tags, Direction.BACKWARD), potentials, Direction.BACKWARD, SUM, tags)
    return forward, backward


def viterbi(potentials: np.ndarray, tags: TagIndex) -> list[int]:
    """
    Decodes the highest-scoring tag sequence for one instance.

    The max-product pass runs over log-scores, so large weights cannot
    overflow the lattice.

    Returns:
        The tag indices of the interior rows, in left-to-right order. The
        result never contains START or END.

    Raises:
        NumericalInstabilityError: If the best path score is not finite, which
                                   only happens for non-finite potentials.
    """
    n = potentials.shape[0] + 1
    lattice = new_lattice(n, tags, Direction.FORWARD, log_space=True)
    backpointers = np.full((n, len(tags)), -1, dtype=np.intp)
    fill_lattice(lattice, potentials, Direction.FORWARD, MAX, tags, backpointers, log_space=True)

    best = lattice[n - 1, tags.end]
    if not np.isfinite(best):
        raise NumericalInstabilityError(f"Best path score is {best}; the potentials are not finite.")

    path: list[int] = []
    cur = backpointers[n - 1, tags.end]
    for row in range(n - 2, 0, -1):
        if cur < 0 or cur in (tags.start, tags.end):
            raise NumericalInstabilityError(f"Backtracking reached an invalid cell in row {row}.")
        path.append(int(cur))
        cur = backpointers[row, cur]
    path.reverse()
    return path
