"""The regularized conditional log-likelihood and its gradient.

`LogLikelihood` is the function handed to the optimizer. For a candidate
weight vector it runs the forward-backward passes over the training corpus
and returns the negated log-likelihood together with its negated gradient,
since the optimizer minimizes.

    L(w) = sum_x [ w . f(x, y) - log Z(x) ] - sum_i w_i^2 / (2 sigma^2)
    dL/dw_i = empirical_i - model_i - w_i / sigma^2

where `empirical_i` counts how often feature `i` fires on the gold tags and
`model_i` is its expected count under the current weights.
"""
from __future__ import annotations
from typing import Dict, List, Tuple
import numpy as np
from tqdm import tqdm

from .features import FeatureBatch, InstanceFeatures
from .lattice import NumericalInstabilityError, forward_backward
from .vocabulary import TagIndex


class LogLikelihood:
    """
    Regularized conditional log-likelihood of a training batch.

    Attributes:
        batch: The compiled training features.
        tags: The frozen tag index.
        n_features: Size of the weight vector.
        sigma: The regularization parameter.
        empirical: Gold feature counts over the whole batch.
        forwards: Forward lattices from the most recent evaluation.
        backwards: Backward lattices from the most recent evaluation.
    """
    def __init__(self, batch: FeatureBatch, n_features: int, sigma: float, verbose: bool = True):
        if not sigma > 0:
            raise ValueError(f"Regularization parameter sigma must be > 0, got {sigma}.")
        self.batch = batch
        self.tags: TagIndex = batch.tags
        self.n_features = n_features
        self.sigma = sigma
        self.verbose = verbose
        self.forwards: Dict[int, np.ndarray] = {}
        self.backwards: Dict[int, np.ndarray] = {}
        self.empirical = self.compute_empirical_distribution()

    def compute_empirical_distribution(self) -> np.ndarray:
        """Counts the features active on the gold tag pair at every position."""
        counts = np.zeros(self.n_features)
        for item in tqdm(self.batch, desc="Empirical distribution", disable=not self.verbose):
            instance = item.instance
            for position in range(len(item)):
                prev_tag = instance.tag_at(position - 1)
                cur_tag = instance.tag_at(position)
                for slot in item.activated(position, prev_tag, cur_tag):
                    counts[slot] += 1
        return counts

    def regularization_term(self, point: np.ndarray) -> float:
        """sum(w^2) / (2 sigma^2)"""
        return float(np.dot(point, point) / (2 * self.sigma ** 2))

    def regularization_gradient(self, point: np.ndarray) -> np.ndarray:
        """w / sigma^2"""
        return point / self.sigma ** 2

    def compute_forward_backward(self, point: np.ndarray) -> List[np.ndarray]:
        """
        Fills and caches the forward and backward lattice of every instance.

        Returns:
            The potentials of every instance, reused for the expectations.
        """
        self.forwards = {}
        self.backwards = {}
        potentials = []
        for idx, item in enumerate(self.batch):
            pot = item.potentials(point)
            forward, backward = forward_backward(pot, self.tags)
            self.forwards[idx] = forward
            self.backwards[idx] = backward
            potentials.append(pot)
        return potentials

    def normalization_constant(self, idx: int) -> float:
        """Z for instance ``idx``, read from the cached backward lattice."""
        z = self.backwards[idx][0, self.tags.start]
        if not np.isfinite(z) or z <= 0:
            raise NumericalInstabilityError(
                f"Partition value of instance {idx} is {z}; weights are too large "
                f"or the sequence too long for unscaled lattices."
            )
        return float(z)

    def pair_marginals(self, idx: int, potentials: np.ndarray) -> np.ndarray:
        """
        Unnormalized probability mass of every transition of instance ``idx``.

        Entry `[j, cur, nxt]` is `forward[j][cur] * exp(potential) *
        backward[j+1][nxt]` for every pair the boundary tables allow leaving
        row `j`; all other entries are zero.
        """
        forward = self.forwards[idx]
        backward = self.backwards[idx]
        n, n_tags = forward.shape
        marginals = np.zeros((n - 1, n_tags, n_tags))
        for j in range(n - 1):
            for cur in range(n_tags):
                nxt = self.tags.next_tags(cur, j, n)
                if not len(nxt) or forward[j, cur] == 0:
                    continue
                marginals[j, cur, nxt] = (
                    forward[j, cur] * np.exp(potentials[j, cur, nxt]) * backward[j + 1, nxt]
                )
        return marginals

    def compute_model_distribution(self, potentials: List[np.ndarray]) -> np.ndarray:
        """Expected feature counts under the weights of the cached lattices."""
        result = np.zeros(self.n_features)
        for idx, item in enumerate(self.batch):
            z = self.normalization_constant(idx)
            marginals = self.pair_marginals(idx, potentials[idx])
            result += item.expected_counts(marginals, self.n_features) / z
        return result

    def values(self, point: np.ndarray) -> Tuple[float, np.ndarray]:
        """
        Log-likelihood and gradient at ``point``, not negated.

        Raises:
            NumericalInstabilityError: If the value or gradient is not finite.
        """
        point = np.asarray(point, dtype=float)
        potentials = self.compute_forward_backward(point)
        log_z = sum(np.log(self.normalization_constant(idx)) for idx in range(len(self.batch)))
        value = float(np.dot(self.empirical, point) - log_z - self.regularization_term(point))
        gradient = self.empirical - self.compute_model_distribution(potentials) - self.regularization_gradient(point)
        if not np.isfinite(value) or not np.all(np.isfinite(gradient)):
            raise NumericalInstabilityError("Log-likelihood or its gradient is not finite.")
        return value, gradient

    def log_likelihood(self, point: np.ndarray) -> float:
        return self.values(point)[0]

    def gradient(self, point: np.ndarray) -> np.ndarray:
        return self.values(point)[1]

    def partition(self, point: np.ndarray, idx: int) -> Tuple[float, float]:
        """
        Z of instance ``idx`` computed both ways.

        Returns:
            `(forward[n-1][END], backward[0][START])`, which agree up to
            floating-point error.
        """
        item: InstanceFeatures = self.batch[idx]
        forward, backward = forward_backward(item.potentials(np.asarray(point, dtype=float)), self.tags)
        return float(forward[-1, self.tags.end]), float(backward[0, self.tags.start])

    def __call__(self, point: np.ndarray) -> Tuple[float, np.ndarray]:
        # Negated because the optimizer minimizes.
        value, gradient = self.values(point)
        return -value, -gradient
