"""Feature index table and the per-batch feature side-table.

The `FeatureIndex` owns the mapping from fully-qualified feature names to
weight slots, plus the shared `TagActivation` object for every grouping key.
Running `FeatureIndex.build` over a corpus produces a `FeatureBatch`: for each
instance, one list of activated `FeatureDescriptor` objects per position.

A batch is rebuilt from scratch every time features are generated, and the
instances themselves are never modified, so a corpus can be used for training
and then decoded without stale features leaking from one mode to the other.

For the lattice, every instance's descriptors are compiled into flat index
arrays so the potential of each (previous tag, current tag) pair at each
position can be computed for a whole weight vector at once.
"""
from __future__ import annotations
from typing import Callable, Dict, Iterator, List, Optional, Sequence
import numpy as np
from tqdm import tqdm

from .templates import FeatureDescriptor, TagActivation, Template, generate_features
from .types import Instance
from .vocabulary import TagIndex


class InstanceFeatures:
    """
    The features of one instance.

    Attributes:
        instance: The instance the features were generated for.
        positions: One descriptor list per position `0..len(instance)`.
    """
    def __init__(self, instance: Instance, positions: List[List[FeatureDescriptor]]):
        self.instance = instance
        self.positions = positions
        self._compiled = None

    def __len__(self) -> int:
        return len(self.positions)

    @property
    def n_rows(self) -> int:
        """Number of lattice rows: the tokens plus the START and END anchors."""
        return len(self.instance) + 2

    def activated(self, position: int, prev_tag: Optional[str], cur_tag: Optional[str]) -> List[int]:
        """Slots of the features active for the tag pair at ``position``."""
        return [
            f.slot(prev_tag, cur_tag)
            for f in self.positions[position]
            if f.present(prev_tag, cur_tag)
        ]

    def compile(self, tags: TagIndex) -> None:
        """
        Flattens every (position, previous tag, current tag, slot) activation
        into index arrays. Unigram activations are kept apart since they apply
        to every previous tag.
        """
        uni: List[tuple] = []
        bi: List[tuple] = []
        for pos, features in enumerate(self.positions):
            for f in features:
                if f.activation is None:
                    continue
                for prev_tag, cur_tag, slot in f.activation.items():
                    if prev_tag is None:
                        uni.append((pos, tags[cur_tag], slot))
                    else:
                        bi.append((pos, tags[prev_tag], tags[cur_tag], slot))
        uni_arr = np.array(uni, dtype=np.intp).reshape(-1, 3)
        bi_arr = np.array(bi, dtype=np.intp).reshape(-1, 4)
        self._compiled = (len(tags), uni_arr, bi_arr)

    def potentials(self, weights: np.ndarray) -> np.ndarray:
        """
        Raw potentials for every position and tag pair.

        Returns:
            An array of shape `(len + 1, T, T)` where entry `[p, i, j]` is the
            sum of the weights of the features active for previous tag `i` and
            current tag `j` at position `p`.
        """
        if self._compiled is None:
            raise RuntimeError("Features must be compiled before computing potentials.")
        n_tags, uni, bi = self._compiled
        unary = np.zeros((len(self.positions), n_tags))
        np.add.at(unary, (uni[:, 0], uni[:, 1]), weights[uni[:, 2]])
        pot = np.repeat(unary[:, None, :], n_tags, axis=1)
        np.add.at(pot, (bi[:, 0], bi[:, 1], bi[:, 2]), weights[bi[:, 3]])
        return pot

    def expected_counts(self, pair_marginals: np.ndarray, n_features: int) -> np.ndarray:
        """
        Scatters pair marginals of shape `(len + 1, T, T)` onto weight slots.

        Each slot receives the total marginal mass of the (position, tag pair)
        combinations it is active for.
        """
        if self._compiled is None:
            raise RuntimeError("Features must be compiled before computing expectations.")
        _, uni, bi = self._compiled
        counts = np.zeros(n_features)
        cur_marginals = pair_marginals.sum(axis=1)
        np.add.at(counts, uni[:, 2], cur_marginals[uni[:, 0], uni[:, 1]])
        np.add.at(counts, bi[:, 3], pair_marginals[bi[:, 0], bi[:, 1], bi[:, 2]])
        return counts


class FeatureBatch:
    """The side-table of features for one batch of instances."""

    def __init__(self, items: List[InstanceFeatures], tags: TagIndex):
        self.items = items
        self.tags = tags

    def __len__(self) -> int:
        return len(self.items)

    def __iter__(self) -> Iterator[InstanceFeatures]:
        return iter(self.items)

    def __getitem__(self, idx: int) -> InstanceFeatures:
        return self.items[idx]

    def compile(self) -> "FeatureBatch":
        for item in self.items:
            item.compile(self.tags)
        return self


class FeatureIndex:
    """
    Assigns a global weight slot to every distinct fully-qualified feature.

    Attributes:
        names: Fully-qualified feature name to slot.
        reverse: Slot to fully-qualified feature name.
        activations: Grouping key to the shared `TagActivation`.
    """
    def __init__(self):
        self.names: Dict[str, int] = {}
        self.reverse: List[str] = []
        self.activations: Dict[str, TagActivation] = {}

    def __len__(self) -> int:
        return len(self.names)

    def __contains__(self, name: str) -> bool:
        return name in self.names

    def register(self, feature: FeatureDescriptor, prev_tag: str, cur_tag: str) -> int:
        """Assigns (or reuses) the slot for a training feature and attaches its activation."""
        name = feature.qualified_name(prev_tag, cur_tag)
        slot = self.names.get(name)
        if slot is None:
            slot = len(self.reverse)
            self.names[name] = slot
            self.reverse.append(name)
        activation = self.activations.get(feature.key)
        if activation is None:
            activation = TagActivation(feature.bigram)
            self.activations[feature.key] = activation
        activation.add(prev_tag, cur_tag, slot)
        feature.name = name
        feature.activation = activation
        return slot

    def resolve(self, feature: FeatureDescriptor) -> bool:
        """
        Attaches the activation of a known context to a decoding feature.

        Returns:
            False when no qualified name for the feature's context was seen
            during training, in which case the feature carries no weight.
        """
        activation = self.activations.get(feature.key)
        if activation is None or len(activation) == 0:
            return False
        feature.activation = activation
        return True

    def build(
        self,
        corpus: Sequence[Instance],
        templates: Sequence[Template],
        tags: TagIndex,
        normalize: Callable[[str], str],
        training: bool,
        verbose: bool = True,
    ) -> FeatureBatch:
        """
        Generates the features of every instance at every position.

        In training mode every position is featurized with its gold tag pair
        and new feature names get the next free slot. In decoding mode no slot
        is assigned and features whose context was never seen in training are
        dropped.

        Args:
            corpus: The instances to featurize.
            templates: The feature templates.
            tags: The frozen tag index.
            normalize: Word normalization applied to column 0.
            training: Whether to assign new slots.
            verbose: Whether to show a progress bar.

        Returns:
            A compiled `FeatureBatch` aligned with ``corpus``.
        """
        items = []
        desc = "Building features" if training else "Building test features"
        for instance in tqdm(corpus, desc=desc, disable=not verbose):
            positions: List[List[FeatureDescriptor]] = []
            for position in range(len(instance) + 1):
                if training:
                    prev_tag = instance.tag_at(position - 1)
                    cur_tag = instance.tag_at(position)
                    features = generate_features(templates, instance, position, prev_tag, cur_tag, normalize)
                    for f in features:
                        self.register(f, prev_tag, cur_tag)
                else:
                    features = generate_features(templates, instance, position, None, None, normalize)
                    features = [f for f in features if self.resolve(f)]
                positions.append(features)
            items.append(InstanceFeatures(instance, positions))
        return FeatureBatch(items, tags).compile()
