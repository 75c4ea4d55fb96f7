"""Training and decoding orchestration for the linear-chain CRF.

The `CRF` class ties the pieces together:

1.  **Training** (`CRF.train`): build the vocabulary and tag index from the
    corpus, generate the training features (assigning weight slots), set up
    the log-likelihood objective and hand it to the L-BFGS-B optimizer,
    starting from a seeded random point. The optimum becomes the model's
    weight vector.
2.  **Decoding** (`CRF.predict`): generate features in decoding mode, where
    unseen features are simply dropped, run the Viterbi pass over each
    instance and backtrack from END to recover the best tag sequence.
"""
from __future__ import annotations
from dataclasses import asdict
from typing import Any, Dict, List, Optional, Sequence, Union
import numpy as np

from .config import CRFConfig
from .data_validation import validate_corpus
from .features import FeatureBatch, FeatureIndex
from .lattice import viterbi
from .objective import LogLikelihood
from .optimizer import minimize, starting_point
from .templates import DEFAULT_TEMPLATES, TagActivation, Template
from .types import Instance
from .vocabulary import TagIndex, Vocabulary, build_indices

MODEL_FORMAT = "chaincrf-model"
MODEL_VERSION = 1


class CRF:
    """
    A linear-chain conditional random field tagger.

    Attributes:
        templates: The feature templates.
        config: Training settings.
        vocabulary: The frozen word vocabulary, set by `train`.
        tags: The frozen tag index, set by `train`.
        feature_index: The feature index table, set by `train`.
        weights: The trained weight vector, or None before training.
    """
    def __init__(
        self,
        templates: Optional[Sequence[Union[str, Template]]] = None,
        config: Optional[CRFConfig] = None,
    ):
        if templates is None:
            templates = DEFAULT_TEMPLATES
        self.templates: List[Template] = [t if isinstance(t, Template) else Template(t) for t in templates]
        self.config = config if config is not None else CRFConfig()
        self.vocabulary: Optional[Vocabulary] = None
        self.tags: Optional[TagIndex] = None
        self.feature_index: Optional[FeatureIndex] = None
        self.weights: Optional[np.ndarray] = None

    @property
    def is_trained(self) -> bool:
        return self.weights is not None

    def _log(self, message: str) -> None:
        if self.config.verbose:
            print(message)

    def train(self, corpus: Sequence[Instance]) -> "CRF":
        """
        Fits the model to a tagged corpus.

        The model attributes are only replaced once optimization succeeds, so
        a failed run leaves the model as it was.

        Args:
            corpus: Training instances, every token carrying a gold tag.

        Returns:
            The trained model itself.

        Raises:
            ValueError: If sigma is not positive or the corpus has untagged
                        tokens or tokens using a sentinel tag.
            TrainingError: If the optimizer fails.
            NumericalInstabilityError: If the lattices overflow or underflow.
        """
        self.config.validate()
        report = validate_corpus(corpus, tagged=True)
        if report["error_count"]:
            first = next(i for i in report["issues"] if i["type"].endswith("_error"))
            raise ValueError(
                f"Training corpus has {report['error_count']} invalid tokens. First: {first['message']}"
            )
        for issue in report["issues"]:
            self._log(f"Warning: {issue['message']}")

        self._log("Reading training data...")
        vocabulary, tags = build_indices(corpus)

        self._log("Building features...")
        feature_index = FeatureIndex()
        batch = feature_index.build(
            corpus,
            self.templates,
            tags,
            lambda w: vocabulary.normalize(w, training=True),
            training=True,
            verbose=self.config.verbose,
        )
        self._log(f"Num of features: {len(feature_index)}")
        self._log(f"Num of tags: {len(tags)}")

        self._log("Preparing for minimization...")
        objective = LogLikelihood(batch, len(feature_index), self.config.sigma, verbose=self.config.verbose)
        start = starting_point(len(feature_index), self.config.seed, self.config.init_scale)

        if len(feature_index) == 0:
            weights = start
        else:
            self._log("Start maximizing log-likelihood...")
            result = minimize(
                objective,
                start,
                max_iterations=self.config.max_iterations,
                tolerance=self.config.tolerance,
                verbose=self.config.verbose,
            )
            weights = np.asarray(result.x, dtype=float)

        self.vocabulary = vocabulary
        self.tags = tags
        self.feature_index = feature_index
        self.weights = weights
        self._log("Done!")
        return self

    def build_features(self, corpus: Sequence[Instance]) -> FeatureBatch:
        """Generates decoding-mode features for ``corpus`` with the trained index."""
        self._require_trained()
        vocabulary = self.vocabulary
        return self.feature_index.build(
            corpus,
            self.templates,
            self.tags,
            vocabulary.normalize,
            training=False,
            verbose=self.config.verbose,
        )

    def predict(self, corpus: Sequence[Instance]) -> List[Instance]:
        """
        Decodes the best tag sequence for every instance.

        Gold tags on the input, if any, are ignored.

        Returns:
            New instances with the same observations and the decoded tags.

        Raises:
            RuntimeError: If the model is untrained or has no output tags.
            NumericalInstabilityError: If the decoding potentials are not finite.
        """
        batch = self.build_features(corpus)
        results = []
        for item in batch:
            if len(item.instance) and not self.tags.output_tags:
                raise RuntimeError("The model has no tags to assign; it was trained on an empty corpus.")
            path = viterbi(item.potentials(self.weights), self.tags)
            results.append(item.instance.with_tags([self.tags.tags[i] for i in path]))
        return results

    def tag(self, words: Sequence[str]) -> List[str]:
        """Decodes a single sentence given as a list of words."""
        return self.predict([Instance.from_words(words)])[0].tags

    def _require_trained(self) -> None:
        if not self.is_trained:
            raise RuntimeError("The model has not been trained.")

    def to_dict(self) -> Dict[str, Any]:
        """Serializes everything needed to decode into JSON-compatible types."""
        self._require_trained()
        activations = {
            key: {
                "bigram": act.bigram,
                "slots": [[prev, cur, slot] for prev, cur, slot in act.items()],
            }
            for key, act in self.feature_index.activations.items()
        }
        return {
            "format": MODEL_FORMAT,
            "version": MODEL_VERSION,
            "templates": [t.text for t in self.templates],
            "config": asdict(self.config),
            "words": list(self.vocabulary.words),
            "tags": list(self.tags.tags),
            "features": list(self.feature_index.reverse),
            "activations": activations,
            "weights": [float(w) for w in self.weights],
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "CRF":
        """
        Restores a model serialized by `to_dict`.

        Raises:
            ValueError: If the document is not a model of a supported version
                        or its parts are inconsistent.
        """
        if data.get("format") != MODEL_FORMAT or data.get("version") != MODEL_VERSION:
            raise ValueError(
                f"Unsupported model document (format={data.get('format')!r}, version={data.get('version')!r})."
            )
        try:
            model = cls(templates=data["templates"], config=CRFConfig(**data["config"]))
            model.vocabulary = Vocabulary(data["words"])
            model.tags = TagIndex(data["tags"])

            index = FeatureIndex()
            for slot, name in enumerate(data["features"]):
                index.names[name] = slot
                index.reverse.append(name)
            for key, payload in data["activations"].items():
                activation = TagActivation(bool(payload["bigram"]))
                for prev, cur, slot in payload["slots"]:
                    activation.add(prev, cur, int(slot))
                index.activations[key] = activation
            model.feature_index = index

            weights = np.asarray(data["weights"], dtype=float)
        except (KeyError, TypeError) as e:
            raise ValueError(f"Malformed model document: {e}")

        if len(weights) != len(index):
            raise ValueError(f"Model has {len(index)} features but {len(weights)} weights.")
        model.weights = weights
        return model
