import itertools

import numpy as np
import pytest

from chaincrf.lattice import MAX, SUM, NumericalInstabilityError, forward_backward, viterbi
from chaincrf.vocabulary import TagIndex


def _tags() -> TagIndex:
    return TagIndex(["A", "B"]).freeze()


def _random_potentials(length: int, tags: TagIndex, seed: int = 0) -> np.ndarray:
    rng = np.random.default_rng(seed)
    return rng.normal(scale=0.5, size=(length + 1, len(tags), len(tags)))


def _path_score(pot: np.ndarray, tags: TagIndex, path) -> float:
    full = [tags.start, *path, tags.end]
    return sum(pot[p, full[p], full[p + 1]] for p in range(len(full) - 1))


def _paths(length: int, tags: TagIndex):
    outputs = [tags[t] for t in tags.output_tags]
    return itertools.product(outputs, repeat=length)


def test_sum_accumulator_ignores_nan():
    assert SUM.combine(np.array([1.0, np.nan, 2.5])).value == pytest.approx(3.5)
    assert SUM.combine(np.array([np.nan, np.nan])).value == 0.0


def test_max_accumulator_ignores_nan_and_reports_argmax():
    result = MAX.combine(np.array([np.nan, 0.2, 0.9, np.nan]))
    assert result.value == pytest.approx(0.9)
    assert result.argmax == 2

    empty = MAX.combine(np.array([np.nan, np.nan]))
    assert empty.value == float("-inf")
    assert empty.argmax == -1


@pytest.mark.parametrize("length", [0, 1, 2, 4])
def test_forward_and_backward_agree_with_enumeration(length):
    tags = _tags()
    pot = _random_potentials(length, tags, seed=length)

    forward, backward = forward_backward(pot, tags)
    z_forward = forward[-1, tags.end]
    z_backward = backward[0, tags.start]
    z_brute = sum(np.exp(_path_score(pot, tags, path)) for path in _paths(length, tags))

    assert forward.shape == (length + 2, len(tags))
    assert z_forward == pytest.approx(z_backward, rel=1e-9)
    assert z_forward == pytest.approx(z_brute, rel=1e-9)


def test_forward_never_enters_start_after_row_zero():
    tags = _tags()
    forward, backward = forward_backward(_random_potentials(3, tags), tags)

    assert np.all(forward[1:, tags.start] == 0.0)
    assert np.all(backward[:-1, tags.end] == 0.0)


@pytest.mark.parametrize("length", [1, 2, 3, 5])
def test_viterbi_matches_exhaustive_search(length):
    tags = _tags()
    pot = _random_potentials(length, tags, seed=10 + length)

    best = max(_paths(length, tags), key=lambda path: _path_score(pot, tags, path))

    assert viterbi(pot, tags) == list(best)


def test_viterbi_output_excludes_sentinels():
    tags = _tags()
    path = viterbi(_random_potentials(6, tags, seed=3), tags)

    assert len(path) == 6
    assert tags.start not in path
    assert tags.end not in path


def test_viterbi_empty_sequence():
    tags = _tags()

    assert viterbi(_random_potentials(0, tags), tags) == []


def test_viterbi_single_tag_model():
    tags = TagIndex(["N"]).freeze()
    pot = np.zeros((3, len(tags), len(tags)))

    assert viterbi(pot, tags) == [tags["N"], tags["N"]]


@pytest.mark.parametrize("length", [1, 3, 6])
def test_viterbi_handles_potentials_beyond_exp_range(length):
    tags = _tags()
    pot = _random_potentials(length, tags, seed=20 + length) * 2000

    best = max(_paths(length, tags), key=lambda path: _path_score(pot, tags, path))

    assert viterbi(pot, tags) == list(best)


def test_viterbi_large_uniform_potentials_never_emit_sentinels():
    tags = _tags()
    pot = np.zeros((2, len(tags), len(tags)))
    pot[0] = 800.0
    pot[1] = -800.0

    path = viterbi(pot, tags)

    assert len(path) == 1
    assert path[0] in (tags["A"], tags["B"])


@pytest.mark.parametrize("bad", [np.inf, np.nan])
def test_viterbi_rejects_non_finite_potentials(bad):
    tags = _tags()
    pot = np.full((3, len(tags), len(tags)), bad)

    with pytest.raises(NumericalInstabilityError):
        viterbi(pot, tags)
