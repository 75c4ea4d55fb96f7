"""Word and tag bookkeeping for the CRF.

The `build_indices` function makes a single pass over a training corpus and
produces the two frozen indices the model relies on: a `Vocabulary` of
normalized words and a `TagIndex` of gold tags plus the START/END sentinels.
The `TagIndex` also carries the boundary transition tables used by the
lattice to decide which tags may precede or follow each other at the edges
of a sequence.
"""
from __future__ import annotations
import re
from typing import Dict, Iterable, List, Sequence, Tuple
import numpy as np

from .types import END, START, Instance

UNKNOWN_WORD = "-UNK-"
NUMERIC = "-NUM-"

_NUMERIC_RE = re.compile(r"[0-9]+[0-9,\-.]*")


def is_numeric(word: str) -> bool:
    """True when ``word`` looks like a number or is mostly ASCII digits."""
    if _NUMERIC_RE.fullmatch(word):
        return True
    digits = sum(1 for c in word if "0" <= c <= "9")
    return len(word) > 0 and digits * 3 >= len(word) * 2


class Vocabulary:
    """
    A bidirectional mapping between normalized words and dense indices.

    Words are added in order of first appearance while the vocabulary is being
    built. The unknown-word symbol is appended last by `build_indices`, after
    which the vocabulary is treated as frozen.
    """
    def __init__(self, words: Iterable[str] = ()):
        self.index: Dict[str, int] = {}
        self.words: List[str] = []
        for w in words:
            self.add(w)

    def __len__(self) -> int:
        return len(self.words)

    def __contains__(self, word: str) -> bool:
        return word in self.index

    def add(self, word: str) -> int:
        idx = self.index.get(word)
        if idx is None:
            idx = len(self.words)
            self.index[word] = idx
            self.words.append(word)
        return idx

    def normalize(self, word: str, training: bool = False) -> str:
        """
        Maps a raw word to its canonical vocabulary form.

        Digit-heavy tokens collapse to the numeric symbol. Outside of training,
        a word that is not in the vocabulary becomes the unknown-word symbol.

        Args:
            word: The raw surface form.
            training: Whether the vocabulary is still being built.

        Returns:
            The normalized word.
        """
        if is_numeric(word):
            word = NUMERIC
        if not training and word not in self.index:
            return UNKNOWN_WORD
        return word


class TagIndex:
    """
    A bidirectional mapping between tags and dense indices, with the boundary
    transition tables derived from it.

    Attributes:
        index: Tag to index mapping.
        tags: Index to tag list.
        no_start: Indices of every tag except START.
        no_end: Indices of every tag except END.
        only_start: The index of START alone.
        only_end: The index of END alone.
        empty: An empty index array.
    """
    def __init__(self, tags: Iterable[str] = ()):
        self.index: Dict[str, int] = {}
        self.tags: List[str] = []
        for t in tags:
            self.add(t)
        self._build_tables()

    def __len__(self) -> int:
        return len(self.tags)

    def __contains__(self, tag: str) -> bool:
        return tag in self.index

    def __getitem__(self, tag: str) -> int:
        return self.index[tag]

    def add(self, tag: str) -> int:
        idx = self.index.get(tag)
        if idx is None:
            idx = len(self.tags)
            self.index[tag] = idx
            self.tags.append(tag)
        return idx

    def freeze(self) -> "TagIndex":
        """Appends the START/END sentinels and builds the transition tables."""
        self.add(START)
        self.add(END)
        self._build_tables()
        return self

    @property
    def start(self) -> int:
        return self.index[START]

    @property
    def end(self) -> int:
        return self.index[END]

    @property
    def output_tags(self) -> List[str]:
        """Every tag that may appear in decoded output."""
        return [t for t in self.tags if t not in (START, END)]

    def _build_tables(self) -> None:
        start = self.index.get(START)
        end = self.index.get(END)
        all_idx = np.arange(len(self.tags), dtype=np.intp)
        self.no_start = all_idx[all_idx != start] if start is not None else all_idx
        self.no_end = all_idx[all_idx != end] if end is not None else all_idx
        self.only_start = np.array([start] if start is not None else [], dtype=np.intp)
        self.only_end = np.array([end] if end is not None else [], dtype=np.intp)
        self.empty = np.array([], dtype=np.intp)

    def previous_tags(self, tag: int, row: int, n: int) -> np.ndarray:
        """
        Tags allowed in row ``row - 1`` before ``tag`` in row ``row``.

        ``n`` is the number of lattice rows (sequence length plus the two
        anchors). START never has a predecessor, row 1 may only be entered
        from START, and the END row may only be entered by END itself.
        """
        if tag == self.start:
            return self.empty
        if row == 1:
            return self.only_start
        if row == n - 1:
            return self.no_end if tag == self.end else self.empty
        return self.no_end

    def next_tags(self, tag: int, row: int, n: int) -> np.ndarray:
        """
        Tags allowed in row ``row + 1`` after ``tag`` in row ``row``.

        END never has a successor, the last interior row may only lead to END,
        and the START row may only be left by START itself.
        """
        if tag == self.end:
            return self.empty
        if row == n - 2:
            return self.only_end
        if row == 0:
            return self.no_start if tag == self.start else self.empty
        return self.no_start


def build_indices(corpus: Sequence[Instance]) -> Tuple[Vocabulary, TagIndex]:
    """
    Builds the vocabulary and tag index from a training corpus.

    Every word is normalized before being indexed, and every gold tag is
    indexed in order of first appearance. START and END are appended to the
    tags and the unknown-word symbol to the vocabulary once the pass is done.
    A corpus with no tagged tokens yields a two-tag (START/END) index.

    Args:
        corpus: The training instances.

    Returns:
        A `(vocabulary, tag_index)` tuple.
    """
    vocab = Vocabulary()
    tags = TagIndex()
    for instance in corpus:
        for token in instance.tokens:
            vocab.add(vocab.normalize(token.word, training=True))
            if token.tag is not None:
                tags.add(token.tag)
    tags.freeze()
    vocab.add(UNKNOWN_WORD)
    return vocab, tags
