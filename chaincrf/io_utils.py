"""Provides utility functions for loading and saving corpora and models.

Corpora use the column format common to CoNLL and CRF++: one token per line,
whitespace-separated columns, and a blank line between sequences. In a tagged
corpus the last column is the gold tag; every other column is an observation
that feature templates can reference (column 0 being the word).

Models are stored as a single JSON document produced by `CRF.to_dict`.
"""
import json
from pathlib import Path
from typing import List, Sequence

from .model import CRF
from .types import Instance, TaggedToken


def load_corpus(path: str, tagged: bool = True) -> List[Instance]:
    """
    Loads a list of Instance objects from a column-format file.

    Lines starting with `#` are treated as comments. Several consecutive blank
    lines are equivalent to one.

    Args:
        path: The path to the corpus file.
        tagged: Whether the last column of each line is the gold tag.

    Returns:
        A list of `Instance` objects in file order.

    Raises:
        FileNotFoundError: If the file at the specified path does not exist.
        ValueError: If a tagged line does not have at least two columns.
    """
    try:
        with open(path, "r", encoding="utf-8") as f:
            lines = f.read().splitlines()
    except FileNotFoundError:
        raise FileNotFoundError(f"Corpus file not found at: {path}")

    corpus: List[Instance] = []
    current: List[TaggedToken] = []
    for lineno, line in enumerate(lines, start=1):
        stripped = line.strip()
        if stripped.startswith("#"):
            continue
        if not stripped:
            if current:
                corpus.append(Instance(tuple(current)))
                current = []
            continue
        columns = stripped.split()
        if tagged:
            if len(columns) < 2:
                raise ValueError(f"Line {lineno} of {path} has no tag column: {line!r}")
            current.append(TaggedToken(tuple(columns[:-1]), columns[-1]))
        else:
            current.append(TaggedToken(tuple(columns)))
    if current:
        corpus.append(Instance(tuple(current)))
    return corpus


def save_corpus(path: str, corpus: Sequence[Instance]) -> None:
    """
    Saves a corpus in column format.

    Each token is written as its observation columns followed by its tag when
    it has one, with a blank line after every sequence.
    """
    out_lines = []
    for instance in corpus:
        for token in instance.tokens:
            columns = list(token.columns)
            if token.tag is not None:
                columns.append(token.tag)
            out_lines.append("\t".join(columns))
        out_lines.append("")

    Path(path).parent.mkdir(parents=True, exist_ok=True)
    with open(path, "w", encoding="utf-8") as f:
        f.write("\n".join(out_lines) + ("\n" if out_lines else ""))


def save_model(path: str, model: CRF) -> None:
    """Saves a trained model as a JSON document."""
    data = model.to_dict()
    Path(path).parent.mkdir(parents=True, exist_ok=True)
    with open(path, "w", encoding="utf-8") as f:
        json.dump(data, f, ensure_ascii=False, indent=2)


def load_model(path: str) -> CRF:
    """
    Loads a model saved by `save_model`.

    Raises:
        FileNotFoundError: If the file at the specified path does not exist.
        ValueError: If the file is not valid JSON or not a model document.
        TypeError: If the JSON root is not an object.
    """
    try:
        with open(path, "r", encoding="utf-8") as f:
            data = json.load(f)
    except FileNotFoundError:
        raise FileNotFoundError(f"Model file not found at: {path}")
    except json.JSONDecodeError as e:
        raise ValueError(f"Error decoding JSON from {path}: {e}")

    if not isinstance(data, dict):
        raise TypeError(f"Expected a JSON object in {path}")
    return CRF.from_dict(data)
