from __future__ import annotations
from typing import Any, Dict, List, Sequence
from .templates import TAG_SEPARATOR
from .types import SENTINEL_TAGS, Instance

ERROR_TYPES = frozenset({"missing_tag_error", "sentinel_tag_error", "separator_tag_error"})


def validate_corpus(corpus: Sequence[Instance], tagged: bool = True) -> Dict[str, Any]:
    """
    Performs sanity checks on a corpus before it reaches the model.

    The checks cover:
    -   Empty sequences (a warning: they are legal but carry no tokens).
    -   Tokens without a gold tag in a corpus meant for training.
    -   Gold tags that collide with the START/END sentinels.
    -   Gold tags containing the separator of bigram feature names, which
        would make distinct tag pairs share a feature name.
    -   Tokens whose number of columns differs from the first token of the
        corpus, which usually means a malformed line in the source file.

    Args:
        corpus: The instances to validate.
        tagged: Whether every token is expected to carry a gold tag.

    Returns:
        A dictionary summarizing the validation results, containing the total
        `issue_count`, the `error_count` of issues that make the corpus
        unusable for training, and the list of `issues`.
    """
    issues: List[Dict[str, Any]] = []
    n_columns = None

    for i, instance in enumerate(corpus):
        if len(instance) == 0:
            issues.append({
                "type": "empty_sequence_warning",
                "instance": i,
                "message": f"Sequence {i} has no tokens."
            })
        for j, token in enumerate(instance.tokens):
            if n_columns is None:
                n_columns = len(token.columns)
            elif len(token.columns) != n_columns:
                issues.append({
                    "type": "column_count_warning",
                    "instance": i,
                    "idx": j,
                    "message": f"Token '{token.word}' in sequence {i} has {len(token.columns)} columns, expected {n_columns}."
                })
            if tagged and token.tag is None:
                issues.append({
                    "type": "missing_tag_error",
                    "instance": i,
                    "idx": j,
                    "message": f"Token '{token.word}' in sequence {i} has no gold tag."
                })
            elif token.tag in SENTINEL_TAGS:
                issues.append({
                    "type": "sentinel_tag_error",
                    "instance": i,
                    "idx": j,
                    "message": f"Token '{token.word}' in sequence {i} uses the reserved tag {token.tag}."
                })
            elif token.tag is not None and TAG_SEPARATOR in token.tag:
                issues.append({
                    "type": "separator_tag_error",
                    "instance": i,
                    "idx": j,
                    "message": f"Tag '{token.tag}' of token '{token.word}' in sequence {i} contains '{TAG_SEPARATOR}'."
                })

    error_count = sum(1 for issue in issues if issue["type"] in ERROR_TYPES)
    return {"issue_count": len(issues), "error_count": error_count, "issues": issues}
