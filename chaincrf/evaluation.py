"""Tag-level evaluation of decoded corpora.

`evaluate` lines up a gold corpus with the model's predictions token by token
in a pandas DataFrame and derives accuracy, per-tag precision/recall/F1 and
the list of disagreements from it.
"""
from __future__ import annotations
from typing import Any, Dict, Sequence
import pandas as pd

from .types import Instance


def alignment_frame(gold: Sequence[Instance], predicted: Sequence[Instance]) -> pd.DataFrame:
    """
    Builds one row per token with its gold and predicted tag.

    Raises:
        ValueError: If the corpora differ in the number of sequences or in the
                    length of any sequence.
    """
    if len(gold) != len(predicted):
        raise ValueError(f"Gold corpus has {len(gold)} sequences, prediction has {len(predicted)}.")
    rows = []
    for seq, (g, p) in enumerate(zip(gold, predicted)):
        if len(g) != len(p):
            raise ValueError(f"Sequence {seq} has {len(g)} gold tokens but {len(p)} predicted tokens.")
        for pos, (gt, pt) in enumerate(zip(g.tokens, p.tokens)):
            rows.append({"sequence": seq, "position": pos, "word": gt.word, "gold": gt.tag, "predicted": pt.tag})
    return pd.DataFrame(rows, columns=["sequence", "position", "word", "gold", "predicted"])


def evaluate(gold: Sequence[Instance], predicted: Sequence[Instance]) -> Dict[str, Any]:
    """
    Compares predicted tags against gold tags.

    Returns:
        A dictionary with the token `accuracy`, the number of `tokens`,
        per-tag `scores` (precision, recall, f1, support) and the
        `disagreements` as a list of row dictionaries.
    """
    df = alignment_frame(gold, predicted)
    if df.empty:
        return {"accuracy": 0.0, "tokens": 0, "scores": {}, "disagreements": []}

    correct = df["gold"] == df["predicted"]
    scores: Dict[str, Dict[str, float]] = {}
    labels = sorted(set(df["gold"].dropna()) | set(df["predicted"].dropna()))
    for label in labels:
        tp = int(((df["predicted"] == label) & correct).sum())
        n_pred = int((df["predicted"] == label).sum())
        n_gold = int((df["gold"] == label).sum())
        precision = tp / n_pred if n_pred else 0.0
        recall = tp / n_gold if n_gold else 0.0
        f1 = 2 * precision * recall / (precision + recall) if precision + recall else 0.0
        scores[label] = {"precision": precision, "recall": recall, "f1": f1, "support": n_gold}

    return {
        "accuracy": float(correct.mean()),
        "tokens": int(len(df)),
        "scores": scores,
        "disagreements": df[~correct].to_dict(orient="records"),
    }
