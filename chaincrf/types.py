from __future__ import annotations
from dataclasses import dataclass
from typing import Optional, Sequence, Tuple

__all__ = ["START", "END", "SENTINEL_TAGS", "TaggedToken", "Instance"]

START = "<START>"
END = "<END>"
SENTINEL_TAGS = frozenset({START, END})


@dataclass(frozen=True)
class TaggedToken:
    """
    A single observation in a sequence, with its optional gold tag.

    Attributes:
        columns: The observation columns. Column 0 is the surface word; further
                 columns hold attributes such as a part-of-speech tag or chunk
                 label and can be referenced by feature templates.
        tag: The gold tag, or None for untagged (decoding) input.
    """
    columns: Tuple[str, ...]
    tag: Optional[str] = None

    @property
    def word(self) -> str:
        return self.columns[0]

    def column(self, idx: int) -> Optional[str]:
        """Returns column ``idx`` or None when the token has no such column."""
        if 0 <= idx < len(self.columns):
            return self.columns[idx]
        return None


@dataclass(frozen=True)
class Instance:
    """
    An ordered sequence of tokens forming one training or decoding example.

    Instances are immutable. Generated features live in a separate
    :class:`~chaincrf.features.FeatureBatch`, so the same corpus can be fed to
    training and decoding without stale per-instance state.
    """
    tokens: Tuple[TaggedToken, ...]

    @classmethod
    def from_words(cls, words: Sequence[str], tags: Optional[Sequence[str]] = None) -> "Instance":
        """Builds a single-column instance from parallel word and tag lists."""
        if tags is not None and len(tags) != len(words):
            raise ValueError(f"Got {len(words)} words but {len(tags)} tags.")
        return cls(tuple(
            TaggedToken((w,), tags[i] if tags is not None else None)
            for i, w in enumerate(words)
        ))

    def __len__(self) -> int:
        return len(self.tokens)

    @property
    def words(self) -> list[str]:
        return [t.word for t in self.tokens]

    @property
    def tags(self) -> list[Optional[str]]:
        return [t.tag for t in self.tokens]

    @property
    def is_tagged(self) -> bool:
        return all(t.tag is not None for t in self.tokens)

    def tag_at(self, idx: int) -> Optional[str]:
        """
        Returns the gold tag at ``idx``, anchoring both ends of the sequence.

        Index -1 (and below) resolves to START and index ``len`` (and above)
        resolves to END, so every inter-token boundary has a defined
        (previous, current) tag pair.
        """
        if idx < 0:
            return START
        if idx >= len(self.tokens):
            return END
        return self.tokens[idx].tag

    def with_tags(self, tags: Sequence[str]) -> "Instance":
        """Returns a copy carrying ``tags`` in place of the current gold tags."""
        if len(tags) != len(self.tokens):
            raise ValueError(f"Expected {len(self.tokens)} tags, got {len(tags)}.")
        return Instance(tuple(
            TaggedToken(tok.columns, tag) for tok, tag in zip(self.tokens, tags)
        ))
