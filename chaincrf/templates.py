"""Feature templates: the feature generator consumed by the CRF core.

Templates follow the CRF++ conventions. Each template is a single line that
starts with `U` (unigram, depends on the current tag only) or `B` (bigram,
depends on the previous and the current tag), followed by an identifier and
optional text containing `%x[row,col]` macros. A macro expands to column
`col` of the token `row` positions away from the current one, for example:

    U02:%x[0,0]          -> "U02:dog"         (current word)
    U05:%x[-1,0]/%x[0,0] -> "U05:the/dog"     (previous and current word)
    B                    -> "B"               (plain tag transition)

The expanded text is the tag-independent grouping key of the feature. The
fully-qualified feature name adds the tag(s) it fires for, so `U02:dog` seen
with tag `N` is the feature `N:U02:dog`, and `B` seen between `DT` and `N`
is `DT|N:B`.
"""
from __future__ import annotations
import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Callable, Dict, Hashable, List, Optional, Sequence, Tuple

from .types import Instance

DEFAULT_TEMPLATES: Tuple[str, ...] = (
    "U02:%x[0,0]",
    "U12:%x[0,1]",
    "B",
)

MISSING_COLUMN = "_NA"

# Joins the previous and current tag in bigram feature names.
TAG_SEPARATOR = "|"

_MACRO_RE = re.compile(r"%x\[\s*(-?\d+)\s*,\s*(\d+)\s*\]")

TagKey = Hashable


class TagActivation:
    """
    The weight slots a single feature context is active for.

    One object is shared by every occurrence of the same grouping key across
    all positions and instances. For unigram contexts the key is the current
    tag; for bigram contexts it is the `(previous, current)` pair.
    """
    def __init__(self, bigram: bool):
        self.bigram = bigram
        self.slots: Dict[TagKey, int] = {}

    def __len__(self) -> int:
        return len(self.slots)

    def key(self, prev_tag: Optional[str], cur_tag: Optional[str]) -> TagKey:
        return (prev_tag, cur_tag) if self.bigram else cur_tag

    def add(self, prev_tag: str, cur_tag: str, slot: int) -> None:
        self.slots.setdefault(self.key(prev_tag, cur_tag), slot)

    def get(self, prev_tag: Optional[str], cur_tag: Optional[str]) -> Optional[int]:
        return self.slots.get(self.key(prev_tag, cur_tag))

    def items(self) -> List[Tuple[Optional[str], str, int]]:
        """Returns `(prev_tag, cur_tag, slot)` triples; prev_tag is None for unigrams."""
        if self.bigram:
            return [(k[0], k[1], s) for k, s in self.slots.items()]
        return [(None, k, s) for k, s in self.slots.items()]


@dataclass
class FeatureDescriptor:
    """
    One feature produced by a template at one position.

    Attributes:
        key: The tag-independent grouping key (expanded template text).
        bigram: Whether the feature depends on the previous tag.
        name: The fully-qualified name for the tags the descriptor was
              generated with, or None when it was generated without tags.
        activation: The shared `TagActivation` for `key`, attached by the
                    feature index table.
    """
    key: str
    bigram: bool
    name: Optional[str] = None
    activation: Optional[TagActivation] = field(default=None, repr=False)

    def qualified_name(self, prev_tag: Optional[str], cur_tag: Optional[str]) -> str:
        if self.bigram:
            return f"{prev_tag}{TAG_SEPARATOR}{cur_tag}:{self.key}"
        return f"{cur_tag}:{self.key}"

    def present(self, prev_tag: Optional[str], cur_tag: Optional[str]) -> bool:
        """True if the feature is active for the given tag pair."""
        return self.activation is not None and self.activation.get(prev_tag, cur_tag) is not None

    def slot(self, prev_tag: Optional[str], cur_tag: Optional[str]) -> int:
        """The weight slot for the given tag pair; only valid when `present`."""
        if self.activation is None:
            raise KeyError(f"Feature '{self.key}' has no tag activation attached.")
        idx = self.activation.get(prev_tag, cur_tag)
        if idx is None:
            raise KeyError(f"Feature '{self.qualified_name(prev_tag, cur_tag)}' is not active.")
        return idx


class Template:
    """A parsed feature template."""

    def __init__(self, text: str):
        text = text.strip()
        if not text or text[0] not in ("U", "B"):
            raise ValueError(f"Feature template must start with 'U' or 'B': {text!r}")
        stripped = _MACRO_RE.sub("", text)
        if "%x" in stripped:
            raise ValueError(f"Malformed macro in feature template: {text!r}")
        self.text = text
        self.bigram = text[0] == "B"
        self.macros = [(int(m.group(1)), int(m.group(2))) for m in _MACRO_RE.finditer(text)]

    def __repr__(self) -> str:
        return f"Template({self.text!r})"

    def __eq__(self, other: object) -> bool:
        return isinstance(other, Template) and other.text == self.text

    def __hash__(self) -> int:
        return hash(self.text)

    def expand(
        self,
        instance: Instance,
        position: int,
        normalize: Optional[Callable[[str], str]] = None,
    ) -> str:
        """
        Substitutes every macro with the referenced observation.

        Args:
            instance: The sequence being featurized.
            position: The current boundary position, `0..len(instance)`. The
                      current token is the token at this index.
            normalize: Optional mapping applied to column 0 (the word).

        Returns:
            The grouping key of the feature at this position.
        """
        n = len(instance)

        def substitute(m: re.Match) -> str:
            row, col = int(m.group(1)), int(m.group(2))
            idx = position + row
            if idx < 0:
                return f"_B{idx}"
            if idx >= n:
                return f"_B+{idx - n + 1}"
            value = instance.tokens[idx].column(col)
            if value is None:
                return MISSING_COLUMN
            if col == 0 and normalize is not None:
                return normalize(value)
            return value

        return _MACRO_RE.sub(substitute, self.text)

    def generate(
        self,
        instance: Instance,
        position: int,
        prev_tag: Optional[str],
        cur_tag: Optional[str],
        normalize: Optional[Callable[[str], str]] = None,
    ) -> FeatureDescriptor:
        key = self.expand(instance, position, normalize)
        feature = FeatureDescriptor(key=key, bigram=self.bigram)
        if cur_tag is not None and (prev_tag is not None or not self.bigram):
            feature.name = feature.qualified_name(prev_tag, cur_tag)
        return feature


def generate_features(
    templates: Sequence[Template],
    instance: Instance,
    position: int,
    prev_tag: Optional[str],
    cur_tag: Optional[str],
    normalize: Optional[Callable[[str], str]] = None,
) -> List[FeatureDescriptor]:
    """Instantiates every template at one position, in template order."""
    return [t.generate(instance, position, prev_tag, cur_tag, normalize) for t in templates]


def parse_templates(lines: Sequence[str]) -> List[Template]:
    """Parses template lines, skipping blanks and `#` comments."""
    templates = []
    for line in lines:
        line = line.strip()
        if not line or line.startswith("#"):
            continue
        templates.append(Template(line))
    return templates


def load_templates(path: str) -> List[Template]:
    """
    Loads feature templates from a file with one template per line.

    Raises:
        FileNotFoundError: If the template file does not exist.
        ValueError: If a line is not a valid template.
    """
    p = Path(path)
    if not p.exists():
        raise FileNotFoundError(f"Template file not found at: {path}")
    return parse_templates(p.read_text(encoding="utf-8").splitlines())
