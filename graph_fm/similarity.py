"""Set and string similarity measures used by edge-node comparison features.

Set similarities take two collections and compare them as sets:
- ``CommonNeighbor``: size of the intersection divided by a constant ``k``
- ``Jaccard``: intersection over union
- ``CosineSet``: intersection over the geometric mean of the set sizes

String similarities take two strings and return a value in [0, 1]:
- ``CharacterMatch``: fraction of positions holding the same character
- ``CharacterSetSimilarity``: set similarity over characters or delimited tokens
- ``SoundexSimilarity``: agreement of American Soundex codes
"""

from __future__ import annotations

import abc
import math
from typing import Collection, Hashable, Optional, Set, Tuple


class SetSimilarity(abc.ABC):
    """Base class for similarities between two sets."""

    def __call__(self, a: Collection[Hashable], b: Collection[Hashable]) -> float:
        return self.similarity(set(a), set(b))

    @abc.abstractmethod
    def similarity(self, a: Set[Hashable], b: Set[Hashable]) -> float:
        """Similarity of two sets."""

    def key(self) -> Tuple:
        return (type(self).__name__,)


class CommonNeighbor(SetSimilarity):
    def __init__(self, k: float = 100.0) -> None:
        if k <= 0:
            raise ValueError(f"k must be positive, got {k}")
        self.k = float(k)

    def similarity(self, a: Set[Hashable], b: Set[Hashable]) -> float:
        return len(a & b) / self.k

    def key(self) -> Tuple:
        return (type(self).__name__, self.k)


class Jaccard(SetSimilarity):
    def similarity(self, a: Set[Hashable], b: Set[Hashable]) -> float:
        union = len(a | b)
        if union == 0:
            return 0.0
        return len(a & b) / union


class CosineSet(SetSimilarity):
    def similarity(self, a: Set[Hashable], b: Set[Hashable]) -> float:
        if not a or not b:
            return 0.0
        return len(a & b) / (math.sqrt(len(a)) * math.sqrt(len(b)))


class StringSimilarity(abc.ABC):
    """Base class for normalized string similarities."""

    def __call__(self, a: str, b: str) -> float:
        return self.similarity(a, b)

    @abc.abstractmethod
    def similarity(self, a: str, b: str) -> float:
        """Similarity of two strings in [0, 1]."""


class CharacterMatch(StringSimilarity):
    """Positional character agreement over the longer of the two strings."""

    def similarity(self, a: str, b: str) -> float:
        length = max(len(a), len(b))
        if length == 0:
            return 1.0
        matches = sum(1 for x, y in zip(a, b) if x == y)
        return matches / length


class CharacterSetSimilarity(StringSimilarity):
    """Compare the sets of characters (or of tokens split on ``delimiter``)."""

    def __init__(
        self, delimiter: Optional[str] = None, set_similarity: Optional[SetSimilarity] = None
    ) -> None:
        self.delimiter = delimiter
        self.set_similarity = set_similarity if set_similarity is not None else Jaccard()

    def _parts(self, text: str) -> Set[str]:
        if self.delimiter is None:
            return set(text)
        return {part for part in text.split(self.delimiter) if part}

    def similarity(self, a: str, b: str) -> float:
        return self.set_similarity(self._parts(a), self._parts(b))


_SOUNDEX_CODES = {
    **dict.fromkeys("BFPV", "1"),
    **dict.fromkeys("CGJKQSXZ", "2"),
    **dict.fromkeys("DT", "3"),
    "L": "4",
    **dict.fromkeys("MN", "5"),
    "R": "6",
}


def soundex(text: str) -> str:
    """American Soundex code of ``text`` (empty string if it has no letters)."""
    letters = [c for c in text.upper() if c.isalpha()]
    if not letters:
        return ""
    code = letters[0]
    previous = _SOUNDEX_CODES.get(letters[0], "")
    for letter in letters[1:]:
        digit = _SOUNDEX_CODES.get(letter, "")
        if digit and digit != previous:
            code += digit
        # H and W do not separate letters with the same code
        if letter not in "HW":
            previous = digit
        if len(code) == 4:
            break
    return code.ljust(4, "0")


class SoundexSimilarity(StringSimilarity):
    """Number of agreeing Soundex code positions, divided by four."""

    def similarity(self, a: str, b: str) -> float:
        code_a, code_b = soundex(a), soundex(b)
        if not code_a or not code_b:
            return 0.0
        return sum(1 for x, y in zip(code_a, code_b) if x == y) / 4.0
