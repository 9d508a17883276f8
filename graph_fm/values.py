"""Immutable feature values and identifiers for graph items.

A feature value is one of a small set of variants:
- ``UNKNOWN``: the singleton returned when an open feature has no value
- ``NumValue``: a float
- ``CategValue``: a category plus an optional probability array aligned to the
  owning feature's category list
- ``StringValue``: free text
- ``MultiIDValue``: an ordered set of graph item identifiers
- ``CompositeValue``: an ordered, fixed-length list of sub-values

All values are frozen dataclasses compared by value. Absence is tested with
``is_unknown`` rather than ``None``.
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Iterable, Iterator, Optional, Sequence, Tuple

from .errors import ParseError, TypeMismatchError, UnknownCategoryError

ID_DELIMITER = ":"
LIST_DELIMITER = ","
PROB_TOLERANCE = 1e-6


@dataclass(frozen=True, order=True)
class GraphItemID:
    """Identifier of a node or edge: the schema it belongs to plus an object id."""

    schema_id: str
    obj_id: str

    def __str__(self) -> str:
        return f"{self.schema_id}{ID_DELIMITER}{self.obj_id}"

    @classmethod
    def parse(cls, text: str) -> "GraphItemID":
        """Parse ``"schema:object"`` into an identifier.

        Raises:
            ParseError: If either part is missing.
        """
        schema_id, sep, obj_id = str(text).strip().partition(ID_DELIMITER)
        if not sep or not schema_id or not obj_id:
            raise ParseError(f"Invalid identifier (expected 'schema:object'): {text!r}")
        return cls(schema_id, obj_id)


@dataclass(frozen=True, order=True)
class GraphID(GraphItemID):
    """Identifier of a graph object."""


class FeatureValue:
    """Base class of all feature values."""

    kind = "value"

    def is_unknown(self) -> bool:
        return False

    @property
    def string_value(self) -> str:
        raise NotImplementedError


class UnknownValue(FeatureValue):
    """The absent value. Only one instance exists (``UNKNOWN``)."""

    kind = "unknown"
    _instance: Optional["UnknownValue"] = None

    def __new__(cls) -> "UnknownValue":
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def is_unknown(self) -> bool:
        return True

    @property
    def string_value(self) -> str:
        return "?"

    def __repr__(self) -> str:
        return "UNKNOWN"

    def __reduce__(self):
        return (UnknownValue, ())


UNKNOWN = UnknownValue()


def is_unknown(value: FeatureValue) -> bool:
    """Return True if ``value`` is the ``UNKNOWN`` singleton."""
    return isinstance(value, UnknownValue)


@dataclass(frozen=True)
class NumValue(FeatureValue):
    number: float

    kind = "num"

    def __post_init__(self) -> None:
        object.__setattr__(self, "number", float(self.number))

    @property
    def string_value(self) -> str:
        return str(self.number)


@dataclass(frozen=True)
class StringValue(FeatureValue):
    string: str

    kind = "string"

    @property
    def string_value(self) -> str:
        return self.string


@dataclass(frozen=True)
class CategValue(FeatureValue):
    """A category, optionally with probabilities aligned to the feature's categories."""

    category: str
    probs: Optional[Tuple[float, ...]] = None

    kind = "categ"

    def __post_init__(self) -> None:
        if self.probs is not None:
            object.__setattr__(self, "probs", tuple(float(p) for p in self.probs))

    @property
    def string_value(self) -> str:
        return self.category

    @classmethod
    def one_hot(cls, category: str, categories: Sequence[str]) -> "CategValue":
        """Deterministic assignment: probability 1.0 on ``category``, 0.0 elsewhere.

        Raises:
            UnknownCategoryError: If ``category`` is not in ``categories``.
        """
        if category not in categories:
            raise UnknownCategoryError(
                f"Unknown category {category!r}; expected one of {list(categories)}"
            )
        return cls(category, tuple(1.0 if c == category else 0.0 for c in categories))

    @classmethod
    def distribution(cls, category: str, probs: Iterable[float]) -> "CategValue":
        """Distributional prediction; the probabilities must sum to one.

        Raises:
            TypeMismatchError: If the probabilities do not sum to 1.0.
        """
        probs = tuple(float(p) for p in probs)
        total = math.fsum(probs)
        if abs(total - 1.0) > PROB_TOLERANCE:
            raise TypeMismatchError(
                f"Probabilities of a distributional value must sum to 1.0, got {total}"
            )
        return cls(category, probs)

    def prob(self, index: int) -> float:
        """Probability of the category at ``index``.

        Raises:
            TypeMismatchError: If the value carries no probability array.
        """
        if self.probs is None:
            raise TypeMismatchError(f"Categorical value {self.category!r} has no probabilities")
        return self.probs[index]


@dataclass(frozen=True, eq=False)
class MultiIDValue(FeatureValue):
    """An ordered set of identifiers; equality ignores order."""

    ids: Tuple[GraphItemID, ...]

    kind = "multiid"

    def __post_init__(self) -> None:
        # Keep first-seen order, drop duplicates
        object.__setattr__(self, "ids", tuple(dict.fromkeys(self.ids)))

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, MultiIDValue):
            return NotImplemented
        return frozenset(self.ids) == frozenset(other.ids)

    def __hash__(self) -> int:
        return hash(frozenset(self.ids))

    def __len__(self) -> int:
        return len(self.ids)

    def __iter__(self) -> Iterator[GraphItemID]:
        return iter(self.ids)

    def __contains__(self, item: object) -> bool:
        return item in self.ids

    @property
    def string_value(self) -> str:
        return LIST_DELIMITER.join(str(i) for i in self.ids)

    @classmethod
    def parse(cls, text: str) -> "MultiIDValue":
        """Parse a comma-delimited list of ``schema:object`` identifiers."""
        parts = [p.strip() for p in str(text).split(LIST_DELIMITER)]
        return cls(tuple(GraphItemID.parse(p) for p in parts if p))


@dataclass(frozen=True)
class CompositeValue(FeatureValue):
    """Fixed-length ordered list of sub-values."""

    values: Tuple[FeatureValue, ...]

    kind = "composite"

    def __post_init__(self) -> None:
        object.__setattr__(self, "values", tuple(self.values))

    def __len__(self) -> int:
        return len(self.values)

    def __iter__(self) -> Iterator[FeatureValue]:
        return iter(self.values)

    def __getitem__(self, index: int) -> FeatureValue:
        return self.values[index]

    @property
    def string_value(self) -> str:
        return LIST_DELIMITER.join(v.string_value for v in self.values)

    @classmethod
    def of_numbers(cls, numbers: Iterable[float]) -> "CompositeValue":
        return cls(tuple(NumValue(n) for n in numbers))
