"""Feature definitions: value kinds and explicit (stored) features.

A feature definition says what kind of value an item may hold under a feature id.
The kind classes (``NumFeature``, ``CategFeature`` ...) validate values; the
explicit classes add an optional closed default and the string/number coercion
rules used by ``Decorable.set_string`` and ``Decorable.set_number``. Derived
features combine the same kind classes with ``graph_fm.derived.DerivedFeature``.
"""

from __future__ import annotations

from typing import List, Optional, Sequence, Type, cast

from .errors import ParseError, TypeMismatchError, UnknownCategoryError
from .values import (
    CategValue,
    CompositeValue,
    FeatureValue,
    MultiIDValue,
    NumValue,
    StringValue,
    is_unknown,
)


class Feature:
    """Base class of every feature definition."""

    value_type: Type[FeatureValue] = FeatureValue
    is_derived = False

    def validate(self, value: FeatureValue) -> FeatureValue:
        """Return ``value`` if it fits this feature, else raise ``TypeMismatchError``."""
        if is_unknown(value):
            return value
        if not isinstance(value, self.value_type):
            raise TypeMismatchError(
                f"{type(self).__name__} expects {self.value_type.__name__}, "
                f"got {type(value).__name__}"
            )
        self._check(value)
        return value

    def _check(self, value: FeatureValue) -> None:
        """Kind-specific checks beyond the variant type."""

    def slot_count(self) -> int:
        """Number of floats this feature contributes to a flat feature vector."""
        return 1

    def __repr__(self) -> str:
        return f"{type(self).__name__}()"


class NumFeature(Feature):
    value_type = NumValue


class StringFeature(Feature):
    value_type = StringValue


class MultiIDFeature(Feature):
    value_type = MultiIDValue


class CategFeature(Feature):
    """Categorical kind with a fixed, ordered category list."""

    value_type = CategValue
    _categories: Optional[List[str]] = None

    def _set_categories(self, categories: Sequence[str]) -> None:
        categories = [str(c) for c in categories]
        if not categories:
            raise TypeMismatchError("A categorical feature needs at least one category")
        if len(set(categories)) != len(categories):
            raise TypeMismatchError(f"Duplicate categories: {categories}")
        self._categories = categories

    @property
    def categories(self) -> List[str]:
        if self._categories is None:
            raise TypeMismatchError(f"{type(self).__name__} has no categories yet")
        return list(self._categories)

    def index(self, category: str) -> int:
        try:
            return self.categories.index(category)
        except ValueError:
            raise UnknownCategoryError(
                f"Unknown category {category!r}; expected one of {self.categories}"
            ) from None

    def one_hot(self, category: str) -> CategValue:
        return CategValue.one_hot(category, self.categories)

    def _check(self, value: FeatureValue) -> None:
        value = cast(CategValue, value)
        categories = self.categories
        if value.category not in categories:
            raise TypeMismatchError(
                f"Category {value.category!r} is not one of {categories}"
            )
        if value.probs is not None and len(value.probs) != len(categories):
            raise TypeMismatchError(
                f"Expected {len(categories)} probabilities, got {len(value.probs)}"
            )

    def slot_count(self) -> int:
        return len(self.categories)


class CompositeFeature(Feature):
    """Composite kind; the arity is the length of ``descriptors``."""

    value_type = CompositeValue

    @property
    def descriptors(self) -> list:
        raise NotImplementedError

    @property
    def arity(self) -> int:
        return len(self.descriptors)

    def _check(self, value: FeatureValue) -> None:
        value = cast(CompositeValue, value)
        if len(value) != self.arity:
            raise TypeMismatchError(
                f"Composite value has {len(value)} entries, expected {self.arity}"
            )

    def slot_count(self) -> int:
        return self.arity


class ExplicitFeature(Feature):
    """A feature whose values are stored on the item.

    A feature with a ``default`` is closed: reading an unset value returns the
    default instead of ``UNKNOWN``.
    """

    def __init__(self, default: Optional[FeatureValue] = None) -> None:
        if default is not None:
            if is_unknown(default):
                raise TypeMismatchError("A closed default cannot be UNKNOWN")
            self.validate(default)
        self.default = default

    @property
    def closed(self) -> bool:
        return self.default is not None

    def coerce_string(self, text: str) -> FeatureValue:
        raise NotImplementedError

    def coerce_number(self, number: float) -> FeatureValue:
        raise NotImplementedError

    def __repr__(self) -> str:
        if self.closed:
            return f"{type(self).__name__}(default={self.default!r})"
        return f"{type(self).__name__}()"


class ExplicitNum(NumFeature, ExplicitFeature):
    def __init__(self, default: Optional[float] = None) -> None:
        super().__init__(None if default is None else NumValue(default))

    def coerce_string(self, text: str) -> FeatureValue:
        try:
            return NumValue(float(text))
        except (TypeError, ValueError):
            raise ParseError(f"Cannot parse {text!r} as a number") from None

    def coerce_number(self, number: float) -> FeatureValue:
        return NumValue(number)


class ExplicitString(StringFeature, ExplicitFeature):
    def __init__(self, default: Optional[str] = None) -> None:
        super().__init__(None if default is None else StringValue(default))

    def coerce_string(self, text: str) -> FeatureValue:
        return StringValue(str(text))

    def coerce_number(self, number: float) -> FeatureValue:
        return StringValue(str(number))


class ExplicitCateg(CategFeature, ExplicitFeature):
    """Stored categorical feature over a fixed category list."""

    def __init__(self, categories: Sequence[str], default: Optional[str] = None) -> None:
        self._set_categories(categories)
        super().__init__(None if default is None else self.one_hot(default))

    def coerce_string(self, text: str) -> FeatureValue:
        return self.one_hot(str(text))

    def coerce_number(self, number: float) -> FeatureValue:
        # Numbers address categories by position
        position = int(number)
        categories = self.categories
        if not 0 <= position < len(categories):
            raise UnknownCategoryError(
                f"Category index {position} out of range for {categories}"
            )
        return self.one_hot(categories[position])

    def __repr__(self) -> str:
        return f"ExplicitCateg({self.categories!r}, default={self.default!r})"


class ExplicitMultiID(MultiIDFeature, ExplicitFeature):
    def __init__(self) -> None:
        super().__init__(None)

    def coerce_string(self, text: str) -> FeatureValue:
        return MultiIDValue.parse(text)

    def coerce_number(self, number: float) -> FeatureValue:
        raise TypeMismatchError("A multi-id feature cannot be set from a number")


__all__ = [
    "Feature",
    "NumFeature",
    "StringFeature",
    "MultiIDFeature",
    "CategFeature",
    "CompositeFeature",
    "ExplicitFeature",
    "ExplicitNum",
    "ExplicitString",
    "ExplicitCateg",
    "ExplicitMultiID",
]
