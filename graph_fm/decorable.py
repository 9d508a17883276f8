"""The Decorable contract shared by nodes, edges and the graph object.

A decorable item reads its feature definitions from the owning graph's *current*
schema on every call, so a handle never sees a feature after it was removed.
Explicit values live in the graph's value store; derived values are produced by
the feature itself (see ``graph_fm.derived``).
"""

from __future__ import annotations

import abc
from contextlib import contextmanager
from typing import TYPE_CHECKING, Dict, Iterator, List, Sequence

from .errors import NotExplicitError
from .features import ExplicitFeature, Feature
from .values import UNKNOWN, FeatureValue, GraphItemID, is_unknown

if TYPE_CHECKING:
    from .graph import Graph


class Decorable(abc.ABC):
    """Anything that holds feature values keyed by feature id."""

    @property
    @abc.abstractmethod
    def id(self) -> GraphItemID:
        """Identifier of the item (``GraphID`` for the graph itself)."""

    @property
    @abc.abstractmethod
    def graph(self) -> "Graph":
        """Graph owning the schema and value store of this item."""

    @property
    def schema_id(self) -> str:
        return self.id.schema_id

    def _feature(self, feature_id: str) -> Feature:
        return self.graph._live_schema(self.schema_id).get_feature(feature_id)

    def _explicit(self, feature_id: str) -> ExplicitFeature:
        feature = self._feature(feature_id)
        if not isinstance(feature, ExplicitFeature):
            raise NotExplicitError(
                f"Feature {feature_id!r} of {self.schema_id!r} is derived and read-only",
                context={"feature": feature_id, "item": str(self.id)},
            )
        return feature

    def _values(self, feature_id: str) -> Dict[GraphItemID, FeatureValue]:
        return self.graph._value_store(self.schema_id, feature_id)

    def feature_ids(self) -> List[str]:
        return self.graph._live_schema(self.schema_id).feature_ids()

    def get(self, feature_id: str) -> FeatureValue:
        """Return the value of ``feature_id``.

        Open explicit features with no stored value give ``UNKNOWN``, closed ones
        give their default, and derived features are evaluated.

        Raises:
            NotFoundError: If the schema does not define ``feature_id``.
        """
        feature = self._feature(feature_id)
        if not isinstance(feature, ExplicitFeature):
            return feature.value(self)  # type: ignore[attr-defined]
        value = self._values(feature_id).get(self.id, UNKNOWN)
        if is_unknown(value) and feature.closed:
            return feature.default  # type: ignore[return-value]
        return value

    def set(self, feature_id: str, value: FeatureValue) -> None:
        """Store ``value`` for an explicit feature; ``UNKNOWN`` clears it.

        Raises:
            NotExplicitError: If the feature is derived.
            TypeMismatchError: If the value does not fit the feature's kind.
        """
        feature = self._explicit(feature_id)
        store = self._values(feature_id)
        if is_unknown(value):
            store.pop(self.id, None)
            return
        store[self.id] = feature.validate(value)

    def remove(self, feature_id: str) -> None:
        self.set(feature_id, UNKNOWN)

    def has_value(self, feature_id: str) -> bool:
        return not is_unknown(self.get(feature_id))

    def get_many(self, feature_ids: Sequence[str]) -> List[FeatureValue]:
        """Return values positionally aligned with ``feature_ids``."""
        return [self.get(fid) for fid in feature_ids]

    def set_many(self, feature_ids: Sequence[str], values: Sequence[FeatureValue]) -> None:
        if len(feature_ids) != len(values):
            raise ValueError(
                f"Got {len(feature_ids)} feature ids but {len(values)} values"
            )
        for fid, value in zip(feature_ids, values):
            self.set(fid, value)

    def set_string(self, feature_id: str, text: str) -> None:
        """Set a value parsed from raw text using the feature's coercion rules."""
        self.set(feature_id, self._explicit(feature_id).coerce_string(text))

    def set_number(self, feature_id: str, number: float) -> None:
        """Set a value from a number using the feature's coercion rules."""
        self.set(feature_id, self._explicit(feature_id).coerce_number(number))

    @contextmanager
    def overridden(self, feature_id: str, value: FeatureValue) -> Iterator["Decorable"]:
        """Temporarily replace an explicit value, restoring it even on error.

        Used by derived features that must compute a value "as if" this item did
        not exist yet, e.g. by forcing its existence feature to ``NOTEXIST``.
        """
        self._explicit(feature_id)
        saved = self._values(feature_id).get(self.id, UNKNOWN)
        self.set(feature_id, value)
        try:
            yield self
        finally:
            self.set(feature_id, saved)
