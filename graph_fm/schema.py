"""Schemas: per item-kind registries mapping feature ids to feature definitions.

A ``Schema`` is a plain ordered mapping that is safe to edit because the graph
never hands out its live instance. ``Graph.get_schema`` returns a copy and
``Graph.update_schema`` swaps the graph's copy for a new one in a single step
(get, modify, update). Each update stamps the schema with a new version.
"""

from __future__ import annotations

import enum
import re
from typing import Dict, Iterator, List, Optional, Tuple, Type

from .errors import DuplicateFeatureError, NotFoundError
from .features import Feature

FEATURE_ID_PATTERN = re.compile(r"^[a-zA-Z_0-9\-:]+$")


class SchemaType(enum.Enum):
    """Kind of item a schema describes."""

    GRAPH = "graph"
    NODE = "node"
    DIRECTED = "directed"
    UNDIRECTED = "undirected"

    @property
    def is_edge(self) -> bool:
        return self in (SchemaType.DIRECTED, SchemaType.UNDIRECTED)


def validate_identifier(label: str, value: str) -> str:
    """Return ``value`` if it is a valid schema or feature id.

    Raises:
        ValueError: If the id is empty or uses characters outside ``[a-zA-Z_0-9-:]``.
    """
    if not isinstance(value, str) or not FEATURE_ID_PATTERN.match(value):
        raise ValueError(f"Invalid {label} {value!r}: must match {FEATURE_ID_PATTERN.pattern}")
    return value


class Schema:
    """Ordered mapping of feature id to ``Feature`` for one kind of item."""

    def __init__(self, schema_type: SchemaType) -> None:
        self.schema_type = SchemaType(schema_type)
        self.version = 0
        self._features: Dict[str, Feature] = {}

    def add_feature(self, feature_id: str, feature: Feature) -> None:
        validate_identifier("feature id", feature_id)
        if not isinstance(feature, Feature):
            raise TypeError(f"Expected a Feature, got {type(feature).__name__}")
        if feature_id in self._features:
            raise DuplicateFeatureError(
                f"Feature {feature_id!r} is already defined", context={"feature": feature_id}
            )
        self._features[feature_id] = feature

    def remove_feature(self, feature_id: str) -> Feature:
        try:
            return self._features.pop(feature_id)
        except KeyError:
            raise self._not_found(feature_id) from None

    def get_feature(self, feature_id: str) -> Feature:
        try:
            return self._features[feature_id]
        except KeyError:
            raise self._not_found(feature_id) from None

    def has_feature(self, feature_id: str) -> bool:
        return feature_id in self._features

    def feature_ids(self, kind: Optional[Type[Feature]] = None) -> List[str]:
        """Return feature ids in insertion order, optionally filtered by class."""
        return [
            fid for fid, feature in self._features.items() if kind is None or isinstance(feature, kind)
        ]

    def features(self) -> Iterator[Tuple[str, Feature]]:
        return iter(list(self._features.items()))

    def copy(self) -> "Schema":
        """Detached copy sharing the feature definitions."""
        clone = Schema(self.schema_type)
        clone.version = self.version
        clone._features = dict(self._features)
        return clone

    def __len__(self) -> int:
        return len(self._features)

    def __contains__(self, feature_id: object) -> bool:
        return feature_id in self._features

    def __repr__(self) -> str:
        return (
            f"Schema({self.schema_type.value}, version={self.version}, "
            f"features={list(self._features)})"
        )

    def _not_found(self, feature_id: str) -> NotFoundError:
        return NotFoundError(
            f"Feature {feature_id!r} is not defined", context={"feature": feature_id}
        )
