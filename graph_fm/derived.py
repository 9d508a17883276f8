"""Derived features: values computed on demand from graph state.

A ``DerivedFeature`` is attached to exactly one (graph, schema, feature id) by
``Graph.update_schema``. Attaching runs the ``configure`` hook once and moves the
feature from ``UNINITIALIZED`` to ``READY``; anything that needs the graph before
that fails loudly with ``FeatureStateError``.

Evaluation goes through ``value(item)``:
1) return the cached value when caching is enabled and one is stored
2) otherwise call ``compute(item)``
3) validate the result against the declared kind (and arity for composites)
4) store it when caching

Caches are only cleared explicitly (``reset_cache``), when the caching flag
changes, or when the feature is detached from its schema.
"""

from __future__ import annotations

import abc
import enum
import logging
from typing import Any, Callable, Dict, List, NamedTuple, Optional, Sequence, Tuple, Union

from .decorable import Decorable
from .errors import FeatureStateError, UnsupportedShapeError
from .features import (
    CategFeature,
    CompositeFeature,
    Feature,
    MultiIDFeature,
    NumFeature,
    StringFeature,
)
from .graph import DirectedEdge, Edge, Graph, GraphItem, Node
from .values import UNKNOWN, CompositeValue, FeatureValue, GraphItemID, NumValue

logger = logging.getLogger(__name__)


class FeatureState(enum.Enum):
    UNINITIALIZED = "uninitialized"
    READY = "ready"


class SubFeature(NamedTuple):
    """Descriptor of one position of a composite feature."""

    name: str
    kind: str = "num"


class DerivedFeature(Feature, abc.ABC):
    """Base class of all derived features."""

    is_derived = True

    def __init__(self, caching: bool = False) -> None:
        self._caching = bool(caching)
        self._cache: Dict[GraphItemID, FeatureValue] = {}
        self._state = FeatureState.UNINITIALIZED
        self._graph: Optional[Graph] = None
        self._schema_id: Optional[str] = None
        self._feature_id: Optional[str] = None

    @property
    def state(self) -> FeatureState:
        return self._state

    @property
    def graph(self) -> Graph:
        self._require_ready()
        return self._graph  # type: ignore[return-value]

    @property
    def schema_id(self) -> str:
        self._require_ready()
        return self._schema_id  # type: ignore[return-value]

    @property
    def feature_id(self) -> str:
        self._require_ready()
        return self._feature_id  # type: ignore[return-value]

    @property
    def caching(self) -> bool:
        return self._caching

    @caching.setter
    def caching(self, caching: bool) -> None:
        self._caching = bool(caching)
        self._cache.clear()

    def attach(self, graph: Graph, schema_id: str, feature_id: str) -> None:
        """Bind the feature to its graph and schema, then run ``configure``.

        Raises:
            FeatureStateError: If the feature is already attached somewhere.
        """
        if self._state is FeatureState.READY:
            raise FeatureStateError(
                f"{type(self).__name__} is already attached as "
                f"{self._schema_id}.{self._feature_id}"
            )
        self._graph, self._schema_id, self._feature_id = graph, schema_id, feature_id
        # configure may read graph, schema_id and feature_id
        self._state = FeatureState.READY
        try:
            self.configure()
        except Exception:
            self.detach()
            raise
        logger.debug("Attached %s as %s.%s", type(self).__name__, schema_id, feature_id)

    def detach(self) -> None:
        self._cache.clear()
        self._on_detach()
        self._state = FeatureState.UNINITIALIZED
        self._graph = self._schema_id = self._feature_id = None

    def configure(self) -> None:
        """Hook run once at attach time; reads parameters that depend on the graph."""

    def _on_detach(self) -> None:
        """Hook run on detach to drop memoized state."""

    def value(self, item: Decorable) -> FeatureValue:
        self._require_ready()
        if self._caching:
            cached = self._cache.get(item.id)
            if cached is not None:
                logger.debug("Cache hit for %s on %s", self._feature_id, item.id)
                return cached
        value = self.validate(self.compute(item))
        if self._caching:
            self._cache[item.id] = value
        return value

    @abc.abstractmethod
    def compute(self, item: Decorable) -> FeatureValue:
        """Compute the value for ``item`` from the current graph state."""

    def reset_cache(self, item: Optional[Decorable] = None) -> None:
        """Clear cached values for all items, or for ``item`` only.

        Raises:
            FeatureStateError: If the feature does not cache values.
        """
        if not self._caching:
            raise FeatureStateError(f"{type(self).__name__} does not cache values")
        if item is None:
            logger.debug("Cleared %d cached values of %s", len(self._cache), self._feature_id)
            self._cache.clear()
        else:
            self._cache.pop(item.id, None)

    def _require_ready(self) -> None:
        if self._state is not FeatureState.READY:
            raise FeatureStateError(
                f"{type(self).__name__} is not attached to a schema"
            )

    def __repr__(self) -> str:
        if self._state is FeatureState.READY:
            return f"{type(self).__name__}({self._schema_id}.{self._feature_id})"
        return f"{type(self).__name__}(unattached)"


class DerivedNum(NumFeature, DerivedFeature):
    pass


class DerivedString(StringFeature, DerivedFeature):
    pass


class DerivedMultiID(MultiIDFeature, DerivedFeature):
    pass


class DerivedCateg(CategFeature, DerivedFeature):
    """Derived categorical feature; categories may be fixed in ``configure``."""

    def __init__(self, categories: Optional[Sequence[str]] = None, caching: bool = False) -> None:
        DerivedFeature.__init__(self, caching)
        if categories is not None:
            self._set_categories(categories)


class DerivedComposite(CompositeFeature, DerivedFeature):
    """Derived feature producing a fixed-length ``CompositeValue``.

    The descriptor list is built once, on first request after attach, and kept
    until the feature is detached.
    """

    def __init__(self, caching: bool = False) -> None:
        DerivedFeature.__init__(self, caching)
        self._descriptors: Optional[List[SubFeature]] = None

    @property
    def descriptors(self) -> List[SubFeature]:
        self._require_ready()
        if self._descriptors is None:
            self._descriptors = list(self.build_descriptors())
        return list(self._descriptors)

    @abc.abstractmethod
    def build_descriptors(self) -> Sequence[SubFeature]:
        """Return the ordered descriptors of the composite positions."""

    def _on_detach(self) -> None:
        self._descriptors = None


class ComputedNum(DerivedNum):
    """Numeric derived feature backed by a plain callable.

    The callable may return a ``FeatureValue``, a number, or ``None`` for unknown.
    """

    def __init__(self, function: Callable[[Decorable], Any], caching: bool = False) -> None:
        super().__init__(caching)
        self.function = function

    def compute(self, item: Decorable) -> FeatureValue:
        result = self.function(item)
        if result is None:
            return UNKNOWN
        if isinstance(result, FeatureValue):
            return result
        return NumValue(result)


class ComputedComposite(DerivedComposite):
    """Composite derived feature backed by a callable returning a sequence."""

    def __init__(
        self,
        function: Callable[[Decorable], Any],
        descriptors: Sequence[Union[str, SubFeature]],
        caching: bool = False,
    ) -> None:
        super().__init__(caching)
        self.function = function
        self._declared = [
            d if isinstance(d, SubFeature) else SubFeature(str(d)) for d in descriptors
        ]

    def build_descriptors(self) -> Sequence[SubFeature]:
        return self._declared

    def compute(self, item: Decorable) -> FeatureValue:
        result = self.function(item)
        if isinstance(result, FeatureValue):
            return result
        return CompositeValue(
            tuple(v if isinstance(v, FeatureValue) else NumValue(v) for v in result)
        )


def describe_shape(item: Decorable) -> str:
    """Short structural description used in ``UnsupportedShapeError`` messages."""
    if isinstance(item, Graph):
        return "graph"
    if isinstance(item, Node):
        return "node"
    if isinstance(item, DirectedEdge):
        return (
            f"directed edge with {len(item.sources())} sources "
            f"and {len(item.targets())} targets"
        )
    if isinstance(item, Edge):
        return f"edge with {item.num_nodes()} nodes"
    return type(item).__name__


def require_graph_item(item: Decorable, feature: str = "") -> GraphItem:
    if not isinstance(item, GraphItem):
        raise UnsupportedShapeError("node or edge", describe_shape(item), feature=feature)
    return item


def require_node(item: Decorable, feature: str = "") -> Node:
    if not isinstance(item, Node):
        raise UnsupportedShapeError("node", describe_shape(item), feature=feature)
    return item


def require_binary_edge(item: Decorable, feature: str = "") -> Tuple[Node, Node]:
    """Return the two endpoint nodes of a binary edge (a self-loop gives one node twice).

    Raises:
        UnsupportedShapeError: If ``item`` is not an edge with exactly two endpoints.
    """
    if not isinstance(item, Edge):
        raise UnsupportedShapeError("binary edge", describe_shape(item), feature=feature)
    try:
        return item.endpoints()
    except UnsupportedShapeError:
        raise UnsupportedShapeError(
            "binary edge", describe_shape(item), feature=feature
        ) from None


__all__ = [
    "FeatureState",
    "SubFeature",
    "DerivedFeature",
    "DerivedNum",
    "DerivedString",
    "DerivedMultiID",
    "DerivedCateg",
    "DerivedComposite",
    "ComputedNum",
    "ComputedComposite",
    "describe_shape",
    "require_graph_item",
    "require_node",
    "require_binary_edge",
]
