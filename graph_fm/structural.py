"""Structural derived features computed from graph topology alone.

Node and edge counts:
- ``NeighborCount``: number of neighbors under a neighbor strategy
- ``IncidentCount``: number of incident items
- ``AdjacentCount``: number of items joining the two incident items of an item

Link-prediction scores for binary edges:
- ``EdgeNodePreferentialAttachment``: product of the endpoints' neighbor counts
- ``EdgeNodeNeighborSimilarity``: set similarity of the endpoints' neighbors
- ``EdgeNodeShortestPath``: shortest path length between the endpoints
- ``EdgeNodeKatz``: Katz score between the endpoints

Scores that depend on whether the scored edge itself exists accept an
``exist_fid``: the edge's existence is forced to ``NOTEXIST`` while the score is
computed and restored afterwards, even when the computation fails.
"""

from __future__ import annotations

import abc
import math
from contextlib import nullcontext
from typing import ContextManager, List, Optional

from .decorable import Decorable
from .derived import DerivedNum, describe_shape, require_binary_edge, require_graph_item
from .errors import ConfigurationError, UnsupportedShapeError
from .existence import NOTEXIST_VALUE
from .graph import Edge, GraphItem, Node
from .matrices import AdjacencyExporter, IndexedMatrix, MatrixCache
from .neighbors import Adjacent, Incident, Neighbor, NeighborWithOmission
from .similarity import CommonNeighbor, SetSimilarity
from .values import UNKNOWN, FeatureValue, NumValue


class NeighborCount(DerivedNum):
    """Number of neighbors of the item."""

    def __init__(self, neighbor: Optional[Neighbor] = None, caching: bool = False) -> None:
        super().__init__(caching)
        self.neighbor = neighbor if neighbor is not None else Adjacent()

    def compute(self, item: Decorable) -> FeatureValue:
        item = require_graph_item(item, self.feature_id)
        return NumValue(self.neighbor.num_neighbors(item))


class IncidentCount(DerivedNum):
    """Number of incident items, optionally restricted by schema and direction."""

    def __init__(
        self, incident_sid: Optional[str] = None, dir_type: str = "all", caching: bool = False
    ) -> None:
        super().__init__(caching)
        self.incident = Incident(incident_sid=incident_sid, dir_type=dir_type)

    def compute(self, item: Decorable) -> FeatureValue:
        item = require_graph_item(item, self.feature_id)
        return NumValue(self.incident.num_neighbors(item))


class AdjacentCount(DerivedNum):
    """For an item with exactly two incident items, count the items joining them.

    For a binary edge this is the number of edges (of ``schema_id``, when given)
    connecting its two nodes, the edge itself included.
    """

    def __init__(self, schema_id: Optional[str] = None, caching: bool = False) -> None:
        super().__init__(caching)
        self.connecting_sid = schema_id

    def compute(self, item: Decorable) -> FeatureValue:
        item = require_graph_item(item, self.feature_id)
        incident = item.incident_items()
        if len(incident) != 2:
            raise UnsupportedShapeError(
                "item with two incident items", describe_shape(item), feature=self.feature_id
            )
        first, second = incident
        joining = [
            candidate
            for candidate in first.incident_items(self.connecting_sid)
            if candidate.is_incident(second)
        ]
        return NumValue(len(joining))


class _EdgeNodeScore(DerivedNum):
    """Shared handling of ``exist_fid`` and edge omission for edge scores."""

    def __init__(
        self,
        neighbor: Optional[Neighbor] = None,
        exist_fid: Optional[str] = None,
        ignore_edge: bool = False,
        caching: bool = False,
    ) -> None:
        super().__init__(caching)
        self.neighbor = neighbor if neighbor is not None else Adjacent()
        self.exist_fid = exist_fid
        self.ignore_edge = ignore_edge
        if ignore_edge and not isinstance(self.neighbor, NeighborWithOmission):
            raise ConfigurationError(
                f"ignore_edge needs a neighbor strategy with omission, got {self.neighbor!r}"
            )

    def _as_if_absent(self, edge: Edge) -> ContextManager:
        if self.exist_fid is None:
            return nullcontext()
        return edge.overridden(self.exist_fid, NOTEXIST_VALUE)

    def _neighbors(self, node: Node, edge: Edge) -> List[GraphItem]:
        if self.ignore_edge:
            return self.neighbor.neighbors(node, ignore=edge)  # type: ignore[call-arg]
        return self.neighbor.neighbors(node)


class EdgeNodePreferentialAttachment(_EdgeNodeScore):
    """Product of the neighbor counts of the edge's nodes."""

    def compute(self, item: Decorable) -> FeatureValue:
        if not isinstance(item, Edge):
            raise UnsupportedShapeError("edge", describe_shape(item), feature=self.feature_id)
        with self._as_if_absent(item):
            counts = [len(self._neighbors(node, item)) for node in item.nodes()]
        return NumValue(math.prod(counts))


class EdgeNodeNeighborSimilarity(_EdgeNodeScore):
    """Set similarity between the neighbors of the two nodes of a binary edge."""

    def __init__(
        self,
        neighbor: Optional[Neighbor] = None,
        similarity: Optional[SetSimilarity] = None,
        exist_fid: Optional[str] = None,
        ignore_edge: bool = False,
        caching: bool = False,
    ) -> None:
        super().__init__(neighbor, exist_fid, ignore_edge, caching)
        self.similarity = similarity if similarity is not None else CommonNeighbor()

    def compute(self, item: Decorable) -> FeatureValue:
        first, second = require_binary_edge(item, self.feature_id)
        edge = item
        with self._as_if_absent(edge):  # type: ignore[arg-type]
            first_ids = {n.id for n in self._neighbors(first, edge)}  # type: ignore[arg-type]
            second_ids = {n.id for n in self._neighbors(second, edge)}  # type: ignore[arg-type]
        return NumValue(self.similarity(first_ids, second_ids))


class _MatrixScore(DerivedNum):
    """Edge score read from a graph-scoped matrix held in a ``MatrixCache``."""

    def __init__(
        self,
        exporter: Optional[AdjacencyExporter] = None,
        cache: Optional[MatrixCache] = None,
        caching: bool = False,
    ) -> None:
        super().__init__(caching)
        self.exporter = exporter if exporter is not None else AdjacencyExporter()
        self.cache = cache if cache is not None else MatrixCache()

    @abc.abstractmethod
    def matrix(self) -> IndexedMatrix:
        """Return the matrix scored by this feature, computed once per graph."""

    def score(self, raw: float) -> FeatureValue:
        return NumValue(raw)

    def compute(self, item: Decorable) -> FeatureValue:
        first, second = require_binary_edge(item, self.feature_id)
        return self.score(self.matrix().value(first, second))


class EdgeNodeShortestPath(_MatrixScore):
    """Shortest path length between the nodes of a binary edge.

    Unreachable pairs give ``unreachable`` (``None`` for ``UNKNOWN``).
    """

    def __init__(
        self,
        exporter: Optional[AdjacencyExporter] = None,
        unreachable: Optional[float] = -1.0,
        cache: Optional[MatrixCache] = None,
        caching: bool = False,
    ) -> None:
        super().__init__(exporter, cache, caching)
        self.unreachable = unreachable

    def matrix(self) -> IndexedMatrix:
        return self.cache.shortest_paths(self.graph, self.exporter)

    def score(self, raw: float) -> FeatureValue:
        if math.isinf(raw):
            return UNKNOWN if self.unreachable is None else NumValue(self.unreachable)
        return NumValue(raw)


class EdgeNodeKatz(_MatrixScore):
    """Katz score between the nodes of a binary edge."""

    def __init__(
        self,
        exporter: Optional[AdjacencyExporter] = None,
        beta: Optional[float] = None,
        normalize: bool = False,
        cache: Optional[MatrixCache] = None,
        caching: bool = False,
    ) -> None:
        super().__init__(exporter, cache, caching)
        self.beta = None if beta is None else float(beta)
        self.normalize = normalize

    def matrix(self) -> IndexedMatrix:
        return self.cache.katz(self.graph, self.exporter, self.beta, self.normalize)


__all__ = [
    "NeighborCount",
    "IncidentCount",
    "AdjacentCount",
    "EdgeNodePreferentialAttachment",
    "EdgeNodeNeighborSimilarity",
    "EdgeNodeShortestPath",
    "EdgeNodeKatz",
]
