"""Neighbor strategies: pluggable rules for which items are related to an item.

Strategies are recomputed from the current topology on every call unless the
strategy was created with ``caching=True``; cached neighbor lists are only
cleared by ``reset``/``reset_all`` or by changing the caching flag.

Available strategies:
- ``Adjacent``: items connected through a shared incident item
- ``Incident``: items directly touching the item
- ``DistanceN``: items reachable within ``depth`` adjacency hops
- ``NeighborsOfNeighbors``: one strategy applied to the output of another

``Adjacent`` supports omission: ``neighbors(item, ignore=other)`` computes the
neighbors as if ``other`` were absent from the graph.
"""

from __future__ import annotations

import abc
import logging
from collections import deque
from typing import Dict, Iterable, List, Optional, Tuple, Union

from .derived import require_graph_item
from .errors import ConfigurationError
from .graph import DirectedEdge, Edge, GraphItem, Node
from .values import GraphItemID, is_unknown

logger = logging.getLogger(__name__)

DIR_TYPES = ("all", "sourceonly", "targetonly")

Ignore = Union[GraphItem, Iterable[GraphItem], None]


def _check_dir_type(dir_type: str) -> str:
    if dir_type not in DIR_TYPES:
        raise ConfigurationError(f"dir_type must be one of {DIR_TYPES}, got {dir_type!r}")
    return dir_type


def _ignored_ids(ignore: Ignore) -> frozenset:
    if ignore is None:
        return frozenset()
    if isinstance(ignore, GraphItem):
        return frozenset([ignore.id])
    return frozenset(item.id for item in ignore)


def _node_edges(node: Node, dir_type: str, schema_id: Optional[str]) -> List[Edge]:
    """Edges of ``node`` selected by direction.

    ``sourceonly`` keeps edges where the node is a target (so the other nodes are
    its sources); ``targetonly`` keeps edges where the node is a source.
    """
    if dir_type == "sourceonly":
        return list(node.edges_where_target(schema_id))
    if dir_type == "targetonly":
        return list(node.edges_where_source(schema_id))
    return node.edges(schema_id)


class Neighbor(abc.ABC):
    """Base class of neighbor strategies."""

    def __init__(self, caching: bool = False) -> None:
        self._caching = bool(caching)
        self._cache: Dict[GraphItemID, List[GraphItem]] = {}

    @property
    def caching(self) -> bool:
        return self._caching

    def set_caching(self, caching: bool) -> None:
        self._caching = bool(caching)
        self._cache.clear()

    def neighbors(self, item: GraphItem) -> List[GraphItem]:
        """Ordered, duplicate-free neighbors of ``item``."""
        require_graph_item(item, type(self).__name__)
        if self._caching:
            cached = self._cache.get(item.id)
            if cached is not None:
                return list(cached)
        found = self._calculate(item)
        if self._caching:
            self._cache[item.id] = found
        return list(found)

    def num_neighbors(self, item: GraphItem) -> int:
        return len(self.neighbors(item))

    def reset(self, item: GraphItem) -> None:
        self._cache.pop(item.id, None)

    def reset_all(self) -> None:
        self._cache.clear()

    @abc.abstractmethod
    def _calculate(self, item: GraphItem) -> List[GraphItem]:
        """Compute the neighbors of ``item`` from the current topology."""

    def key(self) -> Tuple:
        """Hashable description of the strategy's configuration."""
        return (type(self).__name__,)

    def __repr__(self) -> str:
        return f"{type(self).__name__}{self.key()[1:]}"


class NeighborWithOmission(Neighbor):
    """Strategy that can compute neighbors as if some items were absent."""

    def neighbors(self, item: GraphItem, ignore: Ignore = None) -> List[GraphItem]:  # type: ignore[override]
        if ignore is None:
            return super().neighbors(item)
        require_graph_item(item, type(self).__name__)
        # Cached lists describe the full graph and never apply to an omission
        return self._calculate(item, _ignored_ids(ignore))

    def num_neighbors(self, item: GraphItem, ignore: Ignore = None) -> int:  # type: ignore[override]
        return len(self.neighbors(item, ignore))

    @abc.abstractmethod
    def _calculate(self, item: GraphItem, ignored: frozenset = frozenset()) -> List[GraphItem]:
        """Compute neighbors while skipping the items in ``ignored``."""


class Adjacent(NeighborWithOmission):
    """Items connected to the item through a shared incident item.

    Args:
        connecting_sid: Only follow connecting items of this schema (edges for a
            node, nodes for an edge).
        connecting_feature: ``"fid:value"``; only follow connecting items whose
            ``fid`` has this string value (e.g. ``"exist:EXIST"``).
        dir_type: ``"all"``, ``"sourceonly"`` or ``"targetonly"`` (nodes only).
        include_self: Include the item itself in the result.
    """

    def __init__(
        self,
        connecting_sid: Optional[str] = None,
        connecting_feature: Optional[str] = None,
        dir_type: str = "all",
        include_self: bool = False,
        caching: bool = False,
    ) -> None:
        super().__init__(caching)
        self.connecting_sid = connecting_sid
        self.dir_type = _check_dir_type(dir_type)
        self.include_self = include_self
        self.connecting_feature = connecting_feature
        self._feature_filter: Optional[Tuple[str, str]] = None
        if connecting_feature is not None:
            fid, sep, value = connecting_feature.partition(":")
            if not sep or not fid or ":" in value:
                raise ConfigurationError(
                    f"connecting_feature must look like 'fid:value', got {connecting_feature!r}"
                )
            self._feature_filter = (fid, value)

    def key(self) -> Tuple:
        return (
            type(self).__name__,
            self.connecting_sid,
            self.connecting_feature,
            self.dir_type,
            self.include_self,
        )

    def _connects(self, item: GraphItem) -> bool:
        if self._feature_filter is None:
            return True
        fid, expected = self._feature_filter
        if not item.graph._live_schema(item.schema_id).has_feature(fid):
            logger.warning("Connecting feature %r not defined for %s", fid, item.schema_id)
            return False
        value = item.get(fid)
        return not is_unknown(value) and value.string_value == expected

    def _calculate(self, item: GraphItem, ignored: frozenset = frozenset()) -> List[GraphItem]:
        found: Dict[GraphItemID, GraphItem] = {}
        if isinstance(item, Node):
            for edge in _node_edges(item, self.dir_type, self.connecting_sid):
                if edge.id in ignored or not self._connects(edge):
                    continue
                for node in edge.nodes():
                    if node.id not in ignored:
                        found.setdefault(node.id, node)
        elif isinstance(item, Edge):
            for node in item.nodes(self.connecting_sid):
                if node.id in ignored or not self._connects(node):
                    continue
                for edge in node.edges():
                    if edge.id not in ignored:
                        found.setdefault(edge.id, edge)
        found.pop(item.id, None)
        if self.include_self:
            found[item.id] = item
        return list(found.values())


class Incident(NeighborWithOmission):
    """Items directly incident to the item (edges of a node, nodes of an edge)."""

    def __init__(
        self,
        incident_sid: Optional[str] = None,
        dir_type: str = "all",
        include_self: bool = False,
        caching: bool = False,
    ) -> None:
        super().__init__(caching)
        self.incident_sid = incident_sid
        self.dir_type = _check_dir_type(dir_type)
        self.include_self = include_self

    def key(self) -> Tuple:
        return (type(self).__name__, self.incident_sid, self.dir_type, self.include_self)

    def _calculate(self, item: GraphItem, ignored: frozenset = frozenset()) -> List[GraphItem]:
        if isinstance(item, Node):
            incident: List[GraphItem] = list(_node_edges(item, self.dir_type, self.incident_sid))
        elif isinstance(item, DirectedEdge) and self.dir_type != "all":
            nodes = item.sources() if self.dir_type == "sourceonly" else item.targets()
            incident = [
                n for n in nodes if self.incident_sid is None or n.schema_id == self.incident_sid
            ]
        else:
            incident = item.incident_items(self.incident_sid)
        found = [i for i in incident if i.id not in ignored]
        if self.include_self:
            found.append(item)
        return found


class DistanceN(Neighbor):
    """Items within ``depth`` hops of an adjacency strategy.

    With ``distinct=True`` every item reached in 1..depth hops is returned once;
    otherwise only the items whose shortest distance is exactly ``depth``.
    """

    def __init__(
        self,
        depth: int = 2,
        distinct: bool = True,
        adjacent: Optional[Neighbor] = None,
        caching: bool = False,
    ) -> None:
        super().__init__(caching)
        if int(depth) < 1:
            raise ConfigurationError(f"depth must be at least 1, got {depth}")
        self.depth = int(depth)
        self.distinct = distinct
        self.adjacent = adjacent if adjacent is not None else Adjacent()

    def key(self) -> Tuple:
        return (type(self).__name__, self.depth, self.distinct, self.adjacent.key())

    def _calculate(self, item: GraphItem) -> List[GraphItem]:
        distance: Dict[GraphItemID, int] = {item.id: 0}
        reached: Dict[GraphItemID, GraphItem] = {}
        frontier = deque([item])
        while frontier:
            current = frontier.popleft()
            hops = distance[current.id]
            if hops == self.depth:
                continue
            for other in self.adjacent.neighbors(current):
                if other.id in distance:
                    continue
                distance[other.id] = hops + 1
                reached[other.id] = other
                frontier.append(other)
        if self.distinct:
            return list(reached.values())
        return [i for iid, i in reached.items() if distance[iid] == self.depth]


class NeighborsOfNeighbors(Neighbor):
    """Apply ``second`` to every neighbor produced by ``first``."""

    def __init__(
        self,
        first: Optional[Neighbor] = None,
        second: Optional[Neighbor] = None,
        caching: bool = False,
    ) -> None:
        super().__init__(caching)
        self.first = first if first is not None else Adjacent()
        self.second = second if second is not None else Adjacent()

    def key(self) -> Tuple:
        return (type(self).__name__, self.first.key(), self.second.key())

    def _calculate(self, item: GraphItem) -> List[GraphItem]:
        found: Dict[GraphItemID, GraphItem] = {}
        for neighbor in self.first.neighbors(item):
            for other in self.second.neighbors(neighbor):
                found.setdefault(other.id, other)
        found.pop(item.id, None)
        return list(found.values())


__all__ = [
    "DIR_TYPES",
    "Neighbor",
    "NeighborWithOmission",
    "Adjacent",
    "Incident",
    "DistanceN",
    "NeighborsOfNeighbors",
]
