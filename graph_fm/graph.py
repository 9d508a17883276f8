"""Attributed graphs built from nodes, directed edges and undirected edges.

The topology is kept in a NetworkX incidence graph: every node and every edge of
the attributed graph is a vertex, and an incidence link joins an edge to each of
its nodes with the role(s) the node plays (source, target or member). This keeps
hyperedges, self-loops and mixed directed/undirected schemas in one structure.

The ``Graph`` object also:
- owns all schemas and applies the copy-on-write update discipline
- stores explicit feature values per (schema, feature)
- hands out lazy iterators that fail fast when the graph is mutated mid-iteration
- exports binary edges as a NetworkX multigraph for matrix computations
"""

from __future__ import annotations

import itertools
import logging
from typing import Dict, Iterable, Iterator, List, Optional, Sequence, Type, TypeVar, Union

import networkx as nx

from .decorable import Decorable
from .errors import NotFoundError, UnsupportedShapeError
from .features import Feature
from .schema import Schema, SchemaType, validate_identifier
from .values import FeatureValue, GraphID, GraphItemID

logger = logging.getLogger(__name__)

SOURCE = "source"
TARGET = "target"
MEMBER = "member"

ItemRef = Union["GraphItem", GraphItemID, str]
_T = TypeVar("_T", bound="GraphItem")


class GraphItem(Decorable):
    """A node or an edge of a ``Graph``."""

    def __init__(self, graph: "Graph", item_id: GraphItemID) -> None:
        self._graph = graph
        self._id = item_id

    @property
    def id(self) -> GraphItemID:
        return self._id

    @property
    def graph(self) -> "Graph":
        return self._graph

    def incident_items(self, schema_id: Optional[str] = None) -> List["GraphItem"]:
        """Edges touching this node, or nodes of this edge."""
        return self._graph._incident(self._id, schema_id)

    def num_incident(self, schema_id: Optional[str] = None) -> int:
        return len(self.incident_items(schema_id))

    def adjacent_items(self, schema_id: Optional[str] = None) -> List["GraphItem"]:
        """Items sharing at least one incident item with this one."""
        adjacent: Dict[GraphItemID, GraphItem] = {}
        for incident in self.incident_items():
            for other in incident.incident_items(schema_id):
                if other is not self:
                    adjacent.setdefault(other.id, other)
        return list(adjacent.values())

    def is_incident(self, other: "GraphItem") -> bool:
        return self._graph._incidence.has_edge(self._id, other.id)

    def is_adjacent(self, other: "GraphItem") -> bool:
        return any(other is item for item in self.adjacent_items(other.schema_id))

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self._id})"


class Node(GraphItem):
    def edges(self, schema_id: Optional[str] = None) -> List["Edge"]:
        return self.incident_items(schema_id)  # type: ignore[return-value]

    def edges_where_source(self, schema_id: Optional[str] = None) -> List["DirectedEdge"]:
        return self._graph._incident_with_role(self._id, SOURCE, schema_id)  # type: ignore[return-value]

    def edges_where_target(self, schema_id: Optional[str] = None) -> List["DirectedEdge"]:
        return self._graph._incident_with_role(self._id, TARGET, schema_id)  # type: ignore[return-value]

    def adjacent_nodes(self, schema_id: Optional[str] = None) -> List["Node"]:
        return self.adjacent_items(schema_id)  # type: ignore[return-value]

    def degree(self, schema_id: Optional[str] = None) -> int:
        return self.num_incident(schema_id)


class Edge(GraphItem):
    def nodes(self, schema_id: Optional[str] = None) -> List[Node]:
        """Nodes of the edge; sources before targets for directed edges."""
        return self.incident_items(schema_id)  # type: ignore[return-value]

    def num_nodes(self) -> int:
        return self.num_incident()

    def is_binary(self) -> bool:
        """True for edges with two nodes and for self-loops."""
        return self.num_nodes() in (1, 2)

    def endpoints(self) -> "tuple[Node, Node]":
        """The two nodes of a binary edge (the same node twice for a self-loop).

        Raises:
            UnsupportedShapeError: If the edge is not binary.
        """
        nodes = self.nodes()
        if len(nodes) == 1:
            return nodes[0], nodes[0]
        if len(nodes) == 2:
            return nodes[0], nodes[1]
        raise UnsupportedShapeError("binary edge", f"edge with {len(nodes)} nodes")


class DirectedEdge(Edge):
    def sources(self) -> List[Node]:
        return self._graph._incident_with_role(self._id, SOURCE)  # type: ignore[return-value]

    def targets(self) -> List[Node]:
        return self._graph._incident_with_role(self._id, TARGET)  # type: ignore[return-value]

    def is_source(self, node: Node) -> bool:
        return self._graph._has_role(node.id, self._id, SOURCE)

    def is_target(self, node: Node) -> bool:
        return self._graph._has_role(node.id, self._id, TARGET)

    def endpoints(self) -> "tuple[Node, Node]":
        sources, targets = self.sources(), self.targets()
        if len(sources) == 1 and len(targets) == 1:
            return sources[0], targets[0]
        raise UnsupportedShapeError(
            "binary edge", f"edge with {len(sources)} sources and {len(targets)} targets"
        )


class UndirectedEdge(Edge):
    pass


class Graph(Decorable):
    """An attributed graph; also the decorable item of its own graph schema."""

    def __init__(self, schema_id: str = "graph", obj_id: str = "graph") -> None:
        validate_identifier("schema id", schema_id)
        self._id = GraphID(schema_id, str(obj_id))
        self._schemas: Dict[str, Schema] = {}
        self._stores: Dict[str, Dict[str, Dict[GraphItemID, FeatureValue]]] = {}
        self._items: Dict[GraphItemID, GraphItem] = {}
        self._incidence = nx.Graph()
        self._modcount = 0
        self._versions = itertools.count(1)
        self._swap_schema(schema_id, Schema(SchemaType.GRAPH), None)

    @property
    def id(self) -> GraphItemID:
        return self._id

    @property
    def graph(self) -> "Graph":
        return self

    def __repr__(self) -> str:
        return f"Graph({self._id}, nodes={self.num_nodes()}, edges={self.num_edges()})"

    # Schemas

    def add_schema(self, schema_id: str, schema: Schema) -> None:
        validate_identifier("schema id", schema_id)
        if schema_id in self._schemas:
            raise ValueError(f"Schema {schema_id!r} already exists")
        if schema.schema_type is SchemaType.GRAPH:
            raise ValueError("A graph has exactly one graph schema")
        self._swap_schema(schema_id, schema, None)

    def has_schema(self, schema_id: str) -> bool:
        return schema_id in self._schemas

    def get_schema(self, schema_id: str) -> Schema:
        """Return a detached copy of the schema; edits apply via ``update_schema``."""
        return self._live_schema(schema_id).copy()

    def update_schema(self, schema_id: str, schema: Schema) -> None:
        """Replace the schema atomically.

        Removed or replaced features lose their stored values and derived ones
        are detached (their caches cleared); newly added derived features are
        attached to this graph.
        """
        previous = self._live_schema(schema_id)
        if schema.schema_type is not previous.schema_type:
            raise ValueError(
                f"Cannot change schema {schema_id!r} from {previous.schema_type.value} "
                f"to {schema.schema_type.value}"
            )
        self._swap_schema(schema_id, schema, previous)

    def remove_schema(self, schema_id: str) -> None:
        schema = self._live_schema(schema_id)
        if schema_id == self._id.schema_id:
            raise ValueError("The graph schema cannot be removed")
        if any(item_id.schema_id == schema_id for item_id in self._items):
            raise ValueError(f"Schema {schema_id!r} still has items")
        for _, feature in schema.features():
            if feature.is_derived:
                feature.detach()  # type: ignore[attr-defined]
        self._stores.pop(schema_id, None)
        del self._schemas[schema_id]

    def schema_type(self, schema_id: str) -> SchemaType:
        return self._live_schema(schema_id).schema_type

    def schema_ids(self, schema_type: Optional[SchemaType] = None) -> List[str]:
        return [
            sid
            for sid, schema in self._schemas.items()
            if schema_type is None or schema.schema_type is schema_type
        ]

    def add_feature(self, schema_id: str, feature_id: str, feature: Feature) -> None:
        schema = self.get_schema(schema_id)
        schema.add_feature(feature_id, feature)
        self.update_schema(schema_id, schema)

    def remove_feature(self, schema_id: str, feature_id: str) -> None:
        schema = self.get_schema(schema_id)
        schema.remove_feature(feature_id)
        self.update_schema(schema_id, schema)

    def _live_schema(self, schema_id: str) -> Schema:
        try:
            return self._schemas[schema_id]
        except KeyError:
            raise NotFoundError(
                f"Schema {schema_id!r} is not defined", context={"schema": schema_id}
            ) from None

    def _value_store(self, schema_id: str, feature_id: str) -> Dict[GraphItemID, FeatureValue]:
        return self._stores.setdefault(schema_id, {}).setdefault(feature_id, {})

    def _swap_schema(self, schema_id: str, schema: Schema, previous: Optional[Schema]) -> None:
        replacement = schema.copy()
        old_features = dict(previous.features()) if previous is not None else {}
        new_features = dict(replacement.features())

        # Make the new definitions visible while derived features configure
        self._schemas[schema_id] = replacement
        attached = []
        try:
            for fid, feature in new_features.items():
                if feature.is_derived and old_features.get(fid) is not feature:
                    feature.attach(self, schema_id, fid)  # type: ignore[attr-defined]
                    attached.append(feature)
        except Exception:
            for feature in attached:
                feature.detach()
            if previous is None:
                del self._schemas[schema_id]
            else:
                self._schemas[schema_id] = previous
            raise

        for fid, feature in old_features.items():
            if new_features.get(fid) is feature:
                continue
            if feature.is_derived:
                feature.detach()  # type: ignore[attr-defined]
            self._stores.get(schema_id, {}).pop(fid, None)

        replacement.version = next(self._versions)
        logger.debug(
            "Schema %s now at version %d with features %s",
            schema_id,
            replacement.version,
            list(new_features),
        )

    # Items

    def add_node(self, schema_id: str, obj_id: str) -> Node:
        node = Node(self, self._new_item_id(schema_id, obj_id, SchemaType.NODE))
        self._register(node)
        return node

    def add_directed_edge(
        self,
        schema_id: str,
        obj_id: str,
        sources: Iterable[ItemRef],
        targets: Iterable[ItemRef],
    ) -> DirectedEdge:
        item_id = self._new_item_id(schema_id, obj_id, SchemaType.DIRECTED)
        source_nodes = self._resolve_nodes(sources)
        target_nodes = self._resolve_nodes(targets)
        if not source_nodes or not target_nodes:
            raise ValueError("A directed edge needs at least one source and one target")
        edge = DirectedEdge(self, item_id)
        self._register(edge)
        for node in source_nodes:
            self._link(node.id, item_id, SOURCE)
        for node in target_nodes:
            self._link(node.id, item_id, TARGET)
        return edge

    def add_undirected_edge(
        self, schema_id: str, obj_id: str, nodes: Iterable[ItemRef]
    ) -> UndirectedEdge:
        item_id = self._new_item_id(schema_id, obj_id, SchemaType.UNDIRECTED)
        members = self._resolve_nodes(nodes)
        if not members:
            raise ValueError("An undirected edge needs at least one node")
        edge = UndirectedEdge(self, item_id)
        self._register(edge)
        for node in members:
            self._link(node.id, item_id, MEMBER)
        return edge

    def remove_node(self, ref: ItemRef) -> None:
        """Remove a node together with every edge incident to it."""
        node = self.get_node(ref)
        for edge in node.edges():
            self._unregister(edge)
        self._unregister(node)

    def remove_edge(self, ref: ItemRef) -> None:
        self._unregister(self.get_edge(ref))

    def get_item(self, ref: ItemRef) -> GraphItem:
        item_id = self._as_id(ref)
        try:
            return self._items[item_id]
        except KeyError:
            raise NotFoundError(f"No graph item {item_id}", context={"item": str(item_id)}) from None

    def get_node(self, ref: ItemRef) -> Node:
        return self._get_typed(ref, Node)

    def get_edge(self, ref: ItemRef) -> Edge:
        return self._get_typed(ref, Edge)

    def has_item(self, ref: ItemRef) -> bool:
        return self._as_id(ref) in self._items

    def items(self, schema_id: Optional[str] = None) -> Iterator[GraphItem]:
        return self._iterate(GraphItem, schema_id)

    def nodes(self, schema_id: Optional[str] = None) -> Iterator[Node]:
        return self._iterate(Node, schema_id)

    def edges(self, schema_id: Optional[str] = None) -> Iterator[Edge]:
        return self._iterate(Edge, schema_id)

    def num_nodes(self, schema_id: Optional[str] = None) -> int:
        return sum(1 for _ in self.nodes(schema_id))

    def num_edges(self, schema_id: Optional[str] = None) -> int:
        return sum(1 for _ in self.edges(schema_id))

    def to_networkx(
        self,
        node_schema_ids: Optional[Sequence[str]] = None,
        edge_schema_ids: Optional[Sequence[str]] = None,
        as_undirected: bool = False,
    ) -> nx.MultiDiGraph:
        """Export binary edges as a multigraph keyed by node ``GraphItemID``.

        Undirected edges (and every edge when ``as_undirected``) are added in both
        directions; a self-loop is added once. Edges with a node outside
        ``node_schema_ids`` are skipped.

        Raises:
            UnsupportedShapeError: If a selected edge is not binary.
        """
        exported = nx.MultiDiGraph()
        for node in self.nodes():
            if node_schema_ids is None or node.schema_id in node_schema_ids:
                exported.add_node(node.id)
        for edge in self.edges():
            if edge_schema_ids is not None and edge.schema_id not in edge_schema_ids:
                continue
            u, v = edge.endpoints()
            if u.id not in exported or v.id not in exported:
                continue
            exported.add_edge(u.id, v.id, key=edge.id)
            mirrored = as_undirected or not isinstance(edge, DirectedEdge)
            if mirrored and u is not v:
                exported.add_edge(v.id, u.id, key=edge.id)
        return exported

    def _new_item_id(self, schema_id: str, obj_id: str, schema_type: SchemaType) -> GraphItemID:
        actual = self.schema_type(schema_id)
        if actual is not schema_type:
            raise ValueError(
                f"Schema {schema_id!r} is a {actual.value} schema, expected {schema_type.value}"
            )
        item_id = GraphItemID(schema_id, str(obj_id))
        if item_id in self._items:
            raise ValueError(f"Graph item {item_id} already exists")
        return item_id

    def _register(self, item: GraphItem) -> None:
        self._items[item.id] = item
        self._incidence.add_node(item.id, item=item)
        self._modcount += 1

    def _unregister(self, item: GraphItem) -> None:
        self._incidence.remove_node(item.id)
        del self._items[item.id]
        for store in self._stores.get(item.schema_id, {}).values():
            store.pop(item.id, None)
        for _, feature in self._live_schema(item.schema_id).features():
            if feature.is_derived and feature.caching:  # type: ignore[attr-defined]
                feature.reset_cache(item)  # type: ignore[attr-defined]
        self._modcount += 1

    def _link(self, node_id: GraphItemID, edge_id: GraphItemID, role: str) -> None:
        if self._incidence.has_edge(node_id, edge_id):
            link = self._incidence.edges[node_id, edge_id]
            link["roles"] = link["roles"] | {role}
        else:
            self._incidence.add_edge(node_id, edge_id, roles=frozenset({role}))

    def _has_role(self, node_id: GraphItemID, edge_id: GraphItemID, role: str) -> bool:
        if not self._incidence.has_edge(node_id, edge_id):
            return False
        return role in self._incidence.edges[node_id, edge_id]["roles"]

    def _incident(self, item_id: GraphItemID, schema_id: Optional[str] = None) -> List[GraphItem]:
        return [
            self._items[other]
            for other in self._incidence.neighbors(item_id)
            if schema_id is None or other.schema_id == schema_id
        ]

    def _incident_with_role(
        self, item_id: GraphItemID, role: str, schema_id: Optional[str] = None
    ) -> List[GraphItem]:
        found = []
        for other, link in self._incidence[item_id].items():
            if role not in link["roles"]:
                continue
            if schema_id is None or other.schema_id == schema_id:
                found.append(self._items[other])
        return found

    def _resolve_nodes(self, refs: Iterable[ItemRef]) -> List[Node]:
        nodes: Dict[GraphItemID, Node] = {}
        for ref in refs:
            node = self.get_node(ref)
            nodes.setdefault(node.id, node)
        return list(nodes.values())

    def _get_typed(self, ref: ItemRef, kind: Type[_T]) -> _T:
        item = self.get_item(ref)
        if not isinstance(item, kind):
            raise NotFoundError(f"{item.id} is not a {kind.__name__.lower()}")
        return item

    def _iterate(self, kind: Type[_T], schema_id: Optional[str]) -> Iterator[_T]:
        expected = self._modcount
        snapshot = list(self._items.values())

        def generate() -> Iterator[_T]:
            for item in snapshot:
                if self._modcount != expected:
                    raise RuntimeError("Graph changed during iteration")
                if isinstance(item, kind) and (schema_id is None or item.schema_id == schema_id):
                    yield item

        return generate()

    @staticmethod
    def _as_id(ref: ItemRef) -> GraphItemID:
        if isinstance(ref, GraphItem):
            return ref.id
        if isinstance(ref, GraphItemID):
            return ref
        return GraphItemID.parse(ref)
