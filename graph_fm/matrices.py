"""Graph-scoped matrix computations: adjacency export, shortest paths and Katz scores.

Every matrix is returned as an ``IndexedMatrix`` that carries the node-to-index
map it was built with, so lookups always pair a matrix with its own index.

``MatrixCache`` is the evaluation context that keeps these matrices per graph
instance. It is keyed weakly by the graph, so entries disappear with the graph,
and it is never invalidated by graph mutation: callers that change the topology
must call ``discard`` to get fresh results.
"""

from __future__ import annotations

import logging
import warnings
import weakref
from dataclasses import dataclass
from typing import Any, Dict, Optional, Sequence, Tuple, Union

import networkx as nx
import numpy as np

from .errors import ComplexEigenvalueError, NotFoundError, NumericInstabilityWarning
from .graph import Graph, GraphItem
from .neighbors import Neighbor
from .values import GraphItemID

logger = logging.getLogger(__name__)

IMAGINARY_TOLERANCE = 1e-10


@dataclass(frozen=True)
class IndexedMatrix:
    """A square matrix over graph nodes plus the index it was built with."""

    index: Dict[GraphItemID, int]
    matrix: np.ndarray

    def position(self, node: Union[GraphItem, GraphItemID]) -> int:
        node_id = node.id if isinstance(node, GraphItem) else node
        try:
            return self.index[node_id]
        except KeyError:
            raise NotFoundError(f"Node {node_id} is not part of the matrix index") from None

    def value(
        self, a: Union[GraphItem, GraphItemID], b: Union[GraphItem, GraphItemID]
    ) -> float:
        return float(self.matrix[self.position(a), self.position(b)])

    def __len__(self) -> int:
        return len(self.index)


class AdjacencyExporter:
    """Export a graph's binary edges (or a neighbor relation) as an adjacency matrix.

    Args:
        node_sids: Node schemas to include; all node schemas when omitted.
        edge_sids: Edge schemas to include; all edge schemas when omitted.
        weighted: Count parallel edges instead of recording 0/1.
        as_undirected: Mirror directed edges.
        neighbor: When given, ``[i, j] = 1`` for every ``j`` in ``neighbor.neighbors(i)``
            and the edge options are ignored.
    """

    def __init__(
        self,
        node_sids: Optional[Sequence[str]] = None,
        edge_sids: Optional[Sequence[str]] = None,
        weighted: bool = False,
        as_undirected: bool = False,
        neighbor: Optional[Neighbor] = None,
    ) -> None:
        self.node_sids = None if node_sids is None else tuple(node_sids)
        self.edge_sids = None if edge_sids is None else tuple(edge_sids)
        self.weighted = weighted
        self.as_undirected = as_undirected
        self.neighbor = neighbor

    def key(self) -> Tuple:
        neighbor_key = None if self.neighbor is None else self.neighbor.key()
        return (self.node_sids, self.edge_sids, self.weighted, self.as_undirected, neighbor_key)

    def export(self, graph: Graph) -> IndexedMatrix:
        """Build the node index and adjacency matrix from the current topology."""
        if self.neighbor is not None:
            exported = self._neighbor_graph(graph)
        else:
            exported = graph.to_networkx(self.node_sids, self.edge_sids, self.as_undirected)
        order = list(exported.nodes())
        index = {node_id: i for i, node_id in enumerate(order)}
        if not order:
            return IndexedMatrix(index, np.zeros((0, 0)))
        # weight=None counts each parallel edge as 1
        matrix = nx.to_numpy_array(exported, nodelist=order, weight=None, dtype=float)
        if not self.weighted:
            matrix = (matrix > 0).astype(float)
        logger.debug("Exported %dx%d adjacency matrix", len(order), len(order))
        return IndexedMatrix(index, matrix)

    def _neighbor_graph(self, graph: Graph) -> nx.DiGraph:
        exported = nx.DiGraph()
        nodes = [
            n for n in graph.nodes() if self.node_sids is None or n.schema_id in self.node_sids
        ]
        exported.add_nodes_from(n.id for n in nodes)
        for node in nodes:
            for other in self.neighbor.neighbors(node):  # type: ignore[union-attr]
                if other.id in exported:
                    exported.add_edge(node.id, other.id)
        return exported


def shortest_path_lengths(adjacency: np.ndarray) -> np.ndarray:
    """All-pairs shortest path lengths with Floyd–Warshall.

    Nonzero entries of ``adjacency`` are edge lengths; zero entries are treated as
    missing edges (+inf) before relaxation. The diagonal is 0 and unreachable
    pairs remain ``inf``.
    """
    size = adjacency.shape[0]
    dist = np.where(adjacency > 0, adjacency, np.inf).astype(float)
    np.fill_diagonal(dist, 0.0)
    for k in range(size):
        dist = np.minimum(dist, dist[:, k, np.newaxis] + dist[np.newaxis, k, :])
    return dist


def is_symmetric(matrix: np.ndarray, tol: float = 1e-9) -> bool:
    if matrix.ndim != 2 or matrix.shape[0] != matrix.shape[1]:
        return False
    return bool(np.allclose(matrix, matrix.T, atol=tol, rtol=0.0))


def largest_eigenvalue(adjacency: np.ndarray) -> float:
    """Largest eigenvalue of ``adjacency``.

    Raises:
        ComplexEigenvalueError: If any eigenvalue has a nonzero imaginary part.
    """
    eigenvalues = np.linalg.eigvals(adjacency)
    if np.any(np.abs(eigenvalues.imag) > IMAGINARY_TOLERANCE):
        raise ComplexEigenvalueError(
            "Katz scores need a real spectrum; the adjacency matrix has complex eigenvalues"
        )
    return float(np.max(eigenvalues.real))


def katz_scores(
    adjacency: np.ndarray, beta: Optional[float] = None, normalize: bool = False
) -> np.ndarray:
    """Katz score matrix ``inv(I - beta * M) - I``.

    Args:
        adjacency: Square adjacency matrix ``M`` (may be asymmetric).
        beta: Attenuation factor; defaults to ``1 / (1.5 * lambda_max)``.
        normalize: Divide all scores by the largest absolute score.

    Raises:
        ComplexEigenvalueError: If ``M`` has eigenvalues with an imaginary part.
    """
    size = adjacency.shape[0]
    if size == 0:
        return np.zeros((0, 0))
    lambda_max = largest_eigenvalue(adjacency)
    if beta is None:
        beta = 1.0 / (1.5 * lambda_max) if lambda_max > 0 else 1.0
        logger.debug("Katz beta set to %s (lambda_max=%s)", beta, lambda_max)
    elif beta == 0 or 1.0 / beta <= lambda_max:
        warnings.warn(
            f"Katz beta={beta} is unstable: 1/beta must exceed lambda_max={lambda_max}",
            NumericInstabilityWarning,
            stacklevel=2,
        )
    identity = np.eye(size)
    scores = np.linalg.inv(identity - beta * adjacency) - identity
    if normalize:
        peak = np.max(np.abs(scores))
        if peak > 0:
            scores = scores / peak
    return scores


class MatrixCache:
    """Per-graph store of exported, shortest-path and Katz matrices."""

    def __init__(self) -> None:
        self._entries: "weakref.WeakKeyDictionary[Graph, Dict[Tuple, IndexedMatrix]]" = (
            weakref.WeakKeyDictionary()
        )

    def _get(self, graph: Graph, key: Tuple, build: Any) -> IndexedMatrix:
        entries = self._entries.setdefault(graph, {})
        if key not in entries:
            logger.debug("Computing %s for %r", key[0], graph)
            entries[key] = build()
        return entries[key]

    def adjacency(self, graph: Graph, exporter: AdjacencyExporter) -> IndexedMatrix:
        return self._get(graph, ("adjacency", exporter.key()), lambda: exporter.export(graph))

    def shortest_paths(self, graph: Graph, exporter: AdjacencyExporter) -> IndexedMatrix:
        def build() -> IndexedMatrix:
            exported = self.adjacency(graph, exporter)
            return IndexedMatrix(exported.index, shortest_path_lengths(exported.matrix))

        return self._get(graph, ("shortest_paths", exporter.key()), build)

    def katz(
        self,
        graph: Graph,
        exporter: AdjacencyExporter,
        beta: Optional[float] = None,
        normalize: bool = False,
    ) -> IndexedMatrix:
        def build() -> IndexedMatrix:
            exported = self.adjacency(graph, exporter)
            return IndexedMatrix(exported.index, katz_scores(exported.matrix, beta, normalize))

        return self._get(graph, ("katz", exporter.key(), beta, normalize), build)

    def discard(self, graph: Optional[Graph] = None) -> None:
        """Drop cached matrices for ``graph`` (or for every graph)."""
        if graph is None:
            self._entries.clear()
        else:
            self._entries.pop(graph, None)

    def __contains__(self, graph: object) -> bool:
        return graph in self._entries
