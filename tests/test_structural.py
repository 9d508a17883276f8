"""Unit tests for topology-based derived features and edge scores."""

import pytest

from graph_fm.errors import ConfigurationError, UnsupportedShapeError
from graph_fm.existence import EXIST_VALUE, existence_feature
from graph_fm.graph import Graph
from graph_fm.matrices import AdjacencyExporter
from graph_fm.neighbors import Adjacent, DistanceN
from graph_fm.schema import Schema, SchemaType
from graph_fm.similarity import Jaccard
from graph_fm.structural import (
    AdjacentCount,
    EdgeNodeKatz,
    EdgeNodeNeighborSimilarity,
    EdgeNodePreferentialAttachment,
    EdgeNodeShortestPath,
    IncidentCount,
    NeighborCount,
    _MatrixScore,
)
from graph_fm.values import UNKNOWN, NumValue


def _graph() -> Graph:
    """Nodes a-d with edges ab, bc, cd, ac plus an isolated node z."""
    graph = Graph()
    graph.add_schema("n", Schema(SchemaType.NODE))
    edges = Schema(SchemaType.UNDIRECTED)
    edges.add_feature("exist", existence_feature())
    graph.add_schema("e", edges)
    graph.add_schema("cand", Schema(SchemaType.UNDIRECTED))
    for x in "abcdz":
        graph.add_node("n", x)
    for pair in ("ab", "bc", "cd", "ac"):
        graph.add_undirected_edge("e", pair, [f"n:{pair[0]}", f"n:{pair[1]}"])
    return graph


def test_neighbor_and_incident_counts():
    """Counts follow the configured neighbor strategy."""
    graph = _graph()
    graph.add_feature("n", "degree", NeighborCount())
    graph.add_feature("n", "edges", IncidentCount(incident_sid="e"))
    graph.add_feature("n", "two_hop", NeighborCount(DistanceN(depth=2)))
    assert graph.get_node("n:a").get("degree") == NumValue(2)
    assert graph.get_node("n:c").get("edges") == NumValue(3)
    assert graph.get_node("n:d").get("two_hop") == NumValue(3)
    assert graph.get_node("n:z").get("degree") == NumValue(0)


def test_adjacent_count_includes_parallel_edges():
    """All edges joining the two nodes are counted, the edge itself included."""
    graph = _graph()
    graph.add_feature("e", "multiplicity", AdjacentCount(schema_id="e"))
    assert graph.get_edge("e:ab").get("multiplicity") == NumValue(1)
    graph.add_undirected_edge("e", "ab2", ["n:a", "n:b"])
    assert graph.get_edge("e:ab").get("multiplicity") == NumValue(2)


def test_adjacent_count_needs_two_incident_items():
    """Nodes with three edges are the wrong shape."""
    graph = _graph()
    graph.add_feature("n", "joining", AdjacentCount())
    with pytest.raises(UnsupportedShapeError):
        graph.get_node("n:c").get("joining")


def test_preferential_attachment_multiplies_neighbor_counts():
    """Endpoint neighbor counts are multiplied."""
    graph = _graph()
    graph.add_feature("e", "pa", EdgeNodePreferentialAttachment())
    graph.add_feature("e", "pa_without", EdgeNodePreferentialAttachment(ignore_edge=True))
    edge = graph.get_edge("e:ab")
    assert edge.get("pa") == NumValue(4)
    assert edge.get("pa_without") == NumValue(1)


def test_neighbor_similarity_with_and_without_the_scored_edge():
    """Ignoring the scored edge removes each endpoint from the other's neighbors."""
    graph = _graph()
    graph.add_feature("e", "jaccard", EdgeNodeNeighborSimilarity(similarity=Jaccard()))
    graph.add_feature(
        "e", "jaccard_without", EdgeNodeNeighborSimilarity(similarity=Jaccard(), ignore_edge=True)
    )
    graph.add_feature("e", "common", EdgeNodeNeighborSimilarity())
    edge = graph.get_edge("e:ab")
    assert edge.get("jaccard").number == pytest.approx(1 / 3)
    assert edge.get("jaccard_without").number == pytest.approx(1.0)
    assert edge.get("common").number == pytest.approx(0.01)


def test_existence_is_forced_off_while_scoring_and_restored():
    """With ``exist_fid`` the scored edge is treated as absent, then restored."""
    graph = _graph()
    for edge in graph.edges("e"):
        edge.set("exist", EXIST_VALUE)
    existing = Adjacent(connecting_feature="exist:EXIST")
    graph.add_feature(
        "e", "pa", EdgeNodePreferentialAttachment(neighbor=existing, exist_fid="exist")
    )
    edge = graph.get_edge("e:ab")
    assert edge.get("pa") == NumValue(1)
    assert edge.get("exist") == EXIST_VALUE


def test_ignore_edge_needs_a_strategy_with_omission():
    """Distance-based strategies cannot omit the scored edge."""
    with pytest.raises(ConfigurationError):
        EdgeNodeNeighborSimilarity(neighbor=DistanceN(), ignore_edge=True)


def test_neighbor_similarity_rejects_nodes():
    """Edge scores are not defined on nodes."""
    graph = _graph()
    graph.add_feature("n", "similarity", EdgeNodeNeighborSimilarity())
    with pytest.raises(UnsupportedShapeError):
        graph.get_node("n:a").get("similarity")


def test_shortest_path_over_existing_edges_only():
    """Candidate edges are scored on the matrix of the observed edges."""
    graph = _graph()
    exporter = AdjacencyExporter(edge_sids=["e"])
    graph.add_feature("cand", "path", EdgeNodeShortestPath(exporter=exporter))
    graph.add_feature(
        "cand", "path_or_unknown", EdgeNodeShortestPath(exporter=exporter, unreachable=None)
    )
    near = graph.add_undirected_edge("cand", "ad", ["n:a", "n:d"])
    far = graph.add_undirected_edge("cand", "az", ["n:a", "n:z"])
    assert near.get("path") == NumValue(2)
    assert far.get("path") == NumValue(-1)
    assert far.get("path_or_unknown") is UNKNOWN


def test_katz_scores_are_symmetric_for_undirected_edges():
    """The Katz score of a pair does not depend on endpoint order."""
    graph = _graph()
    exporter = AdjacencyExporter(edge_sids=["e"])
    graph.add_feature("cand", "katz", EdgeNodeKatz(exporter=exporter, beta=0.1))
    forward = graph.add_undirected_edge("cand", "ad", ["n:a", "n:d"])
    backward = graph.add_undirected_edge("cand", "da", ["n:d", "n:a"])
    assert forward.get("katz").number > 0
    assert forward.get("katz").number == pytest.approx(backward.get("katz").number)


def test_matrix_scores_must_say_which_matrix_they_read():
    """A matrix-backed score without a matrix cannot be instantiated."""

    class NoMatrix(_MatrixScore):
        def compute(self, item):
            return None

    with pytest.raises(TypeError):
        NoMatrix()
