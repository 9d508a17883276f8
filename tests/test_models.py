"""Unit tests for feature vectors and the baseline existence classifier."""

import numpy as np
import pytest

from graph_fm.aggregate import NeighborValueCount
from graph_fm.existence import EXIST, existence_feature, existence_probability
from graph_fm.features import ExplicitCateg, ExplicitNum, ExplicitString
from graph_fm.graph import Graph
from graph_fm.models import ExistenceClassifier, feature_matrix, feature_vector
from graph_fm.schema import Schema, SchemaType
from graph_fm.values import CategValue


def _graph() -> Graph:
    graph = Graph()
    nodes = Schema(SchemaType.NODE)
    nodes.add_feature("score", ExplicitNum())
    nodes.add_feature("color", ExplicitCateg(["blue", "red"]))
    nodes.add_feature("name", ExplicitString())
    graph.add_schema("n", nodes)
    edges = Schema(SchemaType.UNDIRECTED)
    edges.add_feature("weight", ExplicitNum())
    edges.add_feature("exist", existence_feature())
    graph.add_schema("e", edges)
    return graph


def test_feature_vector_flattens_every_kind():
    """Test that numbers, categories and composites are laid out in order."""
    graph = _graph()
    graph.add_feature("n", "colors", NeighborValueCount("n", "color"))
    a, b = graph.add_node("n", "a"), graph.add_node("n", "b")
    graph.add_undirected_edge("e", "ab", [a, b])
    a.set_number("score", 2.5)
    a.set_string("color", "red")
    b.set("color", CategValue("blue"))
    assert feature_vector(a, ["score", "color", "colors"]).tolist() == [2.5, 0, 1, 1, 0]
    assert feature_vector(b, ["color"]).tolist() == [1.0, 0.0]


def test_feature_vector_fills_unknown_slots_with_zeros():
    """Test that unknown values occupy the feature's slot count."""
    graph = _graph()
    node = graph.add_node("n", "a")
    assert feature_vector(node, ["score", "color"]).tolist() == [0.0, 0.0, 0.0]


def test_feature_vector_rejects_text():
    """Test that string values cannot be used numerically."""
    graph = _graph()
    node = graph.add_node("n", "a")
    node.set_string("name", "Ann")
    with pytest.raises(ValueError):
        feature_vector(node, ["name"])


def test_existence_classifier_fits_and_writes_predictions():
    """Test that predictions are stored as distributional existence values."""
    graph = _graph()
    nodes = [graph.add_node("n", str(i)) for i in range(9)]
    edges = []
    for i in range(8):
        edge = graph.add_undirected_edge("e", f"e{i}", [nodes[i], nodes[i + 1]])
        edge.set_number("weight", float(i))
        edges.append(edge)
    labels = [0, 0, 0, 0, 1, 1, 1, 1]
    model = ExistenceClassifier(["weight"]).fit(edges, labels)
    probabilities = model.predict(edges, "exist")

    assert feature_matrix(edges, ["weight"]).shape == (8, 1)
    assert probabilities.shape == (8,)
    assert np.all((probabilities >= 0) & (probabilities <= 1))
    assert probabilities[-1] > probabilities[0]
    assert edges[-1].get("exist").category == EXIST
    assert existence_probability(edges[0].get("exist")) == pytest.approx(probabilities[0])
