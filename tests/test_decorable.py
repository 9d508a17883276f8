"""Unit tests for reading and writing feature values on graph items."""

import pytest

from graph_fm.derived import ComputedNum
from graph_fm.errors import NotExplicitError, NotFoundError, TypeMismatchError
from graph_fm.features import ExplicitCateg, ExplicitNum, ExplicitString
from graph_fm.graph import Graph
from graph_fm.schema import Schema, SchemaType
from graph_fm.values import UNKNOWN, CategValue, NumValue, StringValue


def _person_graph() -> Graph:
    graph = Graph()
    schema = Schema(SchemaType.NODE)
    schema.add_feature("age", ExplicitNum())
    schema.add_feature("name", ExplicitString())
    schema.add_feature("vip", ExplicitCateg(["no", "yes"], default="no"))
    graph.add_schema("person", schema)
    return graph


def test_set_and_get_round_trip():
    """A stored value is returned unchanged."""
    node = _person_graph().add_node("person", "p1")
    node.set("age", NumValue(42))
    assert node.get("age") == NumValue(42)
    assert node.has_value("age")


def test_missing_values_are_unknown_or_the_default():
    """Open features give unknown, closed features give their default."""
    node = _person_graph().add_node("person", "p1")
    assert node.get("name") is UNKNOWN
    assert node.get("vip") == CategValue("no", (1.0, 0.0))
    assert not node.has_value("name")


def test_setting_unknown_clears_the_value():
    """Unknown removes a stored value."""
    node = _person_graph().add_node("person", "p1")
    node.set_string("name", "Ada")
    node.remove("name")
    assert node.get("name") is UNKNOWN


def test_set_rejects_values_of_the_wrong_kind():
    """A string cannot be stored under a numeric feature."""
    node = _person_graph().add_node("person", "p1")
    with pytest.raises(TypeMismatchError):
        node.set("age", StringValue("old"))


def test_derived_features_are_read_only():
    """Writing to a derived feature raises ``NotExplicitError``."""
    graph = _person_graph()
    graph.add_feature("person", "twice", ComputedNum(lambda item: 2 * item.get("age").number))
    node = graph.add_node("person", "p1")
    node.set_number("age", 5)
    assert node.get("twice") == NumValue(10)
    with pytest.raises(NotExplicitError):
        node.set("twice", NumValue(1))


def test_set_many_checks_lengths_and_get_many_aligns():
    """Bulk access is positional and rejects mismatched lengths."""
    node = _person_graph().add_node("person", "p1")
    node.set_many(["age", "name"], [NumValue(3), StringValue("Bo")])
    assert node.get_many(["name", "age"]) == [StringValue("Bo"), NumValue(3)]
    with pytest.raises(ValueError):
        node.set_many(["age"], [NumValue(1), NumValue(2)])


def test_overridden_restores_the_value_even_on_error():
    """A temporary override is undone when the block raises."""
    node = _person_graph().add_node("person", "p1")
    node.set_number("age", 30)
    with pytest.raises(KeyError):
        with node.overridden("age", NumValue(1)):
            assert node.get("age") == NumValue(1)
            raise KeyError("boom")
    assert node.get("age") == NumValue(30)


def test_removed_feature_is_no_longer_visible_to_handles():
    """Existing handles see the current schema on every call."""
    graph = _person_graph()
    node = graph.add_node("person", "p1")
    node.set_number("age", 30)
    graph.remove_feature("person", "age")
    assert "age" not in node.feature_ids()
    with pytest.raises(NotFoundError):
        node.get("age")


def test_graph_object_holds_graph_schema_values():
    """The graph itself stores and restores values of its graph schema."""
    graph = Graph()
    graph.add_feature("graph", "title", ExplicitString())
    graph.add_feature("graph", "edges_seen", ExplicitNum(default=0.0))
    graph.set_string("title", "demo")
    assert graph.get("title") == StringValue("demo")
    assert graph.get("edges_seen") == NumValue(0)
    with graph.overridden("title", StringValue("other")):
        assert graph.get("title") == StringValue("other")
    assert graph.get("title") == StringValue("demo")
    assert graph.feature_ids() == ["title", "edges_seen"]
