"""Unit tests for schemas and their copy-on-write update discipline."""

import pytest

from graph_fm.errors import DuplicateFeatureError, NotFoundError
from graph_fm.features import ExplicitCateg, ExplicitNum, ExplicitString, NumFeature
from graph_fm.graph import Graph
from graph_fm.schema import Schema, SchemaType, validate_identifier


def test_schema_keeps_features_in_insertion_order():
    """Feature ids are listed in the order they were added."""
    schema = Schema(SchemaType.NODE)
    schema.add_feature("b", ExplicitNum())
    schema.add_feature("a", ExplicitString())
    assert schema.feature_ids() == ["b", "a"]
    assert schema.feature_ids(NumFeature) == ["b"]
    assert len(schema) == 2
    assert "a" in schema


def test_schema_rejects_duplicates_and_missing_features():
    """Adding an existing id or removing a missing one raises a domain error."""
    schema = Schema(SchemaType.NODE)
    schema.add_feature("age", ExplicitNum())
    with pytest.raises(DuplicateFeatureError):
        schema.add_feature("age", ExplicitNum())
    with pytest.raises(NotFoundError):
        schema.remove_feature("height")
    with pytest.raises(NotFoundError):
        schema.get_feature("height")


def test_schema_rejects_invalid_identifiers_and_non_features():
    """Feature ids follow the identifier pattern and values must be features."""
    schema = Schema(SchemaType.NODE)
    with pytest.raises(ValueError):
        schema.add_feature("bad id", ExplicitNum())
    with pytest.raises(TypeError):
        schema.add_feature("age", "not a feature")  # type: ignore[arg-type]
    assert validate_identifier("schema id", "edge-candidate:2") == "edge-candidate:2"


def test_get_schema_returns_a_detached_copy():
    """Editing a fetched schema has no effect until it is written back."""
    graph = Graph()
    graph.add_schema("person", Schema(SchemaType.NODE))
    fetched = graph.get_schema("person")
    fetched.add_feature("age", ExplicitNum())
    assert not graph.get_schema("person").has_feature("age")

    graph.update_schema("person", fetched)
    assert graph.get_schema("person").has_feature("age")


def test_update_schema_stamps_increasing_versions():
    """Every update produces a newer schema version."""
    graph = Graph()
    graph.add_schema("person", Schema(SchemaType.NODE))
    first = graph.get_schema("person").version
    graph.add_feature("person", "age", ExplicitNum())
    second = graph.get_schema("person").version
    assert second > first


def test_update_schema_cannot_change_the_schema_type():
    """A node schema cannot be replaced by an edge schema."""
    graph = Graph()
    graph.add_schema("person", Schema(SchemaType.NODE))
    with pytest.raises(ValueError):
        graph.update_schema("person", Schema(SchemaType.UNDIRECTED))


def test_add_schema_rejects_duplicates_and_second_graph_schema():
    """Schema ids are unique and the graph schema exists exactly once."""
    graph = Graph()
    graph.add_schema("person", Schema(SchemaType.NODE))
    with pytest.raises(ValueError):
        graph.add_schema("person", Schema(SchemaType.NODE))
    with pytest.raises(ValueError):
        graph.add_schema("other", Schema(SchemaType.GRAPH))
    assert graph.schema_ids(SchemaType.GRAPH) == ["graph"]


def test_removed_feature_drops_stored_values():
    """Re-adding a removed feature starts without the old values."""
    graph = Graph()
    graph.add_schema("person", Schema(SchemaType.NODE))
    graph.add_feature("person", "color", ExplicitCateg(["blue", "red"]))
    node = graph.add_node("person", "p1")
    node.set_string("color", "red")

    graph.remove_feature("person", "color")
    graph.add_feature("person", "color", ExplicitCateg(["blue", "red"]))
    assert not node.has_value("color")


def test_remove_schema_requires_no_items():
    """A schema with items cannot be removed; an empty one can."""
    graph = Graph()
    graph.add_schema("person", Schema(SchemaType.NODE))
    graph.add_schema("place", Schema(SchemaType.NODE))
    graph.add_node("person", "p1")
    with pytest.raises(ValueError):
        graph.remove_schema("person")
    graph.remove_schema("place")
    assert not graph.has_schema("place")
    with pytest.raises(NotFoundError):
        graph.get_schema("place")
