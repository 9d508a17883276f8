"""Unit tests for derived feature lifecycle, caching and validation."""

import pytest

from graph_fm.derived import (
    ComputedComposite,
    ComputedNum,
    FeatureState,
    SubFeature,
    require_binary_edge,
    require_node,
)
from graph_fm.errors import (
    FeatureStateError,
    NotFoundError,
    TypeMismatchError,
    UnsupportedShapeError,
)
from graph_fm.graph import Graph
from graph_fm.schema import Schema, SchemaType
from graph_fm.values import UNKNOWN, CompositeValue, NumValue


def _graph() -> Graph:
    graph = Graph()
    graph.add_schema("n", Schema(SchemaType.NODE))
    graph.add_schema("e", Schema(SchemaType.UNDIRECTED))
    return graph


class _Counter:
    def __init__(self):
        self.calls = 0

    def __call__(self, item):
        self.calls += 1
        return self.calls


def test_unattached_features_refuse_to_evaluate():
    """Using a derived feature before it joins a schema is a state error."""
    feature = ComputedNum(lambda item: 1)
    assert feature.state is FeatureState.UNINITIALIZED
    with pytest.raises(FeatureStateError):
        _ = feature.graph


def test_attach_moves_the_feature_to_ready_and_detach_back():
    """Adding the feature to a schema attaches it; removing it detaches it."""
    graph = _graph()
    feature = ComputedNum(lambda item: 1)
    graph.add_feature("n", "one", feature)
    assert feature.state is FeatureState.READY
    assert (feature.schema_id, feature.feature_id) == ("n", "one")
    graph.remove_feature("n", "one")
    assert feature.state is FeatureState.UNINITIALIZED


def test_a_feature_instance_cannot_be_attached_twice():
    """One instance serves exactly one schema position."""
    graph = _graph()
    feature = ComputedNum(lambda item: 1)
    graph.add_feature("n", "one", feature)
    with pytest.raises(FeatureStateError):
        graph.add_feature("n", "again", feature)
    assert not graph.get_schema("n").has_feature("again")


def test_without_caching_every_read_recomputes():
    """Non-caching features call their computation on each read."""
    graph = _graph()
    counter = _Counter()
    graph.add_feature("n", "count", ComputedNum(counter))
    node = graph.add_node("n", "a")
    assert node.get("count") == NumValue(1)
    assert node.get("count") == NumValue(2)


def test_caching_reuses_values_until_reset():
    """Cached values are reused until the cache is reset for the item."""
    graph = _graph()
    counter = _Counter()
    feature = ComputedNum(counter, caching=True)
    graph.add_feature("n", "count", feature)
    node = graph.add_node("n", "a")
    assert node.get("count") == NumValue(1)
    assert node.get("count") == NumValue(1)
    feature.reset_cache(node)
    assert node.get("count") == NumValue(2)
    feature.caching = False
    assert node.get("count") == NumValue(3)


def test_reset_cache_on_a_non_caching_feature_raises():
    """Only caching features have a cache to reset."""
    graph = _graph()
    feature = ComputedNum(lambda item: 1)
    graph.add_feature("n", "one", feature)
    with pytest.raises(FeatureStateError):
        feature.reset_cache()


def test_computed_num_maps_none_to_unknown():
    """A callable returning ``None`` yields the unknown value."""
    graph = _graph()
    graph.add_feature("n", "nothing", ComputedNum(lambda item: None))
    assert graph.add_node("n", "a").get("nothing") is UNKNOWN


def test_composite_values_must_match_the_declared_arity():
    """A composite with two descriptors rejects a three-element result."""
    graph = _graph()
    good = ComputedComposite(lambda item: [1, 2], ["x", SubFeature("y")])
    bad = ComputedComposite(lambda item: [1, 2, 3], ["x", "y"])
    graph.add_feature("n", "good", good)
    graph.add_feature("n", "bad", bad)
    node = graph.add_node("n", "a")
    assert node.get("good") == CompositeValue.of_numbers([1, 2])
    assert [d.name for d in good.descriptors] == ["x", "y"]
    with pytest.raises(TypeMismatchError):
        node.get("bad")


def test_shape_guards_reject_the_wrong_items():
    """Node-only and binary-edge-only computations reject other shapes."""
    graph = _graph()
    nodes = [graph.add_node("n", x) for x in "abc"]
    pair = graph.add_undirected_edge("e", "ab", nodes[:2])
    hyper = graph.add_undirected_edge("e", "abc", nodes)
    assert require_binary_edge(pair) == (nodes[0], nodes[1])
    with pytest.raises(UnsupportedShapeError):
        require_binary_edge(hyper)
    with pytest.raises(UnsupportedShapeError):
        require_node(pair)
    with pytest.raises(UnsupportedShapeError):
        require_binary_edge(graph)


class _SchemaSize(ComputedNum):
    """Reads its schema while being attached."""

    def __init__(self):
        super().__init__(lambda item: self.size)
        self.size = None

    def configure(self):
        self.size = len(self.graph.get_schema(self.schema_id))


class _Refusing(ComputedNum):
    def configure(self):
        _ = self.graph
        raise ValueError("refused")


def test_configure_can_read_the_graph_it_is_attached_to():
    """The attach hook sees its graph, schema and feature id."""
    graph = _graph()
    feature = _SchemaSize()
    graph.add_feature("n", "size", feature)
    assert feature.size == 1
    assert graph.add_node("n", "a").get("size") == NumValue(1)


def test_failed_configure_leaves_the_feature_unattached():
    """A feature whose hook fails is rolled back and can be attached elsewhere."""
    graph = _graph()
    feature = _Refusing(lambda item: 1)
    with pytest.raises(ValueError):
        graph.add_feature("n", "refused", feature)
    assert feature.state is FeatureState.UNINITIALIZED
    assert not graph.get_schema("n").has_feature("refused")
    with pytest.raises(FeatureStateError):
        _ = feature.graph


def test_removed_caching_feature_never_serves_stale_values():
    """After removal, reads fail instead of returning the cached value."""
    graph = _graph()
    feature = ComputedNum(_Counter(), caching=True)
    graph.add_feature("n", "count", feature)
    node = graph.add_node("n", "a")
    assert node.get("count") == NumValue(1)
    graph.remove_feature("n", "count")
    with pytest.raises(NotFoundError):
        node.get("count")
    with pytest.raises(FeatureStateError):
        feature.value(node)


def test_reset_cache_without_an_item_clears_every_item(caplog):
    """A full reset recomputes all items; cache hits are logged at debug level."""
    graph = _graph()
    counter = _Counter()
    feature = ComputedNum(counter, caching=True)
    graph.add_feature("n", "count", feature)
    a, b = graph.add_node("n", "a"), graph.add_node("n", "b")
    assert (a.get("count"), b.get("count")) == (NumValue(1), NumValue(2))
    with caplog.at_level("DEBUG", logger="graph_fm.derived"):
        assert a.get("count") == NumValue(1)
    assert "Cache hit for count" in caplog.text
    feature.reset_cache()
    assert (a.get("count"), b.get("count")) == (NumValue(3), NumValue(4))


def test_composite_of_unknown_entries_keeps_its_arity():
    """Unknown sub-values still fill their positions."""
    graph = _graph()
    feature = ComputedComposite(lambda item: [UNKNOWN, UNKNOWN], ["x", "y"])
    graph.add_feature("n", "pair", feature)
    value = graph.add_node("n", "a").get("pair")
    assert len(value) == feature.arity == 2
    assert all(v is UNKNOWN for v in value.values)
