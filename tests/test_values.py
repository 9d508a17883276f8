"""Unit tests for feature values and graph item identifiers."""

import pickle

import pytest

from graph_fm.errors import ParseError, TypeMismatchError, UnknownCategoryError
from graph_fm.values import (
    UNKNOWN,
    CategValue,
    CompositeValue,
    GraphItemID,
    MultiIDValue,
    NumValue,
    StringValue,
    UnknownValue,
    is_unknown,
)


def test_graph_item_id_round_trips_through_text():
    """The string form of an identifier parses back to an equal identifier."""
    item_id = GraphItemID("person", "p1")
    assert str(item_id) == "person:p1"
    assert GraphItemID.parse("person:p1") == item_id


@pytest.mark.parametrize("text", ["person", ":p1", "person:", ""])
def test_graph_item_id_parse_rejects_malformed_text(text):
    """Identifiers without both a schema and an object part are rejected."""
    with pytest.raises(ParseError):
        GraphItemID.parse(text)


def test_unknown_is_a_singleton_that_survives_pickling():
    """There is exactly one unknown value, even after a pickle round trip."""
    assert UnknownValue() is UNKNOWN
    assert pickle.loads(pickle.dumps(UNKNOWN)) is UNKNOWN
    assert is_unknown(UNKNOWN)
    assert UNKNOWN.string_value == "?"
    assert not is_unknown(NumValue(0.0))


def test_values_compare_by_value():
    """Two values built from the same data are equal and hash alike."""
    assert NumValue(1) == NumValue(1.0)
    assert hash(StringValue("a")) == hash(StringValue("a"))
    assert CategValue("red", [0.0, 1.0]) == CategValue("red", (0.0, 1.0))
    assert NumValue(2).string_value == "2.0"


def test_categ_one_hot_aligns_probabilities_with_categories():
    """A one-hot value puts probability 1.0 on its category position."""
    value = CategValue.one_hot("red", ["blue", "red"])
    assert value.probs == (0.0, 1.0)
    assert value.prob(1) == 1.0
    with pytest.raises(UnknownCategoryError):
        CategValue.one_hot("green", ["blue", "red"])


def test_categ_distribution_requires_probabilities_summing_to_one():
    """Distributional values are validated against a unit total."""
    value = CategValue.distribution("EXIST", [0.25, 0.75])
    assert value.prob(0) == pytest.approx(0.25)
    with pytest.raises(TypeMismatchError):
        CategValue.distribution("EXIST", [0.5, 0.6])


def test_categ_prob_without_probabilities_raises():
    """Reading a probability from a bare category is an error."""
    with pytest.raises(TypeMismatchError):
        CategValue("red").prob(0)


def test_multi_id_value_is_an_ordered_set():
    """Duplicates are dropped, order is kept and equality ignores order."""
    a, b = GraphItemID("n", "1"), GraphItemID("n", "2")
    value = MultiIDValue((a, b, a))
    assert list(value) == [a, b]
    assert len(value) == 2
    assert a in value
    assert value == MultiIDValue((b, a))
    assert hash(value) == hash(MultiIDValue((b, a)))
    assert value.string_value == "n:1,n:2"


def test_multi_id_value_parse_skips_empty_entries():
    """Parsing tolerates blanks and trailing delimiters."""
    value = MultiIDValue.parse(" n:1, ,n:2,")
    assert list(value) == [GraphItemID("n", "1"), GraphItemID("n", "2")]
    with pytest.raises(ParseError):
        MultiIDValue.parse("n:1,broken")


def test_composite_value_supports_indexing_and_iteration():
    """Composite values behave like fixed-length sequences of values."""
    value = CompositeValue.of_numbers([0, 1.5])
    assert len(value) == 2
    assert value[1] == NumValue(1.5)
    assert [v.number for v in value] == [0.0, 1.5]
    assert value.string_value == "0.0,1.5"
