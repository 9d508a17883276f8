"""Unit tests for the exception taxonomy."""

import pytest

from graph_fm import errors


@pytest.mark.parametrize(
    "error_type",
    [
        errors.TypeMismatchError,
        errors.NotExplicitError,
        errors.DuplicateFeatureError,
        errors.NotFoundError,
        errors.ParseError,
        errors.UnknownCategoryError,
        errors.ComplexEigenvalueError,
        errors.FeatureStateError,
        errors.ConfigurationError,
    ],
)
def test_every_engine_error_is_a_graph_feature_error(error_type):
    """Callers can catch engine failures through the base class."""
    assert issubclass(error_type, errors.GraphFeatureError)


def test_log_message_includes_context_only_when_present():
    """Context is appended to the message for logging."""
    assert errors.ParseError("bad id").log_message() == "bad id"
    error = errors.NotFoundError("missing", context={"feature": "age"})
    assert error.log_message() == "missing: {'feature': 'age'}"
    assert error.context == {"feature": "age"}


def test_unsupported_shape_error_names_feature_and_shapes():
    """The message says which feature expected which shape."""
    error = errors.UnsupportedShapeError("binary edge", "node", feature="katz")
    assert str(error) == "katz: expected binary edge, got node"
    assert (error.expected, error.actual) == ("binary edge", "node")


def test_complex_eigenvalues_are_unsupported_values():
    """Spectral failures are a kind of unsupported numeric input."""
    assert issubclass(errors.ComplexEigenvalueError, errors.UnsupportedValueError)
    assert issubclass(errors.NumericInstabilityWarning, RuntimeWarning)
