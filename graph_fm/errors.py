"""Exception taxonomy for the graph feature model.

Every error raised by the engine derives from :class:`GraphFeatureError` so that
collaborators can catch engine failures in one place. Errors are always raised
synchronously to the immediate caller; nothing in the engine retries or recovers
silently.
"""

from __future__ import annotations

from typing import Any, Mapping, Optional


class GraphFeatureError(Exception):
    """Base exception for graph feature model failures."""

    def __init__(
        self,
        message: str,
        *,
        context: Optional[Mapping[str, Any]] = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.context = dict(context) if context else {}

    def log_message(self) -> str:
        if not self.context:
            return str(self)
        return f"{self}: {self.context}"


class TypeMismatchError(GraphFeatureError):
    """A value's kind is incompatible with the kind declared by its feature."""


class UnsupportedShapeError(GraphFeatureError):
    """A derived feature was evaluated on an item of the wrong structure."""

    def __init__(self, expected: str, actual: str, *, feature: str = "") -> None:
        prefix = f"{feature}: " if feature else ""
        super().__init__(
            f"{prefix}expected {expected}, got {actual}",
            context={"expected": expected, "actual": actual},
        )
        self.expected = expected
        self.actual = actual


class NotExplicitError(GraphFeatureError):
    """Attempted to write a value to a derived (read-only) feature."""


class DuplicateFeatureError(GraphFeatureError):
    """A feature id is already defined in the schema."""


class NotFoundError(GraphFeatureError):
    """A feature, schema or graph item does not exist."""


class ParseError(GraphFeatureError):
    """Raw text could not be coerced into a feature value."""


class UnknownCategoryError(GraphFeatureError):
    """A category is not part of a categorical feature's category list."""


class UnsupportedValueError(GraphFeatureError):
    """A numeric computation is undefined for the given input."""


class ComplexEigenvalueError(UnsupportedValueError):
    """The adjacency matrix has eigenvalues with a nonzero imaginary part."""


class FeatureStateError(GraphFeatureError):
    """A feature or strategy was used outside of its lifecycle."""


class ConfigurationError(GraphFeatureError, ValueError):
    """A registry or pipeline configuration is invalid."""


class NumericInstabilityWarning(RuntimeWarning):
    """Katz beta lies in the numerically unstable regime (1/beta <= lambda_max)."""


__all__ = [
    "GraphFeatureError",
    "TypeMismatchError",
    "UnsupportedShapeError",
    "NotExplicitError",
    "DuplicateFeatureError",
    "NotFoundError",
    "ParseError",
    "UnknownCategoryError",
    "UnsupportedValueError",
    "ComplexEigenvalueError",
    "FeatureStateError",
    "ConfigurationError",
    "NumericInstabilityWarning",
]
