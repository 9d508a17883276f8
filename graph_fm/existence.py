"""Edge existence values shared by link-prediction features and predictors.

An existence feature is a categorical feature over ``(NOTEXIST, EXIST)``. Edges
fall in one of three states: known existing (KE), known not existing (KN) or
unknown (U).
"""

from __future__ import annotations

import enum
from typing import Optional

from .decorable import Decorable
from .features import ExplicitCateg
from .values import CategValue, FeatureValue, is_unknown

EXIST = "EXIST"
NOTEXIST = "NOTEXIST"
EXISTENCE = (NOTEXIST, EXIST)
EXIST_INDEX = EXISTENCE.index(EXIST)

EXIST_VALUE = CategValue.one_hot(EXIST, EXISTENCE)
NOTEXIST_VALUE = CategValue.one_hot(NOTEXIST, EXISTENCE)


class EdgeState(enum.Enum):
    KE = "known-existing"
    KN = "known-non-existing"
    U = "unknown"


def existence_feature(default: Optional[str] = None) -> ExplicitCateg:
    """Categorical existence feature; closed when ``default`` is given."""
    return ExplicitCateg(EXISTENCE, default=default)


def existence_value(probability: float) -> CategValue:
    """Distributional existence value for a predicted probability of existence."""
    probability = min(max(float(probability), 0.0), 1.0)
    category = EXIST if probability >= 0.5 else NOTEXIST
    return CategValue.distribution(category, (1.0 - probability, probability))


def existence_probability(value: FeatureValue) -> Optional[float]:
    """Probability of existence encoded by ``value`` (``None`` if unknown)."""
    if is_unknown(value):
        return None
    if not isinstance(value, CategValue):
        raise TypeError(f"Existence values are categorical, got {type(value).__name__}")
    if value.probs is None:
        return 1.0 if value.category == EXIST else 0.0
    return value.probs[EXIST_INDEX]


def edge_state(item: Decorable, feature_id: str) -> EdgeState:
    value = item.get(feature_id)
    if is_unknown(value):
        return EdgeState.U
    return EdgeState.KE if value.string_value == EXIST else EdgeState.KN
