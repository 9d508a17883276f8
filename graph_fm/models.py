"""Baseline edge existence model over graph feature values.

Feature values of an item are flattened into a numeric vector (``feature_vector``)
and scored by a standardised logistic regression. Predictions are written back
to the graph as distributional existence values.
"""

from typing import List, Optional, Sequence

import numpy as np
from sklearn.linear_model import LogisticRegression
from sklearn.preprocessing import StandardScaler

from .decorable import Decorable
from .existence import existence_value
from .features import Feature
from .values import CategValue, CompositeValue, FeatureValue, NumValue, is_unknown


def _flatten_value(value: FeatureValue, feature: Optional[Feature]) -> List[float]:
    if is_unknown(value):
        # Unknown fills every slot the definition declares with 0
        slots = feature.slot_count() if feature is not None else 1
        return [0.0] * slots
    if isinstance(value, NumValue):
        return [value.number]
    if isinstance(value, CategValue):
        if value.probs is not None:
            return list(value.probs)
        if feature is None:
            raise ValueError(f"Cannot one-hot encode {value!r} without its feature definition")
        return [1.0 if c == value.category else 0.0 for c in feature.categories]  # type: ignore[attr-defined]
    if isinstance(value, CompositeValue):
        flat: List[float] = []
        for part in value:
            flat.extend(_flatten_value(part, None))
        return flat
    raise ValueError(f"{type(value).__name__} cannot be used as a numeric feature")


def feature_vector(item: Decorable, feature_ids: Sequence[str]) -> np.ndarray:
    """Flatten the values of ``feature_ids`` on ``item`` into one float vector.

    Numbers stay as they are, categorical values give their probabilities (or a
    one-hot encoding), composites are flattened in order and unknown values give
    zeros for each slot of the feature.
    """
    flat: List[float] = []
    for feature_id in feature_ids:
        feature = item.graph._live_schema(item.schema_id).get_feature(feature_id)
        flat.extend(_flatten_value(item.get(feature_id), feature))
    return np.asarray(flat, dtype=float)


def feature_matrix(items: Sequence[Decorable], feature_ids: Sequence[str]) -> np.ndarray:
    if not items:
        return np.zeros((0, 0))
    return np.vstack([feature_vector(item, feature_ids) for item in items])


class ExistenceClassifier:
    """Standardised logistic regression predicting whether edges exist."""

    def __init__(self, feature_ids: Sequence[str], max_iter: int = 1000) -> None:
        self.feature_ids = list(feature_ids)
        self.scaler = StandardScaler()
        self.clf = LogisticRegression(max_iter=max_iter)

    def fit(self, edges: Sequence[Decorable], labels: Sequence[int]) -> "ExistenceClassifier":
        """Fit the model on the feature vectors of ``edges``."""
        x = self.scaler.fit_transform(feature_matrix(edges, self.feature_ids))
        self.clf.fit(x, np.asarray(labels, dtype=int))
        return self

    def predict_proba(self, edges: Sequence[Decorable]) -> np.ndarray:
        """Predict probabilities of existence."""
        x = self.scaler.transform(feature_matrix(edges, self.feature_ids))
        return self.clf.predict_proba(x)[:, 1]

    def predict(self, edges: Sequence[Decorable], existence_fid: str) -> np.ndarray:
        """Predict and store existence values on ``edges`` under ``existence_fid``."""
        probabilities = self.predict_proba(edges)
        for edge, probability in zip(edges, probabilities):
            value = existence_value(float(probability))
            edge.set(existence_fid, value)
        return probabilities


__all__ = ["feature_vector", "feature_matrix", "ExistenceClassifier"]
