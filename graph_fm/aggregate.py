"""Derived features that aggregate or compare feature values of related items.

Neighbor aggregates (over a neighbor strategy, default ``Adjacent``):
- ``NeighborValueCount``: per-category counts of a categorical feature
- ``NeighborValuePercent``: the same counts as fractions of their total
- ``NeighborValueMode``: the most frequent category
- ``NeighborValueDifference``: absolute differences of numeric features

Edge-node comparisons (binary edges only):
- ``EdgeNodeValueMatch``: 1 when both nodes hold the same value, else 0
- ``EdgeNodeStringSimilarity``: string similarity of the nodes' values
- ``EdgeNodeLabelMatch``: one indicator per pair of categories

The aggregated feature lives in another schema (``feature_sid``); its category
list is read when the aggregate is attached, which fixes the composite arity.
"""

from __future__ import annotations

from collections import Counter
from typing import Dict, Iterable, List, Optional, Sequence

from .decorable import Decorable
from .derived import (
    DerivedCateg,
    DerivedComposite,
    DerivedNum,
    SubFeature,
    require_binary_edge,
    require_graph_item,
)
from .errors import TypeMismatchError
from .features import CategFeature, NumFeature
from .graph import DirectedEdge, GraphItem
from .neighbors import Adjacent, Neighbor
from .similarity import CharacterMatch, StringSimilarity
from .values import UNKNOWN, CategValue, CompositeValue, FeatureValue, NumValue, is_unknown


def _categorical(graph, feature_sid: str, feature_id: str) -> CategFeature:
    feature = graph.get_schema(feature_sid).get_feature(feature_id)
    if not isinstance(feature, CategFeature):
        raise TypeMismatchError(
            f"{feature_sid}.{feature_id} must be categorical, got {type(feature).__name__}"
        )
    return feature


def _tally(
    neighbors: Iterable[GraphItem],
    feature_sid: str,
    feature_id: str,
    categories: Sequence[str],
    weight_by_prob: bool = False,
) -> Dict[str, float]:
    totals = dict.fromkeys(categories, 0.0)
    for neighbor in neighbors:
        if neighbor.schema_id != feature_sid:
            continue
        value = neighbor.get(feature_id)
        if is_unknown(value):
            continue
        category = value.string_value
        weight = 1.0
        if weight_by_prob and isinstance(value, CategValue) and value.probs is not None:
            weight = value.probs[categories.index(category)]
        totals[category] += weight
    return totals


class NeighborValueCount(DerivedComposite):
    """Count neighbors per category of the categorical feature ``feature_sid.feature_id``.

    Neighbors from other schemas and neighbors whose value is unknown are not
    counted. With ``weight_by_prob`` each neighbor adds the probability of its
    category instead of 1.
    """

    label = "count"

    def __init__(
        self,
        feature_sid: str,
        feature_id: str,
        neighbor: Optional[Neighbor] = None,
        weight_by_prob: bool = False,
        caching: bool = False,
    ) -> None:
        super().__init__(caching)
        self.feature_sid = feature_sid
        self.target_fid = feature_id
        self.neighbor = neighbor if neighbor is not None else Adjacent()
        self.weight_by_prob = weight_by_prob
        self._categories: List[str] = []

    def configure(self) -> None:
        self._categories = _categorical(self.graph, self.feature_sid, self.target_fid).categories

    def build_descriptors(self) -> Sequence[SubFeature]:
        return [SubFeature(f"{self.label}-{c}") for c in self._categories]

    def counts(self, item: Decorable) -> Dict[str, float]:
        item = require_graph_item(item, self.feature_id)
        return _tally(
            self.neighbor.neighbors(item),
            self.feature_sid,
            self.target_fid,
            self._categories,
            self.weight_by_prob,
        )

    def compute(self, item: Decorable) -> FeatureValue:
        return CompositeValue.of_numbers(self.counts(item).values())


class NeighborValuePercent(NeighborValueCount):
    """Fraction of counted neighbors per category (all zero when none are counted)."""

    label = "percent"

    def compute(self, item: Decorable) -> FeatureValue:
        counts = self.counts(item)
        total = sum(counts.values())
        if total == 0:
            return CompositeValue.of_numbers(0.0 for _ in counts)
        return CompositeValue.of_numbers(count / total for count in counts.values())


class NeighborValueMode(DerivedCateg):
    """Most frequent category among the neighbors.

    Ties and empty neighborhoods give ``UNKNOWN``, or ``no_mode_category`` when it
    is configured; that category is appended to the category list if needed.
    """

    def __init__(
        self,
        feature_sid: str,
        feature_id: str,
        neighbor: Optional[Neighbor] = None,
        no_mode_category: Optional[str] = None,
        caching: bool = False,
    ) -> None:
        super().__init__(caching=caching)
        self.feature_sid = feature_sid
        self.target_fid = feature_id
        self.neighbor = neighbor if neighbor is not None else Adjacent()
        self.no_mode_category = no_mode_category
        self._counted: List[str] = []

    def configure(self) -> None:
        self._counted = _categorical(self.graph, self.feature_sid, self.target_fid).categories
        categories = list(self._counted)
        if self.no_mode_category is not None and self.no_mode_category not in categories:
            categories.append(self.no_mode_category)
        self._set_categories(categories)

    def compute(self, item: Decorable) -> FeatureValue:
        item = require_graph_item(item, self.feature_id)
        tally = _tally(
            self.neighbor.neighbors(item), self.feature_sid, self.target_fid, self._counted
        )
        counts = Counter({c: n for c, n in tally.items() if n > 0})
        ranked = counts.most_common(2)
        if ranked and (len(ranked) == 1 or ranked[0][1] > ranked[1][1]):
            return self.one_hot(ranked[0][0])
        if self.no_mode_category is not None:
            return self.one_hot(self.no_mode_category)
        return UNKNOWN


class NeighborValueDifference(DerivedComposite):
    """Absolute difference of numeric features across the neighbors.

    For each feature the first known neighbor value minus all later known values
    is reported (``|a - b|`` for the two nodes of an edge under ``Incident``).
    Features default to every numeric feature of ``feature_sid``.
    """

    def __init__(
        self,
        feature_sid: str,
        feature_ids: Optional[Sequence[str]] = None,
        neighbor: Optional[Neighbor] = None,
        caching: bool = False,
    ) -> None:
        super().__init__(caching)
        self.feature_sid = feature_sid
        self._requested = None if feature_ids is None else list(feature_ids)
        self._resolved: List[str] = []
        self.neighbor = neighbor if neighbor is not None else Adjacent()

    def configure(self) -> None:
        schema = self.graph.get_schema(self.feature_sid)
        if self._requested is None:
            resolved = schema.feature_ids(NumFeature)
        else:
            resolved = list(self._requested)
        for fid in resolved:
            if not isinstance(schema.get_feature(fid), NumFeature):
                raise TypeMismatchError(f"{self.feature_sid}.{fid} must be numeric")
        self._resolved = resolved

    def _on_detach(self) -> None:
        super()._on_detach()
        self._resolved = []

    @property
    def feature_ids(self) -> List[str]:
        """Numeric features compared, as resolved when the feature was attached."""
        return list(self._resolved)

    def build_descriptors(self) -> Sequence[SubFeature]:
        return [SubFeature(f"diff-{fid}") for fid in self._resolved]

    def compute(self, item: Decorable) -> FeatureValue:
        item = require_graph_item(item, self.feature_id)
        neighbors = [
            n for n in self.neighbor.neighbors(item) if n.schema_id == self.feature_sid
        ]
        differences = []
        for fid in self._resolved:
            known = [n.get(fid) for n in neighbors]
            numbers = [v.number for v in known if isinstance(v, NumValue)]
            if not numbers:
                differences.append(0.0)
                continue
            differences.append(abs(numbers[0] - sum(numbers[1:])))
        return CompositeValue.of_numbers(differences)


def _endpoint_values(item: Decorable, feature_id: str, owner: str) -> List[FeatureValue]:
    first, second = require_binary_edge(item, owner)
    return [first.get(feature_id), second.get(feature_id)]


class EdgeNodeValueMatch(DerivedNum):
    """1.0 when both nodes of a binary edge have equal known values, else 0.0."""

    def __init__(self, feature_id: str, caching: bool = False) -> None:
        super().__init__(caching)
        self.target_fid = feature_id

    def compute(self, item: Decorable) -> FeatureValue:
        first, second = _endpoint_values(item, self.target_fid, self.feature_id)
        if is_unknown(first) or is_unknown(second):
            return NumValue(0.0)
        return NumValue(1.0 if first.string_value == second.string_value else 0.0)


class EdgeNodeStringSimilarity(DerivedNum):
    """String similarity of the values of the two nodes of a binary edge."""

    def __init__(
        self,
        feature_id: str,
        similarity: Optional[StringSimilarity] = None,
        caching: bool = False,
    ) -> None:
        super().__init__(caching)
        self.target_fid = feature_id
        self.similarity = similarity if similarity is not None else CharacterMatch()

    def compute(self, item: Decorable) -> FeatureValue:
        first, second = _endpoint_values(item, self.target_fid, self.feature_id)
        if is_unknown(first) or is_unknown(second):
            return NumValue(0.0)
        return NumValue(self.similarity(first.string_value, second.string_value))


class EdgeNodeLabelMatch(DerivedComposite):
    """Indicator per category pair of the two nodes of a binary edge.

    Positions are named ``fid-c1-c2``. By default every ordered pair has a
    position and undirected edges match in both orders; with ``unordered_pairs``
    only pairs with ``c1`` at or before ``c2`` in category order are kept.
    """

    def __init__(
        self,
        feature_sid: str,
        feature_id: str,
        unordered_pairs: bool = False,
        delimiter: str = "-",
        caching: bool = False,
    ) -> None:
        super().__init__(caching)
        self.feature_sid = feature_sid
        self.target_fid = feature_id
        self.unordered_pairs = unordered_pairs
        self.delimiter = delimiter
        self._categories: List[str] = []

    def configure(self) -> None:
        self._categories = _categorical(self.graph, self.feature_sid, self.target_fid).categories

    def _name(self, first: str, second: str) -> str:
        return self.delimiter.join([self.target_fid, first, second])

    def build_descriptors(self) -> Sequence[SubFeature]:
        names = []
        for i, first in enumerate(self._categories):
            for j, second in enumerate(self._categories):
                if self.unordered_pairs and j < i:
                    continue
                names.append(SubFeature(self._name(first, second)))
        return names

    def _matched(self, first: str, second: str, directed: bool) -> set:
        if self.unordered_pairs:
            ordered = sorted([first, second], key=self._categories.index)
            return {self._name(*ordered)}
        matched = {self._name(first, second)}
        if not directed:
            matched.add(self._name(second, first))
        return matched

    def compute(self, item: Decorable) -> FeatureValue:
        first, second = _endpoint_values(item, self.target_fid, self.feature_id)
        matched: set = set()
        if not is_unknown(first) and not is_unknown(second):
            matched = self._matched(
                first.string_value, second.string_value, isinstance(item, DirectedEdge)
            )
        return CompositeValue.of_numbers(
            1.0 if d.name in matched else 0.0 for d in self.descriptors
        )


__all__ = [
    "NeighborValueCount",
    "NeighborValuePercent",
    "NeighborValueMode",
    "NeighborValueDifference",
    "EdgeNodeValueMatch",
    "EdgeNodeStringSimilarity",
    "EdgeNodeLabelMatch",
]
