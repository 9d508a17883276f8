"""String-keyed factories for derived features, neighbor strategies and similarities.

Configuration files describe features as plain mappings::

    {"type": "edge_node_neighbor_similarity",
     "caching": true,
     "neighbor": {"type": "adjacent", "connecting_feature": "exist:EXIST"},
     "similarity": {"type": "jaccard"}}

``Registry.build`` turns such a mapping into an object. Parameters whose key
names a collaborator (``neighbor``, ``similarity``, ...) are built recursively;
``exporter`` is a mapping of ``AdjacencyExporter`` arguments.
"""

from __future__ import annotations

import builtins
from collections.abc import Iterable, Mapping
from typing import Any, Callable, Dict, Optional, Tuple

from . import aggregate, neighbors, similarity, structural
from .errors import ConfigurationError
from .matrices import AdjacencyExporter

DEFAULT_KINDS = ("feature", "neighbor", "set_similarity", "string_similarity")

# Parameter names whose mapping values are built from these kinds, in lookup order
NESTED_KINDS: Dict[str, Tuple[str, ...]] = {
    "neighbor": ("neighbor",),
    "first": ("neighbor",),
    "second": ("neighbor",),
    "adjacent": ("neighbor",),
    "similarity": ("set_similarity", "string_similarity"),
    "set_similarity": ("set_similarity",),
}


def _validate_key(label: str, value: str) -> str:
    if not isinstance(value, str) or not value.strip():
        raise TypeError(f"{label} must be a non-empty string.")
    return value


def _format_options(options: Iterable[str]) -> str:
    values = builtins.list(options)
    if not values:
        return "<none>"
    return ", ".join(sorted(values))


class Registry:
    """Registry of factories organized by kind/name."""

    def __init__(self, kinds: Iterable[str] = DEFAULT_KINDS) -> None:
        self._entries: Dict[str, Dict[str, Callable[..., Any]]] = {}
        for kind in kinds:
            self.add_kind(kind)

    def add_kind(self, kind: str, *, overwrite: bool = False) -> None:
        kind = _validate_key("kind", kind)
        if kind in self._entries and not overwrite:
            raise ValueError(f"Registry kind already exists: {kind!r}.")
        self._entries[kind] = {}

    def _bucket(self, kind: str) -> Dict[str, Callable[..., Any]]:
        kind = _validate_key("kind", kind)
        bucket = self._entries.get(kind)
        if bucket is None:
            available = _format_options(self._entries.keys())
            raise KeyError(f"Unknown registry kind: {kind!r}. Available kinds: {available}.")
        return bucket

    def register(
        self, kind: str, name: str, factory: Callable[..., Any], *, overwrite: bool = False
    ) -> None:
        bucket = self._bucket(kind)
        name = _validate_key("name", name)
        if name in bucket and not overwrite:
            raise ValueError(
                f"{kind} {name!r} is already registered; use overwrite=True to replace."
            )
        bucket[name] = factory

    def get(self, kind: str, name: str) -> Callable[..., Any]:
        bucket = self._bucket(kind)
        name = _validate_key("name", name)
        if name not in bucket:
            available = _format_options(bucket.keys())
            raise KeyError(f"{kind} {name!r} is not registered. Available: {available}.")
        return bucket[name]

    def list(self, kind: str) -> builtins.list[str]:
        return builtins.list(self._bucket(kind).keys())

    def kinds(self) -> builtins.list[str]:
        return builtins.list(self._entries.keys())

    def create(self, kind: str, name: str, **params: Any) -> Any:
        """Instantiate ``name`` of ``kind`` with ``params``.

        Raises:
            KeyError: If the kind or name is not registered.
            ConfigurationError: If the factory rejects the parameters.
        """
        factory = self.get(kind, name)
        try:
            return factory(**params)
        except TypeError as exc:
            raise ConfigurationError(
                f"Invalid parameters for {kind} {name!r}: {exc}",
                context={"kind": kind, "name": name, "params": sorted(params)},
            ) from exc

    def build(self, spec: Mapping[str, Any], kind: str = "feature") -> Any:
        """Build an object from a ``{"type": name, **params}`` mapping.

        Raises:
            ConfigurationError: If ``type`` is missing or not registered for ``kind``,
                or the parameters are invalid.
        """
        return self._build(spec, (kind,))

    def _build(self, spec: Mapping[str, Any], kinds: Tuple[str, ...]) -> Any:
        if not isinstance(spec, Mapping):
            raise ConfigurationError(f"Expected a mapping with a 'type' key, got {spec!r}")
        params = dict(spec)
        name = params.pop("type", None)
        if not isinstance(name, str) or not name:
            raise ConfigurationError(f"Missing 'type' in {dict(spec)!r}")
        kind = next((k for k in kinds if name in self._bucket(k)), None)
        if kind is None:
            available = _format_options(n for k in kinds for n in self.list(k))
            raise ConfigurationError(
                f"{'/'.join(kinds)} {name!r} is not registered. Available: {available}."
            )
        for key, value in list(params.items()):
            if key == "exporter" and isinstance(value, Mapping):
                params[key] = self._build_exporter(value)
            elif key in NESTED_KINDS and isinstance(value, Mapping):
                params[key] = self._build(value, NESTED_KINDS[key])
        return self.create(kind, name, **params)

    def _build_exporter(self, spec: Mapping[str, Any]) -> AdjacencyExporter:
        params = dict(spec)
        if isinstance(params.get("neighbor"), Mapping):
            params["neighbor"] = self._build(params["neighbor"], ("neighbor",))
        try:
            return AdjacencyExporter(**params)
        except TypeError as exc:
            raise ConfigurationError(f"Invalid exporter parameters: {exc}") from exc


BUILTINS: Dict[str, Dict[str, Callable[..., Any]]] = {
    "feature": {
        "neighbor_count": structural.NeighborCount,
        "incident_count": structural.IncidentCount,
        "adjacent_count": structural.AdjacentCount,
        "edge_node_preferential_attachment": structural.EdgeNodePreferentialAttachment,
        "edge_node_neighbor_similarity": structural.EdgeNodeNeighborSimilarity,
        "edge_node_shortest_path": structural.EdgeNodeShortestPath,
        "edge_node_katz": structural.EdgeNodeKatz,
        "neighbor_value_count": aggregate.NeighborValueCount,
        "neighbor_value_percent": aggregate.NeighborValuePercent,
        "neighbor_value_mode": aggregate.NeighborValueMode,
        "neighbor_value_difference": aggregate.NeighborValueDifference,
        "edge_node_value_match": aggregate.EdgeNodeValueMatch,
        "edge_node_string_similarity": aggregate.EdgeNodeStringSimilarity,
        "edge_node_label_match": aggregate.EdgeNodeLabelMatch,
    },
    "neighbor": {
        "adjacent": neighbors.Adjacent,
        "incident": neighbors.Incident,
        "distance_n": neighbors.DistanceN,
        "neighbors_of_neighbors": neighbors.NeighborsOfNeighbors,
    },
    "set_similarity": {
        "common_neighbor": similarity.CommonNeighbor,
        "jaccard": similarity.Jaccard,
        "cosine": similarity.CosineSet,
    },
    "string_similarity": {
        "character_match": similarity.CharacterMatch,
        "character_set": similarity.CharacterSetSimilarity,
        "soundex": similarity.SoundexSimilarity,
    },
}


def default_registry(registry: Optional[Registry] = None) -> Registry:
    """Return ``registry`` (or a new one) populated with every built-in factory."""
    registry = registry if registry is not None else Registry()
    for kind, factories in BUILTINS.items():
        if kind not in registry.kinds():
            registry.add_kind(kind)
        for name, factory in factories.items():
            registry.register(kind, name, factory, overwrite=True)
    return registry


__all__ = [
    "DEFAULT_KINDS",
    "NESTED_KINDS",
    "BUILTINS",
    "Registry",
    "default_registry",
]
