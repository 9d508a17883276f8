"""Graph Feature Model: typed features over heterogeneous graphs.

This package provides:
- typed feature values and feature definitions grouped into per-schema registries
- a graph of nodes and directed/undirected (hyper)edges whose items carry values
- derived features computed on demand, with optional per-item caching
- neighbor strategies, set/string similarities and graph-scoped matrices
- structural and aggregate link-prediction features, built from configuration
- data IO, an edge existence classifier, metrics and a command line pipeline
"""

__all__ = [
    "values",
    "errors",
    "features",
    "schema",
    "decorable",
    "graph",
    "derived",
    "neighbors",
    "similarity",
    "matrices",
    "existence",
    "structural",
    "aggregate",
    "registry",
    "io",
    "models",
    "metrics",
    "pipeline",
    "cli",
    "utils",
    "logging_utils",
]
