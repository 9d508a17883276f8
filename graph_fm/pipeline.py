"""End-to-end feature computation and edge existence scoring.

This module wires together data loading, graph construction, derived feature
attachment, feature export and (optionally) link scoring. It is intended to be
easy to follow, with minimal assumptions about prior knowledge.
"""

from __future__ import annotations

import logging
import os
from typing import Any, Dict, List, Mapping, Optional, Sequence

import numpy as np
from sklearn.model_selection import train_test_split

from .errors import ConfigurationError
from .existence import EXIST_VALUE, NOTEXIST_VALUE, EdgeState, edge_state, existence_feature
from .graph import Edge, Graph
from .io import build_graph, endpoint_columns, feature_table, load_tables
from .metrics import compute_classification_metrics
from .models import ExistenceClassifier
from .registry import Registry, default_registry
from .schema import Schema, SchemaType
from .utils import create_run_dir, save_config, set_all_seeds, write_json

logger = logging.getLogger(__name__)

EXISTENCE_FID = "exist"


def _step(index: int, total: int, message: str) -> None:
    print(f"Step {index}/{total}: {message}", flush=True)
    logger.info("Step %d/%d: %s", index, total, message)


def attach_features(
    graph: Graph,
    entries: Sequence[Mapping[str, Any]],
    registry: Registry,
    default_schema: Optional[str] = None,
) -> List[str]:
    """Build each ``{"schema", "id", "type", **params}`` entry and add it to its schema.

    Returns:
        The ``schema.id`` names of the attached features, in order.

    Raises:
        ConfigurationError: If an entry lacks an id or schema, or cannot be built.
    """
    attached = []
    for entry in entries:
        params = dict(entry)
        feature_id = params.pop("id", None)
        schema_id = params.pop("schema", default_schema)
        if not feature_id or not schema_id:
            raise ConfigurationError(f"Feature entries need 'id' and 'schema': {dict(entry)!r}")
        feature = registry.build(params)
        graph.add_feature(str(schema_id), str(feature_id), feature)
        attached.append(f"{schema_id}.{feature_id}")
        logger.debug("Attached %s.%s (%s)", schema_id, feature_id, params.get("type"))
    return attached


def add_candidate_edges(
    graph: Graph,
    pairs: Sequence[Sequence[Any]],
    node_schema: str,
    candidate_schema: str,
    like_schema: str,
) -> List[Edge]:
    """Add one candidate edge per (source, target) pair, with an existence feature.

    Candidates use the same edge type as ``like_schema``.
    """
    schema = Schema(graph.schema_type(like_schema))
    schema.add_feature(EXISTENCE_FID, existence_feature())
    graph.add_schema(candidate_schema, schema)
    directed = schema.schema_type is SchemaType.DIRECTED
    candidates: List[Edge] = []
    for position, (source, target) in enumerate(pairs):
        obj_id = f"c{position}"
        first, second = f"{node_schema}:{source}", f"{node_schema}:{target}"
        edge: Edge
        if directed:
            edge = graph.add_directed_edge(candidate_schema, obj_id, [first], [second])
        else:
            edge = graph.add_undirected_edge(candidate_schema, obj_id, [first, second])
        candidates.append(edge)
    return candidates


def _score_candidates(
    cfg: Dict, graph: Graph, gt, registry: Registry, total: int
) -> Dict[str, Any]:
    data = cfg["data"]
    scoring = cfg.get("scoring") or {}
    node_schema = str(data.get("node_schema", "node"))
    edge_schema = str(data.get("edge_schema", "edge"))
    candidate_schema = f"{edge_schema}-candidate"

    _step(4, total, "adding candidate edges and scoring features...")
    source_column, target_column = endpoint_columns(gt)
    if "y" not in gt.columns:
        raise ConfigurationError("Ground truth table needs a 'y' label column")
    pairs = gt[[source_column, target_column]].astype(str).values.tolist()
    labels = gt["y"].astype(int).to_numpy()
    candidates = add_candidate_edges(graph, pairs, node_schema, candidate_schema, edge_schema)
    entries = list(scoring.get("features") or [])
    if not entries:
        raise ConfigurationError("scoring.features must list at least one feature")
    attach_features(graph, entries, registry, default_schema=candidate_schema)
    feature_ids = [str(entry["id"]) for entry in entries]

    train_edges, test_edges, y_train, y_test = train_test_split(
        candidates,
        labels,
        test_size=float(scoring.get("test_ratio", 0.3)),
        stratify=labels,
        random_state=int(cfg["seed"]),
    )
    # Training labels become known existence; test edges stay unknown until predicted
    for edge, label in zip(train_edges, y_train):
        edge.set(EXISTENCE_FID, EXIST_VALUE if label == 1 else NOTEXIST_VALUE)
    states = [edge_state(edge, EXISTENCE_FID) for edge in candidates]

    _step(5, total, "training existence classifier and predicting held-out edges...")
    model = ExistenceClassifier(feature_ids)
    model.fit(train_edges, y_train)
    test_prob = model.predict(test_edges, EXISTENCE_FID)
    metrics = compute_classification_metrics(
        np.asarray(y_test), test_prob, int(scoring.get("precision_at_k", 10))
    )
    return {
        "test": metrics,
        "candidates": {
            "train": len(train_edges),
            "test": len(test_edges),
            "known_existing": states.count(EdgeState.KE),
            "known_non_existing": states.count(EdgeState.KN),
            "unknown": states.count(EdgeState.U),
        },
    }


def run(cfg: Dict, registry: Optional[Registry] = None) -> Dict:
    """Execute a single feature computation run and return its summary.

    The routine performs:
    1) data loading and graph construction
    2) derived feature attachment through the registry
    3) feature table export per schema
    4) candidate edges and scoring features (when ground truth is configured)
    5) existence classifier training and evaluation
    6) saving the configuration next to the artefacts

    Args:
        cfg: Configuration dictionary (typically parsed from YAML).
        registry: Factory registry; the built-in one when omitted.

    Returns:
        A dictionary of run metadata and metrics that is also written to disk.
    """
    registry = registry if registry is not None else default_registry()
    set_all_seeds(int(cfg["seed"]))
    data = cfg["data"]
    scoring_enabled = bool(data.get("ground_truth_csv"))
    total = 6 if scoring_enabled else 4

    _step(1, total, "loading data tables and building the graph...")
    nodes, edges, gt = load_tables(
        data["dir"], data["nodes_csv"], data["edges_csv"], data.get("ground_truth_csv")
    )
    node_schema = str(data.get("node_schema", "node"))
    edge_schema = str(data.get("edge_schema", "edge"))
    graph = build_graph(
        nodes,
        edges,
        node_schema=node_schema,
        edge_schema=edge_schema,
        directed=bool(data.get("directed", False)),
        categorical=data.get("categorical") or (),
    )

    _step(2, total, "attaching derived features...")
    attached = attach_features(graph, cfg.get("features") or [], registry)

    _step(3, total, "exporting feature tables...")
    run_dir = create_run_dir(cfg["artifacts_dir"])
    tables = {}
    for schema_id in (node_schema, edge_schema):
        path = os.path.join(run_dir, f"features_{schema_id}.csv")
        feature_table(graph, schema_id).to_csv(path, index=False)
        tables[schema_id] = path

    out: Dict[str, Any] = {
        "graph": {"nodes": graph.num_nodes(), "edges": graph.num_edges()},
        "features": attached,
        "feature_tables": tables,
    }
    if scoring_enabled:
        out.update(_score_candidates(cfg, graph, gt, registry, total))

    _step(total, total, "saving artefacts...")
    out["run_dir"] = run_dir
    write_json(os.path.join(run_dir, "metrics.json"), out)
    cfg_text = cfg.get("_config_text")
    save_config(
        os.path.join(run_dir, "config_used.yaml"),
        cfg,
        cfg_text if isinstance(cfg_text, str) else None,
    )
    print(f"Run complete. Artefacts are in: {run_dir}", flush=True)
    return out
