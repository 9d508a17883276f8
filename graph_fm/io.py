"""Data loading helpers turning node/edge CSV tables into a feature graph and back.

This module reads CSV files from a directory, builds a ``Graph`` with one node
schema and one edge schema, and exports feature values as pandas tables.
It assumes an ``id`` column for nodes and ``source``/``target`` columns (or
``subject``/``object``) for edges; every other column becomes an explicit feature.
"""

import os
from typing import Iterable, List, Optional, Tuple

import numpy as np
import pandas as pd

from .features import (
    CompositeFeature,
    ExplicitCateg,
    ExplicitFeature,
    ExplicitNum,
    ExplicitString,
)
from .graph import Graph
from .schema import Schema, SchemaType
from .values import CategValue, CompositeValue, FeatureValue, NumValue, is_unknown

EDGE_ENDPOINT_COLUMNS = (("source", "target"), ("subject", "object"))


def load_tables(
    data_dir: str,
    nodes_csv: str,
    edges_csv: str,
    ground_truth_csv: Optional[str] = None,
) -> Tuple[pd.DataFrame, pd.DataFrame, Optional[pd.DataFrame]]:
    """Load node, edge and (optionally) ground-truth CSV files from a directory.

    Args:
        data_dir: Base directory containing the CSV files.
        nodes_csv: File name of the nodes table.
        edges_csv: File name of the edges table.
        ground_truth_csv: Optional file name of the labelled pairs table.

    Returns:
        Three pandas DataFrames: nodes, edges, ground truth (``None`` when not given).
    """
    nodes = pd.read_csv(os.path.join(data_dir, nodes_csv))
    edges = pd.read_csv(os.path.join(data_dir, edges_csv))
    gt = None
    if ground_truth_csv:
        gt = pd.read_csv(os.path.join(data_dir, ground_truth_csv))
    return nodes, edges, gt


def endpoint_columns(table: pd.DataFrame) -> Tuple[str, str]:
    """Return the names of the two endpoint columns of an edge table."""
    for source_column, target_column in EDGE_ENDPOINT_COLUMNS:
        if source_column in table.columns and target_column in table.columns:
            return source_column, target_column
    raise ValueError(
        f"Edge table needs source/target or subject/object columns, got {list(table.columns)}"
    )


def _explicit_schema(
    schema_type: SchemaType,
    table: pd.DataFrame,
    skip: Iterable[str],
    categorical: Iterable[str] = (),
) -> Schema:
    schema = Schema(schema_type)
    categorical = set(categorical)
    for column in table.columns:
        if column in skip:
            continue
        series = table[column]
        if column in categorical:
            categories = sorted({str(v) for v in series.dropna()})
            schema.add_feature(str(column), ExplicitCateg(categories))
        elif pd.api.types.is_numeric_dtype(series) and not pd.api.types.is_bool_dtype(series):
            schema.add_feature(str(column), ExplicitNum())
        else:
            schema.add_feature(str(column), ExplicitString())
    return schema


def _set_cells(item, schema: Schema, row: dict) -> None:
    for feature_id, feature in schema.features():
        cell = row[feature_id]
        if pd.isna(cell):
            continue
        if isinstance(feature, ExplicitNum):
            item.set(feature_id, NumValue(float(cell)))
        elif isinstance(feature, ExplicitFeature):
            item.set_string(feature_id, str(cell))


def build_graph(
    nodes: pd.DataFrame,
    edges: pd.DataFrame,
    node_schema: str = "node",
    edge_schema: str = "edge",
    directed: bool = False,
    graph_id: str = "graph",
    categorical: Iterable[str] = (),
) -> Graph:
    """Build a graph with one node per ``id`` row and one binary edge per edge row.

    Extra columns become explicit features: ``categorical`` columns give
    ``ExplicitCateg`` over their sorted distinct values, numeric columns give
    ``ExplicitNum`` and anything else ``ExplicitString``. Missing cells stay
    unknown. Edges use the ``id`` column as object id when present, otherwise
    their row position.

    Raises:
        ValueError: If required columns are missing or an edge references an
            unknown node.
    """
    if "id" not in nodes.columns:
        raise ValueError(f"Node table needs an 'id' column, got {list(nodes.columns)}")
    source_column, target_column = endpoint_columns(edges)

    graph = Graph(obj_id=graph_id)
    node_features = _explicit_schema(SchemaType.NODE, nodes, {"id"}, categorical)
    edge_features = _explicit_schema(
        SchemaType.DIRECTED if directed else SchemaType.UNDIRECTED,
        edges,
        {"id", source_column, target_column},
        categorical,
    )
    graph.add_schema(node_schema, node_features)
    graph.add_schema(edge_schema, edge_features)

    # Records keep per-column dtypes, so integer ids are not widened to floats
    for row in nodes.to_dict("records"):
        node = graph.add_node(node_schema, str(row["id"]))
        _set_cells(node, node_features, row)

    for position, row in enumerate(edges.to_dict("records")):
        obj_id = str(row["id"]) if "id" in edges.columns else f"e{position}"
        source = f"{node_schema}:{row[source_column]}"
        target = f"{node_schema}:{row[target_column]}"
        if not graph.has_item(source) or not graph.has_item(target):
            raise ValueError(f"Edge {obj_id} references an unknown node: {source} -> {target}")
        if directed:
            edge = graph.add_directed_edge(edge_schema, obj_id, [source], [target])
        else:
            edge = graph.add_undirected_edge(edge_schema, obj_id, [source, target])
        _set_cells(edge, edge_features, row)
    return graph


def _flatten(feature_id: str, feature, value: FeatureValue) -> List[Tuple[str, object]]:
    if isinstance(feature, CompositeFeature):
        names = [f"{feature_id}:{d.name}" for d in feature.descriptors]
        if not isinstance(value, CompositeValue):
            return [(name, np.nan) for name in names]
        return [(name, _cell(part)) for name, part in zip(names, value)]
    return [(feature_id, _cell(value))]


def _cell(value: FeatureValue) -> object:
    if is_unknown(value):
        return np.nan
    if isinstance(value, NumValue):
        return value.number
    if isinstance(value, CategValue):
        return value.category
    return value.string_value


def feature_table(
    graph: Graph, schema_id: str, feature_ids: Optional[Iterable[str]] = None
) -> pd.DataFrame:
    """Read feature values of every item of ``schema_id`` into a DataFrame.

    Numeric values become floats, categorical values their category and other
    values their string form; unknown values are NaN. Composite features are
    expanded into one ``fid:name`` column per position.
    """
    schema = graph.get_schema(schema_id)
    selected = list(feature_ids) if feature_ids is not None else schema.feature_ids()
    rows = []
    for item in graph.items(schema_id):
        row: dict = {"id": item.id.obj_id}
        for feature_id in selected:
            feature = schema.get_feature(feature_id)
            row.update(_flatten(feature_id, feature, item.get(feature_id)))
        rows.append(row)
    if not rows:
        return pd.DataFrame(columns=["id"])
    return pd.DataFrame(rows)
