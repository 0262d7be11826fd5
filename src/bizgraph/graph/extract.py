from __future__ import annotations

from dataclasses import asdict
from typing import Any, Iterable, List, Mapping, Optional

import pandas as pd

from .service import GraphService

NODE_COLUMNS = ["id", "type", "label", "original_id", "metadata"]
EDGE_COLUMNS = ["from_id", "to_id", "relation_type", "metadata", "created_at"]


def _rows_to_df(rows: List[Mapping[str, Any]], columns: Iterable[str]) -> pd.DataFrame:
    """
    Convert a list of row dicts to a DataFrame, keeping the column layout
    stable when there are no rows.
    """
    if not rows:
        return pd.DataFrame(columns=list(columns))
    return pd.DataFrame(rows, columns=list(columns))


# ---------------------------------------------------------------------------
# 1. Node data
# ---------------------------------------------------------------------------

def get_node_data(graph: GraphService, *, node_type: Optional[str] = None) -> pd.DataFrame:
    """
    One row per node (optionally restricted to a type), with the mirrored
    row's primary key pulled out of the metadata document as `original_id`.
    """
    rows = [
        {
            "id": n.id,
            "type": n.type,
            "label": n.label,
            "original_id": n.original_id,
            "metadata": n.metadata,
        }
        for n in graph.list_nodes(node_type)
    ]
    return _rows_to_df(rows, NODE_COLUMNS)


# ---------------------------------------------------------------------------
# 2. Edge data
# ---------------------------------------------------------------------------

def get_edge_data(
    graph: GraphService,
    *,
    relation_type: Optional[str] = None,
) -> pd.DataFrame:
    """One row per edge, newest first, optionally restricted to a relation type."""
    rows = [
        {
            "from_id": e.from_id,
            "to_id": e.to_id,
            "relation_type": e.relation_type,
            "metadata": e.metadata,
            "created_at": e.created_at,
        }
        for e in graph.find_edges(relation_type=relation_type)
    ]
    return _rows_to_df(rows, EDGE_COLUMNS)


# ---------------------------------------------------------------------------
# 3. Aggregates
# ---------------------------------------------------------------------------

def get_node_type_distribution(graph: GraphService) -> pd.DataFrame:
    """Node counts per type, indexed by type."""
    stats = graph.get_graph_stats()
    df = _rows_to_df([asdict(nt) for nt in stats.node_types], ["type", "count"])
    return df.set_index("type")


def get_degree_data(graph: GraphService, *, limit: int = 10) -> pd.DataFrame:
    """Most connected nodes with outgoing/incoming/total edge counts."""
    rows = [
        {**asdict(c), "total": c.total_connections}
        for c in graph.most_connected_nodes(limit)
    ]
    return _rows_to_df(rows, ["id", "type", "label", "outgoing", "incoming", "total"])
