from __future__ import annotations

from bizgraph.graph import GraphService
from bizgraph.graph import vocabulary as v
from bizgraph.graph.extract import (
    EDGE_COLUMNS,
    NODE_COLUMNS,
    get_degree_data,
    get_edge_data,
    get_node_data,
    get_node_type_distribution,
)


def _populate(graph: GraphService) -> None:
    e = graph.create_node(v.ENTERPRISE, "Acme", {"originalId": "E1"})
    f = graph.create_node(v.FACILITY, "Pit One", {"originalId": "F1"})
    b = graph.create_node(v.BUSINESS_UNIT, "Extraction", {"originalId": "B1"})
    graph.create_edge(e.id, f.id, v.OPERATES)
    graph.create_edge(f.id, b.id, v.CONTAINS)
    graph.create_edge(e.id, b.id, v.OWNS)


def test_empty_frames_keep_columns(graph: GraphService) -> None:
    assert list(get_node_data(graph).columns) == NODE_COLUMNS
    assert list(get_edge_data(graph).columns) == EDGE_COLUMNS
    assert get_node_data(graph).empty


def test_node_data(graph: GraphService) -> None:
    _populate(graph)

    df = get_node_data(graph)
    assert len(df) == 3
    assert set(df["original_id"]) == {"E1", "F1", "B1"}

    facilities = get_node_data(graph, node_type=v.FACILITY)
    assert list(facilities["label"]) == ["Pit One"]


def test_edge_data_filter(graph: GraphService) -> None:
    _populate(graph)

    assert len(get_edge_data(graph)) == 3
    owns = get_edge_data(graph, relation_type=v.OWNS)
    assert list(owns["relation_type"]) == [v.OWNS]


def test_node_type_distribution(graph: GraphService) -> None:
    _populate(graph)
    graph.create_node(v.FACILITY, "Pit Two")

    dist = get_node_type_distribution(graph)
    assert dist.loc[v.FACILITY, "count"] == 2
    assert dist.loc[v.ENTERPRISE, "count"] == 1


def test_degree_data(graph: GraphService) -> None:
    _populate(graph)

    df = get_degree_data(graph, limit=2)
    assert len(df) == 2
    # Every node has 2 connections; ties are ordered by id.
    assert list(df["total"]) == [2, 2]
    assert list(df["id"]) == sorted(df["id"])
