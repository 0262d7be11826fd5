from __future__ import annotations

import pytest
from sqlalchemy.orm import Session

from bizgraph.config import GraphSettings
from bizgraph.errors import StaleGraphReference
from bizgraph.graph import GraphService
from bizgraph.graph import vocabulary as v
from bizgraph.hybrid import RELATIONSHIPS, HybridQueryService
from bizgraph.migration import create_hierarchy_relationships, migrate_entities_to_graph
from bizgraph.store import RelationalStore


@pytest.fixture
def migrated(session: Session, org: RelationalStore) -> RelationalStore:
    migrate_entities_to_graph(session)
    create_hierarchy_relationships(session)
    return org


@pytest.mark.parametrize(
    "fetch, key",
    [
        (lambda h: h.get_business_canvas_with_relationships("C1"), "C1"),
        (lambda h: h.get_process_with_controls("P1"), "P1"),
        (lambda h: h.get_enterprise_with_hierarchy("E1"), "E1"),
        (lambda h: h.get_entity_with_relationships("department", "D1"), "D1"),
        (lambda h: h.get_entity_with_relationships("facility", "F1"), "F1"),
    ],
)
def test_unmigrated_rows_are_returned_without_relationships(
    hybrid: HybridQueryService, org: RelationalStore, fetch, key: str
) -> None:
    row = fetch(hybrid)

    assert row is not None
    assert row["id"] == key
    assert row["graph_node_id"] is None
    assert RELATIONSHIPS not in row


def test_unmigrated_canvas_keeps_its_includes(
    hybrid: HybridQueryService, org: RelationalStore
) -> None:
    canvas = hybrid.get_business_canvas_with_relationships("C1")

    assert [vp["name"] for vp in canvas["value_propositions"]] == ["Low cost ore"]
    assert canvas["enterprise"]["id"] == "E1"


def test_missing_entity_returns_none(hybrid: HybridQueryService, org: RelationalStore) -> None:
    assert hybrid.get_process_with_controls("missing") is None
    assert hybrid.get_control_effectiveness_mapping("missing") is None


def test_canvas_with_relationships(hybrid: HybridQueryService, migrated: RelationalStore) -> None:
    canvas = hybrid.get_business_canvas_with_relationships("C1")

    rels = canvas[RELATIONSHIPS]
    assert {e.relation_type for e in rels} == {v.ENABLES}
    assert {e.to_node.label for e in rels} == {"Blast Hole Drilling", "Payroll"}


def test_process_with_controls(hybrid: HybridQueryService, migrated: RelationalStore) -> None:
    process = hybrid.get_process_with_controls("P1")

    assert [link["control"]["id"] for link in process["controls"]] == ["K1"]
    rels = process[RELATIONSHIPS]
    assert [(e.relation_type, e.to_node.type) for e in rels] == [
        (v.IMPLEMENTS, v.CRITICAL_CONTROL)
    ]


def test_enterprise_with_hierarchy(hybrid: HybridQueryService, migrated: RelationalStore) -> None:
    enterprise = hybrid.get_enterprise_with_hierarchy("E1")

    departments = enterprise["facilities"][0]["business_units"][0]["departments"]
    assert [d["id"] for d in departments] == ["D1"]
    assert len(enterprise[RELATIONSHIPS]) == 4


def test_generic_entity_fetch(hybrid: HybridQueryService, migrated: RelationalStore) -> None:
    department = hybrid.get_entity_with_relationships("department", "D1")

    assert [p["id"] for p in department["processes"]] == ["P1"]
    assert [e.relation_type for e in department[RELATIONSHIPS]] == [v.IMPLEMENTS]


def test_stale_graph_reference_raises(
    session: Session, hybrid: HybridQueryService, migrated: RelationalStore
) -> None:
    migrated.update("process", "P2", {"graph_node_id": "gone"})

    with pytest.raises(StaleGraphReference) as info:
        hybrid.get_process_with_controls("P2")
    assert info.value.node_id == "gone"


def test_control_effectiveness_mapping(
    hybrid: HybridQueryService, migrated: RelationalStore
) -> None:
    mapping = hybrid.get_control_effectiveness_mapping("K1")

    assert [link["process"]["id"] for link in mapping["processes"]] == ["P1"]
    # The control is a leaf: its node has no outbound edges.
    assert mapping[RELATIONSHIPS] == []


def test_control_mapping_without_node(hybrid: HybridQueryService, org: RelationalStore) -> None:
    mapping = hybrid.get_control_effectiveness_mapping("K1")

    assert mapping["id"] == "K1"
    assert RELATIONSHIPS not in mapping


def test_risk_propagation_is_bounded(session: Session, graph: GraphService) -> None:
    ids = [graph.create_node(v.RISK, f"R{i}").id for i in range(8)]
    for a, b in zip(ids, ids[1:]):
        graph.create_edge(a, b, v.ENABLES)

    hybrid = HybridQueryService(session, graph=graph)
    steps = hybrid.get_risk_propagation_path(ids[0])
    assert [s.depth for s in steps] == [0, 1, 2, 3, 4, 5]

    shallow = HybridQueryService(
        session, graph=graph, settings=GraphSettings(risk_propagation_depth=2)
    )
    assert len(shallow.get_risk_propagation_path(ids[0])) == 3

    # A GraphService built by the hybrid service shares its settings.
    own = HybridQueryService(session, settings=GraphSettings(traversal_depth=1))
    assert len(own.graph.traverse_graph(ids[0])) == 2


def test_search_returns_two_buckets(hybrid: HybridQueryService, migrated: RelationalStore) -> None:
    results = hybrid.search_entities("drill")

    assert {(r["type"], r["id"]) for r in results.relational} == {
        ("process", "P1"),
        ("department", "D1"),
    }
    assert {n["label"] for n in results.graph} == {"Blast Hole Drilling", "Drill and Blast"}


def test_search_restricted_to_types(hybrid: HybridQueryService, org: RelationalStore) -> None:
    results = hybrid.search_entities("drill", types=["process"])

    assert [r["id"] for r in results.relational] == ["P1"]
    # No graph nodes exist before migration.
    assert results.graph == []


def test_hierarchical_data(hybrid: HybridQueryService, migrated: RelationalStore) -> None:
    processes = hybrid.get_hierarchical_data("process", "E1.F1")
    assert [p["id"] for p in processes] == ["P1"]

    units = hybrid.get_hierarchical_data("business_unit", "E1")
    assert [u["hierarchy_path"] for u in units] == ["E1.B2", "E1.F1.B1"]

    assert len(hybrid.get_hierarchical_data("business_canvas")) == 2
    assert hybrid.get_hierarchical_data("critical_control", "E1") == []
    assert hybrid.get_hierarchical_data("spaceship", "E1") == []


def test_master_data_with_relationships(
    session: Session, hybrid: HybridQueryService, graph: GraphService, store: RelationalStore
) -> None:
    role = graph.create_node("role", "Shift Supervisor")
    process = graph.create_node(v.PROCESS, "Drilling")
    graph.create_edge(role.id, process.id, v.EXECUTES)
    store.insert("master_role", {"id": "R1", "name": "Shift Supervisor", "graph_node_id": role.id})
    store.insert("master_role", {"id": "R2", "name": "Geologist"})

    rows = hybrid.get_master_data_with_relationships("roles")

    assert [r["id"] for r in rows] == ["R1", "R2"]
    node = rows[0]["graph_node"]
    assert node.id == role.id
    assert [e.to_node.label for e in node.outgoing_edges] == ["Drilling"]
    assert rows[1]["graph_node"] is None

    assert hybrid.get_master_data_with_relationships("unicorns") == []


def test_relationship_analytics(hybrid: HybridQueryService, migrated: RelationalStore) -> None:
    analytics = hybrid.get_relationship_analytics()

    assert analytics.stats.total_nodes == 11
    assert analytics.stats.total_edges == 12
    assert len(analytics.most_connected_nodes) == 10
    # E1 (4 out), B1 (2 in, 2 out) and P1 (3 in, 1 out) share the top rank.
    top = analytics.most_connected_nodes[:3]
    assert {c.label for c in top} == {"Acme Mining", "Extraction", "Blast Hole Drilling"}
    assert all(c.total_connections == 4 for c in top)
    assert analytics.most_connected_nodes[3].total_connections == 3
    counts = {r.type: r.count for r in analytics.relationship_types}
    assert counts[v.IMPLEMENTS] == 2
    assert counts[v.ENABLES] == 2
    assert sum(counts.values()) == 12
